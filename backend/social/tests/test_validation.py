from django.contrib.auth.models import AnonymousUser, User
from django.test import SimpleTestCase, TestCase

from social.exceptions import InvalidInputError, NotAuthenticatedError
from social.validation import (
    COLLECTION_NAME_MAX_LENGTH,
    DEFAULT_COLLECTION,
    clean_collection_name,
    clean_poll_options,
    clean_text,
    require_user,
    validate_reaction_type,
    validate_target_type,
)


class RequireUserTestCase(TestCase):

    def test_authenticated_user_passes(self):
        user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.assertIs(require_user(user), user)

    def test_missing_or_anonymous_rejected(self):
        with self.assertRaises(NotAuthenticatedError):
            require_user(None)
        with self.assertRaises(NotAuthenticatedError):
            require_user(AnonymousUser())


class CleanTextTestCase(SimpleTestCase):

    def test_trims(self):
        self.assertEqual(clean_text('  hi  ', 'Content', 10), 'hi')

    def test_length_measured_after_trim(self):
        self.assertEqual(clean_text(' ' + 'x' * 10 + ' ', 'Content', 10), 'x' * 10)
        with self.assertRaises(InvalidInputError):
            clean_text('x' * 11, 'Content', 10)

    def test_empty_rejected(self):
        for value in (None, '', '   '):
            with self.assertRaises(InvalidInputError):
                clean_text(value, 'Content', 10)

    def test_collection_name(self):
        self.assertEqual(clean_collection_name(None), DEFAULT_COLLECTION)
        self.assertEqual(clean_collection_name('  '), DEFAULT_COLLECTION)
        self.assertEqual(clean_collection_name(' Exams '), 'Exams')
        with self.assertRaises(InvalidInputError):
            clean_collection_name('x' * (COLLECTION_NAME_MAX_LENGTH + 1))

    def test_poll_options(self):
        self.assertEqual(clean_poll_options([' A', 'B ']), ['A', 'B'])
        with self.assertRaises(InvalidInputError):
            clean_poll_options(None)

    def test_reaction_and_target_types(self):
        self.assertEqual(validate_reaction_type('scholarly'), 'scholarly')
        self.assertEqual(validate_target_type('comment'), 'comment')
        with self.assertRaises(InvalidInputError):
            validate_reaction_type('LIKE')
        with self.assertRaises(InvalidInputError):
            validate_target_type('poll')
