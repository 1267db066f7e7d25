"""
Tests for detail-record actions.

Each action writes (or deletes) exactly one kind of detail record and moves
the matching aggregate in the same transaction.
"""

from django.contrib.auth.models import AnonymousUser, User
from django.contrib.contenttypes.models import ContentType
from django.test import TestCase

from social import polls, services
from social.exceptions import (
    ForbiddenError,
    InvalidInputError,
    NotAuthenticatedError,
    NotFoundError,
)
from social.models import (
    Bookmark,
    Comment,
    Community,
    CommunityMembership,
    Follow,
    Poll,
    PollVote,
    Post,
    Profile,
    Reaction,
    Repost,
)
from social.validation import MAX_COMMENT_DEPTH, POST_MAX_LENGTH


class PostTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')

    def test_create_post_trims_content(self):
        post = services.create_post(self.user, '  Hello campus  ')
        self.assertEqual(post.content, 'Hello campus')
        self.assertEqual(post.like_count, 0)
        self.assertEqual(post.reaction_counts['like'], 0)

    def test_empty_and_long_content_rejected(self):
        with self.assertRaises(InvalidInputError):
            services.create_post(self.user, '   ')
        with self.assertRaises(InvalidInputError):
            services.create_post(self.user, 'x' * (POST_MAX_LENGTH + 1))

    def test_community_post_requires_membership(self):
        owner = User.objects.create_user('owner', 'o@test.com', 'pass')
        community = services.create_community(owner, 'Chess Club')

        with self.assertRaises(ForbiddenError):
            services.create_post(self.user, 'Hi', community_id=community.id)

        post = services.create_post(owner, 'Welcome', community_id=community.id)
        self.assertEqual(post.community_id, community.id)


class DeletePostTestCase(TestCase):
    """Deleting a post takes every detail record on it along."""

    def setUp(self):
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.reader = User.objects.create_user('reader', 'r@test.com', 'pass')
        self.post = services.create_post(self.author, 'Going away')

    def test_author_deletes_everything(self):
        comment = services.create_comment(self.reader, self.post.id, 'First')
        services.create_comment(self.author, self.post.id, 'Reply', parent_id=comment.id)
        services.add_reaction(self.reader, 'post', self.post.id, 'like')
        services.add_reaction(self.author, 'comment', comment.id, 'love')
        services.repost(self.reader, self.post.id)
        services.add_bookmark(self.reader, self.post.id)
        poll = polls.create_poll(self.author, ['Yes', 'No'])
        polls.link_poll_to_post(self.author, poll.id, self.post.id)
        polls.cast_vote(self.reader, poll.id, poll.option_ids()[0])

        deleted = services.delete_post(self.author, self.post.id)

        self.assertEqual(deleted, {'comments': 2, 'reactions': 2, 'polls': 1})
        self.assertFalse(Post.objects.filter(pk=self.post.id).exists())
        self.assertEqual(Comment.objects.count(), 0)
        self.assertEqual(Reaction.objects.count(), 0)
        self.assertEqual(Repost.objects.count(), 0)
        self.assertEqual(Bookmark.objects.count(), 0)
        self.assertEqual(Poll.objects.count(), 0)
        self.assertEqual(PollVote.objects.count(), 0)

    def test_other_posts_untouched(self):
        other = services.create_post(self.reader, 'Staying')
        services.add_reaction(self.author, 'post', other.id, 'like')

        services.delete_post(self.author, self.post.id)

        self.assertTrue(Post.objects.filter(pk=other.id).exists())
        self.assertEqual(Reaction.objects.count(), 1)

    def test_only_author_can_delete(self):
        with self.assertRaises(ForbiddenError):
            services.delete_post(self.reader, self.post.id)
        self.assertTrue(Post.objects.filter(pk=self.post.id).exists())

    def test_missing_post(self):
        with self.assertRaises(NotFoundError):
            services.delete_post(self.author, self.post.id + 1000)

    def test_anonymous_rejected(self):
        with self.assertRaises(NotAuthenticatedError):
            services.delete_post(AnonymousUser(), self.post.id)


class ReactionTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.author = User.objects.create_user('author', 'a@test.com', 'pass')
        self.post = Post.objects.create(author=self.author, content='Content')

    def test_add_reaction(self):
        result = services.add_reaction(self.user, 'post', self.post.id, 'like')

        self.assertTrue(result.success)
        self.assertEqual(result.action, 'created')
        self.post.refresh_from_db()
        self.assertEqual(self.post.reaction_counts['like'], 1)
        self.assertEqual(self.post.like_count, 1)

    def test_same_reaction_is_no_change(self):
        services.add_reaction(self.user, 'post', self.post.id, 'love')
        result = services.add_reaction(self.user, 'post', self.post.id, 'love')

        self.assertEqual(result.action, 'no_change')
        self.post.refresh_from_db()
        self.assertEqual(self.post.reaction_counts['love'], 1)

    def test_switch_reaction_type(self):
        services.add_reaction(self.user, 'post', self.post.id, 'like')
        result = services.add_reaction(self.user, 'post', self.post.id, 'scholarly')

        self.assertEqual(result.action, 'updated')
        self.assertEqual(Reaction.objects.filter(user=self.user).count(), 1)
        self.post.refresh_from_db()
        self.assertEqual(self.post.reaction_counts['like'], 0)
        self.assertEqual(self.post.reaction_counts['scholarly'], 1)
        self.assertEqual(self.post.like_count, 0)

    def test_remove_reaction(self):
        services.add_reaction(self.user, 'post', self.post.id, 'like')

        result = services.remove_reaction(self.user, 'post', self.post.id)
        self.assertEqual(result.action, 'removed')

        again = services.remove_reaction(self.user, 'post', self.post.id)
        self.assertEqual(again.action, 'already_removed')
        self.assertFalse(again.success)

        self.post.refresh_from_db()
        self.assertEqual(self.post.like_count, 0)
        self.assertEqual(self.post.reaction_counts['like'], 0)

    def test_toggle(self):
        first = services.toggle_reaction(self.user, 'post', self.post.id)
        second = services.toggle_reaction(self.user, 'post', self.post.id)

        self.assertEqual(first.action, 'created')
        self.assertEqual(second.action, 'removed')
        self.assertIsNone(services.get_user_reaction(self.user, 'post', self.post.id))

    def test_comment_reaction(self):
        comment = Comment.objects.create(post=self.post, author=self.author, content='Hi')

        services.add_reaction(self.user, 'comment', comment.id, 'laugh')

        comment.refresh_from_db()
        self.assertEqual(comment.reaction_counts['laugh'], 1)
        self.assertEqual(services.get_user_reaction(self.user, 'comment', comment.id), 'laugh')

    def test_missing_target(self):
        with self.assertRaises(NotFoundError):
            services.add_reaction(self.user, 'post', self.post.id + 1000, 'like')

    def test_invalid_reaction_type(self):
        with self.assertRaises(InvalidInputError):
            services.add_reaction(self.user, 'post', self.post.id, 'angry')
        self.assertEqual(Reaction.objects.count(), 0)

    def test_anonymous_rejected(self):
        with self.assertRaises(NotAuthenticatedError):
            services.add_reaction(AnonymousUser(), 'post', self.post.id, 'like')

    def test_remove_after_target_deleted(self):
        services.add_reaction(self.user, 'post', self.post.id, 'like')
        post_id = self.post.id
        self.post.delete()

        result = services.remove_reaction(self.user, 'post', post_id)

        self.assertEqual(result.action, 'removed')
        self.assertFalse(Reaction.objects.filter(user=self.user).exists())


class ReactionDuplicateTestCase(TestCase):
    """Duplicate reaction rows are rejected at DB level."""

    def setUp(self):
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.post = Post.objects.create(author=self.user, content='Content')

    def test_cannot_react_twice(self):
        services.add_reaction(self.user, 'post', self.post.id, 'like')
        services.add_reaction(self.user, 'post', self.post.id, 'like')

        post_ct = ContentType.objects.get_for_model(Post)
        self.assertEqual(
            Reaction.objects.filter(user=self.user, content_type=post_ct, object_id=self.post.id).count(),
            1
        )
        self.post.refresh_from_db()
        self.assertEqual(self.post.like_count, 1)


class FollowTestCase(TestCase):

    def setUp(self):
        self.alice = User.objects.create_user('alice', 'a@test.com', 'pass')
        self.bob = User.objects.create_user('bob', 'b@test.com', 'pass')

    def profiles(self):
        return Profile.objects.get(user=self.alice), Profile.objects.get(user=self.bob)

    def test_follow_and_unfollow(self):
        result = services.follow_user(self.alice, self.bob.id)
        self.assertEqual(result.action, 'created')
        self.assertTrue(services.is_following(self.alice, self.bob.id))

        alice, bob = self.profiles()
        self.assertEqual(alice.following_count, 1)
        self.assertEqual(bob.follower_count, 1)

        result = services.unfollow_user(self.alice, self.bob.id)
        self.assertEqual(result.action, 'removed')

        alice, bob = self.profiles()
        self.assertEqual(alice.following_count, 0)
        self.assertEqual(bob.follower_count, 0)

    def test_follow_twice(self):
        services.follow_user(self.alice, self.bob.id)
        result = services.follow_user(self.alice, self.bob.id)

        self.assertEqual(result.action, 'already_exists')
        self.assertEqual(Follow.objects.count(), 1)
        _, bob = self.profiles()
        self.assertEqual(bob.follower_count, 1)

    def test_unfollow_without_edge(self):
        result = services.unfollow_user(self.alice, self.bob.id)
        self.assertEqual(result.action, 'already_removed')
        alice, _ = self.profiles()
        self.assertEqual(alice.following_count, 0)

    def test_self_follow_rejected(self):
        with self.assertRaises(InvalidInputError):
            services.follow_user(self.alice, self.alice.id)

    def test_missing_target(self):
        with self.assertRaises(NotFoundError):
            services.follow_user(self.alice, self.bob.id + 1000)


class CommentTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.other = User.objects.create_user('other', 'o@test.com', 'pass')
        self.post = Post.objects.create(author=self.user, content='Content')

    def test_comment_and_reply_counts(self):
        root = services.create_comment(self.user, self.post.id, 'Root')
        reply = services.create_comment(self.other, self.post.id, 'Reply', parent_id=root.id)

        self.assertEqual(reply.depth, 1)
        self.post.refresh_from_db()
        root.refresh_from_db()
        self.assertEqual(self.post.comment_count, 2)
        self.assertEqual(root.reply_count, 1)

    def test_parent_must_be_on_same_post(self):
        other_post = Post.objects.create(author=self.user, content='Other')
        root = services.create_comment(self.user, other_post.id, 'Root')

        with self.assertRaises(InvalidInputError):
            services.create_comment(self.user, self.post.id, 'Reply', parent_id=root.id)

    def test_depth_cap(self):
        parent = services.create_comment(self.user, self.post.id, 'depth 0')
        for depth in range(1, MAX_COMMENT_DEPTH + 1):
            parent = services.create_comment(self.user, self.post.id, f'depth {depth}', parent_id=parent.id)

        with self.assertRaises(InvalidInputError):
            services.create_comment(self.user, self.post.id, 'too deep', parent_id=parent.id)

    def test_delete_subtree(self):
        root = services.create_comment(self.user, self.post.id, 'Root')
        child = services.create_comment(self.other, self.post.id, 'Child', parent_id=root.id)
        services.create_comment(self.user, self.post.id, 'Grandchild', parent_id=child.id)
        sibling = services.create_comment(self.other, self.post.id, 'Sibling')
        services.add_reaction(self.other, 'comment', child.id, 'like')

        deleted = services.delete_comment(self.user, root.id)

        self.assertEqual(deleted, 3)
        self.assertEqual(list(Comment.objects.values_list('id', flat=True)), [sibling.id])
        self.assertEqual(Reaction.objects.count(), 0)
        self.post.refresh_from_db()
        self.assertEqual(self.post.comment_count, 1)

    def test_delete_reply_decrements_parent(self):
        root = services.create_comment(self.user, self.post.id, 'Root')
        reply = services.create_comment(self.user, self.post.id, 'Reply', parent_id=root.id)

        services.delete_comment(self.user, reply.id)

        root.refresh_from_db()
        self.assertEqual(root.reply_count, 0)

    def test_only_author_can_delete(self):
        root = services.create_comment(self.user, self.post.id, 'Root')
        with self.assertRaises(ForbiddenError):
            services.delete_comment(self.other, root.id)

    def test_missing_post(self):
        with self.assertRaises(NotFoundError):
            services.create_comment(self.user, self.post.id + 1000, 'Hi')


class RepostTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.post = Post.objects.create(author=self.user, content='Content')

    def test_repost_and_undo(self):
        result = services.repost(self.user, self.post.id, 'Worth reading')
        self.assertEqual(result.action, 'created')
        self.post.refresh_from_db()
        self.assertEqual(self.post.share_count, 1)

        again = services.repost(self.user, self.post.id)
        self.assertEqual(again.action, 'already_exists')
        self.assertEqual(Repost.objects.count(), 1)

        services.undo_repost(self.user, self.post.id)
        self.post.refresh_from_db()
        self.assertEqual(self.post.share_count, 0)
        self.assertEqual(services.undo_repost(self.user, self.post.id).action, 'already_removed')


class CommunityTestCase(TestCase):

    def setUp(self):
        self.owner = User.objects.create_user('owner', 'o@test.com', 'pass')
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')

    def test_create_counts_owner(self):
        community = services.create_community(self.owner, 'Robotics Club', 'Robots')

        self.assertEqual(community.member_count, 1)
        self.assertEqual(community.slug, 'robotics-club')
        membership = CommunityMembership.objects.get(community=community, user=self.owner)
        self.assertEqual(membership.role, CommunityMembership.Role.OWNER)

    def test_slugs_are_unique(self):
        first = services.create_community(self.owner, 'Robotics Club')
        second = services.create_community(self.user, 'Robotics Club')
        self.assertNotEqual(first.slug, second.slug)

    def test_join_and_leave_public(self):
        community = services.create_community(self.owner, 'Chess')

        self.assertEqual(services.join_community(self.user, community.id).action, 'joined')
        community.refresh_from_db()
        self.assertEqual(community.member_count, 2)

        with self.assertRaises(InvalidInputError):
            services.join_community(self.user, community.id)

        self.assertEqual(services.leave_community(self.user, community.id).action, 'left')
        community.refresh_from_db()
        self.assertEqual(community.member_count, 1)

    def test_private_request_and_approve(self):
        community = services.create_community(self.owner, 'Study Group', visibility='private')

        self.assertEqual(services.join_community(self.user, community.id).action, 'requested')
        community.refresh_from_db()
        self.assertEqual(community.member_count, 1)

        with self.assertRaises(ForbiddenError):
            services.approve_join_request(self.user, community.id, self.user.id)

        result = services.approve_join_request(self.owner, community.id, self.user.id)
        self.assertEqual(result.action, 'approved')
        community.refresh_from_db()
        self.assertEqual(community.member_count, 2)

    def test_leaving_pending_request_keeps_count(self):
        community = services.create_community(self.owner, 'Study Group', visibility='private')
        services.join_community(self.user, community.id)

        services.leave_community(self.user, community.id)

        community.refresh_from_db()
        self.assertEqual(community.member_count, 1)

    def test_secret_cannot_be_joined(self):
        community = services.create_community(self.owner, 'Hidden', visibility='secret')
        with self.assertRaises(ForbiddenError):
            services.join_community(self.user, community.id)

    def test_owner_cannot_leave(self):
        community = services.create_community(self.owner, 'Chess')
        with self.assertRaises(InvalidInputError):
            services.leave_community(self.owner, community.id)

    def test_invalid_visibility(self):
        with self.assertRaises(InvalidInputError):
            services.create_community(self.owner, 'Chess', visibility='hidden')
        self.assertEqual(Community.objects.count(), 0)


class BookmarkTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.post = Post.objects.create(author=self.user, content='Content')

    def test_default_collection(self):
        result = services.add_bookmark(self.user, self.post.id)

        self.assertEqual(result.action, 'created')
        self.assertEqual(Bookmark.objects.get(user=self.user).collection_name, 'Saved')

    def test_move_to_other_collection(self):
        services.add_bookmark(self.user, self.post.id)
        result = services.add_bookmark(self.user, self.post.id, '  Exams ')

        self.assertEqual(result.action, 'updated')
        self.assertEqual(Bookmark.objects.get(user=self.user).collection_name, 'Exams')

    def test_bookmark_twice(self):
        services.add_bookmark(self.user, self.post.id, 'Exams')
        result = services.add_bookmark(self.user, self.post.id, 'Exams')
        self.assertEqual(result.action, 'already_exists')
        self.assertEqual(Bookmark.objects.count(), 1)

    def test_remove(self):
        services.add_bookmark(self.user, self.post.id)
        self.assertEqual(services.remove_bookmark(self.user, self.post.id).action, 'removed')
        self.assertEqual(services.remove_bookmark(self.user, self.post.id).action, 'already_removed')
