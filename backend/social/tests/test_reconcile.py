"""
Tests for the reconciliation pass.

Corrupt an aggregate by hand, then check that recounting from the detail
records puts it back.
"""

from io import StringIO

from django.contrib.auth.models import User
from django.core.management import call_command
from django.test import TestCase

from social import polls, reconcile, services
from social.models import Comment, Community, Poll, PollVote, Post, Profile, Reaction


class RecountTestCase(TestCase):

    def setUp(self):
        self.alice = User.objects.create_user('alice', 'a@test.com', 'pass')
        self.bob = User.objects.create_user('bob', 'b@test.com', 'pass')
        self.post = services.create_post(self.alice, 'Content')

    def test_clean_post_has_no_drift(self):
        services.add_reaction(self.bob, 'post', self.post.id, 'like')
        self.assertEqual(reconcile.recount_post(self.post.id), {})

    def test_post_repaired(self):
        services.add_reaction(self.bob, 'post', self.post.id, 'love')
        services.create_comment(self.bob, self.post.id, 'Hi')
        services.repost(self.bob, self.post.id)
        Post.objects.filter(pk=self.post.id).update(
            reaction_counts={'like': 7}, like_count=7, comment_count=0, share_count=4
        )

        with self.assertLogs('social.reconcile', level='WARNING'):
            drift = reconcile.recount_post(self.post.id)

        self.assertEqual(set(drift), {'reaction_counts', 'like_count', 'comment_count', 'share_count'})
        self.post.refresh_from_db()
        self.assertEqual(self.post.reaction_counts['love'], 1)
        self.assertEqual(self.post.reaction_counts['like'], 0)
        self.assertEqual(self.post.like_count, 0)
        self.assertEqual(self.post.comment_count, 1)
        self.assertEqual(self.post.share_count, 1)

    def test_dry_run_does_not_write(self):
        Post.objects.filter(pk=self.post.id).update(comment_count=5)

        with self.assertLogs('social.reconcile', level='WARNING'):
            drift = reconcile.recount_post(self.post.id, dry_run=True)

        self.assertEqual(drift['comment_count'], (5, 0))
        self.post.refresh_from_db()
        self.assertEqual(self.post.comment_count, 5)

    def test_comment_repaired(self):
        root = services.create_comment(self.alice, self.post.id, 'Root')
        services.create_comment(self.bob, self.post.id, 'Reply', parent_id=root.id)
        Comment.objects.filter(pk=root.id).update(reply_count=0)

        with self.assertLogs('social.reconcile', level='WARNING'):
            reconcile.recount_comment(root.id)

        root.refresh_from_db()
        self.assertEqual(root.reply_count, 1)

    def test_profile_repaired(self):
        services.follow_user(self.alice, self.bob.id)
        Profile.objects.filter(user=self.bob).update(follower_count=9)

        with self.assertLogs('social.reconcile', level='WARNING'):
            reconcile.recount_profile(self.bob.id)

        self.assertEqual(Profile.objects.get(user=self.bob).follower_count, 1)

    def test_community_ignores_pending(self):
        community = services.create_community(self.alice, 'Study Group', visibility='private')
        services.join_community(self.bob, community.id)
        Community.objects.filter(pk=community.id).update(member_count=0)

        with self.assertLogs('social.reconcile', level='WARNING'):
            reconcile.recount_community(community.id)

        community.refresh_from_db()
        self.assertEqual(community.member_count, 1)

    def test_poll_repaired(self):
        poll = polls.create_poll(self.alice, ['A', 'B'])
        a, b = poll.option_ids()
        polls.cast_vote(self.alice, poll.id, a)
        polls.cast_vote(self.bob, poll.id, b)

        options = Poll.objects.get(pk=poll.id).options
        options[0]['vote_count'] = 5
        Poll.objects.filter(pk=poll.id).update(options=options, total_votes=0)

        with self.assertLogs('social.reconcile', level='WARNING'):
            reconcile.recount_poll(poll.id)

        poll.refresh_from_db()
        self.assertEqual([option['vote_count'] for option in poll.options], [1, 1])
        self.assertEqual(poll.total_votes, 2)

    def test_poll_stray_votes_removed(self):
        poll = polls.create_poll(self.alice, ['A', 'B'])
        a, _ = poll.option_ids()
        polls.cast_vote(self.alice, poll.id, a)
        PollVote.objects.create(poll=poll, user=self.bob, option_id='gone')

        with self.assertLogs('social.reconcile', level='WARNING'):
            reconcile.recount_poll(poll.id)

        self.assertFalse(PollVote.objects.filter(option_id='gone').exists())
        poll.refresh_from_db()
        self.assertEqual(poll.total_votes, 1)

    def test_missing_parent_returns_none(self):
        self.assertIsNone(reconcile.recount_post(self.post.id + 1000))
        self.assertIsNone(reconcile.recount_poll(12345))


class ReconcileAllTestCase(TestCase):

    def setUp(self):
        self.user = User.objects.create_user('user', 'u@test.com', 'pass')
        self.posts = [services.create_post(self.user, f'Post {i}') for i in range(3)]

    def test_counts_drifted_rows(self):
        Post.objects.filter(pk=self.posts[0].id).update(share_count=2)
        Post.objects.filter(pk=self.posts[2].id).update(comment_count=1)

        with self.assertLogs('social.reconcile', level='INFO'):
            repaired = reconcile.reconcile_all(['post'])

        self.assertEqual(repaired, {'post': 2})
        self.assertFalse(Post.objects.exclude(share_count=0, comment_count=0).exists())

    def test_management_command(self):
        Post.objects.filter(pk=self.posts[1].id).update(like_count=3)
        out = StringIO()

        call_command('reconcile_counters', '--model', 'post', stdout=out)

        self.assertIn('post: 1 row(s) repaired', out.getvalue())
        self.assertEqual(Post.objects.get(pk=self.posts[1].id).like_count, 0)

    def test_management_command_dry_run(self):
        Post.objects.filter(pk=self.posts[1].id).update(like_count=3)
        out = StringIO()

        call_command('reconcile_counters', '--dry-run', stdout=out)

        self.assertIn('post: 1 row(s) drifted', out.getvalue())
        self.assertEqual(Post.objects.get(pk=self.posts[1].id).like_count, 3)


class OrphanedReactionTestCase(TestCase):
    """Reactions left behind when a post is deleted without the service."""

    def setUp(self):
        self.alice = User.objects.create_user('alice', 'a@test.com', 'pass')
        self.bob = User.objects.create_user('bob', 'b@test.com', 'pass')
        self.post = services.create_post(self.alice, 'Content')
        self.comment = services.create_comment(self.bob, self.post.id, 'Nice')
        services.add_reaction(self.bob, 'post', self.post.id, 'like')
        services.add_reaction(self.alice, 'comment', self.comment.id, 'like')

    def test_reconcile_all_removes_orphans(self):
        self.post.delete()
        self.assertEqual(Reaction.objects.count(), 2)

        with self.assertLogs('social.reconcile', level='WARNING'):
            repaired = reconcile.reconcile_all()

        self.assertEqual(repaired['reaction'], 2)
        self.assertEqual(Reaction.objects.count(), 0)

    def test_live_targets_kept(self):
        self.assertEqual(reconcile.sweep_orphaned_reactions(), 0)
        self.assertEqual(Reaction.objects.count(), 2)

    def test_dry_run_only_reports(self):
        self.comment.delete()

        self.assertEqual(reconcile.sweep_orphaned_reactions(dry_run=True), 1)
        self.assertEqual(Reaction.objects.count(), 2)

    def test_management_command(self):
        self.post.delete()
        out = StringIO()

        call_command('reconcile_counters', '--model', 'reaction', stdout=out)

        self.assertIn('reaction: 2 row(s) repaired', out.getvalue())
        self.assertEqual(Reaction.objects.count(), 0)


class SeedDataTestCase(TestCase):

    def test_seeded_data_has_no_drift(self):
        call_command('seed_data', users=4, posts=3, comments=6, stdout=StringIO())

        self.assertEqual(Post.objects.count(), 3)
        repaired = reconcile.reconcile_all(dry_run=True)
        self.assertEqual(set(repaired.values()), {0})
