"""
Management command to seed the database with sample data.

Every reaction, follow, comment, membership and vote goes through the
services, so the seeded aggregates are consistent by construction.

Usage: python manage.py seed_data
"""

import random
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand
from django.utils import timezone

from social import polls, services
from social.exceptions import SocialError
from social.models import (
    Bookmark,
    Comment,
    Community,
    Follow,
    Poll,
    Post,
    Reaction,
    Repost,
    REACTION_TYPES,
)

User = get_user_model()


class Command(BaseCommand):
    help = 'Seed the database with sample data for testing'

    def add_arguments(self, parser):
        parser.add_argument('--users', type=int, default=10, help='Number of users to create')
        parser.add_argument('--posts', type=int, default=20, help='Number of posts to create')
        parser.add_argument('--comments', type=int, default=100, help='Number of comments to create')
        parser.add_argument('--clear', action='store_true', help='Clear existing data before seeding')

    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            Poll.objects.all().delete()
            Reaction.objects.all().delete()
            Repost.objects.all().delete()
            Bookmark.objects.all().delete()
            Follow.objects.all().delete()
            Comment.objects.all().delete()
            Post.objects.all().delete()
            Community.objects.all().delete()
            User.objects.filter(is_superuser=False).delete()

        self.stdout.write('Creating users...')
        users = self._create_users(options['users'])

        self.stdout.write('Creating communities...')
        communities = self._create_communities(users)

        self.stdout.write('Creating posts...')
        posts = self._create_posts(users, options['posts'])

        self.stdout.write('Creating comments...')
        comments = self._create_comments(users, posts, options['comments'])

        self.stdout.write('Creating reactions, follows and polls...')
        self._create_reactions(users, posts, comments)
        self._create_follows(users)
        poll_count = self._create_polls(users, posts)

        self.stdout.write(self.style.SUCCESS(
            f'Successfully created:\n'
            f'  - {len(users)} users\n'
            f'  - {len(communities)} communities\n'
            f'  - {len(posts)} posts\n'
            f'  - {len(comments)} comments\n'
            f'  - {poll_count} polls\n'
            f'  - Reactions and follows'
        ))

    def _create_users(self, count):
        users = []
        for i in range(count):
            username = f'student{i+1}'
            user = User.objects.filter(username=username).first()
            if user is None:
                user = User.objects.create_user(
                    username=username,
                    email=f'{username}@campus.example.com',
                    password='password123'
                )
            users.append(user)
        return users

    def _create_communities(self, users):
        names = ['Robotics Club', 'Study Group: Algorithms', 'Campus Photography']
        communities = []
        for name in names:
            owner = random.choice(users)
            community = services.create_community(owner, name, f'All about {name.lower()}.')
            for user in users:
                if user != owner and random.random() < 0.5:
                    services.join_community(user, community.pk)
            communities.append(community)
        return communities

    def _create_posts(self, users, count):
        contents = [
            "Anyone else pulling an all-nighter for the midterm?",
            "The library's third floor is finally open again.",
            "Looking for teammates for the hackathon next weekend.",
            "Hot take: 8am lectures should be illegal.",
            "Free pizza at the student union right now!",
        ]

        posts = []
        for i in range(count):
            post = services.create_post(random.choice(users), f"{random.choice(contents)} #{i+1}")
            Post.objects.filter(pk=post.pk).update(
                created_at=timezone.now() - timedelta(hours=random.randint(0, 48))
            )
            posts.append(post)
        return posts

    def _create_comments(self, users, posts, count):
        comment_texts = [
            "Count me in.",
            "Which building is that in?",
            "Same here, the reading list is brutal.",
            "Posting this in the group chat.",
            "See you there.",
        ]

        comments = []
        for _ in range(count):
            post = random.choice(posts)

            # 30% chance of being a reply to an existing comment
            parent_id = None
            existing = [c for c in comments if c.post_id == post.pk]
            if existing and random.random() < 0.3:
                parent_id = random.choice(existing).pk

            try:
                comment = services.create_comment(
                    random.choice(users), post.pk, random.choice(comment_texts), parent_id=parent_id
                )
            except SocialError as exc:
                self.stdout.write(self.style.WARNING(f'Skipped comment: {exc.message}'))
                continue
            comments.append(comment)
        return comments

    def _create_reactions(self, users, posts, comments):
        for post in posts:
            for user in random.sample(users, k=len(users) // 2):
                services.add_reaction(user, 'post', post.pk, random.choice(REACTION_TYPES))

        for comment in comments:
            if random.random() < 0.3:
                for user in random.sample(users, k=min(3, len(users))):
                    services.add_reaction(user, 'comment', comment.pk, 'like')

    def _create_follows(self, users):
        for user in users:
            for target in random.sample(users, k=min(4, len(users))):
                if target != user:
                    services.follow_user(user, target.pk)

    def _create_polls(self, users, posts):
        created = 0
        for post in random.sample(posts, k=min(3, len(posts))):
            poll = polls.create_poll(
                post.author,
                ['Yes', 'No', 'Maybe'],
                duration_hours=72,
                question='Thoughts?'
            )
            polls.link_poll_to_post(post.author, poll.pk, post.pk)
            option_ids = poll.option_ids()
            for user in users:
                if random.random() < 0.7:
                    polls.cast_vote(user, poll.pk, random.choice(option_ids))
            created += 1
        return created
