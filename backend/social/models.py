"""
Data Models for CampusNet
=========================

Two kinds of rows live here:

1. DETAIL RECORDS - the source of truth
   Reaction, Follow, Comment, Repost, CommunityMembership, PollVote.
   One row per fact. Unique constraints reject duplicates at DB level.

2. AGGREGATES - a cache, never the source of truth
   Post.reaction_counts / like_count / comment_count / share_count
   Comment.reaction_counts / like_count / reply_count
   Profile.follower_count / following_count
   Community.member_count
   Poll.options[].vote_count / total_votes

Aggregates are written ONLY by social.counters and social.polls during normal
operation, and by social.reconcile when repairing drift. Anything else that
touches them is a bug.
"""

from django.conf import settings
from django.contrib.contenttypes.fields import GenericForeignKey
from django.contrib.contenttypes.models import ContentType
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


REACTION_TYPES = ('like', 'love', 'laugh', 'wow', 'sad', 'scholarly')


def empty_reaction_counts():
    return {reaction_type: 0 for reaction_type in REACTION_TYPES}


class Profile(models.Model):
    """
    Per-user aggregate holder. Created by a post_save signal on the user model.
    """
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='profile'
    )
    bio = models.CharField(max_length=500, blank=True)
    university = models.CharField(max_length=200, blank=True)

    # Derived from Follow rows
    follower_count = models.PositiveIntegerField(default=0)
    following_count = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"Profile of {self.user}"


class Community(models.Model):

    class Visibility(models.TextChoices):
        PUBLIC = 'public', 'Public'
        PRIVATE = 'private', 'Private'
        SECRET = 'secret', 'Secret'

    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=120, unique=True)
    description = models.TextField(blank=True)
    visibility = models.CharField(
        max_length=10,
        choices=Visibility.choices,
        default=Visibility.PUBLIC
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='owned_communities'
    )
    created_at = models.DateTimeField(default=timezone.now)

    # Derived from non-pending CommunityMembership rows
    member_count = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name_plural = 'communities'

    def __str__(self):
        return self.name


class CommunityMembership(models.Model):

    class Role(models.TextChoices):
        OWNER = 'owner', 'Owner'
        ADMIN = 'admin', 'Admin'
        MEMBER = 'member', 'Member'
        PENDING = 'pending', 'Pending'

    community = models.ForeignKey(
        Community,
        on_delete=models.CASCADE,
        related_name='memberships'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='community_memberships'
    )
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.MEMBER)
    joined_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['community', 'user'],
                name='unique_membership_per_community'
            )
        ]

    @property
    def counts_as_member(self):
        return self.role != self.Role.PENDING

    def __str__(self):
        return f"{self.user} in {self.community} ({self.role})"


class Post(models.Model):
    """
    A feed post, optionally inside a community.
    """
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='posts',
        db_index=True
    )
    community = models.ForeignKey(
        Community,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='posts'
    )
    content = models.TextField()
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Aggregates. reaction_counts is derived from Reaction rows;
    # like_count is the legacy scalar kept equal to reaction_counts['like'].
    reaction_counts = models.JSONField(default=empty_reaction_counts)
    like_count = models.PositiveIntegerField(default=0, db_index=True)
    comment_count = models.PositiveIntegerField(default=0)
    share_count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at', 'author'], name='social_post_created_author'),
        ]

    def __str__(self):
        return f"{self.content[:50]} by {self.author}"


class Comment(models.Model):
    """
    Threaded comment (adjacency list). A reply's existence is what
    parent.reply_count counts; every comment in the thread counts toward
    post.comment_count.
    """
    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name='comments',
        db_index=True
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='comments'
    )
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='replies',
        db_index=True
    )
    content = models.TextField()
    depth = models.PositiveSmallIntegerField(default=0)
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    reaction_counts = models.JSONField(default=empty_reaction_counts)
    like_count = models.PositiveIntegerField(default=0)
    reply_count = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['created_at']
        indexes = [
            models.Index(fields=['post', 'created_at'], name='social_comment_post_created'),
            models.Index(fields=['parent', 'created_at'], name='social_comment_parent_created'),
        ]

    def __str__(self):
        return f"Comment by {self.author} on {self.post_id}"


class Reaction(models.Model):
    """
    One reaction per (user, target). Target is a Post or a Comment via
    ContentType, same as the old Like model.
    """
    REACTION_CHOICES = [(reaction_type, reaction_type.title()) for reaction_type in REACTION_TYPES]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='reactions'
    )
    content_type = models.ForeignKey(ContentType, on_delete=models.CASCADE)
    object_id = models.PositiveIntegerField()
    content_object = GenericForeignKey('content_type', 'object_id')
    reaction_type = models.CharField(max_length=10, choices=REACTION_CHOICES, default='like')
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'content_type', 'object_id'],
                name='unique_reaction_per_user_per_object'
            )
        ]
        indexes = [
            # Recount path: all reactions on one target
            models.Index(fields=['content_type', 'object_id'], name='social_reaction_target'),
        ]

    def __str__(self):
        return f"{self.user} reacted {self.reaction_type} on {self.content_type.model} {self.object_id}"


class Follow(models.Model):
    """Directed edge follower -> following. No self-loops, no duplicates."""
    follower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='following_edges'
    )
    following = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='follower_edges'
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['follower', 'following'],
                name='unique_follow_edge'
            ),
            models.CheckConstraint(
                condition=~Q(follower=F('following')),
                name='no_self_follow'
            ),
        ]

    def __str__(self):
        return f"{self.follower} follows {self.following}"


class Repost(models.Model):
    """A share of a post. Drives post.share_count."""
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='reposts'
    )
    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name='reposts'
    )
    comment = models.TextField(blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'post'],
                name='unique_repost_per_user_per_post'
            )
        ]


class Bookmark(models.Model):
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='bookmarks'
    )
    post = models.ForeignKey(
        Post,
        on_delete=models.CASCADE,
        related_name='bookmarks'
    )
    collection_name = models.CharField(max_length=100, default='Saved')
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'post'],
                name='unique_bookmark_per_user_per_post'
            )
        ]


class Poll(models.Model):
    """
    A poll, optionally attached to a post after creation.

    options is a list of {"id": str, "text": str, "vote_count": int}.
    Invariant: sum(o["vote_count"] for o in options) == total_votes, and both
    match the live PollVote rows.
    """
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='polls'
    )
    post = models.OneToOneField(
        Post,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='poll'
    )
    question = models.CharField(max_length=300, blank=True)
    options = models.JSONField(default=list)
    total_votes = models.PositiveIntegerField(default=0)
    ends_at = models.DateTimeField(null=True, blank=True)
    is_anonymous = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    def is_expired(self, now=None):
        if self.ends_at is None:
            return False
        return (now or timezone.now()) > self.ends_at

    def option_ids(self):
        return [option['id'] for option in self.options]

    def __str__(self):
        return self.question or f"Poll {self.pk}"


class PollVote(models.Model):
    """At most one live vote per (poll, user)."""
    poll = models.ForeignKey(
        Poll,
        on_delete=models.CASCADE,
        related_name='votes'
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='poll_votes'
    )
    option_id = models.CharField(max_length=16)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['poll', 'user'],
                name='unique_vote_per_user_per_poll'
            )
        ]
        indexes = [
            models.Index(fields=['poll', 'option_id'], name='social_pollvote_poll_option'),
        ]

    def __str__(self):
        return f"{self.user} voted {self.option_id} on poll {self.poll_id}"
