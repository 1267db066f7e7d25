"""
Django Admin Configuration

Aggregates are read-only here: they are a cache of the detail records and
only counters.py / polls.py / reconcile.py write them.

Detail records (comments, reactions, follows, reposts, memberships, votes)
can be browsed but not added, edited or deleted from the admin, since each
of those writes has a counter attached that only the services apply.
Deleting a post goes through services.purge_post.
"""
from django.contrib import admin
from django.db import transaction

from . import services
from .models import (
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


class DetailRecordAdmin(admin.ModelAdmin):
    """Browse-only admin for rows that feed a counter."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'follower_count', 'following_count']
    search_fields = ['user__username']
    readonly_fields = ['follower_count', 'following_count']


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ['id', 'author', 'community', 'like_count', 'comment_count', 'share_count', 'created_at']
    list_filter = ['created_at']
    search_fields = ['content', 'author__username']
    readonly_fields = ['reaction_counts', 'like_count', 'comment_count', 'share_count', 'created_at', 'updated_at']

    def delete_model(self, request, obj):
        with transaction.atomic():
            services.purge_post(obj)

    def delete_queryset(self, request, queryset):
        with transaction.atomic():
            for post in queryset.select_for_update():
                services.purge_post(post)


@admin.register(Comment)
class CommentAdmin(DetailRecordAdmin):
    list_display = ['id', 'post', 'author', 'parent', 'depth', 'like_count', 'reply_count', 'created_at']
    list_filter = ['created_at', 'depth']
    search_fields = ['content', 'author__username']


@admin.register(Reaction)
class ReactionAdmin(DetailRecordAdmin):
    list_display = ['user', 'reaction_type', 'content_type', 'object_id', 'created_at']
    list_filter = ['reaction_type', 'content_type', 'created_at']
    search_fields = ['user__username']


@admin.register(Follow)
class FollowAdmin(DetailRecordAdmin):
    list_display = ['follower', 'following', 'created_at']
    search_fields = ['follower__username', 'following__username']


@admin.register(Repost)
class RepostAdmin(DetailRecordAdmin):
    list_display = ['user', 'post', 'created_at']


@admin.register(Bookmark)
class BookmarkAdmin(admin.ModelAdmin):
    list_display = ['user', 'post', 'collection_name', 'created_at']
    list_filter = ['collection_name']


@admin.register(Community)
class CommunityAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'visibility', 'owner', 'member_count', 'created_at']
    list_filter = ['visibility']
    search_fields = ['name', 'slug']
    readonly_fields = ['member_count', 'created_at']


@admin.register(CommunityMembership)
class CommunityMembershipAdmin(DetailRecordAdmin):
    list_display = ['community', 'user', 'role', 'joined_at']
    list_filter = ['role']


@admin.register(Poll)
class PollAdmin(admin.ModelAdmin):
    list_display = ['id', 'question', 'author', 'total_votes', 'ends_at', 'created_at']
    readonly_fields = ['options', 'total_votes', 'created_at']


@admin.register(PollVote)
class PollVoteAdmin(DetailRecordAdmin):
    # Votes are only cast through polls.cast_vote
    list_display = ['poll', 'user', 'option_id', 'created_at']
