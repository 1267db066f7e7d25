"""
DRF Serializers
===============

Input serializers only check shape and types. Domain rules (lengths,
trimming, option counts, ownership) live in validation.py / services.py so
the same rules apply to every caller, not only the HTTP API.

Output serializers expose aggregates read-only. Nothing here writes a
counter.
"""

from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Comment, Community, Post, Profile, REACTION_TYPES
from .validation import POLL_MAX_OPTIONS, TARGET_TYPES

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """Minimal user representation for embedding in other objects."""

    class Meta:
        model = User
        fields = ['id', 'username']
        read_only_fields = fields


class ProfileSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)

    class Meta:
        model = Profile
        fields = ['user', 'bio', 'university', 'follower_count', 'following_count']
        read_only_fields = fields


class PostListSerializer(serializers.ModelSerializer):
    author = UserSerializer(read_only=True)

    class Meta:
        model = Post
        fields = [
            'id',
            'content',
            'author',
            'community',
            'reaction_counts',
            'like_count',
            'comment_count',
            'share_count',
            'created_at'
        ]
        read_only_fields = fields


class PostCreateSerializer(serializers.Serializer):
    content = serializers.CharField(trim_whitespace=False, allow_blank=True)
    community = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class CommentSerializer(serializers.ModelSerializer):
    author = UserSerializer(read_only=True)

    class Meta:
        model = Comment
        fields = [
            'id',
            'content',
            'author',
            'parent',
            'depth',
            'reaction_counts',
            'like_count',
            'reply_count',
            'created_at'
        ]
        read_only_fields = fields


class CommentCreateSerializer(serializers.Serializer):
    content = serializers.CharField(trim_whitespace=False, allow_blank=True)
    parent = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class CommentTreeSerializer(serializers.Serializer):
    """
    Serializes the pre-built tree from queries.build_comment_tree():
    {"comment": {...}, "replies": [...]}
    """
    comment = CommentSerializer()
    replies = serializers.SerializerMethodField()

    def get_replies(self, obj):
        return CommentTreeSerializer(obj['replies'], many=True).data


class PostDetailSerializer(serializers.ModelSerializer):
    """Post with nested comments; tree and caller's reaction come via context."""
    author = UserSerializer(read_only=True)
    comments = serializers.SerializerMethodField()
    user_reaction = serializers.SerializerMethodField()

    class Meta:
        model = Post
        fields = [
            'id',
            'content',
            'author',
            'community',
            'reaction_counts',
            'like_count',
            'comment_count',
            'share_count',
            'created_at',
            'updated_at',
            'comments',
            'user_reaction'
        ]

    def get_comments(self, obj):
        comment_tree = self.context.get('comment_tree', [])
        return CommentTreeSerializer(comment_tree, many=True).data

    def get_user_reaction(self, obj):
        reactions = self.context.get('user_reactions', {})
        return reactions.get('post_reaction')


class ReactionActionSerializer(serializers.Serializer):
    target_type = serializers.ChoiceField(choices=list(TARGET_TYPES))
    target_id = serializers.IntegerField(min_value=1)
    reaction_type = serializers.ChoiceField(choices=list(REACTION_TYPES), default='like')


class RepostSerializer(serializers.Serializer):
    comment = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)


class BookmarkSerializer(serializers.Serializer):
    collection_name = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, trim_whitespace=False
    )


class CommunitySerializer(serializers.ModelSerializer):
    owner = UserSerializer(read_only=True)

    class Meta:
        model = Community
        fields = ['id', 'name', 'slug', 'description', 'visibility', 'owner', 'member_count', 'created_at']
        read_only_fields = fields


class CommunityCreateSerializer(serializers.Serializer):
    name = serializers.CharField(trim_whitespace=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    visibility = serializers.ChoiceField(
        choices=Community.Visibility.choices,
        default=Community.Visibility.PUBLIC
    )


class PollCreateSerializer(serializers.Serializer):
    options = serializers.ListField(
        child=serializers.CharField(trim_whitespace=False, allow_blank=True),
        max_length=POLL_MAX_OPTIONS * 2
    )
    duration_hours = serializers.FloatField(required=False, allow_null=True)
    is_anonymous = serializers.BooleanField(required=False, default=False)
    question = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class PollLinkSerializer(serializers.Serializer):
    post_id = serializers.IntegerField(min_value=1)


class VoteSerializer(serializers.Serializer):
    option_id = serializers.CharField(max_length=16)


class PollOptionSerializer(serializers.Serializer):
    id = serializers.CharField()
    text = serializers.CharField()
    vote_count = serializers.IntegerField()


class PollResultSerializer(serializers.Serializer):
    """Shape of polls.get_poll_results()."""
    id = serializers.IntegerField()
    author_id = serializers.IntegerField()
    post_id = serializers.IntegerField(allow_null=True)
    question = serializers.CharField(allow_blank=True)
    options = PollOptionSerializer(many=True)
    total_votes = serializers.IntegerField()
    ends_at = serializers.DateTimeField(allow_null=True)
    is_anonymous = serializers.BooleanField()
    created_at = serializers.DateTimeField()
    is_expired = serializers.BooleanField()
