"""
Social App URL Configuration
"""
from django.urls import path
from .views import (
    ApproveJoinRequestView,
    BookmarkView,
    CommentCreateView,
    CommentDetailView,
    CommunityCreateView,
    CommunityDetailView,
    CommunityMembershipView,
    FeedView,
    FollowView,
    PollCreateView,
    PollDetailView,
    PollLinkView,
    PollVoteView,
    PostCreateView,
    PostDetailView,
    ProfileView,
    ReactionRemoveView,
    ReactionToggleView,
    ReactionView,
    RepostView,
)

urlpatterns = [
    # Feed
    path('feed/', FeedView.as_view(), name='feed'),

    # Posts
    path('posts/', PostCreateView.as_view(), name='post-create'),
    path('posts/<int:post_id>/', PostDetailView.as_view(), name='post-detail'),
    path('posts/<int:post_id>/comments/', CommentCreateView.as_view(), name='comment-create'),
    path('posts/<int:post_id>/repost/', RepostView.as_view(), name='repost'),
    path('posts/<int:post_id>/bookmark/', BookmarkView.as_view(), name='bookmark'),

    # Comments
    path('comments/<int:comment_id>/', CommentDetailView.as_view(), name='comment-detail'),

    # Reactions
    path('reactions/', ReactionView.as_view(), name='reaction'),
    path('reactions/toggle/', ReactionToggleView.as_view(), name='reaction-toggle'),
    path('reactions/remove/', ReactionRemoveView.as_view(), name='reaction-remove'),

    # Users
    path('users/<int:user_id>/', ProfileView.as_view(), name='profile'),
    path('users/<int:user_id>/follow/', FollowView.as_view(), name='follow'),

    # Communities
    path('communities/', CommunityCreateView.as_view(), name='community-create'),
    path('communities/<int:community_id>/', CommunityDetailView.as_view(), name='community-detail'),
    path('communities/<int:community_id>/membership/', CommunityMembershipView.as_view(), name='community-membership'),
    path(
        'communities/<int:community_id>/requests/<int:user_id>/approve/',
        ApproveJoinRequestView.as_view(),
        name='community-approve'
    ),

    # Polls
    path('polls/', PollCreateView.as_view(), name='poll-create'),
    path('polls/<int:poll_id>/', PollDetailView.as_view(), name='poll-detail'),
    path('polls/<int:poll_id>/vote/', PollVoteView.as_view(), name='poll-vote'),
    path('polls/<int:poll_id>/link/', PollLinkView.as_view(), name='poll-link'),
]
