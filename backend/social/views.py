"""
DRF Views
=========

Thin HTTP layer. Each view:
1. Validates request shape with a serializer
2. Calls ONE service / poll function with request.user
3. Serializes the result

Domain failures are raised by the services and turned into responses by
exceptions.custom_exception_handler, so views do not catch them.
"""

from rest_framework import generics, permissions, status
from rest_framework.pagination import CursorPagination
from rest_framework.response import Response
from rest_framework.views import APIView

from . import polls, services
from .exceptions import NotFoundError, PollNotFoundError
from .models import Community, Post, Profile
from .queries import (
    build_comment_tree,
    get_all_comments_for_post,
    get_post_with_author,
    get_user_reactions_for_post,
)
from .serializers import (
    BookmarkSerializer,
    CommentCreateSerializer,
    CommentSerializer,
    CommunityCreateSerializer,
    CommunitySerializer,
    PollCreateSerializer,
    PollLinkSerializer,
    PollResultSerializer,
    PostCreateSerializer,
    PostDetailSerializer,
    PostListSerializer,
    ProfileSerializer,
    ReactionActionSerializer,
    RepostSerializer,
    VoteSerializer,
)


def result_response(result, status_code=status.HTTP_200_OK):
    return Response({
        'success': result.success,
        'action': result.action
    }, status=status_code)


class FeedPagination(CursorPagination):
    """
    Cursor pagination: WHERE created_at < cursor is an index seek,
    OFFSET is a scan. Can't jump pages, fine for infinite scroll.
    """
    page_size = 20
    ordering = '-created_at'
    cursor_query_param = 'cursor'


class FeedView(generics.ListAPIView):
    """GET /api/feed/ - newest first, optional ?community=<id>."""
    serializer_class = PostListSerializer
    pagination_class = FeedPagination
    permission_classes = [permissions.AllowAny]

    def get_queryset(self):
        queryset = Post.objects.select_related('author').order_by('-created_at')
        community_id = self.request.query_params.get('community')
        if community_id and community_id.isdigit():
            queryset = queryset.filter(community_id=int(community_id))
        return queryset


# ============================================================================
# POSTS & COMMENTS
# ============================================================================

class PostCreateView(APIView):
    """POST /api/posts/  {"content": "...", "community": 3?}"""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = PostCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        post = services.create_post(
            request.user,
            serializer.validated_data['content'],
            community_id=serializer.validated_data.get('community')
        )
        return Response(PostListSerializer(post).data, status=status.HTTP_201_CREATED)


class PostDetailView(APIView):
    """
    GET /api/posts/<id>/ - post with full nested comment tree. 2 queries + 1
    for the caller's reactions when authenticated.
    DELETE /api/posts/<id>/ - author only, removes comments, reactions,
    reposts, bookmarks and a linked poll too
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [permissions.AllowAny()]
        return [permissions.IsAuthenticated()]

    def get(self, request, post_id):
        post = get_post_with_author(post_id)
        if not post:
            raise NotFoundError("Post not found")

        comment_tree = build_comment_tree(get_all_comments_for_post(post_id))

        user_reactions = {}
        if request.user.is_authenticated:
            user_reactions = get_user_reactions_for_post(request.user.id, post_id)

        serializer = PostDetailSerializer(
            post,
            context={
                'comment_tree': comment_tree,
                'user_reactions': user_reactions,
                'request': request
            }
        )
        return Response(serializer.data)

    def delete(self, request, post_id):
        deleted = services.delete_post(request.user, post_id)
        return Response({'success': True, 'deleted': deleted})


class CommentCreateView(APIView):
    """POST /api/posts/<post_id>/comments/  {"content": "...", "parent": 12?}"""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, post_id):
        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        comment = services.create_comment(
            request.user,
            post_id,
            serializer.validated_data['content'],
            parent_id=serializer.validated_data.get('parent')
        )
        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)


class CommentDetailView(APIView):
    """DELETE /api/comments/<comment_id>/ - deletes the reply subtree too."""
    permission_classes = [permissions.IsAuthenticated]

    def delete(self, request, comment_id):
        deleted = services.delete_comment(request.user, comment_id)
        return Response({'success': True, 'deleted': deleted})


# ============================================================================
# REACTIONS
# ============================================================================

class ReactionView(APIView):
    """
    POST /api/reactions/
    {"target_type": "post" | "comment", "target_id": 1, "reaction_type": "love"}

    Upsert: created | updated | no_change
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = ReactionActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = services.add_reaction(
            request.user, data['target_type'], data['target_id'], data['reaction_type']
        )
        return result_response(result)


class ReactionToggleView(APIView):
    """POST /api/reactions/toggle/ - same body as /api/reactions/."""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = ReactionActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = services.toggle_reaction(
            request.user, data['target_type'], data['target_id'], data['reaction_type']
        )
        return result_response(result)


class ReactionRemoveView(APIView):
    """POST /api/reactions/remove/  {"target_type": ..., "target_id": ...}"""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = ReactionActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = services.remove_reaction(request.user, data['target_type'], data['target_id'])
        return result_response(result)


# ============================================================================
# USERS & FOLLOWS
# ============================================================================

class ProfileView(APIView):
    """GET /api/users/<user_id>/"""
    permission_classes = [permissions.AllowAny]

    def get(self, request, user_id):
        profile = Profile.objects.select_related('user').filter(user_id=user_id).first()
        if profile is None:
            raise NotFoundError("User not found")

        data = ProfileSerializer(profile).data
        data['is_following'] = services.is_following(request.user, user_id)
        return Response(data)


class FollowView(APIView):
    """POST /api/users/<user_id>/follow/ follows, DELETE unfollows."""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, user_id):
        return result_response(services.follow_user(request.user, user_id))

    def delete(self, request, user_id):
        return result_response(services.unfollow_user(request.user, user_id))


# ============================================================================
# REPOSTS & BOOKMARKS
# ============================================================================

class RepostView(APIView):
    """POST /api/posts/<post_id>/repost/ shares, DELETE undoes."""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, post_id):
        serializer = RepostSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.repost(request.user, post_id, serializer.validated_data.get('comment'))
        return result_response(result)

    def delete(self, request, post_id):
        return result_response(services.undo_repost(request.user, post_id))


class BookmarkView(APIView):
    """POST /api/posts/<post_id>/bookmark/ {"collection_name": "Exams"?}, DELETE removes."""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, post_id):
        serializer = BookmarkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        result = services.add_bookmark(
            request.user, post_id, serializer.validated_data.get('collection_name')
        )
        return result_response(result)

    def delete(self, request, post_id):
        return result_response(services.remove_bookmark(request.user, post_id))


# ============================================================================
# COMMUNITIES
# ============================================================================

class CommunityCreateView(APIView):
    """POST /api/communities/"""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = CommunityCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        community = services.create_community(
            request.user, data['name'], data.get('description', ''), data['visibility']
        )
        return Response(CommunitySerializer(community).data, status=status.HTTP_201_CREATED)


class CommunityDetailView(APIView):
    """GET /api/communities/<community_id>/"""
    permission_classes = [permissions.AllowAny]

    def get(self, request, community_id):
        community = Community.objects.select_related('owner').filter(pk=community_id).first()
        if community is None or community.visibility == Community.Visibility.SECRET:
            raise NotFoundError("Community not found")
        return Response(CommunitySerializer(community).data)


class CommunityMembershipView(APIView):
    """POST /api/communities/<id>/membership/ joins (or requests), DELETE leaves."""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, community_id):
        return result_response(services.join_community(request.user, community_id))

    def delete(self, request, community_id):
        return result_response(services.leave_community(request.user, community_id))


class ApproveJoinRequestView(APIView):
    """POST /api/communities/<id>/requests/<user_id>/approve/"""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, community_id, user_id):
        return result_response(services.approve_join_request(request.user, community_id, user_id))


# ============================================================================
# POLLS
# ============================================================================

class PollCreateView(APIView):
    """
    POST /api/polls/
    {"options": ["A", "B"], "duration_hours": 24?, "is_anonymous": false?, "question": "..."?}
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = PollCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        poll = polls.create_poll(
            request.user,
            data['options'],
            duration_hours=data.get('duration_hours'),
            is_anonymous=data.get('is_anonymous', False),
            question=data.get('question')
        )
        return Response(
            PollResultSerializer(polls.get_poll_results(poll.pk)).data,
            status=status.HTTP_201_CREATED
        )


class PollDetailView(APIView):
    """
    GET /api/polls/<poll_id>/ - public results + the caller's vote
    DELETE /api/polls/<poll_id>/ - author only, removes every vote too
    """

    def get_permissions(self):
        if self.request.method == 'GET':
            return [permissions.AllowAny()]
        return [permissions.IsAuthenticated()]

    def get(self, request, poll_id):
        results = polls.get_poll_results(poll_id)
        if results is None:
            raise PollNotFoundError()

        data = PollResultSerializer(results).data
        data['user_vote'] = polls.get_user_vote(request.user, poll_id)
        return Response(data)

    def delete(self, request, poll_id):
        deleted_votes = polls.delete_poll(request.user, poll_id)
        return Response({'success': True, 'deleted_votes': deleted_votes})


class PollVoteView(APIView):
    """
    POST /api/polls/<poll_id>/vote/  {"option_id": "ab12cd34"}

    Returns: {"action": "created" | "unchanged" | "switched", ...}
    Failures: 401 not_authenticated, 404 poll_not_found,
              400 poll_ended, 400 invalid_option
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, poll_id):
        serializer = VoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = polls.cast_vote(request.user, poll_id, serializer.validated_data['option_id'])
        return Response({
            'success': True,
            'action': result.action,
            'option_id': result.option_id,
            'previous_option_id': result.previous_option_id,
            'poll': PollResultSerializer(polls.get_poll_results(poll_id)).data
        })


class PollLinkView(APIView):
    """POST /api/polls/<poll_id>/link/  {"post_id": 5}"""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, poll_id):
        serializer = PollLinkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        poll = polls.link_poll_to_post(request.user, poll_id, serializer.validated_data['post_id'])
        return Response({'success': True, 'poll_id': poll.pk, 'post_id': poll.post_id})
