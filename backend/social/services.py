"""
Detail-Record Actions
=====================

Every user action that creates or deletes a detail record lives here:
posts, reactions, follows, comments, reposts, community membership,
bookmarks.

ORDERING (every action):
------------------------
1. Validate (auth, input, target exists)   -> raise, nothing written
2. Write / delete the detail record
3. Adjust the aggregate via counters.py

Steps 2 and 3 share one transaction.atomic() block. If either fails, both
are rolled back, so a detail record never exists without its counter
update (and vice versa).

CONCURRENCY STRATEGY:
---------------------
Duplicate detail records are rejected by unique constraints. We just try
the insert and treat IntegrityError as "already exists": a duplicate is
expected behavior, not an error.
Counter updates lock the parent row (see counters.py).
"""

import logging
from typing import Literal, Optional

from django.contrib.auth import get_user_model
from django.contrib.contenttypes.models import ContentType
from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.text import slugify

from .counters import (
    adjust_comment_reply_count,
    adjust_community_member_count,
    adjust_post_counts,
    adjust_reaction_count,
    adjust_reaction_counts,
    adjust_user_follow_counts,
    get_reaction_target_model,
)
from .exceptions import ForbiddenError, InvalidInputError, NotFoundError
from .models import (
    Bookmark,
    Comment,
    Community,
    CommunityMembership,
    Follow,
    Poll,
    PollVote,
    Post,
    Reaction,
    Repost,
)
from .validation import (
    COMMENT_MAX_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    MAX_COMMENT_DEPTH,
    NAME_MAX_LENGTH,
    POST_MAX_LENGTH,
    clean_collection_name,
    clean_text,
    require_user,
    validate_reaction_type,
    validate_target_type,
)

logger = logging.getLogger(__name__)

ActionName = Literal[
    'created', 'updated', 'no_change', 'removed',
    'already_exists', 'already_removed',
    'joined', 'requested', 'approved', 'left',
]


class ActionResult:
    """Result of a detail-record action."""
    def __init__(self, success: bool, action: ActionName):
        self.success = success
        self.action = action

    def __repr__(self):
        return f"ActionResult(success={self.success}, action={self.action!r})"


# ============================================================================
# POSTS
# ============================================================================

def create_post(user, content: str, community_id: Optional[int] = None) -> Post:
    require_user(user)
    content = clean_text(content, "Post content", POST_MAX_LENGTH)

    community = None
    if community_id is not None:
        community = Community.objects.filter(pk=community_id).first()
        if community is None:
            raise NotFoundError("Community not found")
        is_member = CommunityMembership.objects.filter(
            community=community, user=user
        ).exclude(role=CommunityMembership.Role.PENDING).exists()
        if not is_member:
            raise ForbiddenError("Only members can post in this community")

    return Post.objects.create(author=user, content=content, community=community)


def purge_post(post: Post) -> dict:
    """
    Delete a post with every detail record that points at it.

    Reactions use a generic FK, so the database does not cascade them: the
    ones on the post and on each of its comments are removed explicitly.
    A linked poll goes too, votes first. Must run inside a transaction.
    """
    comment_ids = list(Comment.objects.filter(post_id=post.pk).values_list('id', flat=True))

    deleted_reactions, _ = Reaction.objects.filter(
        Q(content_type=ContentType.objects.get_for_model(Post), object_id=post.pk) |
        Q(content_type=ContentType.objects.get_for_model(Comment), object_id__in=comment_ids)
    ).delete()

    poll_ids = list(Poll.objects.filter(post_id=post.pk).values_list('id', flat=True))
    PollVote.objects.filter(poll_id__in=poll_ids).delete()
    Poll.objects.filter(pk__in=poll_ids).delete()

    Comment.objects.filter(post_id=post.pk).delete()
    Repost.objects.filter(post_id=post.pk).delete()
    Bookmark.objects.filter(post_id=post.pk).delete()
    post.delete()

    return {
        'comments': len(comment_ids),
        'reactions': deleted_reactions,
        'polls': len(poll_ids),
    }


def delete_post(user, post_id: int) -> dict:
    """Author-only delete of a post and everything hanging off it."""
    require_user(user)

    with transaction.atomic():
        post = Post.objects.select_for_update().filter(pk=post_id).first()
        if post is None:
            raise NotFoundError("Post not found")
        if post.author_id != user.pk:
            raise ForbiddenError("You can only delete your own posts")

        deleted = purge_post(post)

    logger.info(
        "Post %s deleted by user %s (%d comments, %d reactions)",
        post_id, user.pk, deleted['comments'], deleted['reactions']
    )
    return deleted


# ============================================================================
# REACTIONS
# ============================================================================

def _reaction_lookup(user, target_type: str, target_id: int) -> dict:
    model = get_reaction_target_model(target_type)
    return {
        'user': user,
        'content_type': ContentType.objects.get_for_model(model),
        'object_id': target_id,
    }


def add_reaction(user, target_type: str, target_id: int, reaction_type: str) -> ActionResult:
    """
    Add or change the caller's reaction on a post or comment (upsert).

    - no reaction yet     -> create, reaction_type +1
    - same type           -> no_change
    - different type      -> update, old -1 / new +1 in ONE counter write
    """
    require_user(user)
    validate_target_type(target_type)
    validate_reaction_type(reaction_type)

    model = get_reaction_target_model(target_type)
    if not model.objects.filter(pk=target_id).exists():
        raise NotFoundError(f"{target_type.title()} not found")

    lookup = _reaction_lookup(user, target_type, target_id)

    try:
        with transaction.atomic():
            existing = Reaction.objects.select_for_update().filter(**lookup).first()

            if existing is not None:
                if existing.reaction_type == reaction_type:
                    return ActionResult(True, 'no_change')

                previous_type = existing.reaction_type
                existing.reaction_type = reaction_type
                existing.created_at = timezone.now()
                existing.save(update_fields=['reaction_type', 'created_at'])

                adjust_reaction_counts(
                    target_id,
                    {previous_type: -1, reaction_type: 1},
                    target_type=target_type
                )
                return ActionResult(True, 'updated')

            Reaction.objects.create(reaction_type=reaction_type, **lookup)
            adjust_reaction_count(target_id, reaction_type, 1, target_type=target_type)
            return ActionResult(True, 'created')

    except IntegrityError:
        # Concurrent first reaction by the same user won the insert
        return ActionResult(False, 'already_exists')


def remove_reaction(user, target_type: str, target_id: int) -> ActionResult:
    """
    Remove the caller's reaction. Allowed even if the target was deleted
    meanwhile: the counter update is then a no-op.
    """
    require_user(user)
    validate_target_type(target_type)
    lookup = _reaction_lookup(user, target_type, target_id)

    with transaction.atomic():
        reaction = Reaction.objects.select_for_update().filter(**lookup).first()
        if reaction is None:
            return ActionResult(False, 'already_removed')

        reaction_type = reaction.reaction_type
        reaction.delete()
        adjust_reaction_count(target_id, reaction_type, -1, target_type=target_type)

    return ActionResult(True, 'removed')


def toggle_reaction(user, target_type: str, target_id: int, reaction_type: str = 'like') -> ActionResult:
    """
    Same reaction present -> remove it; otherwise add / switch.

    NOT atomic across check-and-toggle. The race is benign: both halves are
    individually consistent, worst case two toggles cancel out.
    """
    require_user(user)
    validate_target_type(target_type)
    lookup = _reaction_lookup(user, target_type, target_id)

    current = Reaction.objects.filter(**lookup).values_list('reaction_type', flat=True).first()
    if current == reaction_type:
        return remove_reaction(user, target_type, target_id)
    return add_reaction(user, target_type, target_id, reaction_type)


def get_user_reaction(user, target_type: str, target_id: int) -> Optional[str]:
    if user is None or not user.is_authenticated:
        return None
    validate_target_type(target_type)
    lookup = _reaction_lookup(user, target_type, target_id)
    return Reaction.objects.filter(**lookup).values_list('reaction_type', flat=True).first()


# ============================================================================
# FOLLOWS
# ============================================================================

def follow_user(user, target_user_id: int) -> ActionResult:
    """
    Create a follow edge; target.follower_count +1, caller.following_count +1.

    The two counter updates touch different rows and do not depend on
    each other's order.
    """
    require_user(user)
    if user.pk == target_user_id:
        raise InvalidInputError("Cannot follow yourself")

    User = get_user_model()
    if not User.objects.filter(pk=target_user_id).exists():
        raise NotFoundError("Target user not found")

    try:
        with transaction.atomic():
            Follow.objects.create(follower=user, following_id=target_user_id)
            adjust_user_follow_counts(target_user_id, follower_delta=1)
            adjust_user_follow_counts(user.pk, following_delta=1)
    except IntegrityError:
        return ActionResult(False, 'already_exists')

    logger.debug("User %s followed user %s", user.pk, target_user_id)
    return ActionResult(True, 'created')


def unfollow_user(user, target_user_id: int) -> ActionResult:
    require_user(user)

    with transaction.atomic():
        deleted, _ = Follow.objects.filter(
            follower=user,
            following_id=target_user_id
        ).delete()

        if not deleted:
            return ActionResult(False, 'already_removed')

        adjust_user_follow_counts(target_user_id, follower_delta=-1)
        adjust_user_follow_counts(user.pk, following_delta=-1)

    return ActionResult(True, 'removed')


def is_following(user, target_user_id: int) -> bool:
    if user is None or not user.is_authenticated:
        return False
    return Follow.objects.filter(follower=user, following_id=target_user_id).exists()


# ============================================================================
# COMMENTS
# ============================================================================

def create_comment(user, post_id: int, content: str, parent_id: Optional[int] = None) -> Comment:
    """
    Create a comment or a reply.

    post.comment_count +1 always; parent.reply_count +1 for replies.
    Depth = parent.depth + 1, capped at MAX_COMMENT_DEPTH.
    """
    require_user(user)
    content = clean_text(content, "Comment content", COMMENT_MAX_LENGTH)

    with transaction.atomic():
        if not Post.objects.filter(pk=post_id).exists():
            raise NotFoundError("Post not found")

        parent = None
        depth = 0
        if parent_id is not None:
            parent = Comment.objects.filter(pk=parent_id).first()
            if parent is None:
                raise NotFoundError("Parent comment not found")
            if parent.post_id != post_id:
                raise InvalidInputError("Parent comment must belong to the same post.")
            if parent.depth >= MAX_COMMENT_DEPTH:
                raise InvalidInputError(
                    f"Maximum reply depth ({MAX_COMMENT_DEPTH}) reached. Cannot nest deeper."
                )
            depth = parent.depth + 1

        comment = Comment.objects.create(
            post_id=post_id,
            author=user,
            parent=parent,
            content=content,
            depth=depth
        )

        adjust_post_counts(post_id, comment_delta=1)
        if parent is not None:
            adjust_comment_reply_count(parent.pk, 1)

    return comment


def _collect_subtree_ids(comment: Comment) -> list:
    """
    Ids of a comment and all its descendants.

    One query for the whole post's (id, parent_id) pairs, then a walk in
    Python, same idea as queries.build_comment_tree.
    """
    children = {}
    for comment_id, parent_id in Comment.objects.filter(post_id=comment.post_id).values_list('id', 'parent_id'):
        children.setdefault(parent_id, []).append(comment_id)

    subtree = []
    stack = [comment.pk]
    while stack:
        current = stack.pop()
        subtree.append(current)
        stack.extend(children.get(current, []))
    return subtree


def delete_comment(user, comment_id: int) -> int:
    """
    Delete a comment with its whole reply subtree (author only).

    post.comment_count drops by the subtree size, the direct parent's
    reply_count by 1. Reactions on the deleted comments are removed too so
    no detail record points at a missing target.

    Returns the number of comments deleted.
    """
    require_user(user)

    with transaction.atomic():
        comment = Comment.objects.select_for_update().filter(pk=comment_id).first()
        if comment is None:
            raise NotFoundError("Comment not found")
        if comment.author_id != user.pk:
            raise ForbiddenError()

        subtree_ids = _collect_subtree_ids(comment)

        Reaction.objects.filter(
            content_type=ContentType.objects.get_for_model(Comment),
            object_id__in=subtree_ids
        ).delete()
        Comment.objects.filter(pk__in=subtree_ids).delete()

        adjust_post_counts(comment.post_id, comment_delta=-len(subtree_ids))
        if comment.parent_id is not None:
            adjust_comment_reply_count(comment.parent_id, -1)

    logger.debug("Comment %s deleted with %d comments in subtree", comment_id, len(subtree_ids))
    return len(subtree_ids)


# ============================================================================
# REPOSTS
# ============================================================================

def repost(user, post_id: int, comment: Optional[str] = None) -> ActionResult:
    """Share a post. post.share_count +1."""
    require_user(user)
    comment = clean_text(comment, "Repost comment", POST_MAX_LENGTH) if comment and comment.strip() else ''

    if not Post.objects.filter(pk=post_id).exists():
        raise NotFoundError("Post not found")

    try:
        with transaction.atomic():
            Repost.objects.create(user=user, post_id=post_id, comment=comment)
            adjust_post_counts(post_id, share_delta=1)
    except IntegrityError:
        return ActionResult(False, 'already_exists')

    return ActionResult(True, 'created')


def undo_repost(user, post_id: int) -> ActionResult:
    require_user(user)

    with transaction.atomic():
        deleted, _ = Repost.objects.filter(user=user, post_id=post_id).delete()
        if not deleted:
            return ActionResult(False, 'already_removed')
        adjust_post_counts(post_id, share_delta=-1)

    return ActionResult(True, 'removed')


# ============================================================================
# COMMUNITIES
# ============================================================================

def _unique_slug(name: str) -> str:
    base = slugify(name)[:100] or 'community'
    slug = base
    suffix = 2
    while Community.objects.filter(slug=slug).exists():
        slug = f"{base}-{suffix}"
        suffix += 1
    return slug


def create_community(user, name: str, description: str = '', visibility: str = 'public') -> Community:
    """Create a community. The creator becomes owner; member_count starts at 1."""
    require_user(user)
    name = clean_text(name, "Community name", NAME_MAX_LENGTH)
    description = (description or '').strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise InvalidInputError(
            f"Description must not exceed {DESCRIPTION_MAX_LENGTH} characters"
        )
    if visibility not in Community.Visibility.values:
        raise InvalidInputError(f"Invalid visibility: {visibility}")

    with transaction.atomic():
        community = Community.objects.create(
            name=name,
            slug=_unique_slug(name),
            description=description,
            visibility=visibility,
            owner=user
        )
        CommunityMembership.objects.create(
            community=community,
            user=user,
            role=CommunityMembership.Role.OWNER
        )
        adjust_community_member_count(community.pk, 1)

    community.refresh_from_db(fields=['member_count'])
    return community


def join_community(user, community_id: int) -> ActionResult:
    """
    public  -> member, member_count +1
    private -> pending request, no count change
    secret  -> ForbiddenError
    """
    require_user(user)

    community = Community.objects.filter(pk=community_id).first()
    if community is None:
        raise NotFoundError("Community not found")
    if community.visibility == Community.Visibility.SECRET:
        raise ForbiddenError("Secret communities can only be joined by direct invitation")

    existing = CommunityMembership.objects.filter(community=community, user=user).first()
    if existing is not None:
        if existing.role == CommunityMembership.Role.PENDING:
            raise InvalidInputError("You already have a pending request to join this community")
        raise InvalidInputError("You are already a member of this community")

    try:
        with transaction.atomic():
            if community.visibility == Community.Visibility.PRIVATE:
                CommunityMembership.objects.create(
                    community=community,
                    user=user,
                    role=CommunityMembership.Role.PENDING
                )
                return ActionResult(True, 'requested')

            CommunityMembership.objects.create(
                community=community,
                user=user,
                role=CommunityMembership.Role.MEMBER
            )
            adjust_community_member_count(community.pk, 1)
    except IntegrityError:
        return ActionResult(False, 'already_exists')

    return ActionResult(True, 'joined')


def approve_join_request(user, community_id: int, member_user_id: int) -> ActionResult:
    """pending -> member (admins and owners only), member_count +1."""
    require_user(user)

    with transaction.atomic():
        if not Community.objects.filter(pk=community_id).exists():
            raise NotFoundError("Community not found")

        is_admin = CommunityMembership.objects.filter(
            community_id=community_id,
            user=user,
            role__in=[CommunityMembership.Role.OWNER, CommunityMembership.Role.ADMIN]
        ).exists()
        if not is_admin:
            raise ForbiddenError("Only admins and owners can approve join requests")

        pending = CommunityMembership.objects.select_for_update().filter(
            community_id=community_id,
            user_id=member_user_id
        ).first()
        if pending is None or pending.role != CommunityMembership.Role.PENDING:
            raise NotFoundError("No pending request found for this user")

        pending.role = CommunityMembership.Role.MEMBER
        pending.save(update_fields=['role'])
        adjust_community_member_count(community_id, 1)

    return ActionResult(True, 'approved')


def leave_community(user, community_id: int) -> ActionResult:
    """Leave a community. Pending requests do not touch member_count."""
    require_user(user)

    with transaction.atomic():
        if not Community.objects.filter(pk=community_id).exists():
            raise NotFoundError("Community not found")

        membership = CommunityMembership.objects.select_for_update().filter(
            community_id=community_id,
            user=user
        ).first()
        if membership is None:
            raise InvalidInputError("You are not a member of this community")
        if membership.role == CommunityMembership.Role.OWNER:
            raise InvalidInputError(
                "Owners cannot leave their community. Transfer ownership or delete it."
            )

        counted = membership.counts_as_member
        membership.delete()
        if counted:
            adjust_community_member_count(community_id, -1)

    return ActionResult(True, 'left')


# ============================================================================
# BOOKMARKS
# ============================================================================

def add_bookmark(user, post_id: int, collection_name: Optional[str] = None) -> ActionResult:
    """
    Bookmark a post into a collection (default "Saved").
    Bookmarking again with a different collection moves it.
    """
    require_user(user)
    name = clean_collection_name(collection_name)

    if not Post.objects.filter(pk=post_id).exists():
        raise NotFoundError("Post not found")

    existing = Bookmark.objects.filter(user=user, post_id=post_id).first()
    if existing is not None:
        if collection_name and existing.collection_name != name:
            existing.collection_name = name
            existing.save(update_fields=['collection_name'])
            return ActionResult(True, 'updated')
        return ActionResult(True, 'already_exists')

    try:
        with transaction.atomic():
            Bookmark.objects.create(user=user, post_id=post_id, collection_name=name)
    except IntegrityError:
        return ActionResult(True, 'already_exists')

    return ActionResult(True, 'created')


def remove_bookmark(user, post_id: int) -> ActionResult:
    require_user(user)
    deleted, _ = Bookmark.objects.filter(user=user, post_id=post_id).delete()
    if not deleted:
        return ActionResult(False, 'already_removed')
    return ActionResult(True, 'removed')
