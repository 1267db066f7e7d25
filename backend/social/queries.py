"""
Read-side Query Helpers
=======================

The post detail page needs the post, its whole comment thread and the
caller's reactions. Loading replies per comment is N+1; instead:

    post            1 query (author + community JOINed)
    all comments    1 query (author JOINed), nested in Python
    reactions       1 query, post and comments together

The count stays constant however deep the thread goes.
"""

from typing import Optional

from django.contrib.contenttypes.models import ContentType
from django.db.models import Q

from .models import Comment, Post, Reaction


def get_post_with_author(post_id: int) -> Optional[Post]:
    return (
        Post.objects
        .select_related('author', 'community')
        .filter(id=post_id)
        .first()
    )


def get_all_comments_for_post(post_id: int) -> list[Comment]:
    """
    Every comment on a post, oldest first, authors JOINed.

    Oldest-first keeps each thread chronological once nested.
    """
    return list(
        Comment.objects
        .filter(post_id=post_id)
        .select_related('author')
        .order_by('created_at')
    )


def build_comment_tree(flat_comments: list[Comment]) -> list[dict]:
    """
    Nest a flat, oldest-first comment list.

    Each node is {'comment': <Comment>, 'replies': [<node>, ...]}. A comment
    whose parent is not in the list is treated as a root.
    """
    node_by_id = {comment.id: {'comment': comment, 'replies': []} for comment in flat_comments}

    roots = []
    for comment in flat_comments:
        parent = node_by_id.get(comment.parent_id)
        siblings = parent['replies'] if parent is not None else roots
        siblings.append(node_by_id[comment.id])
    return roots


def get_post_with_comment_tree(post_id: int) -> Optional[dict]:
    post = get_post_with_author(post_id)
    if not post:
        return None

    flat_comments = get_all_comments_for_post(post_id)

    return {
        'post': post,
        'comments': build_comment_tree(flat_comments),
        'comment_count': len(flat_comments)
    }


def get_user_reactions_for_post(user_id: int, post_id: int) -> dict:
    """
    The caller's reactions on a post and on its comments, in one query.

    Returns: {
        'post_reaction': 'like' | ... | None,
        'comment_reactions': {comment_id: reaction_type}
    }
    """
    post_ct = ContentType.objects.get_for_model(Post)
    comment_ct = ContentType.objects.get_for_model(Comment)

    comment_ids = Comment.objects.filter(post_id=post_id).values('id')

    reactions = Reaction.objects.filter(
        user_id=user_id
    ).filter(
        Q(content_type=post_ct, object_id=post_id) |
        Q(content_type=comment_ct, object_id__in=comment_ids)
    ).values_list('content_type_id', 'object_id', 'reaction_type')

    post_reaction = None
    comment_reactions = {}

    for ct_id, obj_id, reaction_type in reactions:
        if ct_id == post_ct.id and obj_id == post_id:
            post_reaction = reaction_type
        elif ct_id == comment_ct.id:
            comment_reactions[obj_id] = reaction_type

    return {
        'post_reaction': post_reaction,
        'comment_reactions': comment_reactions
    }
