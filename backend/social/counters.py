"""
Aggregate Counter Service
=========================

The ONLY entry point for changing a denormalized counter during normal
operation. Detail-record actions (services.py, polls.py) call in here after
writing their detail record, inside the same transaction.

CONCURRENCY STRATEGY:
---------------------
Every adjustment is a read-modify-write of ONE parent row:

    with transaction.atomic():
        row = Model.objects.select_for_update().filter(pk=...).first()
        new = max(0, row.field + delta)
        Model.objects.filter(pk=row.pk).update(field=new)

select_for_update() holds the row lock until commit, so two adjustments on
the same parent are serialized. Adjustments on different parents have no
relative ordering and nothing here depends on one.

Why not F('field') + delta? The reaction map is a JSON document: the whole
map has to be read, changed and written back, and the like/like_count
dual-write must come from the same read. Using the same locked RMW for
every counter keeps one code path and makes clamping exact.

MISSING PARENTS:
----------------
A parent deleted mid-flight is not an error. The result says
'skipped_missing_parent' and the caller carries on.

CLAMPING:
---------
Counters never go below 0. When a decrement is larger than the stored value
the excess is absorbed, reported in CounterResult.absorbed, and logged as a
drift signal. `manage.py reconcile_counters` is the repair path.
"""

import logging
from typing import Dict, Literal, Optional

from django.db import transaction

from .exceptions import InvalidInputError
from .models import Comment, Community, Post, Profile, empty_reaction_counts
from .validation import validate_reaction_type, validate_target_type

logger = logging.getLogger(__name__)

APPLIED = 'applied'
SKIPPED_MISSING_PARENT = 'skipped_missing_parent'

REACTION_TARGETS = {
    'post': Post,
    'comment': Comment,
}


class CounterResult:
    """Tagged outcome of one counter adjustment."""
    def __init__(
        self,
        status: Literal['applied', 'skipped_missing_parent'],
        values: Optional[dict] = None,
        absorbed: int = 0
    ):
        self.status = status
        self.values = values or {}
        self.absorbed = absorbed

    @property
    def applied(self) -> bool:
        return self.status == APPLIED

    def __repr__(self):
        return f"CounterResult({self.status!r}, values={self.values!r}, absorbed={self.absorbed})"


def clamp(current: int, delta: int):
    """Return (new_value, absorbed) with new_value >= 0."""
    new_value = (current or 0) + delta
    if new_value < 0:
        return 0, -new_value
    return new_value, 0


def _log_absorbed(model, pk, field: str, absorbed: int):
    if absorbed:
        logger.warning(
            "Counter drift: %s(%s).%s decrement exceeded stored value by %d; clamped to 0",
            model.__name__, pk, field, absorbed
        )


def _adjust_fields(model, pk, deltas: Dict[str, int], lookup: str = 'pk') -> CounterResult:
    """
    Locked read-modify-write of integer counters on one row.

    Fields with a zero or missing delta are not written.
    """
    deltas = {field: delta for field, delta in deltas.items() if delta}

    with transaction.atomic():
        instance = model.objects.select_for_update().filter(**{lookup: pk}).first()
        if instance is None:
            logger.debug("Counter skip: %s %s=%s no longer exists", model.__name__, lookup, pk)
            return CounterResult(SKIPPED_MISSING_PARENT)

        values = {}
        absorbed = 0
        for field, delta in deltas.items():
            new_value, lost = clamp(getattr(instance, field), delta)
            _log_absorbed(model, instance.pk, field, lost)
            values[field] = new_value
            absorbed += lost

        if values:
            model.objects.filter(pk=instance.pk).update(**values)

    return CounterResult(APPLIED, values=values, absorbed=absorbed)


# ============================================================================
# POST COUNTERS
# ============================================================================

def adjust_post_counts(post_id: int, comment_delta: int = 0, share_delta: int = 0) -> CounterResult:
    """
    Add signed deltas to post.comment_count / post.share_count.

    Arbitrary magnitudes are fine (bulk corrections, subtree deletes).
    """
    return _adjust_fields(
        Post,
        post_id,
        {'comment_count': comment_delta, 'share_count': share_delta}
    )


# ============================================================================
# REACTION COUNTERS
# ============================================================================

def adjust_reaction_counts(target_id: int, deltas: Dict[str, int], target_type: str = 'post') -> CounterResult:
    """
    Apply several reaction-type deltas from ONE locked read and ONE write.

    Used directly when a user switches reaction type (old -1, new +1), so
    both halves of the move come from the same snapshot of the map.

    The map is normalized on write: every reaction type is present, missing
    keys default to 0. A 'like' delta is mirrored onto the legacy like_count
    in the same write, clamped independently.
    """
    validate_target_type(target_type)
    for reaction_type in deltas:
        validate_reaction_type(reaction_type)

    model = REACTION_TARGETS[target_type]

    with transaction.atomic():
        target = model.objects.select_for_update().filter(pk=target_id).first()
        if target is None:
            logger.debug("Counter skip: %s %s no longer exists", model.__name__, target_id)
            return CounterResult(SKIPPED_MISSING_PARENT)

        counts = empty_reaction_counts()
        stored = target.reaction_counts or {}
        for reaction_type in counts:
            counts[reaction_type] = int(stored.get(reaction_type) or 0)

        values = {}
        absorbed = 0
        for reaction_type, delta in deltas.items():
            if not delta:
                continue
            counts[reaction_type], lost = clamp(counts[reaction_type], delta)
            _log_absorbed(model, target.pk, f"reaction_counts.{reaction_type}", lost)
            absorbed += lost

            if reaction_type == 'like':
                like_count, lost = clamp(target.like_count, delta)
                _log_absorbed(model, target.pk, 'like_count', lost)
                values['like_count'] = like_count

        values['reaction_counts'] = counts
        model.objects.filter(pk=target.pk).update(**values)

    return CounterResult(APPLIED, values=values, absorbed=absorbed)


def adjust_reaction_count(target_id: int, reaction_type: str, delta: int, target_type: str = 'post') -> CounterResult:
    """Add delta to one reaction type on a post (or comment)."""
    return adjust_reaction_counts(target_id, {reaction_type: delta}, target_type=target_type)


# ============================================================================
# USER / COMMUNITY / COMMENT COUNTERS
# ============================================================================

def adjust_user_follow_counts(user_id: int, follower_delta: int = 0, following_delta: int = 0) -> CounterResult:
    return _adjust_fields(
        Profile,
        user_id,
        {'follower_count': follower_delta, 'following_count': following_delta},
        lookup='user_id'
    )


def adjust_community_member_count(community_id: int, delta: int) -> CounterResult:
    return _adjust_fields(Community, community_id, {'member_count': delta})


def adjust_comment_reply_count(comment_id: int, delta: int) -> CounterResult:
    return _adjust_fields(Comment, comment_id, {'reply_count': delta})


def get_reaction_target_model(target_type: str):
    try:
        return REACTION_TARGETS[target_type]
    except KeyError:
        raise InvalidInputError(f"Invalid target_type: {target_type}")
