"""
Poll Voting: Vote Reconciliation Engine
=======================================

Per (poll, user) there are two states:

    NoVote           --cast(O)-->  VotedFor(O)   create vote, O +1, total +1
    VotedFor(O)      --cast(O)-->  VotedFor(O)   nothing
    VotedFor(A)      --cast(B)-->  VotedFor(B)   replace vote, A -1, B +1, total unchanged

EXACTLY ONE LIVE VOTE:
----------------------
- Unique constraint (poll, user) on PollVote at DB level
- The poll row is locked (select_for_update) for the whole transition, so two
  concurrent casts by the same user serialize on the poll

SINGLE SNAPSHOT:
----------------
The A -> B move reads poll.options ONCE, builds the decremented-A and
incremented-B list from that one snapshot (tally_move) and writes ONCE.
Never two independent read-modify-writes: the second would overwrite the
first with a stale copy of the array.

PRECONDITIONS (checked before any write):
-----------------------------------------
not authenticated -> NotAuthenticatedError
poll missing      -> PollNotFoundError
poll past ends_at -> PollEndedError
unknown option    -> InvalidOptionError
"""

import logging
import uuid
from datetime import timedelta
from typing import List, Literal, Optional

from django.db import transaction
from django.utils import timezone

from .exceptions import (
    ForbiddenError,
    InvalidInputError,
    InvalidOptionError,
    NotFoundError,
    PollEndedError,
    PollNotFoundError,
)
from .models import Poll, PollVote, Post
from .validation import POLL_QUESTION_MAX_LENGTH, clean_poll_options, require_user

logger = logging.getLogger(__name__)

OPTION_ID_LENGTH = 8


class VoteResult:
    """Result of cast_vote."""
    def __init__(
        self,
        action: Literal['created', 'unchanged', 'switched'],
        option_id: str,
        previous_option_id: Optional[str] = None
    ):
        self.action = action
        self.option_id = option_id
        self.previous_option_id = previous_option_id

    @property
    def changed(self) -> bool:
        return self.action != 'unchanged'


def _new_option_id(taken) -> str:
    while True:
        option_id = uuid.uuid4().hex[:OPTION_ID_LENGTH]
        if option_id not in taken:
            return option_id


def tally_move(options: List[dict], from_option: Optional[str], to_option: str) -> List[dict]:
    """
    Produce the new options list for one vote move from a single snapshot.

    from_option=None is a fresh vote. The decrement is clamped at 0.
    The input list is not mutated.
    """
    updated = []
    for option in options:
        vote_count = option.get('vote_count', 0)
        if option['id'] == from_option:
            vote_count = max(0, vote_count - 1)
        if option['id'] == to_option:
            vote_count = vote_count + 1
        updated.append({**option, 'vote_count': vote_count})
    return updated


# ============================================================================
# MUTATIONS
# ============================================================================

def create_poll(
    user,
    options: List[str],
    duration_hours: Optional[float] = None,
    is_anonymous: bool = False,
    question: Optional[str] = None
) -> Poll:
    """
    Create a poll with 2-6 options. Called before the post exists;
    link_poll_to_post attaches it afterwards.
    """
    require_user(user)
    texts = clean_poll_options(options)

    question = (question or '').strip()
    if len(question) > POLL_QUESTION_MAX_LENGTH:
        raise InvalidInputError(
            f"Poll question must not exceed {POLL_QUESTION_MAX_LENGTH} characters"
        )

    now = timezone.now()
    ends_at = None
    if duration_hours is not None:
        if duration_hours <= 0:
            raise InvalidInputError("Poll duration must be positive")
        ends_at = now + timedelta(hours=duration_hours)

    taken = set()
    poll_options = []
    for text in texts:
        option_id = _new_option_id(taken)
        taken.add(option_id)
        poll_options.append({'id': option_id, 'text': text, 'vote_count': 0})

    poll = Poll.objects.create(
        author=user,
        question=question,
        options=poll_options,
        total_votes=0,
        ends_at=ends_at,
        is_anonymous=bool(is_anonymous),
        created_at=now
    )
    logger.info("Poll %s created by user %s with %d options", poll.pk, user.pk, len(poll_options))
    return poll


def link_poll_to_post(user, poll_id: int, post_id: int) -> Poll:
    """Store the poll -> post reference. Author only, once."""
    require_user(user)

    with transaction.atomic():
        poll = Poll.objects.select_for_update().filter(pk=poll_id).first()
        if poll is None:
            raise PollNotFoundError()
        if poll.author_id != user.pk:
            raise ForbiddenError()
        if poll.post_id is not None:
            raise InvalidInputError("Poll already linked to a post")
        if not Post.objects.filter(pk=post_id).exists():
            raise NotFoundError("Post not found")
        if Poll.objects.filter(post_id=post_id).exists():
            raise InvalidInputError("Post already has a poll")

        poll.post_id = post_id
        poll.save(update_fields=['post'])

    return poll


def cast_vote(user, poll_id: int, option_id: str) -> VoteResult:
    """
    Cast or change a vote. The whole transition is one transaction:
    either the vote row and the tallies both change, or nothing does.
    """
    require_user(user)

    with transaction.atomic():
        poll = Poll.objects.select_for_update().filter(pk=poll_id).first()
        if poll is None:
            raise PollNotFoundError()
        if poll.is_expired():
            raise PollEndedError()
        if option_id not in poll.option_ids():
            raise InvalidOptionError()

        existing = PollVote.objects.filter(poll=poll, user=user).first()

        if existing is not None and existing.option_id == option_id:
            return VoteResult('unchanged', option_id, previous_option_id=option_id)

        previous_option_id = existing.option_id if existing is not None else None
        options = tally_move(poll.options, previous_option_id, option_id)

        if existing is not None:
            # Same row stays the live vote, total_votes unchanged
            existing.option_id = option_id
            existing.save(update_fields=['option_id'])
            Poll.objects.filter(pk=poll.pk).update(options=options)
            action = 'switched'
        else:
            PollVote.objects.create(poll=poll, user=user, option_id=option_id)
            Poll.objects.filter(pk=poll.pk).update(
                options=options,
                total_votes=poll.total_votes + 1
            )
            action = 'created'

    logger.debug(
        "Vote %s on poll %s by user %s: %s -> %s",
        action, poll_id, user.pk, previous_option_id, option_id
    )
    return VoteResult(action, option_id, previous_option_id=previous_option_id)


def delete_poll(user, poll_id: int) -> int:
    """
    Delete a poll and every vote on it, in one transaction.

    Votes go first so no PollVote ever references a missing poll.
    Returns the number of votes removed.
    """
    require_user(user)

    with transaction.atomic():
        poll = Poll.objects.select_for_update().filter(pk=poll_id).first()
        if poll is None:
            raise PollNotFoundError()
        if poll.author_id != user.pk:
            raise ForbiddenError()

        deleted_votes, _ = PollVote.objects.filter(poll=poll).delete()
        poll.delete()

    logger.info("Poll %s deleted by user %s (%d votes removed)", poll_id, user.pk, deleted_votes)
    return deleted_votes


# ============================================================================
# QUERIES
# ============================================================================

def get_poll_results(poll_id: int) -> Optional[dict]:
    """Public poll data with current tallies, or None."""
    poll = Poll.objects.filter(pk=poll_id).first()
    if poll is None:
        return None

    return {
        'id': poll.pk,
        'author_id': poll.author_id,
        'post_id': poll.post_id,
        'question': poll.question,
        'options': [dict(option) for option in poll.options],
        'total_votes': poll.total_votes,
        'ends_at': poll.ends_at,
        'is_anonymous': poll.is_anonymous,
        'created_at': poll.created_at,
        'is_expired': poll.is_expired(),
    }


def get_user_vote(user, poll_id: int) -> Optional[str]:
    """Option id of the caller's live vote, or None."""
    if user is None or not user.is_authenticated:
        return None

    return (
        PollVote.objects
        .filter(poll_id=poll_id, user=user)
        .values_list('option_id', flat=True)
        .first()
    )
