"""
Reconciliation: rebuild aggregates from detail records
======================================================

Aggregates are a cache. This module is the documented recomputation
procedure: for a parent row, count its live detail records with a full scan
and write the counts back.

    post.reaction_counts / like_count   <- Reaction rows on the post
    post.comment_count                  <- Comment rows on the post
    post.share_count                    <- Repost rows on the post
    comment.reaction_counts / like_count<- Reaction rows on the comment
    comment.reply_count                 <- direct child Comment rows
    profile.follower_count              <- Follow rows with following=user
    profile.following_count             <- Follow rows with follower=user
    community.member_count              <- non-pending memberships
    poll.options[].vote_count           <- PollVote rows per option
    poll.total_votes                    <- sum of the above

Reaction rows whose post or comment is gone are swept first; nothing
would ever count them otherwise.

Each recount locks the parent row (same discipline as counters.py) so it
cannot interleave with a concurrent adjustment on that parent.

Used by `manage.py reconcile_counters`, and safe to run at any time.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from django.contrib.contenttypes.models import ContentType
from django.db import transaction
from django.db.models import Count

from .counters import REACTION_TARGETS
from .models import (
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
    empty_reaction_counts,
)

logger = logging.getLogger(__name__)

# {field: (cached_value, actual_value)} for every field that differed
Drift = Dict[str, Tuple[Any, Any]]


def count_reactions(target_type: str, target_id: int) -> dict:
    """Per-type reaction counts straight from Reaction rows."""
    content_type = ContentType.objects.get_for_model(REACTION_TARGETS[target_type])
    counts = empty_reaction_counts()

    rows = (
        Reaction.objects
        .filter(content_type=content_type, object_id=target_id)
        .values('reaction_type')
        .annotate(count=Count('id'))
    )
    for row in rows:
        if row['reaction_type'] in counts:
            counts[row['reaction_type']] = row['count']
    return counts


def _write_back(instance, actual: Dict[str, Any], dry_run: bool) -> Drift:
    drift = {}
    for field, value in actual.items():
        cached = getattr(instance, field)
        if cached != value:
            drift[field] = (cached, value)

    if drift:
        logger.warning(
            "%s %s(%s): %s",
            "Drift found" if dry_run else "Reconciled",
            type(instance).__name__,
            instance.pk,
            ", ".join(f"{field} {old!r} -> {new!r}" for field, (old, new) in drift.items())
        )
        if not dry_run:
            type(instance).objects.filter(pk=instance.pk).update(
                **{field: new for field, (_, new) in drift.items()}
            )
    return drift


def recount_post(post_id: int, dry_run: bool = False) -> Optional[Drift]:
    with transaction.atomic():
        post = Post.objects.select_for_update().filter(pk=post_id).first()
        if post is None:
            return None

        reaction_counts = count_reactions('post', post.pk)
        actual = {
            'reaction_counts': reaction_counts,
            'like_count': reaction_counts['like'],
            'comment_count': Comment.objects.filter(post_id=post.pk).count(),
            'share_count': Repost.objects.filter(post_id=post.pk).count(),
        }
        return _write_back(post, actual, dry_run)


def recount_comment(comment_id: int, dry_run: bool = False) -> Optional[Drift]:
    with transaction.atomic():
        comment = Comment.objects.select_for_update().filter(pk=comment_id).first()
        if comment is None:
            return None

        reaction_counts = count_reactions('comment', comment.pk)
        actual = {
            'reaction_counts': reaction_counts,
            'like_count': reaction_counts['like'],
            'reply_count': Comment.objects.filter(parent_id=comment.pk).count(),
        }
        return _write_back(comment, actual, dry_run)


def recount_profile(user_id: int, dry_run: bool = False) -> Optional[Drift]:
    with transaction.atomic():
        profile = Profile.objects.select_for_update().filter(user_id=user_id).first()
        if profile is None:
            return None

        actual = {
            'follower_count': Follow.objects.filter(following_id=user_id).count(),
            'following_count': Follow.objects.filter(follower_id=user_id).count(),
        }
        return _write_back(profile, actual, dry_run)


def recount_community(community_id: int, dry_run: bool = False) -> Optional[Drift]:
    with transaction.atomic():
        community = Community.objects.select_for_update().filter(pk=community_id).first()
        if community is None:
            return None

        actual = {
            'member_count': (
                CommunityMembership.objects
                .filter(community_id=community.pk)
                .exclude(role=CommunityMembership.Role.PENDING)
                .count()
            ),
        }
        return _write_back(community, actual, dry_run)


def recount_poll(poll_id: int, dry_run: bool = False) -> Optional[Drift]:
    """
    Rebuild option tallies and total_votes from PollVote rows.

    Votes pointing at an option id the poll does not have cannot be counted
    without breaking sum(vote_count) == total_votes; they are deleted (or
    only reported on a dry run).
    """
    with transaction.atomic():
        poll = Poll.objects.select_for_update().filter(pk=poll_id).first()
        if poll is None:
            return None

        tallies = dict(
            PollVote.objects
            .filter(poll_id=poll.pk)
            .values_list('option_id')
            .annotate(count=Count('id'))
        )

        known_ids = set(poll.option_ids())
        stray = {option_id: count for option_id, count in tallies.items() if option_id not in known_ids}
        if stray:
            logger.warning("Poll %s has votes for unknown options: %r", poll.pk, stray)
            if not dry_run:
                PollVote.objects.filter(poll_id=poll.pk, option_id__in=list(stray)).delete()

        options = [
            {**option, 'vote_count': tallies.get(option['id'], 0)}
            for option in poll.options
        ]
        actual = {
            'options': options,
            'total_votes': sum(option['vote_count'] for option in options),
        }
        return _write_back(poll, actual, dry_run)


def sweep_orphaned_reactions(dry_run: bool = False) -> int:
    """
    Delete Reaction rows whose post or comment no longer exists.

    The generic FK is not cascaded by the database, so a post or comment
    removed outside services.delete_post / delete_comment leaves these
    behind. Returns how many were found.
    """
    orphaned = 0
    for target_type, model in REACTION_TARGETS.items():
        rows = Reaction.objects.filter(
            content_type=ContentType.objects.get_for_model(model)
        ).exclude(
            object_id__in=model.objects.values('pk')
        )
        count = rows.count()
        if count:
            logger.warning(
                "%s %d reaction(s) on missing %ss",
                "Found" if dry_run else "Removed", count, target_type
            )
            if not dry_run:
                rows.delete()
        orphaned += count
    return orphaned


RECOUNTERS = {
    'post': (Post, 'pk', recount_post),
    'comment': (Comment, 'pk', recount_comment),
    'profile': (Profile, 'user_id', recount_profile),
    'community': (Community, 'pk', recount_community),
    'poll': (Poll, 'pk', recount_poll),
}

# Sweeps run before the recounts and report rows removed, not rows drifted
SWEEPS = {
    'reaction': sweep_orphaned_reactions,
}

LABELS = list(SWEEPS) + list(RECOUNTERS)


def reconcile_all(labels=None, dry_run: bool = False) -> Dict[str, int]:
    """
    Sweep orphans and recount every parent row of the given kinds
    (default: all).

    Returns {label: number of rows that had drifted or were orphaned}.
    """
    repaired = {}
    for label in sorted(labels or LABELS, key=LABELS.index):
        if label in SWEEPS:
            repaired[label] = SWEEPS[label](dry_run=dry_run)
            logger.info("Swept %s: %d orphaned row(s)", label, repaired[label])
            continue

        model, key, recount = RECOUNTERS[label]
        drifted = 0
        for parent_id in list(model.objects.values_list(key, flat=True)):
            if recount(parent_id, dry_run=dry_run):
                drifted += 1
        repaired[label] = drifted
        logger.info("Reconciled %s: %d row(s) with drift", label, drifted)
    return repaired
