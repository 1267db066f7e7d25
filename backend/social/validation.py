"""
Shared validation constants and precondition gates.

Everything here runs BEFORE a detail record is written, so malformed input
can never reach aggregate state.
"""

from typing import Iterable, List, Optional

from .exceptions import InvalidInputError, NotAuthenticatedError
from .models import REACTION_TYPES

# Content length limits
POST_MAX_LENGTH = 5000
COMMENT_MAX_LENGTH = 2000
NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 1000
COLLECTION_NAME_MAX_LENGTH = 100

# Polls
POLL_MIN_OPTIONS = 2
POLL_MAX_OPTIONS = 6
POLL_OPTION_MAX_LENGTH = 100
POLL_QUESTION_MAX_LENGTH = 300

# Comments
MAX_COMMENT_DEPTH = 10

DEFAULT_COLLECTION = 'Saved'

TARGET_TYPES = ('post', 'comment')


def require_user(user):
    """Resolve the caller. Anonymous or missing users are rejected."""
    if user is None or not getattr(user, 'is_authenticated', False):
        raise NotAuthenticatedError()
    return user


def clean_text(value: Optional[str], field: str, max_length: int) -> str:
    """Trim, reject empty, enforce a length ceiling."""
    trimmed = (value or '').strip()
    if not trimmed:
        raise InvalidInputError(f"{field} cannot be empty")
    if len(trimmed) > max_length:
        raise InvalidInputError(f"{field} must not exceed {max_length} characters")
    return trimmed


def clean_collection_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        return DEFAULT_COLLECTION
    name = name.strip()
    if len(name) > COLLECTION_NAME_MAX_LENGTH:
        raise InvalidInputError(
            f"Collection name too long (max {COLLECTION_NAME_MAX_LENGTH} characters)"
        )
    return name


def clean_poll_options(options: Iterable[str]) -> List[str]:
    options = list(options or [])
    if len(options) < POLL_MIN_OPTIONS or len(options) > POLL_MAX_OPTIONS:
        raise InvalidInputError(
            f"A poll must have between {POLL_MIN_OPTIONS} and {POLL_MAX_OPTIONS} options"
        )

    cleaned = []
    for option in options:
        trimmed = (option or '').strip()
        if not trimmed:
            raise InvalidInputError("Poll options cannot be empty")
        if len(trimmed) > POLL_OPTION_MAX_LENGTH:
            raise InvalidInputError(
                f"Poll option must not exceed {POLL_OPTION_MAX_LENGTH} characters"
            )
        cleaned.append(trimmed)
    return cleaned


def validate_reaction_type(reaction_type: str) -> str:
    if reaction_type not in REACTION_TYPES:
        raise InvalidInputError(f"Invalid reaction type: {reaction_type}")
    return reaction_type


def validate_target_type(target_type: str) -> str:
    if target_type not in TARGET_TYPES:
        raise InvalidInputError(f"Invalid target_type: {target_type}")
    return target_type
