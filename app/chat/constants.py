"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Message operations (content limits, search)
- Reaction management (per-user cap, emoji length)
- Typing indicators (expiry window, housekeeping)
- Group details (field limits)

Import example:
    from chat.constants import MESSAGE_CONFIG, REACTION_CONFIG
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Content limits (enforced at the API boundary)
    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters

    # Reply preview shown alongside a reply
    REPLY_PREVIEW_LENGTH: Final[int] = 100

    # Search settings
    SEARCH_MAX_RESULTS: Final[int] = 20
    SEARCH_MAX_QUERY_LENGTH: Final[int] = 200


class DeleteMode:
    """Message deletion modes."""

    FOR_ME: Final[str] = "for_me"
    FOR_EVERYONE: Final[str] = "for_everyone"

    CHOICES: Final[tuple] = (FOR_ME, FOR_EVERYONE)


# =============================================================================
# Reaction Configuration
# =============================================================================


class REACTION_CONFIG:
    """Configuration for message reactions."""

    # A user holds at most this many distinct emoji on one message;
    # adding one more evicts their oldest
    MAX_USER_REACTIONS_PER_MESSAGE: Final[int] = 2

    # Max characters for a single emoji (handles compound emojis)
    MAX_EMOJI_LENGTH: Final[int] = 8


# =============================================================================
# Typing Configuration
# =============================================================================


class TYPING_CONFIG:
    """Configuration for typing indicators."""

    # How long a started indicator stays active without a refresh
    TYPING_WINDOW_MS: Final[int] = 2500

    # Clients should not refresh more often than this
    CLIENT_THROTTLE_SECONDS: Final[int] = 1

    # Rows expired for longer than this are removed by the housekeeping task
    PURGE_GRACE_SECONDS: Final[int] = 60


# =============================================================================
# Group Configuration
# =============================================================================


class GROUP_CONFIG:
    """Field limits for group conversations."""

    MAX_NAME_LENGTH: Final[int] = 100
    MAX_DESCRIPTION_LENGTH: Final[int] = 500
    MAX_IMAGE_URL_LENGTH: Final[int] = 2048
