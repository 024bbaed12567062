"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Message operations (content limits, history paging)
- Calls (ring timeout)
- Presence and the live channel (close codes, reconnect policy)

Import example:
    from chat.constants import MESSAGE_CONFIG, CALL_CONFIG
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Content limits
    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters

    # History paging
    HISTORY_DEFAULT_LIMIT: Final[int] = 50
    HISTORY_MAX_LIMIT: Final[int] = 200


# =============================================================================
# Conversation Configuration
# =============================================================================


class CONVERSATION_CONFIG:
    """Configuration for conversation operations."""

    MAX_NAME_LENGTH: Final[int] = 100
    MAX_GROUP_MEMBERS: Final[int] = 256


# =============================================================================
# Call Configuration
# =============================================================================


class CALL_CONFIG:
    """Configuration for call lifecycle."""

    # Pending calls older than this are marked missed by the beat task
    RING_TIMEOUT_SECONDS: Final[int] = 60


# =============================================================================
# Presence Configuration
# =============================================================================


class PRESENCE_CONFIG:
    """Configuration for presence tracking and the live channel."""

    # Channel-layer group each user's connections join
    USER_GROUP_PREFIX: Final[str] = "user_"

    # Close codes
    CLOSE_NORMAL: Final[int] = 1000
    CLOSE_UNAUTHENTICATED: Final[int] = 4001

    # Client reconnect backoff
    RECONNECT_BASE_DELAY_SECONDS: Final[float] = 1.0
    RECONNECT_MAX_DELAY_SECONDS: Final[float] = 30.0
    RECONNECT_MAX_ATTEMPTS: Final[int] = 5
