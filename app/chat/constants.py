"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Message operations (content limits, snapshot size, search)
- Attachment handling (limits, signed URL expiry)
- Reaction management (emoji restrictions, limits)
- Presence tracking (statuses, expiry)

Import example:
    from chat.constants import MESSAGE_CONFIG, REACTION_CONFIG
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Content limits
    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters

    # Top-level messages returned by get_messages and the view snapshot
    SNAPSHOT_LIMIT: Final[int] = 50
    MAX_FETCH_LIMIT: Final[int] = 100

    # Search settings
    SEARCH_MIN_QUERY_LENGTH: Final[int] = 2
    SEARCH_DEFAULT_LIMIT: Final[int] = 50
    SEARCH_MAX_LIMIT: Final[int] = 100


# =============================================================================
# Attachment Configuration
# =============================================================================


class ATTACHMENT_CONFIG:
    """
    Configuration for message attachments.

    Blobs live in Django's default storage (S3 via django-storages in
    deployment, the local file system otherwise).
    """

    MAX_ATTACHMENTS_PER_MESSAGE: Final[int] = 10
    MAX_FILE_SIZE_BYTES: Final[int] = 25 * 1024 * 1024  # 25 MB

    # Signed read URLs always expire after one hour
    SIGNED_URL_EXPIRY_SECONDS: Final[int] = 3600

    STORAGE_PREFIX: Final[str] = "attachments"


# =============================================================================
# Reaction Configuration
# =============================================================================


class REACTION_CONFIG:
    """Configuration for message reactions."""

    MAX_REACTIONS_PER_MESSAGE: Final[int] = 20  # Distinct emojis per message
    MAX_USER_REACTIONS_PER_MESSAGE: Final[int] = 5
    MAX_EMOJI_LENGTH: Final[int] = 8  # Compound emojis span several code points


# =============================================================================
# Presence Configuration
# =============================================================================


class PRESENCE_CONFIG:
    """Configuration for presence tracking."""

    # Rows not refreshed within this window are marked offline
    PRESENCE_TTL_SECONDS: Final[int] = 120

    # How often clients should send a heartbeat
    HEARTBEAT_INTERVAL_SECONDS: Final[int] = 30

    MAX_STATUS_TEXT_LENGTH: Final[int] = 100
    MAX_BULK_USERS: Final[int] = 200

    # Lifetime of the per-user open connection counter in the cache
    CONNECTION_COUNT_TTL_SECONDS: Final[int] = 24 * 60 * 60
