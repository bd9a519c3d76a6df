"""
Constants and configuration for the realtime layer.

This module centralizes configuration values for:
- The change feed (group naming, dedupe window, subscription limits)
- The per-connection user cache

Import example:
    from realtime.constants import FEED_CONFIG, USER_CACHE_CONFIG
"""

from typing import Final


# =============================================================================
# Change Feed Configuration
# =============================================================================


class FEED_CONFIG:
    """Configuration for change feed publication and subscriptions."""

    # Groups are named "<prefix>.<table>.<column>.<value>"
    GROUP_PREFIX: Final[str] = "feed"
    SCHEMA: Final[str] = "public"

    # Channel layer message type; dispatched to consumer.feed_event
    MESSAGE_TYPE: Final[str] = "feed.event"

    # Event ids remembered per connection to drop copies arriving
    # through a second group
    DEDUPE_WINDOW: Final[int] = 1024

    MAX_SUBSCRIPTIONS_PER_CONNECTION: Final[int] = 50
    MAX_FILTERS_PER_SUBSCRIPTION: Final[int] = 200


# =============================================================================
# User Cache Configuration
# =============================================================================


class USER_CACHE_CONFIG:
    """Configuration for the per-connection user summary cache."""

    TTL_SECONDS: Final[int] = 300
    MAX_ENTRIES: Final[int] = 1000
