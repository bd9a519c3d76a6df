"""
Celery tasks for chat app.

This module defines periodic tasks for:
- Presence expiry (users whose client stopped sending heartbeats)

Related files:
    - services.py: PresenceService
    - config/settings.py: CELERY_BEAT_SCHEDULE

Usage:
    from chat.tasks import expire_stale_presence

    expire_stale_presence.delay()
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def expire_stale_presence(ttl_seconds: int | None = None) -> int:
    """
    Mark users offline whose presence was not refreshed within the TTL.

    Args:
        ttl_seconds: Override of PRESENCE_TTL_SECONDS

    Returns:
        Number of presences marked offline
    """
    from .constants import PRESENCE_CONFIG
    from .services import PresenceService

    count = PresenceService.expire_stale(
        ttl_seconds or PRESENCE_CONFIG.PRESENCE_TTL_SECONDS
    )
    logger.debug(f"Presence expiry marked {count} users offline")
    return count
