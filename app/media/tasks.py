"""
Celery tasks for attachment blobs.

This module provides async tasks for:
- Deleting blobs whose attachment rows were deleted or never written

Blob deletion is idempotent (deleting a missing key is a no-op), so the
task is safe to retry.

Usage:
    from media.tasks import delete_blobs

    delete_blobs.delay(["attachments/<user>/<hex>/report.pdf"])
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.core.files.storage import default_storage

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 5},
)
def delete_blobs(self, keys: list[str]) -> int:
    """
    Delete blobs from default storage.

    Args:
        keys: Storage keys to delete

    Returns:
        Number of keys processed
    """
    for key in keys:
        default_storage.delete(key)

    logger.info(f"Deleted {len(keys)} blobs (attempt {self.request.retries + 1})")
    return len(keys)
