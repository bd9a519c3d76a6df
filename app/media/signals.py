"""
Django signals for the media app.

Provides handlers for:
- Blob cleanup when attachment rows are deleted
"""

from __future__ import annotations

import logging
from functools import partial

from django.db import transaction
from django.db.models.signals import post_delete

logger = logging.getLogger(__name__)


def connect_signals():
    """
    Connect all signal handlers.

    Called from MediaConfig.ready() to ensure signals are connected
    after all models are loaded.
    """
    from media.models import Attachment

    post_delete.connect(
        delete_blob_on_attachment_delete,
        sender=Attachment,
        dispatch_uid="attachment_blob_cleanup",
    )

    logger.debug("Media signals connected")


def delete_blob_on_attachment_delete(sender, instance, **kwargs) -> None:
    """
    Queue deletion of the blob once the delete commits.

    Covers direct deletes and cascades from messages, channels and
    workspaces. Nothing is queued if the transaction rolls back.
    """
    from media.tasks import delete_blobs

    key = instance.file.name if instance.file else ""
    if not key:
        return

    transaction.on_commit(partial(delete_blobs.delay, [key]))
    logger.debug(f"Queued blob deletion for attachment {instance.id}")
