"""
Django signals for the realtime layer.

Connects the change feed handlers to every model whose table is routed
(messages, direct messages, channels, channel members, direct chats,
presence and attachments).
"""

from __future__ import annotations

import logging

from django.db.models.signals import post_delete, post_save

logger = logging.getLogger(__name__)


def connect_signals():
    """
    Connect all signal handlers.

    Called from RealtimeConfig.ready() to ensure signals are connected
    after all models are loaded.
    """
    from realtime.changefeed import feed_models, handle_post_delete, handle_post_save

    models = feed_models()
    for table, model in models.items():
        post_save.connect(
            handle_post_save,
            sender=model,
            dispatch_uid=f"changefeed_save_{table}",
        )
        post_delete.connect(
            handle_post_delete,
            sender=model,
            dispatch_uid=f"changefeed_delete_{table}",
        )

    logger.debug(f"Change feed connected for {len(models)} tables")
