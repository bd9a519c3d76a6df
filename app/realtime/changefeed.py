"""
Row-level change feed.

Every insert, update and delete of a routed table is published after the
surrounding transaction commits. Writes that roll back publish nothing.

Publication:
    post_save / post_delete -> build_event() -> transaction.on_commit ->
    publish() -> group_send to one group per routed column of the row:

        feed.<table>.<column>.<value>

    e.g. a new channel message goes to ``feed.messages.channel_id.<channel>``
    and, when it is a reply, ``feed.messages.parent_id.<root>``.

Event shape (JSON-safe, rows keyed by storage column name):
    {
        "event_id": "...",
        "event_type": "INSERT" | "UPDATE" | "DELETE",
        "schema": "public",
        "table": "messages",
        "new": {...},          # empty for DELETE
        "old": {...},          # empty for INSERT, {pk} for UPDATE, full row for DELETE
        "commit_timestamp": "2026-01-01T12:00:00.000Z",
    }

Queryset ``update()`` sends no signal; callers announce such rows with
notify_saved().

Usage:
    from realtime.changefeed import notify_saved

    Message.objects.filter(id=root.id).update(reply_count=F("reply_count") + 1)
    root.refresh_from_db()
    notify_saved(root)
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from functools import partial
from typing import TYPE_CHECKING, Any

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.apps import apps
from django.core.serializers.json import DjangoJSONEncoder
from django.db import transaction
from django.db.models.fields.files import FieldFile
from django.utils import timezone

from realtime.constants import FEED_CONFIG

if TYPE_CHECKING:
    from django.db.models import Model

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
EVENT_TYPES = (INSERT, UPDATE, DELETE)

# table -> columns a subscription may filter on
ROUTED_COLUMNS: dict[str, tuple[str, ...]] = {
    "messages": ("channel_id", "parent_id"),
    "direct_messages": ("chat_id", "parent_id"),
    "channels": ("workspace_id",),
    "channel_members": ("channel_id", "user_id"),
    "direct_chats": ("workspace_id", "user1_id", "user2_id"),
    "presence": ("user_id",),
    "attachments": ("message_id", "direct_message_id"),
}


@dataclass
class ChangeEvent:
    """One committed row change."""

    event_type: str
    table: str
    new: dict[str, Any] = field(default_factory=dict)
    old: dict[str, Any] = field(default_factory=dict)
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    schema: str = FEED_CONFIG.SCHEMA
    commit_timestamp: str | None = None

    @property
    def row(self) -> dict[str, Any]:
        """The row the event is about: ``old`` for deletes, ``new`` otherwise."""
        return self.old if self.event_type == DELETE else self.new

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChangeEvent:
        return cls(
            event_type=data["event_type"],
            table=data["table"],
            new=data.get("new") or {},
            old=data.get("old") or {},
            event_id=data["event_id"],
            schema=data.get("schema", FEED_CONFIG.SCHEMA),
            commit_timestamp=data.get("commit_timestamp"),
        )

    def translated(self) -> ChangeEvent:
        """Copy of the event with rows keyed by model field names."""
        return ChangeEvent(
            event_type=self.event_type,
            table=self.table,
            new=translate_row(self.table, self.new),
            old=translate_row(self.table, self.old),
            event_id=self.event_id,
            schema=self.schema,
            commit_timestamp=self.commit_timestamp,
        )


# =============================================================================
# Model registry
# =============================================================================


def feed_models() -> dict[str, type[Model]]:
    """Models whose table is routed, keyed by table name."""
    return {
        model._meta.db_table: model
        for model in apps.get_models()
        if model._meta.db_table in ROUTED_COLUMNS
    }


def group_name(table: str, column: str, value) -> str:
    return f"{FEED_CONFIG.GROUP_PREFIX}.{table}.{column}.{value}"


def routes_for(event: ChangeEvent) -> list[str]:
    """Groups an event is sent to: one per routed column with a value."""
    row = event.row
    return [
        group_name(event.table, column, row[column])
        for column in ROUTED_COLUMNS.get(event.table, ())
        if row.get(column) is not None
    ]


# =============================================================================
# Rows
# =============================================================================


class FeedJSONEncoder(DjangoJSONEncoder):
    """DjangoJSONEncoder that stores file fields as their storage key."""

    def default(self, o):
        if isinstance(o, FieldFile):
            return o.name
        return super().default(o)


def serialize_row(instance: Model) -> dict[str, Any]:
    """
    JSON-safe row of a model instance, keyed by storage column name.

    UUIDs become strings and datetimes ISO 8601 strings, as
    DjangoJSONEncoder renders them.
    """
    row = {
        model_field.column: model_field.value_from_object(instance)
        for model_field in instance._meta.concrete_fields
    }
    return json.loads(json.dumps(row, cls=FeedJSONEncoder))


def translate_row(table: str, row: dict[str, Any]) -> dict[str, Any]:
    """
    Rename storage columns to model attribute names.

    ``messages.user_id`` becomes ``author_id``; columns the model does not
    know are dropped.
    """
    if not row:
        return {}
    model = feed_models().get(table)
    if model is None:
        return dict(row)
    return {
        model_field.attname: row[model_field.column]
        for model_field in model._meta.concrete_fields
        if model_field.column in row
    }


def row_for(instance: Model) -> dict[str, Any]:
    """A model instance as subscribers see it after translation."""
    return translate_row(instance._meta.db_table, serialize_row(instance))


def build_event(event_type: str, instance: Model) -> ChangeEvent:
    """
    Build the event for a row change.

    INSERT carries the new row, UPDATE the new row plus the primary key
    as ``old``, DELETE the full deleted row as ``old``.
    """
    row = serialize_row(instance)
    table = instance._meta.db_table
    if event_type == INSERT:
        return ChangeEvent(event_type, table, new=row, old={})
    if event_type == UPDATE:
        pk_column = instance._meta.pk.column
        return ChangeEvent(event_type, table, new=row, old={pk_column: row[pk_column]})
    return ChangeEvent(event_type, table, new={}, old=row)


# =============================================================================
# Publication
# =============================================================================


def publish(event: ChangeEvent) -> int:
    """
    Send an event to every group it routes to.

    Returns:
        Number of groups the event was sent to
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return 0

    event.commit_timestamp = FeedJSONEncoder().default(timezone.now())
    groups = routes_for(event)
    payload = {"type": FEED_CONFIG.MESSAGE_TYPE, "event": event.to_dict()}
    for group in groups:
        async_to_sync(channel_layer.group_send)(group, payload)

    logger.debug(
        f"Published {event.event_type} on {event.table} to {len(groups)} groups"
    )
    return len(groups)


def schedule(event: ChangeEvent, using: str | None = None) -> None:
    """Publish the event once the current transaction commits."""
    transaction.on_commit(partial(publish, event), using=using, robust=True)


def notify_saved(instance: Model) -> None:
    """Announce an UPDATE for a row changed without post_save."""
    schedule(build_event(UPDATE, instance), using=instance._state.db)


# =============================================================================
# Signal handlers
# =============================================================================


def handle_post_save(sender, instance, created=False, raw=False, using=None, **kwargs):
    # Fixture loading
    if raw:
        return
    schedule(build_event(INSERT if created else UPDATE, instance), using=using)


def handle_post_delete(sender, instance, using=None, **kwargs):
    schedule(build_event(DELETE, instance), using=using)
