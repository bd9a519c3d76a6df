"""
Synchronized views of a conversation.

A view holds the ordered message list a client renders and reconciles
change feed events into it:

    LOADING --load()--> POPULATED --reconnect()--> LOADING

- load(): fetch the snapshot (latest top-level messages, or every reply of
  a thread), resolve authors and attachments in batches, then replay the
  events buffered while loading.
- apply(): INSERT adds the row in creation order unless it is already
  present or belongs to another view (replies in a top-level view, other
  threads in a thread view); UPDATE replaces by id; DELETE removes by id.
- reconnect(): the feed never backfills, so the view drops its rows and
  must load again.

Both methods return the frames to push to the client:
    ("snapshot", [row, ...]), ("insert", row), ("update", row),
    ("delete", {"id": ...}), ("users", {id: summary})

Rows use model field names (``author_id``, ``parent_id``...), the shape of
translated feed events, plus an ``attachments`` list.

PresenceMap projects presence events of a set of watched users onto a
``user id -> status`` map.
"""

from __future__ import annotations

import bisect
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from django.utils.dateparse import parse_datetime

from chat.constants import MESSAGE_CONFIG
from chat.models import PresenceStatus
from media.serializers import AttachmentSerializer
from media.services import AttachmentService
from realtime.changefeed import DELETE, INSERT, UPDATE, ChangeEvent, row_for
from realtime.user_cache import UserCache

if TYPE_CHECKING:
    from collections.abc import Iterable

    from authentication.models import User
    from chat.services import BaseMessageService

logger = logging.getLogger(__name__)

Frame = tuple[str, Any]


class ViewState(str, Enum):
    LOADING = "loading"
    POPULATED = "populated"


def sort_key(row: dict[str, Any]) -> tuple:
    return (parse_datetime(row["created_at"]), str(row["id"]))


class ConversationView:
    """
    Top-level messages of a channel or direct chat.

    Args:
        message_service: ChannelMessageService or DirectMessageService
        user: Viewer; snapshots go through the service's access checks
        conversation_id: Channel or direct chat id
        user_cache: Shared author cache (injectable)
        limit: Snapshot size
    """

    def __init__(
        self,
        message_service: type[BaseMessageService],
        user: User,
        conversation_id,
        user_cache: UserCache | None = None,
        limit: int = MESSAGE_CONFIG.SNAPSHOT_LIMIT,
    ):
        self.message_service = message_service
        self.user = user
        self.conversation_id = str(conversation_id)
        self.user_cache = user_cache if user_cache is not None else UserCache()
        self.limit = limit
        self.state = ViewState.LOADING
        self.messages: list[dict[str, Any]] = []
        self._keys: list[tuple] = []
        self._buffer: list[ChangeEvent] = []

    # =========================================================================
    # Feed wiring
    # =========================================================================

    @property
    def message_model(self):
        return self.message_service.message_model

    @property
    def table(self) -> str:
        return self.message_model._meta.db_table

    @property
    def filter_column(self) -> str:
        return self.message_model._meta.get_field(self.message_model.CONVERSATION_FIELD).column

    def filters(self) -> list[str]:
        return [f"{self.filter_column}=eq.{self.conversation_id}"]

    def accepts(self, row: dict[str, Any]) -> bool:
        return row.get("parent_id") is None

    # =========================================================================
    # Snapshot
    # =========================================================================

    def fetch_snapshot(self) -> list:
        result = self.message_service.get_messages(
            self.user, self.conversation_id, self.limit
        )
        if not result.success:
            raise LookupError(result.error)
        return result.data

    def load(self) -> list[Frame]:
        """
        Fetch the snapshot, replay buffered events and become POPULATED.

        Raises:
            LookupError: The snapshot query failed (view stays LOADING)
        """
        messages = self.fetch_snapshot()
        attachments = self._attachments_for([message.id for message in messages])

        self.messages = []
        self._keys = []
        for message in messages:
            row = row_for(message)
            row["attachments"] = attachments.get(str(message.id), [])
            self._place(row)

        self.state = ViewState.POPULATED
        buffered, self._buffer = self._buffer, []
        for event in buffered:
            self._apply(event)

        users = self.user_cache.resolve(row["author_id"] for row in self.messages)
        logger.debug(
            f"Loaded {len(self.messages)} messages for {self.table} {self.conversation_id}"
        )
        return [("users", users), ("snapshot", list(self.messages))]

    def reconnect(self) -> None:
        """Forget every row; the next load() fetches a fresh snapshot."""
        self.state = ViewState.LOADING
        self.messages = []
        self._keys = []
        self._buffer = []

    # =========================================================================
    # Reconciliation
    # =========================================================================

    def apply(self, event: ChangeEvent) -> list[Frame]:
        """Reconcile a translated feed event; buffered while LOADING."""
        if self.state is ViewState.LOADING:
            self._buffer.append(event)
            return []
        return self._apply(event)

    def _apply(self, event: ChangeEvent) -> list[Frame]:
        if event.table != self.table:
            return []
        if event.event_type == INSERT:
            return self._insert(event.new)
        if event.event_type == UPDATE:
            return self._update(event.new)
        if event.event_type == DELETE:
            return self._delete(event.old)
        return []

    def _insert(self, row: dict[str, Any]) -> list[Frame]:
        if not self.accepts(row) or self.index_of(row["id"]) is not None:
            return []

        frames: list[Frame] = []
        missing = self.user_cache.missing([row.get("author_id")])
        if missing:
            frames.append(("users", self.user_cache.resolve(missing)))

        row = dict(row)
        row["attachments"] = self._attachments_for([row["id"]]).get(str(row["id"]), [])
        self._place(row)
        frames.append(("insert", row))
        return frames

    def _update(self, row: dict[str, Any]) -> list[Frame]:
        position = self.index_of(row.get("id"))
        if position is None:
            return []
        updated = {**row, "attachments": self.messages[position].get("attachments", [])}
        self.messages[position] = updated
        return [("update", updated)]

    def _delete(self, row: dict[str, Any]) -> list[Frame]:
        position = self.index_of(row.get("id"))
        if position is None:
            return []
        removed = self.messages.pop(position)
        del self._keys[position]
        return [("delete", {"id": removed["id"]})]

    # =========================================================================
    # Helpers
    # =========================================================================

    def index_of(self, message_id) -> int | None:
        if message_id is None:
            return None
        message_id = str(message_id)
        for position, row in enumerate(self.messages):
            if str(row["id"]) == message_id:
                return position
        return None

    def _place(self, row: dict[str, Any]) -> None:
        key = sort_key(row)
        position = bisect.bisect_right(self._keys, key)
        self._keys.insert(position, key)
        self.messages.insert(position, row)

    def _attachments_for(self, message_ids: list) -> dict[str, list[dict]]:
        result = AttachmentService.get_attachments_for_messages(
            self.message_model, message_ids
        )
        if not result.success:
            return {}
        return {
            message_id: AttachmentSerializer(attachments, many=True).data
            for message_id, attachments in result.data.items()
        }


class ThreadView(ConversationView):
    """Every reply of one thread root, oldest first."""

    def __init__(self, message_service, user, parent_id, user_cache=None):
        super().__init__(message_service, user, parent_id, user_cache=user_cache, limit=0)
        self.parent_id = str(parent_id)

    def filters(self) -> list[str]:
        return [f"parent_id=eq.{self.parent_id}"]

    def accepts(self, row: dict[str, Any]) -> bool:
        return str(row.get("parent_id")) == self.parent_id

    def fetch_snapshot(self) -> list:
        result = self.message_service.get_thread_messages(self.user, self.parent_id)
        if not result.success:
            raise LookupError(result.error)
        return result.data


class PresenceMap:
    """
    ``user id -> presence`` for a set of watched users.

    Users without a presence row read as offline.
    """

    def __init__(self, user_ids: Iterable):
        self.user_ids = list(dict.fromkeys(str(user_id) for user_id in user_ids if user_id))
        self.statuses: dict[str, dict[str, Any]] = {}

    def filters(self) -> list[str]:
        return [f"user_id=eq.{user_id}" for user_id in self.user_ids]

    @staticmethod
    def _entry(row: dict[str, Any]) -> dict[str, Any]:
        return {
            "status": row.get("status", PresenceStatus.OFFLINE),
            "status_text": row.get("status_text", ""),
            "status_emoji": row.get("status_emoji", ""),
            "last_seen": row.get("last_seen"),
        }

    def load(self, rows: Iterable[dict[str, Any]]) -> dict[str, dict[str, Any]]:
        """Seed from presence rows (model field names); returns the full map."""
        self.statuses = {}
        for row in rows:
            user_id = str(row["user_id"])
            if user_id in self.user_ids:
                self.statuses[user_id] = self._entry(row)
        return self.snapshot()

    def get(self, user_id) -> dict[str, Any]:
        return self.statuses.get(
            str(user_id),
            {
                "status": PresenceStatus.OFFLINE.value,
                "status_text": "",
                "status_emoji": "",
                "last_seen": None,
            },
        )

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {user_id: self.get(user_id) for user_id in self.user_ids}

    def apply(self, event: ChangeEvent) -> dict[str, dict[str, Any]]:
        """
        Reconcile a translated presence event.

        Returns:
            {user id: presence} for the changed user, empty when unwatched
        """
        row = event.row
        user_id = str(row.get("user_id"))
        if user_id not in self.user_ids:
            return {}
        if event.event_type == DELETE:
            self.statuses.pop(user_id, None)
        else:
            self.statuses[user_id] = self._entry(row)
        return {user_id: self.get(user_id)}
