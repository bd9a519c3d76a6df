"""
WebSocket consumers for the realtime layer.

Consumers:
    ChangeFeedConsumer (ws/realtime/): generic change feed subscriptions;
        also marks the user online on connect and offline when their last
        connection closes
    ConversationConsumer (ws/conversations/<kind>/<id>/ and
        .../threads/<parent_id>/): a synchronized conversation or thread view
    PresenceConsumer (ws/presence/): presence of a set of watched users

Authentication:
    Users are authenticated by JWTAuthMiddleware (token in ?token= or the
    "jwt" subprotocol), which attaches the user to self.scope["user"].

Close codes:
    4001: Not authenticated
    4003: No access to the conversation
    4004: Conversation or thread not found

Channel layer:
    Feed events arrive as {"type": "feed.event", "event": {...}} on the
    groups the connection joined and are handled by feed_event().
"""

from __future__ import annotations

import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from chat.services import MESSAGE_SERVICES, PresenceService
from core.exceptions import (
    BaseApplicationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from realtime.authorization import authorize_filters, resolve_conversation
from realtime.changefeed import EVENT_TYPES, row_for
from realtime.filters import parse_filters, validate_table
from realtime.subscriptions import FeedSubscription, SubscriptionRegistry
from realtime.sync import ConversationView, PresenceMap, ThreadView
from realtime.user_cache import UserCache

logger = logging.getLogger(__name__)

CLOSE_UNAUTHENTICATED = 4001
CLOSE_FORBIDDEN = 4003
CLOSE_NOT_FOUND = 4004

JWT_SUBPROTOCOL = "jwt"


class FeedConsumerMixin:
    """
    Shared connection handling.

    Keeps a SubscriptionRegistry per connection and joins/leaves channel
    layer groups as subscriptions come and go.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.registry = SubscriptionRegistry()

    @property
    def user(self):
        return self.scope.get("user")

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user and self.user.is_authenticated)

    async def accept_connection(self):
        # Echo the subprotocol the token arrived with
        subprotocol = (
            JWT_SUBPROTOCOL if JWT_SUBPROTOCOL in self.scope.get("subprotocols", []) else None
        )
        await self.accept(subprotocol=subprotocol)

    async def mount(self, subscription: FeedSubscription) -> None:
        for group in self.registry.mount(subscription):
            await self.channel_layer.group_add(group, self.channel_name)

    async def unmount(self, subscription_id: str) -> None:
        for group in self.registry.unmount(subscription_id):
            await self.channel_layer.group_discard(group, self.channel_name)

    async def leave_all_groups(self) -> None:
        for group in self.registry.clear():
            await self.channel_layer.group_discard(group, self.channel_name)

    async def feed_event(self, message):
        """Handle feed.event messages from the channel layer."""
        await self.registry.dispatch(message["event"])

    async def send_error(self, error: BaseApplicationError, **extra):
        await self.send_json({"type": "error", **extra, **error.to_dict()})


class ChangeFeedConsumer(FeedConsumerMixin, AsyncJsonWebsocketConsumer):
    """
    Generic change feed.

    Message Types (from client):
        {"type": "subscribe", "id": "s1", "table": "messages",
         "filter": "channel_id=eq.<uuid>"}
        {"type": "subscribe", "id": "s2", "table": "presence",
         "filters": ["user_id=eq.<a>", "user_id=eq.<b>"],
         "events": ["UPDATE"]}
        {"type": "unsubscribe", "id": "s1"}
        {"type": "heartbeat"}

    Message Types (to client):
        subscribed: {"type": "subscribed", "id": "s1", "active": true}
        change: {"type": "change", "id": "s1", "event": {...}} with rows
            keyed by model field names
        unsubscribed / heartbeat / error
    """

    async def connect(self):
        if not self.is_authenticated:
            logger.warning("Rejected unauthenticated change feed connection")
            await self.close(code=CLOSE_UNAUTHENTICATED)
            return

        await self.accept_connection()
        await database_sync_to_async(PresenceService.connect)(self.user)
        logger.info(f"User {self.user.id} connected to the change feed")

    async def disconnect(self, close_code):
        await self.leave_all_groups()
        if self.is_authenticated:
            await database_sync_to_async(PresenceService.disconnect)(self.user)
            logger.info(f"User {self.user.id} disconnected from the change feed")

    async def receive_json(self, content, **kwargs):
        message_type = content.get("type")

        if message_type == "subscribe":
            await self._handle_subscribe(content)
        elif message_type == "unsubscribe":
            subscription_id = str(content.get("id", ""))
            await self.unmount(subscription_id)
            await self.send_json({"type": "unsubscribed", "id": subscription_id})
        elif message_type == "heartbeat":
            await database_sync_to_async(PresenceService.heartbeat)(self.user)
            await self.send_json({"type": "heartbeat"})
        else:
            await self.send_json(
                {
                    "type": "error",
                    "error": f"Unknown message type: {message_type}",
                    "error_code": "UNKNOWN_MESSAGE_TYPE",
                }
            )

    async def _handle_subscribe(self, content):
        subscription_id = str(content.get("id") or "")
        try:
            if not subscription_id:
                raise ValidationError("Subscription id is required")
            table = validate_table(content.get("table"))
            filters = parse_filters(table, content.get("filters", content.get("filter")))
            events = self._parse_events(content.get("events"))
            await database_sync_to_async(authorize_filters)(self.user, filters)

            await self.mount(
                FeedSubscription(
                    subscription_id=subscription_id,
                    table=table,
                    filters=filters,
                    on_insert=self._forward,
                    on_update=self._forward,
                    on_delete=self._forward,
                    events=events,
                )
            )
        except BaseApplicationError as e:
            await self.send_error(e, id=subscription_id)
            return

        await self.send_json(
            {
                "type": "subscribed",
                "id": subscription_id,
                "active": bool(filters),
            }
        )

    @staticmethod
    def _parse_events(events) -> frozenset[str]:
        if not events:
            return frozenset(EVENT_TYPES)
        if isinstance(events, str):
            events = [events]
        requested = frozenset(str(event).upper() for event in events)
        unknown = requested - frozenset(EVENT_TYPES)
        if unknown:
            raise ValidationError(
                "Unknown event type",
                error_code="INVALID_EVENT_TYPE",
                details={"events": sorted(unknown)},
            )
        return requested

    async def _forward(self, subscription, event):
        await self.send_json(
            {
                "type": "change",
                "id": subscription.subscription_id,
                "event": event.to_dict(),
            }
        )


class ConversationConsumer(FeedConsumerMixin, AsyncJsonWebsocketConsumer):
    """
    Synchronized view of a conversation or thread.

    Message Types (to client):
        users: {"type": "users", "users": {id: summary}} before rows that
            reference them
        snapshot: {"type": "snapshot", "messages": [...]}
        insert / update: {"type": ..., "message": {...}}
        delete: {"type": "delete", "message": {"id": ...}}

    Message Types (from client):
        {"type": "resync"} re-runs the snapshot (after a reconnect)
    """

    user_cache_class = UserCache

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.view: ConversationView | None = None

    async def connect(self):
        route = self.scope["url_route"]["kwargs"]
        kind = route["kind"]
        conversation_id = route["conversation_id"]
        parent_id = route.get("parent_id")

        if not self.is_authenticated:
            logger.warning(f"Rejected unauthenticated connection to {kind} {conversation_id}")
            await self.close(code=CLOSE_UNAUTHENTICATED)
            return

        try:
            await database_sync_to_async(resolve_conversation)(
                self.user, kind, conversation_id
            )
            if parent_id is not None:
                await database_sync_to_async(self._check_thread_root)(
                    kind, conversation_id, parent_id
                )
        except NotFoundError:
            await self.close(code=CLOSE_NOT_FOUND)
            return
        except PermissionDeniedError:
            logger.warning(f"User {self.user.id} may not follow {kind} {conversation_id}")
            await self.close(code=CLOSE_FORBIDDEN)
            return

        service = MESSAGE_SERVICES[kind]
        cache = self.user_cache_class()
        if parent_id is not None:
            self.view = ThreadView(service, self.user, parent_id, user_cache=cache)
        else:
            self.view = ConversationView(service, self.user, conversation_id, user_cache=cache)

        # Join before loading so nothing committed during the snapshot is missed
        await self.mount(
            FeedSubscription(
                subscription_id="view",
                table=self.view.table,
                filters=parse_filters(self.view.table, self.view.filters()),
                on_insert=self._reconcile,
                on_update=self._reconcile,
                on_delete=self._reconcile,
            )
        )
        await self.accept_connection()
        await self._load()

    def _check_thread_root(self, kind, conversation_id, parent_id):
        model = MESSAGE_SERVICES[kind].message_model
        root = model.objects.filter(id=parent_id).first()
        if root is None or str(root.conversation_id) != str(conversation_id):
            raise NotFoundError("Thread not found", error_code="MESSAGE_NOT_FOUND")

    async def disconnect(self, close_code):
        await self.leave_all_groups()
        self.view = None

    async def receive_json(self, content, **kwargs):
        if content.get("type") == "resync" and self.view is not None:
            self.view.reconnect()
            await self._load()
        else:
            await self.send_json(
                {
                    "type": "error",
                    "error": f"Unknown message type: {content.get('type')}",
                    "error_code": "UNKNOWN_MESSAGE_TYPE",
                }
            )

    async def _load(self):
        try:
            frames = await database_sync_to_async(self.view.load)()
        except LookupError as e:
            logger.warning(f"Snapshot failed for user {self.user.id}: {e}")
            await self.send_json(
                {"type": "error", "error": str(e), "error_code": "SNAPSHOT_FAILED"}
            )
            return
        await self._send_frames(frames)

    async def _reconcile(self, subscription, event):
        view = self.view
        if view is None:
            return
        frames = await database_sync_to_async(view.apply)(event)
        # A resync or disconnect replaced the view meanwhile
        if view is self.view:
            await self._send_frames(frames)

    async def _send_frames(self, frames):
        for kind, payload in frames:
            if kind == "users":
                if payload:
                    await self.send_json({"type": "users", "users": payload})
            elif kind == "snapshot":
                await self.send_json({"type": "snapshot", "messages": payload})
            else:
                await self.send_json({"type": kind, "message": payload})


class PresenceConsumer(FeedConsumerMixin, AsyncJsonWebsocketConsumer):
    """
    Presence of watched users.

    Message Types (from client):
        {"type": "watch", "user_ids": [...]} replaces the watched set

    Message Types (to client):
        presence: {"type": "presence", "presences": {user id: {...}}}
            full map after watch, changed users afterwards
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.presence_map: PresenceMap | None = None

    async def connect(self):
        if not self.is_authenticated:
            await self.close(code=CLOSE_UNAUTHENTICATED)
            return
        await self.accept_connection()

    async def disconnect(self, close_code):
        await self.leave_all_groups()

    async def receive_json(self, content, **kwargs):
        if content.get("type") != "watch":
            await self.send_json(
                {
                    "type": "error",
                    "error": f"Unknown message type: {content.get('type')}",
                    "error_code": "UNKNOWN_MESSAGE_TYPE",
                }
            )
            return

        presence_map = PresenceMap(content.get("user_ids") or [])
        try:
            filters = parse_filters("presence", presence_map.filters())
            await database_sync_to_async(authorize_filters)(self.user, filters)
        except BaseApplicationError as e:
            await self.send_error(e)
            return

        await self.leave_all_groups()
        self.presence_map = presence_map
        await self.mount(
            FeedSubscription(
                subscription_id="presence",
                table="presence",
                filters=filters,
                on_insert=self._reconcile,
                on_update=self._reconcile,
                on_delete=self._reconcile,
            )
        )

        rows = await database_sync_to_async(self._load_rows)(presence_map.user_ids)
        await self.send_json({"type": "presence", "presences": presence_map.load(rows)})

    def _load_rows(self, user_ids):
        result = PresenceService.get_presences(self.user, user_ids)
        if not result.success:
            return []
        return [row_for(presence) for presence in result.data]

    async def _reconcile(self, subscription, event):
        if self.presence_map is None:
            return
        changed = self.presence_map.apply(event)
        if changed:
            await self.send_json({"type": "presence", "presences": changed})
