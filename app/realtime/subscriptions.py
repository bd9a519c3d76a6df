"""
Change feed subscriptions of one connection.

A FeedSubscription binds a table, a list of equality filters (OR) and the
callbacks to run for inserts, updates and deletes. The SubscriptionRegistry
of a connection:

- tracks which feed groups the connection must be in (reference counted,
  a group shared by two subscriptions is joined once)
- routes every received event to the subscriptions whose filters match
- drops copies of an event that arrive through a second group, remembering
  the last DEDUPE_WINDOW event ids

A subscription without filters is kept (so it can be unsubscribed) but
joins no group and never fires.
"""

from __future__ import annotations

import logging
from collections import Counter, OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from core.exceptions import ConflictError, ValidationError
from realtime.changefeed import DELETE, EVENT_TYPES, INSERT, UPDATE, ChangeEvent
from realtime.constants import FEED_CONFIG
from realtime.filters import EqualityFilter

logger = logging.getLogger(__name__)

Callback = Callable[["FeedSubscription", ChangeEvent], Awaitable[Any]]


@dataclass
class FeedSubscription:
    """
    One subscription.

    Callbacks receive the subscription and the event with rows translated
    to model field names.
    """

    subscription_id: str
    table: str
    filters: list[EqualityFilter]
    on_insert: Callback | None = None
    on_update: Callback | None = None
    on_delete: Callback | None = None
    events: frozenset[str] = field(default_factory=lambda: frozenset(EVENT_TYPES))

    @property
    def active(self) -> bool:
        return bool(self.filters)

    @property
    def groups(self) -> set[str]:
        return {equality.group_name for equality in self.filters}

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table or event.event_type not in self.events:
            return False
        row = event.row
        return any(equality.matches(row) for equality in self.filters)

    def callback_for(self, event_type: str) -> Callback | None:
        return {
            INSERT: self.on_insert,
            UPDATE: self.on_update,
            DELETE: self.on_delete,
        }.get(event_type)


class SubscriptionRegistry:
    """
    Subscriptions of one connection.

    Usage:
        registry = SubscriptionRegistry()
        for group in registry.mount(subscription):
            await channel_layer.group_add(group, channel_name)

        # channel layer handler
        await registry.dispatch(message["event"])
    """

    def __init__(self, dedupe_window: int = FEED_CONFIG.DEDUPE_WINDOW):
        self._subscriptions: dict[str, FeedSubscription] = {}
        self._group_refs: Counter[str] = Counter()
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._dedupe_window = dedupe_window

    def __contains__(self, subscription_id: str) -> bool:
        return subscription_id in self._subscriptions

    def __len__(self) -> int:
        return len(self._subscriptions)

    @property
    def groups(self) -> set[str]:
        return set(self._group_refs)

    def mount(self, subscription: FeedSubscription) -> list[str]:
        """
        Register a subscription.

        Returns:
            Groups the connection must join (not yet joined by another
            subscription)

        Raises:
            ConflictError: The subscription id is already in use
            ValidationError: Too many subscriptions or filters
        """
        if subscription.subscription_id in self._subscriptions:
            raise ConflictError(
                "Subscription id already in use",
                error_code="SUBSCRIPTION_EXISTS",
                details={"id": subscription.subscription_id},
            )
        if len(self._subscriptions) >= FEED_CONFIG.MAX_SUBSCRIPTIONS_PER_CONNECTION:
            raise ValidationError(
                "Too many subscriptions on this connection",
                error_code="TOO_MANY_SUBSCRIPTIONS",
            )
        if len(subscription.filters) > FEED_CONFIG.MAX_FILTERS_PER_SUBSCRIPTION:
            raise ValidationError(
                "Too many filters in one subscription",
                error_code="TOO_MANY_FILTERS",
            )

        self._subscriptions[subscription.subscription_id] = subscription
        new_groups = []
        for group in sorted(subscription.groups):
            if not self._group_refs[group]:
                new_groups.append(group)
            self._group_refs[group] += 1
        return new_groups

    def unmount(self, subscription_id: str) -> list[str]:
        """
        Remove a subscription. Unknown ids are ignored.

        Returns:
            Groups no other subscription needs any more
        """
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is None:
            return []

        released = []
        for group in sorted(subscription.groups):
            self._group_refs[group] -= 1
            if self._group_refs[group] <= 0:
                del self._group_refs[group]
                released.append(group)
        return released

    def clear(self) -> list[str]:
        """Remove every subscription; returns every joined group."""
        groups = sorted(self._group_refs)
        self._subscriptions.clear()
        self._group_refs.clear()
        return groups

    def _first_sighting(self, event_id: str) -> bool:
        if event_id in self._seen:
            return False
        self._seen[event_id] = None
        while len(self._seen) > self._dedupe_window:
            self._seen.popitem(last=False)
        return True

    async def dispatch(self, payload: dict[str, Any] | ChangeEvent) -> int:
        """
        Run the callbacks of every matching subscription once per event.

        Returns:
            Number of callbacks run
        """
        event = payload if isinstance(payload, ChangeEvent) else ChangeEvent.from_dict(payload)
        if not self._first_sighting(event.event_id):
            return 0

        translated = None
        delivered = 0
        for subscription in list(self._subscriptions.values()):
            if not subscription.active or not subscription.matches(event):
                continue
            callback = subscription.callback_for(event.event_type)
            if callback is None:
                continue
            if translated is None:
                translated = event.translated()
            await callback(subscription, translated)
            delivered += 1

        if delivered:
            logger.debug(
                f"Delivered {event.event_type} on {event.table} to {delivered} subscriptions"
            )
        return delivered
