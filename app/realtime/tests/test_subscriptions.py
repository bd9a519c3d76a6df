"""
Tests for FeedSubscription and SubscriptionRegistry.

Events here are built by hand with storage-keyed rows, the way they come
off the channel layer.
"""

import uuid

import pytest

from core.exceptions import ConflictError, ValidationError
from realtime.changefeed import DELETE, INSERT, UPDATE, ChangeEvent
from realtime.filters import parse_filters
from realtime.subscriptions import FeedSubscription, SubscriptionRegistry

CHANNEL_A = str(uuid.uuid4())
CHANNEL_B = str(uuid.uuid4())


class Recorder:
    """Async callback collecting what it receives."""

    def __init__(self):
        self.calls = []

    async def __call__(self, subscription, event):
        self.calls.append((subscription.subscription_id, event))


def message_event(event_type=INSERT, channel_id=CHANNEL_A, **row):
    row = {"id": str(uuid.uuid4()), "channel_id": channel_id, "parent_id": None, **row}
    if event_type == DELETE:
        return ChangeEvent(event_type, "messages", new={}, old=row)
    return ChangeEvent(event_type, "messages", new=row, old={})


def subscription(subscription_id="s1", filters=(f"channel_id=eq.{CHANNEL_A}",), **kwargs):
    recorder = kwargs.pop("recorder", None) or Recorder()
    return FeedSubscription(
        subscription_id=subscription_id,
        table="messages",
        filters=parse_filters("messages", list(filters)),
        on_insert=recorder,
        on_update=recorder,
        on_delete=recorder,
        **kwargs,
    )


class TestMount:
    def test_new_groups_returned_once(self):
        registry = SubscriptionRegistry()

        first = registry.mount(subscription("s1"))
        second = registry.mount(subscription("s2"))

        assert first == [f"feed.messages.channel_id.{CHANNEL_A}"]
        assert second == []
        assert len(registry) == 2

    def test_group_released_with_last_subscription(self):
        registry = SubscriptionRegistry()
        registry.mount(subscription("s1"))
        registry.mount(subscription("s2"))

        assert registry.unmount("s1") == []
        assert registry.unmount("s2") == [f"feed.messages.channel_id.{CHANNEL_A}"]
        assert registry.groups == set()

    def test_unknown_unmount_ignored(self):
        assert SubscriptionRegistry().unmount("nope") == []

    def test_duplicate_id_rejected(self):
        registry = SubscriptionRegistry()
        registry.mount(subscription("s1"))

        with pytest.raises(ConflictError) as excinfo:
            registry.mount(subscription("s1"))

        assert excinfo.value.error_code == "SUBSCRIPTION_EXISTS"

    def test_subscription_limit(self, monkeypatch):
        from realtime.constants import FEED_CONFIG

        monkeypatch.setattr(FEED_CONFIG, "MAX_SUBSCRIPTIONS_PER_CONNECTION", 1)
        registry = SubscriptionRegistry()
        registry.mount(subscription("s1"))

        with pytest.raises(ValidationError) as excinfo:
            registry.mount(subscription("s2"))

        assert excinfo.value.error_code == "TOO_MANY_SUBSCRIPTIONS"

    def test_clear_returns_every_group(self):
        registry = SubscriptionRegistry()
        registry.mount(subscription("s1"))
        registry.mount(subscription("s2", filters=[f"channel_id=eq.{CHANNEL_B}"]))

        groups = registry.clear()

        assert set(groups) == {
            f"feed.messages.channel_id.{CHANNEL_A}",
            f"feed.messages.channel_id.{CHANNEL_B}",
        }
        assert len(registry) == 0


class TestDispatch:
    async def test_matching_event_runs_callback_with_translated_rows(self, db):
        recorder = Recorder()
        registry = SubscriptionRegistry()
        registry.mount(subscription(recorder=recorder))
        author = str(uuid.uuid4())

        delivered = await registry.dispatch(message_event(user_id=author).to_dict())

        assert delivered == 1
        (subscription_id, event), = recorder.calls
        assert subscription_id == "s1"
        assert event.new["author_id"] == author
        assert "user_id" not in event.new

    async def test_non_matching_filter_ignored(self):
        recorder = Recorder()
        registry = SubscriptionRegistry()
        registry.mount(subscription(recorder=recorder))

        delivered = await registry.dispatch(message_event(channel_id=CHANNEL_B))

        assert delivered == 0
        assert recorder.calls == []

    async def test_or_filters_deliver_an_event_once(self, db):
        """
        A reply in channel A matches both channel_id=A and parent_id=root
        and arrives through both groups; the callback runs once.

        Why it matters: Clients would render the message twice.
        """
        root = str(uuid.uuid4())
        recorder = Recorder()
        registry = SubscriptionRegistry()
        groups = registry.mount(
            subscription(
                filters=[f"channel_id=eq.{CHANNEL_A}", f"parent_id=eq.{root}"],
                recorder=recorder,
            )
        )
        event = message_event(parent_id=root).to_dict()

        first = await registry.dispatch(event)
        second = await registry.dispatch(dict(event))

        assert len(groups) == 2
        assert (first, second) == (1, 0)
        assert len(recorder.calls) == 1

    async def test_empty_filter_never_fires(self):
        recorder = Recorder()
        registry = SubscriptionRegistry()

        groups = registry.mount(subscription(filters=[""], recorder=recorder))
        delivered = await registry.dispatch(message_event())

        assert groups == []
        assert "s1" in registry
        assert delivered == 0

    async def test_event_type_selection(self, db):
        recorder = Recorder()
        registry = SubscriptionRegistry()
        registry.mount(subscription(recorder=recorder, events=frozenset({UPDATE})))

        await registry.dispatch(message_event(INSERT))
        await registry.dispatch(message_event(UPDATE))
        await registry.dispatch(message_event(DELETE))

        assert [event.event_type for _, event in recorder.calls] == [UPDATE]

    async def test_delete_matched_on_old_row(self, db):
        recorder = Recorder()
        registry = SubscriptionRegistry()
        registry.mount(subscription(recorder=recorder))

        delivered = await registry.dispatch(message_event(DELETE))

        assert delivered == 1
        assert recorder.calls[0][1].new == {}

    async def test_missing_callback_skipped(self):
        recorder = Recorder()
        registry = SubscriptionRegistry()
        registry.mount(
            FeedSubscription(
                subscription_id="inserts-only",
                table="messages",
                filters=parse_filters("messages", f"channel_id=eq.{CHANNEL_A}"),
                on_insert=recorder,
            )
        )

        assert await registry.dispatch(message_event(UPDATE)) == 0

    async def test_dedupe_window_is_bounded(self, db):
        registry = SubscriptionRegistry(dedupe_window=2)
        registry.mount(subscription())
        first = message_event()

        await registry.dispatch(first)
        await registry.dispatch(message_event())
        await registry.dispatch(message_event())

        # The first id fell out of the window
        assert await registry.dispatch(first) == 1
