"""
Tests for change feed publication.

These tests verify:
- Event shapes for INSERT, UPDATE and DELETE
- Routing to one group per routed column
- Publication only after commit, nothing after rollback
- Row serialization and translation to model field names
"""

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import transaction

from chat.models import Message
from chat.services import ChannelMessageService
from chat.tests.factories import MessageFactory, PresenceFactory
from realtime.changefeed import (
    DELETE,
    INSERT,
    UPDATE,
    ChangeEvent,
    build_event,
    notify_saved,
    publish,
    routes_for,
    row_for,
    serialize_row,
    translate_row,
)


def sent_groups(layer) -> list[str]:
    return [call.args[0] for call in layer.group_send.await_args_list]


def sent_events(layer) -> list[dict]:
    return [call.args[1]["event"] for call in layer.group_send.await_args_list]


class TestBuildEvent:
    def test_insert_carries_new_row(self, channel):
        message = MessageFactory(channel=channel, content="hello")

        event = build_event(INSERT, message)

        assert event.table == "messages"
        assert event.old == {}
        assert event.new["id"] == str(message.id)
        assert event.new["channel_id"] == str(channel.id)
        assert event.new["user_id"] == str(message.author_id)
        assert event.new["content"] == "hello"
        assert event.schema == "public"

    def test_update_carries_primary_key_as_old(self, channel):
        message = MessageFactory(channel=channel)

        event = build_event(UPDATE, message)

        assert event.old == {"id": str(message.id)}
        assert event.row is event.new

    def test_delete_carries_full_old_row(self, channel):
        message = MessageFactory(channel=channel)

        event = build_event(DELETE, message)

        assert event.new == {}
        assert event.old["channel_id"] == str(channel.id)
        assert event.row is event.old

    def test_event_survives_dict_round_trip(self, channel):
        event = build_event(INSERT, MessageFactory(channel=channel))

        assert ChangeEvent.from_dict(event.to_dict()) == event


class TestRouting:
    def test_top_level_message_routes_to_channel(self, channel):
        event = build_event(INSERT, MessageFactory(channel=channel))

        assert routes_for(event) == [f"feed.messages.channel_id.{channel.id}"]

    def test_reply_routes_to_channel_and_thread(self, channel):
        root = MessageFactory(channel=channel)
        event = build_event(INSERT, MessageFactory(channel=channel, parent=root))

        assert routes_for(event) == [
            f"feed.messages.channel_id.{channel.id}",
            f"feed.messages.parent_id.{root.id}",
        ]

    def test_direct_chat_routes_to_both_participants(self, direct_chat):
        event = build_event(INSERT, direct_chat)

        assert routes_for(event) == [
            f"feed.direct_chats.workspace_id.{direct_chat.workspace_id}",
            f"feed.direct_chats.user1_id.{direct_chat.user1_id}",
            f"feed.direct_chats.user2_id.{direct_chat.user2_id}",
        ]

    def test_unrouted_table(self):
        assert routes_for(ChangeEvent(INSERT, "message_reactions", new={"id": "x"})) == []


class TestPublication:
    def test_publishes_after_commit(self, channel, feed_layer, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            message = MessageFactory(channel=channel)

        assert len(callbacks) == 1
        assert sent_groups(feed_layer) == [f"feed.messages.channel_id.{channel.id}"]
        payload = feed_layer.group_send.await_args.args[1]
        assert payload["type"] == "feed.event"
        assert payload["event"]["event_type"] == INSERT
        assert payload["event"]["new"]["id"] == str(message.id)
        assert payload["event"]["commit_timestamp"].endswith("Z")

    def test_nothing_before_commit(self, channel, feed_layer, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            MessageFactory(channel=channel)

        assert len(callbacks) == 1
        feed_layer.group_send.assert_not_awaited()

    def test_rollback_publishes_nothing(
        self, channel, feed_layer, django_capture_on_commit_callbacks
    ):
        """
        A write inside a rolled back transaction never reaches subscribers.

        Why it matters: Clients would render messages that do not exist.
        """
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(RuntimeError):
                with transaction.atomic():
                    MessageFactory(channel=channel)
                    raise RuntimeError("abort")

        assert callbacks == []
        feed_layer.group_send.assert_not_awaited()
        assert not Message.objects.exists()

    def test_update_and_delete_published(
        self, channel, feed_layer, django_capture_on_commit_callbacks
    ):
        message = MessageFactory(channel=channel)

        with django_capture_on_commit_callbacks(execute=True):
            message.content = "edited"
            message.save()
            message.delete()

        events = sent_events(feed_layer)
        assert [event["event_type"] for event in events] == [UPDATE, DELETE]
        assert events[0]["new"]["content"] == "edited"
        assert events[1]["old"]["content"] == "edited"

    def test_queryset_update_needs_notify_saved(
        self, channel, feed_layer, django_capture_on_commit_callbacks
    ):
        root = MessageFactory(channel=channel)

        with django_capture_on_commit_callbacks(execute=True) as silent:
            Message.objects.filter(id=root.id).update(reply_count=3)
        with django_capture_on_commit_callbacks(execute=True):
            root.refresh_from_db()
            notify_saved(root)

        assert silent == []
        (event,) = sent_events(feed_layer)
        assert event["event_type"] == UPDATE
        assert event["new"]["reply_count"] == 3

    def test_service_reply_publishes_reply_and_root(
        self, channel, owner, feed_layer, django_capture_on_commit_callbacks
    ):
        root = MessageFactory(channel=channel, author=owner)

        with django_capture_on_commit_callbacks(execute=True):
            ChannelMessageService.create_thread_reply(owner, root.id, "in thread")

        events = sent_events(feed_layer)
        inserts = [event for event in events if event["event_type"] == INSERT]
        updates = [event for event in events if event["event_type"] == UPDATE]
        assert inserts[0]["new"]["parent_id"] == str(root.id)
        assert updates[-1]["new"]["id"] == str(root.id)
        assert updates[-1]["new"]["reply_count"] == 1

    def test_no_channel_layer(self, channel):
        from unittest.mock import patch

        event = build_event(INSERT, MessageFactory(channel=channel))

        with patch("realtime.changefeed.get_channel_layer", return_value=None):
            assert publish(event) == 0


class TestRows:
    def test_translate_renames_storage_columns(self, channel):
        message = MessageFactory(channel=channel)

        row = translate_row("messages", serialize_row(message))

        assert row["author_id"] == str(message.author_id)
        assert "user_id" not in row
        assert row == row_for(message)

    def test_translate_drops_unknown_columns(self):
        row = translate_row("messages", {"id": "1", "not_a_column": "x"})

        assert row == {"id": "1"}

    def test_translate_empty_row(self):
        assert translate_row("messages", {}) == {}

    def test_datetimes_serialized_as_iso_strings(self, owner):
        presence = PresenceFactory(user=owner)

        row = serialize_row(presence)

        assert isinstance(row["last_seen"], str)
        assert row["user_id"] == str(owner.id)

    def test_file_field_serialized_as_storage_key(self, channel, owner):
        message = ChannelMessageService.create_message(
            owner,
            channel.id,
            "",
            files=[SimpleUploadedFile("a.txt", b"abc", content_type="text/plain")],
        ).data
        attachment = message.attachments.get()

        row = serialize_row(attachment)

        assert row["file"] == attachment.storage_key
        assert row["message_id"] == str(message.id)
        assert row["direct_message_id"] is None
