"""
Tests for the chat services.

Test Organization:
    - Each service has its own test class (or several)
    - Tests use descriptive names following: test_<scenario>_<expected_outcome>
"""

import uuid

import pytest

from chat.models import (
    Channel,
    ChannelMembership,
    DirectChat,
    DirectMessage,
    Message,
    MessageReaction,
)
from chat.services import (
    ChannelMessageService,
    ChannelService,
    DirectChatService,
    DirectMessageService,
    MessageSearchService,
)
from chat.tests.factories import DirectMessageFactory, MessageFactory
from workspaces.models import Visibility


# =============================================================================
# Channels
# =============================================================================


class TestChannelServiceCreate:
    """Tests for ChannelService.create_channel()."""

    def test_creator_becomes_member(self, workspace, owner):
        result = ChannelService.create_channel(workspace.id, owner, "random")

        assert result.success is True
        assert result.data.created_by == owner
        assert ChannelMembership.objects.filter(channel=result.data, user=owner).exists()

    def test_initial_members_must_belong_to_workspace(
        self, workspace, owner, member, outsider
    ):
        result = ChannelService.create_channel(
            workspace.id,
            owner,
            "ops",
            visibility=Visibility.PRIVATE,
            member_ids=[member.id, outsider.id],
        )

        assert result.success is True
        assert set(
            result.data.memberships.values_list("user_id", flat=True)
        ) == {owner.id, member.id}

    def test_duplicate_name_in_workspace_fails(self, workspace, owner, channel):
        result = ChannelService.create_channel(workspace.id, owner, channel.name)

        assert result.success is False
        assert result.error_code == "CHANNEL_NAME_TAKEN"

    def test_blank_name_fails(self, workspace, owner):
        result = ChannelService.create_channel(workspace.id, owner, "   ")

        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"

    def test_non_member_cannot_create(self, workspace, outsider):
        result = ChannelService.create_channel(workspace.id, outsider, "hack")

        assert result.success is False
        assert result.error_code == "NOT_MEMBER"

    def test_unknown_workspace_fails(self, owner):
        result = ChannelService.create_channel(uuid.uuid4(), owner, "nowhere")

        assert result.success is False
        assert result.error_code == "WORKSPACE_NOT_FOUND"


class TestChannelServiceAccess:
    """Tests for get_channel() and get_user_channels()."""

    def test_public_channel_listed_for_workspace_member(self, workspace, channel, member):
        """
        A public channel is listed for every workspace member, even without
        a channel membership row.

        Why it matters: Public channels are discoverable by the whole workspace.
        """
        result = ChannelService.get_user_channels(workspace.id, member)

        assert result.success is True
        assert channel in result.data

    def test_private_channel_hidden_from_non_members(
        self, workspace, private_channel, member, insider
    ):
        assert private_channel not in ChannelService.get_user_channels(
            workspace.id, member
        ).data
        assert private_channel in ChannelService.get_user_channels(
            workspace.id, insider
        ).data

    def test_get_private_channel_as_non_member_fails(self, private_channel, member):
        result = ChannelService.get_channel(private_channel.id, member)

        assert result.success is False
        assert result.error_code == "NOT_MEMBER"

    def test_get_unknown_channel_fails(self, member):
        result = ChannelService.get_channel(uuid.uuid4(), member)

        assert result.error_code == "CHANNEL_NOT_FOUND"

    def test_outsider_cannot_list_channels(self, workspace, channel, outsider):
        result = ChannelService.get_user_channels(workspace.id, outsider)

        assert result.success is False
        assert result.error_code == "NOT_MEMBER"


class TestChannelServiceMembership:
    """Tests for add_member(), remove_member() and delete_channel()."""

    def test_add_member_is_idempotent(self, channel, owner, member):
        first = ChannelService.add_member(channel.id, owner, member.id)
        second = ChannelService.add_member(channel.id, owner, member.id)

        assert first.success is True
        assert second.success is True
        assert ChannelMembership.objects.filter(channel=channel, user=member).count() == 1

    def test_add_outsider_fails(self, channel, owner, outsider):
        result = ChannelService.add_member(channel.id, owner, outsider.id)

        assert result.success is False
        assert result.error_code == "USER_NOT_IN_WORKSPACE"

    def test_non_member_cannot_add_to_private_channel(
        self, private_channel, member, insider
    ):
        result = ChannelService.add_member(private_channel.id, member, member.id)

        assert result.success is False
        assert result.error_code == "NOT_MEMBER"

    def test_member_can_leave(self, private_channel, insider):
        result = ChannelService.remove_member(private_channel.id, insider, insider.id)

        assert result.success is True
        assert not private_channel.is_member(insider)

    def test_only_creator_removes_others(self, private_channel, owner, insider, member):
        ChannelService.add_member(private_channel.id, insider, member.id)

        denied = ChannelService.remove_member(private_channel.id, insider, member.id)
        allowed = ChannelService.remove_member(private_channel.id, owner, member.id)

        assert denied.error_code == "PERMISSION_DENIED"
        assert allowed.success is True

    def test_remove_non_member_fails(self, channel, owner, member):
        result = ChannelService.remove_member(channel.id, owner, member.id)

        assert result.error_code == "MEMBERSHIP_NOT_FOUND"

    def test_delete_channel_cascades_messages(self, channel, owner):
        root = ChannelMessageService.create_message(owner, channel.id, "root").data
        ChannelMessageService.create_thread_reply(owner, root.id, "reply")

        result = ChannelService.delete_channel(channel.id, owner)

        assert result.success is True
        assert not Channel.objects.filter(id=channel.id).exists()
        assert Message.objects.count() == 0

    def test_delete_channel_by_other_member_fails(self, channel, member):
        result = ChannelService.delete_channel(channel.id, member)

        assert result.error_code == "PERMISSION_DENIED"


# =============================================================================
# Direct chats
# =============================================================================


class TestDirectChatService:
    """Tests for DirectChatService."""

    def test_same_chat_found_from_either_side(self, workspace, owner, member):
        """
        Creating a DM from either participant returns the same row.

        Why it matters: A pair has exactly one direct chat per workspace.
        """
        first = DirectChatService.create_direct_chat(workspace.id, owner, member.id)
        second = DirectChatService.create_direct_chat(workspace.id, member, owner.id)

        assert first.success is True
        assert second.success is True
        assert first.data.id == second.data.id
        assert DirectChat.objects.count() == 1

    def test_pair_stored_in_reverse_order_is_found(self, workspace, owner, member):
        low, high = sorted([owner, member], key=lambda u: str(u.id))
        legacy = DirectChat.objects.create(workspace=workspace, user1=high, user2=low)

        result = DirectChatService.create_direct_chat(workspace.id, low, high.id)

        assert result.data.id == legacy.id

    def test_uppercase_id_stored_in_canonical_order(self, workspace, owner, member):
        """
        An id spelled in uppercase is ordered like its lowercase form.

        Why it matters: Ordering by the raw string would store the pair
        reversed and break lookups by (user1, user2).
        """
        result = DirectChatService.create_direct_chat(
            workspace.id, owner, str(member.id).upper()
        )
        again = DirectChatService.create_direct_chat(workspace.id, member, owner.id)

        low, high = sorted([owner.id, member.id], key=str)
        assert (result.data.user1_id, result.data.user2_id) == (low, high)
        assert again.data.id == result.data.id
        assert DirectChat.objects.count() == 1

    def test_canonical_pair_normalizes_ids(self):
        first = uuid.UUID("f0000000-0000-4000-8000-000000000000")
        second = uuid.UUID("a0000000-0000-4000-8000-000000000000")

        assert DirectChat.canonical_pair(str(first).upper(), second) == (second, first)
        assert DirectChat.canonical_pair(second, str(first).upper()) == (second, first)

    def test_chat_with_self_is_allowed(self, workspace, owner):
        result = DirectChatService.create_direct_chat(workspace.id, owner, owner.id)

        assert result.success is True
        assert result.data.user1_id == result.data.user2_id == owner.id

    def test_other_user_must_be_workspace_member(self, workspace, owner, outsider):
        result = DirectChatService.create_direct_chat(workspace.id, owner, outsider.id)

        assert result.error_code == "USER_NOT_IN_WORKSPACE"

    def test_non_participant_cannot_read(self, direct_chat, insider):
        result = DirectChatService.get_direct_chat(direct_chat.id, insider)

        assert result.success is False
        assert result.error_code == "NOT_PARTICIPANT"

    def test_user_direct_chats_listed(self, workspace, direct_chat, member, insider):
        assert DirectChatService.get_user_direct_chats(workspace.id, member).data == [
            direct_chat
        ]
        assert DirectChatService.get_user_direct_chats(workspace.id, insider).data == []


# =============================================================================
# Messages
# =============================================================================


class TestMessageCreate:
    """Tests for create_message()."""

    def test_member_posts_in_public_channel(self, channel, member):
        result = ChannelMessageService.create_message(member, channel.id, "  hello  ")

        assert result.success is True
        assert result.data.content == "hello"
        assert result.data.author == member
        assert result.data.parent is None

    def test_empty_message_rejected(self, channel, owner):
        result = ChannelMessageService.create_message(owner, channel.id, "   ")

        assert result.success is False
        assert result.error_code == "EMPTY_CONTENT"

    def test_too_long_message_rejected(self, channel, owner):
        result = ChannelMessageService.create_message(owner, channel.id, "x" * 10001)

        assert result.error_code == "CONTENT_TOO_LONG"

    def test_non_member_cannot_post_in_private_channel(self, private_channel, member):
        result = ChannelMessageService.create_message(member, private_channel.id, "hi")

        assert result.error_code == "NOT_MEMBER"
        assert Message.objects.count() == 0

    def test_unknown_conversation(self, owner):
        channel_result = ChannelMessageService.create_message(owner, uuid.uuid4(), "hi")
        direct_result = DirectMessageService.create_message(owner, uuid.uuid4(), "hi")

        assert channel_result.error_code == "CHANNEL_NOT_FOUND"
        assert direct_result.error_code == "DIRECT_CHAT_NOT_FOUND"

    def test_direct_message_only_for_participants(self, direct_chat, member, insider):
        sent = DirectMessageService.create_message(member, direct_chat.id, "hey")
        denied = DirectMessageService.create_message(insider, direct_chat.id, "hey")

        assert sent.success is True
        assert isinstance(sent.data, DirectMessage)
        assert denied.error_code == "NOT_MEMBER"


class TestThreads:
    """Tests for create_thread_reply(), get_thread_messages() and reply_count."""

    def test_reply_count_matches_number_of_replies(self, channel, owner, member):
        """
        N replies leave reply_count == N on the root.

        Why it matters: Clients render the thread counter from reply_count.
        """
        root = ChannelMessageService.create_message(owner, channel.id, "root").data
        for index in range(3):
            ChannelMessageService.create_thread_reply(member, root.id, f"reply {index}")

        root.refresh_from_db()
        assert root.reply_count == 3
        assert root.replies.count() == 3

    def test_reply_to_reply_attaches_to_root(self, channel, owner):
        root = ChannelMessageService.create_message(owner, channel.id, "root").data
        reply = ChannelMessageService.create_thread_reply(owner, root.id, "first").data

        nested = ChannelMessageService.create_thread_reply(owner, reply.id, "nested")

        assert nested.data.parent_id == root.id
        root.refresh_from_db()
        reply.refresh_from_db()
        assert root.reply_count == 2
        assert reply.reply_count == 0

    def test_deleting_reply_decrements_count(self, channel, owner):
        root = ChannelMessageService.create_message(owner, channel.id, "root").data
        reply = ChannelMessageService.create_thread_reply(owner, root.id, "oops").data

        result = ChannelMessageService.delete_message(owner, reply.id)

        assert result.success is True
        root.refresh_from_db()
        assert root.reply_count == 0

    def test_deleting_root_cascades_replies(self, channel, owner, member):
        root = ChannelMessageService.create_message(owner, channel.id, "root").data
        ChannelMessageService.create_thread_reply(member, root.id, "reply")

        ChannelMessageService.delete_message(owner, root.id)

        assert Message.objects.count() == 0

    def test_thread_messages_oldest_first(self, channel, owner):
        root = ChannelMessageService.create_message(owner, channel.id, "root").data
        first = ChannelMessageService.create_thread_reply(owner, root.id, "one").data
        second = ChannelMessageService.create_thread_reply(owner, root.id, "two").data

        result = ChannelMessageService.get_thread_messages(owner, root.id)

        assert [m.id for m in result.data] == [first.id, second.id]

    def test_direct_message_threads(self, direct_chat, owner, member):
        root = DirectMessageService.create_message(owner, direct_chat.id, "root").data
        DirectMessageService.create_thread_reply(member, root.id, "reply")

        root.refresh_from_db()
        assert root.reply_count == 1

    def test_reply_to_unknown_message_fails(self, owner):
        result = ChannelMessageService.create_thread_reply(owner, uuid.uuid4(), "hi")

        assert result.error_code == "MESSAGE_NOT_FOUND"


class TestMessageRead:
    """Tests for get_messages()."""

    def test_returns_latest_top_level_messages_in_order(self, channel, owner):
        messages = [
            ChannelMessageService.create_message(owner, channel.id, f"m{i}").data
            for i in range(5)
        ]
        ChannelMessageService.create_thread_reply(owner, messages[0].id, "reply")

        result = ChannelMessageService.get_messages(owner, channel.id, limit=3)

        assert [m.content for m in result.data] == ["m2", "m3", "m4"]

    def test_limit_is_capped(self, channel, owner):
        for index in range(3):
            MessageFactory(channel=channel, author=owner, content=f"m{index}")

        result = ChannelMessageService.get_messages(owner, channel.id, limit=10_000)

        assert len(result.data) == 3

    def test_non_member_cannot_read_private_channel(self, private_channel, member):
        result = ChannelMessageService.get_messages(member, private_channel.id)

        assert result.error_code == "NOT_MEMBER"


class TestMessageEditDelete:
    """Tests for edit_message() and delete_message()."""

    def test_author_edits_message(self, channel, owner):
        message = MessageFactory(channel=channel, author=owner, content="draft")

        result = ChannelMessageService.edit_message(owner, message.id, "final")

        assert result.success is True
        message.refresh_from_db()
        assert message.content == "final"
        assert message.edited_at is not None

    def test_other_member_cannot_edit(self, channel, owner, member):
        message = MessageFactory(channel=channel, author=owner)

        result = ChannelMessageService.edit_message(member, message.id, "mine now")

        assert result.error_code == "NOT_AUTHOR"

    def test_other_member_cannot_delete(self, channel, owner, member):
        message = MessageFactory(channel=channel, author=owner)

        result = ChannelMessageService.delete_message(member, message.id)

        assert result.error_code == "NOT_AUTHOR"
        assert Message.objects.filter(id=message.id).exists()

    def test_edit_unknown_message(self, owner):
        result = ChannelMessageService.edit_message(owner, uuid.uuid4(), "x")

        assert result.error_code == "MESSAGE_NOT_FOUND"

    def test_delete_cascades_reactions(self, channel, owner):
        from chat.services import ReactionService

        message = MessageFactory(channel=channel, author=owner)
        ReactionService.add_reaction(owner, message.id, "👍")

        ChannelMessageService.delete_message(owner, message.id)

        assert MessageReaction.objects.count() == 0


# =============================================================================
# Search
# =============================================================================


class TestMessageSearch:
    """Tests for MessageSearchService.search()."""

    @pytest.fixture
    def corpus(self, channel, private_channel, direct_chat, owner, member):
        return {
            "public": MessageFactory(channel=channel, author=owner, content="Deploy today"),
            "private": MessageFactory(
                channel=private_channel, author=owner, content="deploy secrets"
            ),
            "direct": DirectMessageFactory(
                chat=direct_chat, author=member, content="did you DEPLOY?"
            ),
        }

    def test_case_insensitive_and_scoped_to_access(self, corpus, member):
        result = MessageSearchService.search(member, "deploy")

        assert result.success is True
        assert result.data["channel_messages"] == [corpus["public"]]
        assert result.data["direct_messages"] == [corpus["direct"]]

    def test_private_channel_member_sees_private_hits(self, corpus, insider):
        result = MessageSearchService.search(insider, "deploy")

        assert set(result.data["channel_messages"]) == {corpus["public"], corpus["private"]}
        assert result.data["direct_messages"] == []

    def test_short_query_rejected(self, member):
        result = MessageSearchService.search(member, "d")

        assert result.error_code == "QUERY_TOO_SHORT"

    def test_workspace_filter_requires_membership(self, workspace, outsider):
        result = MessageSearchService.search(outsider, "deploy", workspace_id=workspace.id)

        assert result.error_code == "NOT_MEMBER"
