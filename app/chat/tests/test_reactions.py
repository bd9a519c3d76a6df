"""
Tests for ReactionService.

The reactions map on a message is a projection of the reaction rows:
emoji -> user ids in reaction order, never an empty list.
"""

import pytest

from authentication.tests.factories import UserFactory
from chat.models import MessageReaction
from chat.services import ReactionService
from chat.tests.factories import DirectMessageFactory, MessageFactory
from workspaces.models import WorkspaceMembership


@pytest.fixture
def message(channel, owner):
    return MessageFactory(channel=channel, author=owner, content="Ship it")


class TestToggleReaction:
    """Tests for toggle_reaction()."""

    def test_two_users_then_one_removes(self, message, owner, member):
        """
        👍 by X, 👍 by Y, then X toggles it off: only Y remains.

        Why it matters: The map is what every client renders.
        """
        ReactionService.toggle_reaction(owner, message.id, "👍")
        ReactionService.toggle_reaction(member, message.id, "👍")
        result = ReactionService.toggle_reaction(owner, message.id, "👍")

        assert result.success is True
        assert result.data["added"] is False
        assert result.data["reactions"] == {"👍": [str(member.id)]}
        message.refresh_from_db()
        assert message.reactions == {"👍": [str(member.id)]}

    def test_last_removal_drops_the_emoji_key(self, message, owner):
        ReactionService.toggle_reaction(owner, message.id, "🎉")
        result = ReactionService.toggle_reaction(owner, message.id, "🎉")

        assert result.data["reactions"] == {}
        message.refresh_from_db()
        assert message.reactions == {}

    def test_users_listed_in_reaction_order(self, message, owner, member, insider):
        for user in (insider, owner, member):
            ReactionService.toggle_reaction(user, message.id, "👀")

        message.refresh_from_db()
        assert message.reactions["👀"] == [str(insider.id), str(owner.id), str(member.id)]

    def test_toggle_respects_user_limit(self, message, owner):
        """
        A toggle past the per-user limit fails and stores nothing.

        Why it matters: A toggle reporting "added" without a row would
        desync every client's reaction map.
        """
        for emoji in ["1️⃣", "2️⃣", "3️⃣", "4️⃣", "5️⃣"]:
            assert ReactionService.toggle_reaction(owner, message.id, emoji).data["added"]

        result = ReactionService.toggle_reaction(owner, message.id, "6️⃣")

        assert result.success is False
        assert result.error_code == "MAX_REACTIONS_EXCEEDED"
        assert MessageReaction.objects.filter(message=message, user=owner).count() == 5
        message.refresh_from_db()
        assert "6️⃣" not in message.reactions

    def test_direct_message_reactions(self, direct_chat, owner):
        direct = DirectMessageFactory(chat=direct_chat, author=owner)

        result = ReactionService.toggle_reaction(owner, direct.id, "❤️", kind="direct")

        assert result.success is True
        assert result.data["added"] is True
        direct.refresh_from_db()
        assert direct.reactions == {"❤️": [str(owner.id)]}


class TestAddRemoveReaction:
    """Tests for add_reaction() and remove_reaction()."""

    def test_add_twice_is_a_no_op(self, message, owner):
        ReactionService.add_reaction(owner, message.id, "👍")
        result = ReactionService.add_reaction(owner, message.id, "👍")

        assert result.success is True
        assert MessageReaction.objects.filter(message=message).count() == 1
        assert result.data["reactions"] == {"👍": [str(owner.id)]}

    def test_remove_missing_is_a_no_op(self, message, owner):
        result = ReactionService.remove_reaction(owner, message.id, "👍")

        assert result.success is True
        assert result.data["reactions"] == {}

    def test_user_reaction_limit(self, message, owner):
        for emoji in ["1️⃣", "2️⃣", "3️⃣", "4️⃣", "5️⃣"]:
            assert ReactionService.add_reaction(owner, message.id, emoji).success

        result = ReactionService.add_reaction(owner, message.id, "6️⃣")

        assert result.success is False
        assert result.error_code == "MAX_REACTIONS_EXCEEDED"

    def test_distinct_emoji_limit(self, message, workspace, owner):
        users = [UserFactory() for _ in range(4)]
        for user in users:
            WorkspaceMembership.objects.create(workspace=workspace, user=user)
        emojis = [chr(0x1F600 + index) for index in range(20)]
        for index, emoji in enumerate(emojis):
            user = users[index // 5]
            assert ReactionService.add_reaction(user, message.id, emoji).success

        rejected = ReactionService.add_reaction(owner, message.id, chr(0x1F700))
        existing = ReactionService.add_reaction(owner, message.id, emojis[0])

        assert rejected.error_code == "MAX_EMOJIS_EXCEEDED"
        assert existing.success is True

    @pytest.mark.parametrize("emoji", ["", "   ", "x" * 9])
    def test_invalid_emoji(self, message, owner, emoji):
        result = ReactionService.add_reaction(owner, message.id, emoji)

        assert result.error_code == "INVALID_EMOJI"

    def test_reaction_requires_access(self, private_channel, owner, member):
        secret = MessageFactory(channel=private_channel, author=owner)

        result = ReactionService.toggle_reaction(member, secret.id, "👍")

        assert result.error_code == "NOT_MEMBER"

    def test_get_reactions(self, message, owner):
        ReactionService.add_reaction(owner, message.id, "👍")

        result = ReactionService.get_reactions(owner, message.id)

        assert result.data == {
            "message_id": str(message.id),
            "reactions": {"👍": [str(owner.id)]},
        }
