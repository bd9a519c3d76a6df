"""
Serializers for chat API.

This module provides serializers for the chat system:
- Channel serializers (read, create, add member)
- Direct chat serializers (read, create)
- Message serializers (read, create, edit)
- Reaction, presence and search serializers

Serializer Hierarchy:
    ChannelSerializer: Channel with a computed membership flag
    ChannelCreateSerializer: Create request
    ChannelMemberSerializer: Add member request / membership result

    DirectChatSerializer: Direct chat with the other participant's id
    DirectChatCreateSerializer: Open a direct chat with a workspace member

    MessageSerializer: Channel or direct message with attachments
    MessageCreateSerializer: Text plus optional files (multipart)
    MessageEditSerializer: New content

    ReactionSerializer: Toggle request
    ReactionsSerializer: Reactions map of a message
    PresenceSerializer / PresenceUpdateSerializer / PresenceBulkSerializer

Design Decisions:
    - Read and write serializers are separate for clarity
    - Users are referenced by id; clients resolve them through the user
      batch endpoint and their cache
"""

from __future__ import annotations

from rest_framework import serializers

from chat.constants import ATTACHMENT_CONFIG, MESSAGE_CONFIG, PRESENCE_CONFIG
from chat.models import Channel, ChannelMembership, DirectChat, Presence, PresenceStatus
from media.serializers import AttachmentSerializer
from workspaces.models import Visibility


# =============================================================================
# Channel Serializers
# =============================================================================


class ChannelSerializer(serializers.ModelSerializer):
    """Channel with ``is_member`` for the requesting user."""

    workspace = serializers.UUIDField(source="workspace_id", read_only=True)
    created_by = serializers.UUIDField(source="created_by_id", read_only=True)
    is_member = serializers.SerializerMethodField()

    class Meta:
        model = Channel
        fields = [
            "id",
            "workspace",
            "name",
            "description",
            "visibility",
            "created_by",
            "is_member",
            "created_at",
        ]
        read_only_fields = fields

    def get_is_member(self, obj: Channel) -> bool:
        request = self.context.get("request")
        if request is None or not request.user.is_authenticated:
            return False
        return obj.is_member(request.user)


class ChannelCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=80)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    visibility = serializers.ChoiceField(
        choices=Visibility.choices,
        default=Visibility.PUBLIC,
    )
    member_ids = serializers.ListField(
        child=serializers.UUIDField(),
        required=False,
        default=list,
        max_length=500,
    )


class ChannelMemberSerializer(serializers.ModelSerializer):
    """Membership result; ``user_id`` is the only writable field."""

    channel = serializers.UUIDField(source="channel_id", read_only=True)
    user_id = serializers.UUIDField()

    class Meta:
        model = ChannelMembership
        fields = ["id", "channel", "user_id", "created_at"]
        read_only_fields = ["id", "channel", "created_at"]


# =============================================================================
# Direct Chat Serializers
# =============================================================================


class DirectChatSerializer(serializers.ModelSerializer):
    workspace = serializers.UUIDField(source="workspace_id", read_only=True)
    user1 = serializers.UUIDField(source="user1_id", read_only=True)
    user2 = serializers.UUIDField(source="user2_id", read_only=True)
    other_user = serializers.SerializerMethodField(
        help_text="Id of the participant who is not the requesting user"
    )

    class Meta:
        model = DirectChat
        fields = ["id", "workspace", "user1", "user2", "other_user", "created_at"]
        read_only_fields = fields

    def get_other_user(self, obj: DirectChat) -> str | None:
        request = self.context.get("request")
        if request is None:
            return None
        return str(obj.other_user_id(request.user))


class DirectChatCreateSerializer(serializers.Serializer):
    user_id = serializers.UUIDField(help_text="Workspace member to chat with")


# =============================================================================
# Message Serializers
# =============================================================================


class MessageSerializer(serializers.Serializer):
    """
    Channel or direct message.

    ``conversation_id`` is the channel id for channel messages and the
    direct chat id for direct messages; ``kind`` tells them apart.
    """

    id = serializers.UUIDField(read_only=True)
    kind = serializers.SerializerMethodField()
    conversation_id = serializers.UUIDField(read_only=True)
    author = serializers.UUIDField(source="author_id", read_only=True)
    content = serializers.CharField(read_only=True)
    parent_id = serializers.UUIDField(read_only=True, allow_null=True)
    reply_count = serializers.IntegerField(read_only=True)
    reactions = serializers.DictField(
        child=serializers.ListField(child=serializers.CharField()),
        read_only=True,
    )
    attachments = AttachmentSerializer(many=True, read_only=True)
    edited_at = serializers.DateTimeField(read_only=True, allow_null=True)
    created_at = serializers.DateTimeField(read_only=True)
    updated_at = serializers.DateTimeField(read_only=True)

    def get_kind(self, obj) -> str:
        return "channel" if obj.CONVERSATION_FIELD == "channel" else "direct"


class MessageCreateSerializer(serializers.Serializer):
    """Text plus up to MAX_ATTACHMENTS_PER_MESSAGE files."""

    content = serializers.CharField(
        required=False,
        allow_blank=True,
        default="",
        max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH,
        trim_whitespace=False,
    )
    files = serializers.ListField(
        child=serializers.FileField(),
        required=False,
        default=list,
        max_length=ATTACHMENT_CONFIG.MAX_ATTACHMENTS_PER_MESSAGE,
    )


class MessageEditSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=MESSAGE_CONFIG.MAX_CONTENT_LENGTH)


# =============================================================================
# Reaction Serializers
# =============================================================================


class ReactionSerializer(serializers.Serializer):
    emoji = serializers.CharField(max_length=32)


class ReactionsSerializer(serializers.Serializer):
    message_id = serializers.UUIDField()
    reactions = serializers.DictField(
        child=serializers.ListField(child=serializers.CharField())
    )
    added = serializers.BooleanField(required=False)


# =============================================================================
# Presence Serializers
# =============================================================================


class PresenceSerializer(serializers.ModelSerializer):
    user = serializers.UUIDField(source="user_id", read_only=True)

    class Meta:
        model = Presence
        fields = ["user", "status", "status_text", "status_emoji", "last_seen"]
        read_only_fields = fields


class PresenceUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=PresenceStatus.choices, required=False)
    status_text = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=PRESENCE_CONFIG.MAX_STATUS_TEXT_LENGTH,
    )
    status_emoji = serializers.CharField(required=False, allow_blank=True, max_length=32)


class PresenceBulkSerializer(serializers.Serializer):
    user_ids = serializers.ListField(
        child=serializers.UUIDField(),
        max_length=PRESENCE_CONFIG.MAX_BULK_USERS,
    )


# =============================================================================
# Search Serializers
# =============================================================================


class SearchResultSerializer(serializers.Serializer):
    channel_messages = MessageSerializer(many=True)
    direct_messages = MessageSerializer(many=True)


class SearchQuerySerializer(serializers.Serializer):
    """Query string of the search endpoint."""

    q = serializers.CharField(required=False, allow_blank=True, default="")
    workspace = serializers.UUIDField(required=False, allow_null=True, default=None)
    limit = serializers.IntegerField(
        required=False,
        allow_null=True,
        default=None,
        min_value=1,
        max_value=MESSAGE_CONFIG.SEARCH_MAX_LIMIT,
    )
