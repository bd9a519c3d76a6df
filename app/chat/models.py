"""
Chat system models.

This module defines the conversation store inside a workspace:
- Channels (public or private) with explicit membership
- Direct chats between two users, unique per workspace and pair
- Channel messages and direct messages with single-level threads
- Reactions, one row per (message, user, emoji)
- Presence, one row per user

Models:
    Channel: Named conversation inside a workspace
    ChannelMembership: User membership in a channel
    DirectChat: Conversation between two users inside a workspace
    Message: Message posted to a channel (table "messages")
    DirectMessage: Message posted to a direct chat (table "direct_messages")
    MessageReaction / DirectMessageReaction: Who reacted with what
    Presence: Online/away/offline status of a user

Design Decisions:
    - Physical deletion only; every child relation cascades
    - Replies to replies are flattened onto the root by the service layer
    - reply_count is maintained with F() increments/decrements, never
      recomputed
    - Message.reactions (emoji -> user ids) is a projection of the reaction
      rows, rebuilt under a row lock whenever a reaction changes
    - Channel messages store their author in column "user_id", direct
      messages in "sender_id"; both expose the field as ``author``
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from workspaces.models import Visibility

if TYPE_CHECKING:
    from authentication.models import User


# =============================================================================
# Channels
# =============================================================================


class Channel(UUIDPrimaryKeyMixin, BaseModel):
    """
    A channel inside a workspace.

    Access:
        PUBLIC: Readable and writable by every workspace member
        PRIVATE: Only channel members

    Fields:
        workspace: Owning workspace (cascade)
        name: Channel name, unique within the workspace
        description: Optional topic
        visibility: public or private
        created_by: Creator (kept null if the user is deleted)
    """

    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.CASCADE,
        related_name="channels",
    )

    name = models.CharField(
        max_length=80,
        help_text="Channel name, unique within the workspace",
    )

    description = models.TextField(blank=True, default="")

    visibility = models.CharField(
        max_length=10,
        choices=Visibility.choices,
        default=Visibility.PUBLIC,
        db_index=True,
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_channels",
    )

    class Meta:
        db_table = "channels"
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["workspace", "name"],
                name="channel_name_unique_per_workspace",
            ),
        ]

    def __str__(self) -> str:
        return f"#{self.name}"

    @property
    def is_private(self) -> bool:
        return self.visibility == Visibility.PRIVATE

    def is_member(self, user: User) -> bool:
        return self.memberships.filter(user=user).exists()


class ChannelMembership(UUIDPrimaryKeyMixin, BaseModel):
    """
    Membership of a user in a channel.

    Constraints:
        - One row per (channel, user)
    """

    channel = models.ForeignKey(
        Channel,
        on_delete=models.CASCADE,
        related_name="memberships",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="channel_memberships",
    )

    class Meta:
        db_table = "channel_members"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["channel", "user"],
                name="channel_member_unique",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} in {self.channel_id}"


# =============================================================================
# Direct chats
# =============================================================================


class DirectChat(UUIDPrimaryKeyMixin, BaseModel):
    """
    Conversation between two users inside a workspace.

    The pair is stored in canonical order (lower id in user1) so the unique
    constraint covers both orderings. Lookups still match either column so
    rows written by older clients in any order are found.

    A user may open a direct chat with themself (user1 == user2).
    """

    workspace = models.ForeignKey(
        "workspaces.Workspace",
        on_delete=models.CASCADE,
        related_name="direct_chats",
    )

    user1 = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="direct_chats_as_user1",
    )

    user2 = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="direct_chats_as_user2",
    )

    class Meta:
        db_table = "direct_chats"
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["workspace", "user1", "user2"],
                name="direct_chat_unique_pair",
            ),
        ]
        indexes = [
            models.Index(fields=["workspace", "user2"], name="direct_chat_user2_idx"),
        ]

    def __str__(self) -> str:
        return f"DM({self.user1_id}, {self.user2_id})"

    @staticmethod
    def canonical_pair(first_id, second_id) -> tuple:
        """
        Return the two user ids as UUIDs ordered lower first.

        Ids may be UUIDs or strings in any case; ordering uses the
        canonical lowercase form.
        """
        ids = (uuid.UUID(str(first_id)), uuid.UUID(str(second_id)))
        return tuple(sorted(ids, key=str))

    @staticmethod
    def pair_filter(first_id, second_id) -> Q:
        """Match the pair stored in either order."""
        return Q(user1_id=first_id, user2_id=second_id) | Q(
            user1_id=second_id, user2_id=first_id
        )

    def has_participant(self, user: User) -> bool:
        return user.id in (self.user1_id, self.user2_id)

    def other_user_id(self, user: User):
        return self.user2_id if self.user1_id == user.id else self.user1_id


# =============================================================================
# Messages
# =============================================================================


class BaseMessage(UUIDPrimaryKeyMixin, BaseModel):
    """
    Shared fields of channel and direct messages.

    Fields:
        content: Message text
        reactions: Projection of the reaction rows, emoji -> [user id, ...]
            in reaction order; never holds an empty list
        reply_count: Number of rows whose parent is this message
        edited_at: Set when the author edits the content

    Subclasses define:
        conversation FK (``channel`` / ``chat``), ``author``, ``parent``
        CONVERSATION_FIELD: name of the conversation FK
    """

    CONVERSATION_FIELD: str = ""

    content = models.TextField()

    reactions = models.JSONField(
        default=dict,
        blank=True,
        help_text="emoji -> ordered list of user ids (projection of reaction rows)",
    )

    reply_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of replies to this message",
    )

    edited_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        abstract = True
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return f"{self.author_id}: {preview}"

    @property
    def is_reply(self) -> bool:
        return self.parent_id is not None

    @property
    def conversation_id(self):
        return getattr(self, f"{self.CONVERSATION_FIELD}_id")


class Message(BaseMessage):
    """A message posted to a channel."""

    CONVERSATION_FIELD = "channel"

    channel = models.ForeignKey(
        Channel,
        on_delete=models.CASCADE,
        related_name="messages",
    )

    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        db_column="user_id",
        related_name="channel_messages",
    )

    parent = models.ForeignKey(
        "self",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="replies",
        help_text="Root message of the thread (null for top-level messages)",
    )

    class Meta(BaseMessage.Meta):
        db_table = "messages"
        indexes = [
            models.Index(
                fields=["channel", "created_at"],
                name="messages_channel_created_idx",
            ),
            models.Index(
                fields=["parent", "created_at"],
                name="messages_parent_idx",
                condition=Q(parent__isnull=False),
            ),
        ]


class DirectMessage(BaseMessage):
    """A message posted to a direct chat."""

    CONVERSATION_FIELD = "chat"

    chat = models.ForeignKey(
        DirectChat,
        on_delete=models.CASCADE,
        related_name="messages",
    )

    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        db_column="sender_id",
        related_name="direct_messages_sent",
    )

    parent = models.ForeignKey(
        "self",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="replies",
        help_text="Root message of the thread (null for top-level messages)",
    )

    class Meta(BaseMessage.Meta):
        db_table = "direct_messages"
        indexes = [
            models.Index(
                fields=["chat", "created_at"],
                name="dm_chat_created_idx",
            ),
            models.Index(
                fields=["parent", "created_at"],
                name="dm_parent_idx",
                condition=Q(parent__isnull=False),
            ),
        ]


# =============================================================================
# Reactions
# =============================================================================


class MessageReaction(UUIDPrimaryKeyMixin, BaseModel):
    """
    One reaction of one user with one emoji on a channel message.

    Constraints:
        - Unique (message, user, emoji); duplicate adds are absorbed
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="reaction_rows",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_reactions",
    )

    emoji = models.CharField(max_length=32)

    class Meta:
        db_table = "message_reactions"
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user", "emoji"],
                name="message_reaction_unique",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} {self.emoji} on {self.message_id}"


class DirectMessageReaction(UUIDPrimaryKeyMixin, BaseModel):
    """One reaction of one user with one emoji on a direct message."""

    message = models.ForeignKey(
        DirectMessage,
        on_delete=models.CASCADE,
        related_name="reaction_rows",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="direct_message_reactions",
    )

    emoji = models.CharField(max_length=32)

    class Meta:
        db_table = "direct_message_reactions"
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user", "emoji"],
                name="direct_message_reaction_unique",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} {self.emoji} on {self.message_id}"


# =============================================================================
# Presence
# =============================================================================


class PresenceStatus(models.TextChoices):
    ONLINE = "online", "Online"
    AWAY = "away", "Away"
    OFFLINE = "offline", "Offline"


class Presence(BaseModel):
    """
    Presence of a user.

    The user is the primary key: one row per user, created as online on
    first write and updated in place afterwards.

    Fields:
        status: online, away or offline
        status_text: Free-form status ("In a meeting")
        status_emoji: Emoji shown next to the status text
        last_seen: Refreshed by every write and heartbeat
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="presence",
    )

    status = models.CharField(
        max_length=10,
        choices=PresenceStatus.choices,
        default=PresenceStatus.ONLINE,
        db_index=True,
    )

    status_text = models.CharField(max_length=100, blank=True, default="")

    status_emoji = models.CharField(max_length=32, blank=True, default="")

    last_seen = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = "presence"
        ordering = ["-last_seen"]

    def __str__(self) -> str:
        return f"{self.user_id}: {self.status}"
