"""
Chat service layer.

Services:
    ChannelService: Channel lifecycle and membership
    DirectChatService: Direct chats between two workspace members
    ChannelMessageService / DirectMessageService: Messages, threads,
        attachments on send
    ReactionService: Per-user emoji reactions and the reactions projection
    PresenceService: Online/away/offline status
    MessageSearchService: Substring search over readable messages

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Unexpected failures are logged and returned as a generic failure by
      @service_operation
    - Physical deletes only; children cascade in the database
    - Counter updates use F() expressions; queryset updates emit no
      post_save, so the touched row is announced to the change feed
      explicitly

Usage:
    from chat.services import ChannelMessageService

    result = ChannelMessageService.create_message(
        user=request.user,
        conversation_id=channel.id,
        content="Hello",
    )
    if result.success:
        message = result.data
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

from django.core.cache import cache
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from chat.authorization import ChatAuthorizationService, require_message_access
from chat.constants import MESSAGE_CONFIG, PRESENCE_CONFIG, REACTION_CONFIG
from chat.models import (
    Channel,
    ChannelMembership,
    DirectChat,
    DirectMessage,
    DirectMessageReaction,
    Message,
    MessageReaction,
    Presence,
    PresenceStatus,
)
from core.services import BaseService, ServiceResult, service_operation
from media.services import AttachmentService
from realtime.changefeed import notify_saved
from workspaces.models import Visibility, Workspace, WorkspaceMembership

if TYPE_CHECKING:
    from collections.abc import Iterable

    from django.core.files.uploadedfile import UploadedFile

    from authentication.models import User
    from chat.models import BaseMessage


# =============================================================================
# Channels
# =============================================================================


class ChannelService(BaseService):
    """
    Service for channel operations.

    Methods:
        create_channel: Create a channel; the creator becomes a member
        get_channel: Fetch a channel the user may read
        get_user_channels: Channels of a workspace the user may read
        add_member: Add a workspace member to a channel
        remove_member: Remove a member (self or by the channel creator)
        delete_channel: Physically delete a channel and its messages
    """

    MAX_NAME_LENGTH = 80

    @classmethod
    @service_operation("Failed to create channel")
    def create_channel(
        cls,
        workspace_id,
        creator: User,
        name: str,
        description: str = "",
        visibility: str = Visibility.PUBLIC,
        member_ids: Iterable | None = None,
    ) -> ServiceResult[Channel]:
        """
        Create a channel inside a workspace.

        Initial members other than the creator are only added if they
        belong to the workspace; other ids are ignored.

        Error codes:
            WORKSPACE_NOT_FOUND: No such workspace
            NOT_MEMBER: The creator is not a workspace member
            VALIDATION_ERROR: Empty or too long name, unknown visibility
            CHANNEL_NAME_TAKEN: The workspace already has a channel by that name
        """
        name = (name or "").strip()
        if not name:
            return ServiceResult.failure(
                "Channel name is required",
                error_code="VALIDATION_ERROR",
            )
        if len(name) > cls.MAX_NAME_LENGTH:
            return ServiceResult.failure(
                f"Channel name cannot exceed {cls.MAX_NAME_LENGTH} characters",
                error_code="VALIDATION_ERROR",
            )
        if visibility not in Visibility.values:
            return ServiceResult.failure(
                f"Invalid visibility: {visibility}",
                error_code="VALIDATION_ERROR",
            )

        if not Workspace.objects.filter(id=workspace_id).exists():
            return ServiceResult.failure(
                "Workspace not found",
                error_code="WORKSPACE_NOT_FOUND",
            )
        if not ChatAuthorizationService.is_workspace_member(creator, workspace_id):
            return ServiceResult.failure(
                "You are not a member of this workspace",
                error_code="NOT_MEMBER",
            )
        if Channel.objects.filter(workspace_id=workspace_id, name=name).exists():
            return ServiceResult.failure(
                f"A channel named {name} already exists",
                error_code="CHANNEL_NAME_TAKEN",
            )

        extra_ids = set(
            WorkspaceMembership.objects.filter(
                workspace_id=workspace_id,
                user_id__in=list(member_ids or []),
            )
            .exclude(user_id=creator.id)
            .values_list("user_id", flat=True)
        )

        try:
            with cls.atomic():
                channel = Channel.objects.create(
                    workspace_id=workspace_id,
                    name=name,
                    description=description or "",
                    visibility=visibility,
                    created_by=creator,
                )
                ChannelMembership.objects.create(channel=channel, user=creator)
                for user_id in extra_ids:
                    ChannelMembership.objects.create(channel=channel, user_id=user_id)
        except IntegrityError:
            return ServiceResult.failure(
                f"A channel named {name} already exists",
                error_code="CHANNEL_NAME_TAKEN",
            )

        cls.get_logger().info(
            f"User {creator.id} created channel {channel.id} in workspace {workspace_id}"
        )
        return ServiceResult.success(channel, "Channel created successfully")

    @classmethod
    @service_operation("Failed to get channel")
    def get_channel(cls, channel_id, user: User) -> ServiceResult[Channel]:
        """
        Error codes:
            CHANNEL_NOT_FOUND: No such channel
            NOT_MEMBER: Private channel the user is not in, or foreign workspace
        """
        channel = Channel.objects.filter(id=channel_id).first()
        if channel is None:
            return ServiceResult.failure(
                "Channel not found",
                error_code="CHANNEL_NOT_FOUND",
            )
        if not ChatAuthorizationService.can_access_channel(user, channel):
            return ServiceResult.failure(
                "You do not have access to this channel",
                error_code="NOT_MEMBER",
            )
        return ServiceResult.success(channel)

    @classmethod
    @service_operation("Failed to get channels")
    def get_user_channels(cls, workspace_id, user: User) -> ServiceResult[list[Channel]]:
        """
        Public channels of the workspace plus private channels the user is in.

        Error codes:
            NOT_MEMBER: The user is not a workspace member
        """
        if not ChatAuthorizationService.is_workspace_member(user, workspace_id):
            return ServiceResult.failure(
                "You are not a member of this workspace",
                error_code="NOT_MEMBER",
            )
        channels = ChatAuthorizationService.accessible_channels(
            user, workspace_id=workspace_id
        ).order_by("name")
        return ServiceResult.success(list(channels))

    @classmethod
    @service_operation("Failed to add channel member")
    def add_member(
        cls,
        channel_id,
        actor: User,
        user_id,
    ) -> ServiceResult[ChannelMembership]:
        """
        Add a workspace member to a channel. Idempotent.

        Anyone who can read the channel may add members; for a private
        channel that means existing members only.

        Error codes:
            CHANNEL_NOT_FOUND: No such channel
            NOT_MEMBER: The actor cannot read the channel
            USER_NOT_IN_WORKSPACE: The target is not a workspace member
        """
        channel = Channel.objects.filter(id=channel_id).first()
        if channel is None:
            return ServiceResult.failure(
                "Channel not found",
                error_code="CHANNEL_NOT_FOUND",
            )
        if not ChatAuthorizationService.can_access_channel(actor, channel):
            return ServiceResult.failure(
                "You do not have access to this channel",
                error_code="NOT_MEMBER",
            )
        if not WorkspaceMembership.objects.filter(
            workspace_id=channel.workspace_id, user_id=user_id
        ).exists():
            return ServiceResult.failure(
                "User is not a member of this workspace",
                error_code="USER_NOT_IN_WORKSPACE",
            )

        try:
            with transaction.atomic():
                membership, created = ChannelMembership.objects.get_or_create(
                    channel=channel,
                    user_id=user_id,
                )
        except IntegrityError:
            membership = ChannelMembership.objects.get(channel=channel, user_id=user_id)
            created = False

        if created:
            cls.get_logger().info(
                f"User {actor.id} added {user_id} to channel {channel.id}"
            )
        return ServiceResult.success(membership, "Member added successfully")

    @classmethod
    @service_operation("Failed to remove channel member")
    def remove_member(cls, channel_id, actor: User, user_id) -> ServiceResult[None]:
        """
        Remove a channel member.

        Members may remove themselves; the channel creator may remove anyone.

        Error codes:
            CHANNEL_NOT_FOUND: No such channel
            PERMISSION_DENIED: Removing someone else without being the creator
            MEMBERSHIP_NOT_FOUND: The user is not in the channel
        """
        channel = Channel.objects.filter(id=channel_id).first()
        if channel is None:
            return ServiceResult.failure(
                "Channel not found",
                error_code="CHANNEL_NOT_FOUND",
            )
        if str(user_id) != str(actor.id) and channel.created_by_id != actor.id:
            return ServiceResult.failure(
                "Only the channel creator can remove other members",
                error_code="PERMISSION_DENIED",
            )

        deleted, _ = ChannelMembership.objects.filter(
            channel=channel, user_id=user_id
        ).delete()
        if not deleted:
            return ServiceResult.failure(
                "User is not a member of this channel",
                error_code="MEMBERSHIP_NOT_FOUND",
            )

        cls.get_logger().info(f"User {actor.id} removed {user_id} from channel {channel.id}")
        return ServiceResult.success(None, "Member removed successfully")

    @classmethod
    @service_operation("Failed to delete channel")
    def delete_channel(cls, channel_id, user: User) -> ServiceResult[None]:
        """
        Physically delete a channel; memberships, messages, reactions and
        attachments cascade.

        Error codes:
            CHANNEL_NOT_FOUND: No such channel
            PERMISSION_DENIED: Only the channel or workspace creator may delete
        """
        channel = Channel.objects.select_related("workspace").filter(id=channel_id).first()
        if channel is None:
            return ServiceResult.failure(
                "Channel not found",
                error_code="CHANNEL_NOT_FOUND",
            )
        if user.id not in (channel.created_by_id, channel.workspace.created_by_id):
            return ServiceResult.failure(
                "Only the channel creator can delete this channel",
                error_code="PERMISSION_DENIED",
            )

        with cls.atomic():
            channel.delete()

        cls.get_logger().info(f"User {user.id} deleted channel {channel_id}")
        return ServiceResult.success(None, "Channel deleted successfully")


# =============================================================================
# Direct chats
# =============================================================================


class DirectChatService(BaseService):
    """
    Service for direct chats.

    A pair of users has at most one direct chat per workspace. It is found
    regardless of the order the pair was stored in and created in
    canonical order otherwise.
    """

    @classmethod
    @service_operation("Failed to create direct chat")
    def create_direct_chat(
        cls,
        workspace_id,
        user: User,
        other_user_id,
    ) -> ServiceResult[DirectChat]:
        """
        Get or create the direct chat between two workspace members.

        Error codes:
            NOT_MEMBER: The caller is not a workspace member
            USER_NOT_IN_WORKSPACE: The other user is not a workspace member
        """
        if not ChatAuthorizationService.is_workspace_member(user, workspace_id):
            return ServiceResult.failure(
                "You are not a member of this workspace",
                error_code="NOT_MEMBER",
            )
        if not WorkspaceMembership.objects.filter(
            workspace_id=workspace_id, user_id=other_user_id
        ).exists():
            return ServiceResult.failure(
                "User is not a member of this workspace",
                error_code="USER_NOT_IN_WORKSPACE",
            )

        existing = cls._find(workspace_id, user.id, other_user_id)
        if existing is not None:
            return ServiceResult.success(existing, "Direct chat already exists")

        user1_id, user2_id = DirectChat.canonical_pair(user.id, other_user_id)
        try:
            with transaction.atomic():
                chat = DirectChat.objects.create(
                    workspace_id=workspace_id,
                    user1_id=user1_id,
                    user2_id=user2_id,
                )
        except IntegrityError:
            # Lost a race with the other participant
            return ServiceResult.success(
                cls._find(workspace_id, user.id, other_user_id),
                "Direct chat already exists",
            )

        cls.get_logger().info(
            f"Created direct chat {chat.id} between {user.id} and {other_user_id}"
        )
        return ServiceResult.success(chat, "Direct chat created successfully")

    @classmethod
    def _find(cls, workspace_id, first_id, second_id) -> DirectChat | None:
        return (
            DirectChat.objects.filter(workspace_id=workspace_id)
            .filter(DirectChat.pair_filter(first_id, second_id))
            .first()
        )

    @classmethod
    @service_operation("Failed to get direct chat")
    def get_direct_chat(cls, chat_id, user: User) -> ServiceResult[DirectChat]:
        """
        Error codes:
            DIRECT_CHAT_NOT_FOUND: No such direct chat
            NOT_PARTICIPANT: The user is not one of the two participants
        """
        chat = DirectChat.objects.filter(id=chat_id).first()
        if chat is None:
            return ServiceResult.failure(
                "Direct chat not found",
                error_code="DIRECT_CHAT_NOT_FOUND",
            )
        if not chat.has_participant(user):
            return ServiceResult.failure(
                "You are not a participant in this direct chat",
                error_code="NOT_PARTICIPANT",
            )
        return ServiceResult.success(chat)

    @classmethod
    @service_operation("Failed to get direct chats")
    def get_user_direct_chats(
        cls, workspace_id, user: User
    ) -> ServiceResult[list[DirectChat]]:
        """Direct chats of the user in one workspace, newest first."""
        chats = ChatAuthorizationService.participant_chats(
            user, workspace_id=workspace_id
        ).order_by("-created_at")
        return ServiceResult.success(list(chats))


# =============================================================================
# Messages
# =============================================================================


class BaseMessageService(BaseService):
    """
    Message operations shared by channels and direct chats.

    Subclasses bind the models:
        message_model: Message or DirectMessage
        conversation_model: Channel or DirectChat
        conversation_not_found: Error code for an unknown conversation

    Threads are single-level: a reply to a reply is attached to the root,
    and only the root carries reply_count.
    """

    kind: str = ""
    message_model: type[BaseMessage]
    conversation_model = None
    conversation_not_found: str = ""

    # =========================================================================
    # Helpers
    # =========================================================================

    @classmethod
    def _validate_content(cls, content: str | None, has_files: bool) -> ServiceResult | None:
        content = (content or "").strip()
        if not content and not has_files:
            return ServiceResult.failure(
                "Message content cannot be empty",
                error_code="EMPTY_CONTENT",
            )
        if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
            return ServiceResult.failure(
                f"Message cannot exceed {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
                error_code="CONTENT_TOO_LONG",
            )
        return None

    @classmethod
    def _get_conversation(cls, conversation_id, user: User) -> ServiceResult:
        conversation = cls.conversation_model.objects.filter(id=conversation_id).first()
        if conversation is None:
            return ServiceResult.failure(
                "Conversation not found",
                error_code=cls.conversation_not_found,
            )
        if not ChatAuthorizationService.can_access_conversation(user, conversation):
            return ServiceResult.failure(
                "You do not have access to this conversation",
                error_code="NOT_MEMBER",
            )
        return ServiceResult.success(conversation)

    @classmethod
    def _get_message(cls, message_id, user: User) -> ServiceResult:
        model = cls.message_model
        message = (
            model.objects.select_related(model.CONVERSATION_FIELD)
            .filter(id=message_id)
            .first()
        )
        if message is None:
            return ServiceResult.failure(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
            )
        if not ChatAuthorizationService.can_access_message(user, message):
            return ServiceResult.failure(
                "You do not have access to this conversation",
                error_code="NOT_MEMBER",
            )
        return ServiceResult.success(message)

    @classmethod
    def _insert(
        cls,
        user: User,
        content: str,
        files: list[UploadedFile] | None,
        parent: BaseMessage | None = None,
        **conversation,
    ) -> ServiceResult[BaseMessage]:
        """
        Upload blobs, then insert the message and its attachment rows in one
        transaction. Blobs of a failed insert are queued for deletion.
        """
        blobs = []
        if files:
            stored = AttachmentService.store_blobs(files, user)
            if not stored.success:
                return stored
            blobs = stored.data

        try:
            with cls.atomic():
                message = cls.message_model.objects.create(
                    author=user,
                    content=(content or "").strip(),
                    parent=parent,
                    **conversation,
                )
                if blobs:
                    AttachmentService.create_attachment_rows(message, user, blobs)
                if parent is not None:
                    cls.message_model.objects.filter(id=parent.id).update(
                        reply_count=F("reply_count") + 1,
                        updated_at=timezone.now(),
                    )
                    parent.refresh_from_db()
                    notify_saved(parent)
        except Exception:
            AttachmentService.discard_blobs(blobs)
            raise

        return ServiceResult.success(message)

    # =========================================================================
    # Operations
    # =========================================================================

    @classmethod
    @service_operation("Failed to send message")
    def create_message(
        cls,
        user: User,
        conversation_id,
        content: str,
        files: list[UploadedFile] | None = None,
    ) -> ServiceResult[BaseMessage]:
        """
        Post a top-level message, optionally with attachments.

        Error codes:
            EMPTY_CONTENT: No text and no files
            CONTENT_TOO_LONG: Text above MAX_CONTENT_LENGTH
            CHANNEL_NOT_FOUND / DIRECT_CHAT_NOT_FOUND: Unknown conversation
            NOT_MEMBER: The user cannot post in the conversation
            VALIDATION_ERROR / UPLOAD_FAILED: Attachment problems
        """
        invalid = cls._validate_content(content, bool(files))
        if invalid is not None:
            return invalid

        found = cls._get_conversation(conversation_id, user)
        if not found.success:
            return found

        result = cls._insert(
            user,
            content,
            files,
            **{cls.message_model.CONVERSATION_FIELD: found.data},
        )
        if result.success:
            cls.get_logger().debug(
                f"User {user.id} sent message {result.data.id} to {cls.kind} {conversation_id}"
            )
        return result

    @classmethod
    @service_operation("Failed to send reply")
    def create_thread_reply(
        cls,
        user: User,
        parent_id,
        content: str,
        files: list[UploadedFile] | None = None,
    ) -> ServiceResult[BaseMessage]:
        """
        Reply in a thread.

        A reply to a reply is attached to the thread root. The root's
        reply_count is incremented in the same transaction as the insert.

        Error codes:
            EMPTY_CONTENT / CONTENT_TOO_LONG: see create_message
            MESSAGE_NOT_FOUND: No such parent message
            NOT_MEMBER: The user cannot post in the conversation
        """
        invalid = cls._validate_content(content, bool(files))
        if invalid is not None:
            return invalid

        found = cls._get_message(parent_id, user)
        if not found.success:
            return found

        root = found.data
        if root.parent_id is not None:
            root = cls.message_model.objects.get(id=root.parent_id)

        field = cls.message_model.CONVERSATION_FIELD
        result = cls._insert(
            user,
            content,
            files,
            parent=root,
            **{f"{field}_id": root.conversation_id},
        )
        if result.success:
            cls.get_logger().debug(
                f"User {user.id} replied {result.data.id} in thread {root.id}"
            )
        return result

    @classmethod
    @service_operation("Failed to get messages")
    def get_messages(
        cls,
        user: User,
        conversation_id,
        limit: int | None = None,
    ) -> ServiceResult[list[BaseMessage]]:
        """
        Latest top-level messages of a conversation, oldest first.

        Args:
            limit: Number of messages (default SNAPSHOT_LIMIT, at most
                MAX_FETCH_LIMIT)
        """
        found = cls._get_conversation(conversation_id, user)
        if not found.success:
            return found

        limit = max(
            1,
            min(limit or MESSAGE_CONFIG.SNAPSHOT_LIMIT, MESSAGE_CONFIG.MAX_FETCH_LIMIT),
        )
        field = cls.message_model.CONVERSATION_FIELD
        latest = list(
            cls.message_model.objects.filter(
                **{field: found.data},
                parent__isnull=True,
            )
            .prefetch_related("attachments")
            .order_by("-created_at", "-id")[:limit]
        )
        latest.reverse()
        return ServiceResult.success(latest)

    @classmethod
    @service_operation("Failed to get thread")
    def get_thread_messages(
        cls,
        user: User,
        parent_id,
    ) -> ServiceResult[list[BaseMessage]]:
        """
        Every reply of a thread, oldest first.

        Error codes:
            MESSAGE_NOT_FOUND: No such root message
            NOT_MEMBER: The user cannot read the conversation
        """
        found = cls._get_message(parent_id, user)
        if not found.success:
            return found

        root_id = found.data.parent_id or found.data.id
        replies = list(
            cls.message_model.objects.filter(parent_id=root_id)
            .prefetch_related("attachments")
            .order_by("created_at", "id")
        )
        return ServiceResult.success(replies)

    @classmethod
    @service_operation("Failed to edit message")
    @require_message_access()
    def edit_message(
        cls,
        user: User,
        message_id,
        content: str,
        _message: BaseMessage | None = None,
    ) -> ServiceResult[BaseMessage]:
        """
        Replace the content of the user's own message.

        Error codes:
            MESSAGE_NOT_FOUND / NOT_MEMBER: see require_message_access
            NOT_AUTHOR: Only the author can edit
            EMPTY_CONTENT / CONTENT_TOO_LONG: Invalid new content
        """
        message = _message
        if message.author_id != user.id:
            return ServiceResult.failure(
                "You can only edit your own messages",
                error_code="NOT_AUTHOR",
            )

        invalid = cls._validate_content(content, has_files=False)
        if invalid is not None:
            return invalid

        message.content = content.strip()
        message.edited_at = timezone.now()
        message.save(update_fields=["content", "edited_at", "updated_at"])

        cls.get_logger().info(f"User {user.id} edited message {message.id}")
        return ServiceResult.success(message, "Message edited successfully")

    @classmethod
    @service_operation("Failed to delete message")
    @require_message_access()
    def delete_message(
        cls,
        user: User,
        message_id,
        _message: BaseMessage | None = None,
    ) -> ServiceResult[None]:
        """
        Physically delete the user's own message.

        Replies, reactions and attachments cascade. Deleting a reply
        decrements its root's reply_count in the same transaction.

        Error codes:
            MESSAGE_NOT_FOUND / NOT_MEMBER: see require_message_access
            NOT_AUTHOR: Only the author can delete
        """
        message = _message
        if message.author_id != user.id:
            return ServiceResult.failure(
                "You can only delete your own messages",
                error_code="NOT_AUTHOR",
            )

        with cls.atomic():
            parent_id = message.parent_id
            message.delete()
            if parent_id is not None:
                updated = cls.message_model.objects.filter(
                    id=parent_id, reply_count__gt=0
                ).update(
                    reply_count=F("reply_count") - 1,
                    updated_at=timezone.now(),
                )
                if updated:
                    notify_saved(cls.message_model.objects.get(id=parent_id))

        cls.get_logger().info(f"User {user.id} deleted message {message_id}")
        return ServiceResult.success(None, "Message deleted successfully")

    @classmethod
    @service_operation("Failed to get message")
    def get_message(cls, user: User, message_id) -> ServiceResult[BaseMessage]:
        """Fetch one message the user may read."""
        return cls._get_message(message_id, user)


class ChannelMessageService(BaseMessageService):
    """Messages posted to channels."""

    kind = "channel"
    message_model = Message
    conversation_model = Channel
    conversation_not_found = "CHANNEL_NOT_FOUND"


class DirectMessageService(BaseMessageService):
    """Messages posted to direct chats."""

    kind = "direct"
    message_model = DirectMessage
    conversation_model = DirectChat
    conversation_not_found = "DIRECT_CHAT_NOT_FOUND"


MESSAGE_SERVICES: dict[str, type[BaseMessageService]] = {
    ChannelMessageService.kind: ChannelMessageService,
    DirectMessageService.kind: DirectMessageService,
}


# =============================================================================
# Reactions
# =============================================================================


REACTION_MODELS = {
    "channel": (Message, MessageReaction),
    "direct": (DirectMessage, DirectMessageReaction),
}


class ReactionService(BaseService):
    """
    Service for message reactions.

    Each reaction is a row (message, user, emoji). After every change the
    message row is locked and its ``reactions`` map rebuilt from the rows,
    so concurrent toggles on the same message serialize and never lose an
    update.

    Handles:
    - Adding reactions (idempotent)
    - Removing reactions (idempotent)
    - Toggling a reaction
    - Reading the reactions map
    """

    @classmethod
    def _validate_emoji(cls, emoji: str | None) -> str | None:
        """Return the normalized emoji, or None when invalid."""
        emoji = (emoji or "").strip()
        if not emoji or len(emoji) > REACTION_CONFIG.MAX_EMOJI_LENGTH:
            return None
        return emoji

    @classmethod
    def _models(cls, kind: str):
        try:
            return REACTION_MODELS[kind]
        except KeyError:
            raise ValueError(f"Unknown message kind: {kind}") from None

    @classmethod
    def _load(cls, user: User, message_id, kind: str) -> ServiceResult:
        message_model, _ = cls._models(kind)
        message = (
            message_model.objects.select_related(message_model.CONVERSATION_FIELD)
            .filter(id=message_id)
            .first()
        )
        if message is None:
            return ServiceResult.failure(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
            )
        if not ChatAuthorizationService.can_access_message(user, message):
            return ServiceResult.failure(
                "You do not have access to this conversation",
                error_code="NOT_MEMBER",
            )
        return ServiceResult.success(message)

    @classmethod
    def _rebuild(cls, locked: BaseMessage, reaction_model) -> dict[str, list[str]]:
        """
        Recompute the reactions map of a locked message from its rows.

        Emojis keep the order of their first reaction and users the order
        they reacted in. Must be called within a transaction.
        """
        reactions: dict[str, list[str]] = {}
        rows = (
            reaction_model.objects.filter(message_id=locked.id)
            .order_by("created_at", "id")
            .values_list("emoji", "user_id")
        )
        for emoji, user_id in rows:
            reactions.setdefault(emoji, []).append(str(user_id))

        if reactions != locked.reactions:
            locked.reactions = reactions
            locked.save(update_fields=["reactions", "updated_at"])
        return reactions

    @classmethod
    def _payload(cls, message: BaseMessage, reactions: dict, **extra) -> dict:
        return {"message_id": str(message.id), "reactions": reactions, **extra}

    @classmethod
    @service_operation("Failed to add reaction")
    def add_reaction(
        cls,
        user: User,
        message_id,
        emoji: str,
        kind: str = "channel",
    ) -> ServiceResult[dict]:
        """
        Add the user's reaction. Adding an existing reaction is a no-op.

        Returns:
            ServiceResult with {"message_id", "reactions"}

        Error codes:
            INVALID_EMOJI: Empty or longer than MAX_EMOJI_LENGTH
            MESSAGE_NOT_FOUND / NOT_MEMBER: Unknown or unreadable message
            MAX_REACTIONS_EXCEEDED: User already has the maximum on this message
            MAX_EMOJIS_EXCEEDED: Message already has the maximum distinct emojis
        """
        emoji = cls._validate_emoji(emoji)
        if emoji is None:
            return ServiceResult.failure("Invalid emoji", error_code="INVALID_EMOJI")

        found = cls._load(user, message_id, kind)
        if not found.success:
            return found

        message_model, reaction_model = cls._models(kind)
        with cls.atomic():
            locked = message_model.objects.select_for_update().get(id=found.data.id)
            failure = cls._insert_row(locked, reaction_model, user, emoji)
            if failure is not None:
                return failure
            reactions = cls._rebuild(locked, reaction_model)

        return ServiceResult.success(
            cls._payload(locked, reactions),
            "Reaction added successfully",
        )

    @classmethod
    def _insert_row(cls, locked, reaction_model, user: User, emoji: str) -> ServiceResult | None:
        rows = reaction_model.objects.filter(message_id=locked.id)
        if rows.filter(user=user, emoji=emoji).exists():
            return None

        if rows.filter(user=user).count() >= REACTION_CONFIG.MAX_USER_REACTIONS_PER_MESSAGE:
            return ServiceResult.failure(
                f"Maximum reactions per message "
                f"({REACTION_CONFIG.MAX_USER_REACTIONS_PER_MESSAGE}) exceeded",
                error_code="MAX_REACTIONS_EXCEEDED",
            )
        if (
            not rows.filter(emoji=emoji).exists()
            and rows.values("emoji").distinct().count()
            >= REACTION_CONFIG.MAX_REACTIONS_PER_MESSAGE
        ):
            return ServiceResult.failure(
                f"Maximum distinct emojis per message "
                f"({REACTION_CONFIG.MAX_REACTIONS_PER_MESSAGE}) exceeded",
                error_code="MAX_EMOJIS_EXCEEDED",
            )

        try:
            with transaction.atomic():
                reaction_model.objects.create(message_id=locked.id, user=user, emoji=emoji)
        except IntegrityError:
            # Duplicate add, already present
            pass
        return None

    @classmethod
    @service_operation("Failed to remove reaction")
    def remove_reaction(
        cls,
        user: User,
        message_id,
        emoji: str,
        kind: str = "channel",
    ) -> ServiceResult[dict]:
        """
        Remove the user's reaction. Removing a missing reaction is a no-op.

        Error codes:
            INVALID_EMOJI / MESSAGE_NOT_FOUND / NOT_MEMBER: see add_reaction
        """
        emoji = cls._validate_emoji(emoji)
        if emoji is None:
            return ServiceResult.failure("Invalid emoji", error_code="INVALID_EMOJI")

        found = cls._load(user, message_id, kind)
        if not found.success:
            return found

        message_model, reaction_model = cls._models(kind)
        with cls.atomic():
            locked = message_model.objects.select_for_update().get(id=found.data.id)
            reaction_model.objects.filter(
                message_id=locked.id, user=user, emoji=emoji
            ).delete()
            reactions = cls._rebuild(locked, reaction_model)

        return ServiceResult.success(
            cls._payload(locked, reactions),
            "Reaction removed successfully",
        )

    @classmethod
    @service_operation("Failed to toggle reaction")
    def toggle_reaction(
        cls,
        user: User,
        message_id,
        emoji: str,
        kind: str = "channel",
    ) -> ServiceResult[dict]:
        """
        Add the reaction if the user has not reacted with it, else remove it.

        The presence check happens under the message row lock, so two
        concurrent toggles by the same user always alternate.

        Returns:
            ServiceResult with {"message_id", "reactions", "added"}
        """
        emoji = cls._validate_emoji(emoji)
        if emoji is None:
            return ServiceResult.failure("Invalid emoji", error_code="INVALID_EMOJI")

        found = cls._load(user, message_id, kind)
        if not found.success:
            return found

        message_model, reaction_model = cls._models(kind)
        with cls.atomic():
            locked = message_model.objects.select_for_update().get(id=found.data.id)
            existing = reaction_model.objects.filter(
                message_id=locked.id, user=user, emoji=emoji
            )
            added = not existing.exists()
            if added:
                failure = cls._insert_row(locked, reaction_model, user, emoji)
                if failure is not None:
                    return failure
            else:
                existing.delete()
            reactions = cls._rebuild(locked, reaction_model)

        return ServiceResult.success(
            cls._payload(locked, reactions, added=added),
            "Reaction added" if added else "Reaction removed",
        )

    @classmethod
    @service_operation("Failed to get reactions")
    def get_reactions(
        cls,
        user: User,
        message_id,
        kind: str = "channel",
    ) -> ServiceResult[dict]:
        """The reactions map of a message."""
        found = cls._load(user, message_id, kind)
        if not found.success:
            return found
        return ServiceResult.success(cls._payload(found.data, found.data.reactions or {}))


# =============================================================================
# Presence
# =============================================================================


class PresenceService(BaseService):
    """
    Service for user presence.

    Presence rows are upserted by the owning user. Rows not refreshed for
    PRESENCE_TTL_SECONDS are marked offline by a periodic task.
    """

    @classmethod
    @service_operation("Failed to update presence")
    def upsert_presence(
        cls,
        user: User,
        status: str | None = None,
        status_text: str | None = None,
        status_emoji: str | None = None,
    ) -> ServiceResult[Presence]:
        """
        Create or update the user's presence and refresh last_seen.

        Fields passed as None keep their stored value (online for a new row).

        Error codes:
            INVALID_STATUS: Unknown status
            VALIDATION_ERROR: Status text too long
        """
        if status is not None and status not in PresenceStatus.values:
            return ServiceResult.failure(
                f"Invalid status: {status}",
                error_code="INVALID_STATUS",
            )
        if status_text and len(status_text) > PRESENCE_CONFIG.MAX_STATUS_TEXT_LENGTH:
            return ServiceResult.failure(
                f"Status text cannot exceed {PRESENCE_CONFIG.MAX_STATUS_TEXT_LENGTH} characters",
                error_code="VALIDATION_ERROR",
            )

        with cls.atomic():
            presence, _ = Presence.objects.select_for_update().get_or_create(user=user)
            if status is not None:
                presence.status = status
            if status_text is not None:
                presence.status_text = status_text
            if status_emoji is not None:
                presence.status_emoji = status_emoji
            presence.last_seen = timezone.now()
            presence.save()

        return ServiceResult.success(presence, "Presence updated")

    @classmethod
    @service_operation("Failed to record heartbeat")
    def heartbeat(cls, user: User) -> ServiceResult[Presence]:
        """
        Refresh last_seen. An offline user comes back online; away stays away.
        """
        with cls.atomic():
            presence, _ = Presence.objects.select_for_update().get_or_create(user=user)
            if presence.status == PresenceStatus.OFFLINE:
                presence.status = PresenceStatus.ONLINE
            presence.last_seen = timezone.now()
            presence.save(update_fields=["status", "last_seen", "updated_at"])
        return ServiceResult.success(presence)

    @classmethod
    @service_operation("Failed to set offline")
    def set_offline(cls, user: User) -> ServiceResult[Presence | None]:
        """Mark the user offline (on disconnect). No row is created."""
        presence = Presence.objects.filter(user=user).first()
        if presence is None:
            return ServiceResult.success(None)
        presence.status = PresenceStatus.OFFLINE
        presence.last_seen = timezone.now()
        presence.save(update_fields=["status", "last_seen", "updated_at"])
        return ServiceResult.success(presence)

    @classmethod
    def _connections_key(cls, user: User) -> str:
        return f"presence:connections:{user.id}"

    @classmethod
    @service_operation("Failed to record connection")
    def connect(cls, user: User) -> ServiceResult[Presence]:
        """Count one more open realtime connection and refresh presence."""
        key = cls._connections_key(user)
        timeout = PRESENCE_CONFIG.CONNECTION_COUNT_TTL_SECONDS
        if not cache.add(key, 1, timeout=timeout):
            try:
                cache.incr(key)
            except ValueError:
                # Expired between add and incr
                cache.set(key, 1, timeout=timeout)
        return cls.heartbeat(user)

    @classmethod
    @service_operation("Failed to record disconnect")
    def disconnect(cls, user: User) -> ServiceResult[Presence | None]:
        """
        Forget one open realtime connection.

        The user goes offline only when their last connection closes, so a
        second tab or device keeps them online.
        """
        key = cls._connections_key(user)
        try:
            remaining = cache.decr(key) or 0
        except ValueError:
            remaining = 0
        if remaining > 0:
            return ServiceResult.success(Presence.objects.filter(user=user).first())
        cache.delete(key)
        return cls.set_offline(user)

    @classmethod
    @service_operation("Failed to get presence")
    def get_presence(cls, viewer: User, user_id) -> ServiceResult[Presence]:
        """
        Presence of one user who shares a workspace with the viewer.

        Error codes:
            PERMISSION_DENIED: The user shares no workspace with the viewer
            PRESENCE_NOT_FOUND: The user never reported presence
        """
        if not ChatAuthorizationService.workspace_peer_ids(viewer, [user_id]):
            return ServiceResult.failure(
                "You do not share a workspace with this user",
                error_code="PERMISSION_DENIED",
            )
        presence = Presence.objects.filter(user_id=user_id).first()
        if presence is None:
            return ServiceResult.failure(
                "Presence not found",
                error_code="PRESENCE_NOT_FOUND",
            )
        return ServiceResult.success(presence)

    @classmethod
    @service_operation("Failed to get presence")
    def get_presences(cls, viewer: User, user_ids: Iterable) -> ServiceResult[list[Presence]]:
        """
        Presence rows of many users in one query. Users without a row are
        absent from the result.

        Error codes:
            VALIDATION_ERROR: More than MAX_BULK_USERS ids
            PERMISSION_DENIED: Some user shares no workspace with the viewer
        """
        ids = list(dict.fromkeys(user_ids or []))
        if len(ids) > PRESENCE_CONFIG.MAX_BULK_USERS:
            return ServiceResult.failure(
                f"At most {PRESENCE_CONFIG.MAX_BULK_USERS} users per request",
                error_code="VALIDATION_ERROR",
            )
        if not ids:
            return ServiceResult.success([])
        peers = ChatAuthorizationService.workspace_peer_ids(viewer, ids)
        strangers = [str(user_id) for user_id in ids if str(user_id) not in peers]
        if strangers:
            return ServiceResult.failure(
                "You do not share a workspace with some of these users",
                error_code="PERMISSION_DENIED",
                errors={"user_ids": strangers},
            )
        return ServiceResult.success(list(Presence.objects.filter(user_id__in=ids)))

    @classmethod
    def expire_stale(cls, ttl_seconds: int = PRESENCE_CONFIG.PRESENCE_TTL_SECONDS) -> int:
        """
        Mark presences not refreshed within ``ttl_seconds`` offline.

        Rows are saved one by one so every change reaches presence
        subscribers.

        Returns:
            Number of rows marked offline
        """
        cutoff = timezone.now() - timedelta(seconds=ttl_seconds)
        stale = Presence.objects.filter(last_seen__lt=cutoff).exclude(
            status=PresenceStatus.OFFLINE
        )
        count = 0
        for presence in stale:
            presence.status = PresenceStatus.OFFLINE
            presence.save(update_fields=["status", "updated_at"])
            count += 1
        if count:
            cls.get_logger().info(f"Marked {count} stale presences offline")
        return count


# =============================================================================
# Search
# =============================================================================


class MessageSearchService(BaseService):
    """
    Case-insensitive substring search over the messages a user may read.

    Channel messages come from accessible channels, direct messages from
    the user's direct chats. Each list is newest first.
    """

    @classmethod
    @service_operation("Failed to search messages")
    def search(
        cls,
        user: User,
        query: str,
        workspace_id=None,
        limit: int | None = None,
    ) -> ServiceResult[dict]:
        """
        Args:
            query: Substring to look for (at least SEARCH_MIN_QUERY_LENGTH)
            workspace_id: Optional - restrict to one workspace
            limit: Results per list (default SEARCH_DEFAULT_LIMIT, at most
                SEARCH_MAX_LIMIT)

        Returns:
            ServiceResult with {"channel_messages": [...], "direct_messages": [...]}

        Error codes:
            QUERY_TOO_SHORT: Query below the minimum length
            NOT_MEMBER: workspace_id given and the user is not a member
        """
        query = (query or "").strip()
        if len(query) < MESSAGE_CONFIG.SEARCH_MIN_QUERY_LENGTH:
            return ServiceResult.failure(
                f"Search query must be at least "
                f"{MESSAGE_CONFIG.SEARCH_MIN_QUERY_LENGTH} characters",
                error_code="QUERY_TOO_SHORT",
            )
        if workspace_id is not None and not ChatAuthorizationService.is_workspace_member(
            user, workspace_id
        ):
            return ServiceResult.failure(
                "You are not a member of this workspace",
                error_code="NOT_MEMBER",
            )

        limit = max(
            1,
            min(limit or MESSAGE_CONFIG.SEARCH_DEFAULT_LIMIT, MESSAGE_CONFIG.SEARCH_MAX_LIMIT),
        )

        channel_ids = ChatAuthorizationService.accessible_channels(
            user, workspace_id=workspace_id
        ).values("id")
        chat_ids = ChatAuthorizationService.participant_chats(
            user, workspace_id=workspace_id
        ).values("id")

        channel_messages = list(
            Message.objects.filter(channel_id__in=channel_ids, content__icontains=query)
            .select_related("channel")
            .prefetch_related("attachments")
            .order_by("-created_at", "-id")[:limit]
        )
        direct_messages = list(
            DirectMessage.objects.filter(chat_id__in=chat_ids, content__icontains=query)
            .select_related("chat")
            .prefetch_related("attachments")
            .order_by("-created_at", "-id")[:limit]
        )

        return ServiceResult.success(
            {
                "channel_messages": channel_messages,
                "direct_messages": direct_messages,
            }
        )
