"""
Service-level authorization for chat operations.

This module provides centralized read/write access rules for workspace
content. It is shared by the chat services, the attachment services and
the realtime layer, so it only depends on models.

Access Rules:
    - Workspace content requires workspace membership
    - Public channels are open to every workspace member
    - Private channels require channel membership
    - Direct chats are only visible to their two participants
    - Messages inherit the access rule of their conversation

Key Components:
    ChatAuthorizationService: Stateless checks returning booleans/querysets
    require_message_access: Decorator that loads a message, checks access
        and injects it as ``_message``

Error Codes:
    MESSAGE_NOT_FOUND: Message does not exist
    NOT_MEMBER: User may not read the message's conversation
    INVALID_REQUEST: Missing user or message id

Usage:
    if ChatAuthorizationService.can_access_channel(user, channel):
        ...

    class ChannelMessageService(BaseMessageService):
        @classmethod
        @service_operation("Failed to edit message")
        @require_message_access()
        def edit_message(cls, user, message_id, content, _message=None):
            ...
"""

from __future__ import annotations

import inspect
from functools import wraps
from typing import TYPE_CHECKING, Callable, TypeVar

from django.db.models import Q

from chat.models import Channel, ChannelMembership, DirectChat, Message
from core.services import ServiceResult
from workspaces.models import Visibility, WorkspaceMembership

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from authentication.models import User
    from chat.models import BaseMessage


T = TypeVar("T")


class ChatAuthorizationService:
    """
    Stateless authorization checks for workspace content.

    All methods are classmethods. Results are not cached; callers that
    check many rows should use the queryset helpers instead.
    """

    @classmethod
    def is_workspace_member(cls, user: User, workspace_id) -> bool:
        return WorkspaceMembership.objects.filter(
            workspace_id=workspace_id,
            user=user,
        ).exists()

    @classmethod
    def workspace_peer_ids(cls, user: User, user_ids) -> set[str]:
        """
        The ids among ``user_ids`` of users sharing a workspace with ``user``.

        The user counts as their own peer.
        """
        wanted = {str(user_id) for user_id in user_ids}
        shared = WorkspaceMembership.objects.filter(user=user).values("workspace_id")
        peers = {
            str(peer_id)
            for peer_id in WorkspaceMembership.objects.filter(
                user_id__in=wanted, workspace_id__in=shared
            ).values_list("user_id", flat=True)
        }
        if str(user.id) in wanted:
            peers.add(str(user.id))
        return peers

    @classmethod
    def can_access_channel(cls, user: User, channel: Channel) -> bool:
        """
        Check whether the user may read and post in a channel.

        Public channels need workspace membership only; private channels
        need channel membership.
        """
        if channel.visibility == Visibility.PRIVATE:
            return ChannelMembership.objects.filter(channel=channel, user=user).exists()
        return cls.is_workspace_member(user, channel.workspace_id)

    @classmethod
    def is_direct_chat_participant(cls, user: User, chat: DirectChat) -> bool:
        return chat.has_participant(user)

    @classmethod
    def can_access_conversation(cls, user: User, conversation) -> bool:
        """Dispatch to the channel or direct chat rule."""
        if isinstance(conversation, Channel):
            return cls.can_access_channel(user, conversation)
        return cls.is_direct_chat_participant(user, conversation)

    @classmethod
    def can_access_message(cls, user: User, message: BaseMessage) -> bool:
        """Check access to a channel or direct message through its conversation."""
        if isinstance(message, Message):
            return cls.can_access_channel(user, message.channel)
        return cls.is_direct_chat_participant(user, message.chat)

    @classmethod
    def accessible_channels(cls, user: User, workspace_id=None) -> QuerySet:
        """
        Channels the user may read.

        Public channels of the user's workspaces plus private channels the
        user belongs to.

        Args:
            user: User to check
            workspace_id: Optional - restrict to one workspace
        """
        workspace_ids = WorkspaceMembership.objects.filter(user=user).values(
            "workspace_id"
        )
        channels = Channel.objects.filter(
            Q(visibility=Visibility.PUBLIC, workspace_id__in=workspace_ids)
            | Q(memberships__user=user)
        )
        if workspace_id is not None:
            channels = channels.filter(workspace_id=workspace_id)
        return channels.distinct()

    @classmethod
    def participant_chats(cls, user: User, workspace_id=None) -> QuerySet:
        """Direct chats the user is a party to."""
        chats = DirectChat.objects.filter(Q(user1=user) | Q(user2=user))
        if workspace_id is not None:
            chats = chats.filter(workspace_id=workspace_id)
        return chats


def require_message_access(
    message_id_param: str = "message_id",
    user_param: str = "user",
) -> Callable:
    """
    Decorator that requires user to have access to a message.

    Loads the message from ``cls.message_model`` (channel or direct
    message), checks access through its conversation and injects the
    message as ``_message`` to avoid redundant queries. Arguments may be
    passed positionally or by keyword.

    Returns:
        ServiceResult.failure with MESSAGE_NOT_FOUND if the message doesn't exist
        ServiceResult.failure with NOT_MEMBER if the user may not read it
        ServiceResult.failure with INVALID_REQUEST if required params missing

    Example:
        class ChannelMessageService(BaseMessageService):
            @classmethod
            @service_operation("Failed to delete message")
            @require_message_access()
            def delete_message(cls, user, message_id, _message=None):
                ...
    """

    def decorator(
        func: Callable[..., ServiceResult[T]],
    ) -> Callable[..., ServiceResult[T]]:
        signature = inspect.signature(func)

        @wraps(func)
        def wrapper(cls, *args, **kwargs) -> ServiceResult[T]:
            bound = signature.bind_partial(cls, *args, **kwargs)
            user = bound.arguments.get(user_param)
            message_id = bound.arguments.get(message_id_param)

            if user is None or message_id is None:
                return ServiceResult.failure(
                    "Missing required parameters",
                    error_code="INVALID_REQUEST",
                )

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

            kwargs["_message"] = message
            return func(cls, *args, **kwargs)

        return wrapper

    return decorator
