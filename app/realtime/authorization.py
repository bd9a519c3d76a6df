"""
Who may subscribe to which change feed filter.

Each routed (table, column) pair has a rule deciding whether the filter
value names something the user can read:

    messages.channel_id            channel access
    messages.parent_id             access to the root message
    direct_messages.chat_id        direct chat participant
    direct_messages.parent_id      access to the root message
    channels.workspace_id          workspace member
    channel_members.channel_id     channel access
    channel_members.user_id        the user themself
    direct_chats.workspace_id      workspace member
    direct_chats.user1_id/user2_id the user themself
    presence.user_id               the user themself or a workspace peer
    attachments.message_id         access to the channel message
    attachments.direct_message_id  access to the direct message

Rules hit the database; consumers call them through database_sync_to_async.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from chat.authorization import ChatAuthorizationService
from chat.models import Channel, DirectChat, DirectMessage, Message
from core.exceptions import NotFoundError, PermissionDeniedError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from authentication.models import User
    from realtime.filters import EqualityFilter


def _is_self(user: User, value: str) -> bool:
    return str(user.id) == value


def _channel_access(user: User, value: str) -> bool:
    channel = Channel.objects.filter(id=value).first()
    return channel is not None and ChatAuthorizationService.can_access_channel(user, channel)


def _chat_access(user: User, value: str) -> bool:
    chat = DirectChat.objects.filter(id=value).first()
    return chat is not None and chat.has_participant(user)


def _message_access(model):
    def rule(user: User, value: str) -> bool:
        message = (
            model.objects.select_related(model.CONVERSATION_FIELD).filter(id=value).first()
        )
        return message is not None and ChatAuthorizationService.can_access_message(
            user, message
        )

    return rule


def _workspace_member(user: User, value: str) -> bool:
    return ChatAuthorizationService.is_workspace_member(user, value)


def _workspace_peer(user: User, value: str) -> bool:
    return bool(ChatAuthorizationService.workspace_peer_ids(user, [value]))


RULES = {
    ("messages", "channel_id"): _channel_access,
    ("messages", "parent_id"): _message_access(Message),
    ("direct_messages", "chat_id"): _chat_access,
    ("direct_messages", "parent_id"): _message_access(DirectMessage),
    ("channels", "workspace_id"): _workspace_member,
    ("channel_members", "channel_id"): _channel_access,
    ("channel_members", "user_id"): _is_self,
    ("direct_chats", "workspace_id"): _workspace_member,
    ("direct_chats", "user1_id"): _is_self,
    ("direct_chats", "user2_id"): _is_self,
    ("presence", "user_id"): _workspace_peer,
    ("attachments", "message_id"): _message_access(Message),
    ("attachments", "direct_message_id"): _message_access(DirectMessage),
}


def can_subscribe(user: User, equality: EqualityFilter) -> bool:
    rule = RULES.get((equality.table, equality.column))
    return rule is not None and rule(user, equality.value)


def authorize_filters(user: User, filters: Iterable[EqualityFilter]) -> None:
    """
    Check every filter of a subscription.

    Raises:
        PermissionDeniedError: The user may not read what a filter names
    """
    for equality in filters:
        if not can_subscribe(user, equality):
            raise PermissionDeniedError(
                "You do not have access to this feed",
                details={"filter": str(equality)},
            )


def resolve_conversation(user: User, kind: str, conversation_id):
    """
    Load a conversation a WebSocket wants to follow.

    Raises:
        NotFoundError: Unknown conversation
        PermissionDeniedError: The user cannot read it
    """
    model = Channel if kind == "channel" else DirectChat
    conversation = model.objects.filter(id=conversation_id).first()
    if conversation is None:
        raise NotFoundError(
            "Conversation not found",
            error_code="CHANNEL_NOT_FOUND" if kind == "channel" else "DIRECT_CHAT_NOT_FOUND",
        )
    if not ChatAuthorizationService.can_access_conversation(user, conversation):
        raise PermissionDeniedError("You do not have access to this conversation")
    return conversation
