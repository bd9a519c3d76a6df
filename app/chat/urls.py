"""
URL configuration for chat API.

All URLs are prefixed with /api/v1/ in the main URL configuration.
"""

from django.urls import include, path, re_path
from rest_framework.routers import SimpleRouter

from chat.views import (
    ChannelMessagesView,
    ChannelViewSet,
    DirectChatDetailView,
    DirectChatMessagesView,
    MessageAttachmentsView,
    MessageDetailView,
    MessageReactionsView,
    MessageRepliesView,
    MessageSearchView,
    PresenceBulkView,
    PresenceDetailView,
    PresenceHeartbeatView,
    PresenceView,
    WorkspaceChannelsView,
    WorkspaceDirectChatsView,
)

router = SimpleRouter()
router.register(r"channels", ChannelViewSet, basename="channel")

app_name = "chat"

MESSAGE_PREFIX = r"^(?P<kind>channel|direct)/messages/(?P<message_id>[0-9a-f-]{36})"

urlpatterns = [
    path("", include(router.urls)),
    # Channels
    path(
        "workspaces/<uuid:workspace_id>/channels/",
        WorkspaceChannelsView.as_view(),
        name="workspace-channels",
    ),
    path(
        "channels/<uuid:conversation_id>/messages/",
        ChannelMessagesView.as_view(),
        name="channel-messages",
    ),
    # Direct chats
    path(
        "workspaces/<uuid:workspace_id>/direct-chats/",
        WorkspaceDirectChatsView.as_view(),
        name="workspace-direct-chats",
    ),
    path(
        "direct-chats/<uuid:chat_id>/",
        DirectChatDetailView.as_view(),
        name="direct-chat-detail",
    ),
    path(
        "direct-chats/<uuid:conversation_id>/messages/",
        DirectChatMessagesView.as_view(),
        name="direct-chat-messages",
    ),
    # Messages of either kind
    re_path(rf"{MESSAGE_PREFIX}/$", MessageDetailView.as_view(), name="message-detail"),
    re_path(
        rf"{MESSAGE_PREFIX}/replies/$",
        MessageRepliesView.as_view(),
        name="message-replies",
    ),
    re_path(
        rf"{MESSAGE_PREFIX}/reactions/$",
        MessageReactionsView.as_view(),
        name="message-reactions",
    ),
    re_path(
        rf"{MESSAGE_PREFIX}/attachments/$",
        MessageAttachmentsView.as_view(),
        name="message-attachments",
    ),
    # Presence
    path("presence/", PresenceView.as_view(), name="presence"),
    path("presence/heartbeat/", PresenceHeartbeatView.as_view(), name="presence-heartbeat"),
    path("presence/bulk/", PresenceBulkView.as_view(), name="presence-bulk"),
    path("presence/<uuid:user_id>/", PresenceDetailView.as_view(), name="presence-detail"),
    # Search
    path("search/", MessageSearchView.as_view(), name="search"),
]
