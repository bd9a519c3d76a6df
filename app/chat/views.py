"""
Views for chat API.

URL Structure:
    /api/v1/workspaces/{id}/channels/                 GET, POST
    /api/v1/channels/{id}/                            GET, DELETE
    /api/v1/channels/{id}/members/                    POST
    /api/v1/channels/{id}/members/{user_id}/          DELETE
    /api/v1/channels/{id}/messages/                   GET, POST (multipart)

    /api/v1/workspaces/{id}/direct-chats/             GET, POST
    /api/v1/direct-chats/{id}/                        GET
    /api/v1/direct-chats/{id}/messages/               GET, POST (multipart)

    /api/v1/{kind}/messages/{id}/                     GET, PATCH, DELETE
    /api/v1/{kind}/messages/{id}/replies/             GET, POST (multipart)
    /api/v1/{kind}/messages/{id}/reactions/           GET, POST (toggle)
    /api/v1/{kind}/messages/{id}/attachments/         GET, POST (multipart)
        kind is "channel" or "direct"

    /api/v1/presence/                                 POST
    /api/v1/presence/heartbeat/                       POST
    /api/v1/presence/bulk/                            POST
    /api/v1/presence/{user_id}/                       GET

    /api/v1/search/?q=...&workspace=...&limit=...     GET

Design Decisions:
    - Views only parse input and render ServiceResults; every rule lives
      in chat.services
    - Message endpoints are shared by both kinds and pick the service
      from the URL
"""

from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from chat.serializers import (
    ChannelCreateSerializer,
    ChannelMemberSerializer,
    ChannelSerializer,
    DirectChatCreateSerializer,
    DirectChatSerializer,
    MessageCreateSerializer,
    MessageEditSerializer,
    MessageSerializer,
    PresenceBulkSerializer,
    PresenceSerializer,
    PresenceUpdateSerializer,
    ReactionSerializer,
    ReactionsSerializer,
    SearchQuerySerializer,
    SearchResultSerializer,
)
from chat.services import (
    MESSAGE_SERVICES,
    ChannelMessageService,
    ChannelService,
    DirectChatService,
    DirectMessageService,
    MessageSearchService,
    PresenceService,
    ReactionService,
)
from core.viewset_mixins import ServiceResponseMixin
from media.serializers import AttachmentSerializer, AttachmentUploadSerializer
from media.services import AttachmentService

MESSAGE_PARSERS = [JSONParser, MultiPartParser, FormParser]


# =============================================================================
# Channels
# =============================================================================


class WorkspaceChannelsView(ServiceResponseMixin, APIView):
    """
    Channels of a workspace.

    GET  /api/v1/workspaces/{workspace_id}/channels/
    POST /api/v1/workspaces/{workspace_id}/channels/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_channels",
        summary="List channels",
        description="Public channels of the workspace plus private channels the user is in.",
        responses={200: ChannelSerializer(many=True)},
        tags=["Channels"],
    )
    def get(self, request, workspace_id):
        result = ChannelService.get_user_channels(workspace_id, request.user)
        return self.service_response(result, ChannelSerializer)

    @extend_schema(
        operation_id="create_channel",
        summary="Create channel",
        request=ChannelCreateSerializer,
        responses={201: ChannelSerializer},
        tags=["Channels"],
    )
    def post(self, request, workspace_id):
        serializer = ChannelCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ChannelService.create_channel(
            workspace_id=workspace_id,
            creator=request.user,
            **serializer.validated_data,
        )
        return self.service_response(
            result,
            ChannelSerializer,
            success_status=status.HTTP_201_CREATED,
        )


@extend_schema_view(
    retrieve=extend_schema(
        operation_id="get_channel",
        summary="Get channel",
        responses={200: ChannelSerializer},
        tags=["Channels"],
    ),
    destroy=extend_schema(
        operation_id="delete_channel",
        summary="Delete channel",
        description="Channel or workspace creator only. Deletes every message.",
        tags=["Channels"],
    ),
)
class ChannelViewSet(ServiceResponseMixin, viewsets.ViewSet):
    """
    ViewSet for a single channel.

    members:
        Add a workspace member to the channel. Idempotent.

    remove_member:
        Remove a member. Members may remove themselves; the creator may
        remove anyone.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = "[0-9a-f-]{36}"

    def retrieve(self, request, pk=None):
        result = ChannelService.get_channel(pk, request.user)
        return self.service_response(result, ChannelSerializer)

    def destroy(self, request, pk=None):
        result = ChannelService.delete_channel(pk, request.user)
        return self.service_response(result)

    @extend_schema(
        operation_id="add_channel_member",
        summary="Add channel member",
        request=ChannelMemberSerializer,
        responses={201: ChannelMemberSerializer},
        tags=["Channels"],
    )
    @action(detail=True, methods=["post"])
    def members(self, request, pk=None):
        serializer = ChannelMemberSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ChannelService.add_member(
            pk,
            request.user,
            serializer.validated_data["user_id"],
        )
        return self.service_response(
            result,
            ChannelMemberSerializer,
            success_status=status.HTTP_201_CREATED,
        )

    @extend_schema(
        operation_id="remove_channel_member",
        summary="Remove channel member",
        request=None,
        tags=["Channels"],
    )
    @action(
        detail=True,
        methods=["delete"],
        url_path=r"members/(?P<user_id>[0-9a-f-]{36})",
        url_name="remove-member",
    )
    def remove_member(self, request, pk=None, user_id=None):
        result = ChannelService.remove_member(pk, request.user, user_id)
        return self.service_response(result)


# =============================================================================
# Direct chats
# =============================================================================


class WorkspaceDirectChatsView(ServiceResponseMixin, APIView):
    """
    Direct chats of the user in a workspace.

    GET  /api/v1/workspaces/{workspace_id}/direct-chats/
    POST /api/v1/workspaces/{workspace_id}/direct-chats/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="list_direct_chats",
        summary="List direct chats",
        responses={200: DirectChatSerializer(many=True)},
        tags=["Direct chats"],
    )
    def get(self, request, workspace_id):
        result = DirectChatService.get_user_direct_chats(workspace_id, request.user)
        return self.service_response(result, DirectChatSerializer)

    @extend_schema(
        operation_id="create_direct_chat",
        summary="Open direct chat",
        description="Returns the existing chat when the pair already has one.",
        request=DirectChatCreateSerializer,
        responses={200: DirectChatSerializer},
        tags=["Direct chats"],
    )
    def post(self, request, workspace_id):
        serializer = DirectChatCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = DirectChatService.create_direct_chat(
            workspace_id,
            request.user,
            serializer.validated_data["user_id"],
        )
        return self.service_response(result, DirectChatSerializer)


class DirectChatDetailView(ServiceResponseMixin, APIView):
    """GET /api/v1/direct-chats/{chat_id}/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_direct_chat",
        summary="Get direct chat",
        responses={200: DirectChatSerializer},
        tags=["Direct chats"],
    )
    def get(self, request, chat_id):
        result = DirectChatService.get_direct_chat(chat_id, request.user)
        return self.service_response(result, DirectChatSerializer)


# =============================================================================
# Messages
# =============================================================================


class ConversationMessagesView(ServiceResponseMixin, APIView):
    """
    Top-level messages of a channel or direct chat.

    GET  returns the latest messages oldest first (``?limit=``, default 50)
    POST posts a message; files go in the multipart ``files`` field
    """

    permission_classes = [IsAuthenticated]
    parser_classes = MESSAGE_PARSERS
    message_service = ChannelMessageService

    @extend_schema(
        summary="List messages",
        parameters=[OpenApiParameter("limit", OpenApiTypes.INT, required=False)],
        responses={200: MessageSerializer(many=True)},
        tags=["Messages"],
    )
    def get(self, request, conversation_id):
        try:
            limit = int(request.query_params.get("limit", 0)) or None
        except ValueError:
            limit = None
        result = self.message_service.get_messages(request.user, conversation_id, limit)
        return self.service_response(result, MessageSerializer)

    @extend_schema(
        summary="Send message",
        request={"multipart/form-data": MessageCreateSerializer},
        responses={201: MessageSerializer},
        tags=["Messages"],
    )
    def post(self, request, conversation_id):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.message_service.create_message(
            request.user,
            conversation_id,
            serializer.validated_data["content"],
            files=serializer.validated_data["files"],
        )
        return self.service_response(
            result,
            MessageSerializer,
            success_status=status.HTTP_201_CREATED,
        )


class ChannelMessagesView(ConversationMessagesView):
    message_service = ChannelMessageService


class DirectChatMessagesView(ConversationMessagesView):
    message_service = DirectMessageService


class MessageKindMixin:
    """Resolve the message service from the ``kind`` URL segment."""

    @property
    def message_service(self):
        return MESSAGE_SERVICES[self.kwargs["kind"]]


class MessageDetailView(MessageKindMixin, ServiceResponseMixin, APIView):
    """
    One channel or direct message.

    GET    /api/v1/{kind}/messages/{id}/
    PATCH  /api/v1/{kind}/messages/{id}/   author only
    DELETE /api/v1/{kind}/messages/{id}/   author only; replies cascade
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_message",
        summary="Get message",
        responses={200: MessageSerializer},
        tags=["Messages"],
    )
    def get(self, request, kind, message_id):
        result = self.message_service.get_message(request.user, message_id)
        return self.service_response(result, MessageSerializer)

    @extend_schema(
        operation_id="edit_message",
        summary="Edit message",
        request=MessageEditSerializer,
        responses={200: MessageSerializer},
        tags=["Messages"],
    )
    def patch(self, request, kind, message_id):
        serializer = MessageEditSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.message_service.edit_message(
            user=request.user,
            message_id=message_id,
            content=serializer.validated_data["content"],
        )
        return self.service_response(result, MessageSerializer)

    @extend_schema(
        operation_id="delete_message",
        summary="Delete message",
        tags=["Messages"],
    )
    def delete(self, request, kind, message_id):
        result = self.message_service.delete_message(
            user=request.user,
            message_id=message_id,
        )
        return self.service_response(result)


class MessageRepliesView(MessageKindMixin, ServiceResponseMixin, APIView):
    """
    Thread of a message.

    GET  every reply, oldest first
    POST reply; a reply to a reply lands on the thread root
    """

    permission_classes = [IsAuthenticated]
    parser_classes = MESSAGE_PARSERS

    @extend_schema(
        operation_id="list_replies",
        summary="List thread replies",
        responses={200: MessageSerializer(many=True)},
        tags=["Messages"],
    )
    def get(self, request, kind, message_id):
        result = self.message_service.get_thread_messages(request.user, message_id)
        return self.service_response(result, MessageSerializer)

    @extend_schema(
        operation_id="create_reply",
        summary="Reply in thread",
        request={"multipart/form-data": MessageCreateSerializer},
        responses={201: MessageSerializer},
        tags=["Messages"],
    )
    def post(self, request, kind, message_id):
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.message_service.create_thread_reply(
            request.user,
            message_id,
            serializer.validated_data["content"],
            files=serializer.validated_data["files"],
        )
        return self.service_response(
            result,
            MessageSerializer,
            success_status=status.HTTP_201_CREATED,
        )


class MessageReactionsView(MessageKindMixin, ServiceResponseMixin, APIView):
    """
    Reactions of a message.

    GET  the emoji -> user ids map
    POST toggle the requesting user's reaction
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_reactions",
        summary="Get reactions",
        responses={200: ReactionsSerializer},
        tags=["Reactions"],
    )
    def get(self, request, kind, message_id):
        result = ReactionService.get_reactions(request.user, message_id, kind=kind)
        return self.service_response(result, ReactionsSerializer)

    @extend_schema(
        operation_id="toggle_reaction",
        summary="Toggle reaction",
        request=ReactionSerializer,
        responses={200: ReactionsSerializer},
        tags=["Reactions"],
    )
    def post(self, request, kind, message_id):
        serializer = ReactionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ReactionService.toggle_reaction(
            request.user,
            message_id,
            serializer.validated_data["emoji"],
            kind=kind,
        )
        return self.service_response(result, ReactionsSerializer)


class MessageAttachmentsView(MessageKindMixin, ServiceResponseMixin, APIView):
    """
    Attachments of a message.

    GET  attachments, oldest first
    POST attach one more file (author only)
    """

    permission_classes = [IsAuthenticated]
    parser_classes = [MultiPartParser, FormParser]

    @extend_schema(
        operation_id="list_message_attachments",
        summary="List attachments",
        responses={200: AttachmentSerializer(many=True)},
        tags=["Attachments"],
    )
    def get(self, request, kind, message_id):
        found = self.message_service.get_message(request.user, message_id)
        if not found.success:
            return self.service_response(found)
        result = AttachmentService.get_attachments(request.user, found.data)
        return self.service_response(result, AttachmentSerializer)

    @extend_schema(
        operation_id="upload_attachment",
        summary="Upload attachment",
        request={"multipart/form-data": AttachmentUploadSerializer},
        responses={201: AttachmentSerializer},
        tags=["Attachments"],
    )
    def post(self, request, kind, message_id):
        serializer = AttachmentUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        found = self.message_service.get_message(request.user, message_id)
        if not found.success:
            return self.service_response(found)

        result = AttachmentService.upload_attachment(
            request.user,
            found.data,
            serializer.validated_data["file"],
        )
        return self.service_response(
            result,
            AttachmentSerializer,
            success_status=status.HTTP_201_CREATED,
        )


# =============================================================================
# Presence
# =============================================================================


class PresenceView(ServiceResponseMixin, APIView):
    """POST /api/v1/presence/ - set the user's status"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="update_presence",
        summary="Update presence",
        request=PresenceUpdateSerializer,
        responses={200: PresenceSerializer},
        tags=["Presence"],
    )
    def post(self, request):
        serializer = PresenceUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PresenceService.upsert_presence(request.user, **serializer.validated_data)
        return self.service_response(result, PresenceSerializer)


class PresenceHeartbeatView(ServiceResponseMixin, APIView):
    """POST /api/v1/presence/heartbeat/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="presence_heartbeat",
        summary="Presence heartbeat",
        request=None,
        responses={200: PresenceSerializer},
        tags=["Presence"],
    )
    def post(self, request):
        result = PresenceService.heartbeat(request.user)
        return self.service_response(result, PresenceSerializer)


class PresenceBulkView(ServiceResponseMixin, APIView):
    """POST /api/v1/presence/bulk/ - presence of many users"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="bulk_presence",
        summary="Get presence of many users",
        request=PresenceBulkSerializer,
        responses={200: PresenceSerializer(many=True)},
        tags=["Presence"],
    )
    def post(self, request):
        serializer = PresenceBulkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = PresenceService.get_presences(
            request.user, serializer.validated_data["user_ids"]
        )
        return self.service_response(result, PresenceSerializer)


class PresenceDetailView(ServiceResponseMixin, APIView):
    """GET /api/v1/presence/{user_id}/"""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_presence",
        summary="Get presence",
        responses={200: PresenceSerializer},
        tags=["Presence"],
    )
    def get(self, request, user_id):
        result = PresenceService.get_presence(request.user, user_id)
        return self.service_response(result, PresenceSerializer)


# =============================================================================
# Search
# =============================================================================


class MessageSearchView(ServiceResponseMixin, APIView):
    """GET /api/v1/search/?q=...&workspace=..."""

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="search_messages",
        summary="Search messages",
        parameters=[
            OpenApiParameter("q", OpenApiTypes.STR, required=True),
            OpenApiParameter("workspace", OpenApiTypes.UUID, required=False),
            OpenApiParameter("limit", OpenApiTypes.INT, required=False),
        ],
        responses={200: SearchResultSerializer},
        tags=["Search"],
    )
    def get(self, request):
        query = SearchQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        result = MessageSearchService.search(
            request.user,
            query.validated_data["q"],
            workspace_id=query.validated_data["workspace"],
            limit=query.validated_data["limit"],
        )
        return self.service_response(result, SearchResultSerializer)
