"""
ViewSets for the workspaces API.

URL Structure:
    /api/v1/workspaces/                 GET, POST
    /api/v1/workspaces/searchable/      GET
    /api/v1/workspaces/{id}/            GET, DELETE
    /api/v1/workspaces/{id}/join/       POST
    /api/v1/workspaces/{id}/leave/      POST

Design Decisions:
    - Plain ViewSet: every operation goes through WorkspaceService
    - Responses use the ServiceResult envelope
"""

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from core.viewset_mixins import ServiceResponseMixin
from workspaces.serializers import (
    WorkspaceCreateSerializer,
    WorkspaceMembershipSerializer,
    WorkspaceSerializer,
)
from workspaces.services import WorkspaceService


@extend_schema_view(
    list=extend_schema(
        operation_id="list_workspaces",
        summary="List workspaces",
        description="Public workspaces plus every workspace the user belongs to.",
        responses={200: WorkspaceSerializer(many=True)},
        tags=["Workspaces"],
    ),
    create=extend_schema(
        operation_id="create_workspace",
        summary="Create workspace",
        request=WorkspaceCreateSerializer,
        responses={201: WorkspaceSerializer},
        tags=["Workspaces"],
    ),
    retrieve=extend_schema(
        operation_id="get_workspace",
        summary="Get workspace",
        responses={200: WorkspaceSerializer},
        tags=["Workspaces"],
    ),
    destroy=extend_schema(
        operation_id="delete_workspace",
        summary="Delete workspace",
        description="Creator only. Deletes all channels and direct chats.",
        tags=["Workspaces"],
    ),
)
class WorkspaceViewSet(ServiceResponseMixin, viewsets.ViewSet):
    """
    ViewSet for workspace operations.

    join:
        Join a public workspace. Joining twice is a no-op.

    leave:
        Leave a workspace. The creator cannot leave.

    searchable:
        Public workspaces and those the user created, ordered by name.
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = "[0-9a-f-]{36}"

    def list(self, request):
        result = WorkspaceService.get_user_workspaces(request.user)
        return self.service_response(result, WorkspaceSerializer)

    def create(self, request):
        serializer = WorkspaceCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = WorkspaceService.create_workspace(
            creator=request.user,
            **serializer.validated_data,
        )
        return self.service_response(
            result,
            WorkspaceSerializer,
            success_status=status.HTTP_201_CREATED,
        )

    def retrieve(self, request, pk=None):
        result = WorkspaceService.get_workspace(pk, request.user)
        return self.service_response(result, WorkspaceSerializer)

    def destroy(self, request, pk=None):
        result = WorkspaceService.delete_workspace(pk, request.user)
        return self.service_response(result)

    @extend_schema(
        operation_id="join_workspace",
        summary="Join workspace",
        request=None,
        responses={200: WorkspaceMembershipSerializer},
        tags=["Workspaces"],
    )
    @action(detail=True, methods=["post"])
    def join(self, request, pk=None):
        result = WorkspaceService.join_workspace(pk, request.user)
        return self.service_response(result, WorkspaceMembershipSerializer)

    @extend_schema(
        operation_id="leave_workspace",
        summary="Leave workspace",
        request=None,
        tags=["Workspaces"],
    )
    @action(detail=True, methods=["post"])
    def leave(self, request, pk=None):
        result = WorkspaceService.leave_workspace(pk, request.user)
        return self.service_response(result)

    @extend_schema(
        operation_id="list_searchable_workspaces",
        summary="List searchable workspaces",
        responses={200: WorkspaceSerializer(many=True)},
        tags=["Workspaces"],
    )
    @action(detail=False, methods=["get"])
    def searchable(self, request):
        result = WorkspaceService.get_searchable_workspaces(request.user)
        return self.service_response(result, WorkspaceSerializer)
