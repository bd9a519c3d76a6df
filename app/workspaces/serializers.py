"""
Serializers for the workspaces API.

Serializer Hierarchy:
    WorkspaceSerializer: Read representation with membership flag
    WorkspaceCreateSerializer: Create request (name, visibility, members)
    WorkspaceMembershipSerializer: Result of joining a workspace
"""

from rest_framework import serializers

from workspaces.models import Visibility, Workspace, WorkspaceMembership


class WorkspaceSerializer(serializers.ModelSerializer):
    """Workspace with a computed ``is_member`` flag for the requesting user."""

    created_by = serializers.UUIDField(source="created_by_id", read_only=True)
    is_member = serializers.SerializerMethodField()

    class Meta:
        model = Workspace
        fields = [
            "id",
            "name",
            "description",
            "visibility",
            "created_by",
            "is_member",
            "created_at",
        ]
        read_only_fields = fields

    def get_is_member(self, obj) -> bool:
        request = self.context.get("request")
        if request is None or not request.user.is_authenticated:
            return False
        return obj.is_member(request.user)


class WorkspaceCreateSerializer(serializers.Serializer):
    """Request body for creating a workspace."""

    name = serializers.CharField(max_length=100)
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


class WorkspaceMembershipSerializer(serializers.ModelSerializer):
    workspace = serializers.UUIDField(source="workspace_id", read_only=True)
    user = serializers.UUIDField(source="user_id", read_only=True)

    class Meta:
        model = WorkspaceMembership
        fields = ["id", "workspace", "user", "created_at"]
        read_only_fields = fields
