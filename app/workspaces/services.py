"""
Workspace service layer.

Services:
    WorkspaceService: Workspace lifecycle and membership

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return ServiceResult.failure()
    - Unexpected failures are logged and returned as a generic failure by
      @service_operation

Usage:
    from workspaces.services import WorkspaceService

    result = WorkspaceService.create_workspace(
        creator=user,
        name="Acme",
        member_ids=[teammate.id],
    )
    if result.success:
        workspace = result.data
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Q

from core.services import BaseService, ServiceResult, service_operation

from workspaces.models import Visibility, Workspace, WorkspaceMembership

if TYPE_CHECKING:
    from collections.abc import Iterable

    from authentication.models import User


class WorkspaceService(BaseService):
    """
    Service for workspace operations.

    Methods:
        create_workspace: Create a workspace with its initial members
        get_workspace: Fetch a workspace visible to the user
        get_user_workspaces: Public workspaces plus the user's private ones
        join_workspace: Idempotently add the user as a member
        leave_workspace: Remove the user's membership
        delete_workspace: Physically delete (creator only), cascading
        get_searchable_workspaces: Public workspaces plus those the user created
        is_member: Membership check used across apps
        get_member_ids: Ids of every member
    """

    MAX_NAME_LENGTH = 100

    @classmethod
    def is_member(cls, workspace_id, user: User) -> bool:
        return WorkspaceMembership.objects.filter(
            workspace_id=workspace_id,
            user=user,
        ).exists()

    @classmethod
    def get_member_ids(cls, workspace_id) -> list:
        return list(
            WorkspaceMembership.objects.filter(workspace_id=workspace_id).values_list(
                "user_id", flat=True
            )
        )

    @classmethod
    @service_operation("Failed to create workspace")
    def create_workspace(
        cls,
        creator: User,
        name: str,
        description: str = "",
        visibility: str = Visibility.PUBLIC,
        member_ids: Iterable | None = None,
    ) -> ServiceResult[Workspace]:
        """
        Create a workspace and its initial memberships.

        The creator always becomes a member. Unknown member ids are
        ignored.

        Args:
            creator: User creating the workspace
            name: Display name
            description: Optional description
            visibility: "public" or "private"
            member_ids: Additional users to add as members

        Returns:
            ServiceResult with the new Workspace

        Error codes:
            VALIDATION_ERROR: Missing/too long name or invalid visibility
        """
        name = (name or "").strip()
        validation = cls.validate_required(name=name)
        if validation is not None:
            return validation
        if len(name) > cls.MAX_NAME_LENGTH:
            return ServiceResult.failure(
                f"Workspace name cannot exceed {cls.MAX_NAME_LENGTH} characters",
                error_code="VALIDATION_ERROR",
            )
        if visibility not in Visibility.values:
            return ServiceResult.failure(
                f"Invalid visibility: {visibility}",
                error_code="VALIDATION_ERROR",
            )

        ids = {str(user_id) for user_id in (member_ids or []) if user_id}
        ids.discard(str(creator.id))
        members = list(get_user_model().objects.filter(id__in=ids)) if ids else []

        with cls.atomic():
            workspace = Workspace.objects.create(
                name=name,
                description=description or "",
                visibility=visibility,
                created_by=creator,
            )
            WorkspaceMembership.objects.bulk_create(
                [
                    WorkspaceMembership(workspace=workspace, user=user)
                    for user in [creator, *members]
                ]
            )

        cls.get_logger().info(
            f"User {creator.id} created workspace {workspace.id} "
            f"with {len(members) + 1} members"
        )
        return ServiceResult.success(workspace, "Workspace created successfully")

    @classmethod
    @service_operation("Failed to get workspace")
    def get_workspace(cls, workspace_id, user: User) -> ServiceResult[Workspace]:
        """
        Fetch a workspace.

        Private workspaces are only returned to members.

        Error codes:
            WORKSPACE_NOT_FOUND: No such workspace
            NOT_MEMBER: Private workspace and the user is not a member
        """
        workspace = Workspace.objects.filter(id=workspace_id).first()
        if workspace is None:
            return ServiceResult.failure(
                "Workspace not found",
                error_code="WORKSPACE_NOT_FOUND",
            )

        if workspace.visibility == Visibility.PRIVATE and not cls.is_member(
            workspace.id, user
        ):
            return ServiceResult.failure(
                "You are not a member of this workspace",
                error_code="NOT_MEMBER",
            )

        return ServiceResult.success(workspace, "Workspace retrieved successfully")

    @classmethod
    @service_operation("Failed to get user workspaces")
    def get_user_workspaces(cls, user: User) -> ServiceResult[list[Workspace]]:
        """List public workspaces and every workspace the user belongs to."""
        workspaces = list(
            Workspace.objects.filter(
                Q(visibility=Visibility.PUBLIC) | Q(memberships__user=user)
            )
            .distinct()
            .order_by("name")
        )
        return ServiceResult.success(
            workspaces, "User workspaces retrieved successfully"
        )

    @classmethod
    @service_operation("Failed to join workspace")
    def join_workspace(
        cls,
        workspace_id,
        user: User,
    ) -> ServiceResult[WorkspaceMembership]:
        """
        Add the user to a workspace.

        Joining twice returns the existing membership. Private workspaces
        cannot be joined; their members are added on creation.

        Error codes:
            WORKSPACE_NOT_FOUND: No such workspace
            PERMISSION_DENIED: Workspace is private
        """
        workspace = Workspace.objects.filter(id=workspace_id).first()
        if workspace is None:
            return ServiceResult.failure(
                "Workspace not found",
                error_code="WORKSPACE_NOT_FOUND",
            )

        existing = WorkspaceMembership.objects.filter(
            workspace=workspace, user=user
        ).first()
        if existing:
            return ServiceResult.success(existing, "Already a member")

        if workspace.visibility == Visibility.PRIVATE:
            return ServiceResult.failure(
                "Private workspaces cannot be joined",
                error_code="PERMISSION_DENIED",
            )

        try:
            with transaction.atomic():
                membership = WorkspaceMembership.objects.create(
                    workspace=workspace,
                    user=user,
                )
        except IntegrityError:
            # Concurrent join won the race
            membership = WorkspaceMembership.objects.get(workspace=workspace, user=user)
            return ServiceResult.success(membership, "Already a member")

        cls.get_logger().info(f"User {user.id} joined workspace {workspace.id}")
        return ServiceResult.success(membership, "Joined workspace successfully")

    @classmethod
    @service_operation("Failed to leave workspace")
    def leave_workspace(cls, workspace_id, user: User) -> ServiceResult[None]:
        """
        Remove the user's membership.

        Error codes:
            NOT_MEMBER: The user is not a member
            CREATOR_CANNOT_LEAVE: The creator must delete the workspace instead
        """
        membership = (
            WorkspaceMembership.objects.select_related("workspace")
            .filter(workspace_id=workspace_id, user=user)
            .first()
        )
        if membership is None:
            return ServiceResult.failure(
                "You are not a member of this workspace",
                error_code="NOT_MEMBER",
            )
        if membership.workspace.created_by_id == user.id:
            return ServiceResult.failure(
                "The creator cannot leave the workspace",
                error_code="CREATOR_CANNOT_LEAVE",
            )

        membership.delete()
        cls.get_logger().info(f"User {user.id} left workspace {workspace_id}")
        return ServiceResult.success(None, "Left workspace successfully")

    @classmethod
    @service_operation("Failed to delete workspace")
    def delete_workspace(cls, workspace_id, user: User) -> ServiceResult[None]:
        """
        Physically delete a workspace and everything inside it.

        Error codes:
            WORKSPACE_NOT_FOUND: No such workspace
            PERMISSION_DENIED: Only the creator may delete
        """
        workspace = Workspace.objects.filter(id=workspace_id).first()
        if workspace is None:
            return ServiceResult.failure(
                "Workspace not found",
                error_code="WORKSPACE_NOT_FOUND",
            )
        if workspace.created_by_id != user.id:
            return ServiceResult.failure(
                "Only the creator can delete this workspace",
                error_code="PERMISSION_DENIED",
            )

        with cls.atomic():
            workspace.delete()

        cls.get_logger().info(f"User {user.id} deleted workspace {workspace_id}")
        return ServiceResult.success(None, "Workspace deleted successfully")

    @classmethod
    @service_operation("Failed to get workspaces")
    def get_searchable_workspaces(cls, user: User) -> ServiceResult[list[Workspace]]:
        """List public workspaces and private ones the user created, by name."""
        workspaces = list(
            Workspace.objects.filter(
                Q(visibility=Visibility.PUBLIC) | Q(created_by=user)
            ).order_by("name")
        )
        return ServiceResult.success(workspaces, "Workspaces retrieved successfully")
