"""
Tests for WorkspaceService.

Test Organization:
    - Each service method has its own test class
    - Tests use descriptive names following: test_<scenario>_<expected_outcome>
"""

import uuid

from authentication.tests.factories import UserFactory
from workspaces.models import Visibility, Workspace, WorkspaceMembership
from workspaces.services import WorkspaceService
from workspaces.tests.factories import WorkspaceFactory


class TestWorkspaceServiceCreate:
    """Tests for WorkspaceService.create_workspace()."""

    def test_creator_becomes_member(self, owner):
        """
        The creator is always a member of a new workspace.

        Why it matters: Membership gates every channel and DM inside it.
        """
        result = WorkspaceService.create_workspace(creator=owner, name="Acme")

        assert result.success is True
        assert result.data.created_by == owner
        assert WorkspaceMembership.objects.filter(
            workspace=result.data, user=owner
        ).exists()

    def test_adds_initial_members_and_ignores_duplicates(self, owner, member):
        result = WorkspaceService.create_workspace(
            creator=owner,
            name="Acme",
            member_ids=[member.id, member.id, owner.id, uuid.uuid4()],
        )

        assert result.success is True
        assert set(WorkspaceService.get_member_ids(result.data.id)) == {
            owner.id,
            member.id,
        }

    def test_blank_name_fails(self, owner):
        result = WorkspaceService.create_workspace(creator=owner, name="  ")

        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"
        assert Workspace.objects.count() == 0

    def test_invalid_visibility_fails(self, owner):
        result = WorkspaceService.create_workspace(
            creator=owner, name="Acme", visibility="secret"
        )

        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"


class TestWorkspaceServiceGet:
    """Tests for get_workspace() and the two listings."""

    def test_public_workspace_visible_to_anyone(self, workspace, outsider):
        result = WorkspaceService.get_workspace(workspace.id, outsider)

        assert result.success is True
        assert result.data == workspace

    def test_private_workspace_hidden_from_non_members(
        self, private_workspace, outsider
    ):
        result = WorkspaceService.get_workspace(private_workspace.id, outsider)

        assert result.success is False
        assert result.error_code == "NOT_MEMBER"

    def test_unknown_workspace_fails(self, outsider):
        result = WorkspaceService.get_workspace(uuid.uuid4(), outsider)

        assert result.success is False
        assert result.error_code == "WORKSPACE_NOT_FOUND"

    def test_user_workspaces_are_public_or_member(
        self, workspace, private_workspace, member, outsider
    ):
        """
        Listing returns public workspaces plus private ones the user is in.

        Why it matters: Outsiders discover public workspaces but never see
        private ones.
        """
        other_private = WorkspaceFactory(visibility=Visibility.PRIVATE)

        member_ids = {w.id for w in WorkspaceService.get_user_workspaces(member).data}
        outsider_ids = {
            w.id for w in WorkspaceService.get_user_workspaces(outsider).data
        }

        assert member_ids == {workspace.id, private_workspace.id}
        assert outsider_ids == {workspace.id}
        assert other_private.id not in member_ids

    def test_user_workspaces_have_no_duplicates(self, workspace, member):
        result = WorkspaceService.get_user_workspaces(member)

        assert [w.id for w in result.data] == [workspace.id]

    def test_searchable_workspaces_are_public_or_created_ordered_by_name(
        self, owner, member
    ):
        zed = WorkspaceFactory(name="Zed", created_by=owner)
        mine = WorkspaceFactory(
            name="Alpha", visibility=Visibility.PRIVATE, created_by=owner
        )
        # Private workspace the member belongs to but did not create
        WorkspaceFactory(
            name="Beta",
            visibility=Visibility.PRIVATE,
            created_by=owner,
            members=[member],
        )

        owner_result = WorkspaceService.get_searchable_workspaces(owner)
        member_result = WorkspaceService.get_searchable_workspaces(member)

        assert [w.name for w in owner_result.data] == ["Alpha", "Beta", "Zed"]
        assert [w.id for w in member_result.data] == [zed.id]
        assert mine not in member_result.data


class TestWorkspaceServiceJoinLeave:
    """Tests for join_workspace() and leave_workspace()."""

    def test_join_public_workspace(self, workspace, outsider):
        result = WorkspaceService.join_workspace(workspace.id, outsider)

        assert result.success is True
        assert workspace.is_member(outsider)

    def test_join_is_idempotent(self, workspace, member):
        """
        Joining twice keeps a single membership row.

        Why it matters: Clients retry joins freely.
        """
        first = WorkspaceService.join_workspace(workspace.id, member)
        second = WorkspaceService.join_workspace(workspace.id, member)

        assert first.success is True
        assert second.success is True
        assert first.data.id == second.data.id
        assert (
            WorkspaceMembership.objects.filter(workspace=workspace, user=member).count()
            == 1
        )

    def test_join_private_workspace_denied(self, private_workspace, outsider):
        result = WorkspaceService.join_workspace(private_workspace.id, outsider)

        assert result.success is False
        assert result.error_code == "PERMISSION_DENIED"

    def test_join_unknown_workspace_fails(self, outsider):
        result = WorkspaceService.join_workspace(uuid.uuid4(), outsider)

        assert result.error_code == "WORKSPACE_NOT_FOUND"

    def test_leave_removes_membership(self, workspace, member):
        result = WorkspaceService.leave_workspace(workspace.id, member)

        assert result.success is True
        assert not workspace.is_member(member)

    def test_creator_cannot_leave(self, workspace, owner):
        result = WorkspaceService.leave_workspace(workspace.id, owner)

        assert result.success is False
        assert result.error_code == "CREATOR_CANNOT_LEAVE"

    def test_leave_without_membership_fails(self, workspace, outsider):
        result = WorkspaceService.leave_workspace(workspace.id, outsider)

        assert result.error_code == "NOT_MEMBER"


class TestWorkspaceServiceDelete:
    """Tests for delete_workspace()."""

    def test_creator_deletes_workspace_and_memberships(self, workspace, owner):
        result = WorkspaceService.delete_workspace(workspace.id, owner)

        assert result.success is True
        assert not Workspace.objects.filter(id=workspace.id).exists()
        assert not WorkspaceMembership.objects.filter(workspace_id=workspace.id).exists()

    def test_non_creator_cannot_delete(self, workspace, member):
        result = WorkspaceService.delete_workspace(workspace.id, member)

        assert result.success is False
        assert result.error_code == "PERMISSION_DENIED"
        assert Workspace.objects.filter(id=workspace.id).exists()

    def test_is_member_helper(self, workspace, member, db):
        assert WorkspaceService.is_member(workspace.id, member) is True
        assert WorkspaceService.is_member(workspace.id, UserFactory()) is False
