"""
Test configuration and fixtures for workspace tests.

Usage:
    def test_example(workspace, member_client):
        response = member_client.get(f"/api/v1/workspaces/{workspace.id}/")
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from workspaces.models import Visibility
from workspaces.tests.factories import WorkspaceFactory


def _client_for(user) -> APIClient:
    client = APIClient()
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


@pytest.fixture
def owner(db):
    """User who creates the test workspaces."""
    return UserFactory()


@pytest.fixture
def member(db):
    """User who is a member of ``workspace``."""
    return UserFactory()


@pytest.fixture
def outsider(db):
    """User with no membership anywhere."""
    return UserFactory()


@pytest.fixture
def workspace(owner, member):
    """Public workspace created by ``owner`` with ``member`` added."""
    return WorkspaceFactory(name="Acme", created_by=owner, members=[member])


@pytest.fixture
def private_workspace(owner, member):
    """Private workspace created by ``owner`` with ``member`` added."""
    return WorkspaceFactory(
        name="Skunkworks",
        visibility=Visibility.PRIVATE,
        created_by=owner,
        members=[member],
    )


@pytest.fixture
def owner_client(owner):
    return _client_for(owner)


@pytest.fixture
def member_client(member):
    return _client_for(member)


@pytest.fixture
def outsider_client(outsider):
    return _client_for(outsider)
