"""
Test configuration and fixtures for chat tests.

This module provides:
- Users with different roles in one workspace
- A public channel, a private channel and a direct chat
- API client helpers for authenticated requests

Usage:
    def test_example(channel, member_client):
        response = member_client.get(f"/api/v1/channels/{channel.id}/messages/")
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from chat.tests.factories import ChannelFactory, DirectChatFactory, PrivateChannelFactory
from workspaces.tests.factories import WorkspaceFactory


def _client_for(user) -> APIClient:
    client = APIClient()
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def owner(db):
    """Creates the workspace and the channels."""
    return UserFactory(username="owner")


@pytest.fixture
def member(db):
    """Workspace member, not in the private channel."""
    return UserFactory(username="member")


@pytest.fixture
def insider(db):
    """Workspace member who is also in the private channel."""
    return UserFactory(username="insider")


@pytest.fixture
def outsider(db):
    """User with no membership anywhere."""
    return UserFactory(username="outsider")


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def workspace(owner, member, insider):
    return WorkspaceFactory(name="Acme", created_by=owner, members=[member, insider])


@pytest.fixture
def channel(workspace, owner):
    """Public channel; only ``owner`` has a membership row."""
    return ChannelFactory(workspace=workspace, name="general", created_by=owner)


@pytest.fixture
def private_channel(workspace, owner, insider):
    return PrivateChannelFactory(
        workspace=workspace, name="secret", created_by=owner, members=[insider]
    )


@pytest.fixture
def direct_chat(workspace, owner, member):
    return DirectChatFactory(workspace=workspace, user1=owner, user2=member)


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def owner_client(owner):
    return _client_for(owner)


@pytest.fixture
def member_client(member):
    return _client_for(member)


@pytest.fixture
def insider_client(insider):
    return _client_for(insider)


@pytest.fixture
def outsider_client(outsider):
    return _client_for(outsider)
