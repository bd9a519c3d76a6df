"""
Test fixtures for the realtime layer.

Provides:
- Three users: ``owner`` and ``member`` share a workspace, ``outsider``
  belongs nowhere
- A public channel, a private channel (owner only) and a direct chat
- ``feed_layer``: a mocked channel layer recording group_send calls
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from rest_framework_simplejwt.tokens import AccessToken

from authentication.tests.factories import UserFactory
from chat.tests.factories import ChannelFactory, DirectChatFactory, PrivateChannelFactory
from workspaces.tests.factories import WorkspaceFactory


@pytest.fixture
def owner(db):
    return UserFactory(username="owner")


@pytest.fixture
def member(db):
    return UserFactory(username="member")


@pytest.fixture
def outsider(db):
    return UserFactory(username="outsider")


@pytest.fixture
def workspace(owner, member):
    return WorkspaceFactory(created_by=owner, members=[member])


@pytest.fixture
def channel(workspace, owner):
    return ChannelFactory(workspace=workspace, name="general", created_by=owner)


@pytest.fixture
def private_channel(workspace, owner):
    return PrivateChannelFactory(workspace=workspace, name="secret", created_by=owner)


@pytest.fixture
def direct_chat(workspace, owner, member):
    return DirectChatFactory(workspace=workspace, user1=owner, user2=member)


@pytest.fixture
def token_for():
    """Access token string for a user, as a WebSocket client sends it."""

    def build(user) -> str:
        return str(AccessToken.for_user(user))

    return build


@pytest.fixture
def feed_layer():
    """
    Channel layer double used by changefeed.publish.

    Usage:
        def test_publish(feed_layer):
            ...
            groups = [call.args[0] for call in feed_layer.group_send.await_args_list]
    """
    layer = MagicMock()
    layer.group_send = AsyncMock()
    with patch("realtime.changefeed.get_channel_layer", return_value=layer):
        yield layer
