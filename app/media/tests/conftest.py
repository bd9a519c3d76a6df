"""
Test fixtures for media app.

Provides fixtures for:
- Sample uploads
- A workspace with a public channel and a direct chat
- Messages carrying one attachment each
- Authenticated test clients
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from chat.services import ChannelMessageService, DirectMessageService
from chat.tests.factories import ChannelFactory, DirectChatFactory
from workspaces.tests.factories import WorkspaceFactory

if TYPE_CHECKING:
    from authentication.models import User
    from media.models import Attachment


def _client_for(user) -> APIClient:
    client = APIClient()
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


# =============================================================================
# Sample Files
# =============================================================================


@pytest.fixture
def pdf_upload() -> SimpleUploadedFile:
    return SimpleUploadedFile(
        "Q3 report.pdf", b"%PDF-1.4 quarterly numbers", content_type="application/pdf"
    )


@pytest.fixture
def text_upload() -> SimpleUploadedFile:
    return SimpleUploadedFile("notes.txt", b"remember the milk", content_type="text/plain")


# =============================================================================
# Users and Conversations
# =============================================================================


@pytest.fixture
def uploader(db) -> "User":
    return UserFactory()


@pytest.fixture
def reader(db) -> "User":
    """Workspace member who did not upload anything."""
    return UserFactory()


@pytest.fixture
def stranger(db) -> "User":
    """User outside the workspace."""
    return UserFactory()


@pytest.fixture
def workspace(uploader, reader):
    return WorkspaceFactory(created_by=uploader, members=[reader])


@pytest.fixture
def channel(workspace, uploader):
    return ChannelFactory(workspace=workspace, created_by=uploader)


@pytest.fixture
def direct_chat(workspace, uploader, reader):
    return DirectChatFactory(workspace=workspace, user1=uploader, user2=reader)


@pytest.fixture
def channel_attachment(channel, uploader, pdf_upload) -> "Attachment":
    """Attachment of a channel message posted by ``uploader``."""
    message = ChannelMessageService.create_message(
        uploader, channel.id, "numbers", files=[pdf_upload]
    ).data
    return message.attachments.get()


@pytest.fixture
def direct_attachment(direct_chat, uploader, text_upload) -> "Attachment":
    """Attachment of a direct message from ``uploader`` to ``reader``."""
    message = DirectMessageService.create_message(
        uploader, direct_chat.id, "", files=[text_upload]
    ).data
    return message.attachments.get()


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client() -> APIClient:
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def uploader_client(uploader) -> APIClient:
    return _client_for(uploader)


@pytest.fixture
def reader_client(reader) -> APIClient:
    return _client_for(reader)


@pytest.fixture
def stranger_client(stranger) -> APIClient:
    return _client_for(stranger)
