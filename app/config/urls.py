"""
URL configuration for the Django application.

The `urlpatterns` list routes URLs to views. This is the root URL configuration
that includes all app-specific routes.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (for load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/token/            - Obtain JWT pair
    /api/v1/auth/token/refresh/    - Refresh access token
    /api/v1/users/                 - me/, search/, batch/
    /api/v1/workspaces/            - Workspace list/create/detail, members
    /api/v1/workspaces/{id}/channels/     - Channels of a workspace
    /api/v1/workspaces/{id}/direct-chats/ - Direct chats of a workspace
    /api/v1/channels/{id}/         - Channel detail/delete, members
    /api/v1/channels/{id}/messages/      - Channel messages list/send
    /api/v1/direct-chats/{id}/           - Direct chat detail
    /api/v1/direct-chats/{id}/messages/  - Direct messages list/send
    /api/v1/{kind}/messages/{id}/        - Message get/edit/delete
        replies/                   - Thread replies list/send
        reactions/                 - Reaction toggle/list
        attachments/               - Attachment list/add
    /api/v1/attachments/{id}/      - Attachment detail/delete
        signed-url/                - Time-limited read URL
        download/                  - Protected download
    /api/v1/presence/              - Own presence; heartbeat/, bulk/, {user_id}/
    /api/v1/search/                - Message search

WebSocket routes live in realtime.routing.

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
# All routes here are prefixed with /api/v1/ automatically
api_v1_patterns = [
    # Users and tokens
    path("", include("authentication.urls")),
    # Workspaces
    path("", include("workspaces.urls")),
    # Channels, direct chats, messages, reactions, presence, search
    path("", include("chat.urls")),
    # Attachments
    path("", include("media.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "Team Chat Admin"
admin.site.site_title = "Team Chat Admin"
admin.site.index_title = "Workspaces, channels and messages"
