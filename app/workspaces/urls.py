"""
URL configuration for the workspaces API.

All URLs are prefixed with /api/v1/ in the main URL configuration.
Channel and direct chat listings nested under a workspace live in
chat/urls.py.
"""

from django.urls import include, path
from rest_framework.routers import SimpleRouter

from workspaces.views import WorkspaceViewSet

router = SimpleRouter()
router.register(r"workspaces", WorkspaceViewSet, basename="workspace")

app_name = "workspaces"

urlpatterns = [
    path("", include(router.urls)),
]
