"""
URL configuration for the user directory.

URL structure:
    /api/v1/users/me/            - Current user (GET/PATCH)
    /api/v1/users/search/        - Search users (GET)
    /api/v1/users/batch/         - Users by ids (POST)
    /api/v1/auth/token/          - Obtain JWT pair (simplejwt)
    /api/v1/auth/token/refresh/  - Refresh JWT (simplejwt)

All URLs are prefixed with /api/v1/ in the main URL configuration.
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from authentication.views import CurrentUserView, UserBatchView, UserSearchView

app_name = "authentication"

urlpatterns = [
    # Users
    path("users/me/", CurrentUserView.as_view(), name="user-me"),
    path("users/search/", UserSearchView.as_view(), name="user-search"),
    path("users/batch/", UserBatchView.as_view(), name="user-batch"),
    # JWT tokens
    path("auth/token/", TokenObtainPairView.as_view(), name="token-obtain"),
    path("auth/token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
]
