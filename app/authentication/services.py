"""
User services.

This module provides the UserService class for the user directory:
upserting identities, lookups, profile updates, search and the batched
lookup every conversation view uses to resolve message authors.

Related files:
    - models.py: User
    - realtime/user_cache.py: Per-connection cache in front of
      get_cached_users

Caching:
    get_cached_users reads user summaries from the Django cache (Redis in
    deployment) and fetches every miss in a single query. Updates and
    deletes evict the cached summary.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.core.cache import cache
from django.db.models import Q

from core.services import BaseService, ServiceResult, service_operation

from authentication.models import User

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)


class UserService(BaseService):
    """
    Service for the user directory.

    Methods:
        upsert_user: Create or refresh a user keyed on id
        get_user: Fetch a single user
        update_user: Change username, full name or avatar
        delete_user: Physically delete a user
        search_users: Username/full name substring search, caller excluded
        get_users_by_ids: One query for many ids
        get_cached_users: Batched summaries through the shared cache
    """

    UPDATABLE_FIELDS = ("username", "full_name", "image_url")
    SEARCH_LIMIT = 20
    SUMMARY_CACHE_TTL_SECONDS = 300
    SUMMARY_CACHE_PREFIX = "user_summary"

    @classmethod
    def _summary_key(cls, user_id) -> str:
        return f"{cls.SUMMARY_CACHE_PREFIX}:{user_id}"

    @staticmethod
    def to_summary(user: User) -> dict:
        """Public, JSON-safe view of a user as embedded in conversation views."""
        return {
            "id": str(user.id),
            "username": user.username,
            "full_name": user.full_name,
            "image_url": user.image_url,
        }

    @classmethod
    def _evict(cls, user_id) -> None:
        cache.delete(cls._summary_key(user_id))

    @classmethod
    @service_operation("Failed to save user")
    def upsert_user(
        cls,
        user_id,
        email: str,
        username: str,
        full_name: str = "",
        image_url: str = "",
    ) -> ServiceResult[User]:
        """
        Insert a user or update it in place when the id already exists.

        Args:
            user_id: Stable identifier from the identity source
            email: Email address
            username: Public handle
            full_name: Display name
            image_url: Avatar URL

        Returns:
            ServiceResult with the stored User

        Error codes:
            VALIDATION_ERROR: id, email or username missing
            USERNAME_TAKEN: another user already has this username
        """
        validation = cls.validate_required(
            user_id=user_id, email=email, username=username
        )
        if validation is not None:
            return validation

        if User.objects.filter(username=username).exclude(id=user_id).exists():
            return ServiceResult.failure(
                "Username is already taken",
                error_code="USERNAME_TAKEN",
            )

        with cls.atomic():
            user, created = User.objects.update_or_create(
                id=user_id,
                defaults={
                    "email": User.objects.normalize_email(email),
                    "username": username,
                    "full_name": full_name or "",
                    "image_url": image_url or "",
                },
            )
            if created:
                user.set_unusable_password()
                user.save(update_fields=["password"])

        cls._evict(user.id)
        cls.get_logger().info(
            f"{'Created' if created else 'Updated'} user {user.id} ({username})"
        )
        return ServiceResult.success(user, "User saved successfully")

    @classmethod
    @service_operation("Failed to get user")
    def get_user(cls, user_id) -> ServiceResult[User]:
        """
        Fetch a single user by id.

        Error codes:
            USER_NOT_FOUND: No user with this id
        """
        user = User.objects.filter(id=user_id).first()
        if user is None:
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")
        return ServiceResult.success(user, "User retrieved successfully")

    @classmethod
    @service_operation("Failed to update user")
    def update_user(cls, user_id, **fields) -> ServiceResult[User]:
        """
        Update a user's public profile fields.

        Only username, full_name and image_url may be changed; other keys
        are rejected.

        Error codes:
            USER_NOT_FOUND: No user with this id
            VALIDATION_ERROR: Unknown or empty fields
            USERNAME_TAKEN: Another user already has this username
        """
        unknown = sorted(set(fields) - set(cls.UPDATABLE_FIELDS))
        if unknown:
            return ServiceResult.failure(
                f"Fields cannot be updated: {', '.join(unknown)}",
                error_code="VALIDATION_ERROR",
                errors={name: ["This field cannot be updated."] for name in unknown},
            )
        if "username" in fields:
            validation = cls.validate_required(username=fields["username"])
            if validation is not None:
                return validation

        user = User.objects.filter(id=user_id).first()
        if user is None:
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        username = fields.get("username")
        if (
            username
            and User.objects.filter(username=username).exclude(id=user_id).exists()
        ):
            return ServiceResult.failure(
                "Username is already taken",
                error_code="USERNAME_TAKEN",
            )

        for name, value in fields.items():
            setattr(user, name, value or "")
        user.save(update_fields=[*fields, "updated_at"])

        cls._evict(user.id)
        cls.get_logger().info(f"Updated user {user.id}: {sorted(fields)}")
        return ServiceResult.success(user, "User updated successfully")

    @classmethod
    @service_operation("Failed to delete user")
    def delete_user(cls, user_id) -> ServiceResult[None]:
        """
        Physically delete a user.

        Error codes:
            USER_NOT_FOUND: No user with this id
        """
        deleted, _ = User.objects.filter(id=user_id).delete()
        if not deleted:
            return ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        cls._evict(user_id)
        cls.get_logger().info(f"Deleted user {user_id}")
        return ServiceResult.success(None, "User deleted successfully")

    @classmethod
    @service_operation("Failed to search users")
    def search_users(
        cls,
        query: str,
        current_user: User,
        limit: int | None = None,
    ) -> ServiceResult[list[User]]:
        """
        Case-insensitive substring search over username and full name.

        The searching user is never part of the results.

        Args:
            query: Search text
            current_user: User performing the search
            limit: Maximum results (default SEARCH_LIMIT)

        Error codes:
            VALIDATION_ERROR: Empty query
        """
        query = (query or "").strip()
        if not query:
            return ServiceResult.failure(
                "Search query is required",
                error_code="VALIDATION_ERROR",
            )

        users = list(
            User.objects.filter(
                Q(username__icontains=query) | Q(full_name__icontains=query),
                is_active=True,
            )
            .exclude(id=current_user.id)
            .order_by("username")[: limit or cls.SEARCH_LIMIT]
        )
        return ServiceResult.success(users, "Users retrieved successfully")

    @classmethod
    @service_operation("Failed to get users")
    def get_users_by_ids(cls, user_ids: Iterable) -> ServiceResult[list[User]]:
        """
        Fetch many users in a single query.

        Duplicate and empty ids are ignored; unknown ids are simply absent
        from the result.
        """
        ids = {str(user_id) for user_id in user_ids if user_id}
        if not ids:
            return ServiceResult.success([], "Users retrieved successfully")

        users = list(User.objects.filter(id__in=ids))
        return ServiceResult.success(users, "Users retrieved successfully")

    @classmethod
    @service_operation("Failed to get users")
    def get_cached_users(cls, user_ids: Iterable) -> ServiceResult[list[dict]]:
        """
        Batched user summaries through the shared cache.

        Reads every id from the Django cache in one round trip, loads all
        misses with one query and writes them back with
        SUMMARY_CACHE_TTL_SECONDS.

        Returns:
            ServiceResult with a list of summary dicts (see to_summary)
        """
        ids = list(dict.fromkeys(str(user_id) for user_id in user_ids if user_id))
        if not ids:
            return ServiceResult.success([], "Users retrieved successfully")

        keys = {cls._summary_key(user_id): user_id for user_id in ids}
        cached = cache.get_many(list(keys))
        summaries = {keys[key]: value for key, value in cached.items()}

        missing = [user_id for user_id in ids if user_id not in summaries]
        if missing:
            fetched = {
                str(user.id): cls.to_summary(user)
                for user in User.objects.filter(id__in=missing)
            }
            cache.set_many(
                {cls._summary_key(user_id): summary for user_id, summary in fetched.items()},
                timeout=cls.SUMMARY_CACHE_TTL_SECONDS,
            )
            summaries.update(fetched)
            logger.debug(f"User summaries: {len(cached)} cached, {len(fetched)} fetched")

        return ServiceResult.success(
            [summaries[user_id] for user_id in ids if user_id in summaries],
            "Users retrieved successfully",
        )
