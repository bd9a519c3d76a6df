"""
Tests for UserService.

Test Organization:
    - Each service method has its own test class
    - Tests use descriptive names following: test_<scenario>_<expected_outcome>

Testing Philosophy:
    Tests focus on observable behavior:
    - ServiceResult success/failure states
    - Database state changes
    - Error codes for specific failure modes
"""

import uuid
from unittest import mock

from django.core.cache import cache

from authentication.models import User
from authentication.services import UserService
from authentication.tests.factories import UserFactory


# =============================================================================
# TestUserServiceUpsert
# =============================================================================


class TestUserServiceUpsert:
    """Tests for UserService.upsert_user()."""

    def test_creates_user_when_id_is_new(self, db):
        """
        First upsert for an id inserts the row.

        Why it matters: Users arrive from the identity source before they
        ever open the app.
        """
        user_id = uuid.uuid4()

        result = UserService.upsert_user(
            user_id=user_id,
            email="new@example.com",
            username="newbie",
            full_name="New Person",
        )

        assert result.success is True
        assert result.data.id == user_id
        assert User.objects.get(id=user_id).username == "newbie"
        assert result.data.has_usable_password() is False

    def test_updates_existing_user_in_place(self, db):
        """Second upsert for the same id updates instead of duplicating."""
        user = UserFactory(username="before")

        result = UserService.upsert_user(
            user_id=user.id,
            email=user.email,
            username="after",
            full_name="Changed",
        )

        assert result.success is True
        assert User.objects.count() == 1
        user.refresh_from_db()
        assert user.username == "after"
        assert user.full_name == "Changed"

    def test_rejects_username_owned_by_another_user(self, db):
        UserFactory(username="taken")

        result = UserService.upsert_user(
            user_id=uuid.uuid4(),
            email="x@example.com",
            username="taken",
        )

        assert result.success is False
        assert result.error_code == "USERNAME_TAKEN"

    def test_requires_username(self, db):
        result = UserService.upsert_user(
            user_id=uuid.uuid4(),
            email="x@example.com",
            username="",
        )

        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"
        assert "username" in result.errors


# =============================================================================
# TestUserServiceGetUpdateDelete
# =============================================================================


class TestUserServiceGetUpdateDelete:
    """Tests for get_user(), update_user() and delete_user()."""

    def test_get_user_returns_user(self, user):
        result = UserService.get_user(user.id)

        assert result.success is True
        assert result.data == user

    def test_get_user_unknown_id_fails(self, db):
        result = UserService.get_user(uuid.uuid4())

        assert result.success is False
        assert result.error_code == "USER_NOT_FOUND"

    def test_update_user_changes_profile_fields(self, user):
        result = UserService.update_user(
            user.id,
            full_name="Augusta Ada King",
            image_url="https://cdn.example.com/ada.png",
        )

        assert result.success is True
        user.refresh_from_db()
        assert user.full_name == "Augusta Ada King"
        assert user.image_url == "https://cdn.example.com/ada.png"

    def test_update_user_rejects_unknown_fields(self, user):
        """
        Only public profile fields are writable.

        Why it matters: Privilege flags must never be set through the
        profile endpoint.
        """
        result = UserService.update_user(user.id, is_staff=True)

        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"
        user.refresh_from_db()
        assert user.is_staff is False

    def test_update_user_rejects_taken_username(self, user, other_user):
        result = UserService.update_user(user.id, username=other_user.username)

        assert result.success is False
        assert result.error_code == "USERNAME_TAKEN"

    def test_delete_user_removes_row(self, user):
        result = UserService.delete_user(user.id)

        assert result.success is True
        assert not User.objects.filter(id=user.id).exists()

    def test_delete_unknown_user_fails(self, db):
        result = UserService.delete_user(uuid.uuid4())

        assert result.success is False
        assert result.error_code == "USER_NOT_FOUND"


# =============================================================================
# TestUserServiceSearch
# =============================================================================


class TestUserServiceSearch:
    """Tests for UserService.search_users()."""

    def test_matches_username_and_full_name_case_insensitively(self, user, db):
        by_username = UserFactory(username="gracie", full_name="Someone")
        by_name = UserFactory(username="admiral", full_name="Grace Hopper")
        UserFactory(username="unrelated", full_name="Nobody")

        result = UserService.search_users("GRAC", current_user=user)

        assert result.success is True
        assert {u.id for u in result.data} == {by_username.id, by_name.id}

    def test_excludes_the_searching_user(self, user):
        """
        The caller never appears in their own search results.

        Why it matters: Search is used to start DMs; DMing yourself is
        not offered.
        """
        result = UserService.search_users("ada", current_user=user)

        assert result.success is True
        assert user not in result.data

    def test_empty_query_fails(self, user):
        result = UserService.search_users("   ", current_user=user)

        assert result.success is False
        assert result.error_code == "VALIDATION_ERROR"

    def test_respects_limit(self, user, db):
        UserFactory.create_batch(5, full_name="Team Member")

        result = UserService.search_users("team", current_user=user, limit=3)

        assert len(result.data) == 3


# =============================================================================
# TestUserServiceBatch
# =============================================================================


class TestUserServiceBatch:
    """Tests for get_users_by_ids() and get_cached_users()."""

    def test_get_users_by_ids_ignores_unknown_and_duplicate_ids(
        self, user, other_user
    ):
        result = UserService.get_users_by_ids(
            [user.id, user.id, other_user.id, uuid.uuid4(), None]
        )

        assert result.success is True
        assert {u.id for u in result.data} == {user.id, other_user.id}

    def test_get_users_by_ids_empty_input_returns_empty_list(self, db):
        result = UserService.get_users_by_ids([])

        assert result.success is True
        assert result.data == []

    def test_get_cached_users_returns_summaries_in_request_order(
        self, user, other_user
    ):
        result = UserService.get_cached_users([other_user.id, user.id])

        assert result.success is True
        assert [s["id"] for s in result.data] == [str(other_user.id), str(user.id)]
        assert result.data[1] == {
            "id": str(user.id),
            "username": "ada",
            "full_name": "Ada Lovelace",
            "image_url": "",
        }

    def test_get_cached_users_second_call_hits_cache(self, user, django_assert_num_queries):
        """
        Summaries are written back to the cache after the first lookup.

        Why it matters: Every conversation view resolves authors; the
        database should only be hit for misses.
        """
        UserService.get_cached_users([user.id])

        with django_assert_num_queries(0):
            result = UserService.get_cached_users([user.id])

        assert result.data[0]["username"] == "ada"

    def test_update_evicts_cached_summary(self, user):
        UserService.get_cached_users([user.id])

        UserService.update_user(user.id, full_name="Renamed")

        assert cache.get(UserService._summary_key(user.id)) is None
        result = UserService.get_cached_users([user.id])
        assert result.data[0]["full_name"] == "Renamed"

    def test_unexpected_error_becomes_generic_failure(self, user):
        """
        Unexpected exceptions never leak to the caller.

        Why it matters: Clients only ever see the generic message and the
        INTERNAL_ERROR code; the cause goes to the logs.
        """
        with mock.patch(
            "authentication.services.cache.get_many",
            side_effect=RuntimeError("redis down"),
        ):
            result = UserService.get_cached_users([user.id])

        assert result.success is False
        assert result.error_code == "INTERNAL_ERROR"
        assert "redis" not in result.message
