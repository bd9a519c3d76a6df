"""
Tests for the service layer primitives.

These tests verify:
- ServiceResult envelopes for success and failure
- service_operation converting unexpected exceptions to INTERNAL_ERROR
- validate_required field checks
- HTTP status mapping of error codes
"""

import logging

import pytest

from core.exceptions import ConflictError, NotFoundError
from core.services import BaseService, ServiceResult, service_operation
from core.viewset_mixins import status_for_error


class ExplodingService(BaseService):
    @classmethod
    @service_operation("Failed to do the thing")
    def explode(cls):
        raise RuntimeError("database is on fire")

    @classmethod
    @service_operation()
    def succeed(cls, value):
        return ServiceResult.success(value, "Done")


class TestServiceResult:
    def test_success_envelope(self):
        result = ServiceResult.success({"id": "1"}, "Channel created successfully")

        assert result
        assert result.error is None
        assert result.to_response() == {
            "success": True,
            "message": "Channel created successfully",
            "data": {"id": "1"},
        }

    def test_success_without_data_omits_key(self):
        assert ServiceResult.success(message="Deleted").to_response() == {
            "success": True,
            "message": "Deleted",
        }

    def test_failure_envelope(self):
        result = ServiceResult.failure(
            "Validation failed",
            error_code="VALIDATION_ERROR",
            errors={"name": ["This field is required."]},
        )

        assert not result
        assert result.error == "Validation failed"
        assert result.to_response() == {
            "success": False,
            "message": "Validation failed",
            "error_code": "VALIDATION_ERROR",
            "errors": {"name": ["This field is required."]},
        }

    def test_map_only_on_success(self):
        assert ServiceResult.success(2, "ok").map(lambda x: x * 10).data == 20

        failed = ServiceResult.failure("nope", "NOPE")
        assert failed.map(lambda x: x * 10) is failed


class TestServiceOperation:
    def test_unexpected_exception_becomes_generic_failure(self, caplog):
        """
        The caller sees only the generic message; the cause goes to the log.

        Why it matters: Internal errors must not leak to API clients.
        """
        with caplog.at_level(logging.ERROR):
            result = ExplodingService.explode()

        assert result.success is False
        assert result.message == "Failed to do the thing"
        assert result.error_code == "INTERNAL_ERROR"
        assert "database is on fire" not in result.to_response()["message"]
        assert "database is on fire" in caplog.text

    def test_passes_results_through(self):
        result = ExplodingService.succeed(5)

        assert result.data == 5
        assert result.message == "Done"


class TestValidateRequired:
    def test_blank_and_none_reported(self):
        result = BaseService.validate_required(name="  ", workspace_id=None, topic="x")

        assert result.error_code == "VALIDATION_ERROR"
        assert set(result.errors) == {"name", "workspace_id"}

    def test_all_present(self):
        assert BaseService.validate_required(name="general") is None


class TestStatusForError:
    @pytest.mark.parametrize(
        "code,expected",
        [
            ("CHANNEL_NOT_FOUND", 404),
            ("NOT_MEMBER", 403),
            ("PERMISSION_DENIED", 403),
            ("INTERNAL_ERROR", 500),
            ("VALIDATION_ERROR", 400),
            (None, 400),
        ],
    )
    def test_mapping(self, code, expected):
        assert status_for_error(code) == expected


class TestExceptions:
    def test_to_dict_includes_details(self):
        error = ConflictError(
            "Subscription id already in use",
            error_code="SUBSCRIPTION_EXISTS",
            details={"id": "s1"},
        )

        assert error.to_dict() == {
            "error": "Subscription id already in use",
            "error_code": "SUBSCRIPTION_EXISTS",
            "details": {"id": "s1"},
        }

    def test_default_code(self):
        error = NotFoundError("Channel not found")

        assert error.error_code == "NOT_FOUND"
        assert "details" not in error.to_dict()
        assert str(error) == "[NOT_FOUND] Channel not found"
