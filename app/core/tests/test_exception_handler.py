"""
Tests for api_exception_handler and the application error taxonomy.

These tests verify that:
- Application errors render as {"error", "error_code", "details"?}
- Database constraint errors become 409 and outages 503
- DRF's own exceptions keep their default rendering
"""

from __future__ import annotations

from django.db import IntegrityError, OperationalError
from rest_framework.exceptions import NotAuthenticated

from core.exception_handler import api_exception_handler
from core.exceptions import (
    ConflictError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)


def handle(exc):
    return api_exception_handler(exc, {"view": None})


class TestApplicationErrors:
    def test_not_found_renders_uniform_body(self):
        response = handle(NotFoundError("Conversation not found", error_code="CONVERSATION_NOT_FOUND"))

        assert response.status_code == 404
        assert response.data == {
            "error": "Conversation not found",
            "error_code": "CONVERSATION_NOT_FOUND",
        }

    def test_validation_error_includes_details(self):
        response = handle(
            ValidationError("Unknown members", error_code="UNKNOWN_MEMBERS", details={"member_ids": ["x"]})
        )

        assert response.status_code == 400
        assert response.data["details"] == {"member_ids": ["x"]}

    def test_conflict_defaults_to_constraint_violation(self):
        response = handle(ConflictError("Taken"))

        assert response.status_code == 409
        assert response.data["error_code"] == "CONSTRAINT_VIOLATION"

    def test_storage_unavailable_sets_retry_after(self):
        """
        503 responses tell clients when to retry.

        Why it matters: storage outages are transient and retryable.
        """
        response = handle(StorageUnavailableError("Down"))

        assert response.status_code == 503
        assert response["Retry-After"] == "5"


class TestDatabaseErrors:
    def test_integrity_error_becomes_409(self):
        response = handle(IntegrityError("duplicate key"))

        assert response.status_code == 409
        assert response.data["error_code"] == "CONSTRAINT_VIOLATION"

    def test_operational_error_becomes_503(self):
        response = handle(OperationalError("could not connect"))

        assert response.status_code == 503
        assert response.data["error_code"] == "STORAGE_UNAVAILABLE"


class TestPassThrough:
    def test_drf_exceptions_keep_default_rendering(self):
        response = handle(NotAuthenticated())

        assert response.status_code == 401
        assert "detail" in response.data

    def test_unrelated_exceptions_are_not_handled(self):
        assert handle(KeyError("boom")) is None


class TestErrorStrings:
    def test_str_includes_code(self):
        assert str(NotFoundError("Gone", error_code="CALL_NOT_FOUND")) == "[CALL_NOT_FOUND] Gone"
