"""
Tests for the errors module.
"""

import pytest

from comms_orchestrator.errors import (
    ActionValidationError,
    AlreadyProcessedError,
    BatchError,
    CommsOrchestratorError,
    DatabaseConnectionError,
    DatabaseError,
    DatabaseQueryError,
    OpenAIError,
    OpenAIRateLimitError,
    ParseError,
    PartialSuccessResult,
    PipelineError,
    SchemaMismatchError,
    UnknownEventError,
    ValidationError,
    wrap_database_error,
    wrap_openai_error,
)


class TestErrorHierarchy:
    """Test error class hierarchy."""

    def test_base_error_with_context(self):
        """Test that base error captures context."""
        error = CommsOrchestratorError(
            "Something went wrong",
            context={"key": "value", "count": 42},
        )

        assert error.message == "Something went wrong"
        assert error.context == {"key": "value", "count": 42}
        assert "key" in str(error)

    def test_base_error_without_context(self):
        error = CommsOrchestratorError("Simple error")

        assert error.context == {}
        assert str(error) == "Simple error"

    def test_error_inheritance(self):
        assert isinstance(ValidationError("x"), PipelineError)
        assert isinstance(ActionValidationError("x"), ValidationError)
        assert isinstance(AlreadyProcessedError("x"), PipelineError)
        assert isinstance(BatchError("x"), CommsOrchestratorError)
        assert isinstance(UnknownEventError("x"), ParseError)
        assert isinstance(SchemaMismatchError("x"), DatabaseError)
        assert isinstance(OpenAIRateLimitError("x"), OpenAIError)

    def test_action_validation_field_errors(self):
        error = ActionValidationError("Missing fields", field_errors={"recipient": "required"})

        assert error.field_errors == {"recipient": "required"}
        assert ActionValidationError("x").field_errors == {}


class TestErrorWrapping:
    """Test error wrapping utilities."""

    def test_wrap_openai_rate_limit(self):
        wrapped = wrap_openai_error(Exception("Rate limit exceeded"))

        assert isinstance(wrapped, OpenAIRateLimitError)
        assert "rate limit" in wrapped.message.lower()

    def test_wrap_openai_generic(self):
        wrapped = wrap_openai_error(Exception("Unknown API error"), context={"attempt": 3})

        assert type(wrapped) is OpenAIError
        assert wrapped.context["attempt"] == 3
        assert wrapped.context["error_type"] == "Exception"

    def test_wrap_database_schema_mismatch(self):
        wrapped = wrap_database_error(Exception('column "tenant_id" does not exist'))
        assert isinstance(wrapped, SchemaMismatchError)

    def test_wrap_database_connection(self):
        wrapped = wrap_database_error(Exception("Connection refused"))
        assert isinstance(wrapped, DatabaseConnectionError)

    def test_wrap_database_generic(self):
        wrapped = wrap_database_error(Exception("duplicate key value"), {"statement": "INSERT"})

        assert isinstance(wrapped, DatabaseQueryError)
        assert wrapped.context["statement"] == "INSERT"


class TestPartialSuccessResult:
    """Test partial success handling."""

    def test_empty_result(self):
        result = PartialSuccessResult()

        assert result.total_count == 0
        assert result.all_succeeded is True

    def test_mixed(self):
        result = PartialSuccessResult()
        result.add_success(item_id="b1", data={"members": 2})
        result.add_failure(BatchError("Update failed"), item_id="b2")
        result.add_skipped("b3")

        assert result.success_count == 1
        assert result.failure_count == 1
        assert result.total_count == 2
        assert result.all_succeeded is False

    def test_to_dict(self):
        result = PartialSuccessResult()
        result.add_success(item_id="id1")
        result.add_failure(ValidationError("Bad input"), item_id="id2")
        result.add_skipped("id3")

        data = result.to_dict()

        assert data["success_count"] == 1
        assert data["failure_count"] == 1
        assert data["skipped_count"] == 1
        assert data["succeeded_ids"] == ["id1"]
        assert data["failed_ids"] == ["id2"]
        assert data["skipped_ids"] == ["id3"]
        assert data["errors"] == [{"item_id": "id2", "error": "Bad input"}]
