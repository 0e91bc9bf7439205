"""
Tests for the error taxonomy.
"""

from chainflow.domain.error import (
    EncodingError,
    ExternalCallError,
    InvalidTargetError,
    MissingArgumentError,
    PermissionDeniedError,
    ResolutionError,
    ValidationError,
    WorkflowError,
)


class TestErrors:
    """Test cases for workflow errors."""

    def test_all_derive_from_workflow_error(self):
        """Test the common base class."""
        for error in (
            ResolutionError("$.x"),
            MissingArgumentError("to"),
            ValidationError(["bad"]),
            EncodingError("bad"),
            InvalidTargetError("$.t", None),
            ExternalCallError("bad"),
            PermissionDeniedError("bad"),
        ):
            assert isinstance(error, WorkflowError)

    def test_resolution_error_names_expression(self):
        """Test the default resolution message."""
        error = ResolutionError("$.steps.a.output")

        assert error.expression == "$.steps.a.output"
        assert "$.steps.a.output" in str(error)

    def test_missing_argument_is_resolution_error(self):
        """Test MissingArgumentError message and hierarchy."""
        error = MissingArgumentError("amount", "transfer")

        assert isinstance(error, ResolutionError)
        assert error.parameter == "amount"
        assert str(error) == "Missing argument: amount for function 'transfer'"

    def test_validation_error_carries_errors(self):
        """Test that ValidationError keeps the list of problems."""
        error = ValidationError(["one", "two"])

        assert error.errors == ["one", "two"]
        assert str(error) == "Invalid workflow: one; two"

    def test_invalid_target_message(self):
        """Test InvalidTargetError message."""
        error = InvalidTargetError("$.input.token", None)

        assert isinstance(error, EncodingError)
        assert str(error) == "Invalid target address: $.input.token resolved to None"

    def test_cause_kept(self):
        """Test that the underlying cause is kept."""
        cause = RuntimeError("network")
        error = ExternalCallError("HTTP request failed", status=502, body="bad gateway", cause=cause)

        assert error.cause is cause
        assert error.status == 502
        assert error.body == "bad gateway"
