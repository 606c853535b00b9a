"""Tests for the Baton error taxonomy."""

import pytest

from baton.base.errors import (
    BatonError,
    BudgetExceededError,
    ConfigurationError,
    ContextError,
    ErrorSeverity,
    IntegrityError,
    NotFoundError,
    StaleVersionError,
    SummaryTooLongError,
)


class TestErrorHierarchy:
    """Test inheritance and severity classification."""

    @pytest.mark.parametrize(
        "error",
        [
            StaleVersionError("P1", 1, 1),
            BudgetExceededError("P1", 10, 3),
            NotFoundError("docs/prd.md"),
            IntegrityError("P1", "bad json"),
            SummaryTooLongError("P1", 3000, 2000),
        ],
    )
    def test_context_errors_share_base(self, error):
        assert isinstance(error, ContextError)
        assert isinstance(error, BatonError)

    def test_configuration_error_is_not_context_error(self):
        assert not isinstance(ConfigurationError("bad"), ContextError)

    def test_recoverable_errors(self):
        """Errors absorbed by the fallback resolver are marked recoverable."""
        assert NotFoundError("x").severity is ErrorSeverity.RECOVERABLE
        assert IntegrityError("P1", "x").severity is ErrorSeverity.RECOVERABLE

    def test_caller_facing_errors_are_critical(self):
        assert StaleVersionError("P1", 1, 2).severity is ErrorSeverity.CRITICAL
        assert BudgetExceededError("P1", 5, 1).severity is ErrorSeverity.CRITICAL
        assert ConfigurationError("bad").severity is ErrorSeverity.CRITICAL


class TestStructuredAttributes:
    """Test that errors carry structured data for handlers."""

    def test_stale_version_attributes(self):
        error = StaleVersionError("P1", version=1, current_version=3)
        assert error.producer_id == "P1"
        assert error.version == 1
        assert error.current_version == 3
        assert "version 1" in str(error)

    def test_budget_exceeded_attributes(self):
        error = BudgetExceededError("P1", required=12, available=4)
        assert error.required == 12
        assert error.available == 4

    def test_to_dict(self):
        data = BudgetExceededError("P1", required=12, available=4).to_dict()
        assert data["error_type"] == "BudgetExceededError"
        assert data["severity"] == "critical"
        assert data["producer_id"] == "P1"
        assert data["required"] == 12
        assert data["available"] == 4
        assert "12" in data["message"]

    def test_to_dict_for_plain_error(self):
        data = ConfigurationError("missing section").to_dict()
        assert data == {
            "error_type": "ConfigurationError",
            "severity": "critical",
            "message": "missing section",
        }
