"""
Configuration and Error Tests.

Tests for:
- Default business rules and environment overrides
- Setting validators
- Error payloads
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from mcdf.core.config import FundSettings
from mcdf.utils.errors import (
    EligibilityFailure,
    InvalidStateTransition,
    LedgerImmutableError,
    NotFoundError,
    ValidationFailure,
)


@pytest.mark.unit
class TestFundSettings:
    """Tests for fund settings"""

    def test_defaults(self):
        settings = FundSettings(_env_file=None)
        assert settings.LATE_FINE_RATE == Decimal("0.5")
        assert settings.DEFAULT_COVERAGE_PERCENT == Decimal("90")
        assert settings.HEALTH_WAITING_DAYS == 60
        assert settings.LOAN_MIN_CONTRIBUTIONS == 12
        assert settings.APPROVAL_LEVELS == 3

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("MCDF_LATE_FINE_RATE", "0.25")
        monkeypatch.setenv("MCDF_HEALTH_WAITING_DAYS", "30")
        settings = FundSettings(_env_file=None)
        assert settings.LATE_FINE_RATE == Decimal("0.25")
        assert settings.HEALTH_WAITING_DAYS == 30

    def test_log_level_normalized(self):
        assert FundSettings(_env_file=None, LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ValidationError):
            FundSettings(_env_file=None, LOG_LEVEL="chatty")

    def test_loan_bounds_checked(self):
        with pytest.raises(ValidationError):
            FundSettings(_env_file=None, LOAN_MIN_AMOUNT=Decimal("5000"), LOAN_MAX_AMOUNT=Decimal("100"))

    def test_fine_rate_bounded(self):
        with pytest.raises(ValidationError):
            FundSettings(_env_file=None, LATE_FINE_RATE=Decimal("1.5"))


@pytest.mark.unit
class TestErrors:
    """Tests for error payloads"""

    def test_eligibility_failure_lists_issues(self):
        error = EligibilityFailure("Member is not eligible", ["Member must be active", "Too new"])
        assert error.detail == "Member is not eligible: Member must be active; Too new"
        assert error.to_dict() == {
            "error": "EligibilityFailure",
            "detail": "Member is not eligible: Member must be active; Too new",
            "issues": ["Member must be active", "Too new"],
        }
        assert error.status_code == 422

    def test_not_found_detail(self):
        error = NotFoundError("Loan", "abc")
        assert str(error) == "Loan not found: abc"
        assert error.status_code == 404

    def test_validation_failure_errors(self):
        error = ValidationFailure("Invalid loan", ["amount: too small"])
        assert error.to_dict()["errors"] == ["amount: too small"]

    def test_transition_error_fields(self):
        error = InvalidStateTransition(
            "Can only approve loans in PENDING status, current: approved",
            entity="loan",
            current_status="approved",
            action="approve",
        )
        assert error.current_status == "approved"
        assert error.status_code == 409

    def test_ledger_error_default_detail(self):
        assert "append-only" in LedgerImmutableError().detail
