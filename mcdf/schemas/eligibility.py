"""
Pydantic Schemas for Eligibility Results.

Eligibility checks never raise; they return every unmet rule so callers can
show all reasons at once.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from mcdf.core.enums import ClaimType


class EligibilityResult(BaseModel):
    """Outcome of a rule set evaluation."""

    eligible: bool = Field(..., description="True when no issues were found")
    issues: list[str] = Field(default_factory=list, description="Every failing rule")

    @classmethod
    def from_issues(cls, issues: list[str]) -> "EligibilityResult":
        return cls(eligible=not issues, issues=issues)


class ClaimEligibilityResult(EligibilityResult):
    """Outcome of a health-claim eligibility check."""

    claim_type: Optional[ClaimType] = Field(None, description="Claim type evaluated")
    days_since_registration: int = Field(..., description="Whole days since registration")
    contribution_count: int = Field(..., ge=0, description="Paid contributions on record")
    required_contributions: int = Field(..., ge=0, description="Paid contributions required")


class EligibilityStats(BaseModel):
    """Headcounts by eligibility state."""

    total_members: int = 0
    eligible: int = Field(0, description="Cover already started")
    pending: int = Field(0, description="Start date set but still in the future")
    not_eligible: int = Field(0, description="No start date")


class CashoutEligibilityResult(EligibilityResult):
    """Outcome of a cashout eligibility check."""

    eligible_amount: Decimal = Field(Decimal("0.00"), description="Paid contributions plus fines not yet cashed out")
    membership_months: int = Field(0, ge=0)
    contribution_count: int = Field(0, ge=0)
