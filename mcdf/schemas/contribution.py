"""
Pydantic Schemas for Contribution Plans and Contributions.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from mcdf.core.enums import ContributionStatus, PaymentMethod, PlanFrequency


class ContributionPlanCreate(BaseModel):
    """Schema for creating a contribution plan."""

    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    frequency: PlanFrequency = PlanFrequency.MONTHLY
    description: Optional[str] = None


class _PeriodMixin(BaseModel):
    period_start: date
    period_end: date

    @model_validator(mode="after")
    def period_in_order(self):  # type: ignore[no-untyped-def]
        """Period end may not precede its start."""
        if self.period_end < self.period_start:
            raise ValueError("period_end must be on or after period_start")
        return self


class ContributionCreate(_PeriodMixin):
    """Contribution recorded by an administrator."""

    member_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_date: Optional[date] = None
    status: ContributionStatus = Field(
        ContributionStatus.PAID,
        description="Initial status; paid posts to the ledger immediately",
    )
    payment_method: Optional[PaymentMethod] = None
    transaction_reference: Optional[str] = Field(None, max_length=100)
    contribution_plan_id: Optional[UUID] = Field(None, description="Defaults to the member's plan")
    notes: Optional[str] = None

    @model_validator(mode="after")
    def paid_needs_date(self):  # type: ignore[no-untyped-def]
        """A paid contribution must say when it was paid."""
        if self.status == ContributionStatus.PAID and self.payment_date is None:
            raise ValueError("payment_date is required for paid contributions")
        if self.status == ContributionStatus.CANCELLED:
            raise ValueError("Contributions cannot be created as cancelled")
        return self


class ContributionSubmission(_PeriodMixin):
    """Contribution submitted by a member with proof of payment."""

    member_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_date: date
    payment_method: PaymentMethod
    transaction_reference: Optional[str] = Field(None, max_length=100)
    receipt_path: str = Field(..., min_length=1, max_length=500)
    notes: Optional[str] = None


class ContributionUpdate(BaseModel):
    """Partial contribution update."""

    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    payment_date: Optional[date] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    transaction_reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def required_fields_not_cleared(self):  # type: ignore[no-untyped-def]
        """Amount and period dates may be changed but never blanked."""
        cleared = [
            name
            for name in ("amount", "period_start", "period_end")
            if name in self.model_fields_set and getattr(self, name) is None
        ]
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be cleared")
        return self
