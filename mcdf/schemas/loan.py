"""
Pydantic Schemas for Loans and Repayments.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from mcdf.core.enums import LoanType, PaymentMethod, RepaymentMode


class LoanApplication(BaseModel):
    """Schema for applying for a loan."""

    member_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    loan_type: LoanType = LoanType.CASH
    item_description: Optional[str] = Field(None, description="Required for item loans")
    purpose: Optional[str] = None
    repayment_mode: RepaymentMode = RepaymentMode.INSTALLMENTS
    repayment_period: str = Field("6 months", max_length=50, description="e.g. '6 months'")

    @model_validator(mode="after")
    def item_needs_description(self):  # type: ignore[no-untyped-def]
        """Item loans must describe the item."""
        if self.loan_type == LoanType.ITEM and not (self.item_description or "").strip():
            raise ValueError("item_description is required for item loans")
        return self


class RepaymentCreate(BaseModel):
    """Schema for recording a loan repayment."""

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    payment_date: Optional[date] = Field(None, description="Defaults to today")
    payment_method: Optional[PaymentMethod] = None
    reference: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
