"""
Pydantic Schemas for Cashout Requests.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class CashoutCreate(BaseModel):
    """Schema for raising a cashout request."""

    member_id: UUID
    reason: Optional[str] = Field(None, max_length=1000)


class CashoutApproval(BaseModel):
    """Amount granted at the approval stage."""

    approved_amount: Decimal = Field(..., gt=0, decimal_places=2)
    notes: Optional[str] = None


class CashoutStats(BaseModel):
    """Request counts by status and disbursed totals."""

    total_requests: int = 0
    pending_requests: int = 0
    verified_requests: int = 0
    approved_requests: int = 0
    disbursed_requests: int = 0
    rejected_requests: int = 0
    total_disbursed: Decimal = Decimal("0.00")
    average_cashout: Decimal = Decimal("0.00")
