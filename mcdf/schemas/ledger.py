"""
Pydantic Schemas for Fund Ledger reads and writes.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from mcdf.core.enums import LedgerEntryType, LedgerSource


class LedgerEntryCreate(BaseModel):
    """Input for appending a ledger entry."""

    entry_type: LedgerEntryType
    source: LedgerSource
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Positive amount")
    transaction_date: date
    member_id: Optional[UUID] = None
    reference: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None


class LedgerEntryResponse(LedgerEntryCreate):
    """Ledger entry as stored."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_by: Optional[UUID] = None
    reverses_entry_id: Optional[UUID] = None


class LedgerSummaryRow(BaseModel):
    """Monthly total for one (type, source) pair."""

    entry_type: LedgerEntryType
    source: LedgerSource
    total_amount: Decimal
    transaction_count: int


class BalancePoint(BaseModel):
    """One bucket of the balance history."""

    period: str = Field(..., description="Bucket label, e.g. 2024-03 or 2024-03-15")
    inflow: Decimal
    outflow: Decimal
    net: Decimal
    balance: Decimal = Field(..., description="Running balance at the end of the bucket")


class SourceTotal(BaseModel):
    """Totals for one ledger source."""

    source: LedgerSource
    inflow: Decimal = Decimal("0.00")
    outflow: Decimal = Decimal("0.00")
    transaction_count: int = 0


class FundStats(BaseModel):
    """Aggregate fund figures for a date range."""

    total_inflow: Decimal
    total_outflow: Decimal
    net_balance: Decimal
    transaction_count: int
    by_source: list[SourceTotal] = Field(default_factory=list)
