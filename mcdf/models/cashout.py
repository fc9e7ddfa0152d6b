"""
Cashout Request Model.

Bank details are copied from the member when the request is raised so later
edits to the member record cannot redirect a payout.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mcdf.core.enums import CashoutStatus
from mcdf.models.base import Base, TimeStampedModel, UUIDModel


class CashoutRequest(Base, UUIDModel, TimeStampedModel):
    """Member request to withdraw accumulated contributions."""

    __tablename__ = "cashout_requests"

    member_id: Mapped[UUID] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    requested_amount: Mapped[Decimal] = mapped_column(nullable=False)
    approved_amount: Mapped[Optional[Decimal]] = mapped_column(nullable=True)
    status: Mapped[CashoutStatus] = mapped_column(
        Enum(CashoutStatus),
        default=CashoutStatus.PENDING,
        nullable=False,
        index=True,
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Bank snapshot
    bank_account_number: Mapped[str] = mapped_column(String(34), nullable=False)
    bank_account_name: Mapped[str] = mapped_column(String(200), nullable=False)
    bank_name: Mapped[str] = mapped_column(String(200), nullable=False)

    requested_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)

    # Verification stage
    verified_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    verification_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Approval stage
    approved_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approval_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Disbursement stage
    disbursed_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    disbursed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    disbursement_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    disbursement_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Rejection
    rejected_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CashoutRequest {self.id} {self.status.value}>"
