"""
Contribution Plan and Contribution Models.

Fines and receipt numbers are filled in by ContributionService; total_amount
is derived on access.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mcdf.core.enums import ContributionStatus, PaymentMethod, PlanFrequency
from mcdf.models.base import Base, TimeStampedModel, UUIDModel


class ContributionPlan(Base, UUIDModel, TimeStampedModel):
    """Named recurring amount a member commits to."""

    __tablename__ = "contribution_plans"

    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    frequency: Mapped[PlanFrequency] = mapped_column(
        Enum(PlanFrequency),
        default=PlanFrequency.MONTHLY,
        nullable=False,
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Contribution(Base, UUIDModel, TimeStampedModel):
    """One contribution payment (or expected payment) for a period."""

    __tablename__ = "contributions"

    member_id: Mapped[UUID] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    contribution_plan_id: Mapped[UUID] = mapped_column(
        ForeignKey("contribution_plans.id", ondelete="RESTRICT"),
        nullable=False,
    )
    receipt_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        comment="RCP{YYYY}{MM}{NNNN}",
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)
    fine_amount: Mapped[Decimal] = mapped_column(default=Decimal("0.00"), nullable=False)
    payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    period_start: Mapped[date] = mapped_column(Date, nullable=False)
    period_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[ContributionStatus] = mapped_column(
        Enum(ContributionStatus),
        default=ContributionStatus.PENDING,
        nullable=False,
    )
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        Enum(PaymentMethod),
        nullable=True,
    )
    transaction_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Member self-service submissions
    is_member_submitted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    receipt_path: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        comment="Storage path of the uploaded payment proof",
    )

    recorded_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    verified_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    ledger_posted: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Whether an inflow for this contribution is on the ledger",
    )
    cashout_request_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("cashout_requests.id", ondelete="SET NULL"),
        nullable=True,
        comment="Cashout request that returns this contribution",
    )

    __table_args__ = (
        Index("ix_contributions_member_status_date", "member_id", "status", "payment_date"),
    )

    @property
    def total_amount(self) -> Decimal:
        return self.amount + (self.fine_amount or Decimal("0.00"))

    def __repr__(self) -> str:
        return f"<Contribution {self.receipt_number} {self.status.value}>"
