"""
Loan and Loan Repayment Models.

Balance figures are computed from the repayment rows on access and never
stored.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from dateutil.relativedelta import relativedelta
from sqlalchemy import Date, DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mcdf.core.enums import LoanStatus, LoanType, PaymentMethod, RepaymentMode
from mcdf.models.base import Base, TimeStampedModel, UUIDModel


class Loan(Base, UUIDModel, TimeStampedModel):
    """Member loan, cash or item, repaid in installments or in full."""

    __tablename__ = "loans"

    member_id: Mapped[UUID] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    loan_type: Mapped[LoanType] = mapped_column(Enum(LoanType), default=LoanType.CASH, nullable=False)
    item_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    purpose: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    amount: Mapped[Decimal] = mapped_column(nullable=False)
    repayment_mode: Mapped[RepaymentMode] = mapped_column(
        Enum(RepaymentMode),
        default=RepaymentMode.INSTALLMENTS,
        nullable=False,
    )
    repayment_period: Mapped[str] = mapped_column(
        String(50),
        default="6 months",
        nullable=False,
        comment="Free text as entered, e.g. '6 months'",
    )
    repayment_months: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Month count parsed from repayment_period",
    )
    installment_amount: Mapped[Optional[Decimal]] = mapped_column(nullable=True)

    status: Mapped[LoanStatus] = mapped_column(
        Enum(LoanStatus),
        default=LoanStatus.PENDING,
        nullable=False,
        index=True,
    )
    applied_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    approved_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    approval_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    disbursed_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    disbursement_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    start_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        comment="Repayment clock start",
    )
    defaulted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    repayments: Mapped[list["LoanRepayment"]] = relationship(
        back_populates="loan",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LoanRepayment.payment_date",
    )

    @property
    def total_repaid(self) -> Decimal:
        return sum((r.amount for r in self.repayments), Decimal("0.00"))

    @property
    def outstanding_balance(self) -> Decimal:
        return self.amount - self.total_repaid

    @property
    def is_fully_repaid(self) -> bool:
        return self.outstanding_balance <= 0

    @property
    def due_date(self) -> Optional[date]:
        start = self.start_date or self.disbursement_date
        if start is None:
            return None
        return start + relativedelta(months=self.repayment_months)

    def is_overdue(self, as_of: date) -> bool:
        """Disbursed, past its repayment period and still owing."""
        due = self.due_date
        return (
            self.status == LoanStatus.DISBURSED
            and due is not None
            and as_of > due
            and not self.is_fully_repaid
        )

    def __repr__(self) -> str:
        return f"<Loan {self.id} {self.amount} {self.status.value}>"


class LoanRepayment(Base, UUIDModel, TimeStampedModel):
    """A single repayment against a loan."""

    __tablename__ = "loan_repayments"

    loan_id: Mapped[UUID] = mapped_column(
        ForeignKey("loans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(Enum(PaymentMethod), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recorded_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)

    loan: Mapped["Loan"] = relationship(back_populates="repayments")
