"""
Fund Ledger Model.

Entries are append-only. Mapper events refuse ORM updates and deletes; a
correction is always a new, offsetting entry.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import Date, Enum, ForeignKey, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from mcdf.core.enums import LedgerEntryType, LedgerSource
from mcdf.models.base import Base, TimeStampedModel, UUIDModel
from mcdf.utils.errors import LedgerImmutableError


class FundLedgerEntry(Base, UUIDModel, TimeStampedModel):
    """A single inflow or outflow of fund money."""

    __tablename__ = "fund_ledger"

    entry_type: Mapped[LedgerEntryType] = mapped_column(Enum(LedgerEntryType), nullable=False)
    source: Mapped[LedgerSource] = mapped_column(Enum(LedgerSource), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False, comment="Always positive")
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    member_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("members.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    reverses_entry_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("fund_ledger.id"),
        nullable=True,
        comment="Entry this one offsets",
    )

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.entry_type == LedgerEntryType.INFLOW else -self.amount

    def __repr__(self) -> str:
        return f"<FundLedgerEntry {self.entry_type.value} {self.source.value} {self.amount}>"


@event.listens_for(FundLedgerEntry, "before_update")
def _refuse_ledger_update(mapper, connection, target):  # type: ignore[no-untyped-def]
    raise LedgerImmutableError(f"Ledger entry {target.id} cannot be modified")


@event.listens_for(FundLedgerEntry, "before_delete")
def _refuse_ledger_delete(mapper, connection, target):  # type: ignore[no-untyped-def]
    raise LedgerImmutableError(f"Ledger entry {target.id} cannot be deleted")
