"""
Fund Ledger Service.

Provides:
- Append-only recording of inflows and outflows
- Compensating (reversal) entries
- Current and point-in-time balances
- Monthly summaries, balance history and fund statistics

Ledger entries are never updated or deleted. Every correction is a new
entry in the opposite direction.
"""

from calendar import monthrange
from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mcdf.core.enums import BalancePeriod, LedgerEntryType, LedgerSource
from mcdf.models.ledger import FundLedgerEntry
from mcdf.schemas.base import validate_input
from mcdf.schemas.ledger import (
    BalancePoint,
    FundStats,
    LedgerEntryCreate,
    LedgerSummaryRow,
    SourceTotal,
)
from mcdf.utils.clock import Clock, SystemClock
from mcdf.utils.errors import ConflictError, NotFoundError
from mcdf.utils.logging import get_logger
from mcdf.utils.money import ZERO, to_money

logger = get_logger(__name__)


class LedgerService:
    """Service for the fund's cash ledger."""

    def __init__(self, session: AsyncSession, clock: Optional[Clock] = None):
        self.session = session
        self.clock = clock or SystemClock()

    # =========================================================================
    # Writes
    # =========================================================================

    async def append(
        self,
        entry_type: LedgerEntryType,
        source: LedgerSource,
        amount: Decimal,
        transaction_date: Optional[date] = None,
        member_id: Optional[UUID] = None,
        reference: Optional[str] = None,
        description: Optional[str] = None,
        actor_id: Optional[UUID] = None,
        reverses_entry_id: Optional[UUID] = None,
    ) -> FundLedgerEntry:
        """
        Stage a ledger entry in the caller's unit of work.

        Workflow services call this next to their status change and commit
        both together.
        """
        data = validate_input(
            LedgerEntryCreate,
            {
                "entry_type": entry_type,
                "source": source,
                "amount": to_money(amount),
                "transaction_date": transaction_date or self.clock.today(),
                "member_id": member_id,
                "reference": reference,
                "description": description,
            },
        )
        entry = FundLedgerEntry(
            entry_type=data.entry_type,
            source=data.source,
            amount=data.amount,
            transaction_date=data.transaction_date,
            member_id=data.member_id,
            reference=data.reference,
            description=data.description,
            created_by=actor_id,
            reverses_entry_id=reverses_entry_id,
        )
        self.session.add(entry)
        await self.session.flush()

        logger.info(
            f"Ledger {entry.entry_type.value} {entry.amount} ({entry.source.value}) "
            f"ref={entry.reference}"
        )
        return entry

    async def record_entry(
        self,
        data: LedgerEntryCreate | dict[str, Any],
        actor_id: Optional[UUID] = None,
    ) -> FundLedgerEntry:
        """Append a standalone entry (donation, refund, ...) and commit."""
        data = validate_input(LedgerEntryCreate, data)
        entry = await self.append(
            entry_type=data.entry_type,
            source=data.source,
            amount=data.amount,
            transaction_date=data.transaction_date,
            member_id=data.member_id,
            reference=data.reference,
            description=data.description,
            actor_id=actor_id,
        )
        await self.session.commit()
        return entry

    async def reverse_entry(
        self,
        entry_id: UUID,
        actor_id: UUID,
        reason: Optional[str] = None,
    ) -> FundLedgerEntry:
        """Offset an entry with an equal entry in the opposite direction."""
        original = await self.get_entry(entry_id)
        if not original:
            raise NotFoundError("Ledger entry", entry_id)

        existing = await self.session.execute(
            select(FundLedgerEntry.id).where(FundLedgerEntry.reverses_entry_id == entry_id)
        )
        if existing.first() is not None:
            raise ConflictError(f"Ledger entry {entry_id} has already been reversed")

        opposite = (
            LedgerEntryType.OUTFLOW
            if original.entry_type == LedgerEntryType.INFLOW
            else LedgerEntryType.INFLOW
        )
        entry = await self.append(
            entry_type=opposite,
            source=original.source,
            amount=original.amount,
            member_id=original.member_id,
            reference=f"REV-{original.reference or original.id}",
            description=reason or f"Reversal of {original.id}",
            actor_id=actor_id,
            reverses_entry_id=original.id,
        )
        await self.session.commit()
        return entry

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_entry(self, entry_id: UUID) -> Optional[FundLedgerEntry]:
        result = await self.session.execute(
            select(FundLedgerEntry).where(FundLedgerEntry.id == entry_id)
        )
        return result.scalar_one_or_none()

    async def list_entries(
        self,
        member_id: Optional[UUID] = None,
        reference: Optional[str] = None,
        source: Optional[LedgerSource] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[FundLedgerEntry]:
        """Entries matching all given filters, oldest first."""
        query = select(FundLedgerEntry)
        if member_id:
            query = query.where(FundLedgerEntry.member_id == member_id)
        if reference:
            query = query.where(FundLedgerEntry.reference == reference)
        if source:
            query = query.where(FundLedgerEntry.source == source)
        if date_from:
            query = query.where(FundLedgerEntry.transaction_date >= date_from)
        if date_to:
            query = query.where(FundLedgerEntry.transaction_date <= date_to)
        query = query.order_by(FundLedgerEntry.transaction_date, FundLedgerEntry.created_at)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _total(
        self,
        entry_type: LedgerEntryType,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> Decimal:
        query = select(func.coalesce(func.sum(FundLedgerEntry.amount), 0)).where(
            FundLedgerEntry.entry_type == entry_type
        )
        if date_from:
            query = query.where(FundLedgerEntry.transaction_date >= date_from)
        if date_to:
            query = query.where(FundLedgerEntry.transaction_date <= date_to)
        return to_money((await self.session.execute(query)).scalar_one())

    async def current_balance(self) -> Decimal:
        """All-time inflows minus outflows."""
        inflow = await self._total(LedgerEntryType.INFLOW)
        outflow = await self._total(LedgerEntryType.OUTFLOW)
        return inflow - outflow

    async def balance_as_of(self, as_of: date) -> Decimal:
        """Inflows minus outflows dated on or before as_of."""
        inflow = await self._total(LedgerEntryType.INFLOW, date_to=as_of)
        outflow = await self._total(LedgerEntryType.OUTFLOW, date_to=as_of)
        return inflow - outflow

    async def monthly_summary(self, year: int, month: int) -> list[LedgerSummaryRow]:
        """Totals per (type, source) for one calendar month."""
        first = date(year, month, 1)
        last = date(year, month, monthrange(year, month)[1])

        result = await self.session.execute(
            select(
                FundLedgerEntry.entry_type,
                FundLedgerEntry.source,
                func.sum(FundLedgerEntry.amount).label("total_amount"),
                func.count(FundLedgerEntry.id).label("transaction_count"),
            )
            .where(FundLedgerEntry.transaction_date.between(first, last))
            .group_by(FundLedgerEntry.entry_type, FundLedgerEntry.source)
        )
        rows = [
            LedgerSummaryRow(
                entry_type=row.entry_type,
                source=row.source,
                total_amount=to_money(row.total_amount),
                transaction_count=row.transaction_count,
            )
            for row in result.all()
        ]
        return sorted(rows, key=lambda r: (r.entry_type.value, r.source.value))

    async def balance_history(
        self,
        start: date,
        end: date,
        period: BalancePeriod = BalancePeriod.MONTH,
    ) -> list[BalancePoint]:
        """
        Inflow, outflow and running balance per period between two dates.

        Buckets without any entries are omitted; the running balance starts
        from the balance on the day before start.
        """
        running = await self.balance_as_of(start - timedelta(days=1))
        entries = await self.list_entries(date_from=start, date_to=end)

        buckets: "OrderedDict[str, list[Decimal]]" = OrderedDict()
        for entry in entries:
            label = _period_label(entry.transaction_date, period)
            inflow_outflow = buckets.setdefault(label, [ZERO, ZERO])
            if entry.entry_type == LedgerEntryType.INFLOW:
                inflow_outflow[0] += entry.amount
            else:
                inflow_outflow[1] += entry.amount

        history = []
        for label, (inflow, outflow) in buckets.items():
            net = inflow - outflow
            running += net
            history.append(
                BalancePoint(
                    period=label,
                    inflow=to_money(inflow),
                    outflow=to_money(outflow),
                    net=to_money(net),
                    balance=to_money(running),
                )
            )
        return history

    async def fund_stats(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> FundStats:
        """Totals and per-source breakdown for an optional date range."""
        is_inflow = FundLedgerEntry.entry_type == LedgerEntryType.INFLOW
        query = select(
            FundLedgerEntry.source,
            func.sum(case((is_inflow, FundLedgerEntry.amount), else_=0)).label("inflow"),
            func.sum(case((is_inflow, 0), else_=FundLedgerEntry.amount)).label("outflow"),
            func.count(FundLedgerEntry.id).label("transaction_count"),
        )
        if date_from:
            query = query.where(FundLedgerEntry.transaction_date >= date_from)
        if date_to:
            query = query.where(FundLedgerEntry.transaction_date <= date_to)
        query = query.group_by(FundLedgerEntry.source)

        by_source = []
        total_inflow = ZERO
        total_outflow = ZERO
        count = 0
        for row in (await self.session.execute(query)).all():
            inflow = to_money(row.inflow)
            outflow = to_money(row.outflow)
            by_source.append(
                SourceTotal(
                    source=row.source,
                    inflow=inflow,
                    outflow=outflow,
                    transaction_count=row.transaction_count,
                )
            )
            total_inflow += inflow
            total_outflow += outflow
            count += row.transaction_count

        by_source.sort(key=lambda s: s.source.value)
        return FundStats(
            total_inflow=total_inflow,
            total_outflow=total_outflow,
            net_balance=total_inflow - total_outflow,
            transaction_count=count,
            by_source=by_source,
        )


def _period_label(day: date, period: BalancePeriod) -> str:
    if period == BalancePeriod.DAY:
        return day.isoformat()
    if period == BalancePeriod.YEAR:
        return f"{day.year:04d}"
    return f"{day.year:04d}-{day.month:02d}"
