"""
Document Numbering Service.

Allocates the fund's human-readable numbers:
- Registration numbers: MCDF/00001
- Receipt numbers:      RCP{YYYY}{MM}0001, restarting each month
- Claim numbers:        CLM{YYYY}{MM}0001, restarting each month

Each number comes from a NumberSequence row advanced with a single atomic
UPDATE. A counter that does not exist yet is seeded from the highest number
already issued for its prefix, so existing data keeps its sequence.
"""

from datetime import date

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from mcdf.models.contribution import Contribution
from mcdf.models.health_claim import HealthClaim
from mcdf.models.member import Member
from mcdf.models.sequence import NumberSequence
from mcdf.utils.logging import get_logger

logger = get_logger(__name__)

REGISTRATION_PREFIX = "MCDF/"
RECEIPT_PREFIX = "RCP"
CLAIM_PREFIX = "CLM"


class NumberingService:
    """Atomic counters for sequential document numbers."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def next_registration_number(self) -> str:
        value = await self._allocate("MCDF", Member.registration_number, REGISTRATION_PREFIX)
        return f"{REGISTRATION_PREFIX}{value:05d}"

    async def next_receipt_number(self, on: date) -> str:
        prefix = f"{RECEIPT_PREFIX}{on:%Y%m}"
        value = await self._allocate(prefix, Contribution.receipt_number, prefix)
        return f"{prefix}{value:04d}"

    async def next_claim_number(self, on: date) -> str:
        prefix = f"{CLAIM_PREFIX}{on:%Y%m}"
        value = await self._allocate(prefix, HealthClaim.claim_number, prefix)
        return f"{prefix}{value:04d}"

    # =========================================================================
    # Counter primitives
    # =========================================================================

    async def _increment(self, name: str) -> int | None:
        """Advance the counter in place; None if it does not exist."""
        result = await self.session.execute(
            update(NumberSequence)
            .where(NumberSequence.name == name)
            .values(value=NumberSequence.value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        return (
            await self.session.execute(
                select(NumberSequence.value).where(NumberSequence.name == name)
            )
        ).scalar_one()

    async def _highest_issued(self, column: InstrumentedAttribute, prefix: str) -> int:
        """Numeric suffix of the lexicographically last number with this prefix."""
        last = (
            await self.session.execute(select(func.max(column)).where(column.like(f"{prefix}%")))
        ).scalar_one_or_none()
        if not last:
            return 0
        try:
            return int(last[len(prefix):])
        except ValueError:
            logger.warning(f"Unparseable number {last!r} for prefix {prefix}")
            return 0

    async def _allocate(self, name: str, column: InstrumentedAttribute, prefix: str) -> int:
        value = await self._increment(name)
        if value is not None:
            logger.debug(f"Allocated {name} #{value}")
            return value

        start = await self._highest_issued(column, prefix) + 1
        try:
            async with self.session.begin_nested():
                self.session.add(NumberSequence(name=name, value=start))
        except IntegrityError:
            # Another transaction created the counter first
            value = await self._increment(name)
            if value is None:
                raise
            logger.debug(f"Allocated {name} #{value} after concurrent seed")
            return value

        logger.info(f"Started counter {name} at {start}")
        return start
