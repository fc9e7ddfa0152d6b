"""
Dependent Service.

Dependent eligibility is recomputed and overwritten on every save.
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mcdf.core.config import FundSettings, get_settings
from mcdf.models.member import Dependent, Member
from mcdf.schemas.base import validate_input
from mcdf.schemas.member import DependentCreate, DependentUpdate
from mcdf.services.eligibility import compute_dependent_eligibility
from mcdf.utils.clock import Clock, SystemClock
from mcdf.utils.errors import NotFoundError
from mcdf.utils.logging import get_logger

logger = get_logger(__name__)


class DependentService:
    """Service for a member's dependents."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[FundSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()

    async def _get_member(self, member_id: UUID) -> Member:
        member = await self.session.get(Member, member_id)
        if not member:
            raise NotFoundError("Member", member_id)
        return member

    async def get_dependent(self, dependent_id: UUID) -> Dependent:
        dependent = await self.session.get(Dependent, dependent_id)
        if not dependent:
            raise NotFoundError("Dependent", dependent_id)
        return dependent

    def _apply_eligibility(self, dependent: Dependent, member: Member, as_of: date) -> None:
        dependent.eligible = compute_dependent_eligibility(
            dependent.relationship_type,
            dependent.date_of_birth,
            member.is_eligible_for_health(as_of),
            as_of,
            self.settings.CHILD_DEPENDENT_MAX_AGE,
        )

    async def add_dependent(
        self,
        member_id: UUID,
        data: DependentCreate | dict[str, Any],
    ) -> Dependent:
        data = validate_input(DependentCreate, data)
        member = await self._get_member(member_id)

        dependent = Dependent(
            member_id=member.id,
            first_name=data.first_name,
            last_name=data.last_name,
            relationship_type=data.relationship,
            date_of_birth=data.date_of_birth,
            gender=data.gender,
        )
        self._apply_eligibility(dependent, member, self.clock.today())
        self.session.add(dependent)
        await self.session.commit()

        logger.info(
            f"Added {dependent.relationship_type.value} dependent to {member.registration_number} "
            f"(eligible={dependent.eligible})"
        )
        return dependent

    async def update_dependent(
        self,
        dependent_id: UUID,
        data: DependentUpdate | dict[str, Any],
    ) -> Dependent:
        data = validate_input(DependentUpdate, data)
        dependent = await self.get_dependent(dependent_id)
        member = await self._get_member(dependent.member_id)

        changes = data.model_dump(exclude_unset=True)
        if "relationship" in changes:
            changes["relationship_type"] = changes.pop("relationship")
        for key, value in changes.items():
            setattr(dependent, key, value)

        self._apply_eligibility(dependent, member, self.clock.today())
        await self.session.commit()
        return dependent

    async def remove_dependent(self, dependent_id: UUID) -> None:
        dependent = await self.get_dependent(dependent_id)
        await self.session.delete(dependent)
        await self.session.commit()
        logger.info(f"Removed dependent {dependent_id}")

    async def list_dependents(self, member_id: UUID) -> list[Dependent]:
        result = await self.session.execute(
            select(Dependent).where(Dependent.member_id == member_id).order_by(Dependent.date_of_birth)
        )
        return list(result.scalars().all())

    async def recalculate_for_member(self, member_id: UUID) -> list[Dependent]:
        """Re-save every dependent of a member so eligibility reflects the member today."""
        member = await self._get_member(member_id)
        dependents = await self.list_dependents(member_id)
        today = self.clock.today()
        for dependent in dependents:
            self._apply_eligibility(dependent, member, today)
        await self.session.commit()
        return dependents
