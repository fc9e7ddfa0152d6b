"""
Member Service.

Provides:
- Member registration with sequential registration numbers
- Registration lifecycle (complete, approve, suspend, activate, terminate)
- Eligibility refresh after lifecycle changes
- Member contribution totals used by cashouts
"""

from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mcdf.core.config import FundSettings, get_settings
from mcdf.core.enums import CashoutStatus, ContributionStatus, MemberStatus
from mcdf.models.cashout import CashoutRequest
from mcdf.models.contribution import Contribution, ContributionPlan
from mcdf.models.member import Member
from mcdf.schemas.base import validate_input
from mcdf.schemas.member import MemberBankDetails, MemberCreate
from mcdf.services.eligibility import EligibilityService
from mcdf.services.numbering import NumberingService
from mcdf.services.state_machine import TransitionEvent, apply_transition, member_machine
from mcdf.utils.clock import Clock, SystemClock
from mcdf.utils.errors import NotFoundError, ValidationFailure
from mcdf.utils.logging import get_logger
from mcdf.utils.money import to_money

logger = get_logger(__name__)

OPEN_CASHOUT_STATUSES = (CashoutStatus.PENDING, CashoutStatus.VERIFIED, CashoutStatus.APPROVED)


class MemberService:
    """
    Service for member registration and lifecycle.

    Every method that changes a member takes the acting user's id.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[FundSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self.numbering = NumberingService(session)
        self.eligibility = EligibilityService(session, self.settings, self.clock)

    async def get_member(self, member_id: UUID) -> Member:
        member = await self.session.get(Member, member_id)
        if not member:
            raise NotFoundError("Member", member_id)
        return member

    async def get_by_registration_number(self, registration_number: str) -> Optional[Member]:
        result = await self.session.execute(
            select(Member).where(Member.registration_number == registration_number)
        )
        return result.scalar_one_or_none()

    # =========================================================================
    # Registration
    # =========================================================================

    async def register_member(
        self,
        data: MemberCreate | dict[str, Any],
        actor_id: Optional[UUID] = None,
    ) -> Member:
        """Create a pre-registered member on an active contribution plan."""
        data = validate_input(MemberCreate, data)

        plan = await self.session.get(ContributionPlan, data.contribution_plan_id)
        if not plan:
            raise NotFoundError("Contribution plan", data.contribution_plan_id)
        if not plan.active:
            raise ValidationFailure(
                "Cannot register on an inactive contribution plan",
                errors=[f"contribution_plan_id: plan {plan.name} is inactive"],
            )

        registration_number = await self.numbering.next_registration_number()
        member = Member(
            registration_number=registration_number,
            status=MemberStatus.PRE_REGISTERED,
            registration_date=data.registration_date or self.clock.today(),
            is_complete=False,
            registered_by=actor_id,
            **data.model_dump(exclude={"registration_date"}),
        )
        self.session.add(member)
        await self.session.commit()

        logger.info(f"Registered member {registration_number} (ID: {member.id})")
        return member

    async def update_bank_details(
        self,
        member_id: UUID,
        data: MemberBankDetails | dict[str, Any],
    ) -> Member:
        data = validate_input(MemberBankDetails, data)
        member = await self.get_member(member_id)
        for key, value in data.model_dump().items():
            setattr(member, key, value)
        await self.session.commit()
        return member

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def complete_registration(self, member_id: UUID, actor_id: UUID) -> Member:
        """
        Mark registration complete and await approval.

        Transitions: PRE_REGISTERED -> PENDING
        """
        member = await self.get_member(member_id)
        await apply_transition(
            self.session,
            member,
            member_machine,
            TransitionEvent.COMPLETE_REGISTRATION,
            is_complete=True,
        )
        await self.eligibility.refresh_member(member)
        await self.session.commit()
        logger.info(f"Member {member.registration_number} completed registration (by {actor_id})")
        return member

    async def approve_member(self, member_id: UUID, actor_id: UUID) -> Member:
        """
        Approve a completed registration.

        Transitions: PENDING -> ACTIVE
        """
        member = await self.get_member(member_id)
        await apply_transition(
            self.session,
            member,
            member_machine,
            TransitionEvent.APPROVE,
            approved_by=actor_id,
        )
        await self.eligibility.refresh_member(member)
        await self.session.commit()
        return member

    async def suspend_member(self, member_id: UUID, actor_id: UUID) -> Member:
        """Transitions: ACTIVE -> SUSPENDED"""
        member = await self.get_member(member_id)
        await apply_transition(self.session, member, member_machine, TransitionEvent.SUSPEND)
        await self.eligibility.refresh_member(member)
        await self.session.commit()
        logger.info(f"Member {member.registration_number} suspended by {actor_id}")
        return member

    async def activate_member(self, member_id: UUID, actor_id: UUID) -> Member:
        """Transitions: SUSPENDED | INACTIVE -> ACTIVE"""
        member = await self.get_member(member_id)
        await apply_transition(self.session, member, member_machine, TransitionEvent.ACTIVATE)
        await self.eligibility.refresh_member(member)
        await self.session.commit()
        logger.info(f"Member {member.registration_number} activated by {actor_id}")
        return member

    async def terminate_member(self, member_id: UUID, actor_id: UUID) -> Member:
        """Transitions: any non-terminated -> TERMINATED"""
        member = await self.get_member(member_id)
        await apply_transition(self.session, member, member_machine, TransitionEvent.TERMINATE)
        await self.eligibility.refresh_member(member)
        await self.session.commit()
        logger.info(f"Member {member.registration_number} terminated by {actor_id}")
        return member

    async def refresh_eligibility(self, member_id: UUID) -> Member:
        """Recompute and persist one member's eligibility start date."""
        member = await self.get_member(member_id)
        await self.eligibility.refresh_member(member)
        await self.session.commit()
        return member

    async def refresh_all_eligibility(self) -> int:
        """Recompute every member's start date; returns how many changed."""
        return await self.eligibility.refresh_all()

    # =========================================================================
    # Totals
    # =========================================================================

    async def _paid_sum(self, column, member_id: UUID, uncashed_only: bool = False) -> Decimal:  # type: ignore[no-untyped-def]
        query = select(func.coalesce(func.sum(column), 0)).where(
            Contribution.member_id == member_id,
            Contribution.status == ContributionStatus.PAID,
        )
        if uncashed_only:
            query = query.where(Contribution.cashout_request_id.is_(None))
        return to_money((await self.session.execute(query)).scalar_one())

    async def total_contributions(self, member_id: UUID) -> Decimal:
        """Sum of paid contribution amounts."""
        return await self._paid_sum(Contribution.amount, member_id)

    async def total_fines_paid(self, member_id: UUID) -> Decimal:
        """Sum of fines on paid contributions."""
        return await self._paid_sum(Contribution.fine_amount, member_id)

    async def cashout_eligible_amount(self, member_id: UUID) -> Decimal:
        """Paid contributions plus fines not yet covered by a cashout request."""
        amount = await self._paid_sum(Contribution.amount, member_id, uncashed_only=True)
        fines = await self._paid_sum(Contribution.fine_amount, member_id, uncashed_only=True)
        return amount + fines

    async def has_open_cashout(self, member_id: UUID) -> bool:
        result = await self.session.execute(
            select(func.count(CashoutRequest.id)).where(
                CashoutRequest.member_id == member_id,
                CashoutRequest.status.in_(OPEN_CASHOUT_STATUSES),
            )
        )
        return result.scalar_one() > 0
