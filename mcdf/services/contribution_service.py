"""
Contribution Service.

Provides:
- Contribution plan management
- Contribution recording by administrators
- Member self-service submissions and their verification
- Late fine calculation and the overdue sweep
- Ledger posting for received contributions, with compensating adjustments

A fine charged while a contribution was late stays in place when it is later
paid, unless its payment date or period end change.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mcdf.core.config import FundSettings, get_settings
from mcdf.core.enums import ContributionStatus, LedgerEntryType, LedgerSource
from mcdf.models.contribution import Contribution, ContributionPlan
from mcdf.models.member import Member
from mcdf.schemas.base import validate_input
from mcdf.schemas.contribution import (
    ContributionCreate,
    ContributionPlanCreate,
    ContributionSubmission,
    ContributionUpdate,
)
from mcdf.services.calculators import compute_fine, overdue_fine
from mcdf.services.eligibility import EligibilityService
from mcdf.services.ledger_service import LedgerService
from mcdf.services.numbering import NumberingService
from mcdf.services.state_machine import TransitionEvent, apply_transition, contribution_machine
from mcdf.utils.clock import Clock, SystemClock
from mcdf.utils.errors import InvalidStateTransition, NotFoundError, ValidationFailure
from mcdf.utils.logging import get_logger

logger = get_logger(__name__)


class ContributionService:
    """Service for contribution plans and contributions."""

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
        self.ledger = LedgerService(session, self.clock)
        self.eligibility = EligibilityService(session, self.settings, self.clock)

    # =========================================================================
    # Plans
    # =========================================================================

    async def create_plan(self, data: ContributionPlanCreate | dict[str, Any]) -> ContributionPlan:
        data = validate_input(ContributionPlanCreate, data)
        plan = ContributionPlan(**data.model_dump(), active=True)
        self.session.add(plan)
        await self.session.commit()
        logger.info(f"Created contribution plan {plan.name} ({plan.amount} {plan.frequency.value})")
        return plan

    async def deactivate_plan(self, plan_id: UUID) -> ContributionPlan:
        plan = await self.session.get(ContributionPlan, plan_id)
        if not plan:
            raise NotFoundError("Contribution plan", plan_id)
        plan.active = False
        await self.session.commit()
        return plan

    async def list_active_plans(self) -> list[ContributionPlan]:
        result = await self.session.execute(
            select(ContributionPlan).where(ContributionPlan.active.is_(True)).order_by(ContributionPlan.amount)
        )
        return list(result.scalars().all())

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_contribution(self, contribution_id: UUID) -> Contribution:
        contribution = await self.session.get(Contribution, contribution_id)
        if not contribution:
            raise NotFoundError("Contribution", contribution_id)
        return contribution

    async def get_by_receipt(self, receipt_number: str) -> Optional[Contribution]:
        result = await self.session.execute(
            select(Contribution).where(Contribution.receipt_number == receipt_number)
        )
        return result.scalar_one_or_none()

    async def list_for_member(
        self,
        member_id: UUID,
        status: Optional[ContributionStatus] = None,
    ) -> list[Contribution]:
        query = select(Contribution).where(Contribution.member_id == member_id)
        if status:
            query = query.where(Contribution.status == status)
        result = await self.session.execute(query.order_by(Contribution.period_start))
        return list(result.scalars().all())

    async def _get_member(self, member_id: UUID) -> Member:
        member = await self.session.get(Member, member_id)
        if not member:
            raise NotFoundError("Member", member_id)
        return member

    # =========================================================================
    # Recording
    # =========================================================================

    def _fine_for(self, contribution: Contribution) -> Decimal:
        return compute_fine(
            contribution.amount,
            contribution.payment_date,
            contribution.period_end,
            contribution.status,
            self.settings.LATE_FINE_RATE,
        )

    async def _post_receipt(self, contribution: Contribution, actor_id: Optional[UUID]) -> None:
        await self.ledger.append(
            entry_type=LedgerEntryType.INFLOW,
            source=LedgerSource.CONTRIBUTION,
            amount=contribution.total_amount,
            transaction_date=contribution.payment_date or self.clock.today(),
            member_id=contribution.member_id,
            reference=contribution.receipt_number,
            description=f"Contribution {contribution.receipt_number}",
            actor_id=actor_id,
        )

    async def record_contribution(
        self,
        data: ContributionCreate | dict[str, Any],
        actor_id: UUID,
    ) -> Contribution:
        """
        Record a contribution entered by an administrator.

        Paid contributions are posted to the ledger straight away for amount
        plus fine.
        """
        data = validate_input(ContributionCreate, data)
        member = await self._get_member(data.member_id)

        receipt_number = await self.numbering.next_receipt_number(self.clock.today())
        contribution = Contribution(
            member_id=member.id,
            contribution_plan_id=data.contribution_plan_id or member.contribution_plan_id,
            receipt_number=receipt_number,
            amount=data.amount,
            payment_date=data.payment_date,
            period_start=data.period_start,
            period_end=data.period_end,
            status=data.status,
            payment_method=data.payment_method,
            transaction_reference=data.transaction_reference,
            notes=data.notes,
            recorded_by=actor_id,
            is_member_submitted=False,
        )
        contribution.fine_amount = self._fine_for(contribution)
        self.session.add(contribution)
        await self.session.flush()

        if contribution.status == ContributionStatus.PAID:
            await self._post_receipt(contribution, actor_id)
            contribution.ledger_posted = True
            await self.session.flush()
            await self.eligibility.refresh_member(member)

        await self.session.commit()
        logger.info(
            f"Recorded contribution {receipt_number} for {member.registration_number}: "
            f"{contribution.amount} + fine {contribution.fine_amount} ({contribution.status.value})"
        )
        return contribution

    async def submit_contribution(
        self,
        data: ContributionSubmission | dict[str, Any],
        actor_id: UUID,
    ) -> Contribution:
        """Member self-service submission with proof of payment; awaits verification."""
        data = validate_input(ContributionSubmission, data)
        member = await self._get_member(data.member_id)

        receipt_number = await self.numbering.next_receipt_number(self.clock.today())
        contribution = Contribution(
            member_id=member.id,
            contribution_plan_id=member.contribution_plan_id,
            receipt_number=receipt_number,
            amount=data.amount,
            payment_date=data.payment_date,
            period_start=data.period_start,
            period_end=data.period_end,
            status=ContributionStatus.PENDING,
            payment_method=data.payment_method,
            transaction_reference=data.transaction_reference,
            receipt_path=data.receipt_path,
            notes=data.notes,
            recorded_by=actor_id,
            is_member_submitted=True,
        )
        contribution.fine_amount = self._fine_for(contribution)
        self.session.add(contribution)
        await self.session.commit()

        logger.info(f"Member {member.registration_number} submitted contribution {receipt_number}")
        return contribution

    async def verify_contribution(
        self,
        contribution_id: UUID,
        actor_id: UUID,
        approved: bool,
        notes: Optional[str] = None,
    ) -> Contribution:
        """
        Accept or reject a member-submitted contribution.

        Transitions: PENDING -> PAID (approved) | CANCELLED (rejected)
        """
        contribution = await self.get_contribution(contribution_id)
        if not contribution.is_member_submitted:
            raise InvalidStateTransition(
                "Only member-submitted contributions can be verified",
                entity="contributions",
                current_status=contribution.status.value,
                action="verify",
            )
        if contribution.status != ContributionStatus.PENDING:
            raise InvalidStateTransition(
                f"Only pending contributions can be verified, current: {contribution.status.value}",
                entity="contributions",
                current_status=contribution.status.value,
                action="verify",
            )

        stamps = {"verified_by": actor_id, "verified_at": self.clock.now(), "notes": notes or contribution.notes}
        if approved:
            await apply_transition(
                self.session,
                contribution,
                contribution_machine,
                TransitionEvent.PAY,
                ledger_posted=True,
                **stamps,
            )
            await self._post_receipt(contribution, actor_id)
            member = await self._get_member(contribution.member_id)
            await self.eligibility.refresh_member(member)
        else:
            await apply_transition(
                self.session,
                contribution,
                contribution_machine,
                TransitionEvent.CANCEL,
                **stamps,
            )

        await self.session.commit()
        logger.info(
            f"Contribution {contribution.receipt_number} "
            f"{'verified' if approved else 'rejected'} by {actor_id}"
        )
        return contribution

    async def record_payment(
        self,
        contribution_id: UUID,
        actor_id: UUID,
        payment_date: Optional[date] = None,
        notes: Optional[str] = None,
    ) -> Contribution:
        """
        Receive payment for a pending or overdue contribution.

        Transitions: PENDING | OVERDUE -> PAID
        """
        contribution = await self.get_contribution(contribution_id)
        contribution_machine.require(contribution.status, TransitionEvent.PAY)

        paid_on = payment_date or self.clock.today()
        fine = contribution.fine_amount
        if paid_on != contribution.payment_date:
            fine = compute_fine(
                contribution.amount,
                paid_on,
                contribution.period_end,
                contribution.status,
                self.settings.LATE_FINE_RATE,
            )
        await apply_transition(
            self.session,
            contribution,
            contribution_machine,
            TransitionEvent.PAY,
            payment_date=paid_on,
            fine_amount=fine,
            ledger_posted=True,
            notes=notes or contribution.notes,
        )
        await self._post_receipt(contribution, actor_id)
        member = await self._get_member(contribution.member_id)
        await self.eligibility.refresh_member(member)
        await self.session.commit()
        return contribution

    async def update_contribution(
        self,
        contribution_id: UUID,
        data: ContributionUpdate | dict[str, Any],
        actor_id: UUID,
    ) -> Contribution:
        """
        Edit a contribution.

        The fine is recomputed only when payment_date or period_end change.
        If the contribution is already on the ledger and its total moves, the
        difference is posted as a contribution_adjustment entry.
        Moving a paid contribution's dates refreshes the member's
        eligibility start date.
        """
        data = validate_input(ContributionUpdate, data)
        contribution = await self.get_contribution(contribution_id)
        if contribution.status == ContributionStatus.CANCELLED:
            raise InvalidStateTransition(
                "Cancelled contributions cannot be updated",
                entity="contributions",
                current_status=contribution.status.value,
                action="update",
            )

        changes = data.model_dump(exclude_unset=True)
        is_paid = contribution.status == ContributionStatus.PAID
        if is_paid and "payment_date" in changes and changes["payment_date"] is None:
            raise ValidationFailure(
                "Invalid contribution update",
                errors=["payment_date is required for paid contributions"],
            )
        period_start = changes.get("period_start", contribution.period_start)
        period_end = changes.get("period_end", contribution.period_end)
        if period_end < period_start:
            raise ValidationFailure(
                "Invalid contribution period",
                errors=["period_end must be on or after period_start"],
            )

        dates_changed = any(
            key in changes and changes[key] != getattr(contribution, key)
            for key in ("payment_date", "period_end")
        )
        old_total = contribution.total_amount

        for key, value in changes.items():
            setattr(contribution, key, value)
        if dates_changed:
            contribution.fine_amount = self._fine_for(contribution)

        difference = contribution.total_amount - old_total
        if contribution.ledger_posted and difference != 0:
            await self.ledger.append(
                entry_type=LedgerEntryType.INFLOW if difference > 0 else LedgerEntryType.OUTFLOW,
                source=LedgerSource.CONTRIBUTION_ADJUSTMENT,
                amount=abs(difference),
                member_id=contribution.member_id,
                reference=contribution.receipt_number,
                description=f"Adjustment to contribution {contribution.receipt_number}",
                actor_id=actor_id,
            )

        if is_paid and dates_changed:
            await self.session.flush()
            member = await self._get_member(contribution.member_id)
            await self.eligibility.refresh_member(member)

        await self.session.commit()
        logger.info(f"Updated contribution {contribution.receipt_number} (total change {difference})")
        return contribution

    async def cancel_contribution(
        self,
        contribution_id: UUID,
        actor_id: UUID,
        notes: Optional[str] = None,
    ) -> Contribution:
        """Transitions: PENDING | OVERDUE -> CANCELLED"""
        contribution = await self.get_contribution(contribution_id)
        await apply_transition(
            self.session,
            contribution,
            contribution_machine,
            TransitionEvent.CANCEL,
            notes=notes or contribution.notes,
        )
        await self.session.commit()
        logger.info(f"Contribution {contribution.receipt_number} cancelled by {actor_id}")
        return contribution

    async def mark_overdue_contributions(self, as_of: Optional[date] = None) -> int:
        """
        Sweep administrator-recorded pending contributions whose period has
        ended to OVERDUE, charging the late fine. Member submissions awaiting
        verification are left alone.

        Returns:
            Number of contributions marked overdue
        """
        as_of = as_of or self.clock.today()
        result = await self.session.execute(
            select(Contribution).where(
                Contribution.status == ContributionStatus.PENDING,
                Contribution.is_member_submitted.is_(False),
                Contribution.period_end < as_of,
            )
        )
        contributions = result.scalars().all()
        for contribution in contributions:
            await apply_transition(
                self.session,
                contribution,
                contribution_machine,
                TransitionEvent.MARK_OVERDUE,
                fine_amount=overdue_fine(contribution.amount, self.settings.LATE_FINE_RATE),
            )

        await self.session.commit()
        logger.info(f"Marked {len(contributions)} contributions overdue as of {as_of}")
        return len(contributions)
