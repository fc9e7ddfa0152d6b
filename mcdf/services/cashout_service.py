"""
Cashout Service.

Provides:
- Cashout eligibility with every failing reason
- Request creation with a bank details snapshot
- Verification, approval, disbursement and rejection stages
- Cashout history and statistics

Transitions: PENDING -> VERIFIED -> APPROVED -> DISBURSED
             PENDING | VERIFIED -> REJECTED
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mcdf.core.config import FundSettings, get_settings
from mcdf.core.enums import (
    CashoutStatus,
    ClaimStatus,
    ContributionStatus,
    EnrollmentStatus,
    LedgerEntryType,
    LedgerSource,
    MemberStatus,
)
from mcdf.models.cashout import CashoutRequest
from mcdf.models.contribution import Contribution
from mcdf.models.health_claim import HealthClaim
from mcdf.models.member import Member
from mcdf.models.program import ProgramEnrollment
from mcdf.schemas.base import validate_input
from mcdf.schemas.cashout import CashoutApproval, CashoutCreate, CashoutStats
from mcdf.schemas.eligibility import CashoutEligibilityResult
from mcdf.services.calculators import months_between
from mcdf.services.eligibility import EligibilityService
from mcdf.services.ledger_service import LedgerService
from mcdf.services.member_service import MemberService
from mcdf.services.state_machine import TransitionEvent, apply_transition, cashout_machine
from mcdf.utils.clock import Clock, SystemClock
from mcdf.utils.errors import EligibilityFailure, NotFoundError
from mcdf.utils.logging import get_logger
from mcdf.utils.money import ZERO, to_money

logger = get_logger(__name__)

OPEN_CLAIM_STATUSES = (ClaimStatus.SUBMITTED, ClaimStatus.APPROVED)


class CashoutService:
    """Service for member cashouts."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[FundSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self.ledger = LedgerService(session, self.clock)
        self.members = MemberService(session, self.settings, self.clock)
        self.eligibility = EligibilityService(session, self.settings, self.clock)

    async def get_request(self, request_id: UUID) -> CashoutRequest:
        request = await self.session.get(CashoutRequest, request_id)
        if not request:
            raise NotFoundError("Cashout request", request_id)
        return request

    async def member_history(self, member_id: UUID) -> list[CashoutRequest]:
        result = await self.session.execute(
            select(CashoutRequest)
            .where(CashoutRequest.member_id == member_id)
            .order_by(CashoutRequest.created_at.desc())
        )
        return list(result.scalars().all())

    # =========================================================================
    # Eligibility
    # =========================================================================

    async def _exists(self, query) -> bool:  # type: ignore[no-untyped-def]
        return (await self.session.execute(query)).scalar_one() > 0

    async def check_cashout_eligibility(
        self,
        member_id: UUID,
        as_of: Optional[date] = None,
    ) -> CashoutEligibilityResult:
        """
        Evaluate every cashout rule for a member.

        Returns:
            CashoutEligibilityResult with all failing reasons and the amount
            a new request would ask for
        """
        member = await self.members.get_member(member_id)
        as_of = as_of or self.clock.today()
        reasons: list[str] = []

        if member.status != MemberStatus.ACTIVE:
            reasons.append("Member must be active")

        if await self.members.has_open_cashout(member.id):
            reasons.append("Member already has a pending cashout request")

        membership_months = months_between(member.registration_date, as_of)
        min_months = self.settings.CASHOUT_MIN_MEMBERSHIP_MONTHS
        if membership_months < min_months:
            reasons.append(
                f"Minimum membership period of {min_months} months not met "
                f"(current: {membership_months} months)"
            )

        if not member.has_bank_details:
            reasons.append("Bank account details not provided")

        if await self.eligibility.count_active_loans(member.id) > 0:
            reasons.append("Member has active loans that must be fully repaid first")

        if await self._exists(
            select(func.count(HealthClaim.id)).where(
                HealthClaim.member_id == member.id,
                HealthClaim.status.in_(OPEN_CLAIM_STATUSES),
            )
        ):
            reasons.append("Member has pending or approved health claims")

        if await self._exists(
            select(func.count(ProgramEnrollment.id)).where(
                ProgramEnrollment.member_id == member.id,
                ProgramEnrollment.status == EnrollmentStatus.ENROLLED,
            )
        ):
            reasons.append("Member is enrolled in active vocational programs")

        contribution_count = await self.eligibility.count_paid_contributions(member.id)
        min_contributions = self.settings.CASHOUT_MIN_CONTRIBUTIONS
        if contribution_count < min_contributions:
            reasons.append(
                f"Minimum {min_contributions} contributions required (current: {contribution_count})"
            )

        eligible_amount = await self.members.cashout_eligible_amount(member.id)
        if eligible_amount <= ZERO:
            reasons.append("No funds available for cashout")

        return CashoutEligibilityResult(
            eligible=not reasons,
            issues=reasons,
            eligible_amount=eligible_amount,
            membership_months=membership_months,
            contribution_count=contribution_count,
        )

    # =========================================================================
    # Workflow
    # =========================================================================

    async def _link_contributions(self, request: CashoutRequest) -> None:
        """Reserve the paid contributions the request returns; caller commits."""
        await self.session.execute(
            update(Contribution)
            .where(
                Contribution.member_id == request.member_id,
                Contribution.status == ContributionStatus.PAID,
                Contribution.cashout_request_id.is_(None),
            )
            .values(cashout_request_id=request.id)
            .execution_options(synchronize_session=False)
        )

    async def create_request(
        self,
        data: CashoutCreate | dict[str, Any],
        actor_id: Optional[UUID] = None,
    ) -> CashoutRequest:
        """
        Raise a cashout for the member's full eligible amount.

        Raises:
            EligibilityFailure: Every failing cashout rule
        """
        data = validate_input(CashoutCreate, data)
        eligibility = await self.check_cashout_eligibility(data.member_id)
        if not eligibility.eligible:
            logger.warning(f"Cashout refused for member {data.member_id}: {eligibility.issues}")
            raise EligibilityFailure("Member is not eligible for cashout", eligibility.issues)

        member = await self.members.get_member(data.member_id)
        request = CashoutRequest(
            member_id=member.id,
            requested_amount=eligibility.eligible_amount,
            status=CashoutStatus.PENDING,
            reason=data.reason,
            bank_account_number=member.bank_account_number,
            bank_account_name=member.bank_account_name,
            bank_name=member.bank_name,
            requested_by=actor_id,
        )
        self.session.add(request)
        await self.session.flush()
        await self._link_contributions(request)
        await self.session.commit()

        logger.info(f"Cashout {request.id} raised for {member.registration_number}: {request.requested_amount}")
        return request

    async def verify_request(
        self,
        request_id: UUID,
        actor_id: UUID,
        notes: Optional[str] = None,
        approved: bool = True,
    ) -> CashoutRequest:
        """
        Verify a pending request; a failed verification rejects it.

        Transitions: PENDING -> VERIFIED
        """
        if not approved:
            return await self.reject_request(request_id, actor_id, notes or "Verification failed")

        request = await self.get_request(request_id)
        await apply_transition(
            self.session,
            request,
            cashout_machine,
            TransitionEvent.VERIFY,
            verified_by=actor_id,
            verified_at=self.clock.now(),
            verification_notes=notes,
        )
        await self.session.commit()
        return request

    async def approve_request(
        self,
        request_id: UUID,
        actor_id: UUID,
        approved_amount: Decimal,
        notes: Optional[str] = None,
    ) -> CashoutRequest:
        """
        Approve a verified request for an amount that may differ from the request.

        Transitions: VERIFIED -> APPROVED
        """
        data = validate_input(
            CashoutApproval,
            {"approved_amount": to_money(approved_amount), "notes": notes},
        )
        request = await self.get_request(request_id)
        await apply_transition(
            self.session,
            request,
            cashout_machine,
            TransitionEvent.APPROVE,
            approved_amount=data.approved_amount,
            approved_by=actor_id,
            approved_at=self.clock.now(),
            approval_notes=data.notes,
        )
        await self.session.commit()
        return request

    async def disburse_request(
        self,
        request_id: UUID,
        actor_id: UUID,
        reference: str,
        notes: Optional[str] = None,
    ) -> CashoutRequest:
        """
        Pay out an approved request.

        Posts the outflow and resets the member's eligibility. The
        contributions it returns were linked when the request was raised.

        Transitions: APPROVED -> DISBURSED
        """
        request = await self.get_request(request_id)
        today = self.clock.today()
        await apply_transition(
            self.session,
            request,
            cashout_machine,
            TransitionEvent.DISBURSE,
            disbursed_by=actor_id,
            disbursed_at=self.clock.now(),
            disbursement_reference=reference,
            disbursement_notes=notes,
        )

        await self.ledger.append(
            entry_type=LedgerEntryType.OUTFLOW,
            source=LedgerSource.CASHOUT,
            amount=request.approved_amount,
            transaction_date=today,
            member_id=request.member_id,
            reference=reference,
            description=f"Member cashout - Request #{request.id}",
            actor_id=actor_id,
        )

        member = await self.session.get(Member, request.member_id)
        member.last_cashout_date = today
        member.cashout_count = member.cashout_count + 1
        member.eligibility_start_date = None

        await self.session.commit()
        logger.info(
            f"Cashout {request.id} disbursed to {member.registration_number}: "
            f"{request.approved_amount} ref={reference}"
        )
        return request

    async def reject_request(
        self,
        request_id: UUID,
        actor_id: UUID,
        reason: str,
    ) -> CashoutRequest:
        """
        Reject a request that has not been approved yet and release the
        contributions it reserved.

        Transitions: PENDING | VERIFIED -> REJECTED
        """
        request = await self.get_request(request_id)
        await apply_transition(
            self.session,
            request,
            cashout_machine,
            TransitionEvent.REJECT,
            reason=reason,
            rejected_by=actor_id,
            rejected_at=self.clock.now(),
            rejection_reason=reason,
        )
        await self.session.execute(
            update(Contribution)
            .where(Contribution.cashout_request_id == request.id)
            .values(cashout_request_id=None)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return request

    # =========================================================================
    # Reporting
    # =========================================================================

    async def cashout_stats(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> CashoutStats:
        query = select(CashoutRequest.status, func.count(CashoutRequest.id)).group_by(CashoutRequest.status)
        total_query = select(func.coalesce(func.sum(CashoutRequest.approved_amount), 0)).where(
            CashoutRequest.status == CashoutStatus.DISBURSED
        )
        if date_from:
            query = query.where(func.date(CashoutRequest.created_at) >= date_from)
            total_query = total_query.where(func.date(CashoutRequest.created_at) >= date_from)
        if date_to:
            query = query.where(func.date(CashoutRequest.created_at) <= date_to)
            total_query = total_query.where(func.date(CashoutRequest.created_at) <= date_to)

        counts = {status: count for status, count in (await self.session.execute(query)).all()}
        total_disbursed = to_money((await self.session.execute(total_query)).scalar_one())
        disbursed = counts.get(CashoutStatus.DISBURSED, 0)

        return CashoutStats(
            total_requests=sum(counts.values()),
            pending_requests=counts.get(CashoutStatus.PENDING, 0),
            verified_requests=counts.get(CashoutStatus.VERIFIED, 0),
            approved_requests=counts.get(CashoutStatus.APPROVED, 0),
            disbursed_requests=disbursed,
            rejected_requests=counts.get(CashoutStatus.REJECTED, 0),
            total_disbursed=total_disbursed,
            average_cashout=to_money(total_disbursed / disbursed) if disbursed else ZERO,
        )
