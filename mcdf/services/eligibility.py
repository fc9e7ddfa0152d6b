"""
Eligibility Engine.

Provides:
- Health eligibility start date for a member
- Per-claim-type eligibility checks
- Loan eligibility checks
- Dependent coverage rules
- Eligibility reporting across members

The evaluate_* functions are pure: every rule is checked and all failures
are collected, never short-circuited. EligibilityService gathers the counts
they need from the database.
"""

from datetime import date, timedelta
from typing import Optional
from uuid import UUID

from dateutil.relativedelta import relativedelta
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mcdf.core.config import FundSettings, get_settings
from mcdf.core.enums import (
    ClaimType,
    ContributionStatus,
    LoanStatus,
    MemberStatus,
    Relationship,
)
from mcdf.models.contribution import Contribution
from mcdf.models.loan import Loan
from mcdf.models.member import Member
from mcdf.schemas.eligibility import (
    ClaimEligibilityResult,
    EligibilityResult,
    EligibilityStats,
)
from mcdf.services.calculators import age_on
from mcdf.utils.clock import Clock, SystemClock
from mcdf.utils.errors import NotFoundError
from mcdf.utils.logging import get_logger

logger = get_logger(__name__)

MAJOR_CLAIM_TYPES = {ClaimType.INPATIENT, ClaimType.SURGERY, ClaimType.MATERNITY}
ACTIVE_LOAN_STATUSES = (LoanStatus.APPROVED, LoanStatus.DISBURSED)


# =============================================================================
# Pure Rules
# =============================================================================


def compute_eligibility_start_date(
    registration_date: date,
    is_complete: bool,
    status: MemberStatus,
    recent_paid_contributions: int,
    settings: Optional[FundSettings] = None,
) -> Optional[date]:
    """
    Date health cover starts, or None while the member does not qualify.

    Args:
        registration_date: Member's registration date
        is_complete: Registration completed
        status: Member status
        recent_paid_contributions: Paid contributions inside the trailing window
    """
    settings = settings or get_settings()
    if not is_complete or status != MemberStatus.ACTIVE:
        return None
    if recent_paid_contributions < settings.ELIGIBILITY_MIN_CONTRIBUTIONS:
        return None
    return registration_date + timedelta(days=settings.HEALTH_WAITING_DAYS)


def required_claim_contributions(claim_type: ClaimType | str, settings: Optional[FundSettings] = None) -> int:
    """Paid contributions a claim type needs; unknown types use the outpatient minimum."""
    settings = settings or get_settings()
    if claim_type in MAJOR_CLAIM_TYPES:
        return settings.MAJOR_CLAIM_MIN_CONTRIBUTIONS
    return settings.OUTPATIENT_MIN_CONTRIBUTIONS


def evaluate_claim_eligibility(
    status: MemberStatus,
    registered_on: date,
    paid_contributions: int,
    claim_type: ClaimType,
    as_of: date,
    settings: Optional[FundSettings] = None,
) -> ClaimEligibilityResult:
    """Check whether a member may file a claim of the given type."""
    settings = settings or get_settings()
    issues: list[str] = []

    if status != MemberStatus.ACTIVE:
        issues.append("Member must be active")

    days = (as_of - registered_on).days
    if days < settings.HEALTH_WAITING_DAYS:
        issues.append(
            f"Member must be registered for at least {settings.HEALTH_WAITING_DAYS} days"
        )

    required = required_claim_contributions(claim_type, settings)
    if paid_contributions < required:
        issues.append(f"Member must have at least {required} months of contributions")

    return ClaimEligibilityResult(
        eligible=not issues,
        issues=issues,
        claim_type=claim_type,
        days_since_registration=days,
        contribution_count=paid_contributions,
        required_contributions=required,
    )


def evaluate_loan_eligibility(
    status: MemberStatus,
    recent_paid_contributions: int,
    active_loans: int,
    settings: Optional[FundSettings] = None,
) -> EligibilityResult:
    """Check whether a member may apply for a new loan."""
    settings = settings or get_settings()
    issues: list[str] = []

    if status != MemberStatus.ACTIVE:
        issues.append("Member must be active")
    if recent_paid_contributions < settings.LOAN_MIN_CONTRIBUTIONS:
        issues.append(
            f"Member must have at least {settings.LOAN_MIN_CONTRIBUTIONS} months of contributions"
        )
    if active_loans > 0:
        issues.append("Member has existing active loans")

    return EligibilityResult.from_issues(issues)


def compute_dependent_eligibility(
    relationship: Relationship,
    date_of_birth: date,
    member_health_eligible: bool,
    as_of: date,
    child_max_age: int = 15,
) -> bool:
    """
    Whether a dependent is covered.

    Young children are always covered; every other relationship follows the
    member's own health eligibility.
    """
    if relationship == Relationship.CHILD and age_on(date_of_birth, as_of) <= child_max_age:
        return True
    if relationship in (
        Relationship.CHILD,
        Relationship.SPOUSE,
        Relationship.PARENT,
        Relationship.SIBLING,
        Relationship.OTHER,
    ):
        return member_health_eligible
    return False


# =============================================================================
# Eligibility Service
# =============================================================================


class EligibilityService:
    """Database-backed eligibility evaluation for members."""

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

    async def count_paid_contributions(
        self,
        member_id: UUID,
        since: Optional[date] = None,
        until: Optional[date] = None,
    ) -> int:
        """Paid contributions for a member, optionally bounded by payment date."""
        query = select(func.count(Contribution.id)).where(
            Contribution.member_id == member_id,
            Contribution.status == ContributionStatus.PAID,
        )
        if since:
            query = query.where(Contribution.payment_date >= since)
        if until:
            query = query.where(Contribution.payment_date <= until)
        return (await self.session.execute(query)).scalar_one()

    async def count_active_loans(self, member_id: UUID) -> int:
        result = await self.session.execute(
            select(func.count(Loan.id)).where(
                Loan.member_id == member_id,
                Loan.status.in_(ACTIVE_LOAN_STATUSES),
            )
        )
        return result.scalar_one()

    async def eligibility_start_date(self, member: Member, as_of: Optional[date] = None) -> Optional[date]:
        """Compute (without saving) the member's eligibility start date."""
        as_of = as_of or self.clock.today()
        window_start = as_of - relativedelta(months=self.settings.ELIGIBILITY_WINDOW_MONTHS)
        recent = await self.count_paid_contributions(member.id, since=window_start, until=as_of)
        return compute_eligibility_start_date(
            member.registration_date,
            member.is_complete,
            member.status,
            recent,
            self.settings,
        )

    async def refresh_member(self, member: Member, as_of: Optional[date] = None) -> Optional[date]:
        """Recompute and stage the member's eligibility start date; caller commits."""
        start = await self.eligibility_start_date(member, as_of)
        if member.eligibility_start_date != start:
            logger.info(
                f"Eligibility start for {member.registration_number}: "
                f"{member.eligibility_start_date} -> {start}"
            )
            member.eligibility_start_date = start
            await self.session.flush()
        return start

    async def refresh_all(self, as_of: Optional[date] = None) -> int:
        """Recompute every member's start date; returns how many changed."""
        members = (await self.session.execute(select(Member))).scalars().all()
        changed = 0
        for member in members:
            before = member.eligibility_start_date
            if await self.refresh_member(member, as_of) != before:
                changed += 1
        await self.session.commit()
        logger.info(f"Refreshed eligibility for {len(members)} members, {changed} changed")
        return changed

    async def check_claim_eligibility(
        self,
        member_id: UUID,
        claim_type: ClaimType,
        as_of: Optional[date] = None,
    ) -> ClaimEligibilityResult:
        """All reasons a member may not file a claim of this type."""
        member = await self._get_member(member_id)
        as_of = as_of or self.clock.today()
        registered_on = member.registration_date or member.created_at.date()
        paid = await self.count_paid_contributions(member.id)
        return evaluate_claim_eligibility(
            member.status, registered_on, paid, claim_type, as_of, self.settings
        )

    async def check_loan_eligibility(
        self,
        member_id: UUID,
        as_of: Optional[date] = None,
    ) -> EligibilityResult:
        """All reasons a member may not take a new loan."""
        member = await self._get_member(member_id)
        as_of = as_of or self.clock.today()
        window_start = as_of - relativedelta(months=self.settings.LOAN_CONTRIBUTION_WINDOW_MONTHS)
        recent = await self.count_paid_contributions(member.id, since=window_start, until=as_of)
        active = await self.count_active_loans(member.id)
        return evaluate_loan_eligibility(member.status, recent, active, self.settings)

    # =========================================================================
    # Reporting
    # =========================================================================

    async def list_eligible_members(self, as_of: Optional[date] = None) -> list[Member]:
        """Active members whose cover has started."""
        as_of = as_of or self.clock.today()
        result = await self.session.execute(
            select(Member)
            .where(
                Member.status == MemberStatus.ACTIVE,
                Member.eligibility_start_date.is_not(None),
                Member.eligibility_start_date <= as_of,
            )
            .order_by(Member.registration_number)
        )
        return list(result.scalars().all())

    async def list_upcoming_eligible(self, within_days: int = 30, as_of: Optional[date] = None) -> list[Member]:
        """Members whose cover starts within the next N days."""
        as_of = as_of or self.clock.today()
        result = await self.session.execute(
            select(Member)
            .where(
                Member.eligibility_start_date > as_of,
                Member.eligibility_start_date <= as_of + timedelta(days=within_days),
            )
            .order_by(Member.eligibility_start_date)
        )
        return list(result.scalars().all())

    async def eligibility_stats(self, as_of: Optional[date] = None) -> EligibilityStats:
        as_of = as_of or self.clock.today()
        total = (await self.session.execute(select(func.count(Member.id)))).scalar_one()
        eligible = (
            await self.session.execute(
                select(func.count(Member.id)).where(Member.eligibility_start_date <= as_of)
            )
        ).scalar_one()
        pending = (
            await self.session.execute(
                select(func.count(Member.id)).where(Member.eligibility_start_date > as_of)
            )
        ).scalar_one()
        return EligibilityStats(
            total_members=total,
            eligible=eligible,
            pending=pending,
            not_eligible=total - eligible - pending,
        )
