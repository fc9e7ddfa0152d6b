"""
Program Service.

Provides:
- Program creation with validated entry rules
- Enrollment eligibility with every failing reason
- Enrollment, withdrawal, completion and certificates
- Capacity figures derived from live enrollments

Transitions: ENROLLED -> COMPLETED | WITHDRAWN; WITHDRAWN -> ENROLLED
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mcdf.core.config import FundSettings, get_settings
from mcdf.core.enums import EnrollmentStatus, MemberStatus
from mcdf.models.member import Member
from mcdf.models.program import Program, ProgramEnrollment
from mcdf.schemas.base import validate_input
from mcdf.schemas.program import (
    EnrollmentEligibilityResult,
    ProgramCapacity,
    ProgramCreate,
    ProgramRules,
)
from mcdf.services.calculators import age_on
from mcdf.services.eligibility import EligibilityService
from mcdf.services.state_machine import TransitionEvent, apply_transition, enrollment_machine
from mcdf.utils.clock import Clock, SystemClock
from mcdf.utils.errors import ConflictError, EligibilityFailure, InvalidStateTransition, NotFoundError
from mcdf.utils.logging import get_logger

logger = get_logger(__name__)


class ProgramService:
    """Service for programs and enrollments."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[FundSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self.eligibility = EligibilityService(session, self.settings, self.clock)

    async def get_program(self, program_id: UUID) -> Program:
        program = await self.session.get(Program, program_id)
        if not program:
            raise NotFoundError("Program", program_id)
        return program

    async def get_enrollment(self, enrollment_id: UUID) -> ProgramEnrollment:
        enrollment = await self.session.get(ProgramEnrollment, enrollment_id)
        if not enrollment:
            raise NotFoundError("Program enrollment", enrollment_id)
        return enrollment

    async def _find_enrollment(self, member_id: UUID, program_id: UUID) -> Optional[ProgramEnrollment]:
        result = await self.session.execute(
            select(ProgramEnrollment).where(
                ProgramEnrollment.member_id == member_id,
                ProgramEnrollment.program_id == program_id,
            )
        )
        return result.scalar_one_or_none()

    # =========================================================================
    # Programs
    # =========================================================================

    async def create_program(self, data: ProgramCreate | dict[str, Any]) -> Program:
        data = validate_input(ProgramCreate, data)
        existing = await self.session.execute(select(Program.id).where(Program.name == data.name))
        if existing.scalar_one_or_none():
            raise ConflictError(f"Program already exists: {data.name}")

        program = Program(
            name=data.name,
            description=data.description,
            capacity=data.capacity,
            eligibility_rules=data.eligibility_rules.model_dump(exclude_none=True),
            start_date=data.start_date,
            end_date=data.end_date,
            is_active=data.is_active,
        )
        self.session.add(program)
        await self.session.commit()
        logger.info(f"Created program {program.name} (capacity={program.capacity})")
        return program

    async def list_programs(self, active_only: bool = False) -> list[Program]:
        query = select(Program)
        if active_only:
            query = query.where(Program.is_active.is_(True))
        result = await self.session.execute(query.order_by(Program.name))
        return list(result.scalars().all())

    async def delete_program(self, program_id: UUID) -> None:
        program = await self.get_program(program_id)
        await self.session.delete(program)
        await self.session.commit()
        logger.info(f"Deleted program {program.name}")

    async def capacity(self, program_id: UUID) -> ProgramCapacity:
        """Enrolled count, free slots and at-capacity flag."""
        program = await self.get_program(program_id)
        enrolled = (
            await self.session.execute(
                select(func.count(ProgramEnrollment.id)).where(
                    ProgramEnrollment.program_id == program.id,
                    ProgramEnrollment.status == EnrollmentStatus.ENROLLED,
                )
            )
        ).scalar_one()
        if program.capacity is None:
            return ProgramCapacity(
                enrolled_count=enrolled,
                capacity=None,
                available_slots=None,
                is_at_capacity=False,
            )
        return ProgramCapacity(
            enrolled_count=enrolled,
            capacity=program.capacity,
            available_slots=max(program.capacity - enrolled, 0),
            is_at_capacity=enrolled >= program.capacity,
        )

    # =========================================================================
    # Enrollment
    # =========================================================================

    async def check_enrollment_eligibility(
        self,
        member_id: UUID,
        program_id: UUID,
        as_of: Optional[date] = None,
    ) -> EnrollmentEligibilityResult:
        """Every reason a member cannot join a program."""
        program = await self.get_program(program_id)
        member = await self.session.get(Member, member_id)
        if not member:
            raise NotFoundError("Member", member_id)
        as_of = as_of or self.clock.today()
        rules = ProgramRules.model_validate(program.eligibility_rules or {})
        capacity = await self.capacity(program.id)
        reasons: list[str] = []

        if not program.is_active:
            reasons.append("Program is not active.")

        if member.status != MemberStatus.ACTIVE:
            reasons.append("Member is not active.")

        existing = await self._find_enrollment(member.id, program.id)
        if existing and existing.status != EnrollmentStatus.WITHDRAWN:
            reasons.append("Member is already enrolled in this program.")

        if capacity.is_at_capacity:
            reasons.append("Program has reached maximum capacity.")

        if rules.min_contributions is not None:
            paid = await self.eligibility.count_paid_contributions(member.id)
            if paid < rules.min_contributions:
                reasons.append(f"Member has {paid} paid contributions; {rules.min_contributions} required.")

        if rules.min_age is not None or rules.max_age is not None:
            if member.date_of_birth is None:
                reasons.append("Member date of birth is not recorded.")
            else:
                age = age_on(member.date_of_birth, as_of)
                if rules.min_age is not None and age < rules.min_age:
                    reasons.append(f"Member is {age} years old; minimum age is {rules.min_age}.")
                if rules.max_age is not None and age > rules.max_age:
                    reasons.append(f"Member is {age} years old; maximum age is {rules.max_age}.")

        return EnrollmentEligibilityResult(
            eligible=not reasons,
            issues=reasons,
            enrolled_count=capacity.enrolled_count,
            available_slots=capacity.available_slots,
        )

    async def enroll(
        self,
        member_id: UUID,
        program_id: UUID,
        actor_id: Optional[UUID] = None,
    ) -> ProgramEnrollment:
        """
        Enroll a member, re-activating a previous withdrawal if there is one.

        Raises:
            EligibilityFailure: Every failing enrollment rule
        """
        eligibility = await self.check_enrollment_eligibility(member_id, program_id)
        if not eligibility.eligible:
            logger.warning(f"Enrollment refused for member {member_id}: {eligibility.issues}")
            raise EligibilityFailure("Member cannot be enrolled", eligibility.issues)

        now = self.clock.now()
        enrollment = await self._find_enrollment(member_id, program_id)
        if enrollment:
            await apply_transition(
                self.session,
                enrollment,
                enrollment_machine,
                TransitionEvent.REENROLL,
                enrolled_at=now,
                enrolled_by=actor_id,
                withdrawn_at=None,
                withdrawal_reason=None,
            )
        else:
            enrollment = ProgramEnrollment(
                program_id=program_id,
                member_id=member_id,
                status=EnrollmentStatus.ENROLLED,
                enrolled_at=now,
                enrolled_by=actor_id,
            )
            self.session.add(enrollment)

        await self.session.commit()
        logger.info(f"Member {member_id} enrolled in program {program_id}")
        return enrollment

    async def withdraw(self, enrollment_id: UUID, actor_id: UUID, reason: str) -> ProgramEnrollment:
        """Transitions: ENROLLED -> WITHDRAWN"""
        enrollment = await self.get_enrollment(enrollment_id)
        await apply_transition(
            self.session,
            enrollment,
            enrollment_machine,
            TransitionEvent.WITHDRAW,
            withdrawn_at=self.clock.now(),
            withdrawal_reason=reason,
        )
        await self.session.commit()
        logger.info(f"Enrollment {enrollment.id} withdrawn by {actor_id}: {reason}")
        return enrollment

    async def mark_completed(self, enrollment_id: UUID, actor_id: UUID) -> ProgramEnrollment:
        """Transitions: ENROLLED -> COMPLETED"""
        enrollment = await self.get_enrollment(enrollment_id)
        await apply_transition(
            self.session,
            enrollment,
            enrollment_machine,
            TransitionEvent.COMPLETE,
            completed_at=self.clock.now(),
        )
        await self.session.commit()
        logger.info(f"Enrollment {enrollment.id} completed (by {actor_id})")
        return enrollment

    async def issue_certificate(self, enrollment_id: UUID, actor_id: UUID) -> ProgramEnrollment:
        """Issue the completion certificate once."""
        enrollment = await self.get_enrollment(enrollment_id)
        if enrollment.status != EnrollmentStatus.COMPLETED:
            raise InvalidStateTransition(
                "Certificate can only be issued for completed enrollments, "
                f"current: {enrollment.status.value}",
                entity="enrollments",
                current_status=enrollment.status.value,
                action="issue_certificate",
            )
        if enrollment.certificate_issued:
            raise ConflictError(f"Certificate already issued for enrollment {enrollment.id}")

        enrollment.certificate_issued = True
        enrollment.certificate_issued_at = self.clock.now()
        enrollment.certificate_issued_by = actor_id
        await self.session.commit()
        logger.info(f"Certificate issued for enrollment {enrollment.id}")
        return enrollment

    async def member_enrollments(self, member_id: UUID) -> list[ProgramEnrollment]:
        result = await self.session.execute(
            select(ProgramEnrollment)
            .where(ProgramEnrollment.member_id == member_id)
            .order_by(ProgramEnrollment.enrolled_at.desc())
        )
        return list(result.scalars().all())

    async def program_enrollments(self, program_id: UUID) -> list[ProgramEnrollment]:
        result = await self.session.execute(
            select(ProgramEnrollment)
            .where(ProgramEnrollment.program_id == program_id)
            .order_by(ProgramEnrollment.enrolled_at.desc())
        )
        return list(result.scalars().all())
