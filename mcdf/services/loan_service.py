"""
Loan Service.

Provides:
- Loan applications behind the loan eligibility gate
- Level-by-level approval through the approval chain
- Disbursement and repayments with ledger postings
- Defaulting of overdue loans

Transitions: PENDING -> APPROVED -> DISBURSED -> REPAID | DEFAULTED
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mcdf.core.config import FundSettings, get_settings
from mcdf.core.enums import LedgerEntryType, LedgerSource, LoanStatus
from mcdf.models.approval import ApprovalTarget
from mcdf.models.loan import Loan, LoanRepayment
from mcdf.models.member import Member
from mcdf.schemas.base import validate_input
from mcdf.schemas.eligibility import EligibilityResult
from mcdf.schemas.loan import LoanApplication, RepaymentCreate
from mcdf.services.approval_service import ApprovalService
from mcdf.services.calculators import compute_installment, parse_repayment_months
from mcdf.services.eligibility import EligibilityService
from mcdf.services.ledger_service import LedgerService
from mcdf.services.state_machine import TransitionEvent, apply_transition, loan_machine
from mcdf.utils.clock import Clock, SystemClock
from mcdf.utils.errors import (
    EligibilityFailure,
    InvalidStateTransition,
    NotFoundError,
    ValidationFailure,
)
from mcdf.utils.logging import get_logger

logger = get_logger(__name__)


class LoanService:
    """Service for the loan workflow."""

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
        self.eligibility = EligibilityService(session, self.settings, self.clock)
        self.approvals = ApprovalService(session, self.settings, self.clock)

    async def get_loan(self, loan_id: UUID) -> Loan:
        loan = await self.session.get(Loan, loan_id)
        if not loan:
            raise NotFoundError("Loan", loan_id)
        return loan

    async def list_for_member(self, member_id: UUID) -> list[Loan]:
        result = await self.session.execute(
            select(Loan).where(Loan.member_id == member_id).order_by(Loan.created_at)
        )
        return list(result.scalars().all())

    async def check_eligibility(self, member_id: UUID) -> EligibilityResult:
        return await self.eligibility.check_loan_eligibility(member_id)

    # =========================================================================
    # Application and Approval
    # =========================================================================

    async def apply_for_loan(
        self,
        data: LoanApplication | dict[str, Any],
        actor_id: UUID,
    ) -> Loan:
        """
        Create a pending loan and its approval chain.

        Raises:
            ValidationFailure: Amount outside the configured bounds
            EligibilityFailure: Member fails any loan eligibility rule
        """
        data = validate_input(LoanApplication, data)
        if not self.settings.LOAN_MIN_AMOUNT <= data.amount <= self.settings.LOAN_MAX_AMOUNT:
            raise ValidationFailure(
                "Loan amount out of range",
                errors=[
                    f"amount: must be between {self.settings.LOAN_MIN_AMOUNT} "
                    f"and {self.settings.LOAN_MAX_AMOUNT}"
                ],
            )

        if not await self.session.get(Member, data.member_id):
            raise NotFoundError("Member", data.member_id)
        eligibility = await self.eligibility.check_loan_eligibility(data.member_id)
        if not eligibility.eligible:
            logger.warning(f"Loan application refused for member {data.member_id}: {eligibility.issues}")
            raise EligibilityFailure("Member is not eligible for a loan", eligibility.issues)

        months = parse_repayment_months(data.repayment_period, self.settings.DEFAULT_REPAYMENT_MONTHS)
        loan = Loan(
            member_id=data.member_id,
            loan_type=data.loan_type,
            item_description=data.item_description,
            purpose=data.purpose,
            amount=data.amount,
            repayment_mode=data.repayment_mode,
            repayment_period=data.repayment_period,
            repayment_months=months,
            installment_amount=compute_installment(data.amount, months, data.repayment_mode),
            status=LoanStatus.PENDING,
            applied_by=actor_id,
        )
        self.session.add(loan)
        await self.session.flush()

        await self.approvals.create_chain(ApprovalTarget.loan(loan.id))
        await self.session.commit()

        logger.info(f"Loan {loan.id} applied: {loan.amount} over {months} months")
        return loan

    async def approve_loan(
        self,
        loan_id: UUID,
        level: int,
        actor_id: UUID,
        remarks: Optional[str] = None,
    ) -> Loan:
        """
        Approve the pending approval at one level.

        The loan itself moves PENDING -> APPROVED only when the final level
        is approved.
        """
        loan = await self.get_loan(loan_id)
        target = ApprovalTarget.loan(loan.id)
        loan_machine.require(loan.status, TransitionEvent.APPROVE)

        if await self.approvals.is_rejected(target):
            raise InvalidStateTransition(
                f"Loan {loan.id} was rejected and cannot be approved",
                entity="loans",
                current_status=loan.status.value,
                action="approve",
            )
        approval = await self.approvals.pending_approval(target, level)
        if not approval:
            raise InvalidStateTransition(
                f"No pending level {level} approval for loan {loan.id}",
                entity="loans",
                current_status=loan.status.value,
                action="approve",
            )

        await self.approvals.record_decision(approval, actor_id, True, remarks)
        if level == self.approvals.final_level:
            await apply_transition(
                self.session,
                loan,
                loan_machine,
                TransitionEvent.APPROVE,
                approved_by=actor_id,
                approval_date=self.clock.today(),
            )

        await self.session.commit()
        return loan

    async def reject_loan(
        self,
        loan_id: UUID,
        level: int,
        actor_id: UUID,
        remarks: str,
    ) -> Loan:
        """
        Reject the loan at one level.

        The rejection lives on the approval record; the loan keeps its
        pending status and can no longer be approved.
        """
        if not (remarks or "").strip():
            raise ValidationFailure("A reason is required to reject a loan", errors=["remarks: required"])

        loan = await self.get_loan(loan_id)
        if loan.status != LoanStatus.PENDING:
            raise InvalidStateTransition(
                f"Can only reject loans in PENDING status, current: {loan.status.value}",
                entity="loans",
                current_status=loan.status.value,
                action="reject",
            )
        approval = await self.approvals.pending_approval(ApprovalTarget.loan(loan.id), level)
        if not approval:
            raise InvalidStateTransition(
                f"No pending level {level} approval for loan {loan.id}",
                entity="loans",
                current_status=loan.status.value,
                action="reject",
            )

        await self.approvals.record_decision(approval, actor_id, False, remarks)
        await self.session.commit()
        logger.info(f"Loan {loan.id} rejected at level {level}: {remarks}")
        return loan

    # =========================================================================
    # Money Movement
    # =========================================================================

    async def disburse_loan(
        self,
        loan_id: UUID,
        actor_id: UUID,
        disbursement_date: Optional[date] = None,
    ) -> Loan:
        """
        Pay out an approved loan.

        Transitions: APPROVED -> DISBURSED
        """
        loan = await self.get_loan(loan_id)
        paid_on = disbursement_date or self.clock.today()
        await apply_transition(
            self.session,
            loan,
            loan_machine,
            TransitionEvent.DISBURSE,
            disbursed_by=actor_id,
            disbursement_date=paid_on,
            start_date=paid_on,
        )
        await self.ledger.append(
            entry_type=LedgerEntryType.OUTFLOW,
            source=LedgerSource.LOAN_DISBURSEMENT,
            amount=loan.amount,
            transaction_date=paid_on,
            member_id=loan.member_id,
            reference=f"LOAN-{loan.id}",
            description=f"Loan disbursement ({loan.loan_type.value})",
            actor_id=actor_id,
        )
        await self.session.commit()
        return loan

    async def record_repayment(
        self,
        loan_id: UUID,
        data: RepaymentCreate | dict[str, Any],
        actor_id: UUID,
    ) -> LoanRepayment:
        """
        Record a repayment on a disbursed loan.

        When the outstanding balance reaches zero the loan moves
        DISBURSED -> REPAID.
        """
        data = validate_input(RepaymentCreate, data)
        loan = await self.get_loan(loan_id)
        if loan.status != LoanStatus.DISBURSED:
            raise InvalidStateTransition(
                f"Can only record repayments on loans in DISBURSED status, current: {loan.status.value}",
                entity="loans",
                current_status=loan.status.value,
                action="repay",
            )

        paid_on = data.payment_date or self.clock.today()
        repayment = LoanRepayment(
            loan_id=loan.id,
            amount=data.amount,
            payment_date=paid_on,
            payment_method=data.payment_method,
            reference=data.reference,
            notes=data.notes,
            recorded_by=actor_id,
        )
        loan.repayments.append(repayment)
        await self.ledger.append(
            entry_type=LedgerEntryType.INFLOW,
            source=LedgerSource.LOAN_REPAYMENT,
            amount=data.amount,
            transaction_date=paid_on,
            member_id=loan.member_id,
            reference=data.reference or f"LOAN-{loan.id}",
            description="Loan repayment",
            actor_id=actor_id,
        )

        if loan.is_fully_repaid:
            await apply_transition(self.session, loan, loan_machine, TransitionEvent.REPAY)

        await self.session.commit()
        logger.info(f"Repayment {repayment.amount} on loan {loan.id}, outstanding {loan.outstanding_balance}")
        return repayment

    async def mark_defaulted(self, loan_id: UUID, actor_id: UUID) -> Loan:
        """Transitions: DISBURSED -> DEFAULTED"""
        loan = await self.get_loan(loan_id)
        await apply_transition(
            self.session,
            loan,
            loan_machine,
            TransitionEvent.DEFAULT,
            defaulted_at=self.clock.now(),
        )
        await self.session.commit()
        logger.info(f"Loan {loan.id} marked defaulted by {actor_id}")
        return loan

    async def mark_overdue_loans_as_defaulted(self, as_of: Optional[date] = None) -> int:
        """Default every disbursed loan past its repayment period with money still owed."""
        as_of = as_of or self.clock.today()
        result = await self.session.execute(select(Loan).where(Loan.status == LoanStatus.DISBURSED))
        overdue = [loan for loan in result.scalars().all() if loan.is_overdue(as_of)]
        for loan in overdue:
            await apply_transition(
                self.session,
                loan,
                loan_machine,
                TransitionEvent.DEFAULT,
                defaulted_at=self.clock.now(),
            )
        await self.session.commit()
        logger.info(f"Defaulted {len(overdue)} overdue loans as of {as_of}")
        return len(overdue)
