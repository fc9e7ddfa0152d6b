"""
Workflow State Machines.

Provides:
- Legal status transitions for every workflow entity
- Transition validation with actionable error messages
- Compare-and-swap status updates against the database

State Diagrams:
    Member:       PRE_REGISTERED -> PENDING -> ACTIVE <-> SUSPENDED
                  INACTIVE -> ACTIVE; any non-terminated -> TERMINATED
    Contribution: PENDING -> PAID | OVERDUE | CANCELLED
                  OVERDUE -> PAID | CANCELLED
    Loan:         PENDING -> APPROVED -> DISBURSED -> REPAID | DEFAULTED
    HealthClaim:  SUBMITTED -> APPROVED | REJECTED; APPROVED -> PAID
    Cashout:      PENDING -> VERIFIED -> APPROVED -> DISBURSED
                  PENDING | VERIFIED -> REJECTED
    Enrollment:   ENROLLED -> COMPLETED | WITHDRAWN; WITHDRAWN -> ENROLLED
    Approval:     PENDING -> APPROVED | REJECTED
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from mcdf.core.enums import (
    ApprovalStatus,
    CashoutStatus,
    ClaimStatus,
    ContributionStatus,
    EnrollmentStatus,
    LoanStatus,
    MemberStatus,
)
from mcdf.utils.errors import InvalidStateTransition
from mcdf.utils.logging import get_logger

logger = get_logger(__name__)


class TransitionEvent(str, Enum):
    """Actions that move an entity between statuses."""

    COMPLETE_REGISTRATION = "complete_registration"
    SUBMIT = "submit"
    VERIFY = "verify"
    APPROVE = "approve"
    REJECT = "reject"
    DISBURSE = "disburse"
    PAY = "pay"
    REPAY = "repay"
    DEFAULT = "default"
    MARK_OVERDUE = "mark_overdue"
    CANCEL = "cancel"
    SUSPEND = "suspend"
    ACTIVATE = "activate"
    TERMINATE = "terminate"
    COMPLETE = "complete"
    WITHDRAW = "withdraw"
    REENROLL = "reenroll"


@dataclass(frozen=True)
class Transition:
    """Represents a valid state transition."""

    from_status: Enum
    to_status: Enum
    event: TransitionEvent
    requires_reason: bool = False


@dataclass
class TransitionResult:
    """Result of a transition attempt."""

    success: bool
    from_status: Enum
    to_status: Optional[Enum] = None
    error: Optional[str] = None
    transition: Optional[Transition] = None


# =============================================================================
# Valid Transitions Definition
# =============================================================================


def _edges(event: TransitionEvent, sources: list[Enum], target: Enum, **kw: Any) -> list[Transition]:
    return [Transition(from_status=s, to_status=target, event=event, **kw) for s in sources]


MEMBER_TRANSITIONS: list[Transition] = [
    Transition(MemberStatus.PRE_REGISTERED, MemberStatus.PENDING, TransitionEvent.COMPLETE_REGISTRATION),
    Transition(MemberStatus.PENDING, MemberStatus.ACTIVE, TransitionEvent.APPROVE),
    Transition(MemberStatus.ACTIVE, MemberStatus.SUSPENDED, TransitionEvent.SUSPEND),
    *_edges(
        TransitionEvent.ACTIVATE,
        [MemberStatus.SUSPENDED, MemberStatus.INACTIVE],
        MemberStatus.ACTIVE,
    ),
    *_edges(
        TransitionEvent.TERMINATE,
        [
            MemberStatus.PRE_REGISTERED,
            MemberStatus.PENDING,
            MemberStatus.ACTIVE,
            MemberStatus.INACTIVE,
            MemberStatus.SUSPENDED,
        ],
        MemberStatus.TERMINATED,
    ),
]

CONTRIBUTION_TRANSITIONS: list[Transition] = [
    *_edges(
        TransitionEvent.PAY,
        [ContributionStatus.PENDING, ContributionStatus.OVERDUE],
        ContributionStatus.PAID,
    ),
    Transition(ContributionStatus.PENDING, ContributionStatus.OVERDUE, TransitionEvent.MARK_OVERDUE),
    *_edges(
        TransitionEvent.CANCEL,
        [ContributionStatus.PENDING, ContributionStatus.OVERDUE],
        ContributionStatus.CANCELLED,
    ),
]

LOAN_TRANSITIONS: list[Transition] = [
    Transition(LoanStatus.PENDING, LoanStatus.APPROVED, TransitionEvent.APPROVE),
    Transition(LoanStatus.APPROVED, LoanStatus.DISBURSED, TransitionEvent.DISBURSE),
    Transition(LoanStatus.DISBURSED, LoanStatus.REPAID, TransitionEvent.REPAY),
    Transition(LoanStatus.DISBURSED, LoanStatus.DEFAULTED, TransitionEvent.DEFAULT),
]

CLAIM_TRANSITIONS: list[Transition] = [
    Transition(ClaimStatus.SUBMITTED, ClaimStatus.APPROVED, TransitionEvent.APPROVE),
    Transition(ClaimStatus.SUBMITTED, ClaimStatus.REJECTED, TransitionEvent.REJECT),
    Transition(ClaimStatus.APPROVED, ClaimStatus.PAID, TransitionEvent.PAY),
]

CASHOUT_TRANSITIONS: list[Transition] = [
    Transition(CashoutStatus.PENDING, CashoutStatus.VERIFIED, TransitionEvent.VERIFY),
    Transition(CashoutStatus.VERIFIED, CashoutStatus.APPROVED, TransitionEvent.APPROVE),
    Transition(CashoutStatus.APPROVED, CashoutStatus.DISBURSED, TransitionEvent.DISBURSE),
    *_edges(
        TransitionEvent.REJECT,
        [CashoutStatus.PENDING, CashoutStatus.VERIFIED],
        CashoutStatus.REJECTED,
        requires_reason=True,
    ),
]

ENROLLMENT_TRANSITIONS: list[Transition] = [
    Transition(EnrollmentStatus.ENROLLED, EnrollmentStatus.COMPLETED, TransitionEvent.COMPLETE),
    Transition(EnrollmentStatus.ENROLLED, EnrollmentStatus.WITHDRAWN, TransitionEvent.WITHDRAW),
    Transition(EnrollmentStatus.WITHDRAWN, EnrollmentStatus.ENROLLED, TransitionEvent.REENROLL),
]

APPROVAL_TRANSITIONS: list[Transition] = [
    Transition(ApprovalStatus.PENDING, ApprovalStatus.APPROVED, TransitionEvent.APPROVE),
    Transition(ApprovalStatus.PENDING, ApprovalStatus.REJECTED, TransitionEvent.REJECT),
]


# =============================================================================
# State Machine
# =============================================================================


class WorkflowStateMachine:
    """
    State machine for one entity's status transitions.

    Manages valid status transitions and validates transition requests.
    """

    def __init__(self, entity: str, transitions: list[Transition]):
        """
        Initialize state machine with transition map.

        Args:
            entity: Human readable plural entity name used in messages
            transitions: Legal edges
        """
        self.entity = entity
        self._transitions: dict[tuple[Enum, TransitionEvent], Transition] = {}
        self._from_status_map: dict[Enum, list[Transition]] = {}
        self._event_sources: dict[TransitionEvent, list[Enum]] = {}

        for transition in transitions:
            self._transitions[(transition.from_status, transition.event)] = transition
            self._from_status_map.setdefault(transition.from_status, []).append(transition)
            self._event_sources.setdefault(transition.event, []).append(transition.from_status)

    def get_valid_transitions(self, status: Enum) -> list[Transition]:
        """Get all valid transitions from a given status."""
        return self._from_status_map.get(status, [])

    def get_valid_events(self, status: Enum) -> list[TransitionEvent]:
        """Get all valid events for a given status."""
        return [t.event for t in self.get_valid_transitions(status)]

    def get_next_statuses(self, status: Enum) -> list[Enum]:
        """Get all possible next statuses from current status."""
        return [t.to_status for t in self.get_valid_transitions(status)]

    def can_transition(self, from_status: Enum, to_status: Enum) -> bool:
        """Check if transition from one status to another is valid."""
        return to_status in self.get_next_statuses(from_status)

    def get_transition(self, from_status: Enum, event: TransitionEvent) -> Optional[Transition]:
        """Get the transition for a status and event, if any."""
        return self._transitions.get((from_status, event))

    def is_terminal(self, status: Enum) -> bool:
        """Check if status has no outgoing transitions."""
        return not self._from_status_map.get(status)

    def validate_transition(
        self,
        current_status: Enum,
        event: TransitionEvent,
        reason: Optional[str] = None,
    ) -> TransitionResult:
        """
        Validate a transition attempt.

        Returns:
            TransitionResult indicating success/failure
        """
        transition = self.get_transition(current_status, event)

        if not transition:
            allowed = self._event_sources.get(event)
            if allowed:
                names = " or ".join(s.name for s in allowed)
                error = (
                    f"Can only {event.value.replace('_', ' ')} {self.entity} in {names} status, "
                    f"current: {current_status.value}"
                )
            else:
                error = f"Cannot {event.value.replace('_', ' ')} {self.entity}"
            return TransitionResult(success=False, from_status=current_status, error=error)

        if transition.requires_reason and not (reason or "").strip():
            return TransitionResult(
                success=False,
                from_status=current_status,
                error="Reason is required for this transition",
            )

        return TransitionResult(
            success=True,
            from_status=current_status,
            to_status=transition.to_status,
            transition=transition,
        )

    def require(
        self,
        current_status: Enum,
        event: TransitionEvent,
        reason: Optional[str] = None,
    ) -> Transition:
        """Return the transition or raise InvalidStateTransition."""
        result = self.validate_transition(current_status, event, reason)
        if not result.success or result.transition is None:
            logger.warning(f"Rejected {event.value} on {self.entity}: {result.error}")
            raise InvalidStateTransition(
                result.error or "Invalid state transition",
                entity=self.entity,
                current_status=current_status.value,
                action=event.value,
            )
        return result.transition


member_machine = WorkflowStateMachine("members", MEMBER_TRANSITIONS)
contribution_machine = WorkflowStateMachine("contributions", CONTRIBUTION_TRANSITIONS)
loan_machine = WorkflowStateMachine("loans", LOAN_TRANSITIONS)
claim_machine = WorkflowStateMachine("health claims", CLAIM_TRANSITIONS)
cashout_machine = WorkflowStateMachine("cashout requests", CASHOUT_TRANSITIONS)
enrollment_machine = WorkflowStateMachine("enrollments", ENROLLMENT_TRANSITIONS)
approval_machine = WorkflowStateMachine("approvals", APPROVAL_TRANSITIONS)


# =============================================================================
# Guarded Updates
# =============================================================================


async def apply_transition(
    session: AsyncSession,
    entity: Any,
    machine: WorkflowStateMachine,
    event: TransitionEvent,
    reason: Optional[str] = None,
    **values: Any,
) -> Any:
    """
    Move an entity to its next status with a compare-and-swap UPDATE.

    The row only changes if its status still equals the status that was
    validated, so two actors racing on the same entity cannot both win.
    Nothing is written when validation fails. The caller commits.

    Args:
        session: Active session
        entity: Mapped instance with id and status attributes
        machine: State machine for the entity's type
        event: Action being performed
        reason: Reason text for transitions that demand one
        **values: Extra columns to stamp together with the status

    Raises:
        InvalidStateTransition: Illegal from the current status, or the row
            changed underneath us.
    """
    current = entity.status
    transition = machine.require(current, event, reason)
    model = type(entity)

    result = await session.execute(
        update(model)
        .where(model.id == entity.id, model.status == current)
        .values(status=transition.to_status, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.refresh(entity)
        logger.warning(
            f"Concurrent change on {machine.entity} {entity.id}: "
            f"expected {current.value}, found {entity.status.value}"
        )
        raise InvalidStateTransition(
            f"{machine.entity.capitalize()} {entity.id} is no longer {current.value}, "
            f"current: {entity.status.value}",
            entity=machine.entity,
            current_status=entity.status.value,
            action=event.value,
        )

    await session.refresh(entity)
    logger.info(
        f"{machine.entity} {entity.id} transitioned: "
        f"{current.value} -> {transition.to_status.value} (event: {event.value})"
    )
    return entity
