"""
Approval Service.

Multi-level sign-off (LG Coordinator, State Coordinator, Project Coordinator)
for loans, health claims and registrations. Levels may be decided in any
order; only the callers decide what a full or partial chain means.
"""

from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mcdf.core.config import FundSettings, get_settings
from mcdf.core.enums import ApprovableKind, ApprovalLevel, ApprovalStatus
from mcdf.models.approval import Approval, ApprovalTarget
from mcdf.services.state_machine import TransitionEvent, apply_transition, approval_machine
from mcdf.utils.clock import Clock, SystemClock
from mcdf.utils.errors import InvalidStateTransition, NotFoundError, ValidationFailure
from mcdf.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class BulkDecisionResult:
    """Outcome of a bulk approve/reject."""

    succeeded: list[UUID] = field(default_factory=list)
    failed: dict[UUID, str] = field(default_factory=dict)


class ApprovalService:
    """Service for approval chains."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[FundSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()

    @property
    def final_level(self) -> int:
        return self.settings.APPROVAL_LEVELS

    def _for_target(self, target: ApprovalTarget):  # type: ignore[no-untyped-def]
        return select(Approval).where(
            Approval.entity_kind == target.kind,
            getattr(Approval, target.column) == target.entity_id,
        )

    def _validate_level(self, level: int) -> None:
        if not 1 <= level <= self.final_level:
            raise ValidationFailure(
                f"Approval level must be between 1 and {self.final_level}",
                errors=[f"level: {level}"],
            )

    # =========================================================================
    # Chain Management
    # =========================================================================

    async def create_chain(self, target: ApprovalTarget) -> list[Approval]:
        """Stage a pending approval for every level not yet present; caller commits."""
        existing = {a.level for a in await self.history(target)}
        created = []
        for level in range(1, self.final_level + 1):
            if level in existing:
                continue
            approval = Approval(
                entity_kind=target.kind,
                level=level,
                role=ApprovalLevel(level).display_name,
                status=ApprovalStatus.PENDING,
                **{target.column: target.entity_id},
            )
            self.session.add(approval)
            created.append(approval)
        await self.session.flush()
        logger.info(f"Approval chain for {target.kind.value} {target.entity_id}: {len(created)} levels")
        return created

    async def get_approval(self, approval_id: UUID) -> Approval:
        approval = await self.session.get(Approval, approval_id)
        if not approval:
            raise NotFoundError("Approval", approval_id)
        return approval

    async def history(self, target: ApprovalTarget) -> list[Approval]:
        result = await self.session.execute(self._for_target(target).order_by(Approval.level))
        return list(result.scalars().all())

    async def pending_approval(self, target: ApprovalTarget, level: int) -> Optional[Approval]:
        self._validate_level(level)
        result = await self.session.execute(
            self._for_target(target).where(
                Approval.level == level,
                Approval.status == ApprovalStatus.PENDING,
            )
        )
        return result.scalar_one_or_none()

    async def has_all_approvals(self, target: ApprovalTarget) -> bool:
        approved = [a for a in await self.history(target) if a.status == ApprovalStatus.APPROVED]
        return len(approved) >= self.final_level

    async def is_rejected(self, target: ApprovalTarget) -> bool:
        return any(a.status == ApprovalStatus.REJECTED for a in await self.history(target))

    async def next_pending_level(self, target: ApprovalTarget) -> Optional[int]:
        """Level after the highest approved one; None once the chain is complete."""
        result = await self.session.execute(
            select(func.max(Approval.level)).where(
                Approval.entity_kind == target.kind,
                getattr(Approval, target.column) == target.entity_id,
                Approval.status == ApprovalStatus.APPROVED,
            )
        )
        highest = result.scalar_one_or_none() or 0
        return highest + 1 if highest < self.final_level else None

    async def pending_for_level(
        self,
        level: int,
        kind: Optional[ApprovableKind] = None,
    ) -> list[Approval]:
        """Work queue for the approvers of one level."""
        self._validate_level(level)
        query = select(Approval).where(
            Approval.level == level,
            Approval.status == ApprovalStatus.PENDING,
        )
        if kind:
            query = query.where(Approval.entity_kind == kind)
        result = await self.session.execute(query.order_by(Approval.created_at))
        return list(result.scalars().all())

    # =========================================================================
    # Decisions
    # =========================================================================

    async def record_decision(
        self,
        approval: Approval,
        actor_id: UUID,
        approve: bool,
        remarks: Optional[str] = None,
    ) -> Approval:
        """
        Stage one level's decision; caller commits.

        Transitions: PENDING -> APPROVED | REJECTED
        """
        await apply_transition(
            self.session,
            approval,
            approval_machine,
            TransitionEvent.APPROVE if approve else TransitionEvent.REJECT,
            approver_id=actor_id,
            remarks=remarks,
            decided_at=self.clock.now(),
        )
        logger.info(
            f"Level {approval.level} ({approval.role}) {approval.status.value} "
            f"{approval.entity_kind.value} by {actor_id}"
        )
        return approval

    async def decide(
        self,
        approval_id: UUID,
        actor_id: UUID,
        approve: bool,
        remarks: Optional[str] = None,
    ) -> Approval:
        """Approve or reject one pending record and commit."""
        approval = await self.get_approval(approval_id)
        await self.record_decision(approval, actor_id, approve, remarks)
        await self.session.commit()
        return approval

    async def approve(self, approval_id: UUID, actor_id: UUID, remarks: Optional[str] = None) -> Approval:
        return await self.decide(approval_id, actor_id, True, remarks)

    async def reject(self, approval_id: UUID, actor_id: UUID, remarks: Optional[str] = None) -> Approval:
        return await self.decide(approval_id, actor_id, False, remarks)

    async def _bulk(
        self,
        approval_ids: list[UUID],
        actor_id: UUID,
        approve: bool,
        remarks: Optional[str],
    ) -> BulkDecisionResult:
        outcome = BulkDecisionResult()
        for approval_id in approval_ids:
            try:
                approval = await self.get_approval(approval_id)
                await self.record_decision(approval, actor_id, approve, remarks)
            except (NotFoundError, InvalidStateTransition) as e:
                outcome.failed[approval_id] = e.detail
                continue
            outcome.succeeded.append(approval_id)
        await self.session.commit()
        return outcome

    async def bulk_approve(
        self,
        approval_ids: list[UUID],
        actor_id: UUID,
        remarks: Optional[str] = None,
    ) -> BulkDecisionResult:
        """Approve many pending records; failures are reported, not raised."""
        return await self._bulk(approval_ids, actor_id, True, remarks)

    async def bulk_reject(
        self,
        approval_ids: list[UUID],
        actor_id: UUID,
        remarks: Optional[str] = None,
    ) -> BulkDecisionResult:
        """Reject many pending records; failures are reported, not raised."""
        return await self._bulk(approval_ids, actor_id, False, remarks)
