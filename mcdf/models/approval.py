"""
Approval Model.

An approval belongs to exactly one approvable entity. The kind is a closed
enum and each kind has its own typed foreign key; a check constraint keeps
the kind and the populated key in agreement.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mcdf.core.enums import ApprovableKind, ApprovalLevel, ApprovalStatus
from mcdf.models.base import Base, TimeStampedModel, UUIDModel

# Foreign-key attribute that carries the reference for each kind
TARGET_COLUMNS: dict[ApprovableKind, str] = {
    ApprovableKind.LOAN: "loan_id",
    ApprovableKind.HEALTH_CLAIM: "health_claim_id",
    ApprovableKind.REGISTRATION: "member_id",
}


@dataclass(frozen=True)
class ApprovalTarget:
    """Strongly typed reference to something that can be approved."""

    kind: ApprovableKind
    entity_id: UUID

    @classmethod
    def loan(cls, loan_id: UUID) -> "ApprovalTarget":
        return cls(ApprovableKind.LOAN, loan_id)

    @classmethod
    def health_claim(cls, claim_id: UUID) -> "ApprovalTarget":
        return cls(ApprovableKind.HEALTH_CLAIM, claim_id)

    @classmethod
    def registration(cls, member_id: UUID) -> "ApprovalTarget":
        return cls(ApprovableKind.REGISTRATION, member_id)

    @property
    def column(self) -> str:
        return TARGET_COLUMNS[self.kind]


def _target_check() -> str:
    clauses = []
    for kind, column in TARGET_COLUMNS.items():
        others = [c for c in TARGET_COLUMNS.values() if c != column]
        clauses.append(
            f"(entity_kind = '{kind.name}' AND {column} IS NOT NULL AND "
            + " AND ".join(f"{o} IS NULL" for o in others)
            + ")"
        )
    return " OR ".join(clauses)


class Approval(Base, UUIDModel, TimeStampedModel):
    """One approver's decision at one level for one entity."""

    __tablename__ = "approvals"

    entity_kind: Mapped[ApprovableKind] = mapped_column(Enum(ApprovableKind), nullable=False)
    loan_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("loans.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    health_claim_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("health_claims.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    member_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    level: Mapped[int] = mapped_column(Integer, nullable=False, comment="1=LG, 2=State, 3=Project")
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus),
        default=ApprovalStatus.PENDING,
        nullable=False,
    )
    approver_id: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(_target_check(), name="ck_approvals_single_target"),
        CheckConstraint("level BETWEEN 1 AND 3", name="ck_approvals_level"),
        UniqueConstraint("loan_id", "level", name="uq_approvals_loan_level"),
        UniqueConstraint("health_claim_id", "level", name="uq_approvals_claim_level"),
        UniqueConstraint("member_id", "level", name="uq_approvals_member_level"),
    )

    @property
    def target(self) -> ApprovalTarget:
        return ApprovalTarget(self.entity_kind, getattr(self, TARGET_COLUMNS[self.entity_kind]))

    @property
    def level_name(self) -> str:
        return ApprovalLevel(self.level).display_name
