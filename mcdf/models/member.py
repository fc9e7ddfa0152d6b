"""
Member and Dependent Models.

A member joins on a contribution plan, moves through the registration
lifecycle and earns health cover once the waiting period and contribution
history allow it.
"""

from datetime import date
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from sqlalchemy import Boolean, Date, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mcdf.core.enums import Gender, MemberStatus, Relationship
from mcdf.models.base import Base, TimeStampedModel, UUIDModel

if TYPE_CHECKING:
    from mcdf.models.contribution import ContributionPlan


class Member(Base, UUIDModel, TimeStampedModel):
    """
    Fund member.

    eligibility_start_date is persisted by the eligibility service; the
    health-eligible flag derived from it is never stored.
    """

    __tablename__ = "members"

    registration_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        comment="Sequential number, MCDF/NNNNN",
    )

    # Personal Information
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    gender: Mapped[Optional[Gender]] = mapped_column(Enum(Gender), nullable=True)
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Enrollment
    contribution_plan_id: Mapped[UUID] = mapped_column(
        ForeignKey("contribution_plans.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    status: Mapped[MemberStatus] = mapped_column(
        Enum(MemberStatus),
        default=MemberStatus.PRE_REGISTERED,
        nullable=False,
        index=True,
    )
    registration_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    eligibility_start_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        comment="Date health cover starts; null while not eligible",
    )
    registered_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    approved_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)

    # Bank details used for cashouts
    bank_account_number: Mapped[Optional[str]] = mapped_column(String(34), nullable=True)
    bank_account_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    bank_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Cashout history
    cashout_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_cashout_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    contribution_plan: Mapped["ContributionPlan"] = relationship(lazy="selectin")
    dependents: Mapped[list["Dependent"]] = relationship(
        back_populates="member",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def has_bank_details(self) -> bool:
        return bool(self.bank_account_number and self.bank_account_name and self.bank_name)

    def is_eligible_for_health(self, as_of: date) -> bool:
        """Health cover is live once the start date is set and reached."""
        return self.eligibility_start_date is not None and self.eligibility_start_date <= as_of

    def __repr__(self) -> str:
        return f"<Member {self.registration_number} status={self.status.value}>"


class Dependent(Base, UUIDModel, TimeStampedModel):
    """Person covered through a member."""

    __tablename__ = "dependents"

    member_id: Mapped[UUID] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    relationship_type: Mapped[Relationship] = mapped_column(
        "relationship",
        Enum(Relationship),
        nullable=False,
    )
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[Optional[Gender]] = mapped_column(Enum(Gender), nullable=True)
    eligible: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Recomputed on every save",
    )

    member: Mapped["Member"] = relationship(back_populates="dependents")
