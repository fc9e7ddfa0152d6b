"""
Program and Program Enrollment Models.

Programs are vocational or welfare schemes with optional capacity and entry
rules. A member holds at most one enrollment row per program.
"""

from datetime import date, datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import JSON, Boolean, Date, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mcdf.core.enums import EnrollmentStatus
from mcdf.models.base import Base, TimeStampedModel, UUIDModel


class Program(Base, UUIDModel, TimeStampedModel):
    """Enrollable program."""

    __tablename__ = "programs"

    name: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    capacity: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
        comment="Maximum active enrollments; null means unlimited",
    )
    eligibility_rules: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
        comment="min_contributions, min_age, max_age",
    )
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class ProgramEnrollment(Base, UUIDModel, TimeStampedModel):
    """Membership of one member in one program."""

    __tablename__ = "program_enrollments"

    program_id: Mapped[UUID] = mapped_column(
        ForeignKey("programs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    member_id: Mapped[UUID] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[EnrollmentStatus] = mapped_column(
        Enum(EnrollmentStatus),
        default=EnrollmentStatus.ENROLLED,
        nullable=False,
    )
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    enrolled_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    withdrawn_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    withdrawal_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    certificate_issued: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    certificate_issued_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    certificate_issued_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("member_id", "program_id", name="uq_enrollment_member_program"),
    )
