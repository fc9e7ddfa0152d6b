"""
Healthcare Provider, Health Claim and Claim Document Models.

covered_amount and copay_amount are stored because they are the figures the
fund committed to at submission; HealthClaimService recalculates them whenever
billed_amount or coverage_percent change.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mcdf.core.enums import ClaimStatus, ClaimType, DocumentType, ProviderType
from mcdf.models.base import Base, TimeStampedModel, UUIDModel


class HealthcareProvider(Base, UUIDModel, TimeStampedModel):
    """Hospital, clinic or pharmacy that bills claims."""

    __tablename__ = "healthcare_providers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    provider_type: Mapped[ProviderType] = mapped_column(
        Enum(ProviderType),
        default=ProviderType.HOSPITAL,
        nullable=False,
    )
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class HealthClaim(Base, UUIDModel, TimeStampedModel):
    """Member health claim."""

    __tablename__ = "health_claims"

    claim_number: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        comment="CLM{YYYY}{MM}{NNNN}",
    )
    member_id: Mapped[UUID] = mapped_column(
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    provider_id: Mapped[UUID] = mapped_column(
        ForeignKey("healthcare_providers.id", ondelete="RESTRICT"),
        nullable=False,
    )
    claim_type: Mapped[ClaimType] = mapped_column(Enum(ClaimType), nullable=False)
    diagnosis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    treatment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    billed_amount: Mapped[Decimal] = mapped_column(nullable=False)
    coverage_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    covered_amount: Mapped[Decimal] = mapped_column(nullable=False)
    copay_amount: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[ClaimStatus] = mapped_column(
        Enum(ClaimStatus),
        default=ClaimStatus.SUBMITTED,
        nullable=False,
        index=True,
    )
    submitted_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    approved_by: Mapped[Optional[UUID]] = mapped_column(
        nullable=True,
        comment="Actor who approved or rejected",
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    paid_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)
    paid_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    documents: Mapped[list["HealthClaimDocument"]] = relationship(
        back_populates="claim",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<HealthClaim {self.claim_number} {self.status.value}>"


class HealthClaimDocument(Base, UUIDModel, TimeStampedModel):
    """Metadata for a supporting document; the bytes live in external storage."""

    __tablename__ = "health_claim_documents"

    claim_id: Mapped[UUID] = mapped_column(
        ForeignKey("health_claims.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    document_type: Mapped[DocumentType] = mapped_column(Enum(DocumentType), nullable=False)
    file_path: Mapped[str] = mapped_column(String(500), nullable=False)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False, comment="Bytes")
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    uploaded_by: Mapped[Optional[UUID]] = mapped_column(nullable=True)

    claim: Mapped["HealthClaim"] = relationship(back_populates="documents")
