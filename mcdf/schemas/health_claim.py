"""
Pydantic Schemas for Health Claims, Documents and Providers.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from mcdf.core.enums import ClaimType, DocumentType, ProviderType


class ProviderCreate(BaseModel):
    """Schema for registering a healthcare provider."""

    name: str = Field(..., min_length=1, max_length=200)
    provider_type: ProviderType = ProviderType.HOSPITAL
    address: Optional[str] = None
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)


class HealthClaimCreate(BaseModel):
    """Schema for submitting a health claim."""

    member_id: UUID
    provider_id: UUID
    claim_type: ClaimType
    billed_amount: Decimal = Field(..., ge=0, decimal_places=2)
    coverage_percent: Optional[Decimal] = Field(
        None,
        ge=0,
        le=100,
        description="Defaults to the fund's standard coverage",
    )
    diagnosis: Optional[str] = None
    treatment_date: Optional[date] = None


class HealthClaimUpdate(BaseModel):
    """Partial update while a claim is still submitted."""

    billed_amount: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    coverage_percent: Optional[Decimal] = Field(None, ge=0, le=100)
    diagnosis: Optional[str] = None
    treatment_date: Optional[date] = None


class ClaimDocumentCreate(BaseModel):
    """Metadata for a supporting document already placed in storage."""

    document_type: DocumentType
    file_path: str = Field(..., min_length=1, max_length=500)
    file_name: str = Field(..., min_length=1, max_length=255)
    file_size: int = Field(..., ge=0, description="Bytes")
    mime_type: str = Field(..., min_length=1, max_length=100)
