"""
Pydantic Schemas for Members and Dependents.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from mcdf.core.enums import Gender, MemberStatus, Relationship


class MemberCreate(BaseModel):
    """Schema for registering a member."""

    first_name: str = Field(..., min_length=1, max_length=100, description="First name")
    last_name: str = Field(..., min_length=1, max_length=100, description="Last name")
    contribution_plan_id: UUID = Field(..., description="Plan the member contributes on")
    registration_date: Optional[date] = Field(None, description="Defaults to today")
    gender: Optional[Gender] = None
    date_of_birth: Optional[date] = None
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    bank_account_number: Optional[str] = Field(None, max_length=34)
    bank_account_name: Optional[str] = Field(None, max_length=200)
    bank_name: Optional[str] = Field(None, max_length=200)


class MemberBankDetails(BaseModel):
    """Bank details update."""

    bank_account_number: str = Field(..., min_length=1, max_length=34)
    bank_account_name: str = Field(..., min_length=1, max_length=200)
    bank_name: str = Field(..., min_length=1, max_length=200)


class MemberResponse(BaseModel):
    """Member summary."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    registration_number: str
    first_name: str
    last_name: str
    status: MemberStatus
    registration_date: date
    eligibility_start_date: Optional[date] = None
    is_complete: bool
    cashout_count: int


class DependentCreate(BaseModel):
    """Schema for adding a dependent."""

    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    relationship: Relationship = Field(..., description="Relationship to the member")
    date_of_birth: date
    gender: Optional[Gender] = None


class DependentUpdate(BaseModel):
    """Partial dependent update."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    relationship: Optional[Relationship] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
