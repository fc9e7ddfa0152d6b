"""
Pydantic Schemas for Programs.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from mcdf.schemas.eligibility import EligibilityResult


class ProgramRules(BaseModel):
    """Entry rules stored on a program."""

    min_contributions: Optional[int] = Field(None, ge=0)
    min_age: Optional[int] = Field(None, ge=0)
    max_age: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def ages_in_order(self):  # type: ignore[no-untyped-def]
        """Minimum age may not exceed maximum age."""
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValueError("min_age must not exceed max_age")
        return self


class ProgramCreate(BaseModel):
    """Schema for creating a program."""

    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    capacity: Optional[int] = Field(None, ge=1, description="None means unlimited")
    eligibility_rules: ProgramRules = Field(default_factory=ProgramRules)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = True


class ProgramCapacity(BaseModel):
    """Derived enrollment figures for a program."""

    enrolled_count: int
    capacity: Optional[int]
    available_slots: Optional[int] = Field(None, description="None when unlimited")
    is_at_capacity: bool


class EnrollmentEligibilityResult(EligibilityResult):
    """Outcome of a program enrollment check."""

    enrolled_count: int = 0
    available_slots: Optional[int] = None
