"""
Fund ORM models.

Importing this package registers every table on Base.metadata.
"""

from mcdf.models.base import Base, TimeStampedModel, UUIDModel
from mcdf.models.contribution import Contribution, ContributionPlan
from mcdf.models.member import Dependent, Member
from mcdf.models.loan import Loan, LoanRepayment
from mcdf.models.health_claim import HealthClaim, HealthClaimDocument, HealthcareProvider
from mcdf.models.cashout import CashoutRequest
from mcdf.models.approval import Approval, ApprovalTarget
from mcdf.models.ledger import FundLedgerEntry
from mcdf.models.program import Program, ProgramEnrollment
from mcdf.models.sequence import NumberSequence

__all__ = [
    "Base",
    "TimeStampedModel",
    "UUIDModel",
    "Member",
    "Dependent",
    "ContributionPlan",
    "Contribution",
    "Loan",
    "LoanRepayment",
    "HealthcareProvider",
    "HealthClaim",
    "HealthClaimDocument",
    "CashoutRequest",
    "Approval",
    "ApprovalTarget",
    "FundLedgerEntry",
    "Program",
    "ProgramEnrollment",
    "NumberSequence",
]
