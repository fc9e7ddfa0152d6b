"""
Services Layer for the Welfare Fund.

Exports the workflow services; each takes an AsyncSession and, optionally,
settings and a clock.
"""

from mcdf.services.approval_service import ApprovalService, BulkDecisionResult
from mcdf.services.cashout_service import CashoutService
from mcdf.services.contribution_service import ContributionService
from mcdf.services.dependent_service import DependentService
from mcdf.services.eligibility import EligibilityService
from mcdf.services.health_claim_service import HealthClaimService
from mcdf.services.ledger_service import LedgerService
from mcdf.services.loan_service import LoanService
from mcdf.services.member_service import MemberService
from mcdf.services.numbering import NumberingService
from mcdf.services.program_service import ProgramService

__all__ = [
    "ApprovalService",
    "BulkDecisionResult",
    "CashoutService",
    "ContributionService",
    "DependentService",
    "EligibilityService",
    "HealthClaimService",
    "LedgerService",
    "LoanService",
    "MemberService",
    "NumberingService",
    "ProgramService",
]
