"""
Core Enumerations for the MCDF Welfare Fund.

Every persisted status or category in the fund is one of these str enums so the
values round-trip cleanly through SQLAlchemy, pydantic and log output.
"""

from enum import Enum


# =============================================================================
# Member Enums
# =============================================================================


class MemberStatus(str, Enum):
    """Member enrollment lifecycle."""

    PRE_REGISTERED = "pre_registered"
    PENDING = "pending"  # Registration completed, awaiting approval
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"


class Gender(str, Enum):
    """Member gender."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class Relationship(str, Enum):
    """Dependent relationship to the member."""

    SPOUSE = "spouse"
    CHILD = "child"
    PARENT = "parent"
    SIBLING = "sibling"
    OTHER = "other"


# =============================================================================
# Contribution Enums
# =============================================================================


class PlanFrequency(str, Enum):
    """How often a contribution plan amount falls due."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class ContributionStatus(str, Enum):
    """Contribution payment status."""

    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """Accepted payment channels."""

    CASH = "cash"
    TRANSFER = "transfer"
    BANK_DEPOSIT = "bank_deposit"
    MOBILE_MONEY = "mobile_money"


# =============================================================================
# Loan Enums
# =============================================================================


class LoanType(str, Enum):
    """Loan disbursed as money or as an item."""

    CASH = "cash"
    ITEM = "item"


class RepaymentMode(str, Enum):
    """Loan repayment mode."""

    INSTALLMENTS = "installments"
    FULL = "full"


class LoanStatus(str, Enum):
    """Loan lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    DISBURSED = "disbursed"
    REPAID = "repaid"
    DEFAULTED = "defaulted"


# =============================================================================
# Health Claim Enums
# =============================================================================


class ClaimType(str, Enum):
    """Health claim categories."""

    OUTPATIENT = "outpatient"
    INPATIENT = "inpatient"
    SURGERY = "surgery"
    MATERNITY = "maternity"


class ClaimStatus(str, Enum):
    """Health claim lifecycle status."""

    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class DocumentType(str, Enum):
    """Supporting document categories for a health claim."""

    BILL = "bill"
    RECEIPT = "receipt"
    PRESCRIPTION = "prescription"
    MEDICAL_REPORT = "medical_report"
    OTHER = "other"


class ProviderType(str, Enum):
    """Healthcare provider categories."""

    HOSPITAL = "hospital"
    CLINIC = "clinic"
    PHARMACY = "pharmacy"
    LABORATORY = "laboratory"
    OTHER = "other"


# =============================================================================
# Cashout Enums
# =============================================================================


class CashoutStatus(str, Enum):
    """Cashout request lifecycle status."""

    PENDING = "pending"
    VERIFIED = "verified"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISBURSED = "disbursed"


# =============================================================================
# Approval Enums
# =============================================================================


class ApprovableKind(str, Enum):
    """Closed set of entities that go through multi-level sign-off."""

    LOAN = "loan"
    HEALTH_CLAIM = "health_claim"
    REGISTRATION = "registration"


class ApprovalStatus(str, Enum):
    """Decision recorded on a single approval level."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalLevel(int, Enum):
    """Approval hierarchy, lowest first."""

    LG_COORDINATOR = 1
    STATE_COORDINATOR = 2
    PROJECT_COORDINATOR = 3

    @property
    def display_name(self) -> str:
        return {
            ApprovalLevel.LG_COORDINATOR: "LG Coordinator",
            ApprovalLevel.STATE_COORDINATOR: "State Coordinator",
            ApprovalLevel.PROJECT_COORDINATOR: "Project Coordinator",
        }[self]


# =============================================================================
# Ledger Enums
# =============================================================================


class LedgerEntryType(str, Enum):
    """Direction of a fund movement."""

    INFLOW = "inflow"
    OUTFLOW = "outflow"


class LedgerSource(str, Enum):
    """What caused a fund movement."""

    CONTRIBUTION = "contribution"
    LOAN_REPAYMENT = "loan_repayment"
    DONATION = "donation"
    CLAIM_PAYMENT = "claim_payment"
    LOAN_DISBURSEMENT = "loan_disbursement"
    FINE_COLLECTION = "fine_collection"
    REFUND = "refund"
    HEALTH_CLAIM = "health_claim"
    CASHOUT = "cashout"
    CONTRIBUTION_ADJUSTMENT = "contribution_adjustment"


class BalancePeriod(str, Enum):
    """Bucket size for balance history."""

    DAY = "day"
    MONTH = "month"
    YEAR = "year"


# =============================================================================
# Program Enums
# =============================================================================


class EnrollmentStatus(str, Enum):
    """Program enrollment status."""

    ENROLLED = "enrolled"
    COMPLETED = "completed"
    WITHDRAWN = "withdrawn"
