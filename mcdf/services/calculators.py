"""
Fund Calculators.

Pure arithmetic for the derived money and date figures:
- Late contribution fines
- Health claim coverage and copay split
- Loan repayment period parsing and installments
- Ages and membership months

Nothing here touches the database.
"""

import re
from datetime import date
from decimal import Decimal
from typing import Optional

from dateutil.relativedelta import relativedelta

from mcdf.core.enums import ContributionStatus, RepaymentMode
from mcdf.utils.money import ZERO, to_money

DEFAULT_FINE_RATE = Decimal("0.5")
DEFAULT_REPAYMENT_MONTHS = 6

_MONTHS_PATTERN = re.compile(r"\d+")


def compute_fine(
    amount: Decimal,
    payment_date: Optional[date],
    period_end: date,
    status: ContributionStatus,
    rate: Decimal = DEFAULT_FINE_RATE,
) -> Decimal:
    """
    Fine for a late contribution.

    A contribution paid after its period ended is fined amount x rate unless
    it is already marked paid. Without a payment date there is nothing late.
    """
    if payment_date is None or status == ContributionStatus.PAID:
        return ZERO
    if payment_date > period_end:
        return to_money(amount * rate)
    return ZERO


def overdue_fine(amount: Decimal, rate: Decimal = DEFAULT_FINE_RATE) -> Decimal:
    """Fine applied when a pending contribution is swept to overdue."""
    return to_money(amount * rate)


def compute_coverage(billed_amount: Decimal, coverage_percent: Decimal) -> tuple[Decimal, Decimal]:
    """
    Split a bill into the fund's share and the member's copay.

    Returns:
        (covered_amount, copay_amount); the two always sum to billed_amount.
    """
    billed = to_money(billed_amount)
    covered = to_money(billed * Decimal(coverage_percent) / Decimal("100"))
    return covered, billed - covered


def parse_repayment_months(repayment_period: Optional[str], default: int = DEFAULT_REPAYMENT_MONTHS) -> int:
    """First integer in free text such as '6 months'; default when absent or zero."""
    if repayment_period:
        match = _MONTHS_PATTERN.search(repayment_period)
        if match and int(match.group()) > 0:
            return int(match.group())
    return default


def compute_installment(amount: Decimal, months: int, mode: RepaymentMode) -> Optional[Decimal]:
    """Monthly installment for installment loans; None for full repayment."""
    if mode != RepaymentMode.INSTALLMENTS:
        return None
    return to_money(Decimal(amount) / Decimal(months))


def age_on(birth_date: date, as_of: date) -> int:
    """Age in whole years."""
    return relativedelta(as_of, birth_date).years


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start to end (0 if end precedes start)."""
    if end < start:
        return 0
    delta = relativedelta(end, start)
    return delta.years * 12 + delta.months
