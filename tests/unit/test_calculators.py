"""
Fund Calculator Tests.

Tests for:
- Late contribution fines
- Claim coverage and copay split
- Repayment period parsing and installments
- Age and membership month arithmetic
"""

from datetime import date
from decimal import Decimal

import pytest

from mcdf.core.enums import ContributionStatus, RepaymentMode
from mcdf.services.calculators import (
    age_on,
    compute_coverage,
    compute_fine,
    compute_installment,
    months_between,
    overdue_fine,
    parse_repayment_months,
)


@pytest.mark.unit
class TestComputeFine:
    """Tests for late contribution fines"""

    def test_late_pending_contribution_fined_half(self):
        """A pending contribution paid after its period is fined 50%"""
        fine = compute_fine(
            Decimal("5000"),
            date(2024, 3, 10),
            date(2024, 2, 29),
            ContributionStatus.PENDING,
        )
        assert fine == Decimal("2500.00")

    def test_on_time_payment_not_fined(self):
        fine = compute_fine(
            Decimal("5000"),
            date(2024, 2, 29),
            date(2024, 2, 29),
            ContributionStatus.PENDING,
        )
        assert fine == Decimal("0.00")

    def test_paid_status_never_fined(self):
        """Status paid short-circuits the late check"""
        fine = compute_fine(
            Decimal("5000"),
            date(2024, 3, 10),
            date(2024, 2, 29),
            ContributionStatus.PAID,
        )
        assert fine == Decimal("0.00")

    def test_no_payment_date_not_fined(self):
        fine = compute_fine(Decimal("5000"), None, date(2024, 2, 29), ContributionStatus.OVERDUE)
        assert fine == Decimal("0.00")

    def test_custom_rate(self):
        fine = compute_fine(
            Decimal("1000"),
            date(2024, 3, 1),
            date(2024, 2, 29),
            ContributionStatus.OVERDUE,
            rate=Decimal("0.1"),
        )
        assert fine == Decimal("100.00")

    @pytest.mark.parametrize(
        "amount",
        [Decimal("0.01"), Decimal("333.33"), Decimal("5000"), Decimal("999999.99")],
    )
    def test_fine_bounded_by_amount(self, amount):
        """Fine is zero or amount x rate, never more"""
        fine = compute_fine(amount, date(2024, 4, 1), date(2024, 3, 31), ContributionStatus.PENDING)
        assert Decimal("0") <= fine <= amount

    def test_overdue_fine(self):
        assert overdue_fine(Decimal("5000")) == Decimal("2500.00")


@pytest.mark.unit
class TestComputeCoverage:
    """Tests for the coverage and copay split"""

    def test_ninety_percent_coverage(self):
        covered, copay = compute_coverage(Decimal("20000"), Decimal("90"))
        assert covered == Decimal("18000.00")
        assert copay == Decimal("2000.00")

    def test_full_coverage_has_no_copay(self):
        covered, copay = compute_coverage(Decimal("1234.56"), Decimal("100"))
        assert covered == Decimal("1234.56")
        assert copay == Decimal("0.00")

    def test_zero_coverage(self):
        covered, copay = compute_coverage(Decimal("800"), Decimal("0"))
        assert covered == Decimal("0.00")
        assert copay == Decimal("800.00")

    @pytest.mark.parametrize(
        "billed,pct",
        [
            (Decimal("100.01"), Decimal("33.33")),
            (Decimal("20000"), Decimal("90")),
            (Decimal("0.03"), Decimal("50")),
            (Decimal("99999.99"), Decimal("12.5")),
        ],
    )
    def test_covered_plus_copay_equals_billed(self, billed, pct):
        covered, copay = compute_coverage(billed, pct)
        assert covered + copay == billed.quantize(Decimal("0.01"))
        assert covered >= 0 and copay >= 0


@pytest.mark.unit
class TestRepaymentPeriod:
    """Tests for repayment period parsing and installments"""

    def test_parse_leading_integer(self):
        assert parse_repayment_months("12 months") == 12

    def test_parse_embedded_integer(self):
        assert parse_repayment_months("over 3 months") == 3

    def test_parse_defaults_to_six(self):
        assert parse_repayment_months("soon") == 6
        assert parse_repayment_months(None) == 6
        assert parse_repayment_months("0 months") == 6

    def test_installment_amount(self):
        """amount=60000, '12 months', installments => 5000.00"""
        assert compute_installment(Decimal("60000"), 12, RepaymentMode.INSTALLMENTS) == Decimal("5000.00")

    def test_installment_rounds_to_cents(self):
        assert compute_installment(Decimal("10000"), 3, RepaymentMode.INSTALLMENTS) == Decimal("3333.33")

    def test_full_repayment_has_no_installment(self):
        assert compute_installment(Decimal("60000"), 12, RepaymentMode.FULL) is None


@pytest.mark.unit
class TestDateArithmetic:
    """Tests for ages and month counts"""

    def test_age_before_birthday(self):
        assert age_on(date(2010, 6, 20), date(2025, 6, 19)) == 14

    def test_age_on_birthday(self):
        assert age_on(date(2010, 6, 20), date(2025, 6, 20)) == 15

    def test_months_between(self):
        assert months_between(date(2024, 1, 15), date(2025, 6, 15)) == 17
        assert months_between(date(2024, 1, 15), date(2024, 2, 14)) == 0

    def test_months_between_reversed_is_zero(self):
        assert months_between(date(2025, 1, 1), date(2024, 1, 1)) == 0
