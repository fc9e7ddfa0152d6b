"""
Eligibility Rule Tests.

Tests for:
- Eligibility start date
- Claim eligibility per claim type
- Loan eligibility
- Dependent coverage
"""

from datetime import date, timedelta

import pytest

from mcdf.core.config import FundSettings
from mcdf.core.enums import ClaimType, MemberStatus, Relationship
from mcdf.services.eligibility import (
    compute_dependent_eligibility,
    compute_eligibility_start_date,
    evaluate_claim_eligibility,
    evaluate_loan_eligibility,
    required_claim_contributions,
)


@pytest.fixture
def rules():
    return FundSettings(_env_file=None)


@pytest.mark.unit
class TestEligibilityStartDate:
    """Tests for the health cover start date"""

    def test_start_is_registration_plus_waiting_period(self, rules):
        start = compute_eligibility_start_date(date(2024, 1, 1), True, MemberStatus.ACTIVE, 5, rules)
        assert start == date(2024, 1, 1) + timedelta(days=60)

    def test_incomplete_registration_has_no_start(self, rules):
        assert compute_eligibility_start_date(date(2024, 1, 1), False, MemberStatus.ACTIVE, 5, rules) is None

    def test_inactive_member_has_no_start(self, rules):
        assert compute_eligibility_start_date(date(2024, 1, 1), True, MemberStatus.SUSPENDED, 9, rules) is None

    def test_too_few_recent_contributions(self, rules):
        assert compute_eligibility_start_date(date(2024, 1, 1), True, MemberStatus.ACTIVE, 4, rules) is None


@pytest.mark.unit
class TestClaimEligibility:
    """Tests for claim eligibility rules"""

    def test_requirements_per_claim_type(self, rules):
        assert required_claim_contributions(ClaimType.OUTPATIENT, rules) == 1
        for claim_type in (ClaimType.INPATIENT, ClaimType.SURGERY, ClaimType.MATERNITY):
            assert required_claim_contributions(claim_type, rules) == 5

    def test_unknown_type_uses_outpatient_minimum(self, rules):
        assert required_claim_contributions("dental", rules) == 1

    def test_new_member_surgery_collects_every_issue(self, rules):
        """Active 30 days, 2 paid, surgery => two issues, not eligible"""
        result = evaluate_claim_eligibility(
            MemberStatus.ACTIVE,
            date(2025, 1, 1),
            2,
            ClaimType.SURGERY,
            date(2025, 1, 31),
            rules,
        )
        assert result.eligible is False
        assert result.issues == [
            "Member must be registered for at least 60 days",
            "Member must have at least 5 months of contributions",
        ]
        assert result.days_since_registration == 30
        assert result.contribution_count == 2
        assert result.required_contributions == 5

    def test_inactive_member_issue_listed_first(self, rules):
        result = evaluate_claim_eligibility(
            MemberStatus.SUSPENDED,
            date(2024, 1, 1),
            10,
            ClaimType.OUTPATIENT,
            date(2025, 1, 1),
            rules,
        )
        assert result.issues == ["Member must be active"]

    def test_established_member_eligible(self, rules):
        result = evaluate_claim_eligibility(
            MemberStatus.ACTIVE,
            date(2024, 1, 1),
            5,
            ClaimType.INPATIENT,
            date(2024, 3, 1),
            rules,
        )
        assert result.eligible is True
        assert result.issues == []

    @pytest.mark.parametrize("claim_type", list(ClaimType))
    def test_more_contributions_never_remove_eligibility(self, rules, claim_type):
        as_of = date(2025, 6, 1)
        eligible_before = False
        for paid in range(0, 12):
            result = evaluate_claim_eligibility(
                MemberStatus.ACTIVE, date(2024, 1, 1), paid, claim_type, as_of, rules
            )
            assert result.eligible or not eligible_before
            eligible_before = result.eligible


@pytest.mark.unit
class TestLoanEligibility:
    """Tests for loan eligibility rules"""

    def test_all_issues_collected(self, rules):
        result = evaluate_loan_eligibility(MemberStatus.PENDING, 3, 1, rules)
        assert result.issues == [
            "Member must be active",
            "Member must have at least 12 months of contributions",
            "Member has existing active loans",
        ]

    def test_eligible_member(self, rules):
        assert evaluate_loan_eligibility(MemberStatus.ACTIVE, 12, 0, rules).eligible is True


@pytest.mark.unit
class TestDependentEligibility:
    """Tests for dependent coverage"""

    def test_young_child_always_covered(self):
        assert compute_dependent_eligibility(
            Relationship.CHILD, date(2015, 1, 1), False, date(2025, 1, 1)
        ) is True

    def test_child_at_age_limit_covered(self):
        assert compute_dependent_eligibility(
            Relationship.CHILD, date(2010, 1, 1), False, date(2025, 1, 1)
        ) is True

    def test_older_child_follows_member(self):
        assert compute_dependent_eligibility(
            Relationship.CHILD, date(2008, 1, 1), False, date(2025, 1, 1)
        ) is False
        assert compute_dependent_eligibility(
            Relationship.CHILD, date(2008, 1, 1), True, date(2025, 1, 1)
        ) is True

    @pytest.mark.parametrize("relationship", [Relationship.SPOUSE, Relationship.PARENT, Relationship.SIBLING])
    def test_adults_follow_member(self, relationship):
        assert compute_dependent_eligibility(relationship, date(1980, 1, 1), True, date(2025, 1, 1)) is True
        assert compute_dependent_eligibility(relationship, date(1980, 1, 1), False, date(2025, 1, 1)) is False
