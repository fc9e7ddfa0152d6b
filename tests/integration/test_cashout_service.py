"""
Cashout Service Integration Tests.

Tests for:
- Cashout eligibility reasons
- The pending -> verified -> approved -> disbursed workflow
- Rejection rules and side effects of disbursement
"""

from datetime import date
from decimal import Decimal

import pytest

from mcdf.core.enums import CashoutStatus, LedgerSource
from mcdf.services.cashout_service import CashoutService
from mcdf.services.contribution_service import ContributionService
from mcdf.services.ledger_service import LedgerService
from mcdf.utils.errors import EligibilityFailure, InvalidStateTransition

BANK = {
    "bank_account_number": "0123456789",
    "bank_account_name": "Amina Bello",
    "bank_name": "First Bank",
}


@pytest.fixture
def cashouts(session, settings, clock):
    return CashoutService(session, settings, clock)


@pytest.fixture
def ledger(session, clock):
    return LedgerService(session, clock)


async def _disbursed(cashouts, member, actor_id, amount="60000.00"):
    request = await cashouts.create_request({"member_id": member.id, "reason": "Relocation"}, actor_id)
    await cashouts.verify_request(request.id, actor_id, notes="Bank details confirmed")
    await cashouts.approve_request(request.id, actor_id, Decimal(amount))
    return await cashouts.disburse_request(request.id, actor_id, reference="TRF-2025-001")


@pytest.mark.integration
class TestCashoutEligibility:
    """Tests for cashout eligibility"""

    @pytest.mark.asyncio
    async def test_eligible_member(self, cashouts, make_member):
        member = await make_member(paid_months=12, **BANK)

        result = await cashouts.check_cashout_eligibility(member.id)

        assert result.eligible is True
        assert result.eligible_amount == Decimal("60000.00")
        assert result.membership_months == 17
        assert result.contribution_count == 12

    @pytest.mark.asyncio
    async def test_new_member_without_bank_details(self, cashouts, make_member):
        member = await make_member(registration_date=date(2025, 3, 1), paid_months=3)

        result = await cashouts.check_cashout_eligibility(member.id)

        assert result.eligible is False
        assert result.issues == [
            "Minimum membership period of 12 months not met (current: 3 months)",
            "Bank account details not provided",
            "Minimum 6 contributions required (current: 3)",
        ]

    @pytest.mark.asyncio
    async def test_member_with_nothing_paid(self, cashouts, make_member):
        member = await make_member(**BANK)
        result = await cashouts.check_cashout_eligibility(member.id)
        assert "No funds available for cashout" in result.issues

    @pytest.mark.asyncio
    async def test_open_request_blocks_another(self, cashouts, make_member, actor_id):
        member = await make_member(paid_months=12, **BANK)
        await cashouts.create_request({"member_id": member.id}, actor_id)

        with pytest.raises(EligibilityFailure) as exc_info:
            await cashouts.create_request({"member_id": member.id}, actor_id)
        assert exc_info.value.issues == ["Member already has a pending cashout request"]


@pytest.mark.integration
class TestCashoutWorkflow:
    """Tests for the cashout workflow"""

    @pytest.mark.asyncio
    async def test_request_snapshots_amount_and_bank(self, cashouts, make_member, actor_id):
        member = await make_member(paid_months=12, **BANK)

        request = await cashouts.create_request({"member_id": member.id, "reason": "Relocation"}, actor_id)

        assert request.status == CashoutStatus.PENDING
        assert request.requested_amount == Decimal("60000.00")
        assert request.bank_name == "First Bank"

    @pytest.mark.asyncio
    async def test_disbursement_effects(self, cashouts, ledger, session, make_member, actor_id):
        member = await make_member(paid_months=12, **BANK)

        request = await _disbursed(cashouts, member, actor_id, amount="55000.00")

        assert request.status == CashoutStatus.DISBURSED
        assert request.disbursement_reference == "TRF-2025-001"
        entries = await ledger.list_entries(source=LedgerSource.CASHOUT)
        assert [(e.amount, e.reference) for e in entries] == [(Decimal("55000.00"), "TRF-2025-001")]
        assert await ledger.current_balance() == Decimal("5000.00")

        await session.refresh(member)
        assert member.cashout_count == 1
        assert member.last_cashout_date == date(2025, 6, 15)
        assert member.eligibility_start_date is None
        assert await cashouts.members.cashout_eligible_amount(member.id) == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_payment_made_during_request_stays_available(
        self, cashouts, session, settings, clock, make_member, actor_id
    ):
        member = await make_member(paid_months=12, **BANK)
        request = await cashouts.create_request({"member_id": member.id}, actor_id)
        july = await ContributionService(session, settings, clock).record_contribution(
            {
                "member_id": member.id,
                "amount": Decimal("5000.00"),
                "payment_date": date(2025, 6, 15),
                "period_start": date(2025, 7, 1),
                "period_end": date(2025, 7, 31),
            },
            actor_id,
        )
        await cashouts.verify_request(request.id, actor_id)
        await cashouts.approve_request(request.id, actor_id, Decimal("60000.00"))
        await cashouts.disburse_request(request.id, actor_id, reference="TRF-2025-002")

        assert await cashouts.members.cashout_eligible_amount(member.id) == Decimal("5000.00")
        await session.refresh(july)
        assert july.cashout_request_id is None

    @pytest.mark.asyncio
    async def test_rejection_releases_contributions(self, cashouts, make_member, actor_id):
        member = await make_member(paid_months=12, **BANK)
        request = await cashouts.create_request({"member_id": member.id}, actor_id)
        assert await cashouts.members.cashout_eligible_amount(member.id) == Decimal("0.00")

        await cashouts.reject_request(request.id, actor_id, reason="Wrong account")

        assert await cashouts.members.cashout_eligible_amount(member.id) == Decimal("60000.00")
        retry = await cashouts.create_request({"member_id": member.id}, actor_id)
        assert retry.requested_amount == Decimal("60000.00")

    @pytest.mark.asyncio
    async def test_approve_requires_verification(self, cashouts, make_member, actor_id, stored_row):
        member = await make_member(paid_months=12, **BANK)
        request = await cashouts.create_request({"member_id": member.id}, actor_id)
        before = await stored_row(request)

        with pytest.raises(InvalidStateTransition):
            await cashouts.approve_request(request.id, actor_id, Decimal("1000.00"))

        assert await stored_row(request) == before
        assert before["approved_amount"] is None

    @pytest.mark.asyncio
    async def test_failed_verification_rejects(self, cashouts, make_member, actor_id):
        member = await make_member(paid_months=12, **BANK)
        request = await cashouts.create_request({"member_id": member.id}, actor_id)

        request = await cashouts.verify_request(request.id, actor_id, approved=False)

        assert request.status == CashoutStatus.REJECTED
        assert request.rejection_reason == "Verification failed"

    @pytest.mark.asyncio
    async def test_verified_request_can_be_rejected(self, cashouts, make_member, actor_id):
        member = await make_member(paid_months=12, **BANK)
        request = await cashouts.create_request({"member_id": member.id}, actor_id)
        await cashouts.verify_request(request.id, actor_id)

        request = await cashouts.reject_request(request.id, actor_id, reason="Duplicate request")

        assert request.status == CashoutStatus.REJECTED
        assert request.rejected_by == actor_id

    @pytest.mark.asyncio
    async def test_disbursed_request_cannot_be_rejected(self, cashouts, make_member, actor_id, stored_row):
        member = await make_member(paid_months=12, **BANK)
        request = await _disbursed(cashouts, member, actor_id)
        before = await stored_row(request)

        with pytest.raises(InvalidStateTransition):
            await cashouts.reject_request(request.id, actor_id, reason="Too late")

        assert await stored_row(request) == before
        assert before["status"] == CashoutStatus.DISBURSED

    @pytest.mark.asyncio
    async def test_cashout_stats(self, cashouts, make_member, actor_id):
        member = await make_member(paid_months=12, **BANK)
        await _disbursed(cashouts, member, actor_id, amount="40000.00")

        stats = await cashouts.cashout_stats()

        assert stats.total_requests == 1
        assert stats.disbursed_requests == 1
        assert stats.total_disbursed == Decimal("40000.00")
        assert stats.average_cashout == Decimal("40000.00")


@pytest.mark.integration
class TestCashoutHistory:
    """Tests for a member's cashout history"""

    @pytest.mark.asyncio
    async def test_history_lists_every_request(self, cashouts, make_member, actor_id):
        member = await make_member(paid_months=12, **BANK)
        first = await cashouts.create_request({"member_id": member.id}, actor_id)
        await cashouts.reject_request(first.id, actor_id, reason="Wrong account")
        second = await cashouts.create_request({"member_id": member.id}, actor_id)

        history = await cashouts.member_history(member.id)

        assert {r.id for r in history} == {first.id, second.id}
        assert second.requested_amount == Decimal("60000.00")
