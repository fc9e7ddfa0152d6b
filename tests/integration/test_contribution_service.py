"""
Contribution Service Integration Tests.

Tests for:
- Recording contributions and posting them to the ledger
- Late fines on payment and the overdue sweep
- Member submissions and verification
- Ledger adjustments on edits
"""

from datetime import date
from decimal import Decimal

import pytest

from mcdf.core.enums import ContributionStatus, LedgerSource, PaymentMethod
from mcdf.services.contribution_service import ContributionService
from mcdf.services.ledger_service import LedgerService
from mcdf.utils.errors import InvalidStateTransition, NotFoundError, ValidationFailure


@pytest.fixture
def contributions(session, settings, clock):
    return ContributionService(session, settings, clock)


@pytest.fixture
def ledger(session, clock):
    return LedgerService(session, clock)


def _february(member, **extra):
    return {
        "member_id": member.id,
        "amount": Decimal("5000.00"),
        "period_start": date(2024, 2, 1),
        "period_end": date(2024, 2, 29),
        **extra,
    }


@pytest.mark.integration
class TestRecordContribution:
    """Tests for administrator-recorded contributions"""

    @pytest.mark.asyncio
    async def test_paid_contribution_posts_inflow(self, contributions, ledger, make_member, actor_id):
        member = await make_member()

        contribution = await contributions.record_contribution(
            _february(member, payment_date=date(2024, 2, 10)), actor_id
        )

        assert contribution.receipt_number == "RCP2025060001"
        assert contribution.ledger_posted is True
        entries = await ledger.list_entries(reference=contribution.receipt_number)
        assert len(entries) == 1
        assert entries[0].source == LedgerSource.CONTRIBUTION
        assert entries[0].amount == Decimal("5000.00")
        assert await ledger.current_balance() == Decimal("5000.00")

    @pytest.mark.asyncio
    async def test_pending_contribution_not_posted(self, contributions, ledger, make_member, actor_id):
        member = await make_member()

        contribution = await contributions.record_contribution(
            _february(member, status=ContributionStatus.PENDING), actor_id
        )

        assert contribution.ledger_posted is False
        assert await ledger.current_balance() == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_unknown_member(self, contributions, make_member, actor_id):
        member = await make_member()
        data = _february(member, payment_date=date(2024, 2, 10))
        data["member_id"] = actor_id
        with pytest.raises(NotFoundError):
            await contributions.record_contribution(data, actor_id)

    @pytest.mark.asyncio
    async def test_reversed_period_rejected(self, contributions, make_member, actor_id):
        member = await make_member()
        data = _february(member, payment_date=date(2024, 2, 10), period_end=date(2024, 1, 1))
        with pytest.raises(ValidationFailure):
            await contributions.record_contribution(data, actor_id)

    @pytest.mark.asyncio
    async def test_paid_contribution_refreshes_eligibility(
        self, contributions, make_member, actor_id, pay_months
    ):
        member = await make_member()
        assert member.eligibility_start_date is None

        await pay_months(member, 5)

        assert member.eligibility_start_date == date(2024, 3, 15)


@pytest.mark.integration
class TestLatePayment:
    """Tests for late fines"""

    @pytest.mark.asyncio
    async def test_late_payment_charged_fine(self, contributions, ledger, make_member, actor_id):
        """amount 5000, period ending 2024-02-29, paid 2024-03-10 => fine 2500"""
        member = await make_member()
        contribution = await contributions.record_contribution(
            _february(member, status=ContributionStatus.PENDING), actor_id
        )

        paid = await contributions.record_payment(contribution.id, actor_id, payment_date=date(2024, 3, 10))

        assert paid.status == ContributionStatus.PAID
        assert paid.fine_amount == Decimal("2500.00")
        assert paid.total_amount == Decimal("7500.00")
        assert await ledger.current_balance() == Decimal("7500.00")

    @pytest.mark.asyncio
    async def test_paid_contribution_cannot_be_paid_again(self, contributions, make_member, actor_id):
        member = await make_member()
        contribution = await contributions.record_contribution(
            _february(member, payment_date=date(2024, 2, 10)), actor_id
        )
        with pytest.raises(InvalidStateTransition):
            await contributions.record_payment(contribution.id, actor_id)

    @pytest.mark.asyncio
    async def test_overdue_sweep(self, contributions, make_member, actor_id):
        member = await make_member()
        stale = await contributions.record_contribution(
            _february(member, status=ContributionStatus.PENDING), actor_id
        )
        current = await contributions.record_contribution(
            {
                "member_id": member.id,
                "amount": Decimal("5000.00"),
                "period_start": date(2025, 6, 1),
                "period_end": date(2025, 6, 30),
                "status": ContributionStatus.PENDING,
            },
            actor_id,
        )

        assert await contributions.mark_overdue_contributions() == 1

        stale = await contributions.get_contribution(stale.id)
        assert stale.status == ContributionStatus.OVERDUE
        assert stale.fine_amount == Decimal("2500.00")
        assert (await contributions.get_contribution(current.id)).status == ContributionStatus.PENDING

    @pytest.mark.asyncio
    async def test_overdue_sweep_skips_member_submissions(self, contributions, make_member, actor_id):
        member = await make_member()
        await contributions.submit_contribution(
            _february(
                member,
                payment_date=date(2024, 2, 20),
                payment_method=PaymentMethod.TRANSFER,
                receipt_path="receipts/feb.pdf",
            ),
            actor_id,
        )
        assert await contributions.mark_overdue_contributions() == 0


@pytest.mark.integration
class TestMemberSubmission:
    """Tests for submission and verification"""

    async def _submit(self, contributions, member, actor_id):
        return await contributions.submit_contribution(
            _february(
                member,
                payment_date=date(2024, 2, 20),
                payment_method=PaymentMethod.MOBILE_MONEY,
                receipt_path="receipts/feb.png",
            ),
            actor_id,
        )

    @pytest.mark.asyncio
    async def test_verified_submission_posts_inflow(self, contributions, ledger, make_member, actor_id):
        member = await make_member()
        submitted = await self._submit(contributions, member, actor_id)
        assert submitted.is_member_submitted is True
        assert await ledger.current_balance() == Decimal("0.00")

        verified = await contributions.verify_contribution(submitted.id, actor_id, approved=True)

        assert verified.status == ContributionStatus.PAID
        assert verified.verified_by == actor_id
        assert await ledger.current_balance() == Decimal("5000.00")

    @pytest.mark.asyncio
    async def test_rejected_submission_cancelled(self, contributions, ledger, make_member, actor_id):
        member = await make_member()
        submitted = await self._submit(contributions, member, actor_id)

        rejected = await contributions.verify_contribution(
            submitted.id, actor_id, approved=False, notes="Proof unreadable"
        )

        assert rejected.status == ContributionStatus.CANCELLED
        assert rejected.notes == "Proof unreadable"
        assert await ledger.current_balance() == Decimal("0.00")

    @pytest.mark.asyncio
    async def test_admin_recorded_contribution_cannot_be_verified(self, contributions, make_member, actor_id):
        member = await make_member()
        contribution = await contributions.record_contribution(
            _february(member, status=ContributionStatus.PENDING), actor_id
        )
        with pytest.raises(InvalidStateTransition):
            await contributions.verify_contribution(contribution.id, actor_id, approved=True)


@pytest.mark.integration
class TestUpdateContribution:
    """Tests for editing contributions"""

    @pytest.mark.asyncio
    async def test_amount_change_posts_adjustment(self, contributions, ledger, make_member, actor_id):
        member = await make_member()
        contribution = await contributions.record_contribution(
            _february(member, payment_date=date(2024, 2, 10)), actor_id
        )

        await contributions.update_contribution(contribution.id, {"amount": Decimal("6000.00")}, actor_id)

        adjustments = await ledger.list_entries(source=LedgerSource.CONTRIBUTION_ADJUSTMENT)
        assert len(adjustments) == 1
        assert adjustments[0].amount == Decimal("1000.00")
        assert await ledger.current_balance() == Decimal("6000.00")

    @pytest.mark.asyncio
    async def test_notes_change_posts_nothing(self, contributions, ledger, make_member, actor_id):
        member = await make_member()
        contribution = await contributions.record_contribution(
            _february(member, payment_date=date(2024, 2, 10)), actor_id
        )

        await contributions.update_contribution(contribution.id, {"notes": "Cash at branch"}, actor_id)

        assert len(await ledger.list_entries()) == 1

    @pytest.mark.asyncio
    async def test_cancelled_contribution_cannot_be_updated(self, contributions, make_member, actor_id):
        member = await make_member()
        contribution = await contributions.record_contribution(
            _february(member, status=ContributionStatus.PENDING), actor_id
        )
        await contributions.cancel_contribution(contribution.id, actor_id)

        with pytest.raises(InvalidStateTransition):
            await contributions.update_contribution(contribution.id, {"notes": "x"}, actor_id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["amount", "period_start", "period_end"])
    async def test_required_fields_cannot_be_cleared(
        self, contributions, ledger, make_member, actor_id, field
    ):
        member = await make_member()
        contribution = await contributions.record_contribution(
            _february(member, payment_date=date(2024, 2, 10)), actor_id
        )

        with pytest.raises(ValidationFailure) as exc_info:
            await contributions.update_contribution(contribution.id, {field: None}, actor_id)

        assert any(field in error for error in exc_info.value.errors)
        assert contribution.period_end == date(2024, 2, 29)
        assert contribution.amount == Decimal("5000.00")
        assert await ledger.list_entries(source=LedgerSource.CONTRIBUTION_ADJUSTMENT) == []

    @pytest.mark.asyncio
    async def test_paid_contribution_keeps_payment_date(self, contributions, make_member, actor_id):
        member = await make_member()
        contribution = await contributions.record_contribution(
            _february(member, payment_date=date(2024, 2, 10)), actor_id
        )

        with pytest.raises(ValidationFailure):
            await contributions.update_contribution(contribution.id, {"payment_date": None}, actor_id)
        assert contribution.payment_date == date(2024, 2, 10)

    @pytest.mark.asyncio
    async def test_moving_payment_date_refreshes_eligibility(
        self, session, contributions, make_member, actor_id
    ):
        member = await make_member(paid_months=5)
        assert member.eligibility_start_date == date(2024, 3, 15)
        paid = await contributions.list_for_member(member.id, status=ContributionStatus.PAID)
        oldest = paid[0]
        assert oldest.payment_date == date(2025, 2, 1)

        await contributions.update_contribution(oldest.id, {"payment_date": date(2024, 12, 1)}, actor_id)
        await session.refresh(member)
        assert member.eligibility_start_date is None

        await contributions.update_contribution(oldest.id, {"payment_date": date(2025, 2, 1)}, actor_id)
        await session.refresh(member)
        assert member.eligibility_start_date == date(2024, 3, 15)


@pytest.mark.integration
class TestContributionLookups:
    """Tests for contribution lookups"""

    @pytest.mark.asyncio
    async def test_lookup_by_receipt_and_member(self, contributions, make_member, actor_id):
        member = await make_member()
        paid = await contributions.record_contribution(
            _february(member, payment_date=date(2024, 2, 10)), actor_id
        )
        await contributions.record_contribution(
            _february(
                member,
                status=ContributionStatus.PENDING,
                period_start=date(2024, 3, 1),
                period_end=date(2024, 3, 31),
            ),
            actor_id,
        )

        assert (await contributions.get_by_receipt(paid.receipt_number)).id == paid.id
        assert await contributions.get_by_receipt("RCP0000000000") is None
        assert len(await contributions.list_for_member(member.id)) == 2
        only_paid = await contributions.list_for_member(member.id, status=ContributionStatus.PAID)
        assert [c.id for c in only_paid] == [paid.id]
