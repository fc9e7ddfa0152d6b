"""
Health Claim Service Integration Tests.

Tests for:
- Submission gated by claim eligibility
- Coverage split and claim numbering
- Edits while submitted, decisions and payment
"""

from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio

from mcdf.core.enums import ClaimStatus, ClaimType, DocumentType, LedgerSource, ProviderType
from mcdf.services.health_claim_service import HealthClaimService
from mcdf.services.ledger_service import LedgerService
from mcdf.utils.errors import EligibilityFailure, InvalidStateTransition, NotFoundError


@pytest.fixture
def claims(session, settings, clock):
    return HealthClaimService(session, settings, clock)


@pytest.fixture
def ledger(session, clock):
    return LedgerService(session, clock)


@pytest_asyncio.fixture
async def provider(claims):
    return await claims.create_provider({"name": "General Hospital Ikeja", "provider_type": ProviderType.HOSPITAL})


def _claim(member, provider, claim_type=ClaimType.INPATIENT, billed="20000.00", **extra):
    return {
        "member_id": member.id,
        "provider_id": provider.id,
        "claim_type": claim_type,
        "billed_amount": Decimal(billed),
        "diagnosis": "Malaria",
        "treatment_date": date(2025, 6, 10),
        **extra,
    }


@pytest.mark.integration
class TestSubmitClaim:
    """Tests for claim submission"""

    @pytest.mark.asyncio
    async def test_default_coverage_split(self, claims, provider, make_member, actor_id):
        """billed 20000 at 90% => covered 18000, copay 2000"""
        member = await make_member(paid_months=5)

        claim = await claims.submit_claim(_claim(member, provider), actor_id)

        assert claim.status == ClaimStatus.SUBMITTED
        assert claim.claim_number == "CLM2025060001"
        assert claim.coverage_percent == Decimal("90")
        assert claim.covered_amount == Decimal("18000.00")
        assert claim.copay_amount == Decimal("2000.00")

    @pytest.mark.asyncio
    async def test_claim_numbers_increase(self, claims, provider, make_member, actor_id):
        member = await make_member(paid_months=5)
        first = await claims.submit_claim(_claim(member, provider), actor_id)
        second = await claims.submit_claim(_claim(member, provider, ClaimType.OUTPATIENT), actor_id)
        assert (first.claim_number, second.claim_number) == ("CLM2025060001", "CLM2025060002")

    @pytest.mark.asyncio
    async def test_new_member_surgery_refused(self, claims, provider, make_member, actor_id):
        member = await make_member(registration_date=date(2025, 5, 16), paid_months=2)

        with pytest.raises(EligibilityFailure) as exc_info:
            await claims.submit_claim(_claim(member, provider, ClaimType.SURGERY), actor_id)

        assert exc_info.value.issues == [
            "Member must be registered for at least 60 days",
            "Member must have at least 5 months of contributions",
        ]
        assert await claims.list_for_member(member.id) == []

    @pytest.mark.asyncio
    async def test_outpatient_needs_one_contribution(self, claims, provider, make_member, actor_id):
        member = await make_member(paid_months=1)
        result = await claims.check_eligibility(member.id, ClaimType.OUTPATIENT)
        assert result.eligible is True

    @pytest.mark.asyncio
    async def test_unknown_provider(self, claims, make_member, actor_id, provider):
        member = await make_member(paid_months=5)
        data = _claim(member, provider)
        data["provider_id"] = actor_id
        with pytest.raises(NotFoundError):
            await claims.submit_claim(data, actor_id)

    @pytest.mark.asyncio
    async def test_attach_document(self, claims, provider, make_member, actor_id):
        member = await make_member(paid_months=5)
        claim = await claims.submit_claim(_claim(member, provider), actor_id)

        await claims.attach_document(
            claim.id,
            {
                "document_type": DocumentType.BILL,
                "file_path": "claims/bill.pdf",
                "file_name": "bill.pdf",
                "file_size": 20480,
                "mime_type": "application/pdf",
            },
            actor_id,
        )

        claim = await claims.get_claim(claim.id)
        assert [d.file_name for d in claim.documents] == ["bill.pdf"]


@pytest.mark.integration
class TestEditClaim:
    """Tests for edits while a claim is submitted"""

    @pytest.mark.asyncio
    async def test_billed_change_recomputes_coverage(self, claims, provider, make_member, actor_id):
        member = await make_member(paid_months=5)
        claim = await claims.submit_claim(_claim(member, provider), actor_id)

        claim = await claims.update_claim(claim.id, {"billed_amount": Decimal("10000.00")})

        assert claim.covered_amount == Decimal("9000.00")
        assert claim.copay_amount == Decimal("1000.00")

    @pytest.mark.asyncio
    async def test_approved_claim_cannot_be_edited(self, claims, provider, make_member, actor_id):
        member = await make_member(paid_months=5)
        claim = await claims.submit_claim(_claim(member, provider), actor_id)
        await claims.approve_claim(claim.id, actor_id)

        with pytest.raises(InvalidStateTransition) as exc_info:
            await claims.update_claim(claim.id, {"diagnosis": "Typhoid"})
        assert exc_info.value.detail == "Can only update health claims in SUBMITTED status, current: approved"

    @pytest.mark.asyncio
    async def test_submitted_claim_can_be_deleted(self, claims, provider, make_member, actor_id):
        member = await make_member(paid_months=5)
        claim = await claims.submit_claim(_claim(member, provider), actor_id)

        await claims.delete_claim(claim.id)

        with pytest.raises(NotFoundError):
            await claims.get_claim(claim.id)


@pytest.mark.integration
class TestClaimDecisions:
    """Tests for approval, rejection and payment"""

    @pytest.mark.asyncio
    async def test_paid_claim_posts_covered_amount(self, claims, ledger, provider, make_member, actor_id):
        member = await make_member(paid_months=5)
        claim = await claims.submit_claim(_claim(member, provider), actor_id)
        await claims.approve_claim(claim.id, actor_id, remarks="Documents in order")

        claim = await claims.pay_claim(claim.id, actor_id)

        assert claim.status == ClaimStatus.PAID
        assert claim.paid_date == date(2025, 6, 15)
        entries = await ledger.list_entries(reference=claim.claim_number)
        assert [(e.source, e.amount) for e in entries] == [(LedgerSource.HEALTH_CLAIM, Decimal("18000.00"))]
        assert await ledger.current_balance() == Decimal("7000.00")

    @pytest.mark.asyncio
    async def test_submitted_claim_cannot_be_paid(
        self, claims, ledger, provider, make_member, actor_id, stored_row
    ):
        member = await make_member(paid_months=5)
        claim = await claims.submit_claim(_claim(member, provider), actor_id)
        before = await stored_row(claim)

        with pytest.raises(InvalidStateTransition):
            await claims.pay_claim(claim.id, actor_id)

        assert await stored_row(claim) == before
        assert before["paid_date"] is None
        assert await ledger.list_entries(source=LedgerSource.HEALTH_CLAIM) == []

    @pytest.mark.asyncio
    async def test_rejected_claim_is_final(self, claims, provider, make_member, actor_id):
        member = await make_member(paid_months=5)
        claim = await claims.submit_claim(_claim(member, provider), actor_id)

        claim = await claims.reject_claim(claim.id, actor_id, remarks="Not covered")

        assert claim.status == ClaimStatus.REJECTED
        with pytest.raises(InvalidStateTransition):
            await claims.approve_claim(claim.id, actor_id)

    @pytest.mark.asyncio
    async def test_zero_coverage_claim_posts_nothing(self, claims, ledger, provider, make_member, actor_id):
        member = await make_member(paid_months=5)
        claim = await claims.submit_claim(_claim(member, provider, coverage_percent=Decimal("0")), actor_id)
        await claims.approve_claim(claim.id, actor_id)
        await claims.pay_claim(claim.id, actor_id)

        assert await ledger.list_entries(source=LedgerSource.HEALTH_CLAIM) == []


@pytest.mark.integration
class TestClaimLookups:
    """Tests for providers and claim lookups"""

    @pytest.mark.asyncio
    async def test_list_providers(self, claims, provider):
        await claims.create_provider({"name": "Mainland Pharmacy", "provider_type": ProviderType.PHARMACY})
        names = [p.name for p in await claims.list_providers()]
        assert sorted(names) == ["General Hospital Ikeja", "Mainland Pharmacy"]

    @pytest.mark.asyncio
    async def test_lookup_by_claim_number(self, claims, provider, make_member, actor_id):
        member = await make_member(paid_months=5)
        claim = await claims.submit_claim(_claim(member, provider), actor_id)

        assert (await claims.get_by_claim_number("CLM2025060001")).id == claim.id
        assert await claims.get_by_claim_number("CLM2025069999") is None
