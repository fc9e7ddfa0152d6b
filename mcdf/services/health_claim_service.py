"""
Health Claim Service.

Provides:
- Healthcare provider registry
- Claim submission behind the claim eligibility gate
- Coverage and copay calculation
- Supporting document metadata
- Approval, rejection and payment of claims

Transitions: SUBMITTED -> APPROVED | REJECTED; APPROVED -> PAID
"""

from datetime import date
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mcdf.core.config import FundSettings, get_settings
from mcdf.core.enums import ClaimStatus, ClaimType, LedgerEntryType, LedgerSource
from mcdf.models.health_claim import HealthcareProvider, HealthClaim, HealthClaimDocument
from mcdf.schemas.base import validate_input
from mcdf.schemas.eligibility import ClaimEligibilityResult
from mcdf.schemas.health_claim import (
    ClaimDocumentCreate,
    HealthClaimCreate,
    HealthClaimUpdate,
    ProviderCreate,
)
from mcdf.services.calculators import compute_coverage
from mcdf.services.eligibility import EligibilityService
from mcdf.services.ledger_service import LedgerService
from mcdf.services.numbering import NumberingService
from mcdf.services.state_machine import TransitionEvent, apply_transition, claim_machine
from mcdf.utils.clock import Clock, SystemClock
from mcdf.utils.errors import EligibilityFailure, InvalidStateTransition, NotFoundError
from mcdf.utils.logging import get_logger

logger = get_logger(__name__)


class HealthClaimService:
    """Service for health claims and providers."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Optional[FundSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self.numbering = NumberingService(session)
        self.ledger = LedgerService(session, self.clock)
        self.eligibility = EligibilityService(session, self.settings, self.clock)

    # =========================================================================
    # Providers
    # =========================================================================

    async def create_provider(self, data: ProviderCreate | dict[str, Any]) -> HealthcareProvider:
        data = validate_input(ProviderCreate, data)
        provider = HealthcareProvider(**data.model_dump())
        self.session.add(provider)
        await self.session.commit()
        logger.info(f"Registered provider {provider.name} ({provider.provider_type.value})")
        return provider

    async def get_provider(self, provider_id: UUID) -> HealthcareProvider:
        provider = await self.session.get(HealthcareProvider, provider_id)
        if not provider:
            raise NotFoundError("Healthcare provider", provider_id)
        return provider

    async def list_providers(self, active_only: bool = True) -> list[HealthcareProvider]:
        query = select(HealthcareProvider)
        if active_only:
            query = query.where(HealthcareProvider.is_active.is_(True))
        result = await self.session.execute(query.order_by(HealthcareProvider.name))
        return list(result.scalars().all())

    # =========================================================================
    # Claims
    # =========================================================================

    async def get_claim(self, claim_id: UUID) -> HealthClaim:
        claim = await self.session.get(HealthClaim, claim_id)
        if not claim:
            raise NotFoundError("Health claim", claim_id)
        return claim

    async def get_by_claim_number(self, claim_number: str) -> Optional[HealthClaim]:
        result = await self.session.execute(
            select(HealthClaim).where(HealthClaim.claim_number == claim_number)
        )
        return result.scalar_one_or_none()

    async def list_for_member(self, member_id: UUID) -> list[HealthClaim]:
        result = await self.session.execute(
            select(HealthClaim)
            .where(HealthClaim.member_id == member_id)
            .order_by(HealthClaim.claim_number)
        )
        return list(result.scalars().all())

    async def check_eligibility(self, member_id: UUID, claim_type: ClaimType) -> ClaimEligibilityResult:
        return await self.eligibility.check_claim_eligibility(member_id, claim_type)

    def _require_submitted(self, claim: HealthClaim, action: str) -> None:
        if claim.status != ClaimStatus.SUBMITTED:
            raise InvalidStateTransition(
                f"Can only {action} health claims in SUBMITTED status, current: {claim.status.value}",
                entity="health claims",
                current_status=claim.status.value,
                action=action,
            )

    async def submit_claim(
        self,
        data: HealthClaimCreate | dict[str, Any],
        actor_id: Optional[UUID] = None,
    ) -> HealthClaim:
        """
        Submit a claim for an eligible member.

        Raises:
            EligibilityFailure: Every failing eligibility rule
            NotFoundError: Unknown member or provider
        """
        data = validate_input(HealthClaimCreate, data)
        await self.get_provider(data.provider_id)

        eligibility = await self.eligibility.check_claim_eligibility(data.member_id, data.claim_type)
        if not eligibility.eligible:
            logger.warning(f"Claim refused for member {data.member_id}: {eligibility.issues}")
            raise EligibilityFailure("Member is not eligible", eligibility.issues)

        coverage_percent = (
            data.coverage_percent
            if data.coverage_percent is not None
            else self.settings.DEFAULT_COVERAGE_PERCENT
        )
        covered, copay = compute_coverage(data.billed_amount, coverage_percent)
        claim_number = await self.numbering.next_claim_number(self.clock.today())

        claim = HealthClaim(
            claim_number=claim_number,
            member_id=data.member_id,
            provider_id=data.provider_id,
            claim_type=data.claim_type,
            diagnosis=data.diagnosis,
            treatment_date=data.treatment_date,
            billed_amount=data.billed_amount,
            coverage_percent=coverage_percent,
            covered_amount=covered,
            copay_amount=copay,
            status=ClaimStatus.SUBMITTED,
            submitted_by=actor_id,
        )
        self.session.add(claim)
        await self.session.commit()

        logger.info(f"Claim {claim_number} submitted: billed {claim.billed_amount}, covered {covered}")
        return claim

    async def attach_document(
        self,
        claim_id: UUID,
        data: ClaimDocumentCreate | dict[str, Any],
        actor_id: Optional[UUID] = None,
    ) -> HealthClaimDocument:
        data = validate_input(ClaimDocumentCreate, data)
        claim = await self.get_claim(claim_id)
        document = HealthClaimDocument(uploaded_by=actor_id, **data.model_dump())
        claim.documents.append(document)
        await self.session.commit()
        logger.info(f"Attached {document.document_type.value} {document.file_name} to {claim.claim_number}")
        return document

    async def update_claim(
        self,
        claim_id: UUID,
        data: HealthClaimUpdate | dict[str, Any],
    ) -> HealthClaim:
        """Edit a submitted claim; coverage follows billed amount and percentage."""
        data = validate_input(HealthClaimUpdate, data)
        claim = await self.get_claim(claim_id)
        self._require_submitted(claim, "update")

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        recompute = (
            "billed_amount" in changes and changes["billed_amount"] != claim.billed_amount
        ) or (
            "coverage_percent" in changes and changes["coverage_percent"] != claim.coverage_percent
        )
        for key, value in changes.items():
            setattr(claim, key, value)
        if recompute:
            claim.covered_amount, claim.copay_amount = compute_coverage(
                claim.billed_amount, claim.coverage_percent
            )

        await self.session.commit()
        return claim

    async def delete_claim(self, claim_id: UUID) -> None:
        claim = await self.get_claim(claim_id)
        self._require_submitted(claim, "delete")
        await self.session.delete(claim)
        await self.session.commit()
        logger.info(f"Deleted claim {claim.claim_number}")

    # =========================================================================
    # Decisions and Payment
    # =========================================================================

    async def approve_claim(
        self,
        claim_id: UUID,
        actor_id: UUID,
        remarks: Optional[str] = None,
    ) -> HealthClaim:
        """Transitions: SUBMITTED -> APPROVED"""
        claim = await self.get_claim(claim_id)
        await apply_transition(
            self.session,
            claim,
            claim_machine,
            TransitionEvent.APPROVE,
            approved_by=actor_id,
            approved_at=self.clock.now(),
            remarks=remarks,
        )
        await self.session.commit()
        return claim

    async def reject_claim(
        self,
        claim_id: UUID,
        actor_id: UUID,
        remarks: Optional[str] = None,
    ) -> HealthClaim:
        """Transitions: SUBMITTED -> REJECTED"""
        claim = await self.get_claim(claim_id)
        await apply_transition(
            self.session,
            claim,
            claim_machine,
            TransitionEvent.REJECT,
            approved_by=actor_id,
            approved_at=self.clock.now(),
            remarks=remarks,
        )
        await self.session.commit()
        return claim

    async def pay_claim(
        self,
        claim_id: UUID,
        actor_id: UUID,
        paid_date: Optional[date] = None,
    ) -> HealthClaim:
        """
        Pay the covered amount of an approved claim.

        Transitions: APPROVED -> PAID
        """
        claim = await self.get_claim(claim_id)
        paid_on = paid_date or self.clock.today()
        await apply_transition(
            self.session,
            claim,
            claim_machine,
            TransitionEvent.PAY,
            paid_by=actor_id,
            paid_date=paid_on,
        )
        if claim.covered_amount > 0:
            await self.ledger.append(
                entry_type=LedgerEntryType.OUTFLOW,
                source=LedgerSource.HEALTH_CLAIM,
                amount=claim.covered_amount,
                transaction_date=paid_on,
                member_id=claim.member_id,
                reference=claim.claim_number,
                description=f"Health claim payment ({claim.claim_type.value})",
                actor_id=actor_id,
            )
        await self.session.commit()
        return claim
