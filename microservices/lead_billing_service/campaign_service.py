"""
Campaign Service - Business Logic Layer

Campaign lifecycle and the administrator pricing gate:
- DRAFT -> PENDING_REVIEW on customer submission
- PENDING_REVIEW -> WARMUP on admin approval (price required)
- PENDING_REVIEW -> DRAFT on admin rejection
- ACTIVE <-> PAUSED, {ACTIVE, PAUSED} -> COMPLETED | CANCELED
- ACTIVE with started_at is reached through deposit payment (see WebhookReconciler)

set_pricing() is the only writer of the pricing fields.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .models import (
    Campaign,
    CampaignStatsResponse,
    CampaignStatus,
    CreateCampaignRequest,
    MarketDifficulty,
    PendingPricingResponse,
    PricingAnalysis,
    PricingDecisionResponse,
    SetPricingRequest,
)
from .protocols import (
    AccessDeniedError,
    BillingRepositoryProtocol,
    InvalidStateError,
    NotFoundError,
    PricingStrategyProtocol,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CampaignService:
    """Campaign state machine and pricing gate"""

    # Manual status updates. Approval, rejection and deposit activation use
    # their own entry points.
    VALID_TRANSITIONS = {
        CampaignStatus.DRAFT: [CampaignStatus.PENDING_REVIEW],
        CampaignStatus.PENDING_REVIEW: [],
        CampaignStatus.WARMUP: [CampaignStatus.ACTIVE],
        CampaignStatus.ACTIVE: [CampaignStatus.PAUSED, CampaignStatus.COMPLETED, CampaignStatus.CANCELED],
        CampaignStatus.PAUSED: [CampaignStatus.ACTIVE, CampaignStatus.COMPLETED, CampaignStatus.CANCELED],
        CampaignStatus.COMPLETED: [],  # Terminal state
        CampaignStatus.CANCELED: [],  # Terminal state
    }

    UNDELETABLE_STATUSES = frozenset({CampaignStatus.ACTIVE, CampaignStatus.WARMUP})
    TERMINAL_STATUSES = frozenset({CampaignStatus.COMPLETED, CampaignStatus.CANCELED})
    PRICING_PENDING_STATUSES = [CampaignStatus.DRAFT, CampaignStatus.PENDING_REVIEW]

    def __init__(
        self,
        repository: BillingRepositoryProtocol,
        pricing_strategy: PricingStrategyProtocol,
    ):
        self.repository = repository
        self.pricing_strategy = pricing_strategy

    # ====================
    # Customer Operations
    # ====================

    async def create_campaign(self, customer_id: str, request: CreateCampaignRequest) -> Campaign:
        customer = await self.repository.get_customer(customer_id)
        if not customer:
            raise NotFoundError(f"Customer not found: {customer_id}")

        campaign = await self.repository.create_campaign({
            "id": f"cmp_{uuid.uuid4().hex[:16]}",
            "customer_id": customer_id,
            "name": request.name,
            "description": request.description,
            "target_criteria": request.target_criteria,
            "budget": request.budget,
            "max_leads": request.max_leads,
            "status": CampaignStatus.DRAFT,
        })
        logger.info(f"Campaign {campaign.id} created for customer {customer_id}")
        return campaign

    async def get_campaign(self, campaign_id: str, customer_id: Optional[str] = None) -> Campaign:
        """
        Fetch a campaign. When customer_id is given the campaign must
        belong to that customer.
        """
        campaign = await self.repository.get_campaign(campaign_id)
        return self._check_access(campaign, campaign_id, customer_id)

    async def list_campaigns(self, customer_id: str) -> List[Campaign]:
        return await self.repository.list_campaigns(customer_id=customer_id)

    async def get_campaign_stats(self, campaign_id: str, customer_id: str) -> CampaignStatsResponse:
        campaign = await self.get_campaign(campaign_id, customer_id)
        price = campaign.price_per_lead or 0
        spent = campaign.total_paid * price
        return CampaignStatsResponse(
            id=campaign.id,
            name=campaign.name,
            status=campaign.status,
            total_paid=campaign.total_paid,
            credit_balance=campaign.credit_balance,
            budget=campaign.budget,
            price_per_lead=campaign.price_per_lead,
            spent=spent,
            remaining=campaign.budget - spent,
        )

    async def submit_for_review(self, campaign_id: str, customer_id: str) -> Campaign:
        return await self.update_status(campaign_id, CampaignStatus.PENDING_REVIEW, customer_id)

    async def update_status(
        self,
        campaign_id: str,
        new_status: CampaignStatus,
        customer_id: Optional[str] = None,
    ) -> Campaign:
        """Manual status change following VALID_TRANSITIONS"""
        new_status = CampaignStatus(new_status)
        async with self.repository.transaction() as tx:
            campaign = self._check_access(
                await tx.get_campaign(campaign_id, for_update=True), campaign_id, customer_id
            )
            if not self._is_valid_transition(campaign.status, new_status):
                raise InvalidStateError(
                    f"Cannot change campaign status from {campaign.status.value} to {new_status.value}"
                )
            if new_status == CampaignStatus.ACTIVE and campaign.price_per_lead is None:
                raise InvalidStateError("Cannot activate a campaign before its price is set")

            fields: Dict[str, Any] = {"status": new_status}
            if new_status == CampaignStatus.COMPLETED:
                fields["completed_at"] = _utcnow()
            updated = await tx.update_campaign(campaign_id, fields)

        logger.info(f"Campaign {campaign_id} status {campaign.status.value} -> {new_status.value}")
        return updated

    async def delete_campaign(self, campaign_id: str, customer_id: str) -> None:
        async with self.repository.transaction() as tx:
            campaign = self._check_access(
                await tx.get_campaign(campaign_id, for_update=True), campaign_id, customer_id
            )
            if campaign.status in self.UNDELETABLE_STATUSES:
                raise InvalidStateError(
                    "Cannot delete active or warming campaign. Please pause or cancel first."
                )
            await tx.delete_campaign(campaign_id)
        logger.info(f"Campaign {campaign_id} deleted by customer {customer_id}")

    # ====================
    # Admin Operations
    # ====================

    def analyze_pricing(self, estimated_tam: int, market_difficulty: MarketDifficulty) -> PricingAnalysis:
        return self.pricing_strategy.analyze(estimated_tam, market_difficulty)

    async def set_pricing(
        self,
        campaign_id: str,
        request: SetPricingRequest,
        admin_id: str,
    ) -> PricingDecisionResponse:
        """
        Record the admin pricing decision.

        An approved price can only be replaced with `override`; submitting the
        same price again refreshes the approver and timestamp.
        """
        validation = self.pricing_strategy.validate_custom_price(
            request.price_per_lead, request.estimated_tam, request.market_difficulty
        )
        if not validation.valid:
            raise ValueError(validation.error or "Invalid price per lead")
        analysis = self.pricing_strategy.analyze(request.estimated_tam, request.market_difficulty)

        async with self.repository.transaction() as tx:
            campaign = await tx.get_campaign(campaign_id, for_update=True)
            if not campaign:
                raise NotFoundError(f"Campaign not found: {campaign_id}")
            if campaign.status in self.TERMINAL_STATUSES:
                raise InvalidStateError(f"Cannot price a {campaign.status.value} campaign")

            already_priced = campaign.price_per_lead is not None
            if (
                already_priced
                and campaign.price_per_lead != request.price_per_lead
                and not request.override
            ):
                raise InvalidStateError(
                    f"Campaign price already approved at {campaign.price_per_lead:g}; "
                    "set override to change it"
                )

            updated = await tx.update_campaign(campaign_id, {
                "price_per_lead": request.price_per_lead,
                "estimated_tam": request.estimated_tam,
                "market_difficulty": request.market_difficulty,
                "admin_notes": request.admin_notes,
                "price_approved_at": _utcnow(),
                "price_approved_by": admin_id,
            })

        if already_priced and campaign.price_per_lead != request.price_per_lead:
            logger.warning(
                f"Campaign {campaign_id} price overridden by {admin_id}: "
                f"{campaign.price_per_lead} -> {request.price_per_lead}"
            )
        else:
            logger.info(f"Campaign {campaign_id} priced at {request.price_per_lead} by {admin_id}")

        return PricingDecisionResponse(
            message="Campaign pricing updated successfully",
            campaign=updated,
            analysis=analysis,
            warning=validation.warning,
        )

    async def list_pending_pricing(self) -> PendingPricingResponse:
        campaigns = await self.repository.list_campaigns(
            statuses=self.PRICING_PENDING_STATUSES, price_unset=True
        )
        return PendingPricingResponse(count=len(campaigns), campaigns=campaigns)

    async def approve_campaign(self, campaign_id: str) -> Campaign:
        async with self.repository.transaction() as tx:
            campaign = await tx.get_campaign(campaign_id, for_update=True)
            if not campaign:
                raise NotFoundError(f"Campaign not found: {campaign_id}")
            if campaign.status != CampaignStatus.PENDING_REVIEW:
                raise InvalidStateError(
                    "Campaign must be in PENDING_REVIEW status to be approved. "
                    f"Current status: {campaign.status.value}"
                )
            if campaign.price_per_lead is None:
                raise InvalidStateError("Campaign must be priced before approval")
            updated = await tx.update_campaign(campaign_id, {"status": CampaignStatus.WARMUP})

        logger.info(f"Campaign {campaign_id} approved, awaiting deposit ({updated.deposit_status.value})")
        return updated

    async def reject_campaign(self, campaign_id: str, reason: Optional[str] = None) -> Campaign:
        async with self.repository.transaction() as tx:
            campaign = await tx.get_campaign(campaign_id, for_update=True)
            if not campaign:
                raise NotFoundError(f"Campaign not found: {campaign_id}")
            if campaign.status != CampaignStatus.PENDING_REVIEW:
                raise InvalidStateError(
                    "Campaign must be in PENDING_REVIEW status to be rejected. "
                    f"Current status: {campaign.status.value}"
                )
            updated = await tx.update_campaign(campaign_id, {"status": CampaignStatus.DRAFT})

        logger.info(f"Campaign {campaign_id} rejected" + (f": {reason}" if reason else ""))
        return updated

    # ====================
    # Helpers
    # ====================

    @staticmethod
    def _check_access(
        campaign: Optional[Campaign], campaign_id: str, customer_id: Optional[str]
    ) -> Campaign:
        if not campaign:
            raise NotFoundError(f"Campaign not found: {campaign_id}")
        if customer_id is not None and campaign.customer_id != customer_id:
            raise AccessDeniedError("Access denied to this campaign")
        return campaign

    def _is_valid_transition(self, current: CampaignStatus, target: CampaignStatus) -> bool:
        return target in self.VALID_TRANSITIONS.get(current, [])
