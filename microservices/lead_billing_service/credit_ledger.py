"""
Credit Ledger

Owns campaign credit balances and the lead reveal transaction. One credit
reveals one lead: the decrement, the reveal and the LEAD_UNLOCK payment row
commit together or not at all.

Lock order is campaign row first, then lead row, everywhere.
"""

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from .models import (
    RECHARGE_BUNDLES,
    UNLOCKABLE_LEAD_STATUSES,
    CampaignCreditsResponse,
    DepositStatus,
    Lead,
    LeadListResponse,
    LeadUnlocked,
    PaymentRequired,
    PaymentStatus,
    PaymentType,
    RechargeOption,
    UnlockResult,
)
from .protocols import (
    AccessDeniedError,
    BillingRepositoryProtocol,
    InsufficientCreditsError,
    InvalidStateError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


def mask_email(email: str) -> str:
    """john@example.com -> j***@example.com"""
    local_part, _, domain = email.partition("@")
    if not local_part or not domain:
        return email
    return f"{local_part[0]}***@{domain}"


def mask_lead(lead: Lead) -> Lead:
    """Hide contact details of a lead that has not been paid for"""
    if lead.is_revealed:
        return lead
    return lead.model_copy(update={
        "email": mask_email(lead.email),
        "phone": None,
        "linkedin_url": None,
    })


def recharge_options(price_per_lead: float) -> List[RechargeOption]:
    return [
        RechargeOption(leads=count, total=count * price_per_lead, label=f"{count} leads")
        for count in RECHARGE_BUNDLES
    ]


class CreditLedger:
    """Credit balance and atomic lead unlock"""

    def __init__(self, repository: BillingRepositoryProtocol, currency: str = "eur"):
        self.repository = repository
        self.currency = currency

    async def unlock_lead(self, lead_id: str, customer_id: str) -> UnlockResult:
        """
        Spend one credit to reveal a lead.

        Returns LeadUnlocked, or PaymentRequired with recharge bundles when the
        campaign has no credit left.

        Raises:
            NotFoundError: lead does not exist
            AccessDeniedError: lead belongs to another customer
            InvalidStateError: already revealed, not qualified/interested,
                campaign price not set, or deposit not paid
        """
        try:
            async with self.repository.transaction() as tx:
                result = await self.reveal_in_transaction(tx, lead_id, customer_id)
        except InsufficientCreditsError as e:
            logger.info(f"Campaign {e.campaign_id} has no credits; quoting recharge for lead {lead_id}")
            return PaymentRequired(
                lead_id=lead_id,
                campaign_id=e.campaign_id,
                price_per_lead=e.price_per_lead,
                recharge_options=recharge_options(e.price_per_lead),
            )

        logger.info(
            f"Lead {lead_id} unlocked by {customer_id} for {result.amount_paid}, "
            f"{result.remaining_credits} credits left"
        )
        return result

    async def reveal_in_transaction(
        self,
        tx: BillingRepositoryProtocol,
        lead_id: str,
        customer_id: Optional[str],
    ) -> LeadUnlocked:
        """
        Reveal a lead using the open transaction `tx`.

        Shared by customer unlocks and the webhook auto-unlock. Checks every
        precondition after the rows are locked so concurrent callers see each
        other's effects.
        """
        lead = await tx.get_lead(lead_id)
        if not lead:
            raise NotFoundError(f"Lead not found: {lead_id}")

        campaign = await tx.get_campaign(lead.campaign_id, for_update=True)
        lead = await tx.get_lead(lead_id, for_update=True)
        if not campaign or not lead:
            raise NotFoundError(f"Lead not found: {lead_id}")

        if customer_id is not None and lead.customer_id != customer_id:
            raise AccessDeniedError("Access denied to this lead")
        if lead.is_revealed:
            raise InvalidStateError("Lead already unlocked")
        if lead.status not in UNLOCKABLE_LEAD_STATUSES:
            raise InvalidStateError("Only qualified or interested leads can be unlocked")
        if campaign.price_per_lead is None:
            raise InvalidStateError("Campaign pricing not set. Please contact support.")
        if campaign.deposit_status != DepositStatus.PAID:
            raise InvalidStateError("Campaign deposit has not been paid")

        price = campaign.price_per_lead
        remaining = await tx.consume_credit(campaign.id)
        if remaining is None:
            raise InsufficientCreditsError(
                f"No credits left on campaign {campaign.id}",
                campaign_id=campaign.id,
                price_per_lead=price,
            )

        revealed = await tx.reveal_lead(lead_id, paid_amount=price, revealed_at=datetime.now(timezone.utc))
        if revealed is None:
            raise InvalidStateError("Lead already unlocked")

        await tx.insert_payment({
            "id": f"pay_{uuid.uuid4().hex[:16]}",
            "customer_id": lead.customer_id,
            "campaign_id": campaign.id,
            "type": PaymentType.LEAD_UNLOCK,
            "amount": price,
            "currency": self.currency,
            "status": PaymentStatus.SUCCEEDED,
            "metadata": {"leadId": lead_id},
        })

        return LeadUnlocked(lead=revealed, amount_paid=price, remaining_credits=remaining)

    async def get_campaign_credits(self, campaign_id: str, customer_id: Optional[str] = None) -> CampaignCreditsResponse:
        campaign = await self.repository.get_campaign(campaign_id)
        if not campaign:
            raise NotFoundError(f"Campaign not found: {campaign_id}")
        if customer_id is not None and campaign.customer_id != customer_id:
            raise AccessDeniedError("Access denied to this campaign")
        return CampaignCreditsResponse(
            campaign_id=campaign.id,
            balance=campaign.credit_balance,
            used=campaign.total_paid,
            deposit_status=campaign.deposit_status,
            price_per_lead=campaign.price_per_lead,
        )

    async def get_lead(self, lead_id: str, customer_id: str) -> Lead:
        lead = await self.repository.get_lead(lead_id)
        if not lead:
            raise NotFoundError(f"Lead not found: {lead_id}")
        if lead.customer_id != customer_id:
            raise AccessDeniedError("Access denied to this lead")
        return mask_lead(lead)

    async def list_leads(self, customer_id: str, page: int = 1, limit: int = 20) -> LeadListResponse:
        page = max(page, 1)
        limit = max(1, min(limit, 100))
        leads, total = await self.repository.list_leads(customer_id, offset=(page - 1) * limit, limit=limit)
        return LeadListResponse(
            leads=[mask_lead(lead) for lead in leads],
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if total else 0,
        )
