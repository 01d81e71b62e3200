"""
Payment Service

Creates deposit and recharge checkouts. Provider calls happen before any
database transaction is opened; the PENDING payment row is written right
after the session exists, keyed by its checkout session id.

The completed webhook can beat that insert. The reconciler then records the
row itself and adds the credits, but finds no reservation for the pending
lead; the recharge transaction here reveals that lead instead of reserving.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from .credit_ledger import CreditLedger
from .models import (
    DEPOSIT_CREDIT_AMOUNT,
    RECHARGE_BUNDLES,
    Campaign,
    CampaignStatus,
    CheckoutResponse,
    CheckoutSession,
    CheckoutType,
    DepositStatus,
    PaymentStatus,
    PaymentType,
)
from .pending_unlock_registry import PendingUnlockRegistry
from .protocols import (
    AccessDeniedError,
    BillingRepositoryProtocol,
    InvalidStateError,
    LeadBillingError,
    NotFoundError,
    PaymentGatewayProtocol,
)

logger = logging.getLogger(__name__)


def format_amount(value: float) -> str:
    return f"{value:g}"


class PaymentService:

    def __init__(
        self,
        repository: BillingRepositoryProtocol,
        gateway: PaymentGatewayProtocol,
        registry: PendingUnlockRegistry,
        ledger: CreditLedger,
        frontend_url: str,
        currency: str = "eur",
        checkout_expiry_hours: int = 24,
    ):
        self.repository = repository
        self.gateway = gateway
        self.registry = registry
        self.ledger = ledger
        self.frontend_url = frontend_url.rstrip("/")
        self.currency = currency
        self.checkout_expiry = timedelta(hours=checkout_expiry_hours)

    # ====================
    # Deposit
    # ====================

    async def create_deposit_checkout(self, campaign_id: str) -> CheckoutResponse:
        """
        Start the deposit checkout of a priced campaign (admin initiated).

        The deposit buys DEPOSIT_CREDIT_AMOUNT credits at the approved price.
        """
        campaign = await self.repository.get_campaign(campaign_id)
        if not campaign:
            raise NotFoundError(f"Campaign not found: {campaign_id}")
        if campaign.price_per_lead is None:
            raise InvalidStateError("Campaign price must be set before requesting a deposit")
        if campaign.deposit_status == DepositStatus.PAID:
            raise InvalidStateError("Campaign deposit already paid")
        if campaign.status in (CampaignStatus.COMPLETED, CampaignStatus.CANCELED):
            raise InvalidStateError(f"Cannot request a deposit for a {campaign.status.value} campaign")

        price = campaign.price_per_lead
        amount = price * DEPOSIT_CREDIT_AMOUNT
        stripe_customer_id = await self._ensure_customer(campaign)

        session = await self.gateway.create_checkout_session(
            customer_id=stripe_customer_id,
            amount=amount,
            product_name=f"Deposit - {campaign.name}",
            description=(
                f"Initial deposit for {DEPOSIT_CREDIT_AMOUNT} leads "
                f"at {format_amount(price)} {self.currency.upper()}/lead"
            ),
            metadata={
                "type": CheckoutType.DEPOSIT.value,
                "campaignId": campaign.id,
                "customerId": campaign.customer_id,
                "pricePerLead": format_amount(price),
                "creditAmount": str(DEPOSIT_CREDIT_AMOUNT),
            },
            success_url=self._success_url("deposit"),
            cancel_url=self._cancel_url("deposit", campaign.id),
            expires_at=self._expires_at(),
        )

        async with self.repository.transaction() as tx:
            locked = await tx.get_campaign(campaign.id, for_update=True)
            if locked and locked.deposit_status != DepositStatus.PAID:
                await tx.update_campaign(campaign.id, {
                    "deposit_status": DepositStatus.CHECKOUT_CREATED,
                    "deposit_checkout_id": session.session_id,
                })
            await self._record_pending_payment(
                tx, campaign, PaymentType.DEPOSIT, session, DEPOSIT_CREDIT_AMOUNT, price
            )

        logger.info(f"Deposit checkout {session.session_id} created for campaign {campaign.id} ({amount})")
        return CheckoutResponse(
            session_id=session.session_id,
            url=session.url,
            amount=amount,
            currency=self.currency,
            credit_amount=DEPOSIT_CREDIT_AMOUNT,
        )

    # ====================
    # Recharge
    # ====================

    async def create_recharge_checkout(
        self,
        campaign_id: str,
        customer_id: str,
        lead_count: int,
        pending_lead_id: Optional[str] = None,
    ) -> CheckoutResponse:
        """
        Start a credit recharge. With pending_lead_id the lead is reserved
        and revealed automatically once the recharge is paid.
        """
        if lead_count not in RECHARGE_BUNDLES:
            raise ValueError(f"lead_count must be one of {list(RECHARGE_BUNDLES)}")

        campaign = await self.repository.get_campaign(campaign_id)
        if not campaign:
            raise NotFoundError(f"Campaign not found: {campaign_id}")
        if campaign.customer_id != customer_id:
            raise AccessDeniedError("Access denied to this campaign")
        if campaign.price_per_lead is None:
            raise InvalidStateError("Campaign pricing not set")
        if campaign.deposit_status != DepositStatus.PAID:
            raise InvalidStateError("Campaign deposit must be paid before recharging credits")

        if pending_lead_id:
            lead = await self.repository.get_lead(pending_lead_id)
            if not lead:
                raise NotFoundError(f"Lead not found: {pending_lead_id}")
            if lead.customer_id != customer_id:
                raise AccessDeniedError("Access denied to this lead")
            if lead.campaign_id != campaign.id:
                raise InvalidStateError("Lead does not belong to this campaign")
            if lead.is_revealed:
                raise InvalidStateError("Lead already unlocked")

        price = campaign.price_per_lead
        amount = price * lead_count
        stripe_customer_id = await self._ensure_customer(campaign)

        session = await self.gateway.create_checkout_session(
            customer_id=stripe_customer_id,
            amount=amount,
            product_name=f"Credit recharge - {campaign.name}",
            description=f"{lead_count} lead credits at {format_amount(price)} {self.currency.upper()}/lead",
            metadata={
                "type": CheckoutType.CREDIT_RECHARGE.value,
                "campaignId": campaign.id,
                "customerId": customer_id,
                "pricePerLead": format_amount(price),
                "creditAmount": str(lead_count),
                "pendingLeadId": pending_lead_id or "",
            },
            success_url=self._success_url("recharge"),
            cancel_url=self._cancel_url("recharge", campaign.id),
            expires_at=self._expires_at(),
        )

        async with self.repository.transaction() as tx:
            recorded = await self._record_pending_payment(
                tx, campaign, PaymentType.CREDIT_RECHARGE, session, lead_count, price,
                extra={"pendingLeadId": pending_lead_id} if pending_lead_id else None,
            )
            if pending_lead_id and not recorded:
                await self._unlock_already_paid(tx, session.session_id, pending_lead_id, customer_id)
            elif pending_lead_id:
                await self.registry.reserve(
                    lead_id=pending_lead_id,
                    customer_id=customer_id,
                    campaign_id=campaign.id,
                    checkout_session_id=session.session_id,
                    tx=tx,
                )

        logger.info(
            f"Recharge checkout {session.session_id} created for campaign {campaign.id}: "
            f"{lead_count} credits ({amount})"
        )
        return CheckoutResponse(
            session_id=session.session_id,
            url=session.url,
            amount=amount,
            currency=self.currency,
            credit_amount=lead_count,
        )

    # ====================
    # Helpers
    # ====================

    async def _ensure_customer(self, campaign: Campaign) -> str:
        customer = await self.repository.get_customer(campaign.customer_id)
        if not customer:
            raise NotFoundError(f"Customer not found: {campaign.customer_id}")

        stripe_customer_id = await self.gateway.ensure_customer(
            email=customer.email,
            name=customer.company_name or customer.name,
            existing_id=customer.stripe_customer_id,
        )
        if stripe_customer_id != customer.stripe_customer_id:
            await self.repository.set_stripe_customer_id(customer.id, stripe_customer_id)
        return stripe_customer_id

    async def _record_pending_payment(
        self,
        tx: BillingRepositoryProtocol,
        campaign: Campaign,
        payment_type: PaymentType,
        session: CheckoutSession,
        credit_amount: int,
        price: float,
        extra: Optional[Dict[str, str]] = None,
    ) -> bool:
        """Insert the PENDING row; False when the webhook already recorded it"""
        metadata = {"creditAmount": credit_amount, "pricePerLead": price}
        metadata.update(extra or {})
        inserted = await tx.insert_payment({
            "id": f"pay_{uuid.uuid4().hex[:16]}",
            "customer_id": campaign.customer_id,
            "campaign_id": campaign.id,
            "type": payment_type,
            "amount": session.amount,
            "currency": self.currency,
            "status": PaymentStatus.PENDING,
            "checkout_session_id": session.session_id,
            "metadata": metadata,
        })
        if inserted is None:
            logger.info(f"Payment for session {session.session_id} already recorded by webhook")
            return False
        return True

    async def _unlock_already_paid(
        self,
        tx: BillingRepositoryProtocol,
        session_id: str,
        lead_id: str,
        customer_id: str,
    ) -> None:
        """Reveal the pending lead of a recharge the webhook has already applied"""
        payment = await tx.get_payment_by_session(session_id)
        if payment is None or payment.status != PaymentStatus.SUCCEEDED:
            logger.warning(f"Recharge {session_id} recorded early but not succeeded; lead {lead_id} left locked")
            return
        try:
            async with tx.savepoint():
                unlocked = await self.ledger.reveal_in_transaction(tx, lead_id, customer_id)
            logger.info(
                f"Unlocked lead {lead_id} of early-paid recharge {session_id} "
                f"({unlocked.remaining_credits} credits left)"
            )
        except LeadBillingError as e:
            logger.info(f"Unlock of lead {lead_id} after early recharge {session_id} skipped: {e.message}")

    def _success_url(self, checkout_kind: str) -> str:
        return f"{self.frontend_url}/payment/success?session_id={{CHECKOUT_SESSION_ID}}&type={checkout_kind}"

    def _cancel_url(self, checkout_kind: str, campaign_id: str) -> str:
        return f"{self.frontend_url}/payment/cancel?type={checkout_kind}&campaign={campaign_id}"

    def _expires_at(self) -> datetime:
        return datetime.now(timezone.utc) + self.checkout_expiry
