"""
Webhook Reconciler

Applies verified checkout events to the ledger and campaign state. Events
arrive at least once and in any order, so every handler is idempotent:

- The payment row of a checkout session is the idempotency key. A completed
  event first claims it (PENDING -> SUCCEEDED); an event whose row is already
  SUCCEEDED changes nothing.
- Deposit completion sets an absolute balance and never re-activates a
  campaign whose deposit is already PAID.
- Expired events only cancel PENDING rows, only fail a deposit that is not
  PAID, and only drop the reservation still tied to that session.

Missing rows (payment, reservation, campaign) are logged and ignored.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from .credit_ledger import CreditLedger
from .models import (
    Campaign,
    CampaignStatus,
    CheckoutType,
    DepositStatus,
    GatewayEvent,
    GatewayEventType,
    PaymentStatus,
    PaymentType,
    WebhookAck,
)
from .pending_unlock_registry import PendingUnlockRegistry
from .protocols import (
    BillingRepositoryProtocol,
    InvalidStateError,
    LeadBillingError,
    PaymentGatewayProtocol,
)

logger = logging.getLogger(__name__)

PAYMENT_TYPES = {
    CheckoutType.DEPOSIT: PaymentType.DEPOSIT,
    CheckoutType.CREDIT_RECHARGE: PaymentType.CREDIT_RECHARGE,
}


def _parse_checkout_type(value: Optional[str]) -> Optional[CheckoutType]:
    try:
        return CheckoutType(value)
    except ValueError:
        return None


def _parse_positive_int(value: Optional[str]) -> Optional[int]:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


class WebhookReconciler:

    def __init__(
        self,
        repository: BillingRepositoryProtocol,
        gateway: PaymentGatewayProtocol,
        ledger: CreditLedger,
        registry: PendingUnlockRegistry,
        currency: str = "eur",
    ):
        self.repository = repository
        self.gateway = gateway
        self.ledger = ledger
        self.registry = registry
        self.currency = currency

    async def handle_webhook(self, payload: bytes, signature: str) -> WebhookAck:
        """Verify a raw provider webhook and apply it"""
        event = self.gateway.construct_event(payload, signature)
        logger.info(f"Received webhook {event.type} ({event.id})")
        await self.handle_event(event)
        return WebhookAck(received=True)

    async def handle_event(self, event: GatewayEvent) -> None:
        if event.type == GatewayEventType.CHECKOUT_COMPLETED.value:
            await self.on_checkout_completed(event)
        elif event.type == GatewayEventType.CHECKOUT_EXPIRED.value:
            await self.on_checkout_expired(event)
        else:
            logger.debug(f"Ignoring webhook event type {event.type}")

    # ====================
    # checkout.session.completed
    # ====================

    async def on_checkout_completed(self, event: GatewayEvent) -> None:
        metadata = event.metadata
        checkout_type = _parse_checkout_type(metadata.get("type"))
        campaign_id = metadata.get("campaignId")
        credit_amount = _parse_positive_int(metadata.get("creditAmount"))

        if not event.session_id or not campaign_id or checkout_type is None or credit_amount is None:
            logger.warning(f"Ignoring completed checkout {event.session_id} with unusable metadata: {metadata}")
            return

        async with self.repository.transaction() as tx:
            campaign = await tx.get_campaign(campaign_id, for_update=True)
            if not campaign:
                logger.warning(f"Completed checkout {event.session_id} references unknown campaign {campaign_id}")
                return

            if not await self._claim_payment(tx, event, campaign, checkout_type, credit_amount):
                return

            if checkout_type == CheckoutType.DEPOSIT:
                await self._apply_deposit(tx, campaign, event.session_id, credit_amount)
            else:
                await self._apply_recharge(tx, campaign, credit_amount, metadata.get("pendingLeadId") or None)

    async def _claim_payment(
        self,
        tx: BillingRepositoryProtocol,
        event: GatewayEvent,
        campaign: Campaign,
        checkout_type: CheckoutType,
        credit_amount: int,
    ) -> bool:
        """
        Mark the session's payment SUCCEEDED.

        Returns False when the event was already applied or the session was
        canceled, True when the caller should apply its effects.
        """
        claimed = await tx.transition_payment(
            event.session_id, PaymentStatus.PENDING, PaymentStatus.SUCCEEDED, event.payment_intent_id
        )
        if claimed:
            return True

        existing = await tx.get_payment_by_session(event.session_id)
        if existing is None:
            # Webhook beat the checkout-creation insert
            amount = (event.amount_total or 0) / 100
            await tx.insert_payment({
                "id": f"pay_{uuid.uuid4().hex[:16]}",
                "customer_id": event.metadata.get("customerId") or campaign.customer_id,
                "campaign_id": campaign.id,
                "type": PAYMENT_TYPES[checkout_type],
                "amount": amount,
                "currency": event.currency or self.currency,
                "status": PaymentStatus.SUCCEEDED,
                "checkout_session_id": event.session_id,
                "payment_intent_id": event.payment_intent_id,
                "metadata": {"creditAmount": credit_amount, "recordedFrom": "webhook"},
            })
            logger.warning(f"No payment row for session {event.session_id}; recorded from webhook")
            return True

        if existing.status == PaymentStatus.SUCCEEDED:
            logger.info(f"Checkout {event.session_id} already reconciled; skipping redelivery")
        else:
            logger.warning(
                f"Completed event for checkout {event.session_id} whose payment is "
                f"{existing.status.value}; skipping"
            )
        return False

    async def _apply_deposit(
        self,
        tx: BillingRepositoryProtocol,
        campaign: Campaign,
        session_id: str,
        credit_amount: int,
    ) -> None:
        if campaign.deposit_status == DepositStatus.PAID:
            logger.info(f"Deposit of campaign {campaign.id} already paid; nothing to apply")
            return
        if campaign.price_per_lead is None:
            raise InvalidStateError(f"Deposit paid for campaign {campaign.id} without an approved price")

        now = datetime.now(timezone.utc)
        fields = {
            "deposit_status": DepositStatus.PAID,
            "deposit_paid_at": now,
            "deposit_checkout_id": session_id,
            "credit_balance": credit_amount,
        }
        if campaign.status in (CampaignStatus.COMPLETED, CampaignStatus.CANCELED):
            logger.warning(f"Deposit paid for {campaign.status.value} campaign {campaign.id}; not activating")
        else:
            fields["status"] = CampaignStatus.ACTIVE
            fields["started_at"] = campaign.started_at or now

        await tx.update_campaign(campaign.id, fields)
        logger.info(f"Deposit paid for campaign {campaign.id}: {credit_amount} credits, campaign active")

    async def _apply_recharge(
        self,
        tx: BillingRepositoryProtocol,
        campaign: Campaign,
        credit_amount: int,
        pending_lead_id: Optional[str],
    ) -> None:
        balance = await tx.add_credits(campaign.id, credit_amount)
        logger.info(f"Recharged campaign {campaign.id} with {credit_amount} credits (balance {balance})")

        if not pending_lead_id:
            return

        reservation = await self.registry.find_active(pending_lead_id, tx=tx)
        if reservation is None:
            logger.info(f"No active reservation for lead {pending_lead_id}; credits kept on campaign")
        elif reservation.campaign_id != campaign.id:
            logger.warning(
                f"Reservation for lead {pending_lead_id} belongs to campaign "
                f"{reservation.campaign_id}, not {campaign.id}; skipping auto-unlock"
            )
        else:
            try:
                async with tx.savepoint():
                    unlocked = await self.ledger.reveal_in_transaction(
                        tx, pending_lead_id, reservation.customer_id
                    )
                logger.info(
                    f"Auto-unlocked lead {pending_lead_id} after recharge "
                    f"({unlocked.remaining_credits} credits left)"
                )
            except LeadBillingError as e:
                logger.info(f"Auto-unlock of lead {pending_lead_id} skipped: {e.message}")

        await self.registry.release(pending_lead_id, tx=tx)

    # ====================
    # checkout.session.expired
    # ====================

    async def on_checkout_expired(self, event: GatewayEvent) -> None:
        if not event.session_id:
            logger.warning("Ignoring expired checkout event without session id")
            return

        metadata = event.metadata
        checkout_type = _parse_checkout_type(metadata.get("type"))
        campaign_id = metadata.get("campaignId")
        pending_lead_id = metadata.get("pendingLeadId") or None

        async with self.repository.transaction() as tx:
            campaign = await tx.get_campaign(campaign_id, for_update=True) if campaign_id else None

            canceled = await tx.transition_payment(
                event.session_id, PaymentStatus.PENDING, PaymentStatus.CANCELED
            )
            if canceled:
                logger.info(f"Checkout {event.session_id} expired; payment canceled")
            else:
                logger.info(f"Checkout {event.session_id} expired with no pending payment")

            if (
                checkout_type == CheckoutType.DEPOSIT
                and campaign is not None
                and campaign.deposit_status != DepositStatus.PAID
                and campaign.deposit_checkout_id in (None, event.session_id)
            ):
                await tx.update_campaign(campaign.id, {"deposit_status": DepositStatus.FAILED})
                logger.info(f"Deposit checkout of campaign {campaign.id} expired; deposit FAILED")

            if pending_lead_id:
                released = await self.registry.release(
                    pending_lead_id, checkout_session_id=event.session_id, tx=tx
                )
                if released:
                    logger.info(f"Released pending unlock of lead {pending_lead_id}")
