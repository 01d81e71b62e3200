"""
Stripe Payment Gateway

Hosted checkout sessions, customer lookup and webhook verification.
Stripe failures surface as GatewayError and are not retried here.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import stripe

from .models import CheckoutSession, GatewayEvent
from .protocols import GatewayError, SignatureInvalidError

logger = logging.getLogger(__name__)


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


class StripePaymentGateway:
    """PaymentGatewayProtocol implementation backed by the Stripe SDK"""

    def __init__(
        self,
        secret_key: Optional[str],
        webhook_secret: Optional[str],
        currency: str = "eur",
    ):
        if secret_key:
            stripe.api_key = secret_key
            if secret_key.startswith("sk_test_"):
                logger.info("Stripe configured in TEST mode")
            else:
                logger.warning("Stripe configured in LIVE mode")
        else:
            logger.warning("STRIPE_SECRET_KEY not set; checkout creation will fail")
        self.webhook_secret = webhook_secret
        self.currency = currency

    async def ensure_customer(
        self, email: str, name: Optional[str] = None, existing_id: Optional[str] = None
    ) -> str:
        if existing_id:
            return existing_id
        try:
            existing = stripe.Customer.list(email=email, limit=1)
            if existing.data:
                return existing.data[0].id
            customer = stripe.Customer.create(email=email, name=name)
        except stripe.StripeError as e:
            logger.error(f"Stripe customer lookup failed for {email}: {e}")
            raise GatewayError(f"Payment provider error: {e.user_message or str(e)}")
        logger.info(f"Created Stripe customer {customer.id} for {email}")
        return customer.id

    async def create_checkout_session(
        self,
        customer_id: str,
        amount: float,
        product_name: str,
        description: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
        expires_at: datetime,
    ) -> CheckoutSession:
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                payment_method_types=["card"],
                customer=customer_id,
                line_items=[
                    {
                        "price_data": {
                            "currency": self.currency,
                            "unit_amount": to_minor_units(amount),
                            "product_data": {
                                "name": product_name,
                                "description": description,
                            },
                        },
                        "quantity": 1,
                    }
                ],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                expires_at=int(expires_at.timestamp()),
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout creation failed ({metadata.get('type')}): {e}")
            raise GatewayError(f"Payment provider error: {e.user_message or str(e)}")

        logger.info(f"Created checkout session {session.id} for {metadata.get('type')} of {amount}")
        return CheckoutSession(
            session_id=session.id,
            url=session.url,
            amount=amount,
            currency=self.currency,
            expires_at=expires_at,
        )

    def construct_event(self, payload: bytes, signature: str) -> GatewayEvent:
        if not signature:
            raise SignatureInvalidError("Missing stripe-signature header")
        if not self.webhook_secret:
            raise SignatureInvalidError("Webhook secret not configured")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise SignatureInvalidError("Invalid webhook signature")
        except ValueError as e:
            logger.warning(f"Malformed webhook payload: {e}")
            raise SignatureInvalidError("Invalid webhook payload")

        return self._normalize(event)

    @staticmethod
    def _normalize(event: Any) -> GatewayEvent:
        obj = event["data"]["object"]
        metadata = obj.get("metadata") or {}
        customer = obj.get("customer")
        payment_intent = obj.get("payment_intent")
        return GatewayEvent(
            id=event["id"],
            type=event["type"],
            session_id=obj.get("id"),
            payment_intent_id=payment_intent if isinstance(payment_intent, str) else None,
            customer_id=customer if isinstance(customer, str) else None,
            amount_total=obj.get("amount_total"),
            currency=obj.get("currency"),
            metadata={key: str(value) for key, value in metadata.items()},
        )
