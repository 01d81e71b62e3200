"""
Lead Billing Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from datetime import datetime
from typing import Any, AsyncContextManager, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from .models import (
    Campaign,
    CampaignStatus,
    CheckoutSession,
    Customer,
    GatewayEvent,
    Lead,
    MarketDifficulty,
    Payment,
    PaymentStatus,
    PendingLeadUnlock,
    PricingAnalysis,
    PriceValidation,
)


# ====================
# Repository Protocol
# ====================


@runtime_checkable
class BillingRepositoryProtocol(Protocol):
    """
    Repository / unit-of-work interface for billing state.

    `transaction()` yields a repository bound to one database transaction;
    every read and write made through it commits or rolls back together.
    `savepoint()` nests a rollback scope inside an open transaction.
    `for_update=True` reads take a row lock for the rest of the transaction.
    """

    def transaction(self) -> AsyncContextManager["BillingRepositoryProtocol"]:
        ...

    def savepoint(self) -> AsyncContextManager[None]:
        ...

    # Customers

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        ...

    async def set_stripe_customer_id(self, customer_id: str, stripe_customer_id: str) -> None:
        ...

    # Campaigns

    async def create_campaign(self, campaign_data: Dict[str, Any]) -> Campaign:
        ...

    async def get_campaign(self, campaign_id: str, for_update: bool = False) -> Optional[Campaign]:
        ...

    async def list_campaigns(
        self,
        customer_id: Optional[str] = None,
        statuses: Optional[List[CampaignStatus]] = None,
        price_unset: bool = False,
    ) -> List[Campaign]:
        ...

    async def update_campaign(self, campaign_id: str, fields: Dict[str, Any]) -> Optional[Campaign]:
        ...

    async def delete_campaign(self, campaign_id: str) -> bool:
        ...

    async def consume_credit(self, campaign_id: str) -> Optional[int]:
        """
        Decrement credit_balance by one and increment total_paid, only if
        credit_balance > 0.

        Returns:
            Remaining balance, or None when no credit was available
        """
        ...

    async def add_credits(self, campaign_id: str, amount: int) -> int:
        """Increment credit_balance; returns the new balance"""
        ...

    # Leads

    async def get_lead(self, lead_id: str, for_update: bool = False) -> Optional[Lead]:
        ...

    async def list_leads(self, customer_id: str, offset: int, limit: int) -> Tuple[List[Lead], int]:
        ...

    async def reveal_lead(self, lead_id: str, paid_amount: float, revealed_at: datetime) -> Optional[Lead]:
        """
        Reveal a lead only if it is not revealed yet.

        Returns:
            Updated lead, or None when it was already revealed
        """
        ...

    # Payments

    async def insert_payment(self, payment_data: Dict[str, Any]) -> Optional[Payment]:
        """
        Insert a payment row. A row with the same checkout_session_id
        already present wins; returns None in that case.
        """
        ...

    async def get_payment_by_session(self, checkout_session_id: str) -> Optional[Payment]:
        ...

    async def transition_payment(
        self,
        checkout_session_id: str,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
        payment_intent_id: Optional[str] = None,
    ) -> Optional[Payment]:
        """Move a payment between statuses; None when no row was in from_status"""
        ...

    # Pending unlocks

    async def upsert_pending_unlock(self, unlock_data: Dict[str, Any]) -> PendingLeadUnlock:
        ...

    async def get_pending_unlock(self, lead_id: str, for_update: bool = False) -> Optional[PendingLeadUnlock]:
        ...

    async def delete_pending_unlock(self, lead_id: str, checkout_session_id: Optional[str] = None) -> bool:
        ...

    async def delete_expired_pending_unlocks(self, now: datetime) -> int:
        ...


# ====================
# Collaborator Protocols
# ====================


@runtime_checkable
class PricingStrategyProtocol(Protocol):
    """Swappable pricing formula"""

    def analyze(self, estimated_tam: int, market_difficulty: MarketDifficulty) -> PricingAnalysis:
        ...

    def validate_custom_price(
        self, price: float, estimated_tam: int, market_difficulty: MarketDifficulty
    ) -> PriceValidation:
        ...


@runtime_checkable
class PaymentGatewayProtocol(Protocol):
    """Hosted checkout provider"""

    async def ensure_customer(
        self, email: str, name: Optional[str] = None, existing_id: Optional[str] = None
    ) -> str:
        """Find a provider customer by email or create one; returns its id"""
        ...

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
        ...

    def construct_event(self, payload: bytes, signature: str) -> GatewayEvent:
        """Verify the signature and normalize the event"""
        ...


# ====================
# Custom Exceptions
# ====================


class LeadBillingError(Exception):
    """Base exception for lead billing errors"""

    code = "LEAD_BILLING_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LeadBillingError):
    """Raised when a campaign, lead or customer does not exist"""

    code = "NOT_FOUND"


class AccessDeniedError(LeadBillingError):
    """Raised when the resource exists but belongs to another customer"""

    code = "ACCESS_DENIED"


class InvalidStateError(LeadBillingError):
    """Raised when an operation is not allowed in the current state"""

    code = "INVALID_STATE"


class InsufficientCreditsError(InvalidStateError):
    """Raised inside an unlock transaction when the campaign has no credit left"""

    code = "INSUFFICIENT_CREDITS"

    def __init__(self, message: str, campaign_id: str, price_per_lead: float):
        super().__init__(message)
        self.campaign_id = campaign_id
        self.price_per_lead = price_per_lead


class SignatureInvalidError(LeadBillingError):
    """Raised when a webhook payload fails verification"""

    code = "SIGNATURE_INVALID"


class GatewayError(LeadBillingError):
    """Raised when the payment provider call fails"""

    code = "GATEWAY_ERROR"


__all__ = [
    "BillingRepositoryProtocol",
    "PricingStrategyProtocol",
    "PaymentGatewayProtocol",
    "LeadBillingError",
    "NotFoundError",
    "AccessDeniedError",
    "InvalidStateError",
    "InsufficientCreditsError",
    "SignatureInvalidError",
    "GatewayError",
]
