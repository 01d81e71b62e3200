"""
Lead Billing Service Factory

Factory for creating the billing components with real dependencies.
This is the ONLY module that imports concrete implementations.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from core.config_manager import ConfigManager

from .billing_repository import BillingRepository
from .campaign_service import CampaignService
from .credit_ledger import CreditLedger
from .payment_service import PaymentService
from .pending_unlock_registry import PendingUnlockRegistry
from .pricing import TieredPricingStrategy
from .protocols import BillingRepositoryProtocol, PaymentGatewayProtocol, PricingStrategyProtocol
from .stripe_gateway import StripePaymentGateway
from .webhook_reconciler import WebhookReconciler

logger = logging.getLogger(__name__)


@dataclass
class LeadBillingComponents:
    """Wired services sharing one repository"""
    repository: BillingRepositoryProtocol
    campaigns: CampaignService
    ledger: CreditLedger
    registry: PendingUnlockRegistry
    payments: PaymentService
    reconciler: WebhookReconciler


def build_components(
    repository: BillingRepositoryProtocol,
    gateway: PaymentGatewayProtocol,
    pricing_strategy: Optional[PricingStrategyProtocol] = None,
    frontend_url: str = "http://localhost:3000",
    currency: str = "eur",
    checkout_expiry_hours: int = 24,
    pending_unlock_ttl_hours: int = 24,
) -> LeadBillingComponents:
    """Wire services around the given repository and gateway"""
    registry = PendingUnlockRegistry(repository, ttl_hours=pending_unlock_ttl_hours)
    ledger = CreditLedger(repository, currency=currency)
    return LeadBillingComponents(
        repository=repository,
        campaigns=CampaignService(repository, pricing_strategy or TieredPricingStrategy()),
        ledger=ledger,
        registry=registry,
        payments=PaymentService(
            repository,
            gateway,
            registry,
            ledger,
            frontend_url=frontend_url,
            currency=currency,
            checkout_expiry_hours=checkout_expiry_hours,
        ),
        reconciler=WebhookReconciler(repository, gateway, ledger, registry, currency=currency),
    )


def create_lead_billing_components(
    config: Optional[ConfigManager] = None,
    repository: Optional[BillingRepositoryProtocol] = None,
    gateway: Optional[PaymentGatewayProtocol] = None,
) -> LeadBillingComponents:
    """
    Create the lead billing components with all real dependencies

    Args:
        config: Optional config manager (creates default if not provided)
        repository: Optional repository override
        gateway: Optional payment gateway override

    Returns:
        Fully wired LeadBillingComponents
    """
    if config is None:
        config = ConfigManager("lead_billing_service")
    payment_config = config.get_service_config().payment

    if repository is None:
        repository = BillingRepository(config=config)

    if gateway is None:
        gateway = StripePaymentGateway(
            secret_key=payment_config.stripe_secret_key,
            webhook_secret=payment_config.stripe_webhook_secret,
            currency=payment_config.currency,
        )

    logger.info(f"Lead billing components wired (currency={payment_config.currency})")
    return build_components(
        repository=repository,
        gateway=gateway,
        frontend_url=payment_config.frontend_url,
        currency=payment_config.currency,
        checkout_expiry_hours=payment_config.checkout_expiry_hours,
        pending_unlock_ttl_hours=payment_config.pending_unlock_ttl_hours,
    )


__all__ = ["LeadBillingComponents", "build_components", "create_lead_billing_components"]
