"""
Lead Billing Service Contracts

This module provides the contracts for lead_billing_service testing.
"""

from .data_contract import (
    # Response Contracts
    RechargeOptionContract,
    UnlockSuccessContract,
    PaymentRequiredContract,
    CheckoutResponseContract,
    CampaignCreditsContract,
    HealthCheckResponseContract,
    ErrorResponseContract,
    # Factory
    LeadBillingTestDataFactory,
)

__all__ = [
    # Response Contracts
    "RechargeOptionContract",
    "UnlockSuccessContract",
    "PaymentRequiredContract",
    "CheckoutResponseContract",
    "CampaignCreditsContract",
    "HealthCheckResponseContract",
    "ErrorResponseContract",
    # Factory
    "LeadBillingTestDataFactory",
]
