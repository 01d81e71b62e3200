#!/usr/bin/env python3
"""Payment provider configuration

Stripe credentials, checkout URLs and the expiry windows of checkout
sessions and pending lead unlocks.
"""
import os
from dataclasses import dataclass
from typing import Optional

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class PaymentConfig:
    """Stripe and checkout settings"""
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    frontend_url: str = "http://localhost:3000"
    currency: str = "eur"

    # Expiry windows
    checkout_expiry_hours: int = 24
    pending_unlock_ttl_hours: int = 24
    pending_unlock_sweep_minutes: int = 60

    @property
    def is_test_mode(self) -> bool:
        return bool(self.stripe_secret_key and self.stripe_secret_key.startswith("sk_test_"))

    @classmethod
    def from_env(cls) -> 'PaymentConfig':
        """Load payment config from environment variables"""
        return cls(
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY"),
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET"),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
            currency=os.getenv("PAYMENT_CURRENCY", "eur").lower(),
            checkout_expiry_hours=_int(os.getenv("CHECKOUT_EXPIRY_HOURS", "24"), 24),
            pending_unlock_ttl_hours=_int(os.getenv("PENDING_UNLOCK_TTL_HOURS", "24"), 24),
            pending_unlock_sweep_minutes=_int(os.getenv("PENDING_UNLOCK_SWEEP_MINUTES", "60"), 60),
        )
