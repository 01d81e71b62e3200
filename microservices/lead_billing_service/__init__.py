"""
Lead Billing Service

Prepaid lead credit monetization for outreach campaigns.

Features:
- Tiered TAM pricing analysis and admin pricing gate
- Campaign lifecycle with deposit-driven activation
- Atomic credit consumption on lead unlock
- Pending unlock reservations tied to recharge checkouts
- Stripe hosted checkout for deposits and recharges
- Idempotent webhook reconciliation
"""

__version__ = "1.0.0"
