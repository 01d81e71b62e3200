"""
Component Test Mocks

Shared mock implementations for component testing.
These mocks replace real I/O dependencies (database, payment provider).
"""

from .billing_mock import InMemoryBillingRepository
from .gateway_mock import VALID_SIGNATURE, MockPaymentGateway

__all__ = [
    'InMemoryBillingRepository',
    'MockPaymentGateway',
    'VALID_SIGNATURE',
]
