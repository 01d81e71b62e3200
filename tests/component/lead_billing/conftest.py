"""
Lead Billing Service Component Test Fixtures

Wires the real services around:
- InMemoryBillingRepository: in-memory BillingRepositoryProtocol
- MockPaymentGateway: in-memory PaymentGatewayProtocol
"""

from typing import Callable

import pytest

from microservices.lead_billing_service.factory import LeadBillingComponents, build_components
from microservices.lead_billing_service.models import Campaign, Customer, Lead
from tests.component.mocks import InMemoryBillingRepository, MockPaymentGateway
from tests.contracts.lead_billing.data_contract import LeadBillingTestDataFactory

FRONTEND_URL = "https://app.example.test"


@pytest.fixture
def components(
    billing_repository: InMemoryBillingRepository, payment_gateway: MockPaymentGateway
) -> LeadBillingComponents:
    return build_components(
        repository=billing_repository,
        gateway=payment_gateway,
        frontend_url=FRONTEND_URL,
        currency="eur",
    )


@pytest.fixture
def campaign_service(components):
    return components.campaigns


@pytest.fixture
def credit_ledger(components):
    return components.ledger


@pytest.fixture
def payment_service(components):
    return components.payments


@pytest.fixture
def reconciler(components):
    return components.reconciler


@pytest.fixture
def registry(components):
    return components.registry


@pytest.fixture
def customer(billing_repository: InMemoryBillingRepository) -> Customer:
    return billing_repository.add_customer(LeadBillingTestDataFactory.make_customer())


@pytest.fixture
def other_customer(billing_repository: InMemoryBillingRepository) -> Customer:
    return billing_repository.add_customer(LeadBillingTestDataFactory.make_customer())


@pytest.fixture
def funded_campaign(billing_repository: InMemoryBillingRepository, customer: Customer) -> Campaign:
    """ACTIVE campaign at 30/lead with a paid deposit and 2 credits"""
    return billing_repository.add_campaign(
        LeadBillingTestDataFactory.make_funded_campaign(customer.id, price_per_lead=30, credit_balance=2)
    )


@pytest.fixture
def make_lead(billing_repository: InMemoryBillingRepository) -> Callable[..., Lead]:
    def _make(campaign: Campaign, **overrides) -> Lead:
        return billing_repository.add_lead(
            LeadBillingTestDataFactory.make_lead(campaign.id, campaign.customer_id, **overrides)
        )
    return _make


@pytest.fixture
def priced_unpaid_campaign(billing_repository: InMemoryBillingRepository, customer: Customer) -> Campaign:
    """WARMUP campaign at 30/lead waiting for its deposit"""
    return billing_repository.add_campaign(
        LeadBillingTestDataFactory.make_funded_campaign(
            customer.id,
            price_per_lead=30,
            credit_balance=0,
            status="WARMUP",
            deposit_status="NONE",
            deposit_paid_at=None,
            deposit_checkout_id=None,
            started_at=None,
        )
    )
