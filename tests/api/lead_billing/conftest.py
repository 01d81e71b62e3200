"""
API Test Fixtures for Lead Billing Service

The app is exercised in-process; get_components is overridden with
services wired over the in-memory repository and mock gateway.
"""

from typing import Dict

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from microservices.lead_billing_service.factory import build_components
from microservices.lead_billing_service.main import app, get_components
from microservices.lead_billing_service.models import Campaign, Customer
from tests.component.mocks import InMemoryBillingRepository, MockPaymentGateway
from tests.contracts.lead_billing.data_contract import LeadBillingTestDataFactory

ADMIN_ID = "admin_api_test"


@pytest.fixture
def billing_repository() -> InMemoryBillingRepository:
    return InMemoryBillingRepository()


@pytest.fixture
def payment_gateway() -> MockPaymentGateway:
    return MockPaymentGateway()


@pytest.fixture
def components(billing_repository, payment_gateway):
    return build_components(
        repository=billing_repository,
        gateway=payment_gateway,
        frontend_url="https://app.example.test",
    )


@pytest_asyncio.fixture
async def http_client(components):
    """In-process client against the app with mocked components"""
    app.dependency_overrides[get_components] = lambda: components
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.pop(get_components, None)


@pytest.fixture
def customer(billing_repository) -> Customer:
    return billing_repository.add_customer(LeadBillingTestDataFactory.make_customer())


@pytest.fixture
def customer_headers(customer) -> Dict[str, str]:
    return {"X-User-Id": customer.id}


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return {"X-User-Id": ADMIN_ID, "X-User-Role": "admin"}


@pytest.fixture
def funded_campaign(billing_repository, customer) -> Campaign:
    return billing_repository.add_campaign(
        LeadBillingTestDataFactory.make_funded_campaign(customer.id, price_per_lead=30, credit_balance=2)
    )


@pytest.fixture
def factory():
    return LeadBillingTestDataFactory
