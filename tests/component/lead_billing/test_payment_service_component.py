"""
Payment Service Component Tests

Deposit and recharge checkout creation against the mock gateway.

Usage:
    pytest tests/component/lead_billing/test_payment_service_component.py -v
"""

import pytest

from microservices.lead_billing_service.models import (
    CampaignStatus,
    DepositStatus,
    PaymentStatus,
    PaymentType,
)
from microservices.lead_billing_service.protocols import (
    AccessDeniedError,
    GatewayError,
    InvalidStateError,
    NotFoundError,
)
from tests.contracts.lead_billing.data_contract import LeadBillingTestDataFactory


# =============================================================================
# Deposit checkout
# =============================================================================


@pytest.mark.component
@pytest.mark.asyncio
class TestDepositCheckout:

    async def test_deposit_is_two_credits_at_campaign_price(
        self, payment_service, payment_gateway, priced_unpaid_campaign
    ):
        checkout = await payment_service.create_deposit_checkout(priced_unpaid_campaign.id)

        assert checkout.amount == 60
        assert checkout.credit_amount == 2
        assert checkout.currency == "eur"
        assert checkout.url.endswith(checkout.session_id)

        session = payment_gateway.sessions[checkout.session_id]
        assert session["amount"] == 60
        assert session["metadata"] == {
            "type": "deposit",
            "campaignId": priced_unpaid_campaign.id,
            "customerId": priced_unpaid_campaign.customer_id,
            "pricePerLead": "30",
            "creditAmount": "2",
        }
        assert session["success_url"] == (
            f"{payment_service.frontend_url}/payment/success?session_id={{CHECKOUT_SESSION_ID}}&type=deposit"
        )
        assert session["cancel_url"] == (
            f"{payment_service.frontend_url}/payment/cancel?type=deposit&campaign={priced_unpaid_campaign.id}"
        )

    async def test_deposit_marks_checkout_created_and_records_pending_payment(
        self, payment_service, billing_repository, priced_unpaid_campaign
    ):
        checkout = await payment_service.create_deposit_checkout(priced_unpaid_campaign.id)

        campaign = billing_repository.campaigns[priced_unpaid_campaign.id]
        assert campaign.deposit_status == DepositStatus.CHECKOUT_CREATED
        assert campaign.deposit_checkout_id == checkout.session_id
        assert campaign.credit_balance == 0

        payment = await billing_repository.get_payment_by_session(checkout.session_id)
        assert payment.type == PaymentType.DEPOSIT
        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == 60

    async def test_provider_customer_id_is_saved_and_reused(
        self, payment_service, payment_gateway, billing_repository, priced_unpaid_campaign
    ):
        await payment_service.create_deposit_checkout(priced_unpaid_campaign.id)
        stripe_id = billing_repository.customers[priced_unpaid_campaign.customer_id].stripe_customer_id
        assert stripe_id.startswith("cus_")

        await payment_service.create_deposit_checkout(priced_unpaid_campaign.id)

        ensure_calls = [c for c in payment_gateway.method_calls if c[0] == "ensure_customer"]
        assert ensure_calls[-1][3] == stripe_id

    async def test_deposit_requires_price(self, payment_service, billing_repository, customer):
        campaign = billing_repository.add_campaign(LeadBillingTestDataFactory.make_campaign(customer.id))

        with pytest.raises(InvalidStateError, match="price"):
            await payment_service.create_deposit_checkout(campaign.id)

    async def test_deposit_already_paid(self, payment_service, funded_campaign):
        with pytest.raises(InvalidStateError, match="already paid"):
            await payment_service.create_deposit_checkout(funded_campaign.id)

    async def test_deposit_for_canceled_campaign(self, payment_service, billing_repository, priced_unpaid_campaign):
        billing_repository.set_campaign_fields(priced_unpaid_campaign.id, status=CampaignStatus.CANCELED)

        with pytest.raises(InvalidStateError):
            await payment_service.create_deposit_checkout(priced_unpaid_campaign.id)

    async def test_deposit_unknown_campaign(self, payment_service):
        with pytest.raises(NotFoundError):
            await payment_service.create_deposit_checkout("cmp_missing")

    async def test_gateway_failure_writes_nothing(
        self, payment_service, payment_gateway, billing_repository, priced_unpaid_campaign
    ):
        payment_gateway.fail_next()

        with pytest.raises(GatewayError):
            await payment_service.create_deposit_checkout(priced_unpaid_campaign.id)

        assert billing_repository.payments == []
        assert billing_repository.campaigns[priced_unpaid_campaign.id].deposit_status == DepositStatus.NONE


# =============================================================================
# Recharge checkout
# =============================================================================


@pytest.mark.component
@pytest.mark.asyncio
class TestRechargeCheckout:

    @pytest.mark.parametrize("lead_count,amount", [(5, 150), (10, 300)])
    async def test_recharge_bundle_amount(
        self, payment_service, payment_gateway, billing_repository, funded_campaign, lead_count, amount
    ):
        checkout = await payment_service.create_recharge_checkout(
            funded_campaign.id, funded_campaign.customer_id, lead_count=lead_count
        )

        assert checkout.amount == amount
        assert checkout.credit_amount == lead_count
        metadata = payment_gateway.sessions[checkout.session_id]["metadata"]
        assert metadata["type"] == "credit_recharge"
        assert metadata["creditAmount"] == str(lead_count)
        assert metadata["pendingLeadId"] == ""

        payment = await billing_repository.get_payment_by_session(checkout.session_id)
        assert payment.type == PaymentType.CREDIT_RECHARGE
        assert payment.status == PaymentStatus.PENDING
        assert billing_repository.campaigns[funded_campaign.id].credit_balance == 2

    async def test_recharge_with_pending_lead_reserves_it(
        self, payment_service, payment_gateway, billing_repository, funded_campaign, make_lead
    ):
        lead = make_lead(funded_campaign)

        checkout = await payment_service.create_recharge_checkout(
            funded_campaign.id, funded_campaign.customer_id, lead_count=5, pending_lead_id=lead.id
        )

        assert payment_gateway.sessions[checkout.session_id]["metadata"]["pendingLeadId"] == lead.id
        reservation = billing_repository.pending_unlocks[lead.id]
        assert reservation.checkout_session_id == checkout.session_id
        assert reservation.customer_id == funded_campaign.customer_id
        assert reservation.campaign_id == funded_campaign.id

    async def test_invalid_bundle(self, payment_service, funded_campaign):
        with pytest.raises(ValueError):
            await payment_service.create_recharge_checkout(
                funded_campaign.id, funded_campaign.customer_id, lead_count=7
            )

    async def test_recharge_before_deposit(self, payment_service, priced_unpaid_campaign):
        with pytest.raises(InvalidStateError, match="deposit"):
            await payment_service.create_recharge_checkout(
                priced_unpaid_campaign.id, priced_unpaid_campaign.customer_id, lead_count=5
            )

    async def test_recharge_other_customers_campaign(self, payment_service, funded_campaign, other_customer):
        with pytest.raises(AccessDeniedError):
            await payment_service.create_recharge_checkout(funded_campaign.id, other_customer.id, lead_count=5)

    async def test_pending_lead_from_another_campaign(
        self, payment_service, billing_repository, funded_campaign, customer, make_lead
    ):
        other_campaign = billing_repository.add_campaign(
            LeadBillingTestDataFactory.make_funded_campaign(customer.id)
        )
        lead = make_lead(other_campaign)

        with pytest.raises(InvalidStateError, match="does not belong"):
            await payment_service.create_recharge_checkout(
                funded_campaign.id, customer.id, lead_count=5, pending_lead_id=lead.id
            )

    async def test_pending_lead_already_revealed(
        self, payment_service, billing_repository, funded_campaign, make_lead
    ):
        lead = make_lead(funded_campaign, is_revealed=True)

        with pytest.raises(InvalidStateError, match="already unlocked"):
            await payment_service.create_recharge_checkout(
                funded_campaign.id, funded_campaign.customer_id, lead_count=5, pending_lead_id=lead.id
            )

        assert billing_repository.pending_unlocks == {}

    async def test_unknown_pending_lead(self, payment_service, funded_campaign):
        with pytest.raises(NotFoundError):
            await payment_service.create_recharge_checkout(
                funded_campaign.id, funded_campaign.customer_id, lead_count=5, pending_lead_id="lead_missing"
            )
