"""
Pending Unlock Registry Component Tests

Usage:
    pytest tests/component/lead_billing/test_pending_unlock_registry_component.py -v
"""

from datetime import datetime, timedelta, timezone

import pytest

from microservices.lead_billing_service.pending_unlock_registry import PendingUnlockRegistry


class FakeClock:
    def __init__(self):
        self.now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def clocked_registry(billing_repository, clock):
    return PendingUnlockRegistry(billing_repository, ttl_hours=24, clock=clock)


@pytest.mark.component
@pytest.mark.asyncio
class TestPendingUnlockRegistry:

    async def test_reserve_sets_expiry_from_ttl(self, clocked_registry, clock):
        reservation = await clocked_registry.reserve("lead_1", "cust_1", "cmp_1", "cs_1")

        assert reservation.expires_at == clock.now + timedelta(hours=24)

    async def test_reserve_again_replaces_session(self, clocked_registry, billing_repository):
        await clocked_registry.reserve("lead_1", "cust_1", "cmp_1", "cs_1")
        await clocked_registry.reserve("lead_1", "cust_1", "cmp_1", "cs_2")

        assert len(billing_repository.pending_unlocks) == 1
        assert billing_repository.pending_unlocks["lead_1"].checkout_session_id == "cs_2"

    async def test_find_active_ignores_expired(self, clocked_registry, clock):
        await clocked_registry.reserve("lead_1", "cust_1", "cmp_1", "cs_1")

        assert await clocked_registry.find_active("lead_1") is not None
        clock.advance(hours=24)
        assert await clocked_registry.find_active("lead_1") is None

    async def test_release_only_matching_session(self, clocked_registry, billing_repository):
        await clocked_registry.reserve("lead_1", "cust_1", "cmp_1", "cs_2")

        assert await clocked_registry.release("lead_1", checkout_session_id="cs_1") is False
        assert "lead_1" in billing_repository.pending_unlocks
        assert await clocked_registry.release("lead_1", checkout_session_id="cs_2") is True
        assert "lead_1" not in billing_repository.pending_unlocks

    async def test_release_missing_reservation(self, clocked_registry):
        assert await clocked_registry.release("lead_missing") is False

    async def test_sweep_removes_only_expired(self, clocked_registry, billing_repository, clock):
        await clocked_registry.reserve("lead_old", "cust_1", "cmp_1", "cs_1")
        clock.advance(hours=12)
        await clocked_registry.reserve("lead_new", "cust_1", "cmp_1", "cs_2")
        clock.advance(hours=13)

        swept = await clocked_registry.sweep_expired()

        assert swept == 1
        assert list(billing_repository.pending_unlocks) == ["lead_new"]

    async def test_sweep_failure_is_swallowed(self, clocked_registry, billing_repository):
        billing_repository.fail_next("delete_expired_pending_unlocks")

        assert await clocked_registry.sweep_expired() == 0
