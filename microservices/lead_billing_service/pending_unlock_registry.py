"""
Pending Unlock Registry

Short-lived reservation linking a lead to an in-flight recharge checkout, so
the webhook can reveal the lead once the recharge is paid. Reservations are
advisory: they hold no credit and no lead lock.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .models import PendingLeadUnlock
from .protocols import BillingRepositoryProtocol

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PendingUnlockRegistry:

    def __init__(
        self,
        repository: BillingRepositoryProtocol,
        ttl_hours: int = 24,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repository = repository
        self.ttl = timedelta(hours=ttl_hours)
        self.clock = clock

    async def reserve(
        self,
        lead_id: str,
        customer_id: str,
        campaign_id: str,
        checkout_session_id: str,
        tx: Optional[BillingRepositoryProtocol] = None,
    ) -> PendingLeadUnlock:
        """Create or refresh the reservation for a lead (last writer wins)"""
        repo = tx or self.repository
        reservation = await repo.upsert_pending_unlock({
            "lead_id": lead_id,
            "customer_id": customer_id,
            "campaign_id": campaign_id,
            "checkout_session_id": checkout_session_id,
            "expires_at": self.clock() + self.ttl,
        })
        logger.info(f"Pending unlock reserved for lead {lead_id} (session {checkout_session_id})")
        return reservation

    async def find_active(
        self,
        lead_id: str,
        tx: Optional[BillingRepositoryProtocol] = None,
    ) -> Optional[PendingLeadUnlock]:
        """Return the unexpired reservation for a lead, if any"""
        repo = tx or self.repository
        reservation = await repo.get_pending_unlock(lead_id, for_update=tx is not None)
        if reservation and reservation.expires_at <= self.clock():
            return None
        return reservation

    async def release(
        self,
        lead_id: str,
        checkout_session_id: Optional[str] = None,
        tx: Optional[BillingRepositoryProtocol] = None,
    ) -> bool:
        """
        Delete the reservation of a lead. With checkout_session_id, only a
        reservation still tied to that session is removed.
        """
        repo = tx or self.repository
        return await repo.delete_pending_unlock(lead_id, checkout_session_id)

    async def sweep_expired(self) -> int:
        """Delete expired reservations; best-effort, never raises"""
        try:
            count = await self.repository.delete_expired_pending_unlocks(self.clock())
        except Exception as e:
            logger.error(f"Pending unlock sweep failed: {e}", exc_info=True)
            return 0
        if count:
            logger.info(f"Swept {count} expired pending unlock(s)")
        return count
