"""
Lead Billing Data Repository

Data access layer - PostgreSQL via asyncpg.
Implements BillingRepositoryProtocol from protocols.py.

transaction() binds a repository to one pooled connection inside an open
database transaction; nested transaction()/savepoint() calls become
savepoints on that connection.
"""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

import asyncpg

from core.config_manager import ConfigManager
from core.postgres_client import PostgresClientWrapper

from .models import (
    Campaign,
    CampaignStatus,
    Customer,
    Lead,
    LeadStatus,
    Payment,
    PaymentStatus,
    PendingLeadUnlock,
)

logger = logging.getLogger(__name__)

SCHEMA_FILE = Path(__file__).parent / "migrations" / "001_create_lead_billing_schema.sql"

CAMPAIGN_COLUMNS = frozenset({
    "name", "description", "target_criteria", "status",
    "price_per_lead", "estimated_tam", "market_difficulty", "admin_notes",
    "price_approved_at", "price_approved_by",
    "deposit_status", "deposit_checkout_id", "deposit_paid_at",
    "credit_balance", "total_paid", "budget", "max_leads",
    "started_at", "completed_at",
})

JSON_COLUMNS = frozenset({"target_criteria", "metadata"})
NUMERIC_COLUMNS = frozenset({"price_per_lead", "budget", "paid_amount", "amount"})


def _db_value(column: str, value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if column in JSON_COLUMNS:
        return json.dumps(value or {})
    if column in NUMERIC_COLUMNS and value is not None:
        return Decimal(str(value))
    return value


def _row_to_dict(row: asyncpg.Record) -> Dict[str, Any]:
    data = dict(row)
    for column in JSON_COLUMNS:
        if isinstance(data.get(column), str):
            data[column] = json.loads(data[column])
    return data


class BillingRepository:
    """Lead billing data repository - PostgreSQL (Async)"""

    def __init__(
        self,
        config: Optional[ConfigManager] = None,
        db: Optional[PostgresClientWrapper] = None,
        conn: Optional[asyncpg.Connection] = None,
    ):
        if db is None:
            if config is None:
                config = ConfigManager("lead_billing_service")
            db = PostgresClientWrapper(service_name=config.service_name)

        self.db = db
        self._conn = conn
        self.schema = "lead_billing"

    async def initialize(self):
        """Open the pool and make sure the schema exists"""
        await self.db.initialize()
        await self._ensure_schema()
        logger.info("Lead billing repository initialized with PostgreSQL")

    async def close(self):
        await self.db.close()
        logger.info("Lead billing repository database connection closed")

    async def _ensure_schema(self) -> None:
        async with self.db.acquire() as conn:
            await conn.execute(SCHEMA_FILE.read_text())

    # ====================
    # Unit of work
    # ====================

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["BillingRepository"]:
        if self._conn is not None:
            async with self._conn.transaction():
                yield self
            return

        async with self.db.acquire() as conn:
            async with conn.transaction():
                yield BillingRepository(db=self.db, conn=conn)

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        if self._conn is None:
            raise RuntimeError("savepoint() requires an open transaction")
        async with self._conn.transaction():
            yield

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        if self._conn is not None:
            yield self._conn
        else:
            async with self.db.acquire() as conn:
                yield conn

    async def _fetchrow(self, query: str, *args) -> Optional[Dict[str, Any]]:
        async with self._connection() as conn:
            row = await conn.fetchrow(query, *args)
        return _row_to_dict(row) if row else None

    async def _fetch(self, query: str, *args) -> List[Dict[str, Any]]:
        async with self._connection() as conn:
            rows = await conn.fetch(query, *args)
        return [_row_to_dict(row) for row in rows]

    async def _fetchval(self, query: str, *args) -> Any:
        async with self._connection() as conn:
            return await conn.fetchval(query, *args)

    async def _execute(self, query: str, *args) -> str:
        async with self._connection() as conn:
            return await conn.execute(query, *args)

    # ====================
    # Customers
    # ====================

    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        row = await self._fetchrow(
            f"SELECT * FROM {self.schema}.customers WHERE id = $1", customer_id
        )
        return Customer.model_validate(row) if row else None

    async def set_stripe_customer_id(self, customer_id: str, stripe_customer_id: str) -> None:
        await self._execute(
            f"UPDATE {self.schema}.customers SET stripe_customer_id = $2, updated_at = NOW() WHERE id = $1",
            customer_id, stripe_customer_id,
        )

    # ====================
    # Campaigns
    # ====================

    async def create_campaign(self, campaign_data: Dict[str, Any]) -> Campaign:
        columns = ["id", "customer_id", *[c for c in campaign_data if c in CAMPAIGN_COLUMNS]]
        values = [_db_value(c, campaign_data.get(c)) for c in columns]
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        row = await self._fetchrow(
            f"INSERT INTO {self.schema}.campaigns ({', '.join(columns)}) "
            f"VALUES ({placeholders}) RETURNING *",
            *values,
        )
        return Campaign.model_validate(row)

    async def get_campaign(self, campaign_id: str, for_update: bool = False) -> Optional[Campaign]:
        query = f"SELECT * FROM {self.schema}.campaigns WHERE id = $1"
        if for_update:
            query += " FOR UPDATE"
        row = await self._fetchrow(query, campaign_id)
        return Campaign.model_validate(row) if row else None

    async def list_campaigns(
        self,
        customer_id: Optional[str] = None,
        statuses: Optional[List[CampaignStatus]] = None,
        price_unset: bool = False,
    ) -> List[Campaign]:
        conditions = []
        params: List[Any] = []
        if customer_id:
            params.append(customer_id)
            conditions.append(f"customer_id = ${len(params)}")
        if statuses:
            params.append([CampaignStatus(s).value for s in statuses])
            conditions.append(f"status = ANY(${len(params)})")
        if price_unset:
            conditions.append("price_per_lead IS NULL")

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        rows = await self._fetch(
            f"SELECT * FROM {self.schema}.campaigns {where} ORDER BY created_at DESC", *params
        )
        return [Campaign.model_validate(row) for row in rows]

    async def update_campaign(self, campaign_id: str, fields: Dict[str, Any]) -> Optional[Campaign]:
        unknown = set(fields) - CAMPAIGN_COLUMNS
        if unknown:
            raise ValueError(f"Unknown campaign columns: {sorted(unknown)}")

        columns = list(fields)
        assignments = ", ".join(f"{c} = ${i}" for i, c in enumerate(columns, start=2))
        row = await self._fetchrow(
            f"UPDATE {self.schema}.campaigns SET {assignments}, updated_at = NOW() "
            f"WHERE id = $1 RETURNING *",
            campaign_id, *[_db_value(c, fields[c]) for c in columns],
        )
        return Campaign.model_validate(row) if row else None

    async def delete_campaign(self, campaign_id: str) -> bool:
        result = await self._execute(f"DELETE FROM {self.schema}.campaigns WHERE id = $1", campaign_id)
        return result.endswith(" 1")

    async def consume_credit(self, campaign_id: str) -> Optional[int]:
        return await self._fetchval(
            f"""
            UPDATE {self.schema}.campaigns
            SET credit_balance = credit_balance - 1,
                total_paid = total_paid + 1,
                updated_at = NOW()
            WHERE id = $1 AND credit_balance > 0
            RETURNING credit_balance
            """,
            campaign_id,
        )

    async def add_credits(self, campaign_id: str, amount: int) -> int:
        return await self._fetchval(
            f"""
            UPDATE {self.schema}.campaigns
            SET credit_balance = credit_balance + $2, updated_at = NOW()
            WHERE id = $1
            RETURNING credit_balance
            """,
            campaign_id, amount,
        )

    # ====================
    # Leads
    # ====================

    async def get_lead(self, lead_id: str, for_update: bool = False) -> Optional[Lead]:
        query = f"SELECT * FROM {self.schema}.leads WHERE id = $1"
        if for_update:
            query += " FOR UPDATE"
        row = await self._fetchrow(query, lead_id)
        return Lead.model_validate(row) if row else None

    async def list_leads(self, customer_id: str, offset: int, limit: int) -> Tuple[List[Lead], int]:
        rows = await self._fetch(
            f"""
            SELECT * FROM {self.schema}.leads
            WHERE customer_id = $1
            ORDER BY status ASC, quality_score DESC NULLS LAST, created_at DESC
            OFFSET $2 LIMIT $3
            """,
            customer_id, offset, limit,
        )
        total = await self._fetchval(
            f"SELECT COUNT(*) FROM {self.schema}.leads WHERE customer_id = $1", customer_id
        )
        return [Lead.model_validate(row) for row in rows], total

    async def reveal_lead(self, lead_id: str, paid_amount: float, revealed_at: datetime) -> Optional[Lead]:
        row = await self._fetchrow(
            f"""
            UPDATE {self.schema}.leads
            SET is_revealed = TRUE,
                revealed_at = $2,
                paid_amount = $3,
                status = $4,
                updated_at = NOW()
            WHERE id = $1 AND is_revealed = FALSE
            RETURNING *
            """,
            lead_id, revealed_at, _db_value("paid_amount", paid_amount), LeadStatus.PAID.value,
        )
        return Lead.model_validate(row) if row else None

    # ====================
    # Payments
    # ====================

    async def insert_payment(self, payment_data: Dict[str, Any]) -> Optional[Payment]:
        now = datetime.now(timezone.utc)
        row = await self._fetchrow(
            f"""
            INSERT INTO {self.schema}.payments (
                id, customer_id, campaign_id, type, amount, currency, status,
                checkout_session_id, payment_intent_id, metadata, created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $11)
            ON CONFLICT (checkout_session_id) DO NOTHING
            RETURNING *
            """,
            payment_data["id"],
            payment_data["customer_id"],
            payment_data["campaign_id"],
            _db_value("type", payment_data["type"]),
            _db_value("amount", payment_data["amount"]),
            payment_data.get("currency", "eur"),
            _db_value("status", payment_data.get("status", PaymentStatus.PENDING)),
            payment_data.get("checkout_session_id"),
            payment_data.get("payment_intent_id"),
            _db_value("metadata", payment_data.get("metadata")),
            now,
        )
        return Payment.model_validate(row) if row else None

    async def get_payment_by_session(self, checkout_session_id: str) -> Optional[Payment]:
        row = await self._fetchrow(
            f"SELECT * FROM {self.schema}.payments WHERE checkout_session_id = $1",
            checkout_session_id,
        )
        return Payment.model_validate(row) if row else None

    async def transition_payment(
        self,
        checkout_session_id: str,
        from_status: PaymentStatus,
        to_status: PaymentStatus,
        payment_intent_id: Optional[str] = None,
    ) -> Optional[Payment]:
        row = await self._fetchrow(
            f"""
            UPDATE {self.schema}.payments
            SET status = $3,
                payment_intent_id = COALESCE($4, payment_intent_id),
                updated_at = NOW()
            WHERE checkout_session_id = $1 AND status = $2
            RETURNING *
            """,
            checkout_session_id,
            PaymentStatus(from_status).value,
            PaymentStatus(to_status).value,
            payment_intent_id,
        )
        return Payment.model_validate(row) if row else None

    # ====================
    # Pending unlocks
    # ====================

    async def upsert_pending_unlock(self, unlock_data: Dict[str, Any]) -> PendingLeadUnlock:
        row = await self._fetchrow(
            f"""
            INSERT INTO {self.schema}.pending_lead_unlocks (
                lead_id, customer_id, campaign_id, checkout_session_id, expires_at
            ) VALUES ($1, $2, $3, $4, $5)
            ON CONFLICT (lead_id) DO UPDATE SET
                customer_id = EXCLUDED.customer_id,
                campaign_id = EXCLUDED.campaign_id,
                checkout_session_id = EXCLUDED.checkout_session_id,
                expires_at = EXCLUDED.expires_at
            RETURNING *
            """,
            unlock_data["lead_id"],
            unlock_data["customer_id"],
            unlock_data["campaign_id"],
            unlock_data["checkout_session_id"],
            unlock_data["expires_at"],
        )
        return PendingLeadUnlock.model_validate(row)

    async def get_pending_unlock(self, lead_id: str, for_update: bool = False) -> Optional[PendingLeadUnlock]:
        query = f"SELECT * FROM {self.schema}.pending_lead_unlocks WHERE lead_id = $1"
        if for_update:
            query += " FOR UPDATE"
        row = await self._fetchrow(query, lead_id)
        return PendingLeadUnlock.model_validate(row) if row else None

    async def delete_pending_unlock(self, lead_id: str, checkout_session_id: Optional[str] = None) -> bool:
        if checkout_session_id is None:
            result = await self._execute(
                f"DELETE FROM {self.schema}.pending_lead_unlocks WHERE lead_id = $1", lead_id
            )
        else:
            result = await self._execute(
                f"DELETE FROM {self.schema}.pending_lead_unlocks "
                f"WHERE lead_id = $1 AND checkout_session_id = $2",
                lead_id, checkout_session_id,
            )
        return result != "DELETE 0"

    async def delete_expired_pending_unlocks(self, now: datetime) -> int:
        result = await self._execute(
            f"DELETE FROM {self.schema}.pending_lead_unlocks WHERE expires_at < $1", now
        )
        return int(result.split()[-1])
