"""
PostgreSQL Client Wrapper

Connection pool wrapper around asyncpg with environment-based discovery.

Usage:
    from core.postgres_client import PostgresClientWrapper

    db = PostgresClientWrapper("lead_billing_service")
    await db.initialize()

    async with db.acquire() as conn:
        async with conn.transaction():
            ...
"""

import logging
import os
from typing import Any, Dict, Optional

import asyncpg

logger = logging.getLogger(__name__)


class PostgresClientWrapper:
    """
    asyncpg pool wrapper with service discovery integration.

    Provides:
    - Host/port resolution through ConfigManager
    - Lazy pool creation via initialize()
    - Raw connection access for transactions
    """

    def __init__(
        self,
        service_name: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        database: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
    ):
        """
        Initialize PostgreSQL client wrapper.

        Args:
            service_name: Name of the service using this client
            host: PostgreSQL host (defaults to env discovery)
            port: PostgreSQL port (defaults to 5432)
            database: Database name (defaults to 'postgres')
            username: Database username
            password: Database password
            min_size: Minimum pool size
            max_size: Maximum pool size
        """
        from core.config_manager import ConfigManager

        self.service_name = service_name

        config = ConfigManager(service_name)
        discovered_host, discovered_port = config.discover_service(
            service_name="postgres_service",
            default_host="localhost",
            default_port=5432,
            env_host_key="POSTGRES_HOST",
            env_port_key="POSTGRES_PORT",
        )
        infra = config.get_service_config().infra

        self.host = host or discovered_host
        self.port = port or discovered_port
        self.database = database or os.getenv("POSTGRES_DB", infra.postgres_db)
        self.username = username or os.getenv("POSTGRES_USER", infra.postgres_user)
        self.password = password or os.getenv("POSTGRES_PASSWORD", infra.postgres_password)
        self.min_size = min_size or infra.postgres_pool_min
        self.max_size = max_size or infra.postgres_pool_max

        self._pool: Optional[asyncpg.Pool] = None

        logger.info(f"PostgreSQL client configured for {service_name}: {self.host}:{self.port}/{self.database}")

    async def initialize(self):
        """Create the connection pool"""
        if self._pool is not None:
            return
        self._pool = await asyncpg.create_pool(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.username,
            password=self.password,
            min_size=self.min_size,
            max_size=self.max_size,
        )
        logger.info(f"PostgreSQL pool ready ({self.min_size}-{self.max_size} connections)")

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError(f"PostgreSQL pool for {self.service_name} is not initialized")
        return self._pool

    def acquire(self):
        """Acquire a pooled connection (async context manager)"""
        return self.pool.acquire()

    async def health_check(self) -> Dict[str, Any]:
        """Check database health"""
        try:
            async with self.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return {"healthy": True}
        except Exception as e:
            logger.warning(f"PostgreSQL health check failed: {e}")
            return {"healthy": False, "error": str(e)}

    async def close(self):
        """Close the pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
