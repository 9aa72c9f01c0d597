"""
PostgreSQL Client for the Shipping Platform

Async PostgreSQL client built on an asyncpg connection pool.
Provides a consistent database access pattern for every repository.

Usage:
    from core.postgres_client import get_postgres_client

    # Get client instance
    db = get_postgres_client("booking_service")

    # Execute queries
    async with db:
        result = await db.query("SELECT * FROM booking.shipments WHERE user_id = $1", [user_id])

Every call runs on its own pooled connection; there is no transaction spanning
calls.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import asyncpg

from core.config import InfraConfig, get_settings

logger = logging.getLogger(__name__)


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Decode json/jsonb columns into Python objects"""
    for type_name in ("json", "jsonb"):
        await conn.set_type_codec(
            type_name,
            encoder=lambda value: json.dumps(value, default=str),
            decoder=json.loads,
            schema="pg_catalog",
        )


def _affected_rows(status: str) -> int:
    """Parse asyncpg command status ("UPDATE 3", "INSERT 0 1") into a row count"""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class AsyncPostgresClient:
    """
    Async PostgreSQL client.

    Wraps an asyncpg pool and provides:
    - Lazy pool creation on first use
    - Dict results instead of asyncpg Records
    - Command timeout from InfraConfig
    """

    def __init__(
        self,
        service_name: str,
        config: Optional[InfraConfig] = None,
        dsn: Optional[str] = None,
    ):
        """
        Initialize PostgreSQL client.

        Args:
            service_name: Name of the service using this client
            config: Infrastructure configuration (defaults to global settings)
            dsn: Optional DSN override
        """
        self.service_name = service_name
        self.config = config or get_settings().infrastructure
        self.dsn = dsn or self.config.postgres_dsn
        self._pool: Optional[asyncpg.Pool] = None

        logger.info(
            f"PostgreSQL client initialized for {service_name}: "
            f"{self.config.postgres_host}:{self.config.postgres_port}/{self.config.postgres_db}"
        )

    async def connect(self) -> asyncpg.Pool:
        """Create the connection pool if needed"""
        if self._pool is None:
            self._pool = await asyncpg.create_pool(
                dsn=self.dsn,
                min_size=self.config.postgres_min_pool,
                max_size=self.config.postgres_max_pool,
                command_timeout=self.config.postgres_command_timeout,
                init=_init_connection,
            )
            logger.info(f"PostgreSQL pool created for {self.service_name}")
        return self._pool

    async def __aenter__(self):
        """Async context manager entry"""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Pool stays open across context blocks; close() releases it"""
        return False

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Execute query and return all rows"""
        pool = await self.connect()
        async with pool.acquire() as conn:
            rows = await conn.fetch(sql, *(params or []))
        return [dict(row) for row in rows]

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return a single row"""
        pool = await self.connect()
        async with pool.acquire() as conn:
            row = await conn.fetchrow(sql, *(params or []))
        return dict(row) if row else None

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> int:
        """Execute SQL statement and return the affected row count"""
        pool = await self.connect()
        async with pool.acquire() as conn:
            status = await conn.execute(sql, *(params or []))
        return _affected_rows(status)

    async def insert_into(
        self,
        table: str,
        row: Dict[str, Any],
        schema: str = "public",
    ) -> Optional[Dict[str, Any]]:
        """
        Insert one row and return it as stored.

        Args:
            table: Table name
            row: Column -> value mapping
            schema: Database schema

        Returns:
            The inserted row
        """
        columns = list(row.keys())
        placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
        column_list = ", ".join(columns)
        sql = (
            f'INSERT INTO "{schema}".{table} ({column_list}) '
            f"VALUES ({placeholders}) RETURNING *"
        )
        return await self.query_row(sql, [row[c] for c in columns])

    async def close(self):
        """Close connection pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info(f"PostgreSQL pool closed for {self.service_name}")


# Singleton instances per service
_postgres_clients: Dict[str, AsyncPostgresClient] = {}


def get_postgres_client(
    service_name: str,
    config: Optional[InfraConfig] = None,
    dsn: Optional[str] = None,
) -> AsyncPostgresClient:
    """
    Get or create PostgreSQL client for a service.

    Args:
        service_name: Service name
        config: Optional infrastructure config override
        dsn: Optional DSN override

    Returns:
        AsyncPostgresClient instance
    """
    global _postgres_clients

    if service_name not in _postgres_clients:
        _postgres_clients[service_name] = AsyncPostgresClient(
            service_name=service_name,
            config=config,
            dsn=dsn,
        )

    return _postgres_clients[service_name]


async def close_postgres_clients() -> None:
    """Close every pooled client (used on service shutdown)"""
    for client in list(_postgres_clients.values()):
        await client.close()
    _postgres_clients.clear()
