"""
Custom Quote Repository

Data access layer for custom quote records.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.config import InfraConfig
from core.postgres_client import AsyncPostgresClient, get_postgres_client
from .models import CustomQuote, CustomQuoteStatus

logger = logging.getLogger(__name__)


class CustomQuoteRepository:
    """
    Repository for custom quote operations

    Status changes are conditional updates, so a quote only moves forward
    from the status the caller expects.
    """

    def __init__(self, db: Optional[AsyncPostgresClient] = None, config: Optional[InfraConfig] = None):
        """Initialize Custom Quote Repository"""
        self.db = db or get_postgres_client("custom_quote_service", config=config)
        self.schema = "custom_quote"
        self.quotes_table = "custom_quotes"
        self._schema_initialized = False

        logger.info("CustomQuoteRepository initialized")

    async def _ensure_schema(self) -> None:
        if self._schema_initialized:
            return

        s = self.schema
        statements = [
            f"CREATE SCHEMA IF NOT EXISTS {s}",
            f"""
            CREATE TABLE IF NOT EXISTS {s}.{self.quotes_table} (
                id TEXT PRIMARY KEY,
                user_id TEXT,
                shipment_id TEXT,
                name TEXT,
                email TEXT,
                phone_number TEXT,
                description TEXT NOT NULL,
                category TEXT,
                image_urls JSONB NOT NULL DEFAULT '[]'::jsonb,
                sender_details JSONB NOT NULL DEFAULT '{{}}'::jsonb,
                recipient_details JSONB,
                status TEXT NOT NULL DEFAULT 'pending',
                quoted_amount NUMERIC(12, 2) CHECK (quoted_amount IS NULL OR quoted_amount > 0),
                admin_notes TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ
            )
            """,
            f"CREATE INDEX IF NOT EXISTS idx_custom_quotes_user ON {s}.{self.quotes_table} (user_id, created_at DESC)",
            f"CREATE INDEX IF NOT EXISTS idx_custom_quotes_status ON {s}.{self.quotes_table} (status)",
        ]

        try:
            async with self.db:
                for statement in statements:
                    await self.db.execute(statement)
            self._schema_initialized = True
        except Exception as e:
            logger.error(f"Failed to create custom quote schema: {e}")
            raise

    async def create_quote(self, quote: CustomQuote) -> CustomQuote:
        """Insert a quote"""
        await self._ensure_schema()
        try:
            row = quote.model_dump(mode="json")
            row["quoted_amount"] = quote.quoted_amount
            row["created_at"] = quote.created_at
            row["updated_at"] = quote.updated_at

            async with self.db:
                result = await self.db.insert_into(self.quotes_table, row, schema=self.schema)

            logger.info(f"Custom quote created: {quote.id}")
            return self._row_to_quote(result)
        except Exception as e:
            logger.error(f"Failed to create custom quote {quote.id}: {e}")
            raise

    async def get_quote(self, quote_id: str) -> Optional[CustomQuote]:
        """Get quote by ID"""
        await self._ensure_schema()
        try:
            query = f"SELECT * FROM {self.schema}.{self.quotes_table} WHERE id = $1"
            async with self.db:
                result = await self.db.query_row(query, [quote_id])
            return self._row_to_quote(result) if result else None
        except Exception as e:
            logger.error(f"Failed to get custom quote {quote_id}: {e}")
            raise

    async def list_quotes(
        self,
        user_id: Optional[str] = None,
        status: Optional[CustomQuoteStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[CustomQuote]:
        """List quotes, newest first"""
        await self._ensure_schema()
        try:
            conditions = []
            params: List[Any] = []
            if user_id:
                params.append(user_id)
                conditions.append(f"user_id = ${len(params)}")
            if status:
                params.append(status.value)
                conditions.append(f"status = ${len(params)}")

            where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
            params.extend([limit, offset])
            query = f'''
                SELECT * FROM {self.schema}.{self.quotes_table}
                {where}
                ORDER BY created_at DESC
                LIMIT ${len(params) - 1} OFFSET ${len(params)}
            '''
            async with self.db:
                results = await self.db.query(query, params)
            return [self._row_to_quote(row) for row in results]
        except Exception as e:
            logger.error(f"Failed to list custom quotes: {e}")
            raise

    async def set_quoted_amount(
        self,
        quote_id: str,
        amount: Decimal,
        admin_notes: Optional[str] = None,
    ) -> Optional[CustomQuote]:
        """Price a pending quote; None when the quote is missing or no longer pending"""
        await self._ensure_schema()
        try:
            query = f'''
                UPDATE {self.schema}.{self.quotes_table}
                SET quoted_amount = $1, admin_notes = COALESCE($2, admin_notes),
                    status = $3, updated_at = $4
                WHERE id = $5 AND status = $6
                RETURNING *
            '''
            params = [
                amount,
                admin_notes,
                CustomQuoteStatus.QUOTED.value,
                datetime.now(timezone.utc),
                quote_id,
                CustomQuoteStatus.PENDING.value,
            ]
            async with self.db:
                result = await self.db.query_row(query, params)
            return self._row_to_quote(result) if result else None
        except Exception as e:
            logger.error(f"Failed to price custom quote {quote_id}: {e}")
            raise

    async def update_status(self, quote_id: str, status: CustomQuoteStatus) -> Optional[CustomQuote]:
        await self._ensure_schema()
        try:
            query = f'''
                UPDATE {self.schema}.{self.quotes_table}
                SET status = $1, updated_at = $2
                WHERE id = $3
                RETURNING *
            '''
            async with self.db:
                result = await self.db.query_row(query, [status.value, datetime.now(timezone.utc), quote_id])
            return self._row_to_quote(result) if result else None
        except Exception as e:
            logger.error(f"Failed to update custom quote {quote_id} to {status.value}: {e}")
            raise

    def _row_to_quote(self, row: Dict[str, Any]) -> CustomQuote:
        return CustomQuote(**row)
