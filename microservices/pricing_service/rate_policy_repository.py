"""
Rate Policy Repository

Persistence for administrator-maintained pricing constants.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from core.config import InfraConfig
from core.postgres_client import AsyncPostgresClient, get_postgres_client
from .models import CashDiscountKind, CashDiscountPolicy, RatePolicy

logger = logging.getLogger(__name__)


class RatePolicyRepository:
    """Data access for rate policies"""

    def __init__(self, db: Optional[AsyncPostgresClient] = None, config: Optional[InfraConfig] = None):
        self.db = db or get_postgres_client("pricing_service", config=config)
        self.schema = "pricing"
        self.table = "rate_policies"
        self._table_initialized = False

    async def _ensure_table(self) -> None:
        """Create rate policy table if missing."""
        if self._table_initialized:
            return

        create_schema_sql = f"CREATE SCHEMA IF NOT EXISTS {self.schema}"
        create_sql = f"""
            CREATE TABLE IF NOT EXISTS {self.schema}.{self.table} (
                name TEXT PRIMARY KEY,
                pricing_track TEXT NOT NULL DEFAULT 'standard',
                drum_tiers JSONB NOT NULL DEFAULT '[]'::jsonb,
                per_kg_rate NUMERIC(12, 2),
                minimum_charge NUMERIC(12, 2) NOT NULL,
                door_to_door_fee NUMERIC(12, 2) NOT NULL,
                seal_fee NUMERIC(12, 2) NOT NULL,
                currency TEXT NOT NULL DEFAULT 'GBP',
                cash_discount_kind TEXT NOT NULL DEFAULT 'per_unit',
                cash_discount_value NUMERIC(12, 2) NOT NULL DEFAULT 20.00,
                pay_on_arrival_premium_rate NUMERIC(6, 4) NOT NULL DEFAULT 0.20,
                payment_terms_days INTEGER NOT NULL DEFAULT 30,
                mismatch_tolerance NUMERIC(12, 2) NOT NULL DEFAULT 0.01,
                custom_quote_allow_pay_on_arrival BOOLEAN NOT NULL DEFAULT FALSE,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """

        async with self.db:
            await self.db.execute(create_schema_sql)
            await self.db.execute(create_sql)

        self._table_initialized = True

    async def get_policy(self, name: str) -> Optional[RatePolicy]:
        """Get policy by name"""
        await self._ensure_table()
        try:
            query = f"SELECT * FROM {self.schema}.{self.table} WHERE name = $1"
            async with self.db:
                row = await self.db.query_row(query, [name])
            return self._row_to_policy(row) if row else None
        except Exception as e:
            logger.error(f"Failed to get rate policy {name}: {e}")
            raise

    async def list_policies(self) -> List[RatePolicy]:
        """List all stored policies"""
        await self._ensure_table()
        try:
            query = f"SELECT * FROM {self.schema}.{self.table} ORDER BY name"
            async with self.db:
                rows = await self.db.query(query)
            return [self._row_to_policy(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to list rate policies: {e}")
            raise

    async def upsert_policy(self, policy: RatePolicy) -> RatePolicy:
        """Create or replace a policy"""
        await self._ensure_table()
        try:
            now = datetime.now(timezone.utc)
            query = f'''
                INSERT INTO {self.schema}.{self.table} (
                    name, pricing_track, drum_tiers, per_kg_rate, minimum_charge,
                    door_to_door_fee, seal_fee, currency, cash_discount_kind,
                    cash_discount_value, pay_on_arrival_premium_rate,
                    payment_terms_days, mismatch_tolerance,
                    custom_quote_allow_pay_on_arrival, created_at, updated_at
                ) VALUES (
                    $1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $15
                )
                ON CONFLICT (name) DO UPDATE SET
                    pricing_track = EXCLUDED.pricing_track,
                    drum_tiers = EXCLUDED.drum_tiers,
                    per_kg_rate = EXCLUDED.per_kg_rate,
                    minimum_charge = EXCLUDED.minimum_charge,
                    door_to_door_fee = EXCLUDED.door_to_door_fee,
                    seal_fee = EXCLUDED.seal_fee,
                    currency = EXCLUDED.currency,
                    cash_discount_kind = EXCLUDED.cash_discount_kind,
                    cash_discount_value = EXCLUDED.cash_discount_value,
                    pay_on_arrival_premium_rate = EXCLUDED.pay_on_arrival_premium_rate,
                    payment_terms_days = EXCLUDED.payment_terms_days,
                    mismatch_tolerance = EXCLUDED.mismatch_tolerance,
                    custom_quote_allow_pay_on_arrival = EXCLUDED.custom_quote_allow_pay_on_arrival,
                    updated_at = EXCLUDED.updated_at
                RETURNING *
            '''
            params = [
                policy.name,
                policy.pricing_track,
                [str(price) for price in policy.drum_tiers],
                policy.per_kg_rate,
                policy.minimum_charge,
                policy.door_to_door_fee,
                policy.seal_fee,
                policy.currency,
                policy.cash_discount.kind.value,
                policy.cash_discount.value,
                policy.pay_on_arrival_premium_rate,
                policy.payment_terms_days,
                policy.mismatch_tolerance,
                policy.custom_quote_allow_pay_on_arrival,
                now,
            ]
            async with self.db:
                row = await self.db.query_row(query, params)

            logger.info(f"Rate policy upserted: {policy.name}")
            return self._row_to_policy(row)
        except Exception as e:
            logger.error(f"Failed to upsert rate policy {policy.name}: {e}")
            raise

    async def delete_policy(self, name: str) -> bool:
        """Delete a policy"""
        await self._ensure_table()
        try:
            query = f"DELETE FROM {self.schema}.{self.table} WHERE name = $1"
            async with self.db:
                count = await self.db.execute(query, [name])
            return count > 0
        except Exception as e:
            logger.error(f"Failed to delete rate policy {name}: {e}")
            raise

    def _row_to_policy(self, row: Dict[str, Any]) -> RatePolicy:
        return RatePolicy(
            name=row["name"],
            pricing_track=row["pricing_track"],
            drum_tiers=[Decimal(str(price)) for price in (row.get("drum_tiers") or [])],
            per_kg_rate=row.get("per_kg_rate"),
            minimum_charge=row["minimum_charge"],
            door_to_door_fee=row["door_to_door_fee"],
            seal_fee=row["seal_fee"],
            currency=row.get("currency") or "GBP",
            cash_discount=CashDiscountPolicy(
                kind=CashDiscountKind(row["cash_discount_kind"]),
                value=row["cash_discount_value"],
            ),
            pay_on_arrival_premium_rate=row["pay_on_arrival_premium_rate"],
            payment_terms_days=row["payment_terms_days"],
            mismatch_tolerance=row["mismatch_tolerance"],
            custom_quote_allow_pay_on_arrival=row["custom_quote_allow_pay_on_arrival"],
            updated_at=row.get("updated_at"),
        )
