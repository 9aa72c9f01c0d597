"""
Booking Repository

Data access layer for shipments, payments, receipts, notifications and the
booking saga log. Each method is a separate round trip; callers must not
assume two writes succeed or fail together.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import asyncpg

from core.config import InfraConfig
from core.postgres_client import AsyncPostgresClient, get_postgres_client
from .models import (
    BookingStep, Notification, Payment, Receipt, Shipment,
    ShipmentStatus, StepStatus,
)
from .protocols import DuplicateIdempotencyKeyError

logger = logging.getLogger(__name__)

# Unique indexes that mean "this idempotency key was already written"
IDEMPOTENCY_KEY_INDEXES = frozenset({
    "idx_payments_idempotency_key",
    "idx_receipts_idempotency_key",
})


def _is_idempotency_conflict(error: asyncpg.UniqueViolationError, idempotency_key: Optional[str]) -> bool:
    return bool(idempotency_key) and getattr(error, "constraint_name", None) in IDEMPOTENCY_KEY_INDEXES


class BookingRepository:
    """
    Repository for booking data operations

    Handles all database operations for bookings using AsyncPostgresClient.
    """

    def __init__(self, db: Optional[AsyncPostgresClient] = None, config: Optional[InfraConfig] = None):
        """Initialize Booking Repository"""
        self.db = db or get_postgres_client("booking_service", config=config)
        self.schema = "booking"
        self.shipments_table = "shipments"
        self.payments_table = "payments"
        self.receipts_table = "receipts"
        self.notifications_table = "notifications"
        self.steps_table = "booking_steps"
        self._schema_initialized = False

        logger.info("BookingRepository initialized")

    async def _ensure_schema(self) -> None:
        """Create booking tables if missing."""
        if self._schema_initialized:
            return

        s = self.schema
        statements = [
            f"CREATE SCHEMA IF NOT EXISTS {s}",
            f"""
            CREATE TABLE IF NOT EXISTS {s}.{self.shipments_table} (
                id TEXT PRIMARY KEY,
                user_id TEXT,
                tracking_number TEXT NOT NULL UNIQUE,
                status TEXT NOT NULL,
                sender_details JSONB NOT NULL,
                recipient_details JSONB NOT NULL,
                shipment_details JSONB NOT NULL,
                correlation_id TEXT NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {s}.{self.payments_table} (
                id TEXT PRIMARY KEY,
                shipment_id TEXT NOT NULL,
                user_id TEXT,
                amount NUMERIC(12, 2) NOT NULL CHECK (amount >= 0),
                currency TEXT NOT NULL DEFAULT 'GBP',
                payment_method TEXT NOT NULL,
                payment_status TEXT NOT NULL,
                transaction_id TEXT NOT NULL,
                idempotency_key TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {s}.{self.receipts_table} (
                id TEXT PRIMARY KEY,
                shipment_id TEXT NOT NULL,
                payment_id TEXT,
                receipt_number TEXT NOT NULL UNIQUE,
                amount NUMERIC(12, 2) NOT NULL CHECK (amount >= 0),
                currency TEXT NOT NULL DEFAULT 'GBP',
                payment_method TEXT NOT NULL,
                sub_method TEXT,
                status TEXT NOT NULL,
                sender_details JSONB NOT NULL,
                recipient_details JSONB NOT NULL,
                shipment_details JSONB NOT NULL,
                payment_deadline DATE,
                idempotency_key TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {s}.{self.notifications_table} (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                title TEXT NOT NULL,
                message TEXT NOT NULL,
                type TEXT NOT NULL,
                related_id TEXT,
                is_read BOOLEAN NOT NULL DEFAULT FALSE,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {s}.{self.steps_table} (
                id TEXT PRIMARY KEY,
                correlation_id TEXT NOT NULL,
                shipment_id TEXT,
                step TEXT NOT NULL,
                record_type TEXT NOT NULL,
                record_id TEXT,
                status TEXT NOT NULL,
                compensating_action TEXT,
                previous_value TEXT,
                error TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """,
            f"CREATE UNIQUE INDEX IF NOT EXISTS idx_payments_idempotency_key ON {s}.{self.payments_table}(idempotency_key)",
            f"CREATE UNIQUE INDEX IF NOT EXISTS idx_receipts_idempotency_key ON {s}.{self.receipts_table}(idempotency_key)",
            f"CREATE INDEX IF NOT EXISTS idx_payments_shipment ON {s}.{self.payments_table}(shipment_id)",
            f"CREATE INDEX IF NOT EXISTS idx_receipts_shipment ON {s}.{self.receipts_table}(shipment_id)",
            f"CREATE INDEX IF NOT EXISTS idx_booking_steps_correlation ON {s}.{self.steps_table}(correlation_id)",
        ]

        async with self.db:
            for sql in statements:
                await self.db.execute(sql)

        self._schema_initialized = True

    # ====================
    # Shipments
    # ====================

    async def create_shipment(self, shipment: Shipment) -> Shipment:
        """Insert a shipment"""
        await self._ensure_schema()
        try:
            row = shipment.model_dump(mode="json")
            row["created_at"] = shipment.created_at
            row["updated_at"] = shipment.updated_at

            async with self.db:
                result = await self.db.insert_into(self.shipments_table, row, schema=self.schema)

            logger.info(f"Shipment created: {shipment.id} ({shipment.tracking_number})")
            return self._row_to_shipment(result)

        except Exception as e:
            logger.error(f"Failed to create shipment {shipment.id}: {e}")
            raise

    async def get_shipment(self, shipment_id: str) -> Optional[Shipment]:
        """Get shipment by ID"""
        await self._ensure_schema()
        try:
            query = f"SELECT * FROM {self.schema}.{self.shipments_table} WHERE id = $1"
            async with self.db:
                result = await self.db.query_row(query, [shipment_id])
            return self._row_to_shipment(result) if result else None
        except Exception as e:
            logger.error(f"Failed to get shipment {shipment_id}: {e}")
            raise

    async def update_shipment(self, shipment: Shipment) -> Optional[Shipment]:
        """Replace status and details of a shipment"""
        await self._ensure_schema()
        try:
            query = f'''
                UPDATE {self.schema}.{self.shipments_table}
                SET status = $1, shipment_details = $2, updated_at = $3
                WHERE id = $4
                RETURNING *
            '''
            params = [
                shipment.status.value,
                shipment.shipment_details.model_dump(mode="json"),
                datetime.now(timezone.utc),
                shipment.id,
            ]
            async with self.db:
                result = await self.db.query_row(query, params)
            return self._row_to_shipment(result) if result else None
        except Exception as e:
            logger.error(f"Failed to update shipment {shipment.id}: {e}")
            raise

    async def update_shipment_status(self, shipment_id: str, status: ShipmentStatus) -> Optional[Shipment]:
        """Set shipment status"""
        await self._ensure_schema()
        try:
            query = f'''
                UPDATE {self.schema}.{self.shipments_table}
                SET status = $1, updated_at = $2
                WHERE id = $3
                RETURNING *
            '''
            async with self.db:
                result = await self.db.query_row(query, [status.value, datetime.now(timezone.utc), shipment_id])
            if result:
                logger.info(f"Shipment {shipment_id} status -> {status.value}")
            return self._row_to_shipment(result) if result else None
        except Exception as e:
            logger.error(f"Failed to update status of shipment {shipment_id}: {e}")
            raise

    async def delete_shipment(self, shipment_id: str) -> bool:
        return await self._delete(self.shipments_table, shipment_id)

    # ====================
    # Payments
    # ====================

    async def create_payment(self, payment: Payment) -> Payment:
        """Insert a payment; a repeated idempotency key raises DuplicateIdempotencyKeyError"""
        await self._ensure_schema()
        try:
            row = payment.model_dump(mode="json")
            row["amount"] = payment.amount
            row["created_at"] = payment.created_at

            async with self.db:
                result = await self.db.insert_into(self.payments_table, row, schema=self.schema)

            logger.info(f"Payment created: {payment.id} for shipment {payment.shipment_id}")
            return Payment(**result)

        except asyncpg.UniqueViolationError as e:
            if not _is_idempotency_conflict(e, payment.idempotency_key):
                logger.error(f"Failed to create payment for shipment {payment.shipment_id}: {e}")
                raise
            logger.warning(f"Payment with idempotency key {payment.idempotency_key} already exists")
            raise DuplicateIdempotencyKeyError(payment.idempotency_key)
        except Exception as e:
            logger.error(f"Failed to create payment for shipment {payment.shipment_id}: {e}")
            raise

    async def get_payment_by_idempotency_key(self, idempotency_key: str) -> Optional[Payment]:
        await self._ensure_schema()
        try:
            query = f"SELECT * FROM {self.schema}.{self.payments_table} WHERE idempotency_key = $1"
            async with self.db:
                result = await self.db.query_row(query, [idempotency_key])
            return Payment(**result) if result else None
        except Exception as e:
            logger.error(f"Failed to look up payment by idempotency key: {e}")
            raise

    async def get_payments_for_shipment(self, shipment_id: str) -> List[Payment]:
        await self._ensure_schema()
        try:
            query = f"SELECT * FROM {self.schema}.{self.payments_table} WHERE shipment_id = $1 ORDER BY created_at"
            async with self.db:
                results = await self.db.query(query, [shipment_id])
            return [Payment(**row) for row in results]
        except Exception as e:
            logger.error(f"Failed to get payments for shipment {shipment_id}: {e}")
            raise

    async def delete_payment(self, payment_id: str) -> bool:
        return await self._delete(self.payments_table, payment_id)

    # ====================
    # Receipts
    # ====================

    async def create_receipt(self, receipt: Receipt) -> Receipt:
        """Insert a receipt; a repeated idempotency key raises DuplicateIdempotencyKeyError"""
        await self._ensure_schema()
        try:
            row = receipt.model_dump(mode="json")
            row["amount"] = receipt.amount
            row["payment_deadline"] = receipt.payment_deadline
            row["created_at"] = receipt.created_at

            async with self.db:
                result = await self.db.insert_into(self.receipts_table, row, schema=self.schema)

            logger.info(f"Receipt {receipt.receipt_number} created for shipment {receipt.shipment_id}")
            return Receipt(**result)

        except asyncpg.UniqueViolationError as e:
            if not _is_idempotency_conflict(e, receipt.idempotency_key):
                logger.error(f"Failed to create receipt for shipment {receipt.shipment_id}: {e}")
                raise
            logger.warning(f"Receipt with idempotency key {receipt.idempotency_key} already exists")
            raise DuplicateIdempotencyKeyError(receipt.idempotency_key)
        except Exception as e:
            logger.error(f"Failed to create receipt for shipment {receipt.shipment_id}: {e}")
            raise

    async def get_receipt_by_idempotency_key(self, idempotency_key: str) -> Optional[Receipt]:
        await self._ensure_schema()
        try:
            query = f"SELECT * FROM {self.schema}.{self.receipts_table} WHERE idempotency_key = $1"
            async with self.db:
                result = await self.db.query_row(query, [idempotency_key])
            return Receipt(**result) if result else None
        except Exception as e:
            logger.error(f"Failed to look up receipt by idempotency key: {e}")
            raise

    async def get_receipts_for_shipment(self, shipment_id: str) -> List[Receipt]:
        await self._ensure_schema()
        try:
            query = f"SELECT * FROM {self.schema}.{self.receipts_table} WHERE shipment_id = $1 ORDER BY created_at"
            async with self.db:
                results = await self.db.query(query, [shipment_id])
            return [Receipt(**row) for row in results]
        except Exception as e:
            logger.error(f"Failed to get receipts for shipment {shipment_id}: {e}")
            raise

    async def delete_receipt(self, receipt_id: str) -> bool:
        return await self._delete(self.receipts_table, receipt_id)

    # ====================
    # Notifications
    # ====================

    async def create_notification(self, notification: Notification) -> Notification:
        await self._ensure_schema()
        try:
            row = notification.model_dump(mode="json")
            row["created_at"] = notification.created_at

            async with self.db:
                result = await self.db.insert_into(self.notifications_table, row, schema=self.schema)

            return Notification(**result)
        except Exception as e:
            logger.error(f"Failed to create notification for {notification.user_id}: {e}")
            raise

    async def delete_notification(self, notification_id: str) -> bool:
        return await self._delete(self.notifications_table, notification_id)

    # ====================
    # Saga log
    # ====================

    async def record_step(self, step: BookingStep) -> BookingStep:
        await self._ensure_schema()
        try:
            row = step.model_dump(mode="json")
            row["created_at"] = step.created_at

            async with self.db:
                result = await self.db.insert_into(self.steps_table, row, schema=self.schema)

            return BookingStep(**result)
        except Exception as e:
            logger.error(f"Failed to record booking step {step.step.value} for {step.correlation_id}: {e}")
            raise

    async def list_steps(self, correlation_id: str) -> List[BookingStep]:
        await self._ensure_schema()
        try:
            query = f'''
                SELECT * FROM {self.schema}.{self.steps_table}
                WHERE correlation_id = $1
                ORDER BY created_at, id
            '''
            async with self.db:
                results = await self.db.query(query, [correlation_id])
            return [BookingStep(**row) for row in results]
        except Exception as e:
            logger.error(f"Failed to list booking steps for {correlation_id}: {e}")
            raise

    async def update_step_status(self, step_id: str, status: StepStatus) -> bool:
        await self._ensure_schema()
        try:
            query = f"UPDATE {self.schema}.{self.steps_table} SET status = $1 WHERE id = $2"
            async with self.db:
                count = await self.db.execute(query, [status.value, step_id])
            return count > 0
        except Exception as e:
            logger.error(f"Failed to update booking step {step_id}: {e}")
            raise

    # ====================
    # Helpers
    # ====================

    async def _delete(self, table: str, record_id: str) -> bool:
        await self._ensure_schema()
        try:
            query = f"DELETE FROM {self.schema}.{table} WHERE id = $1"
            async with self.db:
                count = await self.db.execute(query, [record_id])
            if count:
                logger.info(f"Deleted {table} record {record_id}")
            return count > 0
        except Exception as e:
            logger.error(f"Failed to delete {table} record {record_id}: {e}")
            raise

    def _row_to_shipment(self, row: Dict[str, Any]) -> Shipment:
        return Shipment(**row)
