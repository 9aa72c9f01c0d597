"""
NATS JetStream Client for the Shipping Microservices

Event-driven communication between the booking services, built on nats-py.
Publishing is best effort for callers: failures are logged and reported
as False, never raised.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

import nats
from nats.aio.client import Client as NATS
from nats.js import JetStreamContext

from core.config import InfraConfig, get_settings


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that keeps Decimal money values exact"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        return super().default(obj)


logger = logging.getLogger(__name__)


class EventType(Enum):
    """Event types published by the shipping services"""

    # Booking Events
    BOOKING_CREATED = "booking.created"
    BOOKING_CONFIRMED = "booking.confirmed"
    BOOKING_COMPENSATED = "booking.compensated"

    # Payment Events
    PAYMENT_INITIATED = "payment.initiated"

    # Custom Quote Events
    CUSTOM_QUOTE_SUBMITTED = "custom_quote.submitted"
    CUSTOM_QUOTE_PRICED = "custom_quote.priced"
    CUSTOM_QUOTE_ACCEPTED = "custom_quote.accepted"


class ServiceSource(Enum):
    """Service sources"""

    PRICING_SERVICE = "pricing_service"
    BOOKING_SERVICE = "booking_service"
    CUSTOM_QUOTE_SERVICE = "custom_quote_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: EventType,
        source: ServiceSource,
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value
        self.source = source.value
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }


class NATSEventBus:
    """
    NATS JetStream event bus.

    Streams are named after the first segment of the event type
    (``booking.confirmed`` -> ``booking-stream``) and created on demand.
    """

    def __init__(
        self,
        service_name: str,
        config: Optional[InfraConfig] = None,
    ):
        """
        Initialize NATS Event Bus.

        Args:
            service_name: Name of the service (used as the connection name)
            config: Infrastructure configuration (defaults to global settings)
        """
        self.service_name = service_name
        self.config = config or get_settings().infrastructure
        self.server = self.config.nats_server

        self._nc: Optional[NATS] = None
        self._js: Optional[JetStreamContext] = None
        self._known_streams: set = set()

        logger.info(f"NATS EventBus initialized: {self.server}")

    async def connect(self):
        """Connect to NATS and open a JetStream context"""
        try:
            self._nc = await nats.connect(servers=[self.server], name=self.service_name)
            self._js = self._nc.jetstream()
            logger.info(f"Connected to NATS as {self.service_name}")
        except Exception as e:
            logger.error(f"Failed to connect to NATS at {self.server}: {e}")
            raise

    def _get_stream_name_for_event(self, event_type: str) -> str:
        prefix = event_type.split('.')[0]
        return f"{prefix.replace('_', '-')}-stream"

    async def _ensure_stream(self, event_type: str) -> str:
        stream_name = self._get_stream_name_for_event(event_type)
        if stream_name not in self._known_streams:
            prefix = event_type.split('.')[0]
            await self._js.add_stream(name=stream_name, subjects=[f"{prefix}.>"])
            self._known_streams.add(stream_name)
        return stream_name

    async def publish_event(self, event: Event) -> bool:
        """
        Publish an event to NATS JetStream.

        Returns:
            True when JetStream acknowledged the message
        """
        if not self.is_connected:
            logger.error("Not connected to NATS")
            return False

        try:
            stream_name = await self._ensure_stream(event.type)
            data = json.dumps(event.to_dict(), cls=DecimalEncoder).encode()
            ack = await self._js.publish(event.type, data)
            logger.info(f"Published event {event.type} [{event.id}] to stream {stream_name}, seq={ack.seq}")
            return True
        except Exception as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    async def close(self):
        """Flush pending publishes and close the connection"""
        if self._nc is not None:
            await self._nc.drain()
            self._nc = None
            self._js = None
        logger.info("Disconnected from NATS")

    @property
    def is_connected(self) -> bool:
        """Check if connected to NATS"""
        return self._nc is not None and self._nc.is_connected


# Singleton instance
_event_bus: Optional[NATSEventBus] = None


async def get_event_bus(
    service_name: str,
    config: Optional[InfraConfig] = None,
) -> NATSEventBus:
    """
    Get or create event bus instance.

    Args:
        service_name: Name of the service using the event bus
        config: Optional infrastructure config override

    Returns:
        Connected NATSEventBus instance
    """
    global _event_bus

    if _event_bus is None:
        _event_bus = NATSEventBus(service_name=service_name, config=config)
        await _event_bus.connect()

    return _event_bus
