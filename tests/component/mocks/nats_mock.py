"""
NATS Event Bus Mock for Component Testing

Records published events instead of sending them.
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional


class MockEventBus:
    """Mock for NATS event bus"""

    def __init__(self):
        self.published_events: List[Dict[str, Any]] = []
        self.subscriptions: Dict[str, Callable] = {}
        self._should_raise: Optional[Exception] = None
        self.is_connected = True

    async def publish_event(self, event: Any) -> bool:
        """Mock event publishing"""
        if self._should_raise:
            raise self._should_raise

        self.published_events.append({
            "id": getattr(event, 'id', 'mock_event_id'),
            "type": getattr(event, 'type', 'unknown'),
            "source": str(getattr(event, 'source', 'unknown')),
            "data": getattr(event, 'data', {}),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
        return True

    async def subscribe_to_events(self, pattern: str, handler: Callable):
        """Mock event subscription"""
        self.subscriptions[pattern] = handler

    async def close(self):
        """Mock close"""
        self.is_connected = False

    # Test helper methods

    def get_published(self, event_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get published events, optionally filtered by type"""
        if event_type:
            return [e for e in self.published_events if e.get("type") == event_type]
        return self.published_events

    def clear(self):
        self.published_events.clear()

    def set_error(self, error: Exception):
        """Set an error to be raised on publish"""
        self._should_raise = error

    def clear_error(self):
        self._should_raise = None

    def assert_event_published(self, event_type: str, data_match: Optional[Dict] = None):
        """Assert that an event was published"""
        events = self.get_published(event_type)
        assert len(events) > 0, f"No events of type '{event_type}' were published. Published: {self.published_events}"

        if data_match:
            for event in events:
                if all(event.get("data", {}).get(k) == v for k, v in data_match.items()):
                    return event
            raise AssertionError(
                f"No event of type '{event_type}' matched data {data_match}. Events: {events}"
            )
        return events[0]

    def assert_no_events_published(self, event_type: Optional[str] = None):
        """Assert that no events were published"""
        events = self.get_published(event_type)
        assert len(events) == 0, f"Expected no events of type '{event_type}', but got: {events}"
