"""
Pricing event types and fire-and-forget delivery.

Notifications about pricing changes are handed to an ``EventSink`` in
background tasks; callers never wait for delivery and delivery errors are
logged, not raised.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

from space.platform.logging import get_logger

logger = get_logger(__name__)


# ============================================================================
# Pricing Event Types
# ============================================================================


class PricingEvents:
    """Pricing event type constants."""

    PRICING_CREATED = "pricing.created"
    PRICING_ACTIVATED = "pricing.activated"
    PRICING_ARCHIVED = "pricing.archived"
    SERVICE_DISABLED = "service.disabled"


# ============================================================================
# Sinks
# ============================================================================


class EventSink(ABC):
    """Destination of pricing notifications (websocket hub, broker, ...)."""

    @abstractmethod
    async def send(self, event_type: str, payload: dict[str, Any]) -> None:
        pass


class LoggingEventSink(EventSink):
    """Sink that only logs events."""

    async def send(self, event_type: str, payload: dict[str, Any]) -> None:
        logger.info("Pricing event", event_type=event_type, **payload)


class PricingEventNotifier:
    """Schedules event deliveries without blocking the caller."""

    def __init__(self, sink: EventSink | None = None):
        self.sink = sink or LoggingEventSink()
        self._pending: set[asyncio.Task[None]] = set()

    async def _deliver(self, event_type: str, payload: dict[str, Any]) -> None:
        try:
            await self.sink.send(event_type, payload)
        except Exception as e:
            logger.error("Event delivery failed", event_type=event_type, error=str(e))

    def notify(self, event_type: str, **payload: Any) -> None:
        task = asyncio.get_running_loop().create_task(self._deliver(event_type, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def pricing_created(self, service_name: str, version: str) -> None:
        self.notify(PricingEvents.PRICING_CREATED, service_name=service_name, version=version)

    def pricing_activated(self, service_name: str, version: str) -> None:
        self.notify(PricingEvents.PRICING_ACTIVATED, service_name=service_name, version=version)

    def pricing_archived(self, service_name: str, version: str) -> None:
        self.notify(PricingEvents.PRICING_ARCHIVED, service_name=service_name, version=version)

    def service_disabled(self, service_name: str) -> None:
        self.notify(PricingEvents.SERVICE_DISABLED, service_name=service_name)

    async def drain(self) -> None:
        """Wait for pending deliveries, e.g. on shutdown."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
