"""EventPublisher adapters — log, webhook, and a commit-aware outbox."""

from __future__ import annotations

import logging

import httpx

from ticket_routing.application.ports.event_publisher import EventPublisher
from ticket_routing.domain.events import DomainEvent

logger = logging.getLogger(__name__)


class LoggingEventPublisher(EventPublisher):
    """Writes every event to the log; the default when no webhook is configured."""

    async def publish(self, event: DomainEvent) -> None:
        logger.info("event %s %s", event.event_type, event.to_dict())


class WebhookEventPublisher(EventPublisher):
    """POSTs ``{"type": ..., "payload": ...}`` to a downstream consumer.

    Delivery is at-most-once: failures are logged and dropped.
    """

    def __init__(self, url: str, timeout: float = 5.0, client: httpx.AsyncClient | None = None):
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def publish(self, event: DomainEvent) -> None:
        body = {"type": event.event_type, "payload": event.to_dict()}
        try:
            resp = await self._client.post(self._url, json=body)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Failed to deliver %s to %s: %s", event.event_type, self._url, e)
            return
        logger.debug("Delivered %s (HTTP %d)", event.event_type, resp.status_code)

    async def aclose(self) -> None:
        await self._client.aclose()


class FanOutPublisher(EventPublisher):
    def __init__(self, *publishers: EventPublisher):
        self._publishers = publishers

    async def publish(self, event: DomainEvent) -> None:
        for publisher in self._publishers:
            await publisher.publish(event)


class OutboxPublisher(EventPublisher):
    """Holds events until the surrounding transaction has committed.

    Call :meth:`flush` after commit. An outbox that is never flushed (the
    request failed or rolled back) simply goes away with its events.
    """

    def __init__(self, downstream: EventPublisher):
        self._downstream = downstream
        self._pending: list[DomainEvent] = []

    async def publish(self, event: DomainEvent) -> None:
        self._pending.append(event)

    async def flush(self) -> int:
        events, self._pending = self._pending, []
        for event in events:
            await self._downstream.publish(event)
        return len(events)
