"""Port interface for emitting domain events."""

from abc import ABC, abstractmethod

from ticket_routing.domain.events import DomainEvent


class EventPublisher(ABC):
    @abstractmethod
    async def publish(self, event: DomainEvent) -> None:
        """Fire-and-forget. Implementations must not raise on delivery failure."""
        ...
