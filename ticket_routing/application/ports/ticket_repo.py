"""Port interface for the local ticket projection."""

from abc import ABC, abstractmethod

from ticket_routing.domain.entities.ticket_ref import TicketRef


class TicketRepository(ABC):
    @abstractmethod
    async def add(self, ticket: TicketRef) -> TicketRef:
        ...

    @abstractmethod
    async def get(self, ticket_id: str) -> TicketRef | None:
        ...

    @abstractmethod
    async def update(self, ticket: TicketRef) -> TicketRef:
        ...

    @abstractmethod
    async def list_unassigned(self) -> list[TicketRef]:
        """Open tickets with no assignee, oldest first."""
        ...
