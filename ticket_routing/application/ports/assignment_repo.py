"""Port interface for the assignment ledger's persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ticket_routing.domain.entities.assignment import Assignment
from ticket_routing.domain.value_objects.enums import AssignmentStatus, AssignmentType


@dataclass
class AssignmentQuery:
    """Filters for listing ledger records; every field is optional."""

    status: AssignmentStatus | None = None
    agent_id: str | None = None
    ticket_id: str | None = None
    assignment_type: AssignmentType | None = None
    search: str | None = None
    offset: int = 0
    limit: int = 50


class AssignmentRepository(ABC):
    @abstractmethod
    async def add(self, assignment: Assignment) -> Assignment:
        """Insert a record.

        Raises InvalidState when the record is CURRENT and the ticket already
        has a CURRENT record.
        """
        ...

    @abstractmethod
    async def get(self, assignment_id: str) -> Assignment | None:
        ...

    @abstractmethod
    async def close(self, assignment: Assignment) -> Assignment:
        """Persist a record retired from CURRENT.

        The write only applies while the stored record is still CURRENT;
        otherwise it raises InvalidState and nothing changes.
        """
        ...

    @abstractmethod
    async def delete(self, assignment_id: str) -> None:
        ...

    @abstractmethod
    async def get_current_for_ticket(self, ticket_id: str) -> Assignment | None:
        ...

    @abstractmethod
    async def list_current_for_agent(self, agent_id: str) -> list[Assignment]:
        """CURRENT records of an agent, oldest first."""
        ...

    @abstractmethod
    async def history_for_ticket(self, ticket_id: str) -> list[Assignment]:
        """Every record of a ticket, newest first."""
        ...

    @abstractmethod
    async def search(self, query: AssignmentQuery) -> tuple[list[Assignment], int]:
        """One page of matching records (newest first) and the total match count."""
        ...

    @abstractmethod
    async def count_by_status(self) -> dict[str, int]:
        ...

    @abstractmethod
    async def count_by_type(self) -> dict[str, int]:
        ...
