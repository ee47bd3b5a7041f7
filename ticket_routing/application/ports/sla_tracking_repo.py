"""Port interface for SLA tracking persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Callable

from ticket_routing.domain.entities.sla_tracking import SlaTracking
from ticket_routing.domain.value_objects.enums import SlaStatus


class SlaTrackingRepository(ABC):
    @abstractmethod
    async def add_if_absent(self, tracking: SlaTracking) -> SlaTracking:
        """Insert unless the ticket already has a tracker; return the stored one."""
        ...

    @abstractmethod
    async def get_by_ticket(self, ticket_id: str) -> SlaTracking | None:
        ...

    @abstractmethod
    async def lock_by_ticket(self, ticket_id: str) -> SlaTracking | None:
        """Load a ticket's tracker holding its row lock (SELECT ... FOR UPDATE)."""
        ...

    @abstractmethod
    async def lock(self, tracking_id: str) -> SlaTracking | None:
        ...

    @abstractmethod
    async def update(self, tracking: SlaTracking) -> SlaTracking:
        ...

    @abstractmethod
    async def list_open_ids(self) -> list[str]:
        """Ids of unresolved trackers, nearest resolution due time first."""
        ...

    @abstractmethod
    async def list_by_status(self, status: SlaStatus) -> list[SlaTracking]:
        ...

    @abstractmethod
    async def list_open(self) -> list[SlaTracking]:
        ...

    @abstractmethod
    async def list_all(self) -> list[SlaTracking]:
        ...


# Opens one short transaction and yields a repository bound to it; the
# transaction commits when the block exits cleanly and rolls back otherwise.
SlaTrackingScope = Callable[[], AbstractAsyncContextManager[SlaTrackingRepository]]
