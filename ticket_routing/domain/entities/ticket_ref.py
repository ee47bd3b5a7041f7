"""TicketRef — the slice of a ticket this service caches locally."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ticket_routing.domain.value_objects.enums import TicketStatus


@dataclass
class TicketRef:
    ticket_id: str
    ticket_number: str
    priority: str | None = None
    category: str | None = None
    status: TicketStatus = TicketStatus.OPEN
    assigned_agent_id: str | None = None
    assigned_agent_username: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_assigned(self) -> bool:
        return self.assigned_agent_id is not None

    def assign_to(self, agent_id: str, username: str | None) -> None:
        self.assigned_agent_id = agent_id
        self.assigned_agent_username = username
        if not self.status.is_terminal():
            self.status = TicketStatus.ASSIGNED

    def clear_assignee(self) -> None:
        self.assigned_agent_id = None
        self.assigned_agent_username = None
        if self.status == TicketStatus.ASSIGNED:
            self.status = TicketStatus.OPEN
