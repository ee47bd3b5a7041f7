"""Assignment entity — one entry in a ticket's assignment ledger."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime

from ticket_routing.domain.errors import InvalidState
from ticket_routing.domain.value_objects.enums import AssignmentStatus, AssignmentType


def new_assignment_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Assignment:
    id: str
    ticket_id: str
    agent_id: str
    assignment_type: AssignmentType
    ticket_number: str | None = None
    agent_username: str | None = None
    assigned_by: str | None = None
    assigned_by_username: str | None = None
    strategy: str | None = None
    status: AssignmentStatus = AssignmentStatus.CURRENT
    previous_agent_id: str | None = None
    previous_agent_username: str | None = None
    reassignment_reason: str | None = None
    notes: str | None = None
    assigned_at: datetime | None = None
    completed_at: datetime | None = None

    def is_current(self) -> bool:
        return self.status == AssignmentStatus.CURRENT

    def close(self, status: AssignmentStatus, now: datetime, reason: str | None = None) -> None:
        """Retire a CURRENT record. Superseded records are immutable history."""
        if not self.is_current():
            raise InvalidState(
                f"Assignment {self.id} is {self.status.value}, only CURRENT records can change",
                {"assignment_id": self.id, "status": self.status.value},
            )
        if status == AssignmentStatus.CURRENT:
            raise ValueError("close() needs a terminal status")
        self.status = status
        self.completed_at = now
        if reason is not None:
            self.reassignment_reason = reason
