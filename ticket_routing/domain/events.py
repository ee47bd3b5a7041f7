"""Domain events emitted to the downstream notification consumer."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class DomainEvent:
    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, Any]:
        return {k: _jsonable(v) for k, v in asdict(self).items()}


@dataclass(frozen=True)
class TicketAssigned(DomainEvent):
    ticket_id: str
    ticket_number: str | None
    agent_id: str
    agent_username: str | None
    assigned_by: str | None
    assigned_by_username: str | None
    assignment_type: str
    assigned_at: datetime


@dataclass(frozen=True)
class SlaWarning(DomainEvent):
    tracking_id: str
    ticket_id: str
    ticket_number: str | None
    warning_type: str
    due_at: datetime
    minutes_remaining: int
    percentage_time_used: float
    assigned_agent_id: str | None = None
    assigned_agent_username: str | None = None


@dataclass(frozen=True)
class SlaBreach(DomainEvent):
    tracking_id: str
    ticket_id: str
    ticket_number: str | None
    breach_type: str
    due_at: datetime
    breached_at: datetime
    minutes_overdue: int
    breach_reason: str | None
    assigned_agent_id: str | None = None
    assigned_agent_username: str | None = None
