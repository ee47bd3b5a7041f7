"""AgentWorkload entity — per-agent capacity and status bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ticket_routing.domain.value_objects.enums import AgentStatus


@dataclass(frozen=True)
class WorkloadLimits:
    """Capacity shared by every agent, and the load fraction that means BUSY."""

    capacity: int
    busy_threshold: float = 0.8

    def is_busy_load(self, active: int) -> bool:
        return active >= self.capacity * self.busy_threshold


@dataclass
class AgentWorkload:
    agent_id: str
    username: str
    active_tickets: int = 0
    total_assigned_tickets: int = 0
    completed_tickets: int = 0
    status: AgentStatus = AgentStatus.AVAILABLE
    last_assigned_at: datetime | None = None
    updated_at: datetime | None = None

    def is_offline(self) -> bool:
        return self.status == AgentStatus.OFFLINE

    def has_capacity(self, limits: WorkloadLimits) -> bool:
        return self.active_tickets < limits.capacity

    def refresh_status(self, limits: WorkloadLimits) -> None:
        """Recompute AVAILABLE/BUSY from load. OFFLINE is operator-owned and sticks."""
        if self.is_offline():
            return
        self.status = (
            AgentStatus.BUSY if limits.is_busy_load(self.active_tickets) else AgentStatus.AVAILABLE
        )

    def set_status(self, status: AgentStatus, limits: WorkloadLimits, now: datetime) -> None:
        if status == AgentStatus.OFFLINE:
            self.status = AgentStatus.OFFLINE
        else:
            # Anything else brings the agent online; BUSY stays derived.
            self.status = AgentStatus.AVAILABLE
            self.refresh_status(limits)
        self.updated_at = now

    def take_ticket(self, limits: WorkloadLimits, now: datetime) -> None:
        self.active_tickets += 1
        self.total_assigned_tickets += 1
        self.last_assigned_at = now
        self.updated_at = now
        self.refresh_status(limits)

    def release_ticket(self, limits: WorkloadLimits, now: datetime) -> None:
        self.active_tickets = max(0, self.active_tickets - 1)
        self.updated_at = now
        self.refresh_status(limits)

    def complete_ticket(self, limits: WorkloadLimits, now: datetime) -> None:
        self.completed_tickets += 1
        self.release_ticket(limits, now)
