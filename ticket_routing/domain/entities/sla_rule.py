"""SlaRule entity — time budgets for a (priority, category) pair."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class SlaRule:
    id: str | None
    priority: str
    response_time_minutes: int
    resolution_time_hours: int
    category: str | None = None
    business_hours_only: bool = True
    escalation_time_minutes: int | None = None
    created_at: datetime | None = None

    @property
    def resolution_time_minutes(self) -> int:
        return self.resolution_time_hours * 60
