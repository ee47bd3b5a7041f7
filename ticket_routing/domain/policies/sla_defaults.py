"""Fallback SLA budgets used when no rule is configured for a priority."""

from __future__ import annotations

from dataclasses import dataclass

from ticket_routing.domain.value_objects.enums import Priority


@dataclass(frozen=True)
class SlaBudget:
    response_time_minutes: int
    resolution_time_hours: int


DEFAULT_BUDGETS: dict[str, SlaBudget] = {
    Priority.CRITICAL.value: SlaBudget(15, 4),
    Priority.HIGH.value: SlaBudget(60, 8),
    Priority.MEDIUM.value: SlaBudget(240, 24),
    Priority.LOW.value: SlaBudget(480, 48),
}

# Priorities outside the table get the MEDIUM budget.
FALLBACK_BUDGET = SlaBudget(240, 24)


def normalize_priority(priority: str | None) -> str:
    """Upper-case and trim; a missing priority means MEDIUM."""
    if priority is None or not priority.strip():
        return Priority.MEDIUM.value
    return priority.strip().upper()


def default_budget(priority: str) -> SlaBudget:
    return DEFAULT_BUDGETS.get(normalize_priority(priority), FALLBACK_BUDGET)
