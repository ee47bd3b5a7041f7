"""Agent selection policies for automatic assignment.

A strategy only chooses among the candidates it is handed; capacity and
OFFLINE checks stay with the ledger.
"""

from __future__ import annotations

import itertools
from abc import ABC, abstractmethod

from ticket_routing.domain.entities.agent_workload import AgentWorkload
from ticket_routing.domain.value_objects.enums import AgentStatus


class AssignmentStrategy(ABC):
    name: str = ""

    @abstractmethod
    def select_agent(self, candidates: list[AgentWorkload]) -> AgentWorkload | None:
        """Return the chosen agent, or ``None`` when nobody qualifies."""
        ...


def _available(candidates: list[AgentWorkload]) -> list[AgentWorkload]:
    return [a for a in candidates if a.status == AgentStatus.AVAILABLE]


class LeastLoadedStrategy(AssignmentStrategy):
    """Fewest active tickets wins; ties keep the candidates' input order."""

    name = "least_loaded"

    def select_agent(self, candidates: list[AgentWorkload]) -> AgentWorkload | None:
        available = _available(candidates)
        if not available:
            return None
        return sorted(available, key=lambda a: a.active_tickets)[0]


def pick_next(candidates: list[AgentWorkload], counter: int) -> tuple[AgentWorkload, int]:
    """Deterministic round-robin pick from a candidate list.

    1. Sort candidates by agent_id for a stable rotation order.
    2. Use *counter mod len(candidates)* to select the index.
    3. Return the chosen agent and the incremented counter.

    Raises:
        ValueError: if candidates list is empty.
    """
    if not candidates:
        raise ValueError("Cannot pick from an empty candidate list")

    ordered = sorted(candidates, key=lambda a: a.agent_id)
    return ordered[counter % len(ordered)], counter + 1


class RoundRobinStrategy(AssignmentStrategy):
    """Rotates through AVAILABLE agents regardless of their load."""

    name = "round_robin"

    def __init__(self, start: int = 0):
        self._counter = itertools.count(start)

    def select_agent(self, candidates: list[AgentWorkload]) -> AgentWorkload | None:
        available = _available(candidates)
        if not available:
            return None
        chosen, _ = pick_next(available, next(self._counter))
        return chosen


_STRATEGIES: dict[str, type[AssignmentStrategy]] = {
    LeastLoadedStrategy.name: LeastLoadedStrategy,
    RoundRobinStrategy.name: RoundRobinStrategy,
}


def build_strategy(name: str) -> AssignmentStrategy:
    """Instantiate a strategy by its configured name."""
    key = name.strip().lower()
    try:
        return _STRATEGIES[key]()
    except KeyError:
        raise ValueError(
            f"Unknown assignment strategy '{name}'; expected one of {sorted(_STRATEGIES)}"
        ) from None
