"""Tests for the agent selection strategies."""

import pytest

from ticket_routing.domain.entities.agent_workload import AgentWorkload
from ticket_routing.domain.policies.assignment_strategy import (
    LeastLoadedStrategy,
    RoundRobinStrategy,
    build_strategy,
    pick_next,
)
from ticket_routing.domain.value_objects.enums import AgentStatus


def _agent(agent_id: str, load: int = 0, status: AgentStatus = AgentStatus.AVAILABLE) -> AgentWorkload:
    return AgentWorkload(agent_id=agent_id, username=agent_id, active_tickets=load, status=status)


def test_pick_single_candidate():
    chosen, new_counter = pick_next([_agent("a")], 0)
    assert chosen.agent_id == "a"
    assert new_counter == 1


def test_pick_alternates_between_two():
    """Counter 0 → first, counter 1 → second, counter 2 → first again."""
    candidates = [_agent("a"), _agent("b")]
    ids = []
    counter = 0
    for _ in range(4):
        chosen, counter = pick_next(candidates, counter)
        ids.append(chosen.agent_id)
    assert ids == ["a", "b", "a", "b"]


def test_pick_order_ignores_input_order():
    chosen, _ = pick_next([_agent("c"), _agent("a"), _agent("b")], 0)
    assert chosen.agent_id == "a"


def test_pick_large_counter_wraps():
    chosen, new_counter = pick_next([_agent("a"), _agent("b"), _agent("c")], 100)
    # 100 % 3 = 1 → "b"
    assert chosen.agent_id == "b"
    assert new_counter == 101


def test_pick_empty_raises():
    with pytest.raises(ValueError, match="empty"):
        pick_next([], 0)


def test_least_loaded_picks_lowest_load():
    chosen = LeastLoadedStrategy().select_agent([_agent("a", 3), _agent("b", 1), _agent("c", 2)])
    assert chosen.agent_id == "b"


def test_least_loaded_tie_keeps_input_order():
    chosen = LeastLoadedStrategy().select_agent([_agent("b", 1), _agent("a", 1)])
    assert chosen.agent_id == "b"


def test_strategies_ignore_non_available_agents():
    candidates = [_agent("a", 0, AgentStatus.OFFLINE), _agent("b", 0, AgentStatus.BUSY)]
    assert LeastLoadedStrategy().select_agent(candidates) is None
    assert RoundRobinStrategy().select_agent(candidates) is None


def test_round_robin_rotates_regardless_of_load():
    strategy = RoundRobinStrategy()
    candidates = [_agent("a", 5), _agent("b", 0), _agent("c", 2)]
    ids = [strategy.select_agent(candidates).agent_id for _ in range(4)]
    assert ids == ["a", "b", "c", "a"]


def test_build_strategy_by_name():
    assert isinstance(build_strategy("least_loaded"), LeastLoadedStrategy)
    assert isinstance(build_strategy(" ROUND_ROBIN "), RoundRobinStrategy)
    with pytest.raises(ValueError, match="Unknown assignment strategy"):
        build_strategy("random")
