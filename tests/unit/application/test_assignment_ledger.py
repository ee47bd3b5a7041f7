"""Tests for AssignmentLedger with in-memory fakes."""

import asyncio
from dataclasses import replace

import pytest

from ticket_routing.application.ports.assignment_repo import AssignmentQuery
from ticket_routing.application.use_cases.assignment_ledger import AssignmentLedger
from ticket_routing.domain.errors import (
    AgentUnavailable,
    CapacityExceeded,
    InvalidState,
    NotFound,
    ValidationError,
)
from ticket_routing.domain.events import TicketAssigned
from ticket_routing.domain.policies.assignment_strategy import RoundRobinStrategy
from ticket_routing.domain.value_objects.enums import (
    AgentStatus,
    AssignmentStatus,
    AssignmentType,
    TicketStatus,
)


def _assert_counters_match(agent_repo, assignment_repo):
    for agent in agent_repo.agents.values():
        assert agent.active_tickets == assignment_repo.current_count(agent.agent_id), agent.agent_id


# ─── manual_assign ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_manual_assign_writes_record_counters_and_event(
    ledger, add_agent, add_ticket, agent_repo, assignment_repo, ticket_repo, publisher
):
    add_agent("a1", "alice")
    add_ticket("t1")

    record = await ledger.manual_assign("t1", "a1", "admin", "root", notes="urgent")

    assert record.status == AssignmentStatus.CURRENT
    assert record.assignment_type == AssignmentType.MANUAL
    assert record.strategy == "MANUAL"
    assert record.notes == "urgent"
    assert agent_repo.agents["a1"].active_tickets == 1
    assert agent_repo.agents["a1"].total_assigned_tickets == 1
    ticket = ticket_repo.tickets["t1"]
    assert ticket.assigned_agent_id == "a1"
    assert ticket.status == TicketStatus.ASSIGNED

    [event] = publisher.of_type(TicketAssigned)
    assert event.agent_username == "alice"
    assert event.assigned_by == "admin"
    assert event.assignment_type == "MANUAL"
    _assert_counters_match(agent_repo, assignment_repo)


@pytest.mark.asyncio
async def test_manual_assign_with_priority_starts_sla(ledger, add_agent, add_ticket, tracking_repo):
    add_agent("a1", "alice")
    add_ticket("t1")

    await ledger.manual_assign("t1", "a1", "admin", priority="high")

    tracking = await tracking_repo.get_by_ticket("t1")
    assert tracking.priority == "HIGH"
    assert tracking.assigned_agent_id == "a1"


@pytest.mark.asyncio
async def test_manual_assign_without_priority_starts_no_sla(
    ledger, add_agent, add_ticket, tracking_repo
):
    add_agent("a1")
    add_ticket("t1")
    await ledger.manual_assign("t1", "a1", "admin")
    assert tracking_repo.trackings == {}


@pytest.mark.asyncio
async def test_assign_to_offline_agent_has_no_side_effects(
    ledger, add_agent, add_ticket, agent_repo, assignment_repo, ticket_repo, publisher
):
    add_agent("a1", status=AgentStatus.OFFLINE)
    add_ticket("t1")

    with pytest.raises(AgentUnavailable):
        await ledger.manual_assign("t1", "a1", "admin")

    assert agent_repo.agents["a1"].active_tickets == 0
    assert agent_repo.agents["a1"].total_assigned_tickets == 0
    assert assignment_repo.records == {}
    assert ticket_repo.tickets["t1"].assigned_agent_id is None
    assert publisher.events == []


@pytest.mark.asyncio
async def test_assign_at_capacity_has_no_side_effects(
    ledger, add_agent, add_ticket, agent_repo, assignment_repo, publisher
):
    add_agent("a1")
    for i in range(4):
        add_ticket(f"t{i}")
    for i in range(3):
        await ledger.manual_assign(f"t{i}", "a1", "admin")
    publisher.events.clear()

    with pytest.raises(CapacityExceeded):
        await ledger.manual_assign("t3", "a1", "admin")

    assert agent_repo.agents["a1"].active_tickets == 3
    assert len(assignment_repo.records) == 3
    assert publisher.events == []
    _assert_counters_match(agent_repo, assignment_repo)


@pytest.mark.asyncio
async def test_assign_already_assigned_ticket_rejected(ledger, add_agent, add_ticket):
    add_agent("a1")
    add_agent("a2")
    add_ticket("t1")
    await ledger.manual_assign("t1", "a1", "admin")

    with pytest.raises(InvalidState):
        await ledger.manual_assign("t1", "a2", "admin")


@pytest.mark.asyncio
async def test_assign_unknown_agent_or_ticket(ledger, add_agent, add_ticket):
    add_agent("a1")
    add_ticket("t1")
    with pytest.raises(NotFound):
        await ledger.manual_assign("t1", "ghost", "admin")
    with pytest.raises(NotFound):
        await ledger.manual_assign("nope", "a1", "admin")


# ─── auto_assign ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_auto_assign_picks_least_loaded(ledger, add_agent, add_ticket, agent_repo):
    add_agent("a1", active_tickets=0)
    add_agent("a2", active_tickets=0)
    add_ticket("t1")
    add_ticket("t2")

    first = await ledger.auto_assign("t1")
    second = await ledger.auto_assign("t2")

    assert first.agent_id == "a1"
    assert second.agent_id == "a2"
    assert first.assignment_type == AssignmentType.AUTO
    assert first.assigned_by == "SYSTEM"
    assert first.assigned_by_username == "AutoAssignment"
    assert first.strategy == "LEAST_LOADED"


@pytest.mark.asyncio
async def test_auto_assign_skips_offline_and_busy(ledger, add_agent, add_ticket):
    add_agent("a1", status=AgentStatus.OFFLINE)
    add_agent("a2", status=AgentStatus.BUSY, active_tickets=3)
    add_ticket("t1")
    assert await ledger.auto_assign("t1") is None


@pytest.mark.asyncio
async def test_auto_assign_leaves_assigned_ticket_alone(ledger, add_agent, add_ticket, assignment_repo):
    add_agent("a1")
    add_agent("a2")
    add_ticket("t1")
    await ledger.manual_assign("t1", "a1", "admin")
    assert await ledger.auto_assign("t1") is None
    assert len(assignment_repo.records) == 1


@pytest.mark.asyncio
async def test_auto_assign_disabled(
    assignment_repo, ticket_repo, registry, tracker, publisher, unit_of_work,
    add_agent, add_ticket, clock,
):
    disabled = AssignmentLedger(
        assignment_repo, ticket_repo, registry, RoundRobinStrategy(), tracker,
        publisher, unit_of_work, auto_assign_enabled=False, clock=clock,
    )
    add_agent("a1")
    add_ticket("t1")
    assert await disabled.auto_assign("t1") is None
    assert assignment_repo.records == {}


# ─── complete / force_reassign / unassign ───────────────────────────


@pytest.mark.asyncio
async def test_complete_assignment(ledger, add_agent, add_ticket, agent_repo, assignment_repo, clock):
    add_agent("a1")
    add_ticket("t1")
    await ledger.manual_assign("t1", "a1", "admin")
    clock.advance(hours=1)

    record = await ledger.complete_assignment("t1")

    assert record.status == AssignmentStatus.COMPLETED
    assert record.completed_at == clock()
    agent = agent_repo.agents["a1"]
    assert (agent.active_tickets, agent.completed_tickets) == (0, 1)
    assert await ledger.complete_assignment("t1") is None
    _assert_counters_match(agent_repo, assignment_repo)


@pytest.mark.asyncio
async def test_force_reassign_moves_ticket_and_keeps_lineage(
    ledger, add_agent, add_ticket, agent_repo, assignment_repo, ticket_repo, publisher
):
    add_agent("a1", "alice")
    add_agent("a2", "bob")
    add_ticket("t1")
    original = await ledger.manual_assign("t1", "a1", "admin")

    new = await ledger.force_reassign(original.id, "a2", "vacation", "admin", "root")

    old = assignment_repo.records[original.id]
    assert old.status == AssignmentStatus.REASSIGNED
    assert old.reassignment_reason == "vacation"
    assert new.status == AssignmentStatus.CURRENT
    assert new.assignment_type == AssignmentType.REASSIGNMENT
    assert new.strategy == "ADMIN_REASSIGN"
    assert (new.previous_agent_id, new.previous_agent_username) == ("a1", "alice")
    assert new.notes == "Force reassigned by admin: vacation"
    assert agent_repo.agents["a1"].active_tickets == 0
    assert agent_repo.agents["a2"].active_tickets == 1
    assert ticket_repo.tickets["t1"].assigned_agent_id == "a2"
    assert len(publisher.of_type(TicketAssigned)) == 2
    _assert_counters_match(agent_repo, assignment_repo)


@pytest.mark.asyncio
async def test_force_reassign_locks_agents_in_id_order(ledger, add_agent, add_ticket, agent_repo):
    add_agent("b")
    add_agent("a")
    add_ticket("t1")
    record = await ledger.manual_assign("t1", "b", "admin")
    agent_repo.locked.clear()

    await ledger.force_reassign(record.id, "a", "rebalance", "admin")

    assert agent_repo.locked[:2] == ["a", "b"]


@pytest.mark.asyncio
async def test_force_reassign_validation(ledger, add_agent, add_ticket):
    add_agent("a1")
    add_agent("a2")
    add_ticket("t1")
    record = await ledger.manual_assign("t1", "a1", "admin")

    with pytest.raises(ValidationError):
        await ledger.force_reassign(record.id, "a2", "  ", "admin")
    with pytest.raises(ValidationError):
        await ledger.force_reassign(record.id, "", "reason", "admin")
    with pytest.raises(ValidationError):
        await ledger.force_reassign(record.id, "a1", "reason", "admin")


@pytest.mark.asyncio
async def test_force_reassign_non_current_record(ledger, add_agent, add_ticket):
    add_agent("a1")
    add_agent("a2")
    add_ticket("t1")
    record = await ledger.manual_assign("t1", "a1", "admin")
    await ledger.force_reassign(record.id, "a2", "first", "admin")

    with pytest.raises(InvalidState):
        await ledger.force_reassign(record.id, "a2", "again", "admin")


@pytest.mark.asyncio
async def test_force_reassign_to_offline_agent_changes_nothing(
    ledger, add_agent, add_ticket, agent_repo, assignment_repo
):
    add_agent("a1")
    add_agent("a2", status=AgentStatus.OFFLINE)
    add_ticket("t1")
    record = await ledger.manual_assign("t1", "a1", "admin")

    with pytest.raises(AgentUnavailable):
        await ledger.force_reassign(record.id, "a2", "reason", "admin")

    assert assignment_repo.records[record.id].is_current()
    assert agent_repo.agents["a1"].active_tickets == 1
    _assert_counters_match(agent_repo, assignment_repo)


@pytest.mark.asyncio
async def test_unassign_current_record(
    ledger, add_agent, add_ticket, agent_repo, assignment_repo, ticket_repo, tracking_repo
):
    add_agent("a1")
    add_ticket("t1", priority="LOW")
    record = await ledger.manual_assign("t1", "a1", "admin")

    result = await ledger.unassign(record.id, "wrong queue", "admin")

    assert result.status == AssignmentStatus.UNASSIGNED
    assert result.reassignment_reason == "Unassigned by admin: wrong queue"
    assert agent_repo.agents["a1"].active_tickets == 0
    ticket = ticket_repo.tickets["t1"]
    assert ticket.assigned_agent_id is None
    assert ticket.status == TicketStatus.OPEN
    assert (await tracking_repo.get_by_ticket("t1")).assigned_agent_id is None
    _assert_counters_match(agent_repo, assignment_repo)


@pytest.mark.asyncio
async def test_unassign_reassigned_record_targets_current_one(
    ledger, add_agent, add_ticket, agent_repo, assignment_repo
):
    add_agent("a1")
    add_agent("a2")
    add_ticket("t1")
    original = await ledger.manual_assign("t1", "a1", "admin")
    current = await ledger.force_reassign(original.id, "a2", "handover", "admin")

    result = await ledger.unassign(original.id, "cleanup", "admin")

    assert result.id == current.id
    assert assignment_repo.records[current.id].status == AssignmentStatus.UNASSIGNED
    assert assignment_repo.records[original.id].status == AssignmentStatus.REASSIGNED
    assert result.reassignment_reason == (
        f"Unassigned by admin via assignment {original.id}: cleanup"
    )
    assert agent_repo.agents["a2"].active_tickets == 0
    _assert_counters_match(agent_repo, assignment_repo)


@pytest.mark.asyncio
async def test_unassign_completed_record_rejected(ledger, add_agent, add_ticket):
    add_agent("a1")
    add_ticket("t1")
    record = await ledger.manual_assign("t1", "a1", "admin")
    await ledger.complete_assignment("t1")

    with pytest.raises(InvalidState):
        await ledger.unassign(record.id, "late", "admin")


@pytest.mark.asyncio
async def test_unassign_requires_reason(ledger, add_agent, add_ticket):
    add_agent("a1")
    add_ticket("t1")
    record = await ledger.manual_assign("t1", "a1", "admin")
    with pytest.raises(ValidationError):
        await ledger.unassign(record.id, "", "admin")


# ─── bulk_reassign ──────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_bulk_reassign_stops_at_target_capacity(
    ledger, add_agent, add_ticket, agent_repo, assignment_repo, unit_of_work
):
    add_agent("A")
    add_agent("B")
    for i in range(5):
        add_ticket(f"t{i}")
    for i in range(3):
        await ledger.manual_assign(f"t{i}", "A", "admin")
    for i in range(3, 5):
        await ledger.manual_assign(f"t{i}", "B", "admin")

    result = await ledger.bulk_reassign("A", "B", "team change", "admin")

    assert result.total_processed == 3
    assert result.success_count == 1
    assert result.failed_count == 2
    assert result.errors == [
        "Agent reached maximum capacity at ticket: TKT-t1",
        "Agent reached maximum capacity at ticket: TKT-t2",
    ]
    assert agent_repo.agents["A"].active_tickets == 2
    assert agent_repo.agents["B"].active_tickets == 3
    assert unit_of_work.savepoints == 1
    _assert_counters_match(agent_repo, assignment_repo)


@pytest.mark.asyncio
async def test_bulk_reassign_moves_everything_when_room(ledger, add_agent, add_ticket, agent_repo):
    add_agent("A")
    add_agent("B")
    for i in range(2):
        add_ticket(f"t{i}")
        await ledger.manual_assign(f"t{i}", "A", "admin")

    result = await ledger.bulk_reassign("A", "B", "rebalance", "admin")

    assert (result.success_count, result.failed_count) == (2, 0)
    assert agent_repo.agents["A"].active_tickets == 0
    assert agent_repo.agents["B"].active_tickets == 2


@pytest.mark.asyncio
async def test_bulk_reassign_to_offline_target(ledger, add_agent):
    add_agent("A")
    add_agent("B", status=AgentStatus.OFFLINE)
    with pytest.raises(AgentUnavailable):
        await ledger.bulk_reassign("A", "B", "reason", "admin")


@pytest.mark.asyncio
async def test_bulk_reassign_same_agent(ledger, add_agent):
    add_agent("A")
    with pytest.raises(ValidationError):
        await ledger.bulk_reassign("A", "A", "reason", "admin")


# ─── delete / queries ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_delete_current_record_rejected(ledger, add_agent, add_ticket, assignment_repo):
    add_agent("a1")
    add_ticket("t1")
    record = await ledger.manual_assign("t1", "a1", "admin")

    with pytest.raises(InvalidState, match="Unassign it first"):
        await ledger.delete_record(record.id)

    await ledger.unassign(record.id, "done", "admin")
    await ledger.delete_record(record.id)
    assert record.id not in assignment_repo.records


@pytest.mark.asyncio
async def test_history_and_search(ledger, add_agent, add_ticket):
    add_agent("a1", "alice")
    add_agent("a2", "bob")
    add_ticket("t1")
    first = await ledger.manual_assign("t1", "a1", "admin")
    second = await ledger.force_reassign(first.id, "a2", "swap", "admin")

    history = await ledger.history("t1")
    assert [r.id for r in history] == [second.id, first.id]

    rows, total = await ledger.search(AssignmentQuery(status=AssignmentStatus.REASSIGNED))
    assert total == 1
    assert rows[0].id == first.id

    rows, total = await ledger.search(AssignmentQuery(search="bob"))
    assert [r.id for r in rows] == [second.id]


@pytest.mark.asyncio
async def test_agent_detail(ledger, add_agent, add_ticket):
    add_agent("a1")
    add_ticket("t1")
    add_ticket("t2")
    await ledger.manual_assign("t1", "a1", "admin")
    await ledger.manual_assign("t2", "a1", "admin")

    detail = await ledger.agent_detail("a1")

    assert detail.capacity == 3
    assert detail.remaining_capacity == 1
    assert [r.ticket_id for r in detail.current_assignments] == ["t1", "t2"]


@pytest.mark.asyncio
async def test_unassigned_tickets(ledger, add_agent, add_ticket):
    add_agent("a1")
    add_ticket("t1")
    add_ticket("t2")
    await ledger.manual_assign("t1", "a1", "admin")
    assert [t.ticket_id for t in await ledger.unassigned_tickets()] == ["t2"]


# ─── racing closers ─────────────────────────────────────────────────


@pytest.fixture
def snapshot_reads(agent_repo, assignment_repo, monkeypatch):
    """Each read hands out a private copy and yields, as separate transactions would."""
    get = assignment_repo.get
    get_current = assignment_repo.get_current_for_ticket
    lock_agent = agent_repo.get_for_update

    async def get_copy(assignment_id):
        record = await get(assignment_id)
        await asyncio.sleep(0)
        return replace(record) if record else None

    async def get_current_copy(ticket_id):
        record = await get_current(ticket_id)
        await asyncio.sleep(0)
        return replace(record) if record else None

    async def yielding_lock(agent_id):
        await asyncio.sleep(0)
        return await lock_agent(agent_id)

    monkeypatch.setattr(assignment_repo, "get", get_copy)
    monkeypatch.setattr(assignment_repo, "get_current_for_ticket", get_current_copy)
    monkeypatch.setattr(agent_repo, "get_for_update", yielding_lock)


@pytest.mark.asyncio
async def test_concurrent_unassign_decrements_once(
    ledger, add_agent, add_ticket, agent_repo, assignment_repo, snapshot_reads
):
    add_agent("a1")
    add_ticket("t1")
    add_ticket("t2")
    record = await ledger.manual_assign("t1", "a1", "admin")
    await ledger.manual_assign("t2", "a1", "admin")

    results = await asyncio.gather(
        ledger.unassign(record.id, "first", "admin"),
        ledger.unassign(record.id, "second", "admin"),
        return_exceptions=True,
    )

    assert sum(isinstance(r, InvalidState) for r in results) == 1
    assert agent_repo.agents["a1"].active_tickets == 1
    assert assignment_repo.stored_status[record.id] == AssignmentStatus.UNASSIGNED
    _assert_counters_match(agent_repo, assignment_repo)


@pytest.mark.asyncio
async def test_duplicate_completion_counts_once(
    ledger, add_agent, add_ticket, agent_repo, assignment_repo, snapshot_reads
):
    add_agent("a1")
    add_ticket("t1")
    add_ticket("t2")
    await ledger.manual_assign("t1", "a1", "admin")
    await ledger.manual_assign("t2", "a1", "admin")

    first, second = await asyncio.gather(
        ledger.complete_assignment("t1"), ledger.complete_assignment("t1")
    )

    assert [first is None, second is None].count(True) == 1
    agent = agent_repo.agents["a1"]
    assert (agent.active_tickets, agent.completed_tickets) == (1, 1)
    _assert_counters_match(agent_repo, assignment_repo)


@pytest.mark.asyncio
async def test_concurrent_force_reassign_moves_ticket_once(
    ledger, add_agent, add_ticket, agent_repo, assignment_repo, snapshot_reads
):
    add_agent("a1")
    add_agent("a2")
    add_agent("a3")
    add_ticket("t1")
    record = await ledger.manual_assign("t1", "a1", "admin")

    results = await asyncio.gather(
        ledger.force_reassign(record.id, "a2", "to bob", "admin"),
        ledger.force_reassign(record.id, "a3", "to carol", "admin"),
        return_exceptions=True,
    )

    assert sum(isinstance(r, InvalidState) for r in results) == 1
    assert agent_repo.agents["a1"].active_tickets == 0
    assert len([r for r in assignment_repo.records.values() if r.is_current()]) == 1
    _assert_counters_match(agent_repo, assignment_repo)
