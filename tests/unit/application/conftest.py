"""In-memory fakes of the application ports, wired into the use cases."""

from __future__ import annotations

from collections import Counter
from contextlib import asynccontextmanager

import pytest

from ticket_routing.application.ports.agent_workload_repo import AgentWorkloadRepository
from ticket_routing.application.ports.assignment_repo import (
    AssignmentQuery,
    AssignmentRepository,
)
from ticket_routing.application.ports.event_publisher import EventPublisher
from ticket_routing.application.ports.sla_rule_repo import SlaRuleRepository
from ticket_routing.application.ports.sla_tracking_repo import SlaTrackingRepository
from ticket_routing.application.ports.ticket_repo import TicketRepository
from ticket_routing.application.ports.unit_of_work import UnitOfWork
from ticket_routing.application.use_cases.agent_workload import AgentWorkloadRegistry
from ticket_routing.application.use_cases.assignment_ledger import AssignmentLedger
from ticket_routing.application.use_cases.sla_rules import SlaRuleResolver
from ticket_routing.application.use_cases.sla_sweep import SlaBreachSweeper
from ticket_routing.application.use_cases.sla_tracker import SlaTracker
from ticket_routing.application.use_cases.ticket_events import TicketEventHandler
from ticket_routing.domain.entities.agent_workload import AgentWorkload, WorkloadLimits
from ticket_routing.domain.entities.ticket_ref import TicketRef
from ticket_routing.domain.errors import InvalidState
from ticket_routing.domain.policies.assignment_strategy import LeastLoadedStrategy
from ticket_routing.domain.value_objects.enums import AssignmentStatus

# ─── In-memory fakes ────────────────────────────────────────────────


class FakeAgentRepo(AgentWorkloadRepository):
    def __init__(self):
        self.agents: dict[str, AgentWorkload] = {}
        self.locked: list[str] = []

    def put(self, agent: AgentWorkload) -> AgentWorkload:
        self.agents[agent.agent_id] = agent
        return agent

    async def add(self, agent):
        return self.agents.setdefault(agent.agent_id, agent)

    async def get(self, agent_id):
        return self.agents.get(agent_id)

    async def get_for_update(self, agent_id):
        self.locked.append(agent_id)
        return self.agents.get(agent_id)

    async def update(self, agent):
        self.agents[agent.agent_id] = agent
        return agent

    async def list_all(self):
        return sorted(self.agents.values(), key=lambda a: a.agent_id)

    async def list_by_status(self, status):
        matching = [a for a in self.agents.values() if a.status == status]
        return sorted(matching, key=lambda a: (a.active_tickets, a.agent_id))


class FakeAssignmentRepo(AssignmentRepository):
    """Records are shared objects; ``stored_status`` plays the role of the row's status column."""

    def __init__(self):
        self.records: dict[str, object] = {}
        self.stored_status: dict[str, AssignmentStatus] = {}

    async def add(self, assignment):
        if assignment.is_current() and any(
            r.ticket_id == assignment.ticket_id and r.is_current() for r in self.records.values()
        ):
            raise InvalidState("Ticket already has a current assignment")
        self.records[assignment.id] = assignment
        self.stored_status[assignment.id] = assignment.status
        return assignment

    async def get(self, assignment_id):
        return self.records.get(assignment_id)

    async def close(self, assignment):
        if self.stored_status.get(assignment.id) != AssignmentStatus.CURRENT:
            raise InvalidState("Assignment is no longer current")
        self.records[assignment.id] = assignment
        self.stored_status[assignment.id] = assignment.status
        return assignment

    async def delete(self, assignment_id):
        self.records.pop(assignment_id, None)
        self.stored_status.pop(assignment_id, None)

    async def get_current_for_ticket(self, ticket_id):
        return next(
            (r for r in self.records.values() if r.ticket_id == ticket_id and r.is_current()),
            None,
        )

    async def list_current_for_agent(self, agent_id):
        return [r for r in self.records.values() if r.agent_id == agent_id and r.is_current()]

    async def history_for_ticket(self, ticket_id):
        return [r for r in reversed(list(self.records.values())) if r.ticket_id == ticket_id]

    async def search(self, query: AssignmentQuery):
        rows = list(reversed(list(self.records.values())))
        if query.status is not None:
            rows = [r for r in rows if r.status == query.status]
        if query.agent_id is not None:
            rows = [r for r in rows if r.agent_id == query.agent_id]
        if query.ticket_id is not None:
            rows = [r for r in rows if r.ticket_id == query.ticket_id]
        if query.assignment_type is not None:
            rows = [r for r in rows if r.assignment_type == query.assignment_type]
        if query.search:
            needle = query.search.lower()
            rows = [
                r for r in rows
                if needle in (r.ticket_number or "").lower()
                or needle in (r.agent_username or "").lower()
            ]
        return rows[query.offset:query.offset + query.limit], len(rows)

    async def count_by_status(self):
        return dict(Counter(r.status.value for r in self.records.values()))

    async def count_by_type(self):
        return dict(Counter(r.assignment_type.value for r in self.records.values()))

    def current_count(self, agent_id: str) -> int:
        return sum(
            1 for r in self.records.values()
            if r.agent_id == agent_id and r.status == AssignmentStatus.CURRENT
        )


class FakeTicketRepo(TicketRepository):
    def __init__(self):
        self.tickets: dict[str, TicketRef] = {}

    def put(self, ticket: TicketRef) -> TicketRef:
        self.tickets[ticket.ticket_id] = ticket
        return ticket

    async def add(self, ticket):
        self.tickets[ticket.ticket_id] = ticket
        return ticket

    async def get(self, ticket_id):
        return self.tickets.get(ticket_id)

    async def update(self, ticket):
        self.tickets[ticket.ticket_id] = ticket
        return ticket

    async def list_unassigned(self):
        return [
            t for t in self.tickets.values()
            if t.assigned_agent_id is None and not t.status.is_terminal()
        ]


class FakeRuleRepo(SlaRuleRepository):
    def __init__(self):
        self.rules: dict[tuple[str, str | None], object] = {}
        self.inserts = 0

    def put(self, rule):
        self.rules[(rule.priority, rule.category)] = rule
        return rule

    async def find(self, priority, category):
        return self.rules.get((priority, category))

    async def add_if_absent(self, rule):
        key = (rule.priority, rule.category)
        if key not in self.rules:
            self.inserts += 1
            self.rules[key] = rule
        return self.rules[key]

    async def list_all(self):
        return list(self.rules.values())


class FakeTrackingRepo(SlaTrackingRepository):
    def __init__(self):
        self.trackings: dict[str, object] = {}
        self.updates = 0

    async def add_if_absent(self, tracking):
        existing = next(
            (t for t in self.trackings.values() if t.ticket_id == tracking.ticket_id), None
        )
        if existing is not None:
            return existing
        self.trackings[tracking.id] = tracking
        return tracking

    async def get_by_ticket(self, ticket_id):
        return next((t for t in self.trackings.values() if t.ticket_id == ticket_id), None)

    async def lock_by_ticket(self, ticket_id):
        return await self.get_by_ticket(ticket_id)

    async def lock(self, tracking_id):
        return self.trackings.get(tracking_id)

    async def update(self, tracking):
        self.updates += 1
        self.trackings[tracking.id] = tracking
        return tracking

    async def list_open_ids(self):
        open_ = [t for t in self.trackings.values() if t.resolved_at is None]
        return [t.id for t in sorted(open_, key=lambda t: t.resolution_due_at)]

    async def list_by_status(self, status):
        return [t for t in self.trackings.values() if t.status == status]

    async def list_open(self):
        return [t for t in self.trackings.values() if t.resolved_at is None]

    async def list_all(self):
        return list(self.trackings.values())


class RecordingPublisher(EventPublisher):
    def __init__(self):
        self.events = []

    async def publish(self, event):
        self.events.append(event)

    def of_type(self, cls):
        return [e for e in self.events if isinstance(e, cls)]


class FakeUnitOfWork(UnitOfWork):
    def __init__(self):
        self.savepoints = 0

    @asynccontextmanager
    async def savepoint(self):
        self.savepoints += 1
        yield self


# ─── Fixtures ───────────────────────────────────────────────────────


@pytest.fixture
def agent_repo():
    return FakeAgentRepo()


@pytest.fixture
def assignment_repo():
    return FakeAssignmentRepo()


@pytest.fixture
def ticket_repo():
    return FakeTicketRepo()


@pytest.fixture
def rule_repo():
    return FakeRuleRepo()


@pytest.fixture
def tracking_repo():
    return FakeTrackingRepo()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def unit_of_work():
    return FakeUnitOfWork()


@pytest.fixture
def limits():
    return WorkloadLimits(capacity=3)


@pytest.fixture
def registry(agent_repo, limits, clock):
    return AgentWorkloadRegistry(agent_repo, limits, clock=clock)


@pytest.fixture
def resolver(rule_repo, clock):
    return SlaRuleResolver(rule_repo, clock=clock)


@pytest.fixture
def tracker(tracking_repo, resolver, clock):
    return SlaTracker(tracking_repo, resolver, clock=clock)


@pytest.fixture
def ledger(assignment_repo, ticket_repo, registry, tracker, publisher, unit_of_work, clock):
    return AssignmentLedger(
        assignment_repo=assignment_repo,
        ticket_repo=ticket_repo,
        workload=registry,
        strategy=LeastLoadedStrategy(),
        sla_tracker=tracker,
        publisher=publisher,
        unit_of_work=unit_of_work,
        clock=clock,
    )


@pytest.fixture
def tracking_scope(tracking_repo):
    @asynccontextmanager
    async def scope():
        yield tracking_repo

    return scope


@pytest.fixture
def sweeper(tracking_scope, publisher, clock):
    return SlaBreachSweeper(tracking_scope, publisher, clock=clock)


@pytest.fixture
def ticket_events(ticket_repo, ledger, tracker, clock):
    return TicketEventHandler(ticket_repo, ledger, tracker, clock=clock)


@pytest.fixture
def add_agent(agent_repo, clock):
    def _add(agent_id: str, username: str | None = None, **kwargs) -> AgentWorkload:
        return agent_repo.put(
            AgentWorkload(
                agent_id=agent_id, username=username or agent_id, updated_at=clock(), **kwargs
            )
        )

    return _add


@pytest.fixture
def add_ticket(ticket_repo, clock):
    def _add(ticket_id: str, priority: str | None = None, **kwargs) -> TicketRef:
        return ticket_repo.put(
            TicketRef(
                ticket_id=ticket_id,
                ticket_number=f"TKT-{ticket_id}",
                priority=priority,
                created_at=clock(),
                updated_at=clock(),
                **kwargs,
            )
        )

    return _add
