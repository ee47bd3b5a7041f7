"""SQLAlchemy repository implementations."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_routing.adapters.persistence.database import async_session_factory
from ticket_routing.adapters.persistence.models import (
    AgentWorkloadModel,
    AssignmentModel,
    SlaRuleModel,
    SlaTrackingModel,
    TicketRefModel,
)
from ticket_routing.application.ports.agent_workload_repo import AgentWorkloadRepository
from ticket_routing.application.ports.assignment_repo import (
    AssignmentQuery,
    AssignmentRepository,
)
from ticket_routing.application.ports.sla_rule_repo import SlaRuleRepository
from ticket_routing.application.ports.sla_tracking_repo import SlaTrackingRepository
from ticket_routing.application.ports.ticket_repo import TicketRepository
from ticket_routing.application.ports.unit_of_work import UnitOfWork
from ticket_routing.domain.entities.agent_workload import AgentWorkload
from ticket_routing.domain.entities.assignment import Assignment
from ticket_routing.domain.entities.sla_rule import SlaRule
from ticket_routing.domain.entities.sla_tracking import SlaTracking
from ticket_routing.domain.entities.ticket_ref import TicketRef
from ticket_routing.domain.errors import InvalidState
from ticket_routing.domain.value_objects.enums import (
    AgentStatus,
    AssignmentStatus,
    AssignmentType,
    SlaStatus,
    TicketStatus,
)

# ─── Mappers ─────────────────────────────────────────────────────────


def _agent_to_domain(m: AgentWorkloadModel) -> AgentWorkload:
    return AgentWorkload(
        agent_id=m.agent_id,
        username=m.agent_username,
        active_tickets=m.active_tickets,
        total_assigned_tickets=m.total_assigned_tickets,
        completed_tickets=m.completed_tickets,
        status=AgentStatus(m.status),
        last_assigned_at=m.last_assigned_at,
        updated_at=m.updated_at,
    )


def _agent_values(a: AgentWorkload) -> dict:
    values = dict(
        agent_username=a.username,
        active_tickets=a.active_tickets,
        total_assigned_tickets=a.total_assigned_tickets,
        completed_tickets=a.completed_tickets,
        status=a.status.value,
        last_assigned_at=a.last_assigned_at,
    )
    if a.updated_at is not None:
        values["updated_at"] = a.updated_at
    return values


def _assignment_to_domain(m: AssignmentModel) -> Assignment:
    return Assignment(
        id=m.assignment_id,
        ticket_id=m.ticket_id,
        ticket_number=m.ticket_number,
        agent_id=m.agent_id,
        agent_username=m.agent_username,
        assigned_by=m.assigned_by,
        assigned_by_username=m.assigned_by_username,
        assignment_type=AssignmentType(m.assignment_type),
        strategy=m.assignment_strategy,
        status=AssignmentStatus(m.status),
        previous_agent_id=m.previous_agent_id,
        previous_agent_username=m.previous_agent_username,
        reassignment_reason=m.reassignment_reason,
        notes=m.assignment_notes,
        assigned_at=m.assigned_at,
        completed_at=m.completed_at,
    )


def _rule_to_domain(m: SlaRuleModel) -> SlaRule:
    return SlaRule(
        id=m.rule_id,
        priority=m.priority,
        category=m.category,
        response_time_minutes=m.response_time_minutes,
        resolution_time_hours=m.resolution_time_hours,
        business_hours_only=m.business_hours_only,
        escalation_time_minutes=m.escalation_time_minutes,
        created_at=m.created_at,
    )


def _tracking_to_domain(m: SlaTrackingModel) -> SlaTracking:
    return SlaTracking(
        id=m.tracking_id,
        ticket_id=m.ticket_id,
        ticket_number=m.ticket_number,
        priority=m.priority,
        category=m.category,
        business_hours_only=m.business_hours_only,
        sla_start_time=m.sla_start_time,
        response_due_at=m.response_due_at,
        resolution_due_at=m.resolution_due_at,
        first_response_at=m.first_response_at,
        response_breached=m.response_breached,
        response_time_minutes=m.response_time_minutes,
        resolved_at=m.resolved_at,
        resolution_breached=m.resolution_breached,
        resolution_time_hours=m.resolution_time_hours,
        status=SlaStatus(m.sla_status),
        breach_reason=m.breach_reason,
        breached_at=m.breached_at,
        assigned_agent_id=m.assigned_agent_id,
        assigned_agent_username=m.assigned_agent_username,
        created_at=m.created_at,
        updated_at=m.updated_at,
    )


def _tracking_values(t: SlaTracking) -> dict:
    """Mutable columns; due times and start time are fixed at creation."""
    values = dict(
        first_response_at=t.first_response_at,
        response_breached=t.response_breached,
        response_time_minutes=t.response_time_minutes,
        resolved_at=t.resolved_at,
        resolution_breached=t.resolution_breached,
        resolution_time_hours=t.resolution_time_hours,
        sla_status=t.status.value,
        breach_reason=t.breach_reason,
        breached_at=t.breached_at,
        assigned_agent_id=t.assigned_agent_id,
        assigned_agent_username=t.assigned_agent_username,
    )
    if t.updated_at is not None:
        values["updated_at"] = t.updated_at
    return values


def _ticket_to_domain(m: TicketRefModel) -> TicketRef:
    return TicketRef(
        ticket_id=m.ticket_id,
        ticket_number=m.ticket_number,
        priority=m.priority,
        category=m.category,
        status=TicketStatus(m.status),
        assigned_agent_id=m.assigned_agent_id,
        assigned_agent_username=m.assigned_agent_username,
        created_at=m.created_at,
        updated_at=m.updated_at,
    )


# ─── Repositories ────────────────────────────────────────────────────


class SqlAgentWorkloadRepository(AgentWorkloadRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def add(self, agent: AgentWorkload) -> AgentWorkload:
        await self._s.execute(
            pg_insert(AgentWorkloadModel)
            .values(agent_id=agent.agent_id, **_agent_values(agent))
            .on_conflict_do_nothing(index_elements=[AgentWorkloadModel.agent_id])
        )
        await self._s.flush()
        return await self.get(agent.agent_id)

    async def get(self, agent_id: str) -> AgentWorkload | None:
        result = await self._s.execute(
            select(AgentWorkloadModel).where(AgentWorkloadModel.agent_id == agent_id)
        )
        m = result.scalar_one_or_none()
        return _agent_to_domain(m) if m else None

    async def get_for_update(self, agent_id: str) -> AgentWorkload | None:
        result = await self._s.execute(
            select(AgentWorkloadModel)
            .where(AgentWorkloadModel.agent_id == agent_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        m = result.scalar_one_or_none()
        return _agent_to_domain(m) if m else None

    async def update(self, agent: AgentWorkload) -> AgentWorkload:
        await self._s.execute(
            update(AgentWorkloadModel)
            .where(AgentWorkloadModel.agent_id == agent.agent_id)
            .values(**_agent_values(agent))
        )
        await self._s.flush()
        return agent

    async def list_all(self) -> list[AgentWorkload]:
        result = await self._s.execute(
            select(AgentWorkloadModel).order_by(AgentWorkloadModel.agent_id)
        )
        return [_agent_to_domain(m) for m in result.scalars()]

    async def list_by_status(self, status: AgentStatus) -> list[AgentWorkload]:
        result = await self._s.execute(
            select(AgentWorkloadModel)
            .where(AgentWorkloadModel.status == status.value)
            .order_by(AgentWorkloadModel.active_tickets, AgentWorkloadModel.agent_id)
        )
        return [_agent_to_domain(m) for m in result.scalars()]


class SqlAssignmentRepository(AssignmentRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def add(self, assignment: Assignment) -> Assignment:
        m = AssignmentModel(
            assignment_id=assignment.id,
            ticket_id=assignment.ticket_id,
            ticket_number=assignment.ticket_number,
            agent_id=assignment.agent_id,
            agent_username=assignment.agent_username,
            assigned_by=assignment.assigned_by,
            assigned_by_username=assignment.assigned_by_username,
            assignment_type=assignment.assignment_type.value,
            assignment_strategy=assignment.strategy,
            previous_agent_id=assignment.previous_agent_id,
            previous_agent_username=assignment.previous_agent_username,
            reassignment_reason=assignment.reassignment_reason,
            assignment_notes=assignment.notes,
            status=assignment.status.value,
            assigned_at=assignment.assigned_at,
            completed_at=assignment.completed_at,
        )
        try:
            async with self._s.begin_nested():
                self._s.add(m)
        except IntegrityError as exc:
            raise InvalidState(
                "Ticket already has a current assignment",
                {"ticket_id": assignment.ticket_id},
            ) from exc
        return assignment

    async def get(self, assignment_id: str) -> Assignment | None:
        m = await self._s.get(AssignmentModel, assignment_id)
        return _assignment_to_domain(m) if m else None

    async def close(self, assignment: Assignment) -> Assignment:
        # Concurrent closers block on the row; the loser re-reads a non-CURRENT status.
        result = await self._s.execute(
            update(AssignmentModel)
            .where(
                AssignmentModel.assignment_id == assignment.id,
                AssignmentModel.status == AssignmentStatus.CURRENT.value,
            )
            .values(
                status=assignment.status.value,
                completed_at=assignment.completed_at,
                reassignment_reason=assignment.reassignment_reason,
                assignment_notes=assignment.notes,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidState(
                "Assignment is no longer current",
                {"assignment_id": assignment.id},
            )
        await self._s.flush()
        return assignment

    async def delete(self, assignment_id: str) -> None:
        await self._s.execute(
            delete(AssignmentModel).where(AssignmentModel.assignment_id == assignment_id)
        )
        await self._s.flush()

    async def get_current_for_ticket(self, ticket_id: str) -> Assignment | None:
        result = await self._s.execute(
            select(AssignmentModel).where(
                AssignmentModel.ticket_id == ticket_id,
                AssignmentModel.status == AssignmentStatus.CURRENT.value,
            )
        )
        m = result.scalar_one_or_none()
        return _assignment_to_domain(m) if m else None

    async def list_current_for_agent(self, agent_id: str) -> list[Assignment]:
        result = await self._s.execute(
            select(AssignmentModel)
            .where(
                AssignmentModel.agent_id == agent_id,
                AssignmentModel.status == AssignmentStatus.CURRENT.value,
            )
            .order_by(AssignmentModel.assigned_at)
        )
        return [_assignment_to_domain(m) for m in result.scalars()]

    async def history_for_ticket(self, ticket_id: str) -> list[Assignment]:
        result = await self._s.execute(
            select(AssignmentModel)
            .where(AssignmentModel.ticket_id == ticket_id)
            .order_by(AssignmentModel.assigned_at.desc())
        )
        return [_assignment_to_domain(m) for m in result.scalars()]

    async def search(self, query: AssignmentQuery) -> tuple[list[Assignment], int]:
        stmt = select(AssignmentModel)
        if query.status is not None:
            stmt = stmt.where(AssignmentModel.status == query.status.value)
        if query.agent_id:
            stmt = stmt.where(AssignmentModel.agent_id == query.agent_id)
        if query.ticket_id:
            stmt = stmt.where(AssignmentModel.ticket_id == query.ticket_id)
        if query.assignment_type is not None:
            stmt = stmt.where(AssignmentModel.assignment_type == query.assignment_type.value)
        if query.search:
            pattern = f"%{query.search.strip()}%"
            stmt = stmt.where(
                or_(
                    AssignmentModel.ticket_number.ilike(pattern),
                    AssignmentModel.agent_username.ilike(pattern),
                )
            )

        total = await self._s.scalar(select(func.count()).select_from(stmt.subquery()))
        result = await self._s.execute(
            stmt.order_by(AssignmentModel.assigned_at.desc())
            .offset(query.offset)
            .limit(query.limit)
        )
        return [_assignment_to_domain(m) for m in result.scalars()], total or 0

    async def count_by_status(self) -> dict[str, int]:
        result = await self._s.execute(
            select(AssignmentModel.status, func.count()).group_by(AssignmentModel.status)
        )
        return {status: count for status, count in result.all()}

    async def count_by_type(self) -> dict[str, int]:
        result = await self._s.execute(
            select(AssignmentModel.assignment_type, func.count()).group_by(
                AssignmentModel.assignment_type
            )
        )
        return {kind: count for kind, count in result.all()}


class SqlSlaRuleRepository(SlaRuleRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def find(self, priority: str, category: str | None) -> SlaRule | None:
        stmt = select(SlaRuleModel).where(SlaRuleModel.priority == priority)
        if category is None:
            stmt = stmt.where(SlaRuleModel.category.is_(None))
        else:
            stmt = stmt.where(SlaRuleModel.category == category)
        result = await self._s.execute(stmt)
        m = result.scalar_one_or_none()
        return _rule_to_domain(m) if m else None

    async def add_if_absent(self, rule: SlaRule) -> SlaRule:
        values = dict(
            rule_id=rule.id,
            priority=rule.priority,
            category=rule.category,
            response_time_minutes=rule.response_time_minutes,
            resolution_time_hours=rule.resolution_time_hours,
            business_hours_only=rule.business_hours_only,
            escalation_time_minutes=rule.escalation_time_minutes,
        )
        if rule.created_at is not None:
            values["created_at"] = rule.created_at
        await self._s.execute(pg_insert(SlaRuleModel).values(**values).on_conflict_do_nothing())
        await self._s.flush()
        return await self.find(rule.priority, rule.category)

    async def list_all(self) -> list[SlaRule]:
        result = await self._s.execute(
            select(SlaRuleModel).order_by(SlaRuleModel.priority, SlaRuleModel.category)
        )
        return [_rule_to_domain(m) for m in result.scalars()]


class SqlSlaTrackingRepository(SlaTrackingRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def add_if_absent(self, tracking: SlaTracking) -> SlaTracking:
        values = dict(
            tracking_id=tracking.id,
            ticket_id=tracking.ticket_id,
            ticket_number=tracking.ticket_number,
            priority=tracking.priority,
            category=tracking.category,
            business_hours_only=tracking.business_hours_only,
            sla_start_time=tracking.sla_start_time,
            response_due_at=tracking.response_due_at,
            resolution_due_at=tracking.resolution_due_at,
            created_at=tracking.created_at or tracking.sla_start_time,
            **_tracking_values(tracking),
        )
        await self._s.execute(
            pg_insert(SlaTrackingModel)
            .values(**values)
            .on_conflict_do_nothing(index_elements=[SlaTrackingModel.ticket_id])
        )
        await self._s.flush()
        return await self._one(
            select(SlaTrackingModel)
            .where(SlaTrackingModel.ticket_id == tracking.ticket_id)
            .execution_options(populate_existing=True)
        )

    async def _one(self, stmt) -> SlaTracking | None:
        result = await self._s.execute(stmt)
        m = result.scalar_one_or_none()
        return _tracking_to_domain(m) if m else None

    async def get_by_ticket(self, ticket_id: str) -> SlaTracking | None:
        return await self._one(
            select(SlaTrackingModel).where(SlaTrackingModel.ticket_id == ticket_id)
        )

    async def lock_by_ticket(self, ticket_id: str) -> SlaTracking | None:
        return await self._one(
            select(SlaTrackingModel)
            .where(SlaTrackingModel.ticket_id == ticket_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    async def lock(self, tracking_id: str) -> SlaTracking | None:
        return await self._one(
            select(SlaTrackingModel)
            .where(SlaTrackingModel.tracking_id == tracking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

    async def update(self, tracking: SlaTracking) -> SlaTracking:
        await self._s.execute(
            update(SlaTrackingModel)
            .where(SlaTrackingModel.tracking_id == tracking.id)
            .values(**_tracking_values(tracking))
        )
        await self._s.flush()
        return tracking

    async def list_open_ids(self) -> list[str]:
        result = await self._s.execute(
            select(SlaTrackingModel.tracking_id)
            .where(SlaTrackingModel.resolved_at.is_(None))
            .order_by(SlaTrackingModel.resolution_due_at)
        )
        return list(result.scalars())

    async def list_by_status(self, status: SlaStatus) -> list[SlaTracking]:
        result = await self._s.execute(
            select(SlaTrackingModel)
            .where(SlaTrackingModel.sla_status == status.value)
            .order_by(SlaTrackingModel.resolution_due_at)
        )
        return [_tracking_to_domain(m) for m in result.scalars()]

    async def list_open(self) -> list[SlaTracking]:
        result = await self._s.execute(
            select(SlaTrackingModel)
            .where(SlaTrackingModel.resolved_at.is_(None))
            .order_by(SlaTrackingModel.resolution_due_at)
        )
        return [_tracking_to_domain(m) for m in result.scalars()]

    async def list_all(self) -> list[SlaTracking]:
        result = await self._s.execute(
            select(SlaTrackingModel).order_by(SlaTrackingModel.created_at)
        )
        return [_tracking_to_domain(m) for m in result.scalars()]


class SqlTicketRepository(TicketRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def add(self, ticket: TicketRef) -> TicketRef:
        m = TicketRefModel(
            ticket_id=ticket.ticket_id,
            ticket_number=ticket.ticket_number,
            priority=ticket.priority,
            category=ticket.category,
            status=ticket.status.value,
            assigned_agent_id=ticket.assigned_agent_id,
            assigned_agent_username=ticket.assigned_agent_username,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )
        self._s.add(m)
        await self._s.flush()
        return ticket

    async def get(self, ticket_id: str) -> TicketRef | None:
        m = await self._s.get(TicketRefModel, ticket_id)
        return _ticket_to_domain(m) if m else None

    async def update(self, ticket: TicketRef) -> TicketRef:
        values = dict(
            priority=ticket.priority,
            category=ticket.category,
            status=ticket.status.value,
            assigned_agent_id=ticket.assigned_agent_id,
            assigned_agent_username=ticket.assigned_agent_username,
        )
        if ticket.updated_at is not None:
            values["updated_at"] = ticket.updated_at
        await self._s.execute(
            update(TicketRefModel).where(TicketRefModel.ticket_id == ticket.ticket_id).values(**values)
        )
        await self._s.flush()
        return ticket

    async def list_unassigned(self) -> list[TicketRef]:
        result = await self._s.execute(
            select(TicketRefModel)
            .where(
                TicketRefModel.assigned_agent_id.is_(None),
                TicketRefModel.status.notin_(
                    [TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value]
                ),
            )
            .order_by(TicketRefModel.created_at)
        )
        return [_ticket_to_domain(m) for m in result.scalars()]


# ─── Transactions ────────────────────────────────────────────────────


class SqlUnitOfWork(UnitOfWork):
    def __init__(self, session: AsyncSession):
        self._s = session

    def savepoint(self) -> AbstractAsyncContextManager[object]:
        return self._s.begin_nested()


@asynccontextmanager
async def sla_tracking_scope() -> AsyncIterator[SqlSlaTrackingRepository]:
    """One transaction, committed on clean exit; used by the background sweep."""
    async with async_session_factory() as session:
        async with session.begin():
            yield SqlSlaTrackingRepository(session)
