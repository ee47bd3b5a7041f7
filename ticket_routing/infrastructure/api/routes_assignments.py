"""Assignment ledger endpoints — assign, reassign, unassign, query."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_routing.adapters.events.publishers import OutboxPublisher
from ticket_routing.adapters.persistence.database import get_session
from ticket_routing.application.ports.assignment_repo import AssignmentQuery
from ticket_routing.application.use_cases.assignment_ledger import AssignmentLedger
from ticket_routing.application.use_cases.reporting import AssignmentStatsUseCase
from ticket_routing.domain.value_objects.enums import AssignmentStatus, AssignmentType
from ticket_routing.infrastructure.api.dependencies import (
    commit,
    get_assignment_stats_uc,
    get_ledger,
    get_outbox,
)
from ticket_routing.infrastructure.api.serializers import serialize_assignment

router = APIRouter(prefix="/assignments", tags=["assignments"])


# ── Request schemas ─────────────────────────────────────────────────


class ManualAssignRequest(BaseModel):
    ticket_id: str
    agent_id: str
    assigned_by: str
    assigned_by_username: str | None = None
    priority: str | None = None
    notes: str | None = None


class AdminAction(BaseModel):
    reason: str = Field(min_length=1)
    admin_id: str
    admin_username: str | None = None


class ReassignRequest(AdminAction):
    new_agent_id: str


class BulkReassignRequest(AdminAction):
    from_agent_id: str
    to_agent_id: str


# ── Lifecycle ───────────────────────────────────────────────────────


@router.post("", status_code=201)
async def manual_assign(
    body: ManualAssignRequest,
    session: AsyncSession = Depends(get_session),
    outbox: OutboxPublisher = Depends(get_outbox),
    ledger: AssignmentLedger = Depends(get_ledger),
):
    record = await ledger.manual_assign(
        body.ticket_id,
        body.agent_id,
        body.assigned_by,
        body.assigned_by_username,
        priority=body.priority,
        notes=body.notes,
    )
    await commit(session, outbox)
    return serialize_assignment(record)


@router.post("/auto/{ticket_id}")
async def auto_assign(
    ticket_id: str,
    session: AsyncSession = Depends(get_session),
    outbox: OutboxPublisher = Depends(get_outbox),
    ledger: AssignmentLedger = Depends(get_ledger),
):
    record = await ledger.auto_assign(ticket_id)
    await commit(session, outbox)
    return {"assigned": record is not None, "assignment": serialize_assignment(record) if record else None}


@router.post("/tickets/{ticket_id}/complete")
async def complete_assignment(
    ticket_id: str,
    session: AsyncSession = Depends(get_session),
    outbox: OutboxPublisher = Depends(get_outbox),
    ledger: AssignmentLedger = Depends(get_ledger),
):
    record = await ledger.complete_assignment(ticket_id)
    await commit(session, outbox)
    return {"completed": record is not None, "assignment": serialize_assignment(record) if record else None}


@router.put("/{assignment_id}/reassign")
async def force_reassign(
    assignment_id: str,
    body: ReassignRequest,
    session: AsyncSession = Depends(get_session),
    outbox: OutboxPublisher = Depends(get_outbox),
    ledger: AssignmentLedger = Depends(get_ledger),
):
    record = await ledger.force_reassign(
        assignment_id, body.new_agent_id, body.reason, body.admin_id, body.admin_username
    )
    await commit(session, outbox)
    return serialize_assignment(record)


@router.put("/{assignment_id}/unassign")
async def unassign(
    assignment_id: str,
    body: AdminAction,
    session: AsyncSession = Depends(get_session),
    outbox: OutboxPublisher = Depends(get_outbox),
    ledger: AssignmentLedger = Depends(get_ledger),
):
    record = await ledger.unassign(assignment_id, body.reason, body.admin_id, body.admin_username)
    await commit(session, outbox)
    return serialize_assignment(record)


@router.post("/bulk-reassign")
async def bulk_reassign(
    body: BulkReassignRequest,
    session: AsyncSession = Depends(get_session),
    outbox: OutboxPublisher = Depends(get_outbox),
    ledger: AssignmentLedger = Depends(get_ledger),
):
    result = await ledger.bulk_reassign(
        body.from_agent_id, body.to_agent_id, body.reason, body.admin_id, body.admin_username
    )
    await commit(session, outbox)
    return {
        "total_processed": result.total_processed,
        "success_count": result.success_count,
        "failed_count": result.failed_count,
        "errors": result.errors,
    }


@router.delete("/{assignment_id}", status_code=204)
async def delete_assignment(
    assignment_id: str,
    session: AsyncSession = Depends(get_session),
    ledger: AssignmentLedger = Depends(get_ledger),
):
    await ledger.delete_record(assignment_id)
    await session.commit()


# ── Queries ─────────────────────────────────────────────────────────


@router.get("")
async def list_assignments(
    status: AssignmentStatus | None = None,
    agent_id: str | None = None,
    ticket_id: str | None = None,
    assignment_type: AssignmentType | None = None,
    search: str | None = None,
    page: int = Query(default=0, ge=0),
    size: int = Query(default=20, ge=1, le=200),
    ledger: AssignmentLedger = Depends(get_ledger),
):
    records, total = await ledger.search(
        AssignmentQuery(
            status=status,
            agent_id=agent_id,
            ticket_id=ticket_id,
            assignment_type=assignment_type,
            search=search,
            offset=page * size,
            limit=size,
        )
    )
    return {
        "total": total,
        "page": page,
        "size": size,
        "assignments": [serialize_assignment(r) for r in records],
    }


@router.get("/stats")
async def assignment_stats(uc: AssignmentStatsUseCase = Depends(get_assignment_stats_uc)):
    stats = await uc.execute()
    return {
        "by_status": stats.by_status,
        "by_type": stats.by_type,
        "agents_total": stats.agents_total,
        "agents_by_status": stats.agents_by_status,
        "active_tickets": stats.active_tickets,
    }


@router.get("/tickets/{ticket_id}/history")
async def ticket_history(ticket_id: str, ledger: AssignmentLedger = Depends(get_ledger)):
    records = await ledger.history(ticket_id)
    return {"ticket_id": ticket_id, "history": [serialize_assignment(r) for r in records]}


@router.get("/{assignment_id}")
async def get_assignment(assignment_id: str, ledger: AssignmentLedger = Depends(get_ledger)):
    return serialize_assignment(await ledger.get(assignment_id))
