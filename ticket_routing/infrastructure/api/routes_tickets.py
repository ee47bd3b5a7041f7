"""Ticket lifecycle intake — events pushed by the ticket subsystem."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_routing.adapters.events.publishers import OutboxPublisher
from ticket_routing.adapters.persistence.database import get_session
from ticket_routing.application.use_cases.assignment_ledger import AssignmentLedger
from ticket_routing.application.use_cases.sla_tracker import SlaTracker
from ticket_routing.application.use_cases.ticket_events import TicketEventHandler
from ticket_routing.domain.value_objects.enums import TicketStatus
from ticket_routing.infrastructure.api.dependencies import (
    commit,
    get_ledger,
    get_outbox,
    get_sla_tracker,
    get_ticket_events,
)
from ticket_routing.infrastructure.api.serializers import (
    serialize_assignment,
    serialize_ticket,
    serialize_tracking,
)

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketCreatedRequest(BaseModel):
    ticket_id: str
    ticket_number: str
    priority: str | None = None
    category: str | None = None


class PriorityRequest(BaseModel):
    priority: str
    category: str | None = None


class ReplyRequest(BaseModel):
    author_id: str


class StatusRequest(BaseModel):
    status: TicketStatus


@router.post("", status_code=201)
async def ticket_created(
    body: TicketCreatedRequest,
    session: AsyncSession = Depends(get_session),
    outbox: OutboxPublisher = Depends(get_outbox),
    handler: TicketEventHandler = Depends(get_ticket_events),
    tracker: SlaTracker = Depends(get_sla_tracker),
):
    """Register a new ticket: cache it, start SLA timers, try auto-assignment."""
    result = await handler.ticket_created(
        body.ticket_id, body.ticket_number, body.priority, body.category
    )
    await commit(session, outbox)
    return {
        "ticket": serialize_ticket(result.ticket),
        "sla": (
            serialize_tracking(result.tracking, tracker.time_remaining(result.tracking))
            if result.tracking else None
        ),
        "assignment": serialize_assignment(result.assignment) if result.assignment else None,
    }


@router.get("/unassigned")
async def unassigned_tickets(ledger: AssignmentLedger = Depends(get_ledger)):
    tickets = await ledger.unassigned_tickets()
    return {"total": len(tickets), "tickets": [serialize_ticket(t) for t in tickets]}


@router.put("/{ticket_id}/priority")
async def set_priority(
    ticket_id: str,
    body: PriorityRequest,
    session: AsyncSession = Depends(get_session),
    outbox: OutboxPublisher = Depends(get_outbox),
    handler: TicketEventHandler = Depends(get_ticket_events),
):
    tracking = await handler.priority_set(ticket_id, body.priority, body.category)
    await commit(session, outbox)
    return {"ticket_id": ticket_id, "sla": serialize_tracking(tracking) if tracking else None}


@router.post("/{ticket_id}/replies")
async def agent_replied(
    ticket_id: str,
    body: ReplyRequest,
    session: AsyncSession = Depends(get_session),
    outbox: OutboxPublisher = Depends(get_outbox),
    handler: TicketEventHandler = Depends(get_ticket_events),
):
    """Record a reply; the assignee's first reply stops the response timer."""
    tracking = await handler.agent_replied(ticket_id, body.author_id)
    await commit(session, outbox)
    return {"ticket_id": ticket_id, "sla": serialize_tracking(tracking) if tracking else None}


@router.put("/{ticket_id}/status")
async def status_changed(
    ticket_id: str,
    body: StatusRequest,
    session: AsyncSession = Depends(get_session),
    outbox: OutboxPublisher = Depends(get_outbox),
    handler: TicketEventHandler = Depends(get_ticket_events),
):
    ticket = await handler.status_changed(ticket_id, body.status)
    await commit(session, outbox)
    return serialize_ticket(ticket)
