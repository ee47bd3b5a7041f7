"""Entity → API response dict converters shared by the routers."""

from __future__ import annotations

from datetime import datetime

from ticket_routing.application.use_cases.assignment_ledger import AgentWorkloadDetail
from ticket_routing.domain.entities.agent_workload import AgentWorkload
from ticket_routing.domain.entities.assignment import Assignment
from ticket_routing.domain.entities.sla_rule import SlaRule
from ticket_routing.domain.entities.sla_tracking import SlaTracking
from ticket_routing.domain.entities.ticket_ref import TicketRef


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_agent(a: AgentWorkload) -> dict:
    return {
        "agent_id": a.agent_id,
        "username": a.username,
        "active_tickets": a.active_tickets,
        "total_assigned_tickets": a.total_assigned_tickets,
        "completed_tickets": a.completed_tickets,
        "status": a.status.value,
        "last_assigned_at": _iso(a.last_assigned_at),
        "updated_at": _iso(a.updated_at),
    }


def serialize_assignment(r: Assignment) -> dict:
    return {
        "assignment_id": r.id,
        "ticket_id": r.ticket_id,
        "ticket_number": r.ticket_number,
        "agent_id": r.agent_id,
        "agent_username": r.agent_username,
        "assigned_by": r.assigned_by,
        "assigned_by_username": r.assigned_by_username,
        "assignment_type": r.assignment_type.value,
        "strategy": r.strategy,
        "status": r.status.value,
        "previous_agent_id": r.previous_agent_id,
        "previous_agent_username": r.previous_agent_username,
        "reassignment_reason": r.reassignment_reason,
        "notes": r.notes,
        "assigned_at": _iso(r.assigned_at),
        "completed_at": _iso(r.completed_at),
    }


def serialize_workload_detail(d: AgentWorkloadDetail) -> dict:
    data = serialize_agent(d.agent)
    data["capacity"] = d.capacity
    data["remaining_capacity"] = d.remaining_capacity
    data["current_assignments"] = [serialize_assignment(r) for r in d.current_assignments]
    return data


def serialize_ticket(t: TicketRef) -> dict:
    return {
        "ticket_id": t.ticket_id,
        "ticket_number": t.ticket_number,
        "priority": t.priority,
        "category": t.category,
        "status": t.status.value,
        "assigned_agent_id": t.assigned_agent_id,
        "assigned_agent_username": t.assigned_agent_username,
        "created_at": _iso(t.created_at),
    }


def serialize_tracking(t: SlaTracking, time_remaining: str | None = None) -> dict:
    data = {
        "tracking_id": t.id,
        "ticket_id": t.ticket_id,
        "ticket_number": t.ticket_number,
        "priority": t.priority,
        "category": t.category,
        "status": t.status.value,
        "sla_start_time": _iso(t.sla_start_time),
        "response_due_at": _iso(t.response_due_at),
        "resolution_due_at": _iso(t.resolution_due_at),
        "first_response_at": _iso(t.first_response_at),
        "response_breached": t.response_breached,
        "response_time_minutes": t.response_time_minutes,
        "resolved_at": _iso(t.resolved_at),
        "resolution_breached": t.resolution_breached,
        "resolution_time_hours": t.resolution_time_hours,
        "breach_reason": t.breach_reason,
        "breached_at": _iso(t.breached_at),
        "assigned_agent_id": t.assigned_agent_id,
        "assigned_agent_username": t.assigned_agent_username,
    }
    if time_remaining is not None:
        data["time_remaining"] = time_remaining
    return data


def serialize_rule(r: SlaRule) -> dict:
    return {
        "rule_id": r.id,
        "priority": r.priority,
        "category": r.category,
        "response_time_minutes": r.response_time_minutes,
        "resolution_time_hours": r.resolution_time_hours,
        "business_hours_only": r.business_hours_only,
        "escalation_time_minutes": r.escalation_time_minutes,
    }
