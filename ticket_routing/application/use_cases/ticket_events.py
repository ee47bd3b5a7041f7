"""TicketEventHandler — reacts to lifecycle events from the ticket subsystem."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ticket_routing.application.clock import Clock, utc_now
from ticket_routing.application.ports.ticket_repo import TicketRepository
from ticket_routing.application.use_cases.assignment_ledger import AssignmentLedger
from ticket_routing.application.use_cases.sla_tracker import SlaTracker
from ticket_routing.domain.entities.assignment import Assignment
from ticket_routing.domain.entities.sla_tracking import SlaTracking
from ticket_routing.domain.entities.ticket_ref import TicketRef
from ticket_routing.domain.errors import NotFound, ValidationError
from ticket_routing.domain.policies.sla_defaults import normalize_priority
from ticket_routing.domain.value_objects.enums import TicketStatus

logger = logging.getLogger(__name__)


@dataclass
class TicketIntakeResult:
    ticket: TicketRef
    tracking: SlaTracking | None
    assignment: Assignment | None


class TicketEventHandler:
    def __init__(
        self,
        ticket_repo: TicketRepository,
        ledger: AssignmentLedger,
        sla_tracker: SlaTracker,
        clock: Clock = utc_now,
    ):
        self._tickets = ticket_repo
        self._ledger = ledger
        self._sla = sla_tracker
        self._now = clock

    async def _get_ticket(self, ticket_id: str) -> TicketRef:
        ticket = await self._tickets.get(ticket_id)
        if ticket is None:
            raise NotFound("Ticket", ticket_id)
        return ticket

    async def ticket_created(
        self,
        ticket_id: str,
        ticket_number: str,
        priority: str | None = None,
        category: str | None = None,
    ) -> TicketIntakeResult:
        """Cache the ticket, start SLA timers if it has a priority, then auto-assign.

        Replaying the event for a known ticket only re-runs the idempotent steps.
        """
        ticket = await self._tickets.get(ticket_id)
        if ticket is None:
            now = self._now()
            ticket = await self._tickets.add(
                TicketRef(
                    ticket_id=ticket_id,
                    ticket_number=ticket_number,
                    priority=normalize_priority(priority) if priority else None,
                    category=category,
                    created_at=now,
                    updated_at=now,
                )
            )
            logger.info("Ticket %s received (priority=%s)", ticket_number, ticket.priority)

        tracking = await self._sla.create(
            ticket.ticket_id, ticket.priority, ticket.category, ticket.ticket_number
        )
        assignment = await self._ledger.auto_assign(ticket.ticket_id)
        return TicketIntakeResult(ticket=ticket, tracking=tracking, assignment=assignment)

    async def priority_set(
        self, ticket_id: str, priority: str, category: str | None = None
    ) -> SlaTracking | None:
        """Store the priority; the first one set starts SLA tracking."""
        if not priority or not priority.strip():
            raise ValidationError("A priority is required")
        ticket = await self._get_ticket(ticket_id)
        ticket.priority = normalize_priority(priority)
        if category is not None:
            ticket.category = category
        ticket.updated_at = self._now()
        await self._tickets.update(ticket)

        tracking = await self._sla.create(
            ticket.ticket_id, ticket.priority, ticket.category, ticket.ticket_number
        )
        if tracking is not None and ticket.is_assigned():
            await self._sla.set_assignee(
                ticket.ticket_id, ticket.assigned_agent_id, ticket.assigned_agent_username
            )
        return tracking

    async def agent_replied(self, ticket_id: str, author_id: str) -> SlaTracking | None:
        """A reply only counts as first response when the assigned agent wrote it."""
        ticket = await self._tickets.get(ticket_id)
        if ticket is None:
            logger.info("Reply on unknown ticket %s ignored", ticket_id)
            return None
        if ticket.assigned_agent_id is None or ticket.assigned_agent_id != author_id:
            logger.debug("Reply by %s on ticket %s is not from its assignee", author_id, ticket_id)
            return None
        return await self._sla.record_first_response(ticket_id)

    async def status_changed(self, ticket_id: str, status: TicketStatus) -> TicketRef:
        ticket = await self._get_ticket(ticket_id)
        ticket.status = status
        ticket.updated_at = self._now()
        ticket = await self._tickets.update(ticket)
        if status.is_terminal():
            await self._sla.record_resolution(ticket_id)
            await self._ledger.complete_assignment(ticket_id)
        return ticket
