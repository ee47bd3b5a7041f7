"""AssignmentLedger — assignment lifecycle with reassignment lineage.

Every operation reads and writes through the caller's transaction: agent
rows are locked before capacity checks, and record status plus counters are
written together, so the caller's commit (or rollback) applies them as one
unit. A ticket never has more than one CURRENT record; the repository
rejects a second one. Closing a record only succeeds while it is still
CURRENT, so of two racing closers only one moves the agent's counters.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ticket_routing.application.clock import Clock, utc_now
from ticket_routing.application.ports.assignment_repo import (
    AssignmentQuery,
    AssignmentRepository,
)
from ticket_routing.application.ports.event_publisher import EventPublisher
from ticket_routing.application.ports.ticket_repo import TicketRepository
from ticket_routing.application.ports.unit_of_work import UnitOfWork
from ticket_routing.application.use_cases.agent_workload import AgentWorkloadRegistry
from ticket_routing.application.use_cases.sla_tracker import SlaTracker
from ticket_routing.domain.entities.agent_workload import AgentWorkload
from ticket_routing.domain.entities.assignment import Assignment, new_assignment_id
from ticket_routing.domain.entities.ticket_ref import TicketRef
from ticket_routing.domain.errors import (
    AgentUnavailable,
    CapacityExceeded,
    InvalidState,
    NotFound,
    RoutingError,
    ValidationError,
)
from ticket_routing.domain.events import TicketAssigned
from ticket_routing.domain.policies.assignment_strategy import AssignmentStrategy
from ticket_routing.domain.policies.sla_defaults import normalize_priority
from ticket_routing.domain.value_objects.enums import AssignmentStatus, AssignmentType

logger = logging.getLogger(__name__)

SYSTEM_ASSIGNER_ID = "SYSTEM"
SYSTEM_ASSIGNER_NAME = "AutoAssignment"
MANUAL_STRATEGY = "MANUAL"
ADMIN_REASSIGN_STRATEGY = "ADMIN_REASSIGN"


@dataclass
class BulkReassignResult:
    total_processed: int = 0
    success_count: int = 0
    failed_count: int = 0
    errors: list[str] = field(default_factory=list)

    def fail(self, message: str) -> None:
        self.failed_count += 1
        self.errors.append(message)


@dataclass
class AgentWorkloadDetail:
    agent: AgentWorkload
    capacity: int
    current_assignments: list[Assignment]

    @property
    def remaining_capacity(self) -> int:
        return max(0, self.capacity - self.agent.active_tickets)


class AssignmentLedger:
    def __init__(
        self,
        assignment_repo: AssignmentRepository,
        ticket_repo: TicketRepository,
        workload: AgentWorkloadRegistry,
        strategy: AssignmentStrategy,
        sla_tracker: SlaTracker,
        publisher: EventPublisher,
        unit_of_work: UnitOfWork,
        auto_assign_enabled: bool = True,
        clock: Clock = utc_now,
    ):
        self._assignments = assignment_repo
        self._tickets = ticket_repo
        self._workload = workload
        self._strategy = strategy
        self._sla = sla_tracker
        self._publisher = publisher
        self._uow = unit_of_work
        self._auto_assign_enabled = auto_assign_enabled
        self._now = clock

    # ─── Helpers ─────────────────────────────────────────────────────

    async def _get_ticket(self, ticket_id: str) -> TicketRef:
        ticket = await self._tickets.get(ticket_id)
        if ticket is None:
            raise NotFound("Ticket", ticket_id)
        return ticket

    async def _get_record(self, assignment_id: str) -> Assignment:
        record = await self._assignments.get(assignment_id)
        if record is None:
            raise NotFound("Assignment", assignment_id)
        return record

    def _ensure_assignable(self, agent: AgentWorkload) -> None:
        if agent.is_offline():
            raise AgentUnavailable(
                "Agent is currently offline", {"agent_id": agent.agent_id}
            )
        if not agent.has_capacity(self._workload.limits):
            raise CapacityExceeded(
                "Agent has reached maximum ticket capacity",
                {
                    "agent_id": agent.agent_id,
                    "active_tickets": agent.active_tickets,
                    "capacity": self._workload.limits.capacity,
                },
            )

    async def _ensure_unassigned(self, ticket_id: str) -> None:
        current = await self._assignments.get_current_for_ticket(ticket_id)
        if current is not None:
            raise InvalidState(
                "Ticket is already assigned",
                {"ticket_id": ticket_id, "assignment_id": current.id, "agent_id": current.agent_id},
            )

    async def _open(
        self,
        ticket: TicketRef,
        agent: AgentWorkload,
        assignment_type: AssignmentType,
        strategy: str,
        assigned_by: str | None,
        assigned_by_username: str | None,
        previous: Assignment | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> Assignment:
        """Write a new CURRENT record and everything that follows from it."""
        now = self._now()
        record = await self._assignments.add(
            Assignment(
                id=new_assignment_id(),
                ticket_id=ticket.ticket_id,
                ticket_number=ticket.ticket_number,
                agent_id=agent.agent_id,
                agent_username=agent.username,
                assigned_by=assigned_by,
                assigned_by_username=assigned_by_username,
                assignment_type=assignment_type,
                strategy=strategy,
                previous_agent_id=previous.agent_id if previous else None,
                previous_agent_username=previous.agent_username if previous else None,
                reassignment_reason=reason,
                notes=notes,
                assigned_at=now,
            )
        )
        await self._workload.increment_active(agent.agent_id)

        ticket.assign_to(agent.agent_id, agent.username)
        ticket.updated_at = now
        await self._tickets.update(ticket)

        if ticket.priority:
            await self._sla.create(
                ticket.ticket_id, ticket.priority, ticket.category, ticket.ticket_number
            )
        await self._sla.set_assignee(ticket.ticket_id, agent.agent_id, agent.username)

        await self._publisher.publish(
            TicketAssigned(
                ticket_id=record.ticket_id,
                ticket_number=record.ticket_number,
                agent_id=record.agent_id,
                agent_username=record.agent_username,
                assigned_by=record.assigned_by,
                assigned_by_username=record.assigned_by_username,
                assignment_type=record.assignment_type.value,
                assigned_at=now,
            )
        )
        logger.info(
            "Ticket %s assigned to %s (%s)",
            ticket.ticket_number, agent.username, assignment_type.value,
        )
        return record

    async def _release(self, record: Assignment) -> None:
        """Drop the assignee from an unassigned ticket's projection and tracker."""
        ticket = await self._tickets.get(record.ticket_id)
        if ticket is not None and ticket.assigned_agent_id == record.agent_id:
            ticket.clear_assignee()
            ticket.updated_at = self._now()
            await self._tickets.update(ticket)
        await self._sla.set_assignee(record.ticket_id, None, None)

    # ─── Assignment lifecycle ────────────────────────────────────────

    async def manual_assign(
        self,
        ticket_id: str,
        agent_id: str,
        assigned_by: str,
        assigned_by_username: str | None = None,
        priority: str | None = None,
        notes: str | None = None,
    ) -> Assignment:
        """Assign a ticket to a chosen agent.

        Validation happens before any write, so a rejected call leaves no
        trace. An optional *priority* is stored on the ticket and starts its
        SLA timers.
        """
        ticket = await self._get_ticket(ticket_id)
        agent = await self._workload.lock(agent_id)
        await self._ensure_unassigned(ticket_id)
        self._ensure_assignable(agent)

        if priority:
            ticket.priority = normalize_priority(priority)

        return await self._open(
            ticket,
            agent,
            AssignmentType.MANUAL,
            MANUAL_STRATEGY,
            assigned_by,
            assigned_by_username,
            notes=notes,
        )

    async def auto_assign(self, ticket_id: str) -> Assignment | None:
        """Let the configured strategy pick an agent. Returns None when nothing happened."""
        if not self._auto_assign_enabled:
            logger.debug("Auto-assignment disabled; ticket %s left in queue", ticket_id)
            return None

        ticket = await self._tickets.get(ticket_id)
        if ticket is None:
            logger.warning("Auto-assignment skipped: ticket %s unknown", ticket_id)
            return None
        if await self._assignments.get_current_for_ticket(ticket_id) is not None:
            logger.debug("Ticket %s already assigned; auto-assignment skipped", ticket_id)
            return None

        chosen = self._strategy.select_agent(await self._workload.list_available())
        if chosen is None:
            logger.warning("No available agent for ticket %s", ticket.ticket_number)
            return None

        agent = await self._workload.lock(chosen.agent_id)
        try:
            self._ensure_assignable(agent)
        except RoutingError as exc:
            logger.warning(
                "Agent %s no longer assignable for ticket %s: %s",
                agent.agent_id, ticket.ticket_number, exc.message,
            )
            return None

        return await self._open(
            ticket,
            agent,
            AssignmentType.AUTO,
            self._strategy.name.upper(),
            SYSTEM_ASSIGNER_ID,
            SYSTEM_ASSIGNER_NAME,
        )

    async def complete_assignment(self, ticket_id: str) -> Assignment | None:
        current = await self._assignments.get_current_for_ticket(ticket_id)
        if current is None:
            logger.info("No current assignment to complete for ticket %s", ticket_id)
            return None
        current.close(AssignmentStatus.COMPLETED, self._now())
        try:
            current = await self._assignments.close(current)
        except InvalidState:
            logger.info("Assignment %s already closed; nothing to complete", current.id)
            return None
        await self._workload.record_completion(current.agent_id)
        logger.info("Assignment %s completed by %s", current.id, current.agent_username)
        return current

    async def force_reassign(
        self,
        assignment_id: str,
        new_agent_id: str,
        reason: str,
        admin_id: str,
        admin_username: str | None = None,
    ) -> Assignment:
        if not new_agent_id:
            raise ValidationError("A target agent is required")
        if not reason or not reason.strip():
            raise ValidationError("A reassignment reason is required")

        current = await self._get_record(assignment_id)
        if not current.is_current():
            raise InvalidState(
                f"Only CURRENT assignments can be reassigned; this one is {current.status.value}",
                {"assignment_id": assignment_id, "status": current.status.value},
            )
        if current.agent_id == new_agent_id:
            raise ValidationError(
                "Ticket is already assigned to this agent", {"agent_id": new_agent_id}
            )
        ticket = await self._get_ticket(current.ticket_id)

        # Lock both agent rows in a fixed order.
        locked = {}
        for agent_id in sorted({current.agent_id, new_agent_id}):
            locked[agent_id] = await self._workload.lock(agent_id)
        new_agent = locked[new_agent_id]
        self._ensure_assignable(new_agent)

        current.close(AssignmentStatus.REASSIGNED, self._now(), reason)
        await self._assignments.close(current)
        await self._workload.decrement_active(current.agent_id)

        return await self._open(
            ticket,
            new_agent,
            AssignmentType.REASSIGNMENT,
            ADMIN_REASSIGN_STRATEGY,
            admin_id,
            admin_username,
            previous=current,
            reason=reason,
            notes=f"Force reassigned by admin: {reason}",
        )

    async def _resolve_unassign_target(self, assignment_id: str) -> Assignment:
        """Follow a REASSIGNED record to its ticket's CURRENT record."""
        record = await self._get_record(assignment_id)
        visited: set[str] = set()
        while record.status == AssignmentStatus.REASSIGNED:
            if record.id in visited:
                raise InvalidState(
                    "Assignment lineage loops back on itself", {"assignment_id": record.id}
                )
            visited.add(record.id)
            current = await self._assignments.get_current_for_ticket(record.ticket_id)
            if current is None:
                raise NotFound("Current assignment for ticket", record.ticket_id)
            record = current

        if not record.is_current():
            raise InvalidState(
                f"Cannot unassign a {record.status.value} assignment",
                {"assignment_id": record.id, "status": record.status.value},
            )
        return record

    async def unassign(
        self,
        assignment_id: str,
        reason: str,
        admin_id: str,
        admin_username: str | None = None,
    ) -> Assignment:
        """Take the ticket away from its agent without handing it to anyone else.

        *assignment_id* may point at a historical REASSIGNED record, in which
        case the ticket's present CURRENT record is the one unassigned.
        """
        if not reason or not reason.strip():
            raise ValidationError("An unassignment reason is required")

        record = await self._resolve_unassign_target(assignment_id)
        await self._workload.lock(record.agent_id)

        note = f"Unassigned by admin: {reason}"
        if record.id != assignment_id:
            note = f"Unassigned by admin via assignment {assignment_id}: {reason}"
        record.close(AssignmentStatus.UNASSIGNED, self._now(), note)
        record = await self._assignments.close(record)
        await self._workload.decrement_active(record.agent_id)
        await self._release(record)

        logger.info(
            "Assignment %s unassigned by %s (ticket %s)",
            record.id, admin_username or admin_id, record.ticket_number,
        )
        return record

    async def bulk_reassign(
        self,
        from_agent_id: str,
        to_agent_id: str,
        reason: str,
        admin_id: str,
        admin_username: str | None = None,
    ) -> BulkReassignResult:
        """Move every CURRENT ticket of one agent to another, ticket by ticket.

        Each ticket runs in its own savepoint; failures are reported per
        ticket and never undo the tickets that already moved.
        """
        if not to_agent_id:
            raise ValidationError("A target agent is required")
        if not reason or not reason.strip():
            raise ValidationError("A reassignment reason is required")
        if from_agent_id == to_agent_id:
            raise ValidationError("Source and target agent must differ")

        await self._workload.get(from_agent_id)
        target = await self._workload.get(to_agent_id)
        if target.is_offline():
            raise AgentUnavailable("Target agent is offline", {"agent_id": to_agent_id})

        records = await self._assignments.list_current_for_agent(from_agent_id)
        result = BulkReassignResult(total_processed=len(records))

        for record in records:
            label = record.ticket_number or record.ticket_id
            target = await self._workload.get(to_agent_id)
            if not target.has_capacity(self._workload.limits):
                result.fail(f"Agent reached maximum capacity at ticket: {label}")
                continue
            try:
                async with self._uow.savepoint():
                    await self.force_reassign(
                        record.id, to_agent_id, reason, admin_id, admin_username
                    )
            except RoutingError as exc:
                result.fail(f"Failed to reassign {label}: {exc.message}")
            except Exception as exc:
                logger.exception("Bulk reassignment of ticket %s failed", label)
                result.fail(f"Failed to reassign {label}: {exc}")
            else:
                result.success_count += 1

        logger.info(
            "Bulk reassign %s -> %s: %d processed, %d moved, %d failed",
            from_agent_id, to_agent_id,
            result.total_processed, result.success_count, result.failed_count,
        )
        return result

    async def delete_record(self, assignment_id: str) -> None:
        record = await self._get_record(assignment_id)
        if record.is_current():
            raise InvalidState(
                "Cannot delete active assignment. Unassign it first.",
                {"assignment_id": assignment_id},
            )
        await self._assignments.delete(assignment_id)
        logger.info("Assignment %s deleted", assignment_id)

    # ─── Queries ─────────────────────────────────────────────────────

    async def get(self, assignment_id: str) -> Assignment:
        return await self._get_record(assignment_id)

    async def current_for_ticket(self, ticket_id: str) -> Assignment | None:
        return await self._assignments.get_current_for_ticket(ticket_id)

    async def history(self, ticket_id: str) -> list[Assignment]:
        return await self._assignments.history_for_ticket(ticket_id)

    async def search(self, query: AssignmentQuery) -> tuple[list[Assignment], int]:
        return await self._assignments.search(query)

    async def unassigned_tickets(self) -> list[TicketRef]:
        return await self._tickets.list_unassigned()

    async def agent_detail(self, agent_id: str) -> AgentWorkloadDetail:
        agent = await self._workload.get(agent_id)
        return AgentWorkloadDetail(
            agent=agent,
            capacity=self._workload.limits.capacity,
            current_assignments=await self._assignments.list_current_for_agent(agent_id),
        )
