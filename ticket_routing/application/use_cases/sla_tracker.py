"""SlaTracker — per-ticket SLA timers: create, first response, resolution.

Calls for a ticket without a tracker are logged no-ops. Tickets that never
get a priority are expected to flow through without SLA tracking.
"""

from __future__ import annotations

import logging

from ticket_routing.application.clock import Clock, utc_now
from ticket_routing.application.ports.sla_tracking_repo import SlaTrackingRepository
from ticket_routing.application.use_cases.sla_rules import SlaRuleResolver
from ticket_routing.domain.entities.sla_tracking import SlaTracking, new_tracking_id
from ticket_routing.domain.errors import NotFound
from ticket_routing.domain.policies.sla_clock import (
    SlaClock,
    format_minutes_remaining,
    whole_minutes,
)
from ticket_routing.domain.value_objects.enums import SlaStatus

logger = logging.getLogger(__name__)


class SlaTracker:
    def __init__(
        self,
        tracking_repo: SlaTrackingRepository,
        rule_resolver: SlaRuleResolver,
        sla_clock: SlaClock | None = None,
        warning_threshold: float = 0.8,
        clock: Clock = utc_now,
    ):
        self._trackings = tracking_repo
        self._rules = rule_resolver
        self._sla_clock = sla_clock or SlaClock()
        self._threshold = warning_threshold
        self._now = clock

    async def create(
        self,
        ticket_id: str,
        priority: str | None,
        category: str | None = None,
        ticket_number: str | None = None,
    ) -> SlaTracking | None:
        """Start both timers for a ticket.

        Nothing is persisted while the ticket has no priority. A ticket that
        already has a tracker keeps it; due times never move once set.
        """
        if priority is None or not priority.strip():
            logger.info("Ticket %s has no priority yet; SLA tracking not started", ticket_id)
            return None

        existing = await self._trackings.get_by_ticket(ticket_id)
        if existing is not None:
            return existing

        rule = await self._rules.resolve(priority, category)
        now = self._now()
        business_only = rule.business_hours_only and self._sla_clock.business_hours is not None
        tracking = SlaTracking(
            id=new_tracking_id(),
            ticket_id=ticket_id,
            ticket_number=ticket_number,
            priority=rule.priority,
            category=category,
            business_hours_only=business_only,
            sla_start_time=now,
            response_due_at=self._sla_clock.add_minutes(
                now, rule.response_time_minutes, business_only
            ),
            resolution_due_at=self._sla_clock.add_minutes(
                now, rule.resolution_time_minutes, business_only
            ),
            status=SlaStatus.ON_TIME,
            created_at=now,
            updated_at=now,
        )
        stored = await self._trackings.add_if_absent(tracking)
        if stored.id != tracking.id:
            logger.debug("Ticket %s got a tracker concurrently; keeping it", ticket_id)
            return stored
        tracking = stored
        logger.info(
            "SLA tracking started for ticket %s: response due %s, resolution due %s",
            ticket_id, tracking.response_due_at.isoformat(), tracking.resolution_due_at.isoformat(),
        )
        return tracking

    async def record_first_response(self, ticket_id: str) -> SlaTracking | None:
        tracking = await self._trackings.lock_by_ticket(ticket_id)
        if tracking is None:
            logger.info("No SLA tracker for ticket %s; first response ignored", ticket_id)
            return None
        if not tracking.record_first_response(self._now(), self._sla_clock, self._threshold):
            logger.debug("First response already recorded for ticket %s", ticket_id)
            return tracking
        if tracking.response_breached:
            logger.warning(
                "Response SLA breached for ticket %s (%d min)",
                ticket_id, tracking.response_time_minutes,
            )
        return await self._trackings.update(tracking)

    async def record_resolution(self, ticket_id: str) -> SlaTracking | None:
        tracking = await self._trackings.lock_by_ticket(ticket_id)
        if tracking is None:
            logger.info("No SLA tracker for ticket %s; resolution ignored", ticket_id)
            return None
        if not tracking.record_resolution(self._now(), self._sla_clock):
            logger.debug("Resolution already recorded for ticket %s", ticket_id)
            return tracking
        logger.info(
            "Ticket %s resolved in %.2f h, SLA status %s",
            ticket_id, tracking.resolution_time_hours, tracking.status.value,
        )
        return await self._trackings.update(tracking)

    async def set_assignee(
        self, ticket_id: str, agent_id: str | None, agent_username: str | None
    ) -> None:
        """Mirror the ticket's current assignee onto its tracker, if any."""
        tracking = await self._trackings.lock_by_ticket(ticket_id)
        if tracking is None:
            return
        tracking.assigned_agent_id = agent_id
        tracking.assigned_agent_username = agent_username
        tracking.updated_at = self._now()
        await self._trackings.update(tracking)

    async def get(self, ticket_id: str) -> SlaTracking:
        tracking = await self._trackings.get_by_ticket(ticket_id)
        if tracking is None:
            raise NotFound("SLA tracker for ticket", ticket_id)
        return tracking

    def time_remaining(self, tracking: SlaTracking) -> str:
        """Human-readable time left on the open timer."""
        if tracking.resolved_at is not None:
            return "Completed"
        minutes = whole_minutes(tracking.due_at(tracking.open_axis()) - self._now())
        if minutes < 0:
            return "Breached"
        return format_minutes_remaining(minutes)

    async def list_breached(self) -> list[SlaTracking]:
        return await self._trackings.list_by_status(SlaStatus.BREACHED)

    async def list_warnings(self) -> list[SlaTracking]:
        return await self._trackings.list_by_status(SlaStatus.WARNING)

    async def list_active(self) -> list[SlaTracking]:
        return await self._trackings.list_open()
