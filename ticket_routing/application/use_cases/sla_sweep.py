"""SlaBreachSweeper — periodic re-evaluation of every open SLA tracker.

Each tracker is evaluated in its own short transaction with its row locked,
so one failing tracker never stops the rest of the pass. Events go out only
after that tracker's transaction has committed; a publisher error is logged
and counted, never fatal to the pass.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from ticket_routing.application.clock import Clock, utc_now
from ticket_routing.application.ports.event_publisher import EventPublisher
from ticket_routing.application.ports.sla_tracking_repo import SlaTrackingScope
from ticket_routing.domain.entities.sla_tracking import (
    RESOLUTION_BREACH_REASON,
    RESPONSE_BREACH_REASON,
    SlaSignal,
    SlaTracking,
)
from ticket_routing.domain.events import DomainEvent, SlaBreach, SlaWarning
from ticket_routing.domain.policies.sla_clock import SlaClock, whole_minutes
from ticket_routing.domain.value_objects.enums import SlaAxis

logger = logging.getLogger(__name__)


@dataclass
class SweepSummary:
    """Outcome of one sweep pass."""

    scanned: int = 0
    updated: int = 0
    warnings: int = 0
    breaches: int = 0
    failed: int = 0
    publish_failed: int = 0
    skipped: bool = False


class SlaBreachSweeper:
    def __init__(
        self,
        scope: SlaTrackingScope,
        publisher: EventPublisher,
        sla_clock: SlaClock | None = None,
        warning_threshold: float = 0.8,
        clock: Clock = utc_now,
    ):
        self._scope = scope
        self._publisher = publisher
        self._sla_clock = sla_clock or SlaClock()
        self._threshold = warning_threshold
        self._now = clock
        self._running = asyncio.Lock()

    async def run_once(self) -> SweepSummary:
        """Run a pass unless one is already in progress (skip, never queue)."""
        if self._running.locked():
            logger.warning("SLA sweep still running; skipping this invocation")
            return SweepSummary(skipped=True)
        async with self._running:
            return await self._sweep()

    async def _sweep(self) -> SweepSummary:
        summary = SweepSummary()
        async with self._scope() as trackings:
            tracking_ids = await trackings.list_open_ids()

        now = self._now()
        for tracking_id in tracking_ids:
            summary.scanned += 1
            try:
                events = await self._evaluate(tracking_id, now)
            except Exception:
                summary.failed += 1
                logger.exception("SLA evaluation failed for tracker %s", tracking_id)
                continue

            if events:
                summary.updated += 1
            for event in events:
                if isinstance(event, SlaBreach):
                    summary.breaches += 1
                else:
                    summary.warnings += 1
                try:
                    await self._publisher.publish(event)
                except Exception:
                    summary.publish_failed += 1
                    logger.exception(
                        "Publishing %s for tracker %s failed", type(event).__name__, tracking_id
                    )

        logger.info(
            "SLA sweep: scanned=%d updated=%d warnings=%d breaches=%d failed=%d publish_failed=%d",
            summary.scanned, summary.updated, summary.warnings, summary.breaches,
            summary.failed, summary.publish_failed,
        )
        return summary

    async def _evaluate(self, tracking_id: str, now: datetime) -> list[DomainEvent]:
        async with self._scope() as trackings:
            tracking = await trackings.lock(tracking_id)
            if tracking is None:
                return []
            signals = tracking.evaluate(now, self._sla_clock, self._threshold)
            if not signals:
                return []
            await trackings.update(tracking)

        for signal in signals:
            logger.warning(
                "SLA %s %s for ticket %s (due %s)",
                signal.axis.value,
                "BREACHED" if signal.breach else "WARNING",
                tracking.ticket_number or tracking.ticket_id,
                signal.due_at.isoformat(),
            )
        return [_to_event(tracking, signal, now) for signal in signals]


def _to_event(tracking: SlaTracking, signal: SlaSignal, now: datetime) -> DomainEvent:
    if signal.breach:
        return SlaBreach(
            tracking_id=tracking.id,
            ticket_id=tracking.ticket_id,
            ticket_number=tracking.ticket_number,
            breach_type=signal.axis.value,
            due_at=signal.due_at,
            breached_at=now,
            minutes_overdue=whole_minutes(now - signal.due_at),
            breach_reason=(
                RESPONSE_BREACH_REASON if signal.axis == SlaAxis.RESPONSE
                else RESOLUTION_BREACH_REASON
            ),
            assigned_agent_id=tracking.assigned_agent_id,
            assigned_agent_username=tracking.assigned_agent_username,
        )
    return SlaWarning(
        tracking_id=tracking.id,
        ticket_id=tracking.ticket_id,
        ticket_number=tracking.ticket_number,
        warning_type=signal.axis.value,
        due_at=signal.due_at,
        minutes_remaining=whole_minutes(signal.due_at - now),
        percentage_time_used=round(signal.fraction_used * 100, 2),
        assigned_agent_id=tracking.assigned_agent_id,
        assigned_agent_username=tracking.assigned_agent_username,
    )
