"""SlaTracking entity — the per-ticket response/resolution timer pair.

Transitions live here so the tracker use case and the periodic sweep apply
exactly the same rules. Status only ever moves toward BREACHED; a breached
tracker is never downgraded.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from ticket_routing.domain.policies.sla_clock import SlaClock, time_remaining_status
from ticket_routing.domain.value_objects.enums import SlaAxis, SlaStatus

RESPONSE_BREACH_REASON = "Response SLA exceeded"
RESOLUTION_BREACH_REASON = "Resolution SLA exceeded"


def new_tracking_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class SlaSignal:
    """A warning or breach raised while evaluating a tracker."""

    axis: SlaAxis
    breach: bool
    due_at: datetime
    fraction_used: float = 0.0


@dataclass
class SlaTracking:
    id: str
    ticket_id: str
    priority: str
    sla_start_time: datetime
    response_due_at: datetime
    resolution_due_at: datetime
    ticket_number: str | None = None
    category: str | None = None
    business_hours_only: bool = False
    first_response_at: datetime | None = None
    response_breached: bool = False
    response_time_minutes: int | None = None
    resolved_at: datetime | None = None
    resolution_breached: bool = False
    resolution_time_hours: float | None = None
    status: SlaStatus = SlaStatus.ON_TIME
    breach_reason: str | None = None
    breached_at: datetime | None = None
    assigned_agent_id: str | None = None
    assigned_agent_username: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # ── queries ──────────────────────────────────────────────────────

    def is_open(self) -> bool:
        return self.resolved_at is None

    def is_breached(self) -> bool:
        return self.status == SlaStatus.BREACHED

    def open_axis(self) -> SlaAxis:
        return SlaAxis.RESPONSE if self.first_response_at is None else SlaAxis.RESOLUTION

    def due_at(self, axis: SlaAxis) -> datetime:
        return self.response_due_at if axis == SlaAxis.RESPONSE else self.resolution_due_at

    def fraction_used(self, axis: SlaAxis, now: datetime, clock: SlaClock) -> float:
        return clock.fraction_used(
            self.sla_start_time, self.due_at(axis), now, self.business_hours_only
        )

    # ── transitions ──────────────────────────────────────────────────

    def _breach(self, axis: SlaAxis, now: datetime) -> None:
        if axis == SlaAxis.RESPONSE:
            self.response_breached = True
            self.breach_reason = RESPONSE_BREACH_REASON
        else:
            self.resolution_breached = True
            self.breach_reason = RESOLUTION_BREACH_REASON
        self.status = SlaStatus.BREACHED
        if self.breached_at is None:
            self.breached_at = now

    def record_first_response(self, now: datetime, clock: SlaClock, warning_threshold: float) -> bool:
        """Stop the response timer. Returns False when it was already stopped."""
        if self.first_response_at is not None:
            return False
        self.first_response_at = now
        self.response_time_minutes = clock.elapsed_minutes(
            self.sla_start_time, now, self.business_hours_only
        )
        if now > self.response_due_at:
            self._breach(SlaAxis.RESPONSE, now)
        elif self.status not in (SlaStatus.BREACHED, SlaStatus.PAUSED):
            axis = self.open_axis()
            status = time_remaining_status(
                now, self.due_at(axis), self.fraction_used(axis, now, clock), warning_threshold
            )
            if status == SlaStatus.BREACHED:
                self._breach(axis, now)
            else:
                self.status = status
        self.updated_at = now
        return True

    def record_resolution(self, now: datetime, clock: SlaClock) -> bool:
        """Stop the resolution timer. Returns False when it was already stopped."""
        if self.resolved_at is not None:
            return False
        self.resolved_at = now
        minutes = clock.elapsed_minutes(self.sla_start_time, now, self.business_hours_only)
        self.resolution_time_hours = float(
            (Decimal(minutes) / Decimal(60)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        )
        if now > self.resolution_due_at:
            self._breach(SlaAxis.RESOLUTION, now)
        elif self.status != SlaStatus.BREACHED:
            self.status = SlaStatus.MET
        self.updated_at = now
        return True

    def evaluate(self, now: datetime, clock: SlaClock, warning_threshold: float) -> list[SlaSignal]:
        """Re-check both timers of an open tracker.

        Level-triggered: a WARNING tracker is not warned again and a BREACHED
        one is skipped, so evaluating twice at the same instant changes nothing.
        An empty result means the tracker was left untouched.
        """
        if not self.is_open() or self.status in (SlaStatus.BREACHED, SlaStatus.PAUSED):
            return []

        signals: list[SlaSignal] = []

        if self.first_response_at is None:
            fraction = self.fraction_used(SlaAxis.RESPONSE, now, clock)
            if now > self.response_due_at:
                self._breach(SlaAxis.RESPONSE, now)
                signals.append(SlaSignal(SlaAxis.RESPONSE, True, self.response_due_at, fraction))
            elif fraction >= warning_threshold and self.status != SlaStatus.WARNING:
                self.status = SlaStatus.WARNING
                signals.append(SlaSignal(SlaAxis.RESPONSE, False, self.response_due_at, fraction))

        fraction = self.fraction_used(SlaAxis.RESOLUTION, now, clock)
        if now > self.resolution_due_at:
            self._breach(SlaAxis.RESOLUTION, now)
            signals.append(SlaSignal(SlaAxis.RESOLUTION, True, self.resolution_due_at, fraction))
        elif (
            self.first_response_at is not None
            and fraction >= warning_threshold
            and self.status == SlaStatus.ON_TIME
        ):
            self.status = SlaStatus.WARNING
            signals.append(SlaSignal(SlaAxis.RESOLUTION, False, self.resolution_due_at, fraction))

        if signals:
            self.updated_at = now
        return signals
