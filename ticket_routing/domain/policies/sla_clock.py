"""SLA clock arithmetic — wall-clock or business-hours durations.

All datetimes are timezone-aware. Business hours are a daily [start, end)
window on Monday–Friday, evaluated in the timezone of the datetimes passed in.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta

from ticket_routing.domain.value_objects.enums import SlaStatus

MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 1440


@dataclass(frozen=True)
class BusinessHours:
    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError("Business hours must start before they end")

    def _bounds(self, moment: datetime) -> tuple[datetime, datetime]:
        opens = moment.replace(
            hour=self.start.hour, minute=self.start.minute, second=0, microsecond=0
        )
        closes = moment.replace(
            hour=self.end.hour, minute=self.end.minute, second=0, microsecond=0
        )
        return opens, closes

    def open_at_or_after(self, moment: datetime) -> datetime:
        """First instant at or after *moment* that falls inside business hours."""
        while True:
            opens, closes = self._bounds(moment)
            if moment.weekday() < 5:
                if moment < opens:
                    return opens
                if moment < closes:
                    return moment
            moment = (moment + timedelta(days=1)).replace(
                hour=0, minute=0, second=0, microsecond=0
            )

    def add_minutes(self, start: datetime, minutes: int) -> datetime:
        remaining = float(minutes)
        moment = start
        while True:
            moment = self.open_at_or_after(moment)
            _, closes = self._bounds(moment)
            available = (closes - moment).total_seconds() / 60
            if remaining <= available:
                return moment + timedelta(minutes=remaining)
            remaining -= available
            moment = closes

    def minutes_between(self, start: datetime, end: datetime) -> float:
        total = 0.0
        moment = start
        while moment < end:
            moment = self.open_at_or_after(moment)
            if moment >= end:
                break
            _, closes = self._bounds(moment)
            total += (min(closes, end) - moment).total_seconds() / 60
            moment = closes
        return total


@dataclass(frozen=True)
class SlaClock:
    """Duration arithmetic for SLA timers.

    ``business_hours`` is ``None`` when the business-hours toggle is off, in
    which case every tracker runs on wall-clock time.
    """

    business_hours: BusinessHours | None = None

    def _calendar(self, business_only: bool) -> BusinessHours | None:
        return self.business_hours if business_only else None

    def add_minutes(self, start: datetime, minutes: int, business_only: bool = False) -> datetime:
        calendar = self._calendar(business_only)
        if calendar is None:
            return start + timedelta(minutes=minutes)
        return calendar.add_minutes(start, minutes)

    def elapsed_minutes(self, start: datetime, end: datetime, business_only: bool = False) -> int:
        """Whole minutes elapsed between two instants (negative spans count as 0)."""
        if end <= start:
            return 0
        calendar = self._calendar(business_only)
        if calendar is None:
            return int((end - start).total_seconds() // 60)
        return int(calendar.minutes_between(start, end))

    def fraction_used(
        self, start: datetime, due: datetime, now: datetime, business_only: bool = False
    ) -> float:
        total = self.elapsed_minutes(start, due, business_only)
        if total <= 0:
            return 1.0
        return self.elapsed_minutes(start, now, business_only) / total


def time_remaining_status(
    now: datetime, due: datetime, fraction_used: float, warning_threshold: float
) -> SlaStatus:
    """Classify an open timer: overdue → BREACHED, past threshold → WARNING."""
    if now > due:
        return SlaStatus.BREACHED
    if fraction_used >= warning_threshold:
        return SlaStatus.WARNING
    return SlaStatus.ON_TIME


def whole_minutes(delta: timedelta) -> int:
    """Truncate toward zero, like a stopwatch reading."""
    return int(delta.total_seconds() / 60)


def format_minutes_remaining(minutes: int) -> str:
    if minutes < MINUTES_PER_HOUR:
        return f"{minutes} minutes"
    if minutes < MINUTES_PER_DAY:
        return f"{minutes // MINUTES_PER_HOUR} hours {minutes % MINUTES_PER_HOUR} minutes"
    days = minutes // MINUTES_PER_DAY
    hours = (minutes % MINUTES_PER_DAY) // MINUTES_PER_HOUR
    return f"{days} days {hours} hours"
