"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

# A Monday morning, so business-hours tests start inside the window.
T0 = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced time source, callable like ``utc_now``."""

    def __init__(self, start: datetime = T0):
        self.start = start
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def clock():
    return FakeClock()
