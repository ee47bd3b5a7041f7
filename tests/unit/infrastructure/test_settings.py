"""Tests for environment-driven settings."""

from datetime import time

import pytest
from pydantic import ValidationError

from ticket_routing.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("MAX_TICKETS_PER_AGENT", raising=False)
    s = Settings(_env_file=None)
    assert s.max_tickets_per_agent == 10
    assert s.sla_warning_threshold == 0.8
    assert s.sla_business_hours_enabled is False


def test_reads_env_names(monkeypatch):
    monkeypatch.setenv("MAX_TICKETS_PER_AGENT", "4")
    monkeypatch.setenv("AUTO_ASSIGN_STRATEGY", "round_robin")
    monkeypatch.setenv("SLA_BUSINESS_HOURS_START", "08:30")
    s = Settings(_env_file=None)
    assert s.max_tickets_per_agent == 4
    assert s.auto_assign_strategy == "round_robin"
    assert s.sla_business_hours_start == time(8, 30)


def test_business_hours_must_be_ordered(monkeypatch):
    monkeypatch.setenv("SLA_BUSINESS_HOURS_START", "18:00")
    monkeypatch.setenv("SLA_BUSINESS_HOURS_END", "09:00")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
