"""Error taxonomy for the assignment and SLA engine.

Every use case raises one of these; the HTTP layer maps them onto status
codes in ``infrastructure/api/errors.py``.
"""

from __future__ import annotations

from typing import Any


class RoutingError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFound(RoutingError):
    """A ticket, agent, assignment or tracker does not exist."""

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type} with id '{resource_id}' not found",
            {"resource_type": resource_type, "resource_id": str(resource_id)},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class InvalidState(RoutingError):
    """The operation is illegal for the record's current status."""


class CapacityExceeded(RoutingError):
    """The agent already holds the maximum number of active tickets."""


class AgentUnavailable(RoutingError):
    """The agent is OFFLINE."""


class ValidationError(RoutingError):
    """A required argument of an administrative action is missing or invalid."""
