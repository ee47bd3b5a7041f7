"""Domain enums — pure Python, no external dependencies."""

from enum import Enum


class AgentStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    BUSY = "BUSY"
    OFFLINE = "OFFLINE"


class AssignmentType(str, Enum):
    MANUAL = "MANUAL"
    AUTO = "AUTO"
    REASSIGNMENT = "REASSIGNMENT"


class AssignmentStatus(str, Enum):
    CURRENT = "CURRENT"
    COMPLETED = "COMPLETED"
    REASSIGNED = "REASSIGNED"
    UNASSIGNED = "UNASSIGNED"


class SlaStatus(str, Enum):
    ON_TIME = "ON_TIME"
    WARNING = "WARNING"
    BREACHED = "BREACHED"
    MET = "MET"
    PAUSED = "PAUSED"


class SlaAxis(str, Enum):
    """Which of the two SLA timers an event refers to."""

    RESPONSE = "response"
    RESOLUTION = "resolution"


class Priority(str, Enum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class TicketStatus(str, Enum):
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"

    def is_terminal(self) -> bool:
        return self in (TicketStatus.RESOLVED, TicketStatus.CLOSED)
