"""SQLAlchemy ORM models — maps to PostgreSQL tables."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from ticket_routing.adapters.persistence.database import Base


class AgentWorkloadModel(Base):
    __tablename__ = "agent_workload"

    agent_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    agent_username: Mapped[str] = mapped_column(String(100), nullable=False)
    active_tickets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_assigned_tickets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_tickets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="AVAILABLE")
    last_assigned_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("idx_agent_workload_status", "status", "active_tickets"),)


class AssignmentModel(Base):
    __tablename__ = "assignments"

    assignment_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    ticket_id: Mapped[str] = mapped_column(String(64), nullable=False)
    ticket_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    agent_id: Mapped[str] = mapped_column(String(64), nullable=False)
    agent_username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assigned_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assigned_by_username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assignment_type: Mapped[str] = mapped_column(String(20), nullable=False)
    assignment_strategy: Mapped[str | None] = mapped_column(String(50), nullable=True)
    previous_agent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    previous_agent_username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reassignment_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    assignment_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="CURRENT")
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_assignments_ticket", "ticket_id"),
        Index("idx_assignments_agent_status", "agent_id", "status"),
        Index("idx_assignments_assigned_at", "assigned_at"),
        # At most one CURRENT record per ticket.
        Index(
            "uq_assignments_current_ticket",
            "ticket_id",
            unique=True,
            postgresql_where=text("status = 'CURRENT'"),
        ),
    )


class SlaRuleModel(Base):
    __tablename__ = "sla_rules"

    rule_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    response_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    resolution_time_hours: Mapped[int] = mapped_column(Integer, nullable=False)
    business_hours_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    escalation_time_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("priority", "category", name="uq_sla_rules_priority_category"),
        # NULL categories are distinct under the constraint above.
        Index(
            "uq_sla_rules_priority_default",
            "priority",
            unique=True,
            postgresql_where=text("category IS NULL"),
        ),
    )


class SlaTrackingModel(Base):
    __tablename__ = "sla_tracking"

    tracking_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    ticket_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    ticket_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    business_hours_only: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sla_start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    response_due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    resolution_due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    first_response_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    response_breached: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    response_time_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_breached: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolution_time_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    sla_status: Mapped[str] = mapped_column(String(20), nullable=False, default="ON_TIME")
    breach_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    breached_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    assigned_agent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assigned_agent_username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_sla_tracking_status", "sla_status"),
        Index("idx_sla_tracking_open_due", "resolved_at", "resolution_due_at"),
    )


class TicketRefModel(Base):
    __tablename__ = "ticket_refs"

    ticket_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    ticket_number: Mapped[str] = mapped_column(String(50), nullable=False)
    priority: Mapped[str | None] = mapped_column(String(20), nullable=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="OPEN")
    assigned_agent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    assigned_agent_username: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("idx_ticket_refs_assignee", "assigned_agent_id", "status"),)
