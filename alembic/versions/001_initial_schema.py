"""Initial schema — workload, ledger, SLA rules and trackers, ticket projection.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _tz_timestamp(name: str, nullable: bool = True, now_default: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.func.now() if now_default else None,
    )


def upgrade() -> None:
    # Agent workload
    op.create_table(
        "agent_workload",
        sa.Column("agent_id", sa.String(64), primary_key=True),
        sa.Column("agent_username", sa.String(100), nullable=False),
        sa.Column("active_tickets", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_assigned_tickets", sa.Integer, nullable=False, server_default="0"),
        sa.Column("completed_tickets", sa.Integer, nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="AVAILABLE"),
        _tz_timestamp("last_assigned_at"),
        _tz_timestamp("updated_at", nullable=False, now_default=True),
    )
    op.create_index("idx_agent_workload_status", "agent_workload", ["status", "active_tickets"])

    # Assignment ledger
    op.create_table(
        "assignments",
        sa.Column("assignment_id", sa.String(36), primary_key=True),
        sa.Column("ticket_id", sa.String(64), nullable=False),
        sa.Column("ticket_number", sa.String(50), nullable=True),
        sa.Column("agent_id", sa.String(64), nullable=False),
        sa.Column("agent_username", sa.String(100), nullable=True),
        sa.Column("assigned_by", sa.String(64), nullable=True),
        sa.Column("assigned_by_username", sa.String(100), nullable=True),
        sa.Column("assignment_type", sa.String(20), nullable=False),
        sa.Column("assignment_strategy", sa.String(50), nullable=True),
        sa.Column("previous_agent_id", sa.String(64), nullable=True),
        sa.Column("previous_agent_username", sa.String(100), nullable=True),
        sa.Column("reassignment_reason", sa.Text, nullable=True),
        sa.Column("assignment_notes", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="CURRENT"),
        _tz_timestamp("assigned_at", nullable=False, now_default=True),
        _tz_timestamp("completed_at"),
    )
    op.create_index("idx_assignments_ticket", "assignments", ["ticket_id"])
    op.create_index("idx_assignments_agent_status", "assignments", ["agent_id", "status"])
    op.create_index("idx_assignments_assigned_at", "assignments", ["assigned_at"])
    op.create_index(
        "uq_assignments_current_ticket",
        "assignments",
        ["ticket_id"],
        unique=True,
        postgresql_where=sa.text("status = 'CURRENT'"),
    )

    # SLA rules
    op.create_table(
        "sla_rules",
        sa.Column("rule_id", sa.String(36), primary_key=True),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("response_time_minutes", sa.Integer, nullable=False),
        sa.Column("resolution_time_hours", sa.Integer, nullable=False),
        sa.Column("business_hours_only", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("escalation_time_minutes", sa.Integer, nullable=True),
        _tz_timestamp("created_at", nullable=False, now_default=True),
        sa.UniqueConstraint("priority", "category", name="uq_sla_rules_priority_category"),
    )
    op.create_index(
        "uq_sla_rules_priority_default",
        "sla_rules",
        ["priority"],
        unique=True,
        postgresql_where=sa.text("category IS NULL"),
    )

    # SLA tracking
    op.create_table(
        "sla_tracking",
        sa.Column("tracking_id", sa.String(36), primary_key=True),
        sa.Column("ticket_id", sa.String(64), unique=True, nullable=False),
        sa.Column("ticket_number", sa.String(50), nullable=True),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("business_hours_only", sa.Boolean, nullable=False, server_default=sa.false()),
        _tz_timestamp("sla_start_time", nullable=False),
        _tz_timestamp("response_due_at", nullable=False),
        _tz_timestamp("resolution_due_at", nullable=False),
        _tz_timestamp("first_response_at"),
        sa.Column("response_breached", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("response_time_minutes", sa.Integer, nullable=True),
        _tz_timestamp("resolved_at"),
        sa.Column("resolution_breached", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("resolution_time_hours", sa.Float, nullable=True),
        sa.Column("sla_status", sa.String(20), nullable=False, server_default="ON_TIME"),
        sa.Column("breach_reason", sa.Text, nullable=True),
        _tz_timestamp("breached_at"),
        sa.Column("assigned_agent_id", sa.String(64), nullable=True),
        sa.Column("assigned_agent_username", sa.String(100), nullable=True),
        _tz_timestamp("created_at", nullable=False, now_default=True),
        _tz_timestamp("updated_at", nullable=False, now_default=True),
    )
    op.create_index("idx_sla_tracking_status", "sla_tracking", ["sla_status"])
    op.create_index(
        "idx_sla_tracking_open_due", "sla_tracking", ["resolved_at", "resolution_due_at"]
    )

    # Ticket projection
    op.create_table(
        "ticket_refs",
        sa.Column("ticket_id", sa.String(64), primary_key=True),
        sa.Column("ticket_number", sa.String(50), nullable=False),
        sa.Column("priority", sa.String(20), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="OPEN"),
        sa.Column("assigned_agent_id", sa.String(64), nullable=True),
        sa.Column("assigned_agent_username", sa.String(100), nullable=True),
        _tz_timestamp("created_at", nullable=False, now_default=True),
        _tz_timestamp("updated_at", nullable=False, now_default=True),
    )
    op.create_index("idx_ticket_refs_assignee", "ticket_refs", ["assigned_agent_id", "status"])


def downgrade() -> None:
    op.drop_table("ticket_refs")
    op.drop_table("sla_tracking")
    op.drop_index("uq_sla_rules_priority_default", table_name="sla_rules")
    op.drop_table("sla_rules")
    op.drop_index("uq_assignments_current_ticket", table_name="assignments")
    op.drop_table("assignments")
    op.drop_table("agent_workload")
