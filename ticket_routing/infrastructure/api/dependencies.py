"""FastAPI dependency injection — wires adapters into use cases."""

from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_routing.adapters.directory.http_directory import HttpAgentDirectory
from ticket_routing.adapters.events.publishers import (
    FanOutPublisher,
    LoggingEventPublisher,
    OutboxPublisher,
    WebhookEventPublisher,
)
from ticket_routing.adapters.persistence.database import get_session
from ticket_routing.adapters.persistence.repositories import (
    SqlAgentWorkloadRepository,
    SqlAssignmentRepository,
    SqlSlaRuleRepository,
    SqlSlaTrackingRepository,
    SqlTicketRepository,
    SqlUnitOfWork,
    sla_tracking_scope,
)
from ticket_routing.adapters.scheduling.sweep_scheduler import SlaSweepScheduler
from ticket_routing.application.ports.event_publisher import EventPublisher
from ticket_routing.application.use_cases.agent_workload import AgentWorkloadRegistry
from ticket_routing.application.use_cases.assignment_ledger import AssignmentLedger
from ticket_routing.application.use_cases.reporting import (
    AssignmentStatsUseCase,
    SlaComplianceReportUseCase,
)
from ticket_routing.application.use_cases.sla_rules import SlaRuleResolver
from ticket_routing.application.use_cases.sla_sweep import SlaBreachSweeper
from ticket_routing.application.use_cases.sla_tracker import SlaTracker
from ticket_routing.application.use_cases.ticket_events import TicketEventHandler
from ticket_routing.config import settings
from ticket_routing.domain.entities.agent_workload import WorkloadLimits
from ticket_routing.domain.policies.assignment_strategy import build_strategy
from ticket_routing.domain.policies.sla_clock import BusinessHours, SlaClock

logger = logging.getLogger(__name__)

# Re-export session dependency
get_db_session = get_session

# Process-wide singletons
_limits = WorkloadLimits(
    capacity=settings.max_tickets_per_agent,
    busy_threshold=settings.agent_busy_threshold,
)
_strategy = build_strategy(settings.auto_assign_strategy)
_sla_clock = SlaClock(
    BusinessHours(settings.sla_business_hours_start, settings.sla_business_hours_end)
    if settings.sla_business_hours_enabled
    else None
)

_webhook: WebhookEventPublisher | None = None
if settings.event_webhook_url:
    _webhook = WebhookEventPublisher(settings.event_webhook_url, settings.event_webhook_timeout)
    logger.info("Publishing events to %s", settings.event_webhook_url)
    _publisher: EventPublisher = FanOutPublisher(LoggingEventPublisher(), _webhook)
else:
    _publisher = LoggingEventPublisher()

sweeper = SlaBreachSweeper(
    scope=sla_tracking_scope,
    publisher=_publisher,
    sla_clock=_sla_clock,
    warning_threshold=settings.sla_warning_threshold,
)
sweep_scheduler = SlaSweepScheduler(sweeper, settings.sla_sweep_interval_seconds)


async def close_publishers() -> None:
    if _webhook is not None:
        await _webhook.aclose()


# ─── Per-request wiring ──────────────────────────────────────────────


def get_outbox() -> OutboxPublisher:
    """Events raised during a request; flushed by :func:`commit` after the DB commit."""
    return OutboxPublisher(_publisher)


async def commit(session: AsyncSession, outbox: OutboxPublisher) -> None:
    await session.commit()
    await outbox.flush()


def get_sweeper() -> SlaBreachSweeper:
    return sweeper


def get_agent_directory() -> HttpAgentDirectory | None:
    if not settings.agent_directory_url:
        return None
    return HttpAgentDirectory(settings.agent_directory_url)


def get_workload_registry(
    session: AsyncSession = Depends(get_session),
) -> AgentWorkloadRegistry:
    return AgentWorkloadRegistry(SqlAgentWorkloadRepository(session), _limits)


def get_sla_tracker(session: AsyncSession = Depends(get_session)) -> SlaTracker:
    return SlaTracker(
        tracking_repo=SqlSlaTrackingRepository(session),
        rule_resolver=SlaRuleResolver(SqlSlaRuleRepository(session)),
        sla_clock=_sla_clock,
        warning_threshold=settings.sla_warning_threshold,
    )


def get_ledger(
    session: AsyncSession = Depends(get_session),
    outbox: OutboxPublisher = Depends(get_outbox),
    workload: AgentWorkloadRegistry = Depends(get_workload_registry),
    sla_tracker: SlaTracker = Depends(get_sla_tracker),
) -> AssignmentLedger:
    return AssignmentLedger(
        assignment_repo=SqlAssignmentRepository(session),
        ticket_repo=SqlTicketRepository(session),
        workload=workload,
        strategy=_strategy,
        sla_tracker=sla_tracker,
        publisher=outbox,
        unit_of_work=SqlUnitOfWork(session),
        auto_assign_enabled=settings.auto_assign_enabled,
    )


def get_ticket_events(
    session: AsyncSession = Depends(get_session),
    ledger: AssignmentLedger = Depends(get_ledger),
    sla_tracker: SlaTracker = Depends(get_sla_tracker),
) -> TicketEventHandler:
    return TicketEventHandler(SqlTicketRepository(session), ledger, sla_tracker)


def get_rule_resolver(session: AsyncSession = Depends(get_session)) -> SlaRuleResolver:
    return SlaRuleResolver(SqlSlaRuleRepository(session))


def get_compliance_report_uc(
    session: AsyncSession = Depends(get_session),
) -> SlaComplianceReportUseCase:
    return SlaComplianceReportUseCase(SqlSlaTrackingRepository(session))


def get_assignment_stats_uc(
    session: AsyncSession = Depends(get_session),
) -> AssignmentStatsUseCase:
    return AssignmentStatsUseCase(
        SqlAssignmentRepository(session), SqlAgentWorkloadRepository(session)
    )
