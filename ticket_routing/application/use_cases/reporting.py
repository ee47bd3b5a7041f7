"""Read-only reports: assignment statistics and SLA compliance."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field

from ticket_routing.application.ports.agent_workload_repo import AgentWorkloadRepository
from ticket_routing.application.ports.assignment_repo import AssignmentRepository
from ticket_routing.application.ports.sla_tracking_repo import SlaTrackingRepository
from ticket_routing.domain.value_objects.enums import SlaStatus


def _percent(part: int, whole: int) -> float:
    return round(part * 100 / whole, 2) if whole else 0.0


@dataclass
class PriorityCompliance:
    priority: str
    tracked: int = 0
    breached: int = 0
    response_breached: int = 0
    resolution_breached: int = 0

    @property
    def compliance_rate(self) -> float:
        return _percent(self.tracked - self.breached, self.tracked)


@dataclass
class SlaComplianceReport:
    total_tracked: int
    on_time: int
    warning: int
    breached: int
    by_priority: list[PriorityCompliance] = field(default_factory=list)

    @property
    def compliance_rate(self) -> float:
        return _percent(self.on_time, self.total_tracked)


@dataclass
class AssignmentStats:
    by_status: dict[str, int]
    by_type: dict[str, int]
    agents_total: int
    agents_by_status: dict[str, int]
    active_tickets: int


class SlaComplianceReportUseCase:
    def __init__(self, tracking_repo: SlaTrackingRepository):
        self._trackings = tracking_repo

    async def execute(self) -> SlaComplianceReport:
        trackings = await self._trackings.list_all()
        per_priority: dict[str, PriorityCompliance] = {}
        counts: dict[SlaStatus, int] = defaultdict(int)

        for t in trackings:
            counts[t.status] += 1
            row = per_priority.setdefault(t.priority, PriorityCompliance(priority=t.priority))
            row.tracked += 1
            if t.status == SlaStatus.BREACHED:
                row.breached += 1
            if t.response_breached:
                row.response_breached += 1
            if t.resolution_breached:
                row.resolution_breached += 1

        return SlaComplianceReport(
            total_tracked=len(trackings),
            on_time=counts[SlaStatus.ON_TIME] + counts[SlaStatus.MET],
            warning=counts[SlaStatus.WARNING],
            breached=counts[SlaStatus.BREACHED],
            by_priority=sorted(per_priority.values(), key=lambda r: r.priority),
        )


class AssignmentStatsUseCase:
    def __init__(self, assignment_repo: AssignmentRepository, agent_repo: AgentWorkloadRepository):
        self._assignments = assignment_repo
        self._agents = agent_repo

    async def execute(self) -> AssignmentStats:
        agents = await self._agents.list_all()
        agents_by_status: dict[str, int] = defaultdict(int)
        for a in agents:
            agents_by_status[a.status.value] += 1
        return AssignmentStats(
            by_status=await self._assignments.count_by_status(),
            by_type=await self._assignments.count_by_type(),
            agents_total=len(agents),
            agents_by_status=dict(agents_by_status),
            active_tickets=sum(a.active_tickets for a in agents),
        )
