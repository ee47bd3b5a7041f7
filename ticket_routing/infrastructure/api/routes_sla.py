"""SLA tracker views, compliance summary and the manual sweep trigger."""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends

from ticket_routing.application.use_cases.reporting import SlaComplianceReportUseCase
from ticket_routing.application.use_cases.sla_rules import SlaRuleResolver
from ticket_routing.application.use_cases.sla_sweep import SlaBreachSweeper
from ticket_routing.application.use_cases.sla_tracker import SlaTracker
from ticket_routing.infrastructure.api.dependencies import (
    get_compliance_report_uc,
    get_rule_resolver,
    get_sla_tracker,
    get_sweeper,
)
from ticket_routing.infrastructure.api.serializers import serialize_rule, serialize_tracking

router = APIRouter(prefix="/sla", tags=["sla"])


def _listing(tracker: SlaTracker, trackings) -> dict:
    return {
        "total": len(trackings),
        "trackers": [serialize_tracking(t, tracker.time_remaining(t)) for t in trackings],
    }


@router.get("/tickets/{ticket_id}")
async def get_ticket_sla(ticket_id: str, tracker: SlaTracker = Depends(get_sla_tracker)):
    tracking = await tracker.get(ticket_id)
    return serialize_tracking(tracking, tracker.time_remaining(tracking))


@router.get("/breached")
async def breached(tracker: SlaTracker = Depends(get_sla_tracker)):
    return _listing(tracker, await tracker.list_breached())


@router.get("/warnings")
async def warnings(tracker: SlaTracker = Depends(get_sla_tracker)):
    return _listing(tracker, await tracker.list_warnings())


@router.get("/active")
async def active(tracker: SlaTracker = Depends(get_sla_tracker)):
    return _listing(tracker, await tracker.list_active())


@router.get("/rules")
async def rules(resolver: SlaRuleResolver = Depends(get_rule_resolver)):
    return {"rules": [serialize_rule(r) for r in await resolver.list_rules()]}


@router.get("/compliance")
async def compliance(uc: SlaComplianceReportUseCase = Depends(get_compliance_report_uc)):
    report = await uc.execute()
    return {
        "total_tracked": report.total_tracked,
        "on_time": report.on_time,
        "warning": report.warning,
        "breached": report.breached,
        "compliance_rate": report.compliance_rate,
        "by_priority": [
            {
                "priority": row.priority,
                "tracked": row.tracked,
                "breached": row.breached,
                "response_breached": row.response_breached,
                "resolution_breached": row.resolution_breached,
                "compliance_rate": row.compliance_rate,
            }
            for row in report.by_priority
        ],
    }


@router.post("/sweep")
async def run_sweep(sweeper: SlaBreachSweeper = Depends(get_sweeper)):
    """Run one sweep now; skipped if the scheduled pass is mid-flight."""
    return asdict(await sweeper.run_once())
