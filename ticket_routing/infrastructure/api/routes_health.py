"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_routing.adapters.persistence.database import get_session
from ticket_routing.infrastructure.api.dependencies import sweep_scheduler

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(session: AsyncSession = Depends(get_session)):
    """Check API, database connectivity and the SLA sweep scheduler."""
    try:
        result = await session.execute(text("SELECT 1"))
        result.scalar()
        db_status = "connected"
    except Exception as e:
        db_status = f"error: {e}"

    return {
        "status": "ok" if db_status == "connected" else "degraded",
        "database": db_status,
        "sla_sweep": "running" if sweep_scheduler.is_running else "stopped",
        "service": "ticket-routing",
    }
