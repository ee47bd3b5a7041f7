"""Agent workload endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ticket_routing.adapters.directory.http_directory import HttpAgentDirectory
from ticket_routing.adapters.persistence.database import get_session
from ticket_routing.application.use_cases.agent_workload import AgentWorkloadRegistry
from ticket_routing.application.use_cases.assignment_ledger import AssignmentLedger
from ticket_routing.domain.errors import ValidationError
from ticket_routing.domain.value_objects.enums import AgentStatus
from ticket_routing.infrastructure.api.dependencies import (
    get_agent_directory,
    get_ledger,
    get_workload_registry,
)
from ticket_routing.infrastructure.api.serializers import (
    serialize_agent,
    serialize_workload_detail,
)

router = APIRouter(prefix="/agents", tags=["agents"])


class RegisterAgentRequest(BaseModel):
    agent_id: str
    username: str


class AgentStatusRequest(BaseModel):
    status: AgentStatus


@router.post("", status_code=201)
async def register_agent(
    body: RegisterAgentRequest,
    session: AsyncSession = Depends(get_session),
    registry: AgentWorkloadRegistry = Depends(get_workload_registry),
):
    agent = await registry.register(body.agent_id, body.username)
    await session.commit()
    return serialize_agent(agent)


@router.post("/sync")
async def sync_agents(
    session: AsyncSession = Depends(get_session),
    registry: AgentWorkloadRegistry = Depends(get_workload_registry),
    directory: HttpAgentDirectory | None = Depends(get_agent_directory),
):
    """Pull agents from the configured directory and register the new ones."""
    if directory is None:
        raise ValidationError("AGENT_DIRECTORY_URL is not configured")
    created = await registry.sync(directory)
    await session.commit()
    return {"registered": len(created), "agents": [serialize_agent(a) for a in created]}


@router.get("")
async def list_agents(registry: AgentWorkloadRegistry = Depends(get_workload_registry)):
    agents = await registry.list_all()
    return {
        "total": len(agents),
        "capacity": registry.limits.capacity,
        "agents": [serialize_agent(a) for a in agents],
    }


@router.get("/available")
async def list_available_agents(
    registry: AgentWorkloadRegistry = Depends(get_workload_registry),
):
    agents = await registry.list_available()
    return {"total": len(agents), "agents": [serialize_agent(a) for a in agents]}


@router.put("/{agent_id}/status")
async def set_agent_status(
    agent_id: str,
    body: AgentStatusRequest,
    session: AsyncSession = Depends(get_session),
    registry: AgentWorkloadRegistry = Depends(get_workload_registry),
):
    agent = await registry.set_status(agent_id, body.status)
    await session.commit()
    return serialize_agent(agent)


@router.get("/{agent_id}/workload")
async def agent_workload(agent_id: str, ledger: AssignmentLedger = Depends(get_ledger)):
    """Counters plus the agent's current assignments."""
    return serialize_workload_detail(await ledger.agent_detail(agent_id))
