"""AgentWorkloadRegistry — per-agent capacity and status bookkeeping.

The registry never refuses a mutation: callers check OFFLINE and capacity
before assigning. Every counter change locks the agent row first, so
concurrent assignment operations on one agent cannot lose an update.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from ticket_routing.application.clock import Clock, utc_now
from ticket_routing.application.ports.agent_directory import AgentDirectoryPort
from ticket_routing.application.ports.agent_workload_repo import AgentWorkloadRepository
from ticket_routing.domain.entities.agent_workload import AgentWorkload, WorkloadLimits
from ticket_routing.domain.errors import NotFound
from ticket_routing.domain.value_objects.enums import AgentStatus

logger = logging.getLogger(__name__)


class AgentWorkloadRegistry:
    def __init__(
        self,
        agent_repo: AgentWorkloadRepository,
        limits: WorkloadLimits,
        clock: Clock = utc_now,
    ):
        self._agents = agent_repo
        self._limits = limits
        self._now = clock

    @property
    def limits(self) -> WorkloadLimits:
        return self._limits

    async def register(self, agent_id: str, username: str) -> AgentWorkload:
        """Create the agent's workload row, or return the existing one."""
        existing = await self._agents.get(agent_id)
        if existing is not None:
            return existing
        agent = await self._agents.add(
            AgentWorkload(agent_id=agent_id, username=username, updated_at=self._now())
        )
        logger.info("Registered agent %s (%s)", agent.agent_id, agent.username)
        return agent

    async def get(self, agent_id: str) -> AgentWorkload:
        agent = await self._agents.get(agent_id)
        if agent is None:
            raise NotFound("Agent", agent_id)
        return agent

    async def lock(self, agent_id: str) -> AgentWorkload:
        """Fetch an agent and hold its row lock for the caller's transaction."""
        agent = await self._agents.get_for_update(agent_id)
        if agent is None:
            raise NotFound("Agent", agent_id)
        return agent

    async def _mutate(
        self,
        agent_id: str,
        change: Callable[[AgentWorkload, WorkloadLimits, datetime], None],
    ) -> AgentWorkload:
        agent = await self.lock(agent_id)
        change(agent, self._limits, self._now())
        return await self._agents.update(agent)

    async def set_status(self, agent_id: str, status: AgentStatus) -> AgentWorkload:
        agent = await self.lock(agent_id)
        previous = agent.status
        agent.set_status(status, self._limits, self._now())
        agent = await self._agents.update(agent)
        if agent.status != previous:
            logger.info(
                "Agent %s status %s -> %s", agent_id, previous.value, agent.status.value
            )
        return agent

    async def increment_active(self, agent_id: str) -> AgentWorkload:
        return await self._mutate(agent_id, AgentWorkload.take_ticket)

    async def decrement_active(self, agent_id: str) -> AgentWorkload:
        return await self._mutate(agent_id, AgentWorkload.release_ticket)

    async def record_completion(self, agent_id: str) -> AgentWorkload:
        return await self._mutate(agent_id, AgentWorkload.complete_ticket)

    async def list_available(self) -> list[AgentWorkload]:
        return await self._agents.list_by_status(AgentStatus.AVAILABLE)

    async def list_all(self) -> list[AgentWorkload]:
        return await self._agents.list_all()

    async def sync(self, directory: AgentDirectoryPort) -> list[AgentWorkload]:
        """Register every agent the directory knows about; returns the new ones."""
        created: list[AgentWorkload] = []
        for entry in await directory.list_agents():
            if await self._agents.get(entry.agent_id) is None:
                created.append(await self.register(entry.agent_id, entry.username))
        logger.info("Agent sync registered %d new agent(s)", len(created))
        return created
