"""HTTP agent directory adapter — implements AgentDirectoryPort."""

from __future__ import annotations

import logging

import httpx

from ticket_routing.application.ports.agent_directory import AgentDirectoryPort, DirectoryAgent

logger = logging.getLogger(__name__)


class HttpAgentDirectory(AgentDirectoryPort):
    """Reads agents from ``GET {base_url}`` returning a JSON list.

    Each entry needs an id (``id`` or ``agentId``) and a ``username``;
    entries missing either are skipped.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, client: httpx.AsyncClient | None = None):
        self._url = base_url
        self._timeout = timeout
        self._client = client

    async def list_agents(self) -> list[DirectoryAgent]:
        if self._client is not None:
            resp = await self._client.get(self._url)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.get(self._url)
        resp.raise_for_status()

        agents: list[DirectoryAgent] = []
        for item in resp.json():
            agent_id = item.get("id") or item.get("agentId")
            username = item.get("username")
            if not agent_id or not username:
                logger.warning("Skipping directory entry without id/username: %s", item)
                continue
            agents.append(DirectoryAgent(agent_id=str(agent_id), username=username))
        logger.info("Agent directory returned %d agent(s)", len(agents))
        return agents
