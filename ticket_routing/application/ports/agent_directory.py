"""Port interface for the external directory of support agents."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class DirectoryAgent:
    agent_id: str
    username: str


class AgentDirectoryPort(ABC):
    @abstractmethod
    async def list_agents(self) -> list[DirectoryAgent]:
        ...
