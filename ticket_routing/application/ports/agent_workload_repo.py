"""Port interface for agent workload persistence."""

from abc import ABC, abstractmethod

from ticket_routing.domain.entities.agent_workload import AgentWorkload
from ticket_routing.domain.value_objects.enums import AgentStatus


class AgentWorkloadRepository(ABC):
    @abstractmethod
    async def add(self, agent: AgentWorkload) -> AgentWorkload:
        """Insert the agent; when agent_id already exists the stored row is returned."""
        ...

    @abstractmethod
    async def get(self, agent_id: str) -> AgentWorkload | None:
        ...

    @abstractmethod
    async def get_for_update(self, agent_id: str) -> AgentWorkload | None:
        """Load the agent and hold its row lock until the transaction ends.

        Must use row-level locking (SELECT ... FOR UPDATE) so concurrent
        counter updates for one agent are serialized.
        """
        ...

    @abstractmethod
    async def update(self, agent: AgentWorkload) -> AgentWorkload:
        ...

    @abstractmethod
    async def list_all(self) -> list[AgentWorkload]:
        ...

    @abstractmethod
    async def list_by_status(self, status: AgentStatus) -> list[AgentWorkload]:
        """Agents with *status*, fewest active tickets first, then by agent_id."""
        ...
