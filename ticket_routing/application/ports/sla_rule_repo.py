"""Port interface for SLA rule persistence."""

from abc import ABC, abstractmethod

from ticket_routing.domain.entities.sla_rule import SlaRule


class SlaRuleRepository(ABC):
    @abstractmethod
    async def find(self, priority: str, category: str | None) -> SlaRule | None:
        """Exact match; ``category=None`` matches only the category-agnostic rule."""
        ...

    @abstractmethod
    async def add_if_absent(self, rule: SlaRule) -> SlaRule:
        """Insert unless a rule with the same (priority, category) exists.

        Returns whichever rule is stored afterwards, so concurrent callers
        converge on one row.
        """
        ...

    @abstractmethod
    async def list_all(self) -> list[SlaRule]:
        ...
