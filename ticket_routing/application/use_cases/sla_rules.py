"""SlaRuleResolver — priority/category to time budget, with lazy defaults."""

from __future__ import annotations

import logging
import uuid

from ticket_routing.application.clock import Clock, utc_now
from ticket_routing.application.ports.sla_rule_repo import SlaRuleRepository
from ticket_routing.domain.entities.sla_rule import SlaRule
from ticket_routing.domain.policies.sla_defaults import default_budget, normalize_priority

logger = logging.getLogger(__name__)


class SlaRuleResolver:
    def __init__(self, rule_repo: SlaRuleRepository, clock: Clock = utc_now):
        self._rules = rule_repo
        self._now = clock

    async def resolve(self, priority: str | None, category: str | None = None) -> SlaRule:
        """Most specific rule for the pair; synthesizes a default once if none exists.

        Lookup order: exact (priority, category), then (priority, no category),
        then the built-in table for the priority.
        """
        key = normalize_priority(priority)
        category = category.strip() if category and category.strip() else None

        if category is not None:
            rule = await self._rules.find(key, category)
            if rule is not None:
                return rule

        rule = await self._rules.find(key, None)
        if rule is not None:
            return rule

        budget = default_budget(key)
        logger.info(
            "No SLA rule for priority %s; creating default (%d min response, %d h resolution)",
            key, budget.response_time_minutes, budget.resolution_time_hours,
        )
        return await self._rules.add_if_absent(
            SlaRule(
                id=str(uuid.uuid4()),
                priority=key,
                category=None,
                response_time_minutes=budget.response_time_minutes,
                resolution_time_hours=budget.resolution_time_hours,
                created_at=self._now(),
            )
        )

    async def list_rules(self) -> list[SlaRule]:
        return await self._rules.list_all()
