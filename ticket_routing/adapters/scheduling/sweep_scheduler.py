"""APScheduler wrapper that drives the periodic SLA sweep."""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ticket_routing.application.use_cases.sla_sweep import SlaBreachSweeper

logger = logging.getLogger(__name__)

JOB_ID = "sla_sweep"


class SlaSweepScheduler:
    """Runs ``sweeper.run_once`` every *interval_seconds*.

    ``max_instances=1`` plus ``coalesce`` means a slow pass makes the next
    tick get skipped instead of stacking up.
    """

    def __init__(self, sweeper: SlaBreachSweeper, interval_seconds: int = 60):
        self._sweeper = sweeper
        self.interval_seconds = interval_seconds
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        if self.is_running:
            logger.warning("SLA sweep scheduler already running")
            return
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._sweeper.run_once,
            "interval",
            seconds=self.interval_seconds,
            id=JOB_ID,
            name="SLA breach sweep",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=self.interval_seconds,
            replace_existing=True,
        )
        self._scheduler.start()
        logger.info("SLA sweep scheduled every %ds", self.interval_seconds)

    def stop(self) -> None:
        if not self.is_running:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("SLA sweep scheduler stopped")
