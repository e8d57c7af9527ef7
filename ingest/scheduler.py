from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from alerts.job import AlertCycleResult, AlertJob
from ingest.orchestrator import FetchOrchestrator, SyncSummary
from ingest.sources.base import FetchResult


logger = logging.getLogger(__name__)


class Scheduler:
    """Drives the periodic sync and alert cycles.

    The two loops run as independent asyncio tasks. `stop()` sets a shared
    event; a loop notices it between cycles, so a cycle that has already
    started always runs to completion.
    """

    def __init__(
        self,
        *,
        orchestrator: FetchOrchestrator,
        alert_job: AlertJob,
        sync_interval_seconds: float,
        alert_interval_seconds: float,
        alert_initial_delay_seconds: float = 5.0,
    ) -> None:
        self._orchestrator = orchestrator
        self._alert_job = alert_job
        self._sync_interval = sync_interval_seconds
        self._alert_interval = alert_interval_seconds
        self._alert_initial_delay = alert_initial_delay_seconds
        self._stop = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._tasks = [
            asyncio.create_task(
                self._loop("sync", self.run_sync_now, self._sync_interval, self._sync_interval),
                name="sync-loop",
            ),
            asyncio.create_task(
                self._loop(
                    "alerts",
                    self.run_alerts_now,
                    self._alert_initial_delay,
                    self._alert_interval,
                ),
                name="alert-loop",
            ),
        ]
        logger.info(
            "scheduler started (sync every %ss, alerts every %ss)",
            self._sync_interval,
            self._alert_interval,
        )

    async def stop(self) -> None:
        self._stop.set()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info("scheduler stopped")

    async def run_sync_now(self) -> SyncSummary:
        summary = await self._orchestrator.fetch_all()
        if not summary.success:
            logger.warning("every source failed during sync")
        return summary

    async def run_sync_for_type(self, disaster_type: str) -> FetchResult:
        return await self._orchestrator.fetch_by_type(disaster_type)

    async def run_alerts_now(self) -> AlertCycleResult | None:
        return await self._alert_job.run_once()

    def status(self) -> dict:
        last = self._alert_job.last_result
        return {
            "running": self.running,
            "sync_interval_seconds": self._sync_interval,
            "alert_interval_seconds": self._alert_interval,
            "alert_job_state": self._alert_job.state.value,
            "last_alert_cycle": last.as_dict() if last else None,
        }

    async def _wait(self, seconds: float) -> bool:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _loop(
        self,
        name: str,
        run: Callable[[], Awaitable[object]],
        first_delay: float,
        interval: float,
    ) -> None:
        if await self._wait(first_delay):
            return
        while True:
            try:
                await run()
            except Exception:
                logger.exception("scheduled %s cycle failed", name)
            if await self._wait(interval):
                return
