from __future__ import annotations

import asyncio
import contextlib

import structlog
from fastapi import BackgroundTasks
from starlette.concurrency import run_in_threadpool

from taskhub.db.gateway import TaskGateway
from taskhub.observability.metrics import MetricsRegistry


logger = structlog.get_logger("aggregator")


class GaugeAggregator:
    """Recomputes `tasks_total` / `tasks_completed` from storage.

    Runs on a fixed interval once started, and on demand after every successful
    mutation. Refreshes are idempotent recomputations, so the scheduled tick and
    triggered refreshes are allowed to race; the last write wins.
    """

    def __init__(self, gateway: TaskGateway, metrics: MetricsRegistry, interval_seconds: float = 30.0) -> None:
        self.gateway = gateway
        self.metrics = metrics
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def refresh(self) -> bool:
        """Blocking refresh. Failures are logged and dropped; the next tick retries."""

        try:
            total = self.gateway.count_total()
            completed = self.gateway.count_completed()
        except Exception:
            # Background work never reaches a caller; the next tick retries.
            logger.warning("gauge_refresh_failed", exc_info=True)
            return False

        self.metrics.set_task_gauges(total=total, completed=completed)
        logger.debug("gauge_refreshed", tasks_total=total, tasks_completed=completed)
        return True

    def trigger(self, background_tasks: BackgroundTasks) -> None:
        """Schedule a detached refresh to run after the response is sent."""

        background_tasks.add_task(self.refresh)

    async def _run(self) -> None:
        while True:
            await run_in_threadpool(self.refresh)
            await asyncio.sleep(self.interval_seconds)

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="gauge-aggregator")
        logger.info("aggregator_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("aggregator_stopped")
