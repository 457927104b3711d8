"""Periodic sync scheduler with overlap protection."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from ..core.exceptions import FlowwatchError, UnknownSyncTypeError
from ..db.models import utcnow
from .types import JOB_NAMES, SYNC_TYPES, SyncOptions, SyncRunResult

if TYPE_CHECKING:
    from ..services.sync_service import SyncService

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Runs the ``executions``, ``workflows`` and ``backups`` jobs on independent timers.

    Every job runs once right after ``start()`` and then every interval.
    A job name is held in ``_running`` for the whole of a run; any other
    invocation of the same job, scheduled or manual, is skipped while it is
    held. A full sync holds all three names.
    """

    def __init__(
        self,
        sync_service: SyncService,
        intervals: dict[str, float],
        manual_batch_size: int | None = None,
    ) -> None:
        missing = set(JOB_NAMES) - intervals.keys()
        if missing:
            raise ValueError(f"Missing intervals for jobs: {sorted(missing)}")

        self._service = sync_service
        self._intervals = dict(intervals)
        self._manual_batch_size = manual_batch_size
        self._tickers: dict[str, asyncio.Task] = {}
        self._in_flight: set[asyncio.Task] = set()
        self._running: set[str] = set()
        self._next_runs: dict[str, datetime | None] = {job: None for job in JOB_NAMES}

    @property
    def is_running(self) -> bool:
        return bool(self._tickers)

    def start(self) -> None:
        """Start one timer per job; must be called from a running event loop."""
        if self._tickers:
            logger.warning("Scheduler already running")
            return

        for job in JOB_NAMES:
            self._tickers[job] = asyncio.create_task(self._tick(job), name=f"sync-timer-{job}")
        logger.info(
            "Scheduler started: %s",
            ", ".join(f"{job} every {self._intervals[job]:g}s" for job in JOB_NAMES),
        )

    def stop(self) -> None:
        """Cancel all timers. Safe to call more than once."""
        if not self._tickers:
            return
        for task in self._tickers.values():
            task.cancel()
        self._tickers.clear()
        self._next_runs = {job: None for job in JOB_NAMES}
        logger.info("Scheduler stopped")

    async def shutdown(self) -> None:
        """Stop the timers and wait for jobs already running to finish."""
        self.stop()
        if self._in_flight:
            logger.info("Waiting for %d running sync jobs", len(self._in_flight))
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def run_job(self, job: str, scheduled: bool = False) -> SyncRunResult | None:
        """Run one job unless it is already running; returns None when skipped."""
        if job not in JOB_NAMES:
            raise UnknownSyncTypeError(job)
        if job in self._running:
            logger.info("Sync job %s is already running, skipping", job)
            return None

        self._running.add(job)
        try:
            if scheduled and job == "executions":
                await self._recheck_providers()
            return await self._service.sync_all_providers(SyncOptions(sync_type=job))
        finally:
            self._running.discard(job)

    async def trigger_sync(
        self,
        sync_type: str,
        deep_sync: bool = False,
        batch_size: int | None = None,
    ) -> SyncRunResult:
        """Run a job now, outside its schedule, under the same overlap guard."""
        if sync_type not in SYNC_TYPES:
            raise UnknownSyncTypeError(sync_type)

        jobs = JOB_NAMES if sync_type == "full" else (sync_type,)
        busy = [job for job in jobs if job in self._running]
        if busy:
            logger.info("Manual %s sync skipped, already running: %s", sync_type, ", ".join(busy))
            return SyncRunResult(sync_type=sync_type, skipped=True)

        self._running.update(jobs)
        try:
            logger.info("Manual %s sync triggered", sync_type)
            return await self._service.sync_all_providers(
                SyncOptions(
                    sync_type=sync_type,
                    batch_size=batch_size or self._manual_batch_size,
                    deep_sync=deep_sync,
                )
            )
        finally:
            self._running.difference_update(jobs)

    def status(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "active_jobs": sorted(self._tickers),
            "in_flight": sorted(self._running),
            "intervals": dict(self._intervals),
            "next_runs": {
                job: when.isoformat() if when else None for job, when in self._next_runs.items()
            },
        }

    async def _tick(self, job: str) -> None:
        interval = self._intervals[job]
        while True:
            task = asyncio.create_task(self._scheduled_run(job), name=f"sync-job-{job}")
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)

            self._next_runs[job] = utcnow() + timedelta(seconds=interval)
            await asyncio.sleep(interval)

    async def _scheduled_run(self, job: str) -> None:
        try:
            await self.run_job(job, scheduled=True)
        except FlowwatchError as e:
            logger.error("Scheduled %s sync failed: %s", job, e.message)
        except Exception:
            # Keep the timer alive for the next interval
            logger.exception("Scheduled %s sync crashed", job)

    async def _recheck_providers(self) -> None:
        try:
            recovered = await self._service.recheck_providers()
        except FlowwatchError as e:
            logger.warning("Provider health re-check failed: %s", e.message)
            return
        if recovered:
            logger.info("Providers back to healthy: %s", ", ".join(recovered))
