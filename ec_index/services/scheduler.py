# ec_index/services/scheduler.py

"""Periodic collection runs driven by the ``schedule`` library."""

import asyncio
import logging
import threading
from datetime import datetime

import schedule

from ec_index.config.settings import Settings
from ec_index.services.pipeline import Pipeline, RunSummary

logger = logging.getLogger("ec_index.scheduler")

COLLECTION_TAG = "collection"
HEARTBEAT_TAG = "heartbeat"


class Scheduler:
    """Weekly and mid-week full runs plus a daily heartbeat.

    Times are local.  A non-blocking lock guards the run, so a trigger
    that fires while a run is in flight is skipped rather than queued.
    """

    def __init__(
        self,
        pipeline: Pipeline | None = None,
        scheduler: schedule.Scheduler | None = None,
    ) -> None:
        self.settings = Settings()
        self.pipeline = pipeline or Pipeline()
        self._scheduler = scheduler or schedule.Scheduler()
        self._run_lock = threading.Lock()
        self._stop_event = threading.Event()
        self.last_summary: RunSummary | None = None

    def register_jobs(self) -> list[schedule.Job]:
        """Install the collection and heartbeat jobs (idempotent)."""
        self._scheduler.clear()
        run_time = self.settings.RUN_TIME
        for day in (self.settings.WEEKLY_RUN_DAY, self.settings.MIDWEEK_RUN_DAY):
            job = getattr(self._scheduler.every(), day)
            job.at(run_time).do(self.run_collection, f"{day} {run_time}").tag(
                COLLECTION_TAG
            )
        self._scheduler.every().day.at(self.settings.HEARTBEAT_TIME).do(
            self.heartbeat
        ).tag(HEARTBEAT_TAG)
        logger.info(
            "Scheduled runs: %s and %s at %s, heartbeat daily at %s",
            self.settings.WEEKLY_RUN_DAY,
            self.settings.MIDWEEK_RUN_DAY,
            run_time,
            self.settings.HEARTBEAT_TIME,
        )
        return list(self._scheduler.jobs)

    @property
    def running(self) -> bool:
        """True while a collection run holds the lock."""
        return self._run_lock.locked()

    def next_run(self) -> datetime | None:
        """When the next collection job is due."""
        due = [
            job.next_run
            for job in self._scheduler.jobs
            if COLLECTION_TAG in job.tags and job.next_run is not None
        ]
        return min(due) if due else None

    def run_collection(self, reason: str = "manual") -> RunSummary | None:
        """Run every benchmark once; ``None`` if skipped or crashed."""
        if not self._run_lock.acquire(blocking=False):
            logger.warning(
                "Collection already in progress, skipping %s trigger", reason,
            )
            return None
        try:
            logger.info("Starting scheduled collection (%s)", reason)
            summary = asyncio.run(self.pipeline.run_all())
        except Exception as exc:
            logger.error(
                "Collection run (%s) crashed: %s", reason, exc, exc_info=True,
            )
            return None
        finally:
            self._run_lock.release()
        self.last_summary = summary
        if summary.failed:
            logger.warning(
                "Benchmarks with errors: %s", ", ".join(summary.failed),
            )
        return summary

    def trigger_now(self) -> RunSummary | None:
        """Run a collection immediately, outside the timetable."""
        return self.run_collection("on-demand")

    def heartbeat(self) -> None:
        """Log that the scheduler is alive and when it runs next."""
        nxt = self.next_run()
        logger.info(
            "Scheduler heartbeat: next collection %s",
            nxt.isoformat(timespec="minutes") if nxt else "not scheduled",
        )

    def run_forever(self, poll_seconds: float | None = None) -> None:
        """Block, running due jobs, until :meth:`stop` is called."""
        if not self._scheduler.jobs:
            self.register_jobs()
        interval = poll_seconds or self.settings.SCHEDULER_POLL_SECONDS
        self._stop_event.clear()
        logger.info("Scheduler started, next run %s", self.next_run())
        while not self._stop_event.is_set():
            self._scheduler.run_pending()
            self._stop_event.wait(interval)
        logger.info("Scheduler stopped")

    def stop(self) -> None:
        """Ask :meth:`run_forever` to return after the current tick."""
        self._stop_event.set()
