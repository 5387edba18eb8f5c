"""APScheduler wrapper keeping the feed cache warm in the background."""

from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

import structlog

from ..engine import FeedCache, FeedUnavailableError

REFRESH_JOB_ID = "feed::refresh"


class APSchedulerAdapter:
    """Manage the periodic refresh job of one ``FeedCache``."""

    def __init__(self, cache: FeedCache, logger: structlog.BoundLogger | None = None) -> None:
        self.cache = cache
        self.scheduler = BackgroundScheduler()
        self.logger = logger or structlog.get_logger("feed_search.scheduler")
        self.started = False

    def start(self) -> None:
        if not self.started:
            self.scheduler.start()
            self.started = True
            self.logger.info("apscheduler_started")

    def shutdown(self) -> None:
        if self.started:
            self.scheduler.shutdown(wait=False)
            self.started = False
            self.logger.info("apscheduler_stopped")

    def schedule_refresh(self, interval: float) -> None:
        if interval <= 0:
            raise ValueError("Refresh interval must be > 0 seconds")
        trigger = IntervalTrigger(seconds=float(interval))
        self.scheduler.add_job(
            self.run_refresh,
            trigger=trigger,
            id=REFRESH_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.logger.info("job_scheduled", job=REFRESH_JOB_ID, interval=interval)

    def run_refresh(self) -> None:
        try:
            snapshot = self.cache.refresh()
        except FeedUnavailableError as exc:
            self.logger.warning("scheduled_refresh_failed", error=str(exc))
            return
        self.logger.info("scheduled_refresh_done", records=len(snapshot))

    def remove_refresh(self) -> None:
        try:
            self.scheduler.remove_job(REFRESH_JOB_ID)
        except Exception:  # noqa: BLE001
            self.logger.warning("job_remove_failed", job=REFRESH_JOB_ID)

    def list_jobs(self) -> list[dict]:
        jobs = []
        for job in self.scheduler.get_jobs():
            jobs.append(
                {
                    "id": job.id,
                    "next_run_time": getattr(job, "next_run_time", None),
                    "trigger": str(job.trigger),
                }
            )
        return jobs


__all__ = ["APSchedulerAdapter", "REFRESH_JOB_ID"]
