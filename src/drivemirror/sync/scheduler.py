"""Background job scheduling shared by auto-sync and webhook lease renewal."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from drivemirror.util.time import now_utc

logger = logging.getLogger(__name__)


class JobScheduler:
    """Owns one APScheduler BackgroundScheduler, started on first use."""

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None) -> None:
        self._scheduler = scheduler or BackgroundScheduler(timezone="UTC")

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()
            logger.debug("Job scheduler started")

    def shutdown(self, wait: bool = False) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.debug("Job scheduler stopped")

    def every(
        self,
        job_id: str,
        func: Callable[[], Any],
        seconds: float,
        *,
        run_now: bool = True,
        name: Optional[str] = None,
    ) -> None:
        """Run func every `seconds`; with run_now the first run happens immediately."""
        self.start()
        kwargs: dict[str, Any] = {}
        if run_now:
            kwargs["next_run_time"] = now_utc()
        self._scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            name=name or job_id,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            **kwargs,
        )

    def at(
        self,
        job_id: str,
        func: Callable[[], Any],
        run_at: datetime,
        *,
        name: Optional[str] = None,
    ) -> None:
        """Run func once at run_at (immediately if run_at is already past)."""
        self.start()
        self._scheduler.add_job(
            func,
            trigger=DateTrigger(run_date=max(run_at, now_utc())),
            id=job_id,
            name=name or job_id,
            replace_existing=True,
            misfire_grace_time=None,
        )

    def cancel(self, job_id: str) -> bool:
        if self._scheduler.get_job(job_id) is None:
            return False
        self._scheduler.remove_job(job_id)
        return True

    def next_run_time(self, job_id: str) -> Optional[datetime]:
        job = self._scheduler.get_job(job_id)
        return job.next_run_time if job is not None else None
