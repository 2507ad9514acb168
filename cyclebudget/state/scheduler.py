"""Mini README: Cancellable deferred tasks on an APScheduler scheduler.

Structure:
    * create_scheduler - start the background scheduler a controller owns.
    * DeferredTask - one-shot callback that restarts its delay on each schedule.

``DeferredTask`` backs both the debounced save and the post-load guard. Each
task owns a single job id on the scheduler; scheduling again replaces that
job with a fresh ``date`` trigger, so a steady stream of changes keeps
postponing the run. A job that fires after it was superseded or cancelled
is ignored.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler

from ..logging_utils import get_logger

LOGGER = get_logger(__name__)

Clock = Callable[[], datetime]


def create_scheduler() -> BackgroundScheduler:
    """Start a daemon ``BackgroundScheduler`` so pending work never blocks exit."""

    scheduler = BackgroundScheduler(daemon=True)
    scheduler.start()
    LOGGER.debug("Background scheduler started")
    return scheduler


def _scheduler_now() -> datetime:
    return datetime.now().astimezone()


class DeferredTask:
    """Run the most recently scheduled callback once its delay passes quietly."""

    def __init__(
        self,
        scheduler: BaseScheduler,
        delay: float,
        *,
        name: str = "deferred",
        clock: Optional[Clock] = None,
    ) -> None:
        self.delay = delay
        self.name = name
        self.job_id = f"cyclebudget-{name.replace(' ', '-')}"
        self._scheduler = scheduler
        self._clock = clock or _scheduler_now
        self._lock = threading.Lock()
        self._callback: Optional[Callable[[], None]] = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._callback is not None

    def schedule(self, callback: Callable[[], None]) -> None:
        """Replace any pending callback with ``callback`` and restart the delay."""

        with self._lock:
            if self._callback is not None:
                LOGGER.debug("Restarting %s task window", self.name)
            self._generation += 1
            self._callback = callback
            self._scheduler.add_job(
                self._fire,
                trigger="date",
                run_date=self._clock() + timedelta(seconds=self.delay),
                args=[self._generation],
                id=self.job_id,
                name=f"cyclebudget {self.name}",
                replace_existing=True,
                misfire_grace_time=None,
            )

    def cancel(self) -> bool:
        """Drop the pending callback; returns whether one was pending."""

        with self._lock:
            return self._take() is not None

    def flush(self) -> bool:
        """Run the pending callback immediately instead of waiting."""

        with self._lock:
            callback = self._take()
        if callback is None:
            return False
        LOGGER.debug("Flushing %s task", self.name)
        callback()
        return True

    def _take(self) -> Optional[Callable[[], None]]:
        callback = self._callback
        self._callback = None
        self._generation += 1
        try:
            self._scheduler.remove_job(self.job_id)
        except JobLookupError:
            # Already fired or never scheduled.
            pass
        return callback

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._callback is None:
                return
            callback = self._callback
            self._callback = None
        callback()
