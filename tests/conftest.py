"""Mini README: Shared fixtures for the cyclebudget test-suite.

Structure:
    * ManualScheduler - APScheduler stand-in whose jobs only run when told to.
    * FakeStore - in-memory stand-in for the remote record store.
    * BlockingSaveStore - store whose saves wait until the test releases them.
    * MutableClock - callable clock tests can move forward.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pytest
from apscheduler.jobstores.base import ConflictingIdError, JobLookupError

from cyclebudget.budgets.aggregator import Metrics
from cyclebudget.budgets.models import Budget
from cyclebudget.configuration import CycleBudgetSettings
from cyclebudget.state.controller import BudgetController
from cyclebudget.storage import StorageError


@dataclass
class ManualJob:
    id: str
    func: Callable[..., None]
    run_date: datetime
    args: List[Any] = field(default_factory=list)

    def run(self) -> None:
        """Invoke the job function, even after removal, like a job racing its cancel."""

        self.func(*self.args)


class ManualScheduler:
    """Records ``date`` jobs by id the way ``BackgroundScheduler`` keys them."""

    def __init__(self) -> None:
        self.jobs: Dict[str, ManualJob] = {}
        self.added: List[ManualJob] = []
        self.removed: List[str] = []

    def add_job(
        self,
        func: Callable[..., None],
        trigger: str,
        *,
        run_date: datetime,
        args: Optional[List[Any]] = None,
        id: str,
        replace_existing: bool = False,
        **options: Any,
    ) -> ManualJob:
        assert trigger == "date"
        if id in self.jobs and not replace_existing:
            raise ConflictingIdError(id)
        job = ManualJob(id=id, func=func, run_date=run_date, args=list(args or []))
        self.jobs[id] = job
        self.added.append(job)
        return job

    def remove_job(self, job_id: str) -> None:
        if job_id not in self.jobs:
            raise JobLookupError(job_id)
        del self.jobs[job_id]
        self.removed.append(job_id)

    def get_job(self, job_id: str) -> Optional[ManualJob]:
        return self.jobs.get(job_id)

    def get_jobs(self) -> List[ManualJob]:
        return sorted(self.jobs.values(), key=lambda job: job.run_date)

    def shutdown(self, wait: bool = True) -> None:
        self.jobs.clear()

    def run_until_idle(self) -> int:
        """Run due jobs in run-date order, including ones they schedule."""

        fired = 0
        while self.jobs:
            job = self.get_jobs()[0]
            del self.jobs[job.id]
            job.run()
            fired += 1
        return fired


class FakeStore:
    def __init__(self, records: Optional[Dict[str, Tuple[Budget, ...]]] = None) -> None:
        self.records: Dict[str, Tuple[Budget, ...]] = dict(records or {})
        self.saves: List[Tuple[str, Tuple[Budget, ...], Metrics]] = []
        self.load_calls: List[str] = []
        self.fail_load = False
        self.fail_save = False
        self.closed = False

    def load_cycle(self, cycle_key: str) -> Optional[Tuple[Budget, ...]]:
        self.load_calls.append(cycle_key)
        if self.fail_load:
            raise StorageError("store offline")
        return self.records.get(cycle_key)

    def save_cycle(self, cycle_key: str, budgets: Sequence[Budget], overview: Metrics) -> int:
        if self.fail_save:
            raise StorageError("store offline")
        self.saves.append((cycle_key, tuple(budgets), overview))
        self.records[cycle_key] = tuple(budgets)
        return 1

    def close(self) -> None:
        self.closed = True


class BlockingSaveStore(FakeStore):
    def __init__(self) -> None:
        super().__init__()
        self.save_started = threading.Event()
        self.release = threading.Event()

    def save_cycle(self, cycle_key: str, budgets: Sequence[Budget], overview: Metrics) -> int:
        self.save_started.set()
        if not self.release.wait(timeout=5.0):
            raise StorageError("save was never released")
        return super().save_cycle(cycle_key, budgets, overview)


class MutableClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def settings() -> CycleBudgetSettings:
    return CycleBudgetSettings(
        environment="test",
        save_debounce_seconds=0.5,
        persist_ready_delay_seconds=1.0,
    )


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock(datetime(2024, 4, 10, 9, 30))


@pytest.fixture
def controller(
    store: FakeStore,
    settings: CycleBudgetSettings,
    clock: MutableClock,
    scheduler: ManualScheduler,
) -> BudgetController:
    return BudgetController(store, settings, clock=clock, scheduler=scheduler)


@pytest.fixture
def blocking_store() -> BlockingSaveStore:
    return BlockingSaveStore()
