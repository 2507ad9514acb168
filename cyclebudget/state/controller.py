"""Mini README: Controller owning the tracker state and its persistence.

Structure:
    * BudgetStore - protocol implemented by ``RemoteBudgetStore`` and fakes.
    * BudgetController - single entry point for loading, recording expenses,
      computing metrics and saving.
    * build_controller - wire a controller against the configured remote store.

Lifecycle:
    1. The controller starts with the default budgets for the current cycle.
    2. ``load`` fetches the stored record for that cycle and replaces the
       budgets when one exists.
    3. A short guard delay later persistence is armed. From then on every
       change schedules a debounced save of the whole cycle record. Changes
       made before arming are saved once the guard passes.

Timers are jobs on an APScheduler ``BackgroundScheduler`` the controller owns
unless one is injected. Saves run on its worker threads and are never
cancelled once started, so two overlapping saves may land in either order.
"""

from __future__ import annotations

import math
import threading
from datetime import datetime
from functools import partial
from typing import Callable, Optional, Protocol, Sequence, Tuple

from apscheduler.schedulers.base import BaseScheduler

from ..budgets.aggregator import Metrics, aggregate
from ..budgets.cycle import resolve_cycle
from ..budgets.models import Budget, Expense, default_budgets
from ..configuration import CycleBudgetSettings, get_settings
from ..logging_utils import get_logger
from ..storage.remote import RemoteBudgetStore, StorageError
from .scheduler import DeferredTask, create_scheduler
from .store import (
    Action,
    AppState,
    BudgetsLoaded,
    CycleStarted,
    ExpenseAdded,
    PersistenceArmed,
    initial_state,
    reduce,
)

LOGGER = get_logger(__name__)

Clock = Callable[[], datetime]


class BudgetStore(Protocol):
    def load_cycle(self, cycle_key: str) -> Optional[Tuple[Budget, ...]]:
        ...

    def save_cycle(
        self, cycle_key: str, budgets: Sequence[Budget], overview: Metrics
    ) -> Optional[int]:
        ...

    def close(self) -> None:
        ...


def local_now() -> datetime:
    """Timezone-aware current time in the host's local zone."""

    return datetime.now().astimezone()


class BudgetController:
    """Own the application state and coordinate loading and saving."""

    def __init__(
        self,
        store: BudgetStore,
        settings: Optional[CycleBudgetSettings] = None,
        *,
        clock: Optional[Clock] = None,
        scheduler: Optional[BaseScheduler] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._clock = clock or local_now
        self._lock = threading.RLock()
        self._loading = False
        self._state = initial_state(
            resolve_cycle(self._clock(), self._settings.cycle_start_day)
        )
        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or create_scheduler()
        self._save_task = DeferredTask(
            self._scheduler,
            self._settings.save_debounce_seconds,
            name="save",
            clock=self._clock,
        )
        self._ready_task = DeferredTask(
            self._scheduler,
            self._settings.persist_ready_delay_seconds,
            name="persistence guard",
            clock=self._clock,
        )
        self.last_modified_count: Optional[int] = None
        LOGGER.debug("Controller initialised for cycle %s", self._state.cycle.key)

    @property
    def state(self) -> AppState:
        with self._lock:
            return self._state

    @property
    def settings(self) -> CycleBudgetSettings:
        return self._settings

    @property
    def save_pending(self) -> bool:
        return self._save_task.pending

    def _dispatch(self, action: Action) -> AppState:
        with self._lock:
            self._state = reduce(self._state, action)
            return self._state

    def load(self) -> bool:
        """Replace budgets with the stored record for the active cycle.

        Returns ``True`` when the lookup completed, whether or not a record
        existed. A failed lookup leaves the defaults in place and keeps
        persistence disarmed so the defaults never overwrite stored data.
        """

        with self._lock:
            if self._loading:
                LOGGER.debug("Load already in progress; skipping")
                return False
            self._loading = True
            cycle = self._state.cycle

        try:
            budgets = self._store.load_cycle(cycle.key)
        except StorageError:
            LOGGER.exception("Loading cycle %s failed; keeping default budgets", cycle.key)
            return False
        finally:
            with self._lock:
                self._loading = False

        with self._lock:
            if self._state.cycle != cycle:
                LOGGER.info("Discarding load for %s after cycle change", cycle.key)
                return False
            if budgets is not None and self._state.changed_since_load:
                LOGGER.warning(
                    "Stored record for %s replaces expenses recorded before loading", cycle.key
                )
            self._dispatch(BudgetsLoaded(budgets))
        self._ready_task.schedule(self._arm_persistence)
        return True

    def _arm_persistence(self) -> None:
        state = self._dispatch(PersistenceArmed())
        LOGGER.info("Persistence armed for cycle %s", state.cycle.key)
        if state.changed_since_load:
            self._schedule_save(state)

    def _next_expense_id(self, spent_at: datetime) -> str:
        taken = set(self._state.expense_ids())
        candidate = int(spent_at.timestamp() * 1000)
        while str(candidate) in taken:
            candidate += 1
        return str(candidate)

    def add_expense(
        self,
        budget_id: str,
        amount: float,
        contributor_id: str,
        description: str = "",
    ) -> Expense:
        """Record an expense against a budget and schedule a save."""

        value = float(amount)
        if not math.isfinite(value):
            raise ValueError("Expense amounts must be finite numbers.")
        if value == 0:
            raise ValueError("An amount is required to record an expense.")

        spent_at = self._clock()
        with self._lock:
            expense = Expense(
                expense_id=self._next_expense_id(spent_at),
                amount=value,
                spent_at=spent_at,
                contributor_id=str(contributor_id),
                description=(description or "").strip(),
            )
            state = self._dispatch(ExpenseAdded(budget_id=str(budget_id), expense=expense))

        LOGGER.info(
            "Recorded expense %s of %.2f in budget %s for contributor %s",
            expense.expense_id,
            expense.amount,
            budget_id,
            expense.contributor_id,
        )
        if state.persistence_armed:
            self._schedule_save(state)
        else:
            LOGGER.debug("Persistence not armed yet; save deferred until it is")
        return expense

    def _aggregate(self, state: AppState, now: datetime) -> Metrics:
        return aggregate(
            state.budgets,
            state.contributors,
            state.cycle,
            now,
            rent_budget_id=self._settings.rent_budget_id,
            restrict_to_cycle=self._settings.restrict_spending_to_cycle,
        )

    def metrics(self) -> Metrics:
        """Overview of the current snapshot as of now."""

        return self._aggregate(self.state, self._clock())

    def _schedule_save(self, state: AppState) -> None:
        self._save_task.schedule(partial(self._persist, state))

    def _persist(self, state: AppState) -> None:
        overview = self._aggregate(state, self._clock())
        try:
            modified = self._store.save_cycle(state.cycle.key, state.budgets, overview)
        except StorageError:
            LOGGER.exception("Saving cycle %s failed", state.cycle.key)
            return
        self.last_modified_count = modified
        if modified:
            LOGGER.info("Saved cycle %s", state.cycle.key)

    def ensure_current_cycle(self) -> bool:
        """Roll over to a new cycle when due, or retry a load that never completed.

        Returns ``True`` when a load ran to completion during the call.
        """

        cycle = resolve_cycle(self._clock(), self._settings.cycle_start_day)
        current = self.state
        if cycle != current.cycle:
            # The flush may block on the network, so it runs outside the lock.
            self._save_task.flush()
            with self._lock:
                if self._state.cycle != current.cycle:
                    LOGGER.debug("Cycle %s already started elsewhere", self._state.cycle.key)
                    return False
                self._ready_task.cancel()
                LOGGER.info(
                    "Billing cycle rolled over from %s to %s", current.cycle.key, cycle.key
                )
                self._dispatch(CycleStarted(cycle=cycle, budgets=default_budgets()))
            return self.load()
        if not current.loaded:
            return self.load()
        return False

    def shutdown(self) -> None:
        """Write any pending change and release the store and scheduler."""

        self._ready_task.cancel()
        if self._save_task.flush():
            LOGGER.info("Flushed pending save during shutdown")
        if self._owns_scheduler:
            self._scheduler.shutdown(wait=False)
        self._store.close()


def build_controller(settings: Optional[CycleBudgetSettings] = None) -> BudgetController:
    """Create a controller backed by the configured remote store."""

    settings = settings or get_settings()
    store = RemoteBudgetStore(
        settings.storage_base_url,
        settings.resource_namespace,
        timeout=settings.request_timeout_seconds,
    )
    return BudgetController(store, settings)
