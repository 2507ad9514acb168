"""Mini README: Tests for the budget controller.

Structure:
    * loading - stored records replace defaults and arm persistence late.
    * saving - debounced writes, failure handling and shutdown flushing.
    * cycle rollover - a new cycle starts from defaults under a new key,
      exactly once even when requests race.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta

import pytest

from cyclebudget.budgets import Budget, Expense
from cyclebudget.state import BudgetController


def _stored_budgets() -> tuple:
    return (
        Budget(
            budget_id="7",
            name="Grocery",
            monthly_limit=16000.0,
            expenses=(
                Expense(
                    expense_id="1711440000000",
                    amount=1500.0,
                    spent_at=datetime(2024, 3, 26, 10, 0),
                    contributor_id="2",
                ),
            ),
        ),
    )


def _delays(scheduler, clock) -> list:
    return [job.run_date - clock.now for job in scheduler.get_jobs()]


def test_starts_with_defaults_for_current_cycle(controller) -> None:
    """A fresh controller shows the seeded budgets for the cycle containing now."""

    state = controller.state
    assert state.cycle.key == "25/03/2024"
    assert len(state.budgets) == 8
    assert [c.name for c in state.contributors] == ["Rahul", "Anu"]
    assert not state.loaded
    assert not state.persistence_armed


def test_load_replaces_budgets_and_arms_after_guard(controller, store, scheduler, clock) -> None:
    """A stored record replaces the defaults and persistence arms one guard delay later."""

    store.records["25/03/2024"] = _stored_budgets()

    assert controller.load() is True
    assert controller.state.budgets == _stored_budgets()
    assert controller.state.loaded
    assert not controller.state.persistence_armed
    assert list(scheduler.jobs) == ["cyclebudget-persistence-guard"]
    assert _delays(scheduler, clock) == [timedelta(seconds=1.0)]

    scheduler.run_until_idle()
    assert controller.state.persistence_armed
    assert store.saves == []


def test_changes_before_arming_are_saved_once_armed(controller, store, scheduler) -> None:
    """Expenses recorded before arming are written as soon as the guard passes."""

    controller.add_expense("7", 250, "1", "  Vegetables  ")
    assert not controller.save_pending

    controller.load()
    scheduler.run_until_idle()

    assert len(store.saves) == 1
    cycle_key, budgets, overview = store.saves[0]
    assert cycle_key == "25/03/2024"
    grocery = next(budget for budget in budgets if budget.budget_id == "7")
    assert grocery.expenses[0].description == "Vegetables"
    assert overview.total_spent == pytest.approx(250.0)


def test_rapid_changes_coalesce_into_one_save(controller, store, scheduler, clock) -> None:
    """Several changes inside the debounce window produce a single write."""

    controller.load()
    scheduler.run_until_idle()

    expenses = [
        controller.add_expense("1", 1200, "1"),
        controller.add_expense("2", 300, "2"),
        controller.add_expense("7", 800, "1"),
    ]
    assert controller.save_pending
    assert store.saves == []
    assert list(scheduler.jobs) == ["cyclebudget-save"]
    assert _delays(scheduler, clock) == [timedelta(seconds=0.5)]

    scheduler.run_until_idle()
    assert len(store.saves) == 1
    _, budgets, overview = store.saves[0]
    assert sum(len(budget.expenses) for budget in budgets) == 3
    assert overview.total_spent == pytest.approx(2300.0)
    assert len({expense.expense_id for expense in expenses}) == 3
    assert controller.last_modified_count == 1


def test_failed_load_keeps_defaults_and_retries(controller, store, scheduler) -> None:
    """A failed load never arms persistence; the next cycle check retries it."""

    store.fail_load = True
    assert controller.load() is False
    assert not controller.state.loaded
    assert scheduler.added == []

    controller.add_expense("5", 900, "2")
    assert not controller.save_pending

    store.fail_load = False
    assert controller.ensure_current_cycle() is True
    scheduler.run_until_idle()
    assert controller.state.persistence_armed
    assert len(store.saves) == 1


def test_failed_save_is_logged_not_raised(controller, store, scheduler, caplog) -> None:
    """A failing write is logged and the next change saves the full state."""

    controller.load()
    scheduler.run_until_idle()

    store.fail_save = True
    controller.add_expense("6", 150, "1")
    with caplog.at_level("ERROR"):
        scheduler.run_until_idle()
    assert "Saving cycle 25/03/2024 failed" in caplog.text
    assert controller.last_modified_count is None

    store.fail_save = False
    controller.add_expense("6", 150, "1")
    scheduler.run_until_idle()
    assert controller.last_modified_count == 1
    assert sum(len(b.expenses) for b in store.saves[-1][1]) == 2


def test_stored_record_wins_over_early_local_changes(controller, store, caplog) -> None:
    """Loading a stored record discards earlier local expenses with a warning."""

    store.records["25/03/2024"] = _stored_budgets()
    controller.add_expense("7", 250, "1")

    with caplog.at_level("WARNING"):
        controller.load()
    assert controller.state.budgets == _stored_budgets()
    assert "replaces expenses recorded before loading" in caplog.text


def test_invalid_expenses_are_rejected(controller) -> None:
    """Zero, non-finite and unknown-id expenses leave the state untouched."""

    with pytest.raises(ValueError):
        controller.add_expense("1", 0, "1")
    with pytest.raises(ValueError):
        controller.add_expense("1", float("nan"), "1")
    with pytest.raises(KeyError):
        controller.add_expense("42", 100, "1")
    with pytest.raises(KeyError):
        controller.add_expense("1", 100, "3")
    assert all(not budget.expenses for budget in controller.state.budgets)


def test_metrics_reflect_recorded_expenses(controller) -> None:
    """Metrics are computed from the live snapshot and the injected clock."""

    controller.add_expense("7", 200, "2")
    metrics = controller.metrics()
    assert metrics.budget("7").spent == pytest.approx(200.0)
    assert metrics.days_left_in_cycle == 15
    assert metrics.contributors[1].percent == pytest.approx(100.0)


def test_rollover_flushes_old_cycle_and_loads_new_one(controller, store, scheduler, clock) -> None:
    """Crossing the 25th saves the old cycle and reseeds the new one."""

    controller.load()
    scheduler.run_until_idle()
    controller.add_expense("7", 400, "1")
    assert controller.save_pending

    clock.now = datetime(2024, 4, 26, 8, 0)
    assert controller.ensure_current_cycle() is True

    assert store.saves[0][0] == "25/03/2024"
    assert store.load_calls == ["25/03/2024", "25/04/2024"]
    state = controller.state
    assert state.cycle.key == "25/04/2024"
    assert all(not budget.expenses for budget in state.budgets)
    assert not state.persistence_armed


def test_concurrent_rollover_starts_new_cycle_once(
    blocking_store, settings, scheduler, clock, caplog
) -> None:
    """A request stuck in the old cycle's save must not reseed a cycle already started."""

    controller = BudgetController(blocking_store, settings, clock=clock, scheduler=scheduler)
    controller.load()
    scheduler.run_until_idle()
    controller.add_expense("7", 400, "1")

    clock.now = datetime(2024, 4, 26, 8, 0)
    results = []
    with caplog.at_level("INFO"):
        first = threading.Thread(target=lambda: results.append(controller.ensure_current_cycle()))
        first.start()
        assert blocking_store.save_started.wait(timeout=5.0)

        assert controller.ensure_current_cycle() is True
        controller.add_expense("2", 120, "2")

        blocking_store.release.set()
        first.join(timeout=5.0)

    assert not first.is_alive()
    assert results == [False]
    state = controller.state
    assert state.cycle.key == "25/04/2024"
    assert sum(len(budget.expenses) for budget in state.budgets) == 1
    assert caplog.text.count("Billing cycle rolled over") == 1
    assert [save[0] for save in blocking_store.saves] == ["25/03/2024"]

    # The late request left the new cycle's guard alone.
    scheduler.run_until_idle()
    assert controller.state.persistence_armed
    cycle_key, budgets, _ = blocking_store.saves[-1]
    assert cycle_key == "25/04/2024"
    assert sum(len(budget.expenses) for budget in budgets) == 1


def test_ensure_current_cycle_is_noop_once_loaded(controller, store) -> None:
    """Within the same cycle a loaded controller does not fetch again."""

    controller.load()
    assert controller.ensure_current_cycle() is False
    assert store.load_calls == ["25/03/2024"]


def test_shutdown_flushes_pending_save_and_closes_store(controller, store, scheduler) -> None:
    """Shutdown writes the pending change, clears jobs and closes the store."""

    controller.load()
    scheduler.run_until_idle()
    controller.add_expense("8", 700, "2")

    controller.shutdown()
    assert len(store.saves) == 1
    assert scheduler.jobs == {}
    assert store.closed


def test_injected_scheduler_is_left_running(controller, scheduler) -> None:
    """Shutdown only stops a scheduler the controller created itself."""

    controller.load()
    scheduler.jobs["other"] = object()
    controller.shutdown()
    assert "other" in scheduler.jobs
