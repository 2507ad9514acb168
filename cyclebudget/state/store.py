"""Mini README: Application state and its transitions.

Structure:
    * AppState - immutable snapshot of everything the dashboard shows.
    * ExpenseAdded / BudgetsLoaded / PersistenceArmed / CycleStarted - actions.
    * initial_state - default budgets and contributors for a cycle.
    * reduce - pure ``(state, action) -> state`` transition.

The controller is the only caller of ``reduce``; views read the snapshot it
hands out and never mutate it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple, Union

from ..budgets.cycle import BillingCycle
from ..budgets.models import (
    Budget,
    Contributor,
    Expense,
    default_budgets,
    default_contributors,
    find_budget,
)


@dataclass(frozen=True, slots=True)
class AppState:
    """Snapshot of the tracker for the active cycle."""

    cycle: BillingCycle
    contributors: Tuple[Contributor, ...]
    budgets: Tuple[Budget, ...]
    loaded: bool = False
    persistence_armed: bool = False
    changed_since_load: bool = False

    def contributor_ids(self) -> Tuple[str, ...]:
        return tuple(contributor.contributor_id for contributor in self.contributors)

    def expense_ids(self) -> Tuple[str, ...]:
        return tuple(expense.expense_id for budget in self.budgets for expense in budget.expenses)


@dataclass(frozen=True, slots=True)
class ExpenseAdded:
    budget_id: str
    expense: Expense


@dataclass(frozen=True, slots=True)
class BudgetsLoaded:
    """Remote lookup finished; ``budgets`` is ``None`` when no record existed."""

    budgets: Union[Tuple[Budget, ...], None]


@dataclass(frozen=True, slots=True)
class PersistenceArmed:
    pass


@dataclass(frozen=True, slots=True)
class CycleStarted:
    """Switch to a new cycle with freshly seeded budgets."""

    cycle: BillingCycle
    budgets: Tuple[Budget, ...]


Action = Union[ExpenseAdded, BudgetsLoaded, PersistenceArmed, CycleStarted]


def initial_state(cycle: BillingCycle) -> AppState:
    return AppState(cycle=cycle, contributors=default_contributors(), budgets=default_budgets())


def _add_expense(state: AppState, action: ExpenseAdded) -> AppState:
    expense = action.expense
    if expense.amount < 0:
        raise ValueError("Expense amounts must be non-negative.")
    if expense.contributor_id not in state.contributor_ids():
        raise KeyError(f"Contributor {expense.contributor_id} not found")
    if find_budget(state.budgets, action.budget_id) is None:
        raise KeyError(f"Budget {action.budget_id} not found")

    budgets = tuple(
        budget.with_expense(expense) if budget.budget_id == action.budget_id else budget
        for budget in state.budgets
    )
    return replace(state, budgets=budgets, changed_since_load=True)


def reduce(state: AppState, action: Action) -> AppState:
    """Apply ``action`` to ``state`` and return the resulting snapshot."""

    if isinstance(action, ExpenseAdded):
        return _add_expense(state, action)
    if isinstance(action, BudgetsLoaded):
        if action.budgets is None:
            return replace(state, loaded=True)
        return replace(state, budgets=tuple(action.budgets), loaded=True, changed_since_load=False)
    if isinstance(action, PersistenceArmed):
        return replace(state, persistence_armed=True)
    if isinstance(action, CycleStarted):
        return AppState(
            cycle=action.cycle,
            contributors=state.contributors,
            budgets=tuple(action.budgets),
        )
    raise TypeError(f"Unsupported action: {action!r}")
