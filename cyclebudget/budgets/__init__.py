"""Mini README: Budget arithmetic for cyclebudget.

This package holds the pure parts of the tracker: the records stored for
each cycle (``models``), billing cycle resolution (``cycle``) and the
derived overview metrics (``aggregator``). Nothing here performs I/O, which
keeps the figures easy to reason about and to test.
"""

from .aggregator import BudgetSummary, ContributorSummary, Metrics, aggregate
from .cycle import BillingCycle, format_cycle_key, resolve_cycle
from .models import Budget, Contributor, Expense, default_budgets, default_contributors

__all__ = [
    "BillingCycle",
    "Budget",
    "BudgetSummary",
    "Contributor",
    "ContributorSummary",
    "Expense",
    "Metrics",
    "aggregate",
    "default_budgets",
    "default_contributors",
    "format_cycle_key",
    "resolve_cycle",
]
