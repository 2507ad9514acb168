"""Mini README: Derived spending metrics for a billing cycle.

Structure:
    * BudgetSummary - spent/remaining/percent for one budget.
    * ContributorSummary - a contributor's share of the total spend.
    * Metrics - the overview shown on the dashboard and stored with each save.
    * aggregate - compute ``Metrics`` from budgets, contributors and a cycle.

Everything here is a pure function of its inputs. Percentages are kept
uncapped; ``progress_width`` carries the capped value used for bars. Daily
figures whose day count is zero or negative come back as ``None`` instead of
an infinite or NaN value.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..logging_utils import get_logger
from .cycle import BillingCycle, Moment, as_date
from .models import Budget, Contributor, Expense

LOGGER = get_logger(__name__)

DEFAULT_RENT_BUDGET_ID = "4"
WARNING_PERCENT = 50.0
CRITICAL_PERCENT = 80.0


@dataclass(frozen=True, slots=True)
class BudgetSummary:
    """Derived figures for a single budget."""

    budget_id: str
    name: str
    monthly_limit: float
    spent: float
    remaining: float
    percent: float

    @property
    def progress_width(self) -> float:
        return min(self.percent, 100.0)

    @property
    def status(self) -> str:
        """Colour band used by the dashboard progress bars."""

        if self.percent < WARNING_PERCENT:
            return "healthy"
        if self.percent < CRITICAL_PERCENT:
            return "warning"
        return "critical"

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.budget_id,
            "name": self.name,
            "monthlyLimit": self.monthly_limit,
            "spent": self.spent,
            "remaining": self.remaining,
            "percent": self.percent,
            "status": self.status,
        }


@dataclass(frozen=True, slots=True)
class ContributorSummary:
    contributor_id: str
    name: str
    total: float
    percent: float

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.contributor_id,
            "name": self.name,
            "total": self.total,
            "percent": self.percent,
        }


@dataclass(frozen=True, slots=True)
class Metrics:
    """Overview of a cycle's spending."""

    cycle: BillingCycle
    budgets: Tuple[BudgetSummary, ...]
    contributors: Tuple[ContributorSummary, ...]
    total_monthly_limit: float
    total_spent: float
    total_remaining: float
    total_spent_without_rent: float
    overall_percent: float
    days_passed: int
    days_left_in_cycle: int
    expense_days: int
    spending_rate: Optional[float]
    safe_to_spend_per_day: Optional[float]

    @property
    def no_expense_days(self) -> int:
        return max(self.days_passed - self.expense_days, 0)

    @property
    def no_expense_days_ratio(self) -> str:
        return f"{self.expense_days}/{self.days_passed}"

    @property
    def overall_progress_width(self) -> float:
        return min(self.overall_percent, 100.0)

    def budget(self, budget_id: str) -> BudgetSummary:
        for summary in self.budgets:
            if summary.budget_id == budget_id:
                return summary
        raise KeyError(f"Budget {budget_id} not found")

    def as_dict(self) -> Dict[str, object]:
        """Export the overview document stored alongside each cycle."""

        return {
            "cycleStart": self.cycle.start.isoformat(),
            "cycleEnd": self.cycle.end.isoformat(),
            "totalMonthlyLimit": self.total_monthly_limit,
            "totalSpent": self.total_spent,
            "totalRemaining": self.total_remaining,
            "totalSpentWithoutRent": self.total_spent_without_rent,
            "overallPercent": self.overall_percent,
            "daysPassed": self.days_passed,
            "daysLeftInCycle": self.days_left_in_cycle,
            "expenseDays": self.expense_days,
            "noExpenseDays": self.no_expense_days,
            "noExpenseDaysRatio": self.no_expense_days_ratio,
            "spendingRate": self.spending_rate,
            "safeToSpendPerDay": self.safe_to_spend_per_day,
            "budgets": [summary.as_dict() for summary in self.budgets],
            "contributors": [summary.as_dict() for summary in self.contributors],
        }


def _percent(part: float, whole: float) -> float:
    if whole == 0:
        return 0.0
    return part / whole * 100.0


def _per_day(amount: float, days: int) -> Optional[float]:
    if days <= 0:
        return None
    return amount / days


def _local_date(moment: datetime, reference: Moment) -> date:
    """Calendar date of ``moment`` in the timezone of ``reference``."""

    if moment.tzinfo is not None:
        reference_tz = reference.tzinfo if isinstance(reference, datetime) else None
        moment = moment.astimezone(reference_tz)
    return moment.date()


def count_days_passed(cycle_start: date, today: date) -> int:
    """Days from the day after the cycle start up to and including tomorrow."""

    tomorrow = today + timedelta(days=1)
    return max((tomorrow - cycle_start).days, 0)


def counted_expenses(
    budget: Budget,
    cycle: BillingCycle,
    now: Moment,
    *,
    restrict_to_cycle: bool = False,
) -> List[Expense]:
    """Expenses that contribute to a budget's spend."""

    if not restrict_to_cycle:
        return list(budget.expenses)
    return [
        expense for expense in budget.expenses if _local_date(expense.spent_at, now) >= cycle.start
    ]


def summarise_budget(budget: Budget, expenses: Iterable[Expense]) -> BudgetSummary:
    spent = sum(expense.amount for expense in expenses)
    return BudgetSummary(
        budget_id=budget.budget_id,
        name=budget.name,
        monthly_limit=budget.monthly_limit,
        spent=spent,
        remaining=budget.monthly_limit - spent,
        percent=_percent(spent, budget.monthly_limit),
    )


def aggregate(
    budgets: Sequence[Budget],
    contributors: Sequence[Contributor],
    cycle: BillingCycle,
    now: Moment,
    *,
    rent_budget_id: str = DEFAULT_RENT_BUDGET_ID,
    restrict_to_cycle: bool = False,
) -> Metrics:
    """Compute the cycle overview for the given snapshot."""

    today = as_date(now)
    summaries: List[BudgetSummary] = []
    contributor_totals: Dict[str, float] = {c.contributor_id: 0.0 for c in contributors}
    expense_dates: Set[date] = set()
    orphaned = 0

    for budget in budgets:
        expenses = counted_expenses(budget, cycle, now, restrict_to_cycle=restrict_to_cycle)
        summaries.append(summarise_budget(budget, expenses))
        for expense in expenses:
            expense_dates.add(_local_date(expense.spent_at, now))
            if expense.contributor_id in contributor_totals:
                contributor_totals[expense.contributor_id] += expense.amount
            else:
                orphaned += 1

    if orphaned:
        LOGGER.warning("%s expenses reference unknown contributors", orphaned)

    total_monthly_limit = sum(summary.monthly_limit for summary in summaries)
    total_spent = sum(summary.spent for summary in summaries)
    total_remaining = total_monthly_limit - total_spent
    total_spent_without_rent = sum(
        summary.spent for summary in summaries if summary.budget_id != rent_budget_id
    )
    days_passed = count_days_passed(cycle.start, today)
    days_left = (cycle.end - today).days

    contributor_summaries = tuple(
        ContributorSummary(
            contributor_id=contributor.contributor_id,
            name=contributor.name,
            total=contributor_totals[contributor.contributor_id],
            percent=_percent(contributor_totals[contributor.contributor_id], total_spent),
        )
        for contributor in contributors
    )

    metrics = Metrics(
        cycle=cycle,
        budgets=tuple(summaries),
        contributors=contributor_summaries,
        total_monthly_limit=total_monthly_limit,
        total_spent=total_spent,
        total_remaining=total_remaining,
        total_spent_without_rent=total_spent_without_rent,
        overall_percent=_percent(total_spent, total_monthly_limit),
        days_passed=days_passed,
        days_left_in_cycle=days_left,
        expense_days=len(expense_dates),
        spending_rate=_per_day(total_spent_without_rent, days_passed),
        safe_to_spend_per_day=_per_day(total_remaining, days_left),
    )
    LOGGER.debug(
        "Aggregated cycle %s -> spent: %.2f remaining: %.2f days_passed: %s days_left: %s",
        cycle.key,
        total_spent,
        total_remaining,
        days_passed,
        days_left,
    )
    return metrics
