"""Mini README: Budget, expense and contributor records.

Structure:
    * Contributor - one of the people whose spending is compared.
    * Expense - immutable spending entry attributed to a contributor.
    * Budget - spending category with a monthly limit and its expenses.
    * default_budgets / default_contributors - the seeded starting set.

Records are frozen so state transitions always build new values. ``as_dict``
and ``from_dict`` speak the camelCase format stored by the remote record
store (``monthlyLimit``, ``contributorId``) with ISO-8601 expense dates.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from dateutil.parser import isoparse


@dataclass(frozen=True, slots=True)
class Contributor:
    """Person credited with expenses."""

    contributor_id: str
    name: str

    def as_dict(self) -> Dict[str, str]:
        return {"id": self.contributor_id, "name": self.name}


@dataclass(frozen=True, slots=True)
class Expense:
    """Single amount spent against a budget."""

    expense_id: str
    amount: float
    spent_at: datetime
    contributor_id: str
    description: str = ""

    def as_dict(self) -> Dict[str, object]:
        """Export the expense using the stored record format."""

        return {
            "id": self.expense_id,
            "amount": self.amount,
            "date": format_timestamp(self.spent_at),
            "contributorId": self.contributor_id,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Expense":
        """Build an expense from a stored record, validating required keys."""

        try:
            amount = float(payload["amount"])
            return cls(
                expense_id=str(payload["id"]),
                amount=amount,
                spent_at=parse_timestamp(payload["date"]),
                contributor_id=str(payload["contributorId"]),
                description=str(payload.get("description") or ""),
            )
        except KeyError as error:
            raise ValueError(f"Expense record is missing field {error}") from error
        except (TypeError, AttributeError) as error:
            raise ValueError(f"Expense record is malformed: {payload!r}") from error


@dataclass(frozen=True, slots=True)
class Budget:
    """Spending category owning an append-only list of expenses."""

    budget_id: str
    name: str
    monthly_limit: float
    description: str = ""
    expenses: Tuple[Expense, ...] = field(default_factory=tuple)

    def with_expense(self, expense: Expense) -> "Budget":
        """Return a copy with ``expense`` appended."""

        return replace(self, expenses=self.expenses + (expense,))

    def as_dict(self) -> Dict[str, object]:
        return {
            "id": self.budget_id,
            "name": self.name,
            "description": self.description,
            "monthlyLimit": self.monthly_limit,
            "expenses": [expense.as_dict() for expense in self.expenses],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Budget":
        """Build a budget and its expenses from a stored record."""

        try:
            expenses = tuple(Expense.from_dict(entry) for entry in payload.get("expenses") or [])
            return cls(
                budget_id=str(payload["id"]),
                name=str(payload["name"]),
                monthly_limit=float(payload["monthlyLimit"]),
                description=str(payload.get("description") or ""),
                expenses=expenses,
            )
        except KeyError as error:
            raise ValueError(f"Budget record is missing field {error}") from error
        except (TypeError, AttributeError) as error:
            raise ValueError(f"Budget record is malformed: {payload!r}") from error


def parse_timestamp(value: object) -> datetime:
    """Parse ISO strings, datetimes or dates into a datetime."""

    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        try:
            return isoparse(value)
        except ValueError as error:
            raise ValueError(f"Invalid expense timestamp: {value!r}") from error
    raise ValueError("Timestamps must be ISO strings or date/datetime instances.")


def format_timestamp(value: datetime) -> str:
    """Render a timestamp the way browsers serialise dates (UTC, ``Z`` suffix)."""

    if value.tzinfo is None:
        return value.isoformat(timespec="milliseconds")
    utc_value = value.astimezone(timezone.utc)
    return utc_value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


_DEFAULT_BUDGETS: Tuple[Tuple[str, str, float, str], ...] = (
    ("1", "Fancy Lunch/Dinner", 6000.0, "Restaurants and celebrations"),
    ("2", "Casual Lunch/Dinner", 4000.0, "Everyday eating out and takeaway"),
    ("3", "Clothing/Misc", 10000.0, "Clothes, gifts and one-off purchases"),
    ("4", "Rent", 35000.0, "Monthly rent"),
    ("5", "Utilities", 3300.0, "Electricity, water, internet and phone"),
    ("6", "Cab", 2000.0, "Taxis and ride hailing"),
    ("7", "Grocery", 16000.0, "Groceries and household supplies"),
    ("8", "Supplements", 1500.0, "Vitamins and protein"),
)

_DEFAULT_CONTRIBUTORS: Tuple[Tuple[str, str], ...] = (
    ("1", "Rahul"),
    ("2", "Anu"),
)


def default_budgets() -> Tuple[Budget, ...]:
    """Return the seeded budgets with no expenses."""

    return tuple(
        Budget(budget_id=budget_id, name=name, monthly_limit=limit, description=description)
        for budget_id, name, limit, description in _DEFAULT_BUDGETS
    )


def default_contributors() -> Tuple[Contributor, ...]:
    return tuple(Contributor(contributor_id=cid, name=name) for cid, name in _DEFAULT_CONTRIBUTORS)


def find_budget(budgets: Tuple[Budget, ...], budget_id: str) -> Optional[Budget]:
    for budget in budgets:
        if budget.budget_id == budget_id:
            return budget
    return None
