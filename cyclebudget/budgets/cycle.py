"""Mini README: Billing cycle resolution.

Structure:
    * BillingCycle - start/end boundaries plus the storage key.
    * resolve_cycle - locate the cycle containing a given moment.
    * format_cycle_key - zero-padded ``DD/MM/YYYY`` key for a cycle start.

A cycle begins on a fixed day of the month (the 25th unless configured
otherwise) and ends exactly one calendar month later. The end date is
exclusive: it is the first day of the next cycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Union

from dateutil.relativedelta import relativedelta

DEFAULT_CYCLE_START_DAY = 25

Moment = Union[date, datetime]


@dataclass(frozen=True, slots=True)
class BillingCycle:
    """Inclusive start and exclusive end of one billing period."""

    start: date
    end: date

    @property
    def key(self) -> str:
        """Identifier used for the remote record of this cycle."""

        return format_cycle_key(self.start)

    def contains(self, day: Moment) -> bool:
        return self.start <= as_date(day) < self.end

    def following(self) -> "BillingCycle":
        return BillingCycle(start=self.end, end=self.end + relativedelta(months=1))


def as_date(moment: Moment) -> date:
    """Truncate datetimes to their calendar date."""

    if isinstance(moment, datetime):
        return moment.date()
    return moment


def format_cycle_key(start: date) -> str:
    return start.strftime("%d/%m/%Y")


def resolve_cycle(now: Moment, start_day: int = DEFAULT_CYCLE_START_DAY) -> BillingCycle:
    """Return the billing cycle that contains ``now``."""

    if not 1 <= start_day <= 28:
        raise ValueError(f"Cycle start day must be between 1 and 28, got {start_day}")

    today = as_date(now)
    start = today.replace(day=start_day)
    if today.day < start_day:
        start -= relativedelta(months=1)
    return BillingCycle(start=start, end=start + relativedelta(months=1))
