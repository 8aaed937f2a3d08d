"""
Accounting windows for budgets.

Every window is half-open: ``[start, end)``. ``end`` is ``None`` for an
open-ended CUSTOM budget.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from app.core.errors import InvalidPeriod
from app.models.entities import BudgetPeriodEnum


@dataclass(frozen=True)
class Window:
    start: date
    end: date | None

    def contains(self, day: date) -> bool:
        return self.start <= day and (self.end is None or day < self.end)


def _calendar_window(start_date: date, as_of: date, step: relativedelta, units_between: int) -> Window:
    # Offsets are always taken from the original anchor so a clamped month (Jan 31 -> Feb 29)
    # never drifts the following windows (Mar 31 stays Mar 31).
    k = max(units_between, 0)
    if start_date + step * k > as_of:
        k -= 1
    k = max(k, 0)
    return Window(start=start_date + step * k, end=start_date + step * (k + 1))


def current_window(
    period: BudgetPeriodEnum,
    start_date: date,
    as_of: date,
    end_date: date | None = None,
) -> Window:
    """
    Return the window of ``period`` anchored at ``start_date`` that applies on ``as_of``.

    A reference date before the anchor yields the first window. CUSTOM budgets never
    roll: their window is exactly ``[start_date, end_date)``.
    """
    period = BudgetPeriodEnum(period)

    if period == BudgetPeriodEnum.custom:
        if end_date is not None and end_date < start_date:
            raise InvalidPeriod("custom budget end_date is before start_date")
        return Window(start=start_date, end=end_date)

    reference = max(as_of, start_date)

    if period == BudgetPeriodEnum.daily:
        return Window(start=reference, end=reference + timedelta(days=1))

    if period == BudgetPeriodEnum.weekly:
        weeks = (reference - start_date).days // 7
        window_start = start_date + timedelta(weeks=weeks)
        return Window(start=window_start, end=window_start + timedelta(weeks=1))

    if period == BudgetPeriodEnum.monthly:
        months = (reference.year - start_date.year) * 12 + (reference.month - start_date.month)
        return _calendar_window(start_date, reference, relativedelta(months=1), months)

    years = reference.year - start_date.year
    return _calendar_window(start_date, reference, relativedelta(years=1), years)
