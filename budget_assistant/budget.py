"""Spending against limits.

A budget has two levels: each category's ``limit`` and one overall envelope.
:func:`summarize_budget` totals purchases inside a date window for both;
:func:`spending_history` gives the running total behind the history chart.

Purchases with no category, or one missing from the catalog, count
toward the overall total and are reported as ``uncategorized``.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import NamedTuple
from uuid import UUID

from .catalog import CategoryCatalog
from .models import Category, Purchase

DEFAULT_OVERALL_LIMIT = Decimal("2000")


@dataclass(frozen=True, slots=True)
class BudgetEnvelope:
    """The overall spending limit across every category."""

    overall_limit: Decimal = DEFAULT_OVERALL_LIMIT

    def __post_init__(self) -> None:
        if not isinstance(self.overall_limit, Decimal):
            object.__setattr__(self, "overall_limit", Decimal(str(self.overall_limit)))
        if not self.overall_limit.is_finite() or self.overall_limit < 0:
            raise ValueError(f"BudgetEnvelope.overall_limit must be >= 0 (got {self.overall_limit})")


# Look-back windows offered by the history view.
TIME_RANGES: tuple[str, ...] = ("month", "30d", "3m", "6m", "year", "all")

_MONTHS_BACK = {"3m": 3, "6m": 6, "year": 12}


def range_start(time_range: str, today: date) -> date | None:
    """First day inside ``time_range`` ending ``today``; ``None`` for ``"all"``."""

    if time_range == "month":
        return today.replace(day=1)
    if time_range == "30d":
        return today - timedelta(days=30)
    if time_range in _MONTHS_BACK:
        return _months_back(today, _MONTHS_BACK[time_range])
    if time_range == "all":
        return None
    raise ValueError(f"unknown time range {time_range!r}; expected one of {', '.join(TIME_RANGES)}")


def _months_back(day: date, months: int) -> date:
    total = day.year * 12 + (day.month - 1) - months
    year, month = divmod(total, 12)
    month += 1
    # Clamp Mar 31 minus one month to Feb 28/29.
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def month_bounds(day: date) -> tuple[date, date]:
    """Return the first and last day of ``day``'s month."""

    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


class CategorySpend(NamedTuple):
    category: Category
    spent: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.category.limit - self.spent

    @property
    def over_limit(self) -> bool:
        return self.spent > self.category.limit


@dataclass(frozen=True, slots=True)
class BudgetSummary:
    start: date | None
    end: date | None
    categories: list[CategorySpend]
    uncategorized: Decimal
    total_spent: Decimal
    overall_limit: Decimal

    @property
    def remaining(self) -> Decimal:
        return self.overall_limit - self.total_spent

    @property
    def over_limit(self) -> bool:
        return self.total_spent > self.overall_limit

    @property
    def category_limits(self) -> Decimal:
        """Sum of the category limits; may differ from the overall envelope."""

        return sum((c.category.limit for c in self.categories), Decimal("0"))


def _within(purchases: Iterable[Purchase], start: date | None, end: date | None) -> list[Purchase]:
    return [
        p
        for p in purchases
        if (start is None or p.date >= start) and (end is None or p.date <= end)
    ]


def summarize_budget(
    purchases: Iterable[Purchase],
    catalog: CategoryCatalog,
    envelope: BudgetEnvelope | None = None,
    *,
    start: date | None = None,
    end: date | None = None,
) -> BudgetSummary:
    """Total spending per category and overall for ``start <= date <= end``.

    Either bound may be ``None`` (open). Categories are listed in catalog
    order, including those with nothing spent.
    """

    if start is not None and end is not None and start > end:
        raise ValueError(f"start {start} is after end {end}")
    envelope = envelope or BudgetEnvelope()

    spent: dict[UUID, Decimal] = {c.id: Decimal("0") for c in catalog}
    uncategorized = Decimal("0")
    total = Decimal("0")
    for p in _within(purchases, start, end):
        total += p.amount
        if p.category_id in spent:
            spent[p.category_id] += p.amount
        else:
            uncategorized += p.amount

    return BudgetSummary(
        start=start,
        end=end,
        categories=[CategorySpend(c, spent[c.id]) for c in catalog],
        uncategorized=uncategorized,
        total_spent=total,
        overall_limit=envelope.overall_limit,
    )


class HistoryPoint(NamedTuple):
    day: date
    total: Decimal


def spending_history(
    purchases: Iterable[Purchase],
    *,
    category_id: UUID | None = None,
    start: date | None = None,
) -> list[HistoryPoint]:
    """Running total of spending, one point per day that had a purchase.

    With ``category_id`` only that category's purchases count.
    """

    selected = [
        p
        for p in _within(purchases, start, None)
        if category_id is None or p.category_id == category_id
    ]
    selected.sort(key=lambda p: p.date)

    points: list[HistoryPoint] = []
    running = Decimal("0")
    for p in selected:
        running += p.amount
        if points and points[-1].day == p.date:
            points[-1] = HistoryPoint(p.date, running)
        else:
            points.append(HistoryPoint(p.date, running))
    return points


def remaining_history(points: Sequence[HistoryPoint], limit: Decimal) -> list[HistoryPoint]:
    """Turn a running total into what is left of ``limit`` on each day."""

    return [HistoryPoint(pt.day, limit - pt.total) for pt in points]


__all__ = [
    "DEFAULT_OVERALL_LIMIT",
    "BudgetEnvelope",
    "TIME_RANGES",
    "range_start",
    "month_bounds",
    "CategorySpend",
    "BudgetSummary",
    "summarize_budget",
    "HistoryPoint",
    "spending_history",
    "remaining_history",
]
