"""Dashboard overview blending subscriptions, revenues and expenses."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from ..domain.repositories.ledger import LedgerFilter, LedgerRepository
from ..money import sum_cents
from ..params import check_year
from ..periods import Period
from .subscriptions import ACTIVE, classify

UP = "up"
DOWN = "down"
STABLE = "stable"


@dataclass(slots=True)
class _YearFigures:
    subscriptions_total: int
    active_members: int
    revenues_total: int
    revenues_by_type: dict[str, int]
    expenses_total: int
    expenses_count: int

    @property
    def balance(self) -> int:
        return self.subscriptions_total + self.revenues_total - self.expenses_total


def _year_figures(repository: LedgerRepository, year: int, today: date) -> _YearFigures:
    criteria = LedgerFilter(period=Period.for_year(year))
    subscriptions = repository.list_subscriptions(criteria)
    revenues = repository.list_revenues(criteria)
    expenses = repository.list_expenses(criteria)

    by_type = {"donations": 0, "grants": 0, "sponsorships": 0}
    for revenue in revenues:
        key = f"{revenue.revenue_type}s"
        if key in by_type:
            by_type[key] += revenue.amount

    return _YearFigures(
        subscriptions_total=sum_cents(s.amount for s in subscriptions),
        active_members=len({s.member_email for s in subscriptions if classify(s, today) == ACTIVE}),
        revenues_total=sum_cents(r.amount for r in revenues),
        revenues_by_type=by_type,
        expenses_total=sum_cents(e.amount for e in expenses),
        expenses_count=len(expenses),
    )


def overview(
    *, repository: LedgerRepository, year: Optional[int] = None, today: Optional[date] = None
) -> dict[str, Any]:
    """Treasury overview of ``year`` (default: the current year).

    ``trend`` compares the balance with the previous year's balance.
    """

    today = today or date.today()
    year = check_year(today.year if year is None else year)
    current = _year_figures(repository, year, today)
    previous = _year_figures(repository, year - 1, today)

    if current.balance > previous.balance:
        trend = UP
    elif current.balance < previous.balance:
        trend = DOWN
    else:
        trend = STABLE

    return {
        "year": year,
        "subscriptions": {
            "total": current.subscriptions_total,
            "active_members": current.active_members,
        },
        "revenues": {"total": current.revenues_total, "by_type": current.revenues_by_type},
        "expenses": {"total": current.expenses_total, "count": current.expenses_count},
        "treasury": {"balance": current.balance, "trend": trend},
    }
