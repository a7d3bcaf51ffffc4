"""Period comparison and structured period reports."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from ..domain.repositories.ledger import LedgerFilter, LedgerRepository
from ..money import percentage, sum_cents
from ..params import check_year, parse_period_number, parse_report_kind
from ..periods import MONTH, QUARTER, YEAR, Period
from .aggregation import (
    DEFAULT_EXPIRING_WINDOW_DAYS,
    DEFAULT_TOP_DONORS_LIMIT,
    budgets_by_category,
    expenses_by_category,
    summarize_budgets,
    summarize_expenses,
    summarize_revenues,
    summarize_subscriptions,
)

_REPORT_PERIOD_KIND = {"monthly": MONTH, "quarterly": QUARTER, "yearly": YEAR}


@dataclass(slots=True)
class PeriodSnapshot:
    """Headline figures of one period; ``total`` is the expense total."""

    period: Period
    total: int
    budget: int
    revenues: int
    subscriptions: int
    balance: int
    utilization_rate: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period.to_dict(),
            "total": self.total,
            "budget": self.budget,
            "revenues": self.revenues,
            "subscriptions": self.subscriptions,
            "balance": self.balance,
            "utilization_rate": self.utilization_rate,
        }


def _change(a: int, b: int, *, signed_base: bool = False) -> dict[str, Any]:
    base = abs(a) if signed_base else a
    return {"a": a, "b": b, "change": b - a, "change_percent": percentage(b - a, base)}


@dataclass(slots=True)
class Comparison:
    a: PeriodSnapshot
    b: PeriodSnapshot
    delta_absolute: int
    delta_percent: float

    def to_dict(self) -> dict[str, Any]:
        income_a = self.a.revenues + self.a.subscriptions
        income_b = self.b.revenues + self.b.subscriptions
        return {
            "a": self.a.to_dict(),
            "b": self.b.to_dict(),
            "delta_absolute": self.delta_absolute,
            "delta_percent": self.delta_percent,
            "revenues": _change(income_a, income_b),
            "expenses": _change(self.a.total, self.b.total),
            "balance": _change(self.a.balance, self.b.balance, signed_base=True),
        }


def period_snapshot(*, repository: LedgerRepository, period: Period) -> PeriodSnapshot:
    criteria = LedgerFilter(period=period)
    budgets = repository.list_budgets(criteria)
    budget = sum_cents(b.amount for b in budgets)
    total = sum_cents(e.amount for e in repository.list_expenses(criteria))
    revenues = sum_cents(r.amount for r in repository.list_revenues(criteria))
    subscriptions = sum_cents(s.amount for s in repository.list_subscriptions(criteria))
    return PeriodSnapshot(
        period=period,
        total=total,
        budget=budget,
        revenues=revenues,
        subscriptions=subscriptions,
        balance=revenues + subscriptions - total,
        utilization_rate=percentage(total, budget),
    )


def compare(*, repository: LedgerRepository, a: Period, b: Period) -> Comparison:
    """Compare expense totals of two periods; 0 % change when ``a`` spent nothing."""

    snap_a = period_snapshot(repository=repository, period=a)
    snap_b = period_snapshot(repository=repository, period=b)
    delta = snap_b.total - snap_a.total
    return Comparison(
        a=snap_a,
        b=snap_b,
        delta_absolute=delta,
        delta_percent=percentage(delta, snap_a.total),
    )


def report_period(kind: Any, period_number: Any, year: int) -> Period:
    """Validate a report kind/number pair and turn it into a period."""

    check_year(year)
    report_kind = parse_report_kind(kind)
    number = parse_period_number(report_kind, period_number)
    return Period(_REPORT_PERIOD_KIND[report_kind], year, number)


def build_report(
    *,
    repository: LedgerRepository,
    kind: Any,
    period_number: Any,
    year: int,
    today: Optional[date] = None,
    top_donors_limit: int = DEFAULT_TOP_DONORS_LIMIT,
    expiring_window_days: int = DEFAULT_EXPIRING_WINDOW_DAYS,
) -> dict[str, Any]:
    """Compose every engine into one snapshot of a month, quarter or year."""

    period = report_period(kind, period_number, year)
    criteria = LedgerFilter(period=period)

    budgets = repository.list_budgets(criteria)
    linked = repository.list_expenses(
        LedgerFilter(budget_ids=[b.id for b in budgets if b.id is not None])
    )
    budget_stats = summarize_budgets(budgets, linked)
    expense_stats = summarize_expenses(repository.list_expenses(criteria))
    revenue_stats = summarize_revenues(repository.list_revenues(criteria), top_limit=top_donors_limit)
    subscription_stats = summarize_subscriptions(
        repository.list_subscriptions(criteria),
        today=today or date.today(),
        expiring_window_days=expiring_window_days,
    )

    total_budget = budget_stats.total_allocated
    kpis = {
        "total_budget": total_budget,
        "total_expenses": expense_stats.total,
        "balance": total_budget - expense_stats.total,
        "utilization_rate": percentage(expense_stats.total, total_budget),
        "net_cash_flow": revenue_stats.total_amount
        + subscription_stats.total_amount
        - expense_stats.total,
    }

    upcoming = period.next()
    next_forecasts = repository.list_forecasts(LedgerFilter(period=upcoming))

    return {
        "type": parse_report_kind(kind),
        "period": period.to_dict(),
        "budgets": {
            **budget_stats.to_dict(),
            "by_category": budgets_by_category(repository=repository, period=period),
        },
        "expenses": expense_stats.to_dict(),
        "expenses_by_category": expenses_by_category(repository=repository, period=period),
        "revenues": revenue_stats.to_dict(),
        "subscriptions": subscription_stats.to_dict(),
        "kpis": kpis,
        "forecasts": {
            "next_period": upcoming.to_dict(),
            "total": sum_cents(f.forecasted_amount for f in next_forecasts),
            "count": len(next_forecasts),
        },
    }
