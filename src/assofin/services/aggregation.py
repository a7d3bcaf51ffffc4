"""Aggregation engine: totals, averages, utilisation and groupings.

Every function is a pure computation over repository rows. Amounts stay in
integer cents; only rates are floats (percentages rounded to 2 decimals).
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from ..domain.repositories.ledger import LedgerFilter, LedgerRepository
from ..errors import ValidationError
from ..models import Budget, Expense, MemberSubscription, Revenue
from ..models._columns import REVENUE_TYPES
from ..money import average_cents, percentage, sum_cents
from ..params import check_year
from ..periods import Period, window_for
from .subscriptions import ACTIVE, EXPIRED, classify

DEFAULT_EXPIRING_WINDOW_DAYS = 30
DEFAULT_TOP_DONORS_LIMIT = 5


@dataclass(slots=True)
class BudgetStats:
    total_allocated: int
    total_spent: int
    count: int
    balance: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(slots=True)
class ExpenseStats:
    total: int
    average: int
    count: int
    categories_count: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(slots=True)
class KPIs:
    total_budget: int
    total_expenses: int
    balance: int
    utilization_rate: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(slots=True)
class TypeCount:
    type: str
    count: int
    total: int


@dataclass(slots=True)
class Donor:
    source_name: str
    total: int
    count: int


@dataclass(slots=True)
class RevenueStats:
    total_amount: int
    count: int
    count_by_type: list[TypeCount] = field(default_factory=list)
    top_donors: list[Donor] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(slots=True)
class SubscriptionStats:
    total_amount: int
    count: int
    active_members: int
    expiring_members_count: int
    renewal_rate: float

    def to_dict(self) -> dict:
        return asdict(self)


def _criteria(period: Optional[Period], year: Optional[int], **extra) -> LedgerFilter:
    window = window_for(period, year)
    if window is not None:
        check_year(window.year)
    return LedgerFilter(period=window, **extra)


# ----------------------------------------------------------------------
# Pure reducers (shared with reports and dashboard)
# ----------------------------------------------------------------------
def summarize_budgets(budgets: Iterable[Budget], linked_expenses: Iterable[Expense]) -> BudgetStats:
    budgets = list(budgets)
    budget_ids = {b.id for b in budgets}
    total_allocated = sum_cents(b.amount for b in budgets)
    total_spent = sum_cents(e.amount for e in linked_expenses if e.budget_id in budget_ids)
    return BudgetStats(
        total_allocated=total_allocated,
        total_spent=total_spent,
        count=len(budgets),
        balance=total_allocated - total_spent,
    )


def summarize_expenses(expenses: Iterable[Expense]) -> ExpenseStats:
    expenses = list(expenses)
    total = sum_cents(e.amount for e in expenses)
    return ExpenseStats(
        total=total,
        average=average_cents(total, len(expenses)),
        count=len(expenses),
        categories_count=len({e.category_id for e in expenses}),
    )


def summarize_revenues(revenues: Iterable[Revenue], *, top_limit: int) -> RevenueStats:
    revenues = list(revenues)
    by_type: dict[str, TypeCount] = {}
    donors: "OrderedDict[str, Donor]" = OrderedDict()
    for revenue in revenues:
        bucket = by_type.setdefault(revenue.revenue_type, TypeCount(revenue.revenue_type, 0, 0))
        bucket.count += 1
        bucket.total += revenue.amount
        donor = donors.setdefault(revenue.source_name, Donor(revenue.source_name, 0, 0))
        donor.total += revenue.amount
        donor.count += 1

    ordered_types = [by_type[t] for t in REVENUE_TYPES if t in by_type]
    ordered_types += [v for k, v in by_type.items() if k not in REVENUE_TYPES]
    # sorted() is stable, so equal totals keep first-occurrence order
    top_donors = sorted(donors.values(), key=lambda d: d.total, reverse=True)[:top_limit]
    return RevenueStats(
        total_amount=sum_cents(r.amount for r in revenues),
        count=len(revenues),
        count_by_type=ordered_types,
        top_donors=top_donors,
    )


def summarize_subscriptions(
    subscriptions: Iterable[MemberSubscription],
    *,
    today: date,
    expiring_window_days: int = DEFAULT_EXPIRING_WINDOW_DAYS,
) -> SubscriptionStats:
    subscriptions = list(subscriptions)
    horizon = today + timedelta(days=expiring_window_days)
    active_emails: set[str] = set()
    expiring = 0
    renewed = 0
    expired_not_renewed = 0
    for sub in subscriptions:
        status = classify(sub, today)
        if sub.renewal_count > 0:
            renewed += 1
        if status == ACTIVE:
            active_emails.add(sub.member_email)
            if sub.end_date <= horizon:
                expiring += 1
        elif status == EXPIRED and sub.renewal_count == 0:
            expired_not_renewed += 1

    return SubscriptionStats(
        total_amount=sum_cents(s.amount for s in subscriptions),
        count=len(subscriptions),
        active_members=len(active_emails),
        expiring_members_count=expiring,
        renewal_rate=percentage(renewed, renewed + expired_not_renewed),
    )


# ----------------------------------------------------------------------
# Repository-backed operations
# ----------------------------------------------------------------------
def budget_stats(
    *, repository: LedgerRepository, period: Optional[Period] = None, year: Optional[int] = None
) -> BudgetStats:
    """Allocated vs spent for budgets whose own period lies in the window."""

    budgets = repository.list_budgets(_criteria(period, year))
    budget_ids = [b.id for b in budgets if b.id is not None]
    linked = repository.list_expenses(LedgerFilter(budget_ids=budget_ids))
    return summarize_budgets(budgets, linked)


def expense_stats(
    *,
    repository: LedgerRepository,
    period: Optional[Period] = None,
    year: Optional[int] = None,
    category_id: Optional[int] = None,
) -> ExpenseStats:
    expenses = repository.list_expenses(_criteria(period, year, category_id=category_id))
    return summarize_expenses(expenses)


def extended_kpis(
    *, repository: LedgerRepository, period: Optional[Period] = None, year: Optional[int] = None
) -> KPIs:
    """Budget total vs expenses dated in the window; utilisation 0 without a budget."""

    total_budget = budget_stats(repository=repository, period=period, year=year).total_allocated
    total_expenses = expense_stats(repository=repository, period=period, year=year).total
    return KPIs(
        total_budget=total_budget,
        total_expenses=total_expenses,
        balance=total_budget - total_expenses,
        utilization_rate=percentage(total_expenses, total_budget),
    )


def revenue_stats(
    *,
    repository: LedgerRepository,
    year: Optional[int] = None,
    period: Optional[Period] = None,
    limit: Optional[int] = None,
) -> RevenueStats:
    """Totals by revenue type and the ``limit`` largest donors (default 5)."""

    if limit is None:
        limit = DEFAULT_TOP_DONORS_LIMIT
    elif isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError("limit must be a positive integer", field="limit")
    revenues = repository.list_revenues(_criteria(period, year))
    return summarize_revenues(revenues, top_limit=limit)


def subscription_stats(
    *,
    repository: LedgerRepository,
    year: Optional[int] = None,
    period: Optional[Period] = None,
    today: Optional[date] = None,
    expiring_window_days: int = DEFAULT_EXPIRING_WINDOW_DAYS,
) -> SubscriptionStats:
    subscriptions = repository.list_subscriptions(_criteria(period, year))
    return summarize_subscriptions(
        subscriptions,
        today=today or date.today(),
        expiring_window_days=expiring_window_days,
    )


def expenses_by_category(
    *, repository: LedgerRepository, period: Optional[Period] = None, year: Optional[int] = None
) -> list[dict[str, object]]:
    """Roll up expense totals by category, largest first."""

    expenses = repository.list_expenses(_criteria(period, year))
    names = {c.id: c.name for c in repository.list_categories()}
    totals: dict[int, list[int]] = {}
    for expense in expenses:
        bucket = totals.setdefault(expense.category_id, [0, 0])
        bucket[0] += expense.amount
        bucket[1] += 1

    breakdown = [
        {
            "category_id": cat_id,
            "name": names.get(cat_id, "Uncategorized"),
            "total": total,
            "count": count,
        }
        for cat_id, (total, count) in totals.items()
    ]
    breakdown.sort(key=lambda entry: entry["total"], reverse=True)
    return breakdown


def budgets_by_category(
    *, repository: LedgerRepository, period: Optional[Period] = None, year: Optional[int] = None
) -> list[dict[str, object]]:
    """Planned vs spent per category, with each category's utilisation rate."""

    budgets = repository.list_budgets(_criteria(period, year))
    linked = repository.list_expenses(
        LedgerFilter(budget_ids=[b.id for b in budgets if b.id is not None])
    )
    spent_by_budget: dict[int, int] = {}
    for expense in linked:
        spent_by_budget[expense.budget_id] = spent_by_budget.get(expense.budget_id, 0) + expense.amount

    names = {c.id: c.name for c in repository.list_categories()}
    rows: dict[int, dict[str, object]] = {}
    for budget in budgets:
        row = rows.setdefault(
            budget.category_id,
            {"category_id": budget.category_id, "name": names.get(budget.category_id, "Uncategorized"),
             "allocated": 0, "spent": 0},
        )
        row["allocated"] += budget.amount
        row["spent"] += spent_by_budget.get(budget.id, 0)

    result = []
    for cat_id in sorted(rows):
        row = rows[cat_id]
        row["balance"] = row["allocated"] - row["spent"]
        row["utilization_rate"] = percentage(row["spent"], row["allocated"])
        result.append(row)
    return result


def monthly_breakdown(*, repository: LedgerRepository, year: int) -> list[dict[str, object]]:
    """Income (revenues + subscriptions), expenses and net for each month of ``year``."""

    window = Period.for_year(check_year(year))
    months = [{"month": m, "income": 0, "expenses": 0, "net": 0} for m in range(1, 13)]
    for revenue in repository.list_revenues(LedgerFilter(period=window)):
        months[revenue.received_date.month - 1]["income"] += revenue.amount
    for sub in repository.list_subscriptions(LedgerFilter(period=window)):
        months[sub.start_date.month - 1]["income"] += sub.amount
    for expense in repository.list_expenses(LedgerFilter(period=window)):
        months[expense.expense_date.month - 1]["expenses"] += expense.amount
    for row in months:
        row["net"] = row["income"] - row["expenses"]
    return months
