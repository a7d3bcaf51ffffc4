"""Ledger repository protocol.

The services treat storage as this interface: given filter criteria, return
matching records. Implementations own atomicity of each write and wrap storage
failures in :class:`~assofin.errors.RepositoryError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Collection, Optional, Protocol

from ...models import (
    Budget,
    Expense,
    FinancialCategory,
    Forecast,
    MemberSubscription,
    Revenue,
    SubscriptionType,
)
from ...periods import Period, period_to_date_range


@dataclass(frozen=True)
class LedgerFilter:
    """Criteria shared by every ``list_*`` call.

    ``period``/``year`` select rows by their own period columns (budgets,
    forecasts) or by their date column (expenses, revenues, subscriptions).
    ``start``/``end`` add an explicit half-open date window on the date column.
    """

    period: Optional[Period] = None
    year: Optional[int] = None
    start: Optional[date] = None
    end: Optional[date] = None
    category_id: Optional[int] = None
    status: Optional[str] = None
    budget_ids: Optional[Collection[int]] = None
    member_email: Optional[str] = None
    subscription_type_id: Optional[int] = None
    revenue_type: Optional[str] = None
    category_type: Optional[str] = None
    include_inactive: bool = True

    def window(self) -> Optional[Period]:
        if self.period is not None:
            return self.period
        if self.year is not None:
            return Period.for_year(self.year)
        return None

    def date_bounds(self) -> tuple[Optional[date], Optional[date]]:
        """Return the tightest ``[start, end)`` implied by period/year/start/end."""

        start, end = self.start, self.end
        window = self.window()
        if window is not None:
            w_start, w_end = period_to_date_range(window)
            start = w_start if start is None else max(start, w_start)
            end = w_end if end is None else min(end, w_end)
        return start, end


class LedgerRepository(Protocol):
    """Storage contract for the financial engine."""

    # Reads
    def list_categories(self, criteria: LedgerFilter = LedgerFilter()) -> list[FinancialCategory]:
        """List categories, filtered by ``category_type``/``include_inactive``."""
        ...

    def get_category(self, category_id: int) -> Optional[FinancialCategory]:
        ...

    def category_in_use(self, category_id: int) -> bool:
        """Return True when any budget, expense, forecast or revenue references it."""
        ...

    def list_budgets(self, criteria: LedgerFilter = LedgerFilter()) -> list[Budget]:
        ...

    def get_budget(self, budget_id: int) -> Optional[Budget]:
        ...

    def list_expenses(self, criteria: LedgerFilter = LedgerFilter()) -> list[Expense]:
        ...

    def get_expense(self, expense_id: int) -> Optional[Expense]:
        ...

    def list_revenues(self, criteria: LedgerFilter = LedgerFilter()) -> list[Revenue]:
        ...

    def get_revenue(self, revenue_id: int) -> Optional[Revenue]:
        ...

    def list_forecasts(self, criteria: LedgerFilter = LedgerFilter()) -> list[Forecast]:
        ...

    def get_forecast(self, forecast_id: int) -> Optional[Forecast]:
        ...

    def list_subscriptions(self, criteria: LedgerFilter = LedgerFilter()) -> list[MemberSubscription]:
        ...

    def get_subscription(self, subscription_id: int) -> Optional[MemberSubscription]:
        ...

    def list_subscription_types(self, *, include_inactive: bool = False) -> list[SubscriptionType]:
        ...

    def get_subscription_type(self, type_id: int) -> Optional[SubscriptionType]:
        ...

    def count_subscriptions_by_type(self) -> dict[int, int]:
        """Return ``{subscription_type_id: number of subscriptions}``."""
        ...

    # Writes
    def save_category(self, category: FinancialCategory) -> FinancialCategory:
        ...

    def save_budget(self, budget: Budget) -> Budget:
        ...

    def delete_budget(self, budget_id: int) -> None:
        """Delete a budget and unlink the expenses that drew from it."""
        ...

    def save_expense(self, expense: Expense) -> Expense:
        ...

    def delete_expense(self, expense_id: int) -> None:
        ...

    def save_revenue(self, revenue: Revenue) -> Revenue:
        ...

    def delete_revenue(self, revenue_id: int) -> None:
        ...

    def add_forecast(self, forecast: Forecast) -> Forecast:
        """Insert a forecast; ``ConflictError`` if its category and period are taken."""
        ...

    def save_forecast(self, forecast: Forecast) -> Forecast:
        ...

    def upsert_forecast(self, forecast: Forecast) -> Forecast:
        """Insert or replace the forecast for the same category and period."""
        ...

    def upsert_subscription(
        self, subscription: MemberSubscription, *, expected_version: Optional[int] = None
    ) -> MemberSubscription:
        """Insert a new subscription or update an existing one.

        Updates are a compare-and-swap on ``version``: when ``expected_version``
        no longer matches the stored row a ``ConflictError`` is raised.
        """
        ...

    def delete_subscription(self, subscription_id: int) -> None:
        """Delete a subscription; ``NotFoundError`` when it does not exist."""
        ...

    def save_subscription_type(self, subscription_type: SubscriptionType) -> SubscriptionType:
        ...

    def delete_subscription_type(self, type_id: int, *, active_on: date) -> None:
        """Delete a type and unlink its subscriptions in one transaction.

        Raises ``ConflictError`` when a subscription referencing the type is
        active on ``active_on``.
        """
        ...
