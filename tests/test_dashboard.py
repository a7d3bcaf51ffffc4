from __future__ import annotations

from datetime import date

import pytest

from assofin.errors import ValidationError
from assofin.models import Expense, MemberSubscription, Revenue
from assofin.services import dashboard


class _FakeLedger:
    """Just enough of the repository for the dashboard."""

    def __init__(self, subscriptions=(), revenues=(), expenses=()):
        self._subscriptions = list(subscriptions)
        self._revenues = list(revenues)
        self._expenses = list(expenses)

    def list_subscriptions(self, criteria):
        return [s for s in self._subscriptions if criteria.period.contains(s.start_date)]

    def list_revenues(self, criteria):
        return [r for r in self._revenues if criteria.period.contains(r.received_date)]

    def list_expenses(self, criteria):
        return [e for e in self._expenses if criteria.period.contains(e.expense_date)]


def _sub(email: str, start: date, end: date, amount: int = 1000) -> MemberSubscription:
    return MemberSubscription(
        member_email=email,
        type_label="Standard",
        amount=amount,
        duration="yearly",
        payment_date=start,
        start_date=start,
        end_date=end,
        created_by="tester",
    )


def _revenue(kind: str, amount: int, received: date) -> Revenue:
    return Revenue(
        revenue_type=kind, source_name="x", amount=amount, received_date=received, created_by="tester"
    )


def _expense(amount: int, spent: date) -> Expense:
    return Expense(category_id=1, description="x", amount=amount, expense_date=spent, created_by="tester")


def test_overview_blends_sources_and_trends_up():
    ledger = _FakeLedger(
        subscriptions=[
            _sub("a@example.org", date(2026, 1, 5), date(2027, 1, 5)),
            _sub("a@example.org", date(2026, 2, 5), date(2027, 2, 5)),
            _sub("b@example.org", date(2026, 1, 5), date(2026, 2, 5)),
        ],
        revenues=[
            _revenue("donation", 500, date(2026, 3, 1)),
            _revenue("grant", 2000, date(2026, 4, 1)),
            _revenue("sponsorship", 700, date(2026, 5, 1)),
            _revenue("other", 100, date(2026, 5, 2)),
            _revenue("donation", 99999, date(2025, 5, 2)),
        ],
        expenses=[_expense(1300, date(2026, 6, 1)), _expense(200, date(2026, 6, 2))],
    )

    summary = dashboard.overview(repository=ledger, year=2026, today=date(2026, 6, 30))

    assert summary["subscriptions"] == {"total": 3000, "active_members": 1}
    assert summary["revenues"] == {
        "total": 3300,
        "by_type": {"donations": 500, "grants": 2000, "sponsorships": 700},
    }
    assert summary["expenses"] == {"total": 1500, "count": 2}
    assert summary["treasury"]["balance"] == 3000 + 3300 - 1500
    # 2025 only had the large donation
    assert summary["treasury"]["trend"] == "down"


def test_overview_trend_up_and_stable():
    growing = _FakeLedger(revenues=[_revenue("donation", 10, date(2026, 1, 1))])
    assert dashboard.overview(repository=growing, year=2026, today=date(2026, 6, 1))["treasury"]["trend"] == "up"

    empty = _FakeLedger()
    summary = dashboard.overview(repository=empty, year=2026, today=date(2026, 6, 1))
    assert summary["treasury"] == {"balance": 0, "trend": "stable"}


def test_overview_defaults_to_current_year(repository, revenue_factory, expense_factory):
    revenue_factory(5000, received_date=date(2026, 3, 1))
    expense_factory(1000, expense_date=date(2025, 3, 1))

    summary = dashboard.overview(repository=repository, today=date(2026, 10, 1))

    assert summary["year"] == 2026
    assert summary["treasury"] == {"balance": 5000, "trend": "up"}


@pytest.mark.parametrize("year", [1999, 2101])
def test_overview_range_checks_the_year(year):
    with pytest.raises(ValidationError) as excinfo:
        dashboard.overview(repository=_FakeLedger(), year=year, today=date(2026, 6, 1))
    assert excinfo.value.field == "year"
