from __future__ import annotations

from datetime import date

import pytest

from assofin.domain.repositories import LedgerFilter
from assofin.errors import ConflictError, NotFoundError, ValidationError
from assofin.periods import Period
from assofin.services.forecasting import (
    create_forecast,
    generate_forecasts,
    list_forecasts,
    update_forecast,
)

Q1 = Period.for_quarter(2026, 1)
Q2 = Period.for_quarter(2026, 2)


def test_forecast_from_completed_prior_quarter(category_factory, expense_factory, repository):
    events = category_factory("events")
    expense_factory(50000, expense_date=date(2026, 1, 20), category_id=events.id)
    expense_factory(30000, expense_date=date(2026, 3, 31), category_id=events.id)

    rows = generate_forecasts(
        repository=repository, target=Q2, created_by="treasurer", today=date(2026, 4, 10)
    )

    assert len(rows) == 1
    forecast = rows[0]
    assert forecast.category_id == events.id
    assert forecast.period_descriptor == Q2
    assert forecast.forecasted_amount == 80000
    assert forecast.confidence == "high"
    assert forecast.based_on == "historical"
    assert forecast.created_by == "treasurer"


def test_prior_period_still_running_gives_medium_confidence(
    category_factory, expense_factory, repository
):
    events = category_factory("events")
    expense_factory(1200, expense_date=date(2026, 2, 1), category_id=events.id)

    rows = generate_forecasts(
        repository=repository, target=Q2, created_by="treasurer", today=date(2026, 3, 15)
    )

    assert rows[0].confidence == "medium"
    assert rows[0].forecasted_amount == 1200


def test_older_activity_only_falls_back_to_estimate(category_factory, expense_factory, repository):
    legacy = category_factory("legacy")
    expense_factory(999, expense_date=date(2025, 6, 1), category_id=legacy.id)

    rows = generate_forecasts(
        repository=repository, target=Q2, created_by="treasurer", today=date(2026, 4, 10)
    )

    assert [(r.forecasted_amount, r.confidence, r.based_on) for r in rows] == [(0, "low", "estimate")]


def test_income_categories_forecast_from_revenues(category_factory, revenue_factory, repository):
    grants = category_factory("grants", category_type="income")
    revenue_factory(4000, received_date=date(2026, 2, 14), category_id=grants.id, revenue_type="grant")
    # Uncategorised revenues are not attributed to any category
    revenue_factory(7000, received_date=date(2026, 2, 15))

    rows = generate_forecasts(
        repository=repository, target=Q2, created_by="treasurer", today=date(2026, 4, 1)
    )

    assert [(r.category_id, r.forecasted_amount) for r in rows] == [(grants.id, 4000)]


def test_activity_in_or_after_target_is_ignored(category_factory, expense_factory, repository):
    future = category_factory("future")
    expense_factory(100, expense_date=date(2026, 4, 2), category_id=future.id)

    rows = generate_forecasts(
        repository=repository, target=Q2, created_by="treasurer", today=date(2026, 4, 10)
    )

    assert rows == []


def test_regeneration_is_idempotent_and_scoped(category_factory, expense_factory, repository):
    events = category_factory("events")
    expense_factory(500, expense_date=date(2026, 1, 5), category_id=events.id)
    expense_factory(700, expense_date=date(2026, 4, 5), category_id=events.id)
    today = date(2026, 7, 2)

    generate_forecasts(repository=repository, target=Q2, created_by="a", today=today)
    q3_first = generate_forecasts(
        repository=repository, target=Period.for_quarter(2026, 3), created_by="a", today=today
    )
    q3_again = generate_forecasts(
        repository=repository, target=Period.for_quarter(2026, 3), created_by="a", today=today
    )

    assert [(r.id, r.forecasted_amount, r.confidence, r.based_on) for r in q3_first] == [
        (r.id, r.forecasted_amount, r.confidence, r.based_on) for r in q3_again
    ]
    assert q3_again[0].forecasted_amount == 700
    q2_rows = list_forecasts(repository=repository, period=Q2)
    assert [r.forecasted_amount for r in q2_rows] == [500]
    assert len(repository.list_forecasts(LedgerFilter(year=2026))) == 2


class _RecordingLedger:
    """Repository wrapper remembering the date bounds of each ledger scan."""

    def __init__(self, inner):
        self._inner = inner
        self.bounds = []

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def list_expenses(self, criteria=LedgerFilter()):
        self.bounds.append(criteria.date_bounds())
        return self._inner.list_expenses(criteria)

    def list_revenues(self, criteria=LedgerFilter()):
        self.bounds.append(criteria.date_bounds())
        return self._inner.list_revenues(criteria)


def test_generation_only_scans_bounded_date_ranges(category_factory, expense_factory, repository):
    events = category_factory("events")
    archived = category_factory("archived")
    expense_factory(500, expense_date=date(2026, 2, 1), category_id=events.id)
    expense_factory(700, expense_date=date(2024, 1, 10), category_id=archived.id)
    ledger = _RecordingLedger(repository)

    rows = generate_forecasts(
        repository=ledger, target=Q2, created_by="treasurer", today=date(2026, 4, 10)
    )

    assert ledger.bounds
    assert all(start is not None and end is not None for start, end in ledger.bounds)
    assert min(start for start, _ in ledger.bounds) == date(2025, 4, 1)
    assert [r.category_id for r in rows] == [events.id]


def test_annual_target_looks_back_over_the_prior_year(category_factory, expense_factory, repository):
    events = category_factory("events")
    expense_factory(900, expense_date=date(2025, 1, 5), category_id=events.id)

    rows = generate_forecasts(
        repository=repository,
        target=Period.for_year(2026),
        created_by="treasurer",
        today=date(2026, 1, 2),
    )

    assert [(r.forecasted_amount, r.confidence) for r in rows] == [(900, "high")]


def test_manual_forecast_is_an_estimate_and_unique_per_period(category_factory, repository):
    events = category_factory("events")

    manual = create_forecast(
        repository=repository,
        category_id=events.id,
        period=Q2,
        forecasted_amount=-2500,
        created_by="treasurer",
        notes="Expected refund",
    )

    assert manual.based_on == "estimate"
    assert manual.confidence == "medium"
    assert manual.forecasted_amount == -2500
    with pytest.raises(ConflictError):
        create_forecast(
            repository=repository,
            category_id=events.id,
            period=Q2,
            forecasted_amount=100,
            created_by="treasurer",
        )
    # Another period for the same category is a separate slot
    create_forecast(
        repository=repository,
        category_id=events.id,
        period=Q1,
        forecasted_amount=100,
        created_by="treasurer",
    )


def test_manual_forecast_validation(category_factory, repository):
    events = category_factory("events")

    with pytest.raises(ValidationError) as excinfo:
        create_forecast(
            repository=repository,
            category_id=events.id,
            period=Q2,
            forecasted_amount=100,
            confidence="certain",
            created_by="treasurer",
        )
    assert excinfo.value.field == "confidence"

    with pytest.raises(ValidationError) as excinfo:
        create_forecast(
            repository=repository,
            category_id=events.id,
            period=Q2,
            forecasted_amount=100,
            based_on="gut",
            created_by="treasurer",
        )
    assert excinfo.value.field == "based_on"

    with pytest.raises(NotFoundError):
        create_forecast(
            repository=repository,
            category_id=999,
            period=Q2,
            forecasted_amount=100,
            created_by="treasurer",
        )


def test_update_forecast_keeps_category_and_period(category_factory, repository):
    events = category_factory("events")
    manual = create_forecast(
        repository=repository,
        category_id=events.id,
        period=Q2,
        forecasted_amount=1000,
        created_by="treasurer",
    )

    updated = update_forecast(
        repository=repository,
        forecast_id=manual.id,
        actor="secretary",
        forecasted_amount=1500,
        confidence="high",
    )

    assert updated.forecasted_amount == 1500
    assert updated.confidence == "high"
    assert updated.based_on == "estimate"
    assert updated.period_descriptor == Q2
    assert updated.category_id == events.id
    with pytest.raises(ValidationError):
        update_forecast(repository=repository, forecast_id=manual.id, actor="x", based_on="gut")
    with pytest.raises(NotFoundError):
        update_forecast(repository=repository, forecast_id=999, actor="x", notes="missing")


def test_generation_replaces_a_manual_quarter_forecast(
    category_factory, expense_factory, repository
):
    events = category_factory("events")
    expense_factory(4200, expense_date=date(2026, 2, 1), category_id=events.id)
    manual = create_forecast(
        repository=repository,
        category_id=events.id,
        period=Q2,
        forecasted_amount=1,
        created_by="treasurer",
    )

    rows = generate_forecasts(
        repository=repository, target=Q2, created_by="treasurer", today=date(2026, 4, 10)
    )

    assert rows[0].id == manual.id
    stored = list_forecasts(repository=repository, period=Q2)
    assert [(f.id, f.forecasted_amount, f.based_on) for f in stored] == [
        (manual.id, 4200, "historical")
    ]
