"""Forecast generation from the previous, same-length period."""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional

from ..domain.repositories.ledger import LedgerFilter, LedgerRepository
from ..errors import NotFoundError, ValidationError
from ..logging_config import get_logger
from ..models import Forecast
from ..models._columns import CONFIDENCE_LEVELS, FORECAST_BASES
from ..money import ensure_cents
from ..periods import Period, add_months

logger = get_logger("services.forecasting")

HIGH = "high"
MEDIUM = "medium"
LOW = "low"
HISTORICAL = "historical"
ESTIMATE = "estimate"

# Activity older than this before the target start does not make a category a candidate
LOOKBACK_MONTHS = 12


def _totals_by_category(rows: Iterable) -> dict[int, int]:
    totals: dict[int, int] = {}
    for row in rows:
        if row.category_id is None:
            continue
        totals[row.category_id] = totals.get(row.category_id, 0) + row.amount
    return totals


def generate_forecasts(
    *, repository: LedgerRepository, target: Period, created_by: str, today: date
) -> list[Forecast]:
    """Forecast every category with recent activity before ``target`` from the prior period.

    A category seen in the prior period is forecast at that period's total
    (expenses for expense categories, revenues for income categories) with
    ``historical`` basis; confidence is ``high`` once the prior period has
    fully elapsed on ``today`` and ``medium`` while it is still running.
    Categories whose activity in the lookback window (the twelve months before
    ``target``, or the prior period when longer) falls outside the prior period
    get a zero ``estimate`` at ``low`` confidence. Rows are upserted per
    category and period, so regenerating replaces this target's forecasts and
    leaves other periods alone.
    """

    prior = target.previous()
    history = LedgerFilter(
        start=min(prior.start, add_months(target.start, -LOOKBACK_MONTHS)), end=target.start
    )
    seen = set(_totals_by_category(repository.list_expenses(history)))
    seen |= set(_totals_by_category(repository.list_revenues(history)))

    prior_window = LedgerFilter(period=prior)
    prior_expenses = _totals_by_category(repository.list_expenses(prior_window))
    prior_revenues = _totals_by_category(repository.list_revenues(prior_window))
    category_types = {c.id: c.type for c in repository.list_categories()}
    elapsed = today >= prior.end

    forecasts: list[Forecast] = []
    for category_id in sorted(seen):
        totals = prior_revenues if category_types.get(category_id) == "income" else prior_expenses
        if category_id in totals:
            amount = totals[category_id]
            confidence = HIGH if elapsed else MEDIUM
            based_on = HISTORICAL
            notes = f"Based on {prior.label}"
        else:
            amount, confidence, based_on = 0, LOW, ESTIMATE
            notes = f"No activity in {prior.label}"
        forecast = Forecast(
            category_id=category_id,
            period=target.kind,
            year=target.year,
            month=target.month,
            quarter=target.quarter,
            forecasted_amount=amount,
            confidence=confidence,
            based_on=based_on,
            notes=notes,
            created_by=created_by,
        )
        forecasts.append(repository.upsert_forecast(forecast))

    logger.info(
        "Forecasts generated",
        extra={"target": target.label, "count": len(forecasts), "actor": created_by},
    )
    return forecasts


def list_forecasts(*, repository: LedgerRepository, period: Period) -> list[Forecast]:
    return repository.list_forecasts(LedgerFilter(period=period))


def _check_grade(confidence: str, based_on: str) -> None:
    if confidence not in CONFIDENCE_LEVELS:
        raise ValidationError(
            f"confidence must be one of {', '.join(CONFIDENCE_LEVELS)}", field="confidence"
        )
    if based_on not in FORECAST_BASES:
        raise ValidationError(
            f"based_on must be one of {', '.join(FORECAST_BASES)}", field="based_on"
        )


def create_forecast(
    *,
    repository: LedgerRepository,
    category_id: int,
    period: Period,
    forecasted_amount: int,
    created_by: str,
    confidence: str = MEDIUM,
    based_on: str = ESTIMATE,
    notes: Optional[str] = None,
) -> Forecast:
    """Record a manual forecast; a second one for the same category and period conflicts."""

    ensure_cents(forecasted_amount, "forecasted_amount", allow_negative=True)
    _check_grade(confidence, based_on)
    if not created_by:
        raise ValidationError("created_by is required", field="created_by")
    if repository.get_category(category_id) is None:
        raise NotFoundError(f"Category {category_id} not found", field="category_id")

    saved = repository.add_forecast(
        Forecast(
            category_id=category_id,
            period=period.kind,
            year=period.year,
            month=period.month,
            quarter=period.quarter,
            forecasted_amount=forecasted_amount,
            confidence=confidence,
            based_on=based_on,
            notes=notes,
            created_by=created_by,
        )
    )
    logger.info(
        "Forecast created",
        extra={"forecast_id": saved.id, "period": period.label, "actor": created_by},
    )
    return saved


def update_forecast(
    *,
    repository: LedgerRepository,
    forecast_id: int,
    actor: str,
    forecasted_amount: Optional[int] = None,
    confidence: Optional[str] = None,
    based_on: Optional[str] = None,
    notes: Optional[str] = None,
) -> Forecast:
    """Adjust the figures of a forecast; its category and period stay fixed."""

    forecast = repository.get_forecast(forecast_id)
    if forecast is None:
        raise NotFoundError(f"Forecast {forecast_id} not found", field="forecast_id")
    if forecasted_amount is not None:
        forecast.forecasted_amount = ensure_cents(
            forecasted_amount, "forecasted_amount", allow_negative=True
        )
    _check_grade(confidence or forecast.confidence, based_on or forecast.based_on)
    if confidence is not None:
        forecast.confidence = confidence
    if based_on is not None:
        forecast.based_on = based_on
    if notes is not None:
        forecast.notes = notes
    saved = repository.save_forecast(forecast)
    logger.info("Forecast updated", extra={"forecast_id": forecast_id, "actor": actor})
    return saved
