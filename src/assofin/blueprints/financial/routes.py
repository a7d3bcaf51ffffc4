"""Financial API routes.

Query strings and JSON bodies are parsed with :mod:`assofin.params`; amounts
go in and out as integer cents.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Optional

from flask import current_app, jsonify, request

from ...context import AppContext
from ...errors import ConflictError, FinanceError, NotFoundError, ValidationError
from ...logging_config import get_logger
from ...models import SubscriptionTerms
from ...models._columns import (
    CONFIDENCE_LEVELS,
    FORECAST_BASES,
    PAYMENT_METHODS,
    REVENUE_TYPES,
    SUBSCRIPTION_STATUSES,
)
from ...params import (
    parse_bool,
    parse_cents,
    parse_choice,
    parse_date,
    parse_duration,
    parse_int,
    parse_period,
    parse_year,
    require_text,
)
from ...periods import Period
from ...services import aggregation, dashboard, forecasting, ledger_records, reports, subscriptions
from . import bp

logger = get_logger("blueprints.financial")

_STATUS_CODES = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
}


@bp.errorhandler(FinanceError)
def _finance_error(exc: FinanceError):
    status = next((code for kind, code in _STATUS_CODES.items() if isinstance(exc, kind)), 500)
    if status == 500:
        logger.error("Request failed", extra={"path": request.path, "error_kind": exc.kind})
    return jsonify(exc.to_dict()), status


def _ctx() -> AppContext:
    return current_app.extensions["assofin"]


def _payload() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("request body must be a JSON object", field="body")
    return payload


def _actor(payload: Optional[dict[str, Any]] = None) -> str:
    """Identity of the caller performing a mutation (header or ``created_by``)."""

    raw = request.headers.get("X-Assofin-Actor")
    if not raw and payload:
        raw = payload.get("created_by")
    return require_text(raw, "created_by")


def _today() -> date:
    return parse_date(request.args.get("as_of"), "as_of", required=False) or date.today()


def _window(*, year_required: bool = False):
    year = parse_year(request.args.get("year"), required=year_required)
    period = parse_period(request.args.get("period"), year)
    return period, year


def _rows(rows) -> list[dict[str, Any]]:
    return [row.model_dump(mode="json") for row in rows]


def _optional_cents(payload: dict[str, Any], field: str, *, allow_negative: bool = False):
    raw = payload.get(field)
    return None if raw is None else parse_cents(raw, field, allow_negative=allow_negative)


# ----------------------------------------------------------------------
# Statistics
# ----------------------------------------------------------------------
@bp.get("/budgets/stats")
def budget_stats():
    period, year = _window()
    stats = aggregation.budget_stats(repository=_ctx().repository, period=period, year=year)
    return jsonify(stats.to_dict())


@bp.get("/budgets/by-category")
def budgets_by_category():
    period, year = _window()
    return jsonify(
        aggregation.budgets_by_category(repository=_ctx().repository, period=period, year=year)
    )


@bp.get("/expenses/stats")
def expense_stats():
    period, year = _window()
    category_id = parse_int(request.args.get("category_id"), "category_id")
    stats = aggregation.expense_stats(
        repository=_ctx().repository, period=period, year=year, category_id=category_id
    )
    return jsonify(stats.to_dict())


@bp.get("/expenses/by-category")
def expenses_by_category():
    period, year = _window()
    return jsonify(
        aggregation.expenses_by_category(repository=_ctx().repository, period=period, year=year)
    )


@bp.get("/kpis/extended")
def extended_kpis():
    period, year = _window()
    kpis = aggregation.extended_kpis(repository=_ctx().repository, period=period, year=year)
    return jsonify(kpis.to_dict())


@bp.get("/revenues/stats")
def revenue_stats():
    ctx = _ctx()
    period, year = _window()
    limit = parse_int(request.args.get("limit"), "limit")
    if limit is None:
        limit = ctx.top_donors_limit
    stats = aggregation.revenue_stats(
        repository=ctx.repository, period=period, year=year, limit=limit
    )
    return jsonify(stats.to_dict())


@bp.get("/subscriptions/stats")
def subscription_stats():
    ctx = _ctx()
    period, year = _window()
    stats = aggregation.subscription_stats(
        repository=ctx.repository,
        period=period,
        year=year,
        today=_today(),
        expiring_window_days=ctx.expiring_window_days,
    )
    return jsonify(stats.to_dict())


@bp.get("/monthly")
def monthly_breakdown():
    year = parse_year(request.args.get("year"), required=True)
    return jsonify(aggregation.monthly_breakdown(repository=_ctx().repository, year=year))


# ----------------------------------------------------------------------
# Comparison, reports, forecasts
# ----------------------------------------------------------------------
@bp.get("/comparison")
def comparison():
    year1 = parse_year(request.args.get("year1"), "year1", required=True)
    year2 = parse_year(request.args.get("year2"), "year2", required=True)
    period1 = parse_period(
        request.args.get("period1"), year1, "period1", year_field="year1", required=True
    )
    period2 = parse_period(
        request.args.get("period2"), year2, "period2", year_field="year2", required=True
    )
    result = reports.compare(repository=_ctx().repository, a=period1, b=period2)
    return jsonify(result.to_dict())


@bp.get("/reports/<kind>")
def report(kind: str):
    ctx = _ctx()
    year = parse_year(request.args.get("year"), required=True)
    payload = reports.build_report(
        repository=ctx.repository,
        kind=kind,
        period_number=request.args.get("period"),
        year=year,
        today=_today(),
        top_donors_limit=ctx.top_donors_limit,
        expiring_window_days=ctx.expiring_window_days,
    )
    return jsonify(payload)


@bp.post("/forecasts/generate")
def generate_forecasts():
    payload = _payload()
    year = parse_year(payload.get("year"), required=True)
    target = parse_period(payload.get("period"), year, required=True)
    rows = forecasting.generate_forecasts(
        repository=_ctx().repository,
        target=target,
        created_by=_actor(payload),
        today=_today(),
    )
    return jsonify(_rows(rows)), 201


@bp.get("/forecasts")
def list_forecasts():
    period, year = _window(year_required=True)
    target = period or Period.for_year(year)
    return jsonify(_rows(forecasting.list_forecasts(repository=_ctx().repository, period=target)))


@bp.post("/forecasts")
def create_forecast():
    payload = _payload()
    year = parse_year(payload.get("year"), required=True)
    forecast = forecasting.create_forecast(
        repository=_ctx().repository,
        category_id=parse_int(payload.get("category_id"), "category_id", required=True),
        period=parse_period(payload.get("period"), year, required=True),
        forecasted_amount=parse_cents(
            payload.get("forecasted_amount"), "forecasted_amount", allow_negative=True
        ),
        confidence=parse_choice(
            payload.get("confidence") or "medium", CONFIDENCE_LEVELS, "confidence"
        ),
        based_on=parse_choice(
            payload.get("based_on") or "estimate", FORECAST_BASES, "based_on"
        ),
        notes=payload.get("notes"),
        created_by=_actor(payload),
    )
    return jsonify(forecast.model_dump(mode="json")), 201


@bp.patch("/forecasts/<int:forecast_id>")
def update_forecast(forecast_id: int):
    payload = _payload()
    forecast = forecasting.update_forecast(
        repository=_ctx().repository,
        forecast_id=forecast_id,
        forecasted_amount=_optional_cents(payload, "forecasted_amount", allow_negative=True),
        confidence=parse_choice(
            payload.get("confidence"), CONFIDENCE_LEVELS, "confidence", required=False
        ),
        based_on=parse_choice(payload.get("based_on"), FORECAST_BASES, "based_on", required=False),
        notes=payload.get("notes"),
        actor=_actor(payload),
    )
    return jsonify(forecast.model_dump(mode="json"))


# ----------------------------------------------------------------------
# Ledger records
# ----------------------------------------------------------------------
@bp.get("/categories")
def list_categories():
    return jsonify(_rows(_ctx().repository.list_categories()))


@bp.post("/categories")
def create_category():
    payload = _payload()
    category = ledger_records.create_category(
        repository=_ctx().repository,
        name=require_text(payload.get("name"), "name"),
        type=parse_choice(payload.get("type"), ("income", "expense"), "type"),
        parent_id=parse_int(payload.get("parent_id"), "parent_id"),
        description=payload.get("description"),
        actor=_actor(payload),
    )
    return jsonify(category.model_dump(mode="json")), 201


@bp.patch("/categories/<int:category_id>")
def update_category(category_id: int):
    payload = _payload()
    is_active = payload.get("is_active")
    category = ledger_records.update_category(
        repository=_ctx().repository,
        category_id=category_id,
        name=payload.get("name"),
        type=parse_choice(payload.get("type"), ("income", "expense"), "type", required=False),
        parent_id=parse_int(payload.get("parent_id"), "parent_id"),
        description=payload.get("description"),
        is_active=None if is_active is None else parse_bool(is_active, "is_active"),
        actor=_actor(payload),
    )
    return jsonify(category.model_dump(mode="json"))


@bp.post("/budgets")
def create_budget():
    payload = _payload()
    year = parse_year(payload.get("year"), required=True)
    budget = ledger_records.create_budget(
        repository=_ctx().repository,
        name=require_text(payload.get("name"), "name"),
        category_id=parse_int(payload.get("category_id"), "category_id", required=True),
        period=parse_period(payload.get("period"), year, required=True),
        amount=parse_cents(payload.get("amount")),
        description=payload.get("description"),
        created_by=_actor(payload),
    )
    return jsonify(budget.model_dump(mode="json")), 201


@bp.patch("/budgets/<int:budget_id>")
def update_budget(budget_id: int):
    payload = _payload()
    period = None
    if payload.get("period") is not None:
        year = parse_year(payload.get("year"), required=True)
        period = parse_period(payload.get("period"), year, required=True)
    budget = ledger_records.update_budget(
        repository=_ctx().repository,
        budget_id=budget_id,
        name=payload.get("name"),
        category_id=parse_int(payload.get("category_id"), "category_id"),
        period=period,
        amount=_optional_cents(payload, "amount"),
        description=payload.get("description"),
        actor=_actor(payload),
    )
    return jsonify(budget.model_dump(mode="json"))


@bp.delete("/budgets/<int:budget_id>")
def delete_budget(budget_id: int):
    ledger_records.delete_budget(
        repository=_ctx().repository, budget_id=budget_id, actor=_actor(_payload())
    )
    return "", 204


@bp.post("/expenses")
def create_expense():
    payload = _payload()
    expense = ledger_records.create_expense(
        repository=_ctx().repository,
        category_id=parse_int(payload.get("category_id"), "category_id", required=True),
        description=require_text(payload.get("description"), "description"),
        amount=parse_cents(payload.get("amount")),
        expense_date=parse_date(payload.get("expense_date"), "expense_date"),
        budget_id=parse_int(payload.get("budget_id"), "budget_id"),
        vendor=payload.get("vendor"),
        payment_method=parse_choice(
            payload.get("payment_method"), PAYMENT_METHODS, "payment_method", required=False
        ),
        created_by=_actor(payload),
    )
    return jsonify(expense.model_dump(mode="json")), 201


@bp.patch("/expenses/<int:expense_id>")
def update_expense(expense_id: int):
    payload = _payload()
    expense = ledger_records.update_expense(
        repository=_ctx().repository,
        expense_id=expense_id,
        category_id=parse_int(payload.get("category_id"), "category_id"),
        description=payload.get("description"),
        amount=_optional_cents(payload, "amount"),
        expense_date=parse_date(payload.get("expense_date"), "expense_date", required=False),
        budget_id=parse_int(payload.get("budget_id"), "budget_id"),
        vendor=payload.get("vendor"),
        payment_method=parse_choice(
            payload.get("payment_method"), PAYMENT_METHODS, "payment_method", required=False
        ),
        actor=_actor(payload),
    )
    return jsonify(expense.model_dump(mode="json"))


@bp.delete("/expenses/<int:expense_id>")
def delete_expense(expense_id: int):
    ledger_records.delete_expense(
        repository=_ctx().repository, expense_id=expense_id, actor=_actor(_payload())
    )
    return "", 204


@bp.post("/revenues")
def create_revenue():
    payload = _payload()
    revenue = ledger_records.create_revenue(
        repository=_ctx().repository,
        revenue_type=parse_choice(payload.get("revenue_type"), REVENUE_TYPES, "revenue_type"),
        source_name=require_text(payload.get("source_name"), "source_name"),
        source_contact=payload.get("source_contact"),
        amount=parse_cents(payload.get("amount")),
        received_date=parse_date(payload.get("received_date"), "received_date"),
        category_id=parse_int(payload.get("category_id"), "category_id"),
        payment_method=parse_choice(
            payload.get("payment_method"), PAYMENT_METHODS, "payment_method", required=False
        ),
        receipt_reference=payload.get("receipt_reference"),
        notes=payload.get("notes"),
        created_by=_actor(payload),
    )
    return jsonify(revenue.model_dump(mode="json")), 201


@bp.patch("/revenues/<int:revenue_id>")
def update_revenue(revenue_id: int):
    payload = _payload()
    revenue = ledger_records.update_revenue(
        repository=_ctx().repository,
        revenue_id=revenue_id,
        revenue_type=parse_choice(
            payload.get("revenue_type"), REVENUE_TYPES, "revenue_type", required=False
        ),
        source_name=payload.get("source_name"),
        source_contact=payload.get("source_contact"),
        amount=_optional_cents(payload, "amount"),
        received_date=parse_date(payload.get("received_date"), "received_date", required=False),
        category_id=parse_int(payload.get("category_id"), "category_id"),
        payment_method=parse_choice(
            payload.get("payment_method"), PAYMENT_METHODS, "payment_method", required=False
        ),
        receipt_reference=payload.get("receipt_reference"),
        notes=payload.get("notes"),
        actor=_actor(payload),
    )
    return jsonify(revenue.model_dump(mode="json"))


@bp.delete("/revenues/<int:revenue_id>")
def delete_revenue(revenue_id: int):
    ledger_records.delete_revenue(
        repository=_ctx().repository, revenue_id=revenue_id, actor=_actor(_payload())
    )
    return "", 204


# ----------------------------------------------------------------------
# Subscriptions
# ----------------------------------------------------------------------
@bp.get("/subscriptions")
def list_subscriptions():
    today = _today()
    rows = subscriptions.list_subscriptions(
        repository=_ctx().repository,
        today=today,
        year=parse_year(request.args.get("year")),
        status=parse_choice(
            request.args.get("status"), SUBSCRIPTION_STATUSES, "status", required=False
        ),
        member_email=request.args.get("member_email") or None,
    )
    return jsonify([subscriptions.subscription_to_dict(row, today) for row in rows])


@bp.post("/subscriptions")
def create_subscription():
    payload = _payload()
    today = _today()
    terms = SubscriptionTerms(
        label=require_text(payload.get("type_label"), "type_label"),
        amount=parse_cents(payload.get("amount")),
        duration=parse_duration(payload.get("duration")),
    )
    row = subscriptions.create_subscription(
        repository=_ctx().repository,
        member_email=require_text(payload.get("member_email"), "member_email"),
        member_name=payload.get("member_name"),
        terms=terms,
        payment_date=parse_date(payload.get("payment_date"), "payment_date"),
        payment_method=parse_choice(
            payload.get("payment_method"), PAYMENT_METHODS, "payment_method", required=False
        ),
        notes=payload.get("notes"),
        pending=parse_bool(payload.get("pending"), "pending"),
        created_by=_actor(payload),
        today=today,
    )
    return jsonify(subscriptions.subscription_to_dict(row, today)), 201


@bp.post("/subscriptions/assign")
def assign_subscription():
    payload = _payload()
    today = _today()
    row = subscriptions.assign_subscription(
        repository=_ctx().repository,
        type_id=parse_int(payload.get("type_id"), "type_id", required=True),
        member_email=require_text(payload.get("member_email"), "member_email"),
        member_name=payload.get("member_name"),
        payment_date=parse_date(payload.get("payment_date"), "payment_date"),
        payment_method=parse_choice(
            payload.get("payment_method"), PAYMENT_METHODS, "payment_method", required=False
        ),
        notes=payload.get("notes"),
        created_by=_actor(payload),
        today=today,
    )
    return jsonify(subscriptions.subscription_to_dict(row, today)), 201


@bp.get("/subscriptions/<int:subscription_id>")
def get_subscription(subscription_id: int):
    row = subscriptions.get_subscription(
        repository=_ctx().repository, subscription_id=subscription_id
    )
    return jsonify(subscriptions.subscription_to_dict(row, _today()))


@bp.patch("/subscriptions/<int:subscription_id>")
def update_subscription(subscription_id: int):
    payload = _payload()
    row = subscriptions.update_subscription(
        repository=_ctx().repository,
        subscription_id=subscription_id,
        notes=payload.get("notes"),
        payment_method=parse_choice(
            payload.get("payment_method"), PAYMENT_METHODS, "payment_method", required=False
        ),
        expected_version=parse_int(payload.get("expected_version"), "expected_version"),
        actor=_actor(payload),
    )
    return jsonify(subscriptions.subscription_to_dict(row, _today()))


@bp.post("/subscriptions/<int:subscription_id>/renew")
def renew_subscription(subscription_id: int):
    payload = _payload()
    row = subscriptions.renew_subscription(
        repository=_ctx().repository,
        subscription_id=subscription_id,
        expected_version=parse_int(payload.get("expected_version"), "expected_version"),
        actor=_actor(payload),
    )
    return jsonify(subscriptions.subscription_to_dict(row, _today()))


@bp.delete("/subscriptions/<int:subscription_id>")
def revoke_subscription(subscription_id: int):
    subscriptions.revoke_subscription(
        repository=_ctx().repository, subscription_id=subscription_id, actor=_actor(_payload())
    )
    return "", 204


@bp.post("/subscriptions/sweep")
def sweep_subscriptions():
    swept = subscriptions.sweep_expired(
        repository=_ctx().repository, today=_today(), actor=_actor(_payload())
    )
    return jsonify({"swept": swept, "count": len(swept)})


@bp.get("/subscription-types")
def list_subscription_types():
    include_inactive = parse_bool(request.args.get("include_inactive"), "include_inactive")
    summaries = subscriptions.list_subscription_types(
        repository=_ctx().repository, include_inactive=include_inactive
    )
    return jsonify([summary.to_dict() for summary in summaries])


@bp.post("/subscription-types")
def create_subscription_type():
    payload = _payload()
    row = subscriptions.create_subscription_type(
        repository=_ctx().repository,
        name=require_text(payload.get("name"), "name"),
        amount=parse_cents(payload.get("amount")),
        duration=parse_duration(payload.get("duration")),
        description=payload.get("description"),
        is_active=parse_bool(payload.get("is_active"), "is_active", default=True),
        actor=_actor(payload),
    )
    return jsonify(row.model_dump(mode="json")), 201


@bp.patch("/subscription-types/<int:type_id>")
def update_subscription_type(type_id: int):
    payload = _payload()
    amount = payload.get("amount")
    duration = payload.get("duration")
    is_active = payload.get("is_active")
    row = subscriptions.update_subscription_type(
        repository=_ctx().repository,
        type_id=type_id,
        name=payload.get("name"),
        amount=None if amount is None else parse_cents(amount),
        duration=None if duration is None else parse_duration(duration),
        description=payload.get("description"),
        is_active=None if is_active is None else parse_bool(is_active, "is_active"),
        actor=_actor(payload),
    )
    return jsonify(row.model_dump(mode="json"))


@bp.delete("/subscription-types/<int:type_id>")
def delete_subscription_type(type_id: int):
    subscriptions.delete_subscription_type(
        repository=_ctx().repository, type_id=type_id, actor=_actor(_payload()), today=_today()
    )
    return "", 204


@bp.get("/subscription-types/<int:type_id>/members")
def subscription_type_members(type_id: int):
    today = _today()
    rows = subscriptions.members_by_subscription_type(repository=_ctx().repository, type_id=type_id)
    return jsonify([subscriptions.subscription_to_dict(row, today) for row in rows])


# ----------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------
@bp.get("/dashboard/overview")
def dashboard_overview():
    year = parse_year(request.args.get("year"))
    return jsonify(dashboard.overview(repository=_ctx().repository, year=year, today=_today()))
