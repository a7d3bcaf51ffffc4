"""SQLModel implementation of the ledger repository."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Iterator, Optional, TypeVar

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ...domain.repositories.ledger import LedgerFilter
from ...errors import ConflictError, NotFoundError, RepositoryError
from ...logging_config import get_logger
from ...models import (
    Budget,
    Expense,
    FinancialCategory,
    Forecast,
    MemberSubscription,
    Revenue,
    SubscriptionType,
)
from ...models._columns import utcnow
from ..database import SessionFactory

logger = get_logger("infra.ledger")

T = TypeVar("T")

_EMPTY = LedgerFilter()


class SQLModelLedgerRepository:
    """SQLModel-based ledger repository implementation."""

    def __init__(self, session_factory: SessionFactory):
        """Initialize with a session factory."""
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Open a session, translating driver failures into ``RepositoryError``."""
        try:
            with self.session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.error("Ledger storage failure", exc_info=True)
            raise RepositoryError(f"storage failure: {exc.__class__.__name__}") from exc

    @staticmethod
    def _detached(session: Session, rows: list[T]) -> list[T]:
        session.expunge_all()
        return rows

    @staticmethod
    def _store(session: Session, row: T) -> T:
        session.add(row)
        session.commit()
        session.refresh(row)
        session.expunge(row)
        return row

    def _delete(self, model: type, row_id: int, label: str, field: str) -> None:
        with self._session() as session:
            row = session.get(model, row_id)
            if row is None:
                raise NotFoundError(f"{label} {row_id} not found", field=field)
            session.delete(row)
            session.commit()

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------
    def list_categories(self, criteria: LedgerFilter = _EMPTY) -> list[FinancialCategory]:
        with self._session() as session:
            statement = select(FinancialCategory)
            if criteria.category_type:
                statement = statement.where(FinancialCategory.type == criteria.category_type)
            if not criteria.include_inactive:
                statement = statement.where(FinancialCategory.is_active == True)  # noqa: E712
            statement = statement.order_by(FinancialCategory.name, FinancialCategory.id)
            return self._detached(session, list(session.exec(statement).all()))

    def get_category(self, category_id: int) -> Optional[FinancialCategory]:
        with self._session() as session:
            row = session.get(FinancialCategory, category_id)
            if row is not None:
                session.expunge(row)
            return row

    def category_in_use(self, category_id: int) -> bool:
        with self._session() as session:
            for model in (Budget, Expense, Forecast, Revenue):
                hit = session.exec(
                    select(model.id).where(model.category_id == category_id).limit(1)
                ).first()
                if hit is not None:
                    return True
            return False

    def save_category(self, category: FinancialCategory) -> FinancialCategory:
        with self._session() as session:
            if category.id is not None:
                category.updated_at = utcnow()
                category = session.merge(category)
            return self._store(session, category)

    # ------------------------------------------------------------------
    # Budgets / expenses / revenues
    # ------------------------------------------------------------------
    def list_budgets(self, criteria: LedgerFilter = _EMPTY) -> list[Budget]:
        window = criteria.window()
        with self._session() as session:
            statement = select(Budget)
            if window is not None:
                statement = statement.where(Budget.year == window.year)
            if criteria.category_id is not None:
                statement = statement.where(Budget.category_id == criteria.category_id)
            statement = statement.order_by(Budget.year, Budget.id)
            rows = list(session.exec(statement).all())
            if window is not None:
                rows = [row for row in rows if window.covers(row.period_descriptor)]
            return self._detached(session, rows)

    def get_budget(self, budget_id: int) -> Optional[Budget]:
        with self._session() as session:
            row = session.get(Budget, budget_id)
            if row is not None:
                session.expunge(row)
            return row

    def save_budget(self, budget: Budget) -> Budget:
        with self._session() as session:
            if budget.id is not None:
                budget.updated_at = utcnow()
                budget = session.merge(budget)
            return self._store(session, budget)

    def delete_budget(self, budget_id: int) -> None:
        with self._session() as session:
            row = session.get(Budget, budget_id)
            if row is None:
                raise NotFoundError(f"Budget {budget_id} not found", field="budget_id")
            # Spend stays on the ledger; it just no longer draws from this budget.
            session.execute(
                update(Expense).where(Expense.budget_id == budget_id).values(budget_id=None)
            )
            session.delete(row)
            session.commit()

    def list_expenses(self, criteria: LedgerFilter = _EMPTY) -> list[Expense]:
        start, end = criteria.date_bounds()
        with self._session() as session:
            statement = select(Expense)
            if start is not None:
                statement = statement.where(Expense.expense_date >= start)
            if end is not None:
                statement = statement.where(Expense.expense_date < end)
            if criteria.category_id is not None:
                statement = statement.where(Expense.category_id == criteria.category_id)
            if criteria.budget_ids is not None:
                budget_ids = list(criteria.budget_ids)
                if not budget_ids:
                    return []
                statement = statement.where(Expense.budget_id.in_(budget_ids))  # type: ignore[union-attr]
            statement = statement.order_by(Expense.expense_date, Expense.id)
            return self._detached(session, list(session.exec(statement).all()))

    def get_expense(self, expense_id: int) -> Optional[Expense]:
        with self._session() as session:
            row = session.get(Expense, expense_id)
            if row is not None:
                session.expunge(row)
            return row

    def save_expense(self, expense: Expense) -> Expense:
        with self._session() as session:
            if expense.id is not None:
                expense.updated_at = utcnow()
                expense = session.merge(expense)
            return self._store(session, expense)

    def delete_expense(self, expense_id: int) -> None:
        self._delete(Expense, expense_id, "Expense", "expense_id")

    def list_revenues(self, criteria: LedgerFilter = _EMPTY) -> list[Revenue]:
        start, end = criteria.date_bounds()
        with self._session() as session:
            statement = select(Revenue)
            if start is not None:
                statement = statement.where(Revenue.received_date >= start)
            if end is not None:
                statement = statement.where(Revenue.received_date < end)
            if criteria.category_id is not None:
                statement = statement.where(Revenue.category_id == criteria.category_id)
            if criteria.revenue_type:
                statement = statement.where(Revenue.revenue_type == criteria.revenue_type)
            # Insertion order; top-donor ties rely on it
            statement = statement.order_by(Revenue.id)
            return self._detached(session, list(session.exec(statement).all()))

    def get_revenue(self, revenue_id: int) -> Optional[Revenue]:
        with self._session() as session:
            row = session.get(Revenue, revenue_id)
            if row is not None:
                session.expunge(row)
            return row

    def save_revenue(self, revenue: Revenue) -> Revenue:
        with self._session() as session:
            if revenue.id is not None:
                revenue.updated_at = utcnow()
                revenue = session.merge(revenue)
            return self._store(session, revenue)

    def delete_revenue(self, revenue_id: int) -> None:
        self._delete(Revenue, revenue_id, "Revenue", "revenue_id")

    # ------------------------------------------------------------------
    # Forecasts
    # ------------------------------------------------------------------
    def list_forecasts(self, criteria: LedgerFilter = _EMPTY) -> list[Forecast]:
        window = criteria.window()
        with self._session() as session:
            statement = select(Forecast)
            if window is not None:
                statement = statement.where(Forecast.year == window.year)
            if criteria.category_id is not None:
                statement = statement.where(Forecast.category_id == criteria.category_id)
            statement = statement.order_by(Forecast.year, Forecast.category_id, Forecast.id)
            rows = list(session.exec(statement).all())
            if window is not None:
                rows = [row for row in rows if window.covers(row.period_descriptor)]
            return self._detached(session, rows)

    @staticmethod
    def _same_slot(session: Session, forecast: Forecast) -> Optional[Forecast]:
        """Stored forecast for the same category and period, if any."""
        return session.exec(
            select(Forecast).where(
                Forecast.category_id == forecast.category_id,
                Forecast.period == forecast.period,
                Forecast.year == forecast.year,
                Forecast.month == forecast.month,
                Forecast.quarter == forecast.quarter,
            )
        ).first()

    def get_forecast(self, forecast_id: int) -> Optional[Forecast]:
        with self._session() as session:
            row = session.get(Forecast, forecast_id)
            if row is not None:
                session.expunge(row)
            return row

    def add_forecast(self, forecast: Forecast) -> Forecast:
        with self._session() as session:
            if self._same_slot(session, forecast) is not None:
                raise ConflictError(
                    f"A forecast already exists for category {forecast.category_id}"
                    f" in {forecast.period_descriptor.label}",
                    field="category_id",
                )
            return self._store(session, forecast)

    def save_forecast(self, forecast: Forecast) -> Forecast:
        with self._session() as session:
            forecast.updated_at = utcnow()
            return self._store(session, session.merge(forecast))

    def upsert_forecast(self, forecast: Forecast) -> Forecast:
        with self._session() as session:
            existing = self._same_slot(session, forecast)
            if existing is None:
                return self._store(session, forecast)
            existing.forecasted_amount = forecast.forecasted_amount
            existing.confidence = forecast.confidence
            existing.based_on = forecast.based_on
            existing.notes = forecast.notes
            existing.created_by = forecast.created_by
            existing.updated_at = utcnow()
            return self._store(session, existing)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def list_subscriptions(self, criteria: LedgerFilter = _EMPTY) -> list[MemberSubscription]:
        start, end = criteria.date_bounds()
        with self._session() as session:
            statement = select(MemberSubscription)
            if start is not None:
                statement = statement.where(MemberSubscription.start_date >= start)
            if end is not None:
                statement = statement.where(MemberSubscription.start_date < end)
            if criteria.status:
                statement = statement.where(MemberSubscription.status == criteria.status)
            if criteria.member_email:
                statement = statement.where(
                    MemberSubscription.member_email == criteria.member_email.strip().lower()
                )
            if criteria.subscription_type_id is not None:
                statement = statement.where(
                    MemberSubscription.subscription_type_id == criteria.subscription_type_id
                )
            statement = statement.order_by(MemberSubscription.start_date, MemberSubscription.id)
            return self._detached(session, list(session.exec(statement).all()))

    def get_subscription(self, subscription_id: int) -> Optional[MemberSubscription]:
        with self._session() as session:
            row = session.get(MemberSubscription, subscription_id)
            if row is not None:
                session.expunge(row)
            return row

    def upsert_subscription(
        self, subscription: MemberSubscription, *, expected_version: Optional[int] = None
    ) -> MemberSubscription:
        with self._session() as session:
            if subscription.id is None:
                subscription.version = 1
                return self._store(session, subscription)

            expected = subscription.version if expected_version is None else expected_version
            values = subscription.model_dump(exclude={"id", "created_at", "version"})
            values["version"] = expected + 1
            values["updated_at"] = utcnow()
            result = session.execute(
                update(MemberSubscription)
                .where(MemberSubscription.id == subscription.id)
                .where(MemberSubscription.version == expected)
                .values(**values)
            )
            if result.rowcount == 0:
                session.rollback()
                if session.get(MemberSubscription, subscription.id) is None:
                    raise NotFoundError(
                        f"Subscription {subscription.id} not found", field="subscription_id"
                    )
                raise ConflictError(
                    f"Subscription {subscription.id} was modified concurrently",
                    field="version",
                )
            session.commit()
            row = session.get(MemberSubscription, subscription.id)
            session.refresh(row)
            session.expunge(row)
            return row

    def delete_subscription(self, subscription_id: int) -> None:
        with self._session() as session:
            row = session.get(MemberSubscription, subscription_id)
            if row is None:
                raise NotFoundError(
                    f"Subscription {subscription_id} not found", field="subscription_id"
                )
            session.delete(row)
            session.commit()

    # ------------------------------------------------------------------
    # Subscription types
    # ------------------------------------------------------------------
    def list_subscription_types(self, *, include_inactive: bool = False) -> list[SubscriptionType]:
        with self._session() as session:
            statement = select(SubscriptionType)
            if not include_inactive:
                statement = statement.where(SubscriptionType.is_active == True)  # noqa: E712
            statement = statement.order_by(SubscriptionType.name, SubscriptionType.id)
            return self._detached(session, list(session.exec(statement).all()))

    def get_subscription_type(self, type_id: int) -> Optional[SubscriptionType]:
        with self._session() as session:
            row = session.get(SubscriptionType, type_id)
            if row is not None:
                session.expunge(row)
            return row

    def count_subscriptions_by_type(self) -> dict[int, int]:
        with self._session() as session:
            statement = (
                select(MemberSubscription.subscription_type_id, func.count(MemberSubscription.id))
                .where(MemberSubscription.subscription_type_id.is_not(None))  # type: ignore[union-attr]
                .group_by(MemberSubscription.subscription_type_id)
            )
            return {type_id: count for type_id, count in session.exec(statement).all()}

    def save_subscription_type(self, subscription_type: SubscriptionType) -> SubscriptionType:
        with self._session() as session:
            if subscription_type.id is not None:
                subscription_type.updated_at = utcnow()
                subscription_type = session.merge(subscription_type)
            return self._store(session, subscription_type)

    def delete_subscription_type(self, type_id: int, *, active_on: date) -> None:
        with self._session() as session:
            row = session.get(SubscriptionType, type_id)
            if row is None:
                raise NotFoundError(f"Subscription type {type_id} not found", field="type_id")
            # Same rule as classify(): active means not pending and ending after the day.
            active = session.exec(
                select(func.count(MemberSubscription.id))
                .where(MemberSubscription.subscription_type_id == type_id)
                .where(MemberSubscription.end_date > active_on)
                .where(MemberSubscription.status != "pending")
            ).one()
            if active:
                raise ConflictError(
                    f"Subscription type {type_id} is referenced by {active} active subscription(s)",
                    field="type_id",
                )
            # Past subscriptions keep their copied terms; only the provenance link goes.
            session.execute(
                update(MemberSubscription)
                .where(MemberSubscription.subscription_type_id == type_id)
                .values(subscription_type_id=None)
            )
            session.delete(row)
            session.commit()
