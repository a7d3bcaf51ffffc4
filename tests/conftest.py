"""Pytest configuration and shared fixtures for AssoFin tests.

This module provides database fixtures, ledger record factories and a Flask
app wired to an in-memory database, so tests never touch a real data file.
"""

from __future__ import annotations

import tempfile
from datetime import date
from pathlib import Path

import pytest
from sqlmodel import SQLModel, create_engine

# Import all models to ensure they're registered with SQLModel metadata
from assofin.models import (
    Budget,
    Expense,
    FinancialCategory,
    MemberSubscription,
    Revenue,
    SubscriptionType,
)
from assofin.app import create_app
from assofin.config import TestConfig
from assofin.infra.database import create_session_factory
from assofin.infra.repositories import SQLModelLedgerRepository
from assofin.periods import Period, add_duration

ACTOR = "treasurer@example.org"

# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test.

    Yields:
        Engine: SQLModel engine connected to the test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(f"sqlite:///{db_path}", echo=False)
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Transactional session factory, as used by the repository."""

    return create_session_factory(db_engine)


@pytest.fixture(scope="function")
def repository(session_factory) -> SQLModelLedgerRepository:
    return SQLModelLedgerRepository(session_factory)


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def category_factory(repository):
    """Factory for creating test categories."""

    def _create_category(
        name: str = "Events",
        category_type: str = "expense",
        parent_id: int | None = None,
        is_active: bool = True,
    ) -> FinancialCategory:
        category = FinancialCategory(
            name=name, type=category_type, parent_id=parent_id, is_active=is_active
        )
        return repository.save_category(category)

    return _create_category


@pytest.fixture
def budget_factory(repository, category_factory):
    """Factory for creating budgets over a :class:`Period`."""

    def _create_budget(
        amount: int = 100000,
        period: Period | None = None,
        category_id: int | None = None,
        name: str = "Test Budget",
    ) -> Budget:
        period = period or Period.for_year(2026)
        if category_id is None:
            category_id = category_factory().id
        budget = Budget(
            name=name,
            category_id=category_id,
            period=period.kind,
            year=period.year,
            month=period.month,
            quarter=period.quarter,
            amount=amount,
            created_by=ACTOR,
        )
        return repository.save_budget(budget)

    return _create_budget


@pytest.fixture
def expense_factory(repository, category_factory):
    """Factory for creating expenses (amounts in cents)."""

    def _create_expense(
        amount: int,
        expense_date: date = date(2026, 2, 10),
        category_id: int | None = None,
        budget_id: int | None = None,
        description: str = "Test expense",
    ) -> Expense:
        if category_id is None:
            category_id = category_factory().id
        expense = Expense(
            category_id=category_id,
            description=description,
            amount=amount,
            expense_date=expense_date,
            budget_id=budget_id,
            created_by=ACTOR,
        )
        return repository.save_expense(expense)

    return _create_expense


@pytest.fixture
def revenue_factory(repository):
    """Factory for creating revenues (amounts in cents)."""

    def _create_revenue(
        amount: int,
        received_date: date = date(2026, 3, 1),
        revenue_type: str = "donation",
        source_name: str = "Anonymous",
        category_id: int | None = None,
    ) -> Revenue:
        revenue = Revenue(
            revenue_type=revenue_type,
            source_name=source_name,
            amount=amount,
            received_date=received_date,
            category_id=category_id,
            created_by=ACTOR,
        )
        return repository.save_revenue(revenue)

    return _create_revenue


@pytest.fixture
def subscription_type_factory(repository):
    """Factory for creating subscription-type templates."""

    def _create_type(
        name: str = "Standard",
        amount: int = 5000,
        duration: str = "yearly",
        is_active: bool = True,
    ) -> SubscriptionType:
        subscription_type = SubscriptionType(
            name=name, amount=amount, duration=duration, is_active=is_active
        )
        return repository.save_subscription_type(subscription_type)

    return _create_type


@pytest.fixture
def subscription_factory(repository):
    """Factory for storing subscriptions directly, bypassing lifecycle rules."""

    def _create_subscription(
        member_email: str = "member@example.org",
        payment_date: date = date(2026, 1, 15),
        duration: str = "monthly",
        amount: int = 2000,
        status: str = "active",
        renewal_count: int = 0,
        end_date: date | None = None,
        subscription_type_id: int | None = None,
    ) -> MemberSubscription:
        subscription = MemberSubscription(
            member_email=member_email,
            type_label="Standard",
            amount=amount,
            duration=duration,
            subscription_type_id=subscription_type_id,
            payment_date=payment_date,
            start_date=payment_date,
            end_date=end_date or add_duration(payment_date, duration),
            status=status,
            renewal_count=renewal_count,
            created_by=ACTOR,
        )
        return repository.upsert_subscription(subscription)

    return _create_subscription


# =============================================================================
# Flask application
# =============================================================================


@pytest.fixture()
def app(tmp_path):
    """Flask app over an in-memory database with logs under ``tmp_path``."""

    flask_app = create_app(TestConfig(data_dir=tmp_path))
    flask_app.config.update(TESTING=True)
    return flask_app


@pytest.fixture()
def client(app):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture()
def app_repository(app):
    return app.extensions["assofin"].repository
