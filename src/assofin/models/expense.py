"""Expense records."""

from __future__ import annotations

from datetime import date, datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from ._columns import utcnow


class Expense(SQLModel, table=True):
    """Actual spend, optionally linked to the budget it draws from."""

    __tablename__: ClassVar[str] = "financial_expense"

    id: Optional[int] = Field(default=None, primary_key=True)
    category_id: int = Field(foreign_key="financial_category.id", nullable=False, index=True)
    description: str = Field(nullable=False, max_length=255)
    amount: int = Field(nullable=False, description="Amount in cents, never negative")
    expense_date: date = Field(nullable=False, index=True)
    budget_id: Optional[int] = Field(default=None, foreign_key="financial_budget.id", index=True)
    vendor: Optional[str] = Field(default=None, max_length=255)
    payment_method: Optional[str] = Field(default=None, max_length=32)
    created_by: str = Field(nullable=False, max_length=255, index=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)
