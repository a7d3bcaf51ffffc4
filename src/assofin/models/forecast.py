"""Forecast rows."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from ..periods import Period, period_from_columns
from ._columns import utcnow


class Forecast(SQLModel, table=True):
    """Predicted amount for a category over one period."""

    __tablename__: ClassVar[str] = "financial_forecast"
    __table_args__ = (
        UniqueConstraint(
            "category_id", "period", "year", "month", "quarter", name="uq_forecast_category_period"
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    category_id: int = Field(foreign_key="financial_category.id", nullable=False, index=True)
    period: str = Field(nullable=False, max_length=16, index=True)
    year: int = Field(nullable=False, index=True)
    month: Optional[int] = Field(default=None)
    quarter: Optional[int] = Field(default=None)
    forecasted_amount: int = Field(nullable=False, description="Signed amount in cents")
    confidence: str = Field(default="medium", nullable=False, max_length=8)
    based_on: str = Field(default="estimate", nullable=False, max_length=16)
    notes: Optional[str] = Field(default=None)
    created_by: str = Field(nullable=False, max_length=255)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    @property
    def period_descriptor(self) -> Period:
        return period_from_columns(self.period, self.year, self.month, self.quarter)
