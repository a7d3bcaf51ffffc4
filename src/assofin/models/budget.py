"""Budget tables."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from ..periods import Period, period_from_columns
from ._columns import utcnow


class Budget(SQLModel, table=True):
    """Planned spend (in cents) for a category over one period."""

    __tablename__: ClassVar[str] = "financial_budget"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, max_length=128)
    category_id: int = Field(foreign_key="financial_category.id", nullable=False, index=True)
    period: str = Field(nullable=False, max_length=16, index=True)
    year: int = Field(nullable=False, index=True)
    month: Optional[int] = Field(default=None)
    quarter: Optional[int] = Field(default=None)
    amount: int = Field(nullable=False, description="Planned amount in cents")
    description: Optional[str] = Field(default=None)
    created_by: str = Field(nullable=False, max_length=255)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    @property
    def period_descriptor(self) -> Period:
        return period_from_columns(self.period, self.year, self.month, self.quarter)
