"""Financial category definitions."""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from ._columns import utcnow


class FinancialCategory(SQLModel, table=True):
    """Income or expense category used for budgeting and reporting.

    Categories form a single-level hierarchy through ``parent_id``.
    """

    __tablename__: ClassVar[str] = "financial_category"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, nullable=False, max_length=128)
    type: str = Field(default="expense", nullable=False, max_length=16, index=True)
    parent_id: Optional[int] = Field(default=None, foreign_key="financial_category.id", index=True)
    description: Optional[str] = Field(default=None)
    is_active: bool = Field(default=True, nullable=False)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)
