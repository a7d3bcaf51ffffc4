"""Revenue records (donations, grants, sponsorships)."""

from __future__ import annotations

from datetime import date, datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from ._columns import utcnow


class Revenue(SQLModel, table=True):
    """Money received from a named source."""

    __tablename__: ClassVar[str] = "financial_revenue"

    id: Optional[int] = Field(default=None, primary_key=True)
    revenue_type: str = Field(nullable=False, max_length=16, index=True)
    source_name: str = Field(nullable=False, max_length=255, index=True)
    source_contact: Optional[str] = Field(default=None, max_length=255)
    amount: int = Field(nullable=False, description="Amount in cents")
    received_date: date = Field(nullable=False, index=True)
    category_id: Optional[int] = Field(default=None, foreign_key="financial_category.id", index=True)
    payment_method: Optional[str] = Field(default=None, max_length=32)
    receipt_reference: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = Field(default=None)
    created_by: str = Field(nullable=False, max_length=255)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)
