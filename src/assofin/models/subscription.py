"""Subscription-type templates and member subscriptions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import ClassVar, Optional

from sqlmodel import Field, SQLModel

from ._columns import utcnow


@dataclass(frozen=True, slots=True)
class SubscriptionTerms:
    """Terms copied into a subscription when it is created.

    A subscription keeps its own copy so later edits to the type template do
    not rewrite history.
    """

    label: str
    amount: int
    duration: str


class SubscriptionType(SQLModel, table=True):
    """Administrator-defined template consumed by the assignment flow."""

    __tablename__: ClassVar[str] = "subscription_type"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False, max_length=128, index=True)
    description: Optional[str] = Field(default=None)
    amount: int = Field(nullable=False, description="Amount in cents")
    duration: str = Field(nullable=False, max_length=16)
    is_active: bool = Field(default=True, nullable=False, index=True)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    @property
    def terms(self) -> SubscriptionTerms:
        return SubscriptionTerms(label=self.name, amount=self.amount, duration=self.duration)


class MemberSubscription(SQLModel, table=True):
    """A member's paid subscription over ``[start_date, end_date)``."""

    __tablename__: ClassVar[str] = "member_subscription"

    id: Optional[int] = Field(default=None, primary_key=True)
    member_name: Optional[str] = Field(default=None, max_length=255)
    member_email: str = Field(nullable=False, max_length=255, index=True)

    # Snapshot of the terms at creation time (see ``terms``)
    type_label: str = Field(nullable=False, max_length=128)
    amount: int = Field(nullable=False, description="Amount in cents")
    duration: str = Field(nullable=False, max_length=16)
    subscription_type_id: Optional[int] = Field(
        default=None, foreign_key="subscription_type.id", index=True
    )

    payment_date: date = Field(nullable=False)
    start_date: date = Field(nullable=False, index=True)
    end_date: date = Field(nullable=False, index=True)
    status: str = Field(default="active", nullable=False, max_length=16, index=True)
    payment_method: Optional[str] = Field(default=None, max_length=32)
    notes: Optional[str] = Field(default=None)
    renewal_count: int = Field(default=0, nullable=False)
    version: int = Field(default=1, nullable=False)
    created_by: str = Field(nullable=False, max_length=255)
    created_at: datetime = Field(default_factory=utcnow, nullable=False)
    updated_at: datetime = Field(default_factory=utcnow, nullable=False)

    @property
    def terms(self) -> SubscriptionTerms:
        return SubscriptionTerms(label=self.type_label, amount=self.amount, duration=self.duration)
