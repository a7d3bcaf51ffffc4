"""Shared column helpers for financial tables."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


CATEGORY_TYPES = ("income", "expense")
REVENUE_TYPES = ("donation", "grant", "sponsorship", "other")
CONFIDENCE_LEVELS = ("low", "medium", "high")
FORECAST_BASES = ("historical", "estimate")
SUBSCRIPTION_STATUSES = ("active", "expired", "pending")
PAYMENT_METHODS = ("cash", "check", "bank_transfer", "card")
