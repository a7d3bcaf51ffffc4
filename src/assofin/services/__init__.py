"""Service module exports."""

from . import (
    aggregation,
    dashboard,
    forecasting,
    ledger_records,
    reports,
    subscriptions,
)

__all__ = [
    "aggregation",
    "dashboard",
    "forecasting",
    "ledger_records",
    "reports",
    "subscriptions",
]
