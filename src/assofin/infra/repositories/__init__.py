"""Concrete repository implementations using SQLModel."""

from .ledger import SQLModelLedgerRepository

__all__ = ["SQLModelLedgerRepository"]
