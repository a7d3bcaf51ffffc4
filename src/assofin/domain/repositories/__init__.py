"""Repository protocol definitions for domain layer."""

from .ledger import LedgerFilter, LedgerRepository

__all__ = ["LedgerFilter", "LedgerRepository"]
