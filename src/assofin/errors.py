"""Error kinds raised by the financial engine."""

from __future__ import annotations

from typing import Optional


class FinanceError(Exception):
    """Base class for every error the engine raises on purpose."""

    kind = "error"

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict[str, Optional[str]]:
        return {"error": self.kind, "message": self.message, "field": self.field}


class ValidationError(FinanceError, ValueError):
    """Malformed or out-of-range input supplied by the caller."""

    kind = "validation_error"


class NotFoundError(FinanceError, LookupError):
    """A referenced record does not exist (or is not usable)."""

    kind = "not_found"


class ConflictError(FinanceError):
    """The operation conflicts with the current state of stored records."""

    kind = "conflict"


class RepositoryError(FinanceError):
    """Opaque storage-layer failure, surfaced unchanged to the caller."""

    kind = "repository_error"
