"""Blueprint exports."""

from . import financial

__all__ = ["financial"]
