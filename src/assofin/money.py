"""Integer-cents helpers.

Amounts are always ``int`` counts of the smallest currency unit. Floats never
enter a stored or computed amount; only rates (percentages) are floats.
"""

from __future__ import annotations

from typing import Iterable

from .errors import ValidationError

Cents = int


def ensure_cents(value: object, field: str, *, allow_negative: bool = False) -> Cents:
    """Return ``value`` as cents or raise ``ValidationError`` naming ``field``."""

    # bool is an int subclass; True must not silently become one cent.
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer amount in cents", field=field)
    if not allow_negative and value < 0:
        raise ValidationError(f"{field} must be positive or zero", field=field)
    return value


def sum_cents(values: Iterable[Cents]) -> Cents:
    return sum(values, 0)


def average_cents(total: Cents, count: int) -> Cents:
    """Floor average in cents; 0 when there is nothing to average."""

    if count <= 0:
        return 0
    return total // count


def percentage(part: int, whole: int) -> float:
    """Return ``part / whole * 100`` rounded to 2 decimals, 0.0 when ``whole`` is 0."""

    if whole == 0:
        return 0.0
    return round(part * 100 / whole, 2)


def format_cents(cents: Cents, currency: str = "EUR") -> str:
    """Render cents for display, e.g. ``123456 -> '1,234.56 EUR'``."""

    sign = "-" if cents < 0 else ""
    units, remainder = divmod(abs(cents), 100)
    return f"{sign}{units:,}.{remainder:02d} {currency}"
