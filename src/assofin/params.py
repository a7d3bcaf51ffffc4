"""Parse raw request parameters (query strings, JSON fields) into engine types.

The request layer hands over plain strings and numbers; everything here raises
:class:`~assofin.errors.ValidationError` naming the offending field instead of
coercing bad input.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Optional

from .errors import ValidationError
from .money import Cents, ensure_cents
from .periods import DURATION_KINDS, MONTH, QUARTER, YEAR, Period

MIN_YEAR = 2000
MAX_YEAR = 2100

REPORT_KINDS = ("monthly", "quarterly", "yearly")

_YEAR_RE = re.compile(r"^\d{4}$")
_QUARTER_RE = re.compile(r"^Q([1-4])$", re.IGNORECASE)
_MONTH_RE = re.compile(r"^M(\d{1,2})$", re.IGNORECASE)
_YEAR_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_ANNUAL_TOKENS = {"annual", "year", "yearly", "y"}
_TRUE_TOKENS = {"1", "true", "yes", "on"}
_FALSE_TOKENS = {"0", "false", "no", "off", ""}


def _blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def parse_year(raw: Any, field: str = "year", *, required: bool = False) -> Optional[int]:
    """Parse a 4-digit year in [2000, 2100]."""

    if _blank(raw):
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a 4-digit year", field=field)
    text = str(raw).strip()
    if not _YEAR_RE.match(text):
        raise ValidationError(f"{field} must be a 4-digit year", field=field)
    return check_year(int(text), field)


def check_year(year: int, field: str = "year") -> int:
    """Range-check an already numeric year; services call this on direct input."""

    if isinstance(year, bool) or not isinstance(year, int):
        raise ValidationError(f"{field} must be a 4-digit year", field=field)
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError(
            f"{field} must be between {MIN_YEAR} and {MAX_YEAR}", field=field
        )
    return year


def parse_period(
    raw: Any,
    year: Optional[int],
    field: str = "period",
    *,
    year_field: str = "year",
    required: bool = False,
) -> Optional[Period]:
    """Parse a period token relative to ``year``.

    Accepted tokens: ``Q1``..``Q4``, ``M1``..``M12``, ``YYYY-MM`` (carries its
    own year) and ``annual``/``year``.
    """

    if _blank(raw):
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    text = str(raw).strip()

    match = _YEAR_MONTH_RE.match(text)
    if match:
        own_year = parse_year(match.group(1), year_field)
        if year is not None and own_year != year:
            raise ValidationError(
                f"{field} {text} does not match {year_field} {year}", field=year_field
            )
        return _build(MONTH, own_year, int(match.group(2)), field)

    if year is None:
        raise ValidationError(f"{year_field} is required with {field}", field=year_field)

    match = _QUARTER_RE.match(text)
    if match:
        return _build(QUARTER, year, int(match.group(1)), field)
    match = _MONTH_RE.match(text)
    if match:
        return _build(MONTH, year, int(match.group(1)), field)
    if text.lower() in _ANNUAL_TOKENS:
        return _build(YEAR, year, None, field)
    raise ValidationError(f"Unrecognised {field}: {text!r}", field=field)


def _build(kind: str, year: int, number: Optional[int], field: str) -> Period:
    try:
        return Period(kind, year, number)
    except ValidationError as exc:
        raise ValidationError(exc.message, field=field) from exc


def parse_report_kind(raw: Any, field: str = "type") -> str:
    text = "" if raw is None else str(raw).strip().lower()
    if text not in REPORT_KINDS:
        raise ValidationError(
            f"{field} must be one of {', '.join(REPORT_KINDS)}", field=field
        )
    return text


def parse_period_number(kind: str, raw: Any, field: str = "period") -> Optional[int]:
    """Range-check the period number of a report (ignored for yearly reports)."""

    if kind == "yearly":
        return None
    upper = 12 if kind == "monthly" else 4
    number = parse_int(raw, field, required=True)
    if not 1 <= number <= upper:
        raise ValidationError(f"{field} must be between 1 and {upper}", field=field)
    return number


def parse_int(raw: Any, field: str, *, required: bool = False) -> Optional[int]:
    if _blank(raw):
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be an integer", field=field)
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ValidationError(f"{field} must be an integer", field=field) from None


def parse_cents(raw: Any, field: str = "amount", *, allow_negative: bool = False) -> Cents:
    """Parse an integer amount in cents (JSON number or digit string)."""

    if isinstance(raw, str):
        value = parse_int(raw, field, required=True)
    else:
        value = raw
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    return ensure_cents(value, field, allow_negative=allow_negative)


def parse_date(raw: Any, field: str, *, required: bool = True) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (``date``/``datetime`` values pass through)."""

    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if _blank(raw):
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    try:
        return date.fromisoformat(str(raw).strip())
    except ValueError:
        raise ValidationError(f"{field} must be a date formatted YYYY-MM-DD", field=field) from None


def parse_duration(raw: Any, field: str = "duration") -> str:
    text = "" if raw is None else str(raw).strip().lower()
    if text not in DURATION_KINDS:
        raise ValidationError(
            f"{field} must be one of {', '.join(DURATION_KINDS)}", field=field
        )
    return text


def parse_choice(raw: Any, choices: tuple[str, ...], field: str, *, required: bool = True) -> Optional[str]:
    if _blank(raw):
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    text = str(raw).strip().lower()
    if text not in choices:
        raise ValidationError(f"{field} must be one of {', '.join(choices)}", field=field)
    return text


def parse_bool(raw: Any, field: str, *, default: bool = False) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in _TRUE_TOKENS:
        return True
    if text in _FALSE_TOKENS:
        return False
    raise ValidationError(f"{field} must be a boolean", field=field)


def require_text(raw: Any, field: str) -> str:
    if _blank(raw) or not isinstance(raw, str):
        raise ValidationError(f"{field} is required", field=field)
    return raw.strip()
