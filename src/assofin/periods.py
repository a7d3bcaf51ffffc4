"""Period descriptors and calendar arithmetic.

A :class:`Period` names a month, a quarter or a year. Aggregations turn it into
a half-open date range ``[start, end)`` so that filters never overlap.
"""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date
from typing import Optional

from .errors import ValidationError

MONTH = "month"
QUARTER = "quarter"
YEAR = "year"
PERIOD_KINDS = (MONTH, QUARTER, YEAR)

MONTHLY = "monthly"
QUARTERLY = "quarterly"
YEARLY = "yearly"
DURATION_KINDS = (MONTHLY, QUARTERLY, YEARLY)

_DURATION_MONTHS = {MONTHLY: 1, QUARTERLY: 3, YEARLY: 12}


@dataclass(frozen=True)
class Period:
    """A month, quarter or year used as an aggregation window."""

    kind: str
    year: int
    number: Optional[int] = None

    def __post_init__(self) -> None:
        if self.kind not in PERIOD_KINDS:
            raise ValidationError(f"Unknown period kind: {self.kind!r}", field="period")
        if not 1 <= self.year <= 9998:
            raise ValidationError(f"year out of range: {self.year}", field="year")
        if self.kind == YEAR:
            if self.number is not None:
                raise ValidationError("a yearly period has no number", field="period")
            return
        upper = 12 if self.kind == MONTH else 4
        if self.number is None or not 1 <= self.number <= upper:
            raise ValidationError(
                f"{self.kind} number must be between 1 and {upper}", field="period"
            )

    @classmethod
    def for_month(cls, year: int, month: int) -> "Period":
        return cls(MONTH, year, month)

    @classmethod
    def for_quarter(cls, year: int, quarter: int) -> "Period":
        return cls(QUARTER, year, quarter)

    @classmethod
    def for_year(cls, year: int) -> "Period":
        return cls(YEAR, year)

    @property
    def month(self) -> Optional[int]:
        return self.number if self.kind == MONTH else None

    @property
    def quarter(self) -> Optional[int]:
        return self.number if self.kind == QUARTER else None

    @property
    def start(self) -> date:
        return period_to_date_range(self)[0]

    @property
    def end(self) -> date:
        """Exclusive end date."""
        return period_to_date_range(self)[1]

    def contains(self, value: date) -> bool:
        start, end = period_to_date_range(self)
        return start <= value < end

    def covers(self, other: "Period") -> bool:
        """Return True when ``other`` lies entirely inside this period."""

        start, end = period_to_date_range(self)
        other_start, other_end = period_to_date_range(other)
        return start <= other_start and other_end <= end

    def previous(self) -> "Period":
        return previous_period(self)

    def next(self) -> "Period":
        return next_period(self)

    @property
    def label(self) -> str:
        if self.kind == MONTH:
            return f"{self.year}-{self.number:02d}"
        if self.kind == QUARTER:
            return f"Q{self.number} {self.year}"
        return str(self.year)

    def to_dict(self) -> dict[str, object]:
        start, end = period_to_date_range(self)
        return {
            "kind": self.kind,
            "year": self.year,
            "number": self.number,
            "label": self.label,
            "start": start.isoformat(),
            "end": end.isoformat(),
        }


def period_from_columns(
    kind: str, year: int, month: Optional[int] = None, quarter: Optional[int] = None
) -> Period:
    """Build a :class:`Period` from the ``period/year/month/quarter`` table columns."""

    if kind == MONTH:
        return Period(MONTH, year, month)
    if kind == QUARTER:
        return Period(QUARTER, year, quarter)
    return Period(kind, year)


def _first_of_month_offset(year: int, month: int, offset: int) -> date:
    index = year * 12 + (month - 1) + offset
    return date(index // 12, index % 12 + 1, 1)


def period_to_date_range(period: Period) -> tuple[date, date]:
    """Return ``(start, end_exclusive)`` for the period."""

    if period.kind == MONTH:
        start = date(period.year, period.number, 1)
        return start, _first_of_month_offset(period.year, period.number, 1)
    if period.kind == QUARTER:
        first_month = (period.number - 1) * 3 + 1
        start = date(period.year, first_month, 1)
        return start, _first_of_month_offset(period.year, first_month, 3)
    return date(period.year, 1, 1), date(period.year + 1, 1, 1)


def _shift(period: Period, step: int) -> Period:
    if period.kind == YEAR:
        return Period(YEAR, period.year + step)
    size = 12 if period.kind == MONTH else 4
    index = period.year * size + (period.number - 1) + step
    return Period(period.kind, index // size, index % size + 1)


def previous_period(period: Period) -> Period:
    """Same kind, one unit backward (January → December of the prior year)."""

    return _shift(period, -1)


def next_period(period: Period) -> Period:
    return _shift(period, 1)


def add_months(value: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's last day."""

    index = value.year * 12 + (value.month - 1) + months
    year, month = index // 12, index % 12 + 1
    day = min(value.day, monthrange(year, month)[1])
    return date(year, month, day)


def add_duration(value: date, duration: str) -> date:
    """Advance ``value`` by one subscription duration.

    Month-end overflow clamps: 2024-01-31 + monthly is 2024-02-29 and
    2024-02-29 + yearly is 2025-02-28.
    """

    try:
        months = _DURATION_MONTHS[duration]
    except KeyError:
        raise ValidationError(f"Unknown duration: {duration!r}", field="duration") from None
    return add_months(value, months)


def window_for(period: Optional[Period], year: Optional[int]) -> Optional[Period]:
    """Resolve the optional ``period``/``year`` pair used by aggregations.

    A period wins over a year; a year contradicting the period is rejected.
    """

    if period is not None:
        if year is not None and year != period.year:
            raise ValidationError(
                f"year {year} does not match period {period.label}", field="year"
            )
        return period
    if year is not None:
        return Period.for_year(year)
    return None
