from __future__ import annotations

import pytest

from assofin.errors import ValidationError
from assofin.money import average_cents, ensure_cents, format_cents, percentage, sum_cents


def test_average_of_nothing_is_zero():
    assert average_cents(0, 0) == 0
    assert average_cents(500, 0) == 0


def test_average_floors_to_whole_cents():
    assert average_cents(201, 2) == 100
    assert average_cents(300, 3) == 100


def test_percentage_zero_whole_is_zero():
    assert percentage(500, 0) == 0.0
    assert percentage(1, 3) == 33.33
    assert percentage(50000, 100000) == 50.0


def test_sum_cents_stays_integer():
    total = sum_cents([30000, 20000])
    assert total == 50000
    assert isinstance(total, int)
    assert sum_cents([]) == 0


@pytest.mark.parametrize("value", [True, 12.5, "100", None])
def test_ensure_cents_rejects_non_integers(value):
    with pytest.raises(ValidationError) as excinfo:
        ensure_cents(value, "amount")
    assert excinfo.value.field == "amount"


def test_ensure_cents_negative_only_when_allowed():
    with pytest.raises(ValidationError):
        ensure_cents(-1, "amount")
    assert ensure_cents(-1, "forecasted_amount", allow_negative=True) == -1


def test_format_cents():
    assert format_cents(123456) == "1,234.56 EUR"
    assert format_cents(-5) == "-0.05 EUR"
    assert format_cents(100, "USD") == "1.00 USD"
