# tests/test_dates_numbers.py

from datetime import date, datetime

import pytest

from utils.dates_numbers import (
    contains_text, format_iso_date, normalize_number, normalize_text, parse_date, to_number,
    validate_date_range,
)


@pytest.mark.parametrize("value, expected", [
    (12, 12.0),
    ("1,250.50", 1250.5),
    ("١٢٣", 123.0),
    ("15%", 15.0),
    (" 99 ر.س ", 99.0),
])
def test_normalize_number_accepts_common_formats(value, expected):
    assert normalize_number(value) == pytest.approx(expected)


@pytest.mark.parametrize("value", [None, "", "abc", True, float('nan'), {'a': 1}])
def test_normalize_number_rejects_bad_input(value):
    assert normalize_number(value) is None


def test_to_number_defaults_to_zero():
    assert to_number("abc") == 0.0
    assert to_number(None, default=5.0) == 5.0
    assert to_number("7") == 7.0


def test_parse_and_format_dates():
    assert parse_date("2024-03-01") == date(2024, 3, 1)
    assert parse_date(datetime(2024, 3, 1, 10, 30)) == date(2024, 3, 1)
    assert parse_date("") is None
    assert parse_date("not a date") is None
    assert format_iso_date(date(2024, 3, 1)) == "2024-03-01"
    assert format_iso_date(None) is None


def test_normalize_text_collapses_spaces():
    assert normalize_text("  مكيف   سبليت ") == "مكيف سبليت"
    assert normalize_text(None) == ""


def test_contains_text_is_case_insensitive():
    assert contains_text("INV-1001", "inv-10")
    assert not contains_text("INV-1001", "RET")
    assert contains_text("anything", "")
    assert contains_text("anything", None)


def test_validate_date_range():
    assert validate_date_range(date(2024, 1, 1), date(2024, 2, 1))
    assert not validate_date_range(date(2024, 2, 1), date(2024, 1, 1))
    assert validate_date_range(None, date(2024, 1, 1))

