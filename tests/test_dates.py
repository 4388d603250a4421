# tests/test_dates.py

from __future__ import annotations

from datetime import date

from trial_merger.dates import parse_registry_date


def test_iso_date():
    assert parse_registry_date("2020-03-12") == date(2020, 3, 12)


def test_iso_datetime_keeps_date_part():
    assert parse_registry_date("2020-03-12T10:15:00") == date(2020, 3, 12)


def test_year_month_is_first_of_month():
    assert parse_registry_date("2021-07") == date(2021, 7, 1)


def test_day_first_slashes():
    assert parse_registry_date("5/11/2019") == date(2019, 11, 5)


def test_day_month_name_year():
    assert parse_registry_date("12 March 2020") == date(2020, 3, 12)
    assert parse_registry_date("1 Sept 2018") == date(2018, 9, 1)


def test_month_name_day_year():
    assert parse_registry_date("March 12, 2020") == date(2020, 3, 12)
    assert parse_registry_date("June 2015") == date(2015, 6, 1)


def test_blank_and_none():
    assert parse_registry_date(None) is None
    assert parse_registry_date("   ") is None


def test_unparseable_and_invalid():
    assert parse_registry_date("not a date") is None
    assert parse_registry_date("2020-02-30") is None


def test_date_passes_through():
    d = date(2022, 1, 1)
    assert parse_registry_date(d) is d
