# src/trial_merger/dates.py

from __future__ import annotations

import re
from datetime import date
from typing import Optional

from trial_merger.logging import get_logger

log = get_logger("dates")


# ---------------------------------------------------------------------------
# Month names
# ---------------------------------------------------------------------------

MONTHS = {
    "JAN": 1,
    "FEB": 2,
    "MAR": 3,
    "APR": 4,
    "MAY": 5,
    "JUN": 6,
    "JUL": 7,
    "AUG": 8,
    "SEP": 9,
    "SEPT": 9,
    "OCT": 10,
    "NOV": 11,
    "DEC": 12,
}


def _month_number(name: str) -> Optional[int]:
    key = name.strip().upper().rstrip(".")
    if key in MONTHS:
        return MONTHS[key]
    return MONTHS.get(key[:3])


# ---------------------------------------------------------------------------
# Registry formats
# ---------------------------------------------------------------------------

# 2020-03-12, 2020-03-12T10:00:00, 2020-03-12 10:00
RE_ISO = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
# 2020-03 (US registry month precision)
RE_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{1,2})$")
# 12/03/2020 (day first, as published by the aggregator)
RE_DMY_SLASH = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
# 12 March 2020
RE_D_MONTH_Y = re.compile(r"^(\d{1,2})\s+([A-Za-z]+\.?)\s+(\d{4})$")
# March 12, 2020 / March 2020
RE_MONTH_D_Y = re.compile(r"^([A-Za-z]+\.?)\s+(?:(\d{1,2}),?\s+)?(\d{4})$")


def _safe_date(year: int, month: int, day: int, raw: str) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        log.warning("Invalid date value: %r", raw)
        return None


def parse_registry_date(raw: Optional[str]) -> Optional[date]:
    """
    Parse the date shapes the registries publish.

    Returns ``None`` (and logs) when the string matches no known shape.
    Month-precision dates resolve to the first of the month.
    """
    if raw is None:
        return None
    if isinstance(raw, date):
        return raw

    s = str(raw).strip()
    if not s:
        return None

    m = RE_ISO.match(s)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)), s)

    m = RE_YEAR_MONTH.match(s)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), 1, s)

    m = RE_DMY_SLASH.match(s)
    if m:
        return _safe_date(int(m.group(3)), int(m.group(2)), int(m.group(1)), s)

    m = RE_D_MONTH_Y.match(s)
    if m:
        month = _month_number(m.group(2))
        if month:
            return _safe_date(int(m.group(3)), month, int(m.group(1)), s)

    m = RE_MONTH_D_Y.match(s)
    if m:
        month = _month_number(m.group(1))
        if month:
            day = int(m.group(2)) if m.group(2) else 1
            return _safe_date(int(m.group(3)), month, day, s)

    log.warning("Couldn't parse date: %r", s)
    return None
