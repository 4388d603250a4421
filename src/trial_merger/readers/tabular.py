"""
Delimited-text readers: US registry, EU new registry, aggregator.

Each reader checks the header once, then yields one ``TrialRow`` per data
line. Cell values are stripped; empty cells become ``None``.
"""

from __future__ import annotations

import csv
import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from trial_merger import vocab
from trial_merger.config import DEFAULT_ALIAS_DELIMITER
from trial_merger.core.exceptions import StructuralRowError
from trial_merger.dates import parse_registry_date
from trial_merger.identity.ids import Scheme, TokenKind, classify_token, scheme_of
from trial_merger.identity.resolver import Regime
from trial_merger.logging import get_logger
from trial_merger.rows import CountryEntry, TrialRow

log = get_logger("readers")

MAX_COUNT = 2 ** 31 - 1

US_COLUMNS = (
    "NCT Number",
    "Other IDs",
    "Study Title",
    "Conditions",
    "Sponsor",
    "Collaborators",
    "Enrollment",
    "Study Status",
    "First Posted",
    "Last Update Posted",
    "Start Date",
    "Completion Date",
    "Locations",
    "Study URL",
)

AGGREGATOR_COLUMNS = (
    "TrialID",
    "SecondaryIDs",
    "Public_title",
    "Scientific_title",
    "Condition",
    "Primary_sponsor",
    "Target_size",
    "Recruitment_Status",
    "Date_registration",
    "Last_Refreshed_on",
    "Countries",
    "web_address",
)

EU_NEW_COLUMNS = (
    "Trial number",
    "Title of the trial",
    "Medical conditions",
    "Overall trial status",
    "Number of participants enrolled",
    "Location(s) and recruitment status",
)

# US statuses whose enrolment figure is the actual one
US_FINAL_STATUSES = {"COMPLETED", "TERMINATED", "WITHDRAWN"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _split(value: Optional[str], pattern: str) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in re.split(pattern, value) if part and part.strip()]


def parse_count(value: Optional[str]) -> Optional[int]:
    """Non-negative whole number that fits a 32-bit int, else ``None``."""
    value = _clean(value)
    if value is None:
        return None
    m = re.search(r"\d+", value)
    if not m:
        return None
    count = int(m.group(0))
    if count > MAX_COUNT:
        log.warning("Enrolment count out of range: %s", value)
        return None
    return count


def _read_table(
    path: Union[str, Path],
    required: Iterable[str],
    delimiter: str = ",",
) -> Iterator[Tuple[int, Dict[str, Optional[str]]]]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)

    with path.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f, delimiter=delimiter)
        headers = [h.strip() for h in (reader.fieldnames or [])]
        missing = [col for col in required if col not in headers]
        if missing:
            raise StructuralRowError(f"{path.name}: missing required column(s): {', '.join(missing)}")
        reader.fieldnames = headers

        for row in reader:
            yield reader.line_num, {k: _clean(v) for k, v in row.items() if k is not None}


# ---------------------------------------------------------------------------
# US registry
# ---------------------------------------------------------------------------

def _us_country(location: str) -> str:
    # "Facility, City, State, Zip, Country"
    return location.rsplit(",", 1)[-1].strip()


def read_us_registry(path: Union[str, Path], delimiter: str = ",") -> Iterator[TrialRow]:
    for lineno, rec in _read_table(path, US_COLUMNS, delimiter):
        status = rec.get("Study Status")
        enrolment = parse_count(rec.get("Enrollment"))
        is_final = (status or "").upper() in US_FINAL_STATUSES

        yield TrialRow(
            source=vocab.REGISTRY_US,
            regime=Regime.MULTI_SCHEME_ALIAS,
            primary_id=rec.get("NCT Number") or "",
            alias_field=rec.get("Other IDs"),
            primary_scheme=Scheme.US,
            public_title=rec.get("Study Title"),
            conditions=_split(rec.get("Conditions"), r"\|"),
            sponsor=rec.get("Sponsor"),
            funders=_split(rec.get("Collaborators"), r"\|"),
            status=status,
            planned_enrolment=None if is_final else enrolment,
            actual_enrolment=enrolment if is_final else None,
            registration_date=parse_registry_date(rec.get("First Posted")),
            last_update=parse_registry_date(rec.get("Last Update Posted")),
            start_date=parse_registry_date(rec.get("Start Date")),
            completion_date=parse_registry_date(rec.get("Completion Date")),
            url=rec.get("Study URL"),
            countries=[CountryEntry(_us_country(loc)) for loc in _split(rec.get("Locations"), r"\|")],
            lineno=lineno,
        )


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------

def _aggregator_scheme(trial_id: str) -> Optional[Scheme]:
    token = classify_token(trial_id)
    if token.kind in (TokenKind.AMBIGUOUS, TokenKind.CONFLICTING):
        return None
    return scheme_of(token.kind)


def read_aggregator(
    path: Union[str, Path],
    delimiter: str = ",",
    alias_delimiter: str = DEFAULT_ALIAS_DELIMITER,
) -> Iterator[TrialRow]:
    """
    Aggregator rows re-publish national registry records. Secondary ids
    come ``;``/``,`` separated and are re-joined on ``alias_delimiter``.
    """
    for lineno, rec in _read_table(path, AGGREGATOR_COLUMNS, delimiter):
        trial_id = rec.get("TrialID") or ""
        secondary = _split(rec.get("SecondaryIDs"), r"[;,]")

        yield TrialRow(
            source=vocab.REGISTRY_AGGREGATOR,
            regime=Regime.MULTI_SCHEME_ALIAS,
            primary_id=trial_id,
            alias_field=alias_delimiter.join(secondary) or None,
            primary_scheme=_aggregator_scheme(trial_id),
            public_title=rec.get("Public_title"),
            scientific_title=rec.get("Scientific_title"),
            conditions=_split(rec.get("Condition"), r";"),
            sponsor=rec.get("Primary_sponsor"),
            status=rec.get("Recruitment_Status"),
            planned_enrolment=parse_count(rec.get("Target_size")),
            registration_date=parse_registry_date(rec.get("Date_registration")),
            last_update=parse_registry_date(rec.get("Last_Refreshed_on")),
            url=rec.get("web_address"),
            countries=[CountryEntry(name) for name in _split(rec.get("Countries"), r";")],
            lineno=lineno,
        )


# ---------------------------------------------------------------------------
# EU new registry
# ---------------------------------------------------------------------------

def _eu_new_locations(value: Optional[str]) -> List[CountryEntry]:
    # "Germany:Recruiting, France:Authorised"
    entries = []
    for part in _split(value, r","):
        name, _, status = part.partition(":")
        if name.strip():
            entries.append(CountryEntry(name.strip(), _clean(status)))
    return entries


def read_eu_new(path: Union[str, Path], delimiter: str = ",") -> Iterator[TrialRow]:
    for lineno, rec in _read_table(path, EU_NEW_COLUMNS, delimiter):
        yield TrialRow(
            source=vocab.REGISTRY_EU_NEW,
            regime=Regime.SINGLE,
            primary_id=rec.get("Trial number") or "",
            primary_scheme=Scheme.EU_NEW,
            public_title=rec.get("Title of the trial"),
            conditions=_split(rec.get("Medical conditions"), r"[;,]"),
            status=rec.get("Overall trial status"),
            planned_enrolment=parse_count(rec.get("Number of participants enrolled")),
            countries=_eu_new_locations(rec.get("Location(s) and recruitment status")),
            lineno=lineno,
        )
