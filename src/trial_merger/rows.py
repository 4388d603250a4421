from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from trial_merger.identity.ids import Scheme
from trial_merger.identity.resolver import Regime


@dataclass(slots=True)
class CountryEntry:
    name: str
    status: Optional[str] = None
    decision_date: Optional[date] = None


@dataclass(slots=True)
class EthicsReview:
    status: Optional[str] = None
    approval_date: Optional[date] = None


@dataclass(slots=True)
class TrialRow:
    """
    One registry row, already decoded into typed values.

    Readers produce these; ``RowMerger`` consumes them. Everything except
    the identity fields is optional.
    """
    source: str
    regime: Regime
    primary_id: str
    alias_field: Optional[str] = None
    primary_scheme: Optional[Scheme] = None

    public_title: Optional[str] = None
    scientific_title: Optional[str] = None
    conditions: List[str] = field(default_factory=list)

    sponsor: Optional[str] = None
    funders: List[str] = field(default_factory=list)
    people: List[str] = field(default_factory=list)

    status: Optional[str] = None
    planned_enrolment: Optional[int] = None
    actual_enrolment: Optional[int] = None

    registration_date: Optional[date] = None
    last_update: Optional[date] = None
    start_date: Optional[date] = None
    completion_date: Optional[date] = None
    url: Optional[str] = None

    countries: List[CountryEntry] = field(default_factory=list)
    ethics_reviews: List[EthicsReview] = field(default_factory=list)

    # Reader line / element number, for log messages
    lineno: Optional[int] = None
