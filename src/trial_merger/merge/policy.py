"""
Merge policy: what a repeat sighting may change on a cached record.

- append-only facts (titles, conditions, identifiers, people...) are only
  written on the first sighting;
- recency-gated scalars (enrolment, status) are overwritten on a repeat
  sighting only while the row's freshness flag is set;
- countries are merged by name, country-level fields always overwrite;
- the registry entry's Created/Updated dates drive the freshness flag.

NOTE: an *earlier* creation date unlocking overwrites of unrelated scalars
is kept for compatibility with existing merged output and is pending
product-owner review.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from trial_merger import vocab
from trial_merger.logging import get_trial_logger
from trial_merger.merge.cache import MergeCache
from trial_merger.schema.items import Item


@dataclass
class RowScratch:
    """Per-row merge state; replaced by every ``begin_row``."""

    record: Item
    key: str
    is_repeat: bool
    fresher: bool = False
    country_code: Optional[str] = None
    country_name: Optional[str] = None
    current_country: Optional[Item] = None


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _as_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def normalize_country_name(name: Optional[str]) -> Optional[str]:
    """``"united KINGDOM"`` -> ``"United Kingdom"``, ``"guinea-bissau"`` -> ``"Guinea-Bissau"``."""
    if not name or not name.strip():
        return None
    words = []
    for word in name.strip().split():
        words.append("-".join(part[:1].upper() + part[1:].lower() for part in word.split("-")))
    return " ".join(words)


class MergePolicy:
    def __init__(self, cache: MergeCache):
        self.cache = cache
        self.log = get_trial_logger("policy")

    # ------------------------------------------------------------------
    # Append-only facts
    # ------------------------------------------------------------------

    def append_allowed(self, scratch: RowScratch) -> bool:
        return not scratch.is_repeat

    def append(self, scratch: RowScratch, child_type: str, fields: dict, owner: Optional[Item] = None) -> Optional[Item]:
        """Attach ``child_type`` to ``owner`` (default: the record) on first sighting only."""
        if not self.append_allowed(scratch):
            return None
        return self.cache.attach(owner or scratch.record, child_type, fields)

    # ------------------------------------------------------------------
    # Scalars
    # ------------------------------------------------------------------

    def set_scalar(self, record: Item, field: str, value: Any, scratch: RowScratch) -> bool:
        if value is None or value == "":
            return False
        if scratch.is_repeat and not scratch.fresher:
            return False
        current = record.get(field)
        if scratch.is_repeat and current is not None and current != value:
            self.log.debug("Overwriting %s: %r -> %r", field, current, value)
        record.set(field, value)
        return True

    def set_later_date(self, record: Item, field: str, value: Optional[date], scratch: RowScratch) -> bool:
        """Start/end dates: a repeat sighting may only move them forward."""
        if value is None:
            return False
        stored = _as_date(record.get(field))
        if scratch.is_repeat and stored is not None and value <= stored:
            return False
        record.set(field, _iso(value))
        return True

    # ------------------------------------------------------------------
    # Registry entry and freshness
    # ------------------------------------------------------------------

    def registry_entry(self, record: Item) -> Optional[Item]:
        return self.cache.find(record, "DataObject", "objectType", vocab.O_TYPE_TRIAL_REGISTRY_ENTRY)

    def apply_registry_entry(
        self,
        record: Item,
        created: Optional[date],
        updated: Optional[date],
        url: Optional[str],
        title: Optional[str],
        scratch: RowScratch,
    ) -> Optional[Item]:
        entry = self.registry_entry(record) if scratch.is_repeat else None

        if entry is None:
            if scratch.is_repeat:
                self.log.debug("Record has no registry entry yet, creating it")
            entry = self._create_registry_entry(record, url, title)
            if entry is None:
                return None
            self._add_object_date(entry, vocab.DATE_TYPE_CREATED, created)
            self._add_object_date(entry, vocab.DATE_TYPE_UPDATED, updated)
            return entry

        if created is not None:
            created_od = self.cache.find(entry, "ObjectDate", "dateType", vocab.DATE_TYPE_CREATED)
            if created_od is None:
                self._add_object_date(entry, vocab.DATE_TYPE_CREATED, created)
            else:
                stored = _as_date(created_od.get("startDate"))
                if stored is not None and created < stored:
                    created_od.set("startDate", _iso(created))
                    scratch.fresher = True
                    self.log.debug("Earlier registration date %s (was %s)", created, stored)

        if updated is not None:
            updated_od = self.cache.find(entry, "ObjectDate", "dateType", vocab.DATE_TYPE_UPDATED)
            if updated_od is None:
                self._add_object_date(entry, vocab.DATE_TYPE_UPDATED, updated)
            else:
                stored = _as_date(updated_od.get("startDate"))
                if stored is not None and updated > stored:
                    updated_od.set("startDate", _iso(updated))
                    scratch.fresher = True
                    self.log.debug("Later update date %s (was %s)", updated, stored)

        return entry

    def _create_registry_entry(self, record: Item, url: Optional[str], title: Optional[str]) -> Optional[Item]:
        display = f"{title} - {vocab.O_TITLE_REGISTRY_ENTRY}" if title else vocab.O_TITLE_REGISTRY_ENTRY
        entry = self.cache.attach(
            record,
            "DataObject",
            {
                "objectType": vocab.O_TYPE_TRIAL_REGISTRY_ENTRY,
                "objectClass": vocab.O_CLASS_TEXT,
                "title": display,
            },
        )
        if entry is not None and url:
            self.cache.attach(entry, "ObjectInstance", {"url": url, "resourceType": vocab.O_RESOURCE_TYPE_WEB_TEXT})
        return entry

    def _add_object_date(self, entry: Item, date_type: str, value: Optional[date]) -> Optional[Item]:
        if value is None:
            return None
        return self.cache.attach(entry, "ObjectDate", {"dateType": date_type, "startDate": _iso(value)})

    # ------------------------------------------------------------------
    # Countries
    # ------------------------------------------------------------------

    def merge_country(
        self,
        record: Item,
        name: Optional[str],
        status: Optional[str],
        decision_date: Optional[date],
        scratch: RowScratch,
    ) -> Optional[Item]:
        """
        First sighting appends. A repeat sighting updates the country with
        the same name in place, or appends it when the record lacks it.
        """
        country_name = normalize_country_name(name)
        if country_name is None:
            return None

        existing = self.cache.find(record, "StudyCountry", "countryName", country_name) if scratch.is_repeat else None
        if existing is None:
            if scratch.is_repeat:
                self.log.debug("Country %s not on record yet, adding it", country_name)
            return self.cache.attach(
                record,
                "StudyCountry",
                {
                    "countryName": country_name,
                    "status": status,
                    "ethicsCommitteeDecisionDate": _iso(decision_date),
                },
            )

        if status:
            existing.set("status", status)
        if decision_date is not None:
            existing.set("ethicsCommitteeDecisionDate", _iso(decision_date))
        return existing

    def apply_ethics_reviews(self, record: Item, reviews, scratch: RowScratch) -> Optional[Item]:
        """Ethics review outcomes overwrite the row's own country entry."""
        if not reviews or not scratch.country_name:
            return None

        country = scratch.current_country or self.cache.find(
            record, "StudyCountry", "countryName", scratch.country_name
        )
        if country is None:
            self.log.warning("No country entry for %s, ethics reviews dropped", scratch.country_name)
            return None

        for review in reviews:
            if review.status:
                country.set("status", review.status)
            if review.approval_date is not None:
                country.set("ethicsCommitteeDecisionDate", _iso(review.approval_date))
        return country
