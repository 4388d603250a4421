from __future__ import annotations

from typing import List, Optional

from trial_merger import vocab
from trial_merger.logging import get_trial_logger
from trial_merger.merge.policy import RowScratch, normalize_country_name
from trial_merger.merge.session import MergeSession, RowIdentity
from trial_merger.rows import TrialRow
from trial_merger.schema.items import Item


def _unique(values) -> List[str]:
    seen = {}
    for value in values or []:
        value = (value or "").strip()
        if value and value.lower() not in seen:
            seen[value.lower()] = value
    return list(seen.values())


class RowMerger:
    """
    Folds one ``TrialRow`` into the session's cached record.

    Field order matters: the registry entry runs before the scalars because
    it is what sets the freshness flag.
    """

    def __init__(self, session: MergeSession):
        self.session = session
        self.cache = session.cache
        self.policy = session.policy
        self.log = get_trial_logger("row_merger")

    def merge(self, row: TrialRow) -> RowIdentity:
        self.log.bind(row.primary_id)
        ident = self.session.begin_row(
            row.primary_id,
            row.alias_field,
            regime=row.regime,
            primary_scheme=row.primary_scheme,
        )
        self.log.bind(ident.canonical_key)

        try:
            self._apply(row, ident)
        except Exception:
            self.log.exception("Failed to merge row from %s (line %s)", row.source, row.lineno)
            self.session.discard(ident)
            raise

        return ident

    # ------------------------------------------------------------------

    def _apply(self, row: TrialRow, ident: RowIdentity) -> None:
        scratch = ident.scratch
        record = ident.record

        self._sources(record, row)
        self._identifiers(record, ident, scratch)
        display_title = self._titles(record, row, scratch)

        self.policy.apply_registry_entry(
            record, row.registration_date, row.last_update, row.url, display_title, scratch
        )

        self.policy.set_scalar(record, "status", row.status, scratch)
        self.policy.set_scalar(record, "plannedEnrolment", row.planned_enrolment, scratch)
        self.policy.set_scalar(record, "actualEnrolment", row.actual_enrolment, scratch)

        self.policy.set_later_date(record, "startDate", row.start_date, scratch)
        self.policy.set_later_date(record, "completionDate", row.completion_date, scratch)

        self._countries(record, row, scratch)

        for condition in _unique(row.conditions):
            self.policy.append(scratch, "StudyCondition", {"originalValue": condition})

        if row.sponsor:
            self.policy.append(
                scratch, "Organisation", {"contribType": vocab.CONTRIBUTOR_TYPE_SPONSOR, "name": row.sponsor.strip()}
            )
        for funder in _unique(row.funders):
            self.policy.append(
                scratch, "Organisation", {"contribType": vocab.CONTRIBUTOR_TYPE_STUDY_FUNDER, "name": funder}
            )
        for person in _unique(row.people):
            self.policy.append(scratch, "Person", {"fullName": person})

        self.policy.apply_ethics_reviews(record, row.ethics_reviews, scratch)

    def _sources(self, record: Item, row: TrialRow) -> None:
        # Every registry that reported the trial is recorded, on any sighting
        if self.cache.find(record, "StudySource", "sourceName", row.source) is None:
            self.cache.attach(record, "StudySource", {"sourceName": row.source})

    def _identifiers(self, record: Item, ident: RowIdentity, scratch: RowScratch) -> None:
        if not self.policy.append_allowed(scratch):
            return
        for value in ident.resolution.triple.ids():
            self.cache.attach(
                record,
                "StudyIdentifier",
                {"identifierValue": value, "identifierType": vocab.ID_TYPE_TRIAL_REGISTRY},
            )
        for value in ident.resolution.other_ids:
            self.cache.attach(
                record,
                "StudyIdentifier",
                {"identifierValue": value, "identifierType": vocab.ID_TYPE_OTHER},
            )

    def _titles(self, record: Item, row: TrialRow, scratch: RowScratch) -> Optional[str]:
        if self.policy.append_allowed(scratch):
            if row.public_title:
                self.cache.attach(record, "Title", {"titleType": vocab.TITLE_TYPE_PUBLIC, "text": row.public_title})
            if row.scientific_title:
                self.cache.attach(
                    record, "Title", {"titleType": vocab.TITLE_TYPE_SCIENTIFIC, "text": row.scientific_title}
                )
            record.set("displayTitle", row.public_title or row.scientific_title or vocab.TITLE_UNKNOWN)
        return record.get("displayTitle")

    def _countries(self, record: Item, row: TrialRow, scratch: RowScratch) -> None:
        current = normalize_country_name(scratch.country_name)

        if scratch.is_repeat and current:
            # Split-country rows only carry news about their own country
            scratch.current_country = self.policy.merge_country(record, current, row.status, None, scratch)
            return

        found_current = False
        seen = set()
        for entry in row.countries:
            name = normalize_country_name(entry.name)
            if not name or name in seen:
                continue
            seen.add(name)

            if name == current:
                found_current = True
                scratch.current_country = self.policy.merge_country(
                    record, name, entry.status or row.status, entry.decision_date, scratch
                )
            else:
                self.policy.merge_country(record, name, entry.status, entry.decision_date, scratch)

        if current and not found_current:
            scratch.current_country = self.policy.merge_country(record, current, row.status, None, scratch)
