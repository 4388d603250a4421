from datetime import date

import pytest

from trial_merger.core.exceptions import FlushedRecordError, IdentityCollisionError, StructuralRowError
from trial_merger.exporter import ListSink
from trial_merger.identity.resolver import Regime
from trial_merger.merge import MergeSession, RowMerger
from trial_merger.rows import CountryEntry, EthicsReview, TrialRow


def euctr_row(trial_id, registered=None, planned=None, conditions=(), countries=(), status=None, reviews=()):
    return TrialRow(
        source="EUCTR",
        regime=Regime.SPLIT_BY_COUNTRY,
        primary_id=trial_id,
        registration_date=registered,
        planned_enrolment=planned,
        conditions=list(conditions),
        countries=[CountryEntry(c) for c in countries],
        status=status,
        ethics_reviews=list(reviews),
    )


def created_date(session, record):
    entry = session.policy.registry_entry(record)
    od = session.cache.find(entry, "ObjectDate", "dateType", "Created")
    return od.get("startDate")


# -----------------------------
# begin_row / flush
# -----------------------------

def test_split_rows_are_one_trial():
    session = MergeSession()
    first = session.begin_row("ABCDEFGHIJKLMN-01", regime=Regime.SPLIT_BY_COUNTRY)
    second = session.begin_row("ABCDEFGHIJKLMN-02", regime=Regime.SPLIT_BY_COUNTRY)

    assert first.canonical_key == second.canonical_key == "ABCDEFGHIJKLMN"
    assert first.is_repeat_sighting is False
    assert second.is_repeat_sighting is True
    assert second.record is first.record


def test_flush_twice_yields_nothing_the_second_time():
    session = MergeSession()
    session.begin_row("ABCDEFGHIJKLMN-01", regime=Regime.SPLIT_BY_COUNTRY)
    session.begin_row("NCT00000001", regime=Regime.MULTI_SCHEME_ALIAS)

    assert len(session.flush()) == 2
    assert session.flush() == []


def test_row_after_flush_is_an_error():
    session = MergeSession()
    session.begin_row("ABCDEFGHIJKLMN-01", regime=Regime.SPLIT_BY_COUNTRY)
    session.flush()

    with pytest.raises(FlushedRecordError):
        session.begin_row("ABCDEFGHIJKLMN-02", regime=Regime.SPLIT_BY_COUNTRY)


def test_flushed_trial_refused_through_another_of_its_ids():
    session = MergeSession()
    session.begin_row("NCT00000001", "EUCTR2020-001234-56", regime=Regime.MULTI_SCHEME_ALIAS)
    assert len(session.flush()) == 1

    with pytest.raises(FlushedRecordError):
        session.begin_row("2020-001234-56-DE", regime=Regime.SPLIT_BY_COUNTRY)
    with pytest.raises(FlushedRecordError):
        session.begin_row("NCT00000001", regime=Regime.MULTI_SCHEME_ALIAS)

    assert session.flush() == []


def test_collision_creates_nothing():
    session = MergeSession()
    session.begin_row("NCT00000001", "EUCTR2020-001234-56", regime=Regime.MULTI_SCHEME_ALIAS)

    with pytest.raises(IdentityCollisionError):
        session.begin_row("NCT00000002", "EUCTR2020-001234-56", regime=Regime.MULTI_SCHEME_ALIAS)

    assert "NCT00000002" not in session.cache
    assert len(session.flush()) == 1


def test_record_reachable_under_learned_key_is_flushed_once():
    session = MergeSession()
    national = session.begin_row("2020-001234-56-DE", regime=Regime.SPLIT_BY_COUNTRY)
    agg = session.begin_row("EUCTR2020-001234-56-FR", "NCT99999999", regime=Regime.MULTI_SCHEME_ALIAS)

    assert agg.is_repeat_sighting is True
    assert session.cache.get("NCT99999999") is national.record

    us = session.begin_row("NCT99999999", None, regime=Regime.MULTI_SCHEME_ALIAS)
    assert us.record is national.record

    assert session.flush() == [national.record]


def test_single_regime_needs_scheme():
    session = MergeSession()
    with pytest.raises(StructuralRowError):
        session.begin_row("2023-500001-11-00", regime=Regime.SINGLE)


# -----------------------------
# Freshness
# -----------------------------

def test_earlier_registration_corrects_date_and_unlocks_enrolment():
    session = MergeSession()
    merger = RowMerger(session)
    merger.merge(euctr_row("2020-001234-56-DE", date(2020, 5, 1), planned=100))
    ident = merger.merge(euctr_row("2020-001234-56-FR", date(2020, 3, 1), planned=250))

    assert ident.scratch.fresher is True
    assert created_date(session, ident.record) == "2020-03-01"
    assert ident.record.get("plannedEnrolment") == 250


@pytest.mark.parametrize("later", [date(2020, 5, 1), date(2020, 6, 1)])
def test_later_or_equal_registration_changes_nothing(later):
    session = MergeSession()
    merger = RowMerger(session)
    merger.merge(euctr_row("2020-001234-56-DE", date(2020, 5, 1), planned=100))
    ident = merger.merge(euctr_row("2020-001234-56-FR", later, planned=250))

    assert ident.scratch.fresher is False
    assert created_date(session, ident.record) == "2020-05-01"
    assert ident.record.get("plannedEnrolment") == 100


def test_later_update_date_sets_freshness():
    session = MergeSession()
    merger = RowMerger(session)
    first = TrialRow(
        source="ICTRP",
        regime=Regime.MULTI_SCHEME_ALIAS,
        primary_id="NCT00000010",
        last_update=date(2021, 1, 1),
        status="Recruiting",
    )
    second = TrialRow(
        source="CTG",
        regime=Regime.MULTI_SCHEME_ALIAS,
        primary_id="NCT00000010",
        last_update=date(2022, 1, 1),
        status="Completed",
    )
    merger.merge(first)
    ident = merger.merge(second)

    assert ident.scratch.fresher is True
    assert ident.record.get("status") == "Completed"


def test_missing_created_date_is_added_without_freshness():
    session = MergeSession()
    merger = RowMerger(session)
    merger.merge(euctr_row("2020-001234-56-DE", None, planned=100))
    ident = merger.merge(euctr_row("2020-001234-56-FR", date(2020, 3, 1), planned=250))

    assert ident.scratch.fresher is False
    assert created_date(session, ident.record) == "2020-03-01"
    assert ident.record.get("plannedEnrolment") == 100


# -----------------------------
# Start and completion dates
# -----------------------------

def dated_row(trial_id, start=None, completion=None):
    row = euctr_row(trial_id, date(2020, 5, 1))
    row.start_date = start
    row.completion_date = completion
    return row


@pytest.mark.parametrize("offset", [-1, 0])
def test_repeat_with_earlier_or_equal_dates_keeps_stored_ones(offset):
    session = MergeSession()
    merger = RowMerger(session)
    merger.merge(dated_row("2020-001234-56-DE", date(2020, 6, 10), date(2022, 1, 10)))
    ident = merger.merge(
        dated_row("2020-001234-56-FR", date(2020, 6, 10 + offset), date(2022, 1, 10 + offset))
    )

    assert ident.record.get("startDate") == "2020-06-10"
    assert ident.record.get("completionDate") == "2022-01-10"


def test_repeat_with_later_dates_replaces_them():
    session = MergeSession()
    merger = RowMerger(session)
    merger.merge(dated_row("2020-001234-56-DE", date(2020, 6, 10), date(2022, 1, 10)))
    ident = merger.merge(dated_row("2020-001234-56-FR", date(2020, 7, 1), date(2023, 3, 1)))

    assert ident.record.get("startDate") == "2020-07-01"
    assert ident.record.get("completionDate") == "2023-03-01"


def test_repeat_without_dates_keeps_stored_ones():
    session = MergeSession()
    merger = RowMerger(session)
    merger.merge(dated_row("2020-001234-56-DE", date(2020, 6, 10)))
    ident = merger.merge(dated_row("2020-001234-56-FR", None, date(2022, 1, 10)))

    assert ident.record.get("startDate") == "2020-06-10"
    assert ident.record.get("completionDate") == "2022-01-10"


# -----------------------------
# Append-only and countries
# -----------------------------

def test_conditions_only_from_first_sighting():
    session = MergeSession()
    merger = RowMerger(session)
    merger.merge(euctr_row("2020-001234-56-DE", date(2020, 5, 1), conditions=["Asthma"]))
    merger.merge(euctr_row("2020-001234-56-FR", date(2020, 3, 1), conditions=["COPD"]))

    sink = ListSink()
    session.flush(sink)
    assert [c.get("originalValue") for c in sink.of_class("StudyCondition")] == ["Asthma"]


def test_countries_merged_by_name():
    session = MergeSession()
    merger = RowMerger(session)
    merger.merge(
        euctr_row("2020-001234-56-DE", date(2020, 5, 1), countries=["Germany", "France"], status="Ongoing")
    )
    ident = merger.merge(euctr_row("2020-001234-56-FR", date(2020, 6, 1), status="Completed"))

    countries = session.cache.items(ident.record, "StudyCountry")
    assert [c.get("countryName") for c in countries] == ["Germany", "France"]
    assert countries[0].get("status") == "Ongoing"
    assert countries[1].get("status") == "Completed"


def test_new_country_appended_on_repeat():
    session = MergeSession()
    merger = RowMerger(session)
    merger.merge(euctr_row("2020-001234-56-DE", date(2020, 5, 1), countries=["Germany"]))
    ident = merger.merge(euctr_row("2020-001234-56-IT", date(2020, 6, 1), status="Ongoing"))

    names = [c.get("countryName") for c in session.cache.items(ident.record, "StudyCountry")]
    assert names == ["Germany", "Italy"]


def test_ethics_reviews_update_current_country():
    session = MergeSession()
    merger = RowMerger(session)
    merger.merge(euctr_row("2020-001234-56-DE", date(2020, 5, 1), countries=["Germany", "France"]))
    ident = merger.merge(
        euctr_row(
            "2020-001234-56-FR",
            date(2020, 6, 1),
            reviews=[EthicsReview("Approved", date(2020, 7, 15))],
        )
    )

    france = session.cache.find(ident.record, "StudyCountry", "countryName", "France")
    assert france.get("status") == "Approved"
    assert france.get("ethicsCommitteeDecisionDate") == "2020-07-15"


def test_identifiers_and_sources_recorded():
    session = MergeSession()
    merger = RowMerger(session)
    row = TrialRow(
        source="CTG",
        regime=Regime.MULTI_SCHEME_ALIAS,
        primary_id="NCT00000020",
        alias_field="EUCTR2019-000111-22|ACME-42",
        public_title="A trial",
    )
    ident = merger.merge(row)
    merger.merge(euctr_row("2019-000111-22-DE", date(2019, 1, 1)))

    ids = {i.get("identifierValue"): i.get("identifierType") for i in session.cache.items(ident.record, "StudyIdentifier")}
    assert ids == {
        "NCT00000020": "Trial registry ID",
        "2019-000111-22": "Trial registry ID",
        "ACME-42": "Other ID",
    }
    sources = [s.get("sourceName") for s in session.cache.items(ident.record, "StudySource")]
    assert sources == ["CTG", "EUCTR"]
    assert ident.record.get("displayTitle") == "A trial"


def test_failed_first_sighting_is_discarded(monkeypatch):
    session = MergeSession()
    merger = RowMerger(session)

    def boom(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(session.policy, "merge_country", boom)

    with pytest.raises(RuntimeError):
        merger.merge(euctr_row("2020-001234-56-DE", date(2020, 5, 1), countries=["Germany"]))

    assert "2020-001234-56" not in session.cache
    assert session.flush() == []
