import pytest

from trial_merger.core.exceptions import FlushedRecordError
from trial_merger.exporter import ListSink
from trial_merger.merge.cache import MergeCache


def test_open_creates_then_returns_existing():
    cache = MergeCache()
    first = cache.open("K1")
    assert cache.is_repeat_sighting() is False

    again = cache.open("K1")
    assert again is first
    assert cache.is_repeat_sighting() is True
    assert first.class_name == "Study"


def test_attach_and_find():
    cache = MergeCache()
    study = cache.open("K1")
    de = cache.attach(study, "StudyCountry", {"countryName": "Germany"})
    fr = cache.attach(study, "StudyCountry", {"countryName": "France"})

    assert cache.items(study, "StudyCountry") == [de, fr]
    assert cache.find(study, "StudyCountry", "countryName", "France") is fr
    assert cache.find(study, "StudyCountry", "countryName", "Spain") is None


def test_attach_dropped_by_linker_is_not_bucketed():
    cache = MergeCache()
    study = cache.open("K1")
    assert cache.attach(study, "NoSuchType", {}) is None
    assert cache.items(study, "NoSuchType") == []


def test_flush_emits_sub_records_then_records_once():
    cache = MergeCache()
    a = cache.open("A")
    cache.attach(a, "StudyCondition", {"originalValue": "Asthma"})
    b = cache.open("B")
    cache.bind_key("B-alias", b)

    sink = ListSink()
    records = cache.flush_all(sink)

    assert records == [a, b]
    assert [i.class_name for i in sink.items] == ["StudyCondition", "Study", "Study"]
    assert sink.items[1] is a and sink.items[2] is b


def test_second_flush_is_empty():
    cache = MergeCache()
    cache.open("A")
    assert len(cache.flush_all()) == 1

    sink = ListSink()
    assert cache.flush_all(sink) == []
    assert len(sink) == 0


def test_open_after_flush_raises():
    cache = MergeCache()
    record = cache.open("A")
    cache.bind_key("A2", record)
    cache.flush_all()

    with pytest.raises(FlushedRecordError):
        cache.open("A")
    with pytest.raises(FlushedRecordError):
        cache.open("A2")


def test_discard_removes_record_and_owned_sub_records():
    cache = MergeCache()
    keep = cache.open("KEEP")
    cache.attach(keep, "StudyCondition", {"originalValue": "Asthma"})

    gone = cache.open("GONE")
    cache.bind_key("GONE-ALIAS", gone)
    obj = cache.attach(gone, "DataObject", {"objectType": "x"})
    cache.attach(obj, "ObjectDate", {"dateType": "Created"})
    cache.attach(gone, "StudyCondition", {"originalValue": "COPD"})

    cache.discard("GONE")

    assert "GONE" not in cache
    assert "GONE-ALIAS" not in cache
    assert cache.items(obj, "ObjectDate") == []

    sink = ListSink()
    cache.flush_all(sink)
    assert [i.get("originalValue") for i in sink.of_class("StudyCondition")] == ["Asthma"]
    assert sink.of_class("Study") == [keep]


def test_len_counts_distinct_records():
    cache = MergeCache()
    r = cache.open("A")
    cache.bind_key("B", r)
    cache.open("C")
    assert len(cache) == 2
