from datetime import date

from trial_merger.exporter import JsonLinesSink, ListSink, item_to_dict, nested_item_to_dict, read_json_lines
from trial_merger.exporter.json_exporter import _to_json_compatible
from trial_merger.schema.items import ItemFactory
from trial_merger.schema.linker import EntityLinker


def _study_with_country():
    linker = EntityLinker(factory=ItemFactory())
    study = linker.factory.create("Study", {"displayTitle": "T"})
    country = linker.create_and_link(study, "StudyCountry", {"countryName": "Germany"})
    return study, country


def test_item_to_dict_flattens_links_to_identifiers():
    study, country = _study_with_country()

    d = item_to_dict(country)
    assert d["class"] == "StudyCountry"
    assert d["references"] == {"study": study.identifier}

    d = item_to_dict(study)
    assert d["attributes"] == {"displayTitle": "T"}
    assert d["collections"] == {"studyCountries": [country.identifier]}


def test_to_json_compatible_handles_dates_and_items():
    study, _ = _study_with_country()
    assert _to_json_compatible({"d": date(2020, 1, 2), "i": study, "s": ("a",)}) == {
        "d": "2020-01-02",
        "i": study.identifier,
        "s": ["a"],
    }


def test_json_lines_sink_writes_one_line_per_item(tmp_path):
    study, country = _study_with_country()
    out = tmp_path / "nested" / "items.jsonl"

    with JsonLinesSink(out) as sink:
        sink.accept(country)
        sink.accept(study)

    assert sink.count == 2
    lines = read_json_lines(out)
    assert [l["class"] for l in lines] == ["StudyCountry", "Study"]


def test_list_sink_filters_by_class():
    study, country = _study_with_country()
    sink = ListSink()
    sink.accept(country)
    sink.accept(study)
    assert sink.of_class("Study") == [study]
    assert len(sink) == 2


def test_nested_item_to_dict_embeds_sub_records_without_cycles():
    linker = EntityLinker(factory=ItemFactory())
    study = linker.factory.create("Study", {"displayTitle": "T"})
    entry = linker.create_and_link(study, "DataObject", {"objectType": "Trial registry entry"})
    linker.create_and_link(entry, "ObjectDate", {"dateType": "Created", "startDate": "2020-05-01"})
    title = linker.create_and_link(study, "Title", {"text": "T"})

    d = nested_item_to_dict(study)

    obj = d["collections"]["objects"][0]
    assert obj["attributes"]["objectType"] == "Trial registry entry"
    assert obj["references"] == {"study": study.identifier}
    assert obj["collections"]["objectDates"][0]["attributes"] == {"dateType": "Created", "startDate": "2020-05-01"}

    embedded_title = d["collections"]["titles"][0]
    assert embedded_title["identifier"] == title.identifier
    assert embedded_title["collections"]["studies"] == [study.identifier]
