import pytest

from trial_merger.core.exceptions import LinkageConfigError
from trial_merger.schema.items import ItemFactory
from trial_merger.schema.linker import EntityLinker
from trial_merger.schema.metadata import (
    NamedCollection,
    SchemaMetadata,
    SingleBackReference,
    load_schema_metadata,
)


def _study_and_linker(metadata=None):
    factory = ItemFactory()
    linker = EntityLinker(metadata, factory)
    return factory.create("Study"), linker


def test_back_reference_links_both_sides():
    study, linker = _study_and_linker()
    cond = linker.create_and_link(study, "StudyCondition", {"originalValue": "Asthma"})

    assert cond is not None
    assert cond.reference("study") is study
    assert study.collection("studyConditions") == [cond]
    assert cond.get("originalValue") == "Asthma"


def test_object_owned_types_attach_to_data_objects():
    study, linker = _study_and_linker()
    obj = linker.create_and_link(study, "DataObject", {"objectType": "Trial registry entry"})
    od = linker.create_and_link(obj, "ObjectDate", {"dateType": "Created"})

    assert od.reference("dataObject") is obj
    assert obj.reference("study") is study
    assert obj.collection("objectDates") == [od]


def test_named_collection_links_symmetrically():
    study, linker = _study_and_linker()
    org = linker.create_and_link(study, "Organisation", {"name": "Acme Pharma"})

    assert study.collection("organisations") == [org]
    assert org.collection("studies") == [study]

    obj = linker.create_and_link(study, "DataObject", {})
    title = linker.create_and_link(obj, "Title", {"text": "Registry page"})
    assert obj.collection("titles") == [title]
    assert title.collection("objects") == [obj]


def test_unknown_type_is_dropped():
    study, linker = _study_and_linker()
    assert linker.create_and_link(study, "NoSuchType", {}) is None
    assert study.collections == {}


def test_category_mismatch_is_dropped():
    study, linker = _study_and_linker()
    # ObjectDate belongs to a data object, not a study
    assert linker.create_and_link(study, "ObjectDate", {"dateType": "Created"}) is None
    assert study.collection("objectDates") == []


def test_missing_reverse_collection_is_dropped():
    metadata = SchemaMetadata({"Person": NamedCollection("people", {"study": "studies"})})
    factory = ItemFactory()
    linker = EntityLinker(metadata, factory)
    obj = factory.create("DataObject")

    assert linker.create_and_link(obj, "Person", {"fullName": "A. Person"}) is None


def test_items_get_distinct_identifiers():
    factory = ItemFactory()
    a = factory.create("Study")
    b = factory.create("Study")
    assert a.identifier != b.identifier
    assert a != b
    assert len(a.identifier) == 36


def test_empty_field_values_are_not_set():
    item = ItemFactory().create("StudyCountry", {"countryName": "France", "status": None, "x": ""})
    assert item.attributes == {"countryName": "France"}


def test_linkage_for_unknown_type_raises():
    with pytest.raises(LinkageConfigError):
        SchemaMetadata().linkage_for("NoSuchType")


def test_load_schema_metadata_from_yaml(tmp_path):
    path = tmp_path / "schema.yml"
    path.write_text(
        "owner_categories:\n"
        "  Study: study\n"
        "types:\n"
        "  StudyCountry: {kind: back_reference, owner: study, reverse: studyCountries}\n"
        "  Title: {kind: collection, field: titles, reverse: {study: studies}}\n",
        encoding="utf-8",
    )
    metadata = load_schema_metadata(path)

    assert metadata.linkage_for("StudyCountry") == SingleBackReference("study", "studyCountries")
    assert metadata.linkage_for("Title") == NamedCollection("titles", {"study": "studies"})
    assert metadata.category_of("DataObject") is None
    with pytest.raises(LinkageConfigError):
        metadata.linkage_for("StudyCondition")


def test_load_schema_metadata_rejects_unknown_kind(tmp_path):
    path = tmp_path / "schema.yml"
    path.write_text("types:\n  StudyCountry: {kind: magic}\n", encoding="utf-8")
    with pytest.raises(LinkageConfigError):
        load_schema_metadata(path)
