"""
Static linkage table: how each sub-record class hangs off its owner.

Two shapes:

- ``SingleBackReference``: the child has one reference (``study`` or
  ``dataObject``) to its owner; the owner lists it in ``reverse_field``.
- ``NamedCollection``: the child may belong to a study or a data object
  (organisations, people, titles...). Both sides list each other.

The table ships in code and can be replaced from a YAML file of the form::

    owner_categories:
      Study: study
      DataObject: dataObject
    types:
      StudyCountry: {kind: back_reference, owner: study, reverse: studyCountries}
      Title: {kind: collection, field: titles, reverse: {study: studies}}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

import yaml

from trial_merger.core.exceptions import LinkageConfigError

CATEGORY_STUDY = "study"
CATEGORY_DATA_OBJECT = "dataObject"


@dataclass(frozen=True)
class SingleBackReference:
    owner_category: str
    reverse_field: str


@dataclass(frozen=True)
class NamedCollection:
    collection_field: str
    # owner category -> collection on the child listing its owners
    reverse_fields: Dict[str, str] = field(default_factory=dict)


Linkage = Union[SingleBackReference, NamedCollection]


def _shared(collection_field: str) -> NamedCollection:
    return NamedCollection(
        collection_field,
        {CATEGORY_STUDY: "studies", CATEGORY_DATA_OBJECT: "objects"},
    )


DEFAULT_OWNER_CATEGORIES: Dict[str, str] = {
    "Study": CATEGORY_STUDY,
    "DataObject": CATEGORY_DATA_OBJECT,
}

DEFAULT_LINKAGES: Dict[str, Linkage] = {
    # Study-owned
    "StudyCondition": SingleBackReference(CATEGORY_STUDY, "studyConditions"),
    "StudyCountry": SingleBackReference(CATEGORY_STUDY, "studyCountries"),
    "StudyFeature": SingleBackReference(CATEGORY_STUDY, "studyFeatures"),
    "StudyICD": SingleBackReference(CATEGORY_STUDY, "studyICDs"),
    "StudyIdentifier": SingleBackReference(CATEGORY_STUDY, "studyIdentifiers"),
    "StudySource": SingleBackReference(CATEGORY_STUDY, "studySources"),
    "DataObject": SingleBackReference(CATEGORY_STUDY, "objects"),
    # Object-owned
    "ObjectDate": SingleBackReference(CATEGORY_DATA_OBJECT, "objectDates"),
    "ObjectDescription": SingleBackReference(CATEGORY_DATA_OBJECT, "objectDescriptions"),
    "ObjectIdentifier": SingleBackReference(CATEGORY_DATA_OBJECT, "objectIdentifiers"),
    "ObjectInstance": SingleBackReference(CATEGORY_DATA_OBJECT, "objectInstances"),
    # Shared between studies and objects
    "Organisation": _shared("organisations"),
    "Person": _shared("people"),
    "Title": _shared("titles"),
    "Location": _shared("locations"),
    "Topic": _shared("topics"),
}


class SchemaMetadata:
    def __init__(
        self,
        linkages: Optional[Dict[str, Linkage]] = None,
        owner_categories: Optional[Dict[str, str]] = None,
    ):
        self._linkages = dict(DEFAULT_LINKAGES if linkages is None else linkages)
        self._owner_categories = dict(
            DEFAULT_OWNER_CATEGORIES if owner_categories is None else owner_categories
        )

    def linkage_for(self, type_name: str) -> Linkage:
        try:
            return self._linkages[type_name]
        except KeyError:
            raise LinkageConfigError(f"No linkage declared for type {type_name!r}") from None

    def category_of(self, class_name: str) -> Optional[str]:
        return self._owner_categories.get(class_name)


def _linkage_from_dict(type_name: str, raw: dict) -> Linkage:
    kind = (raw or {}).get("kind")
    if kind == "back_reference":
        owner, reverse = raw.get("owner"), raw.get("reverse")
        if not owner or not reverse:
            raise LinkageConfigError(f"{type_name}: back_reference needs 'owner' and 'reverse'")
        return SingleBackReference(str(owner), str(reverse))
    if kind == "collection":
        coll, reverse = raw.get("field"), raw.get("reverse")
        if not coll or not isinstance(reverse, dict):
            raise LinkageConfigError(f"{type_name}: collection needs 'field' and a 'reverse' mapping")
        return NamedCollection(str(coll), {str(k): str(v) for k, v in reverse.items()})
    raise LinkageConfigError(f"{type_name}: unknown linkage kind {kind!r}")


def load_schema_metadata(path: Union[str, Path]) -> SchemaMetadata:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Schema metadata file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    linkages = {
        str(name): _linkage_from_dict(str(name), raw)
        for name, raw in (data.get("types") or {}).items()
    }
    owner_categories = data.get("owner_categories") or None
    return SchemaMetadata(linkages, owner_categories)
