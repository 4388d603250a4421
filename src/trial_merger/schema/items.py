from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from trial_merger.identity.uuid_factory import SequenceSource, uuid_for_item


# -----------------------------
# Generic record
# -----------------------------

@dataclass(slots=True, eq=False)
class Item:
    """
    One record of any declared class (``Study``, ``StudyCountry``,
    ``ObjectDate``...).

    Attributes hold scalar values; references hold a single other Item;
    collections hold ordered lists of other Items. Equality is identity:
    two Items with the same content are still two records.
    """
    class_name: str
    identifier: str
    seq: int
    attributes: Dict[str, Any] = field(default_factory=dict)
    references: Dict[str, "Item"] = field(default_factory=dict)
    collections: Dict[str, List["Item"]] = field(default_factory=dict)

    def get(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self.attributes[name] = value

    def reference(self, name: str) -> Optional["Item"]:
        return self.references.get(name)

    def set_reference(self, name: str, item: "Item") -> None:
        self.references[name] = item

    def collection(self, name: str) -> List["Item"]:
        return self.collections.get(name, [])

    def add_to_collection(self, name: str, item: "Item") -> None:
        bucket = self.collections.setdefault(name, [])
        if not any(existing is item for existing in bucket):
            bucket.append(item)

    def __repr__(self) -> str:
        return f"Item({self.class_name}, {self.identifier[:8]}, seq={self.seq})"


class ItemFactory:
    """Creates Items with run-unique, reproducible identifiers."""

    def __init__(self, sequence: Optional[SequenceSource] = None):
        self._sequence = sequence or SequenceSource()

    def create(self, class_name: str, fields: Optional[Dict[str, Any]] = None) -> Item:
        seq = self._sequence.next()
        item = Item(
            class_name=class_name,
            identifier=uuid_for_item(class_name, seq),
            seq=seq,
        )
        for name, value in (fields or {}).items():
            if value is None or value == "":
                continue
            item.set(name, value)
        return item
