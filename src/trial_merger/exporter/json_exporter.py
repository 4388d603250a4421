"""
json_exporter.py
JSON serialization and sinks for flushed trial records.

JSON lines export items flat: references and collections are written as
the identifiers of the items they point to, so every line stands alone.
The JSON array export nests each record's sub-records under their
collections instead; an item already on the current path is written as its
identifier, so cycles (study <-> sub-record) never recurse.
"""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from trial_merger.logging import get_logger
from trial_merger.schema.items import Item

log = get_logger("json_exporter")


def _to_json_compatible(obj: Any) -> Any:
    """
    Recursively convert objects into JSON-compatible structures.

    Rules:
    - Primitives pass through
    - dates -> ISO strings
    - Items -> their identifier (only reached when nested)
    - dataclasses / dicts -> dict (recursively)
    - list / tuple / set -> list (recursively)
    - Anything else -> str(obj)
    """
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj

    if isinstance(obj, date):
        return obj.isoformat()

    if isinstance(obj, Item):
        return obj.identifier

    if is_dataclass(obj):
        return {k: _to_json_compatible(v) for k, v in asdict(obj).items()}

    if isinstance(obj, dict):
        return {str(k): _to_json_compatible(v) for k, v in obj.items()}

    if isinstance(obj, (list, tuple, set)):
        return [_to_json_compatible(v) for v in obj]

    return str(obj)


def item_to_dict(item: Item) -> Dict[str, Any]:
    return {
        "class": item.class_name,
        "identifier": item.identifier,
        "attributes": _to_json_compatible(item.attributes),
        "references": {name: ref.identifier for name, ref in item.references.items()},
        "collections": {
            name: [member.identifier for member in members]
            for name, members in item.collections.items()
        },
    }


def serialize_item(item: Item) -> str:
    return json.dumps(item_to_dict(item), ensure_ascii=False, sort_keys=True)


# -----------------------------
# Sinks
# -----------------------------

class ListSink:
    """Collects flushed items in memory, in the order received."""

    def __init__(self):
        self.items: List[Item] = []

    def accept(self, item: Item) -> None:
        self.items.append(item)

    def of_class(self, class_name: str) -> List[Item]:
        return [i for i in self.items if i.class_name == class_name]

    def __len__(self) -> int:
        return len(self.items)


class JsonLinesSink:
    """
    Writes one JSON object per flushed item.

    Use as a context manager, or call ``close()`` when done.
    """

    def __init__(self, output_path: str | Path):
        self.path = Path(output_path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self.path.open("w", encoding="utf-8")
        self.count = 0

    def accept(self, item: Item) -> None:
        self._fh.write(serialize_item(item))
        self._fh.write("\n")
        self.count += 1

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()
            log.info("Wrote %d items to %s", self.count, self.path)

    def __enter__(self) -> "JsonLinesSink":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def read_json_lines(path: str | Path) -> List[Dict[str, Any]]:
    with Path(path).open("r", encoding="utf-8") as f:
        return [json.loads(line) for line in f if line.strip()]


def nested_item_to_dict(item: Item, _path: Optional[Set[int]] = None) -> Dict[str, Any]:
    """Like item_to_dict, with collection members embedded as full objects."""
    path = (_path or set()) | {id(item)}
    data = item_to_dict(item)
    data["collections"] = {
        name: [
            member.identifier if id(member) in path else nested_item_to_dict(member, path)
            for member in members
        ]
        for name, members in item.collections.items()
    }
    return data


def export_records_json(records: List[Item], output_path: Optional[str | Path], indent: int = 2) -> None:
    """Write composite records, sub-records embedded, as one JSON array."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    log.info("Exporting %d records to: %s", len(records), output_path)

    with output_path.open("w", encoding="utf-8") as f:
        f.write(json.dumps([nested_item_to_dict(r) for r in records], indent=indent, ensure_ascii=False))
