"""
In-memory store of composite trial records.

Records are keyed by canonical key (a record may be reachable under more
than one key). Sub-records live in per-class buckets keyed by the owning
item's identifier, in insertion order.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Set

from trial_merger.core.exceptions import FlushedRecordError
from trial_merger.logging import get_logger
from trial_merger.schema.items import Item
from trial_merger.schema.linker import EntityLinker

log = get_logger("cache")

STUDY_CLASS = "Study"


class Sink(Protocol):
    def accept(self, item: Item) -> None:
        ...


class MergeCache:
    def __init__(self, linker: Optional[EntityLinker] = None):
        self.linker = linker or EntityLinker()
        self._records: Dict[str, Item] = {}
        self._buckets: Dict[str, Dict[str, List[Item]]] = {}
        self._flushed: Set[str] = set()
        self._last_was_repeat = False

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def open(self, key: str) -> Item:
        if key in self._flushed:
            raise FlushedRecordError("Row arrived after its trial was flushed", trial_id=key)

        record = self._records.get(key)
        if record is not None:
            self._last_was_repeat = True
            return record

        record = self.linker.factory.create(STUDY_CLASS)
        self._records[key] = record
        self._last_was_repeat = False
        log.debug("Opened new record %s for %s", record.identifier, key)
        return record

    def is_repeat_sighting(self) -> bool:
        return self._last_was_repeat

    def bind_key(self, key: str, record: Item) -> None:
        """Make ``record`` reachable under an additional canonical key."""
        current = self._records.get(key)
        if current is record:
            return
        if current is not None:
            log.warning("Key %s moved from record %s to %s", key, current.identifier, record.identifier)
        self._records[key] = record

    def get(self, key: str) -> Optional[Item]:
        return self._records.get(key)

    def keys_of(self, record: Item) -> List[str]:
        return [k for k, r in self._records.items() if r is record]

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len({id(r) for r in self._records.values()})

    # ------------------------------------------------------------------
    # Sub-records
    # ------------------------------------------------------------------

    def attach(self, owner: Item, child_type: str, fields: Optional[Dict[str, Any]] = None) -> Optional[Item]:
        child = self.linker.create_and_link(owner, child_type, fields)
        if child is None:
            return None
        self._buckets.setdefault(child_type, {}).setdefault(owner.identifier, []).append(child)
        return child

    def items(self, owner: Item, child_type: str) -> List[Item]:
        return list(self._buckets.get(child_type, {}).get(owner.identifier, []))

    def find(self, owner: Item, child_type: str, match_field: str, match_value: Any) -> Optional[Item]:
        for child in self._buckets.get(child_type, {}).get(owner.identifier, []):
            if child.get(match_field) == match_value:
                return child
        return None

    def discard(self, key: str) -> None:
        """
        Drop a record, every key bound to it and every sub-record owned by
        it or by its data objects.
        """
        record = self._records.get(key)
        if record is None:
            return

        owners = {record.identifier}
        owners.update(obj.identifier for obj in self.items(record, "DataObject"))

        for bucket in self._buckets.values():
            for owner_id in owners:
                bucket.pop(owner_id, None)

        for k in self.keys_of(record):
            del self._records[k]
        log.debug("Discarded record %s (%s)", record.identifier, key)

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    def flush_all(self, sink: Optional[Sink] = None) -> List[Item]:
        """
        Hand every sub-record, then every distinct record, to ``sink``.

        Records reachable under several keys are emitted once. Returns the
        records in creation order; a second call returns nothing.
        """
        sub_count = 0
        for bucket in self._buckets.values():
            for children in bucket.values():
                for child in children:
                    if sink is not None:
                        sink.accept(child)
                    sub_count += 1

        emitted: List[Item] = []
        seen: Set[int] = set()
        for record in sorted(self._records.values(), key=lambda r: r.seq):
            if id(record) in seen:
                continue
            seen.add(id(record))
            if sink is not None:
                sink.accept(record)
            emitted.append(record)

        self._flushed.update(self._records)
        self._records.clear()
        self._buckets.clear()
        self._last_was_repeat = False

        if emitted or sub_count:
            log.info("Flushed %d records (%d sub-records)", len(emitted), sub_count)
        return emitted
