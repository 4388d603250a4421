# src/trial_merger/identity/uuid_factory.py
from __future__ import annotations

import hashlib
import itertools
from typing import Iterator


# -----------------------------
# Core deterministic hashing
# -----------------------------

def _stable_hash(key: str) -> str:
    # SHA1 is fine for identity fingerprints (not security).
    return hashlib.sha1(key.encode("utf-8")).hexdigest()


def _uuid_from_key(key: str) -> str:
    """
    Convert an arbitrary key string into a canonical UUID-like value (8-4-4-4-12)
    based on SHA1. Deterministic for the same key.
    """
    h32 = _stable_hash(key)[:32]
    return f"{h32[0:8]}-{h32[8:12]}-{h32[12:16]}-{h32[16:20]}-{h32[20:32]}"


# -----------------------------
# Sequences
# -----------------------------

class SequenceSource:
    """
    Monotonically increasing integers, one source per run.

    Items and identifier triples draw their creation sequence number from
    here; the number (not the mutable content) is their identity.
    """

    def __init__(self, start: int = 1):
        self._counter: Iterator[int] = itertools.count(start)

    def next(self) -> int:
        return next(self._counter)


# -----------------------------
# Identities
# -----------------------------

def uuid_for_item(class_name: str, seq: int) -> str:
    """
    Identifier of the n-th item created in a run.

    Stable across runs that read the same inputs in the same order.
    """
    return _uuid_from_key(f"ITEM|{(class_name or 'UNK').strip()}|{seq}")


__all__ = [
    "SequenceSource",
    "uuid_for_item",
]
