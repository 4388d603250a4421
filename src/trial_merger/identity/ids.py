"""
Registry identifier model.

Three registries issue ids for the same trial:

- US registry:   ``NCT`` + 8 digits
- EU new:        ``YYYY-NNNNNN-NN`` (optionally ``CTIS`` prefixed, ``-NN`` suffixed)
- EU old:        ``YYYY-NNNNNN-NN`` (optionally ``EUCTR`` prefixed, ``-CC`` country suffixed)

The two EU schemes share the same numeric shape, so an untagged EU id is
ambiguous. A ``RegistryIdentifierTriple`` holds one slot per scheme and is
shared by every alias that refers to it through the ``AliasIndex``.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from trial_merger.core.exceptions import IdentityCollisionError
from trial_merger.logging import get_logger

log = get_logger("ids")


class Scheme(str, enum.Enum):
    US = "us"
    EU_NEW = "eu_new"
    EU_OLD = "eu_old"


class TokenKind(str, enum.Enum):
    US = "us"
    EU_NEW = "eu_new"
    EU_OLD = "eu_old"
    AMBIGUOUS = "ambiguous"
    CONFLICTING = "conflicting"
    OTHER = "other"


P_US_ID = re.compile(r"NCT\d{8}", re.IGNORECASE)
P_EU_ID = re.compile(
    r"(?:(CTIS)|(EUCTR))?(\d{4}-\d{6}-\d{2})(?:-(\d{2})|-(.*))?",
    re.IGNORECASE,
)

_SLOT_ATTRS: Dict[Scheme, str] = {
    Scheme.US: "us_id",
    Scheme.EU_NEW: "eu_new_id",
    Scheme.EU_OLD: "eu_old_id",
}


@dataclass(frozen=True)
class ClassifiedToken:
    raw: str
    kind: TokenKind
    value: str


def classify_token(token: str) -> ClassifiedToken:
    """
    Decide which scheme a raw id token belongs to.

    EU ids lose their prefix/suffix: the stored value is always the bare
    ``YYYY-NNNNNN-NN`` part.
    """
    raw = (token or "").strip()
    if P_US_ID.fullmatch(raw):
        return ClassifiedToken(raw, TokenKind.US, raw.upper())

    m = P_EU_ID.fullmatch(raw)
    if not m:
        return ClassifiedToken(raw, TokenKind.OTHER, raw)

    new_prefix, old_prefix, eu_id, new_suffix, old_suffix = m.groups()
    says_new = new_prefix is not None or new_suffix is not None
    says_old = old_prefix is not None or old_suffix is not None

    if says_new and says_old:
        return ClassifiedToken(raw, TokenKind.CONFLICTING, eu_id)
    if says_new:
        return ClassifiedToken(raw, TokenKind.EU_NEW, eu_id)
    if says_old:
        return ClassifiedToken(raw, TokenKind.EU_OLD, eu_id)
    return ClassifiedToken(raw, TokenKind.AMBIGUOUS, eu_id)


def scheme_of(kind: TokenKind) -> Optional[Scheme]:
    try:
        return Scheme(kind.value)
    except ValueError:
        return None


def split_alias_field(raw: Optional[str], delimiter: str = "|") -> List[str]:
    """Split, strip and de-duplicate an alias field, keeping first-seen order."""
    if not raw:
        return []
    seen: Dict[str, None] = {}
    for part in raw.split(delimiter):
        part = part.strip()
        if part:
            seen.setdefault(part, None)
    return list(seen)


# ---------------------------------------------------------------------------
# Identifier triple
# ---------------------------------------------------------------------------

@dataclass(eq=False)
class RegistryIdentifierTriple:
    """
    Up to three registry ids for one logical trial.

    Slot values change over the object's life; ``seq`` does not, and is
    the only thing equality and hashing look at.
    """

    seq: int
    us_id: str = ""
    eu_new_id: str = ""
    eu_old_id: str = ""
    canonical_key: Optional[str] = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RegistryIdentifierTriple):
            return NotImplemented
        return self.seq == other.seq

    def __hash__(self) -> int:
        return hash((RegistryIdentifierTriple, self.seq))

    def get(self, scheme: Scheme) -> str:
        return getattr(self, _SLOT_ATTRS[scheme])

    def set(self, scheme: Scheme, value: Optional[str]) -> None:
        setattr(self, _SLOT_ATTRS[scheme], value or "")

    def slots(self) -> Dict[Scheme, str]:
        return {scheme: self.get(scheme) for scheme in Scheme}

    def ids(self) -> List[str]:
        """Non-empty ids, without duplicates."""
        out: List[str] = []
        for value in self.slots().values():
            if value and value not in out:
                out.append(value)
        return out

    def preferred_key(self) -> Optional[str]:
        """US id if present, else EU new, else EU old."""
        for scheme in (Scheme.US, Scheme.EU_NEW, Scheme.EU_OLD):
            if self.get(scheme):
                return self.get(scheme)
        return None

    def update_ids(self, us_id: str = "", eu_new_id: str = "", eu_old_id: str = "") -> None:
        """
        Reconcile the ids held here (freshly parsed) with a previously known
        id set for the same trial.

        Identical EU ids carry "unknown which scheme" meaning. Not guaranteed
        to change anything.
        """
        prev_new = (eu_new_id or "").strip()
        prev_old = (eu_old_id or "").strip()

        if prev_new and prev_old:
            if prev_new.lower() == prev_old.lower():
                self._reconcile_with_ambiguous_pair(prev_new)
            else:
                self._overwrite(Scheme.EU_NEW, prev_new)
                self._overwrite(Scheme.EU_OLD, prev_old)
        elif prev_new:
            # Previous set names this id as EU new only
            if _same(prev_new, self.eu_new_id) and _same(self.eu_new_id, self.eu_old_id):
                self.eu_old_id = ""
            else:
                self._overwrite(Scheme.EU_NEW, prev_new)
        elif prev_old:
            if _same(prev_old, self.eu_old_id) and _same(self.eu_old_id, self.eu_new_id):
                self.eu_new_id = ""
            else:
                self._overwrite(Scheme.EU_OLD, prev_old)

        prev_us = (us_id or "").strip()
        if prev_us:
            if self.us_id and prev_us != self.us_id:
                log.warning("US id about to be set (%s) differs from the one it replaces (%s)", prev_us, self.us_id)
            self.us_id = prev_us

    def _reconcile_with_ambiguous_pair(self, prev: str) -> None:
        if not self.eu_new_id and not self.eu_old_id:
            self.eu_new_id = prev
            self.eu_old_id = prev
            return

        if _same(self.eu_new_id, self.eu_old_id):
            if not _same(self.eu_new_id, prev):
                # The more recent id (year + sequence) is assumed to be EU new
                log.warning(
                    "Parsed EU ids identical (%s) but differ from previous identical pair (%s), keeping more recent as EU new",
                    self.eu_new_id,
                    prev,
                )
                if prev > self.eu_new_id:
                    self.eu_new_id = prev
                else:
                    self.eu_old_id = prev
            return

        if self.eu_new_id and self.eu_old_id:
            if not _same(prev, self.eu_new_id) and not _same(prev, self.eu_old_id):
                log.warning(
                    "Both parsed EU ids (%s, %s) differ from previous id %s",
                    self.eu_new_id,
                    self.eu_old_id,
                    prev,
                )
        elif not self.eu_new_id:
            # Equal means the parsed id is specifically the old one
            if not _same(prev, self.eu_old_id):
                self.eu_new_id = prev
        elif not _same(prev, self.eu_new_id):
            self.eu_old_id = prev

    def _overwrite(self, scheme: Scheme, value: str) -> None:
        current = self.get(scheme)
        if current and current != value:
            log.warning("%s id about to be set (%s) differs from the one it replaces (%s)", scheme.value, value, current)
        self.set(scheme, value)

    def __repr__(self) -> str:
        return (
            f"RegistryIdentifierTriple(seq={self.seq}, us={self.us_id!r}, "
            f"eu_new={self.eu_new_id!r}, eu_old={self.eu_old_id!r})"
        )


def _same(a: str, b: str) -> bool:
    return (a or "").lower() == (b or "").lower()


# ---------------------------------------------------------------------------
# Alias index
# ---------------------------------------------------------------------------

@dataclass
class AliasIndex:
    """Every id ever observed -> the triple that owns it."""

    _by_alias: Dict[str, RegistryIdentifierTriple] = field(default_factory=dict)

    def get(self, alias: str) -> Optional[RegistryIdentifierTriple]:
        if not alias:
            return None
        return self._by_alias.get(alias)

    def conflict_for(self, alias: str, triple: Optional[RegistryIdentifierTriple]) -> Optional[RegistryIdentifierTriple]:
        """The *other* triple owning ``alias``, if any."""
        owner = self.get(alias)
        if owner is None or (triple is not None and owner == triple):
            return None
        return owner

    def bind(self, alias: str, triple: RegistryIdentifierTriple) -> None:
        if not alias:
            return
        owner = self.conflict_for(alias, triple)
        if owner is not None:
            raise IdentityCollisionError(alias, trial_id=triple.canonical_key, bound_to=owner.canonical_key)
        self._by_alias[alias] = triple

    def aliases_of(self, triple: RegistryIdentifierTriple) -> List[str]:
        return [alias for alias, owner in self._by_alias.items() if owner == triple]

    def __contains__(self, alias: object) -> bool:
        return alias in self._by_alias

    def __len__(self) -> int:
        return len(self._by_alias)
