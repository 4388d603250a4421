"""
Identity resolution: one row's raw ids -> canonical key.

Two regimes:

* split-by-country: ``<14-char trial id>-<2-letter country>`` rows, one per
  participating country. Rows sharing the trial id are the same trial.
* multi-scheme alias: a primary id plus a delimited list of other ids, some
  of which cannot be told apart between the two EU schemes.

Nothing is mutated until every candidate id has passed the alias collision
check, so a rejected row leaves no trace.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from trial_merger.core.exceptions import IdentityCollisionError, StructuralRowError
from trial_merger.identity.ids import (
    AliasIndex,
    RegistryIdentifierTriple,
    Scheme,
    TokenKind,
    classify_token,
    scheme_of,
    split_alias_field,
)
from trial_merger.identity.uuid_factory import SequenceSource
from trial_merger.logging import get_trial_logger

EU_SCHEMES = (Scheme.EU_NEW, Scheme.EU_OLD)
SPLIT_TRIAL_ID_LENGTH = 14


class Regime(str, enum.Enum):
    SPLIT_BY_COUNTRY = "split_by_country"
    MULTI_SCHEME_ALIAS = "multi_scheme_alias"
    SINGLE = "single"


@dataclass
class Resolution:
    canonical_key: str
    triple: RegistryIdentifierTriple
    is_new_triple: bool
    preferred_key: Optional[str] = None
    country_code: Optional[str] = None
    other_ids: List[str] = field(default_factory=list)


class IdentityResolver:
    def __init__(
        self,
        *,
        split_id_length: int = 17,
        alias_delimiter: str = "|",
        sequence: Optional[SequenceSource] = None,
    ):
        self.split_id_length = split_id_length
        self.alias_delimiter = alias_delimiter
        self.index = AliasIndex()
        self._sequence = sequence or SequenceSource()
        self.log = get_trial_logger("resolver")

    # ------------------------------------------------------------------
    # Split-by-country regime
    # ------------------------------------------------------------------

    def resolve_split_country(self, raw_primary_id: Optional[str]) -> Resolution:
        raw = (raw_primary_id or "").strip()
        self.log.bind(raw or None)

        if len(raw) != self.split_id_length:
            raise StructuralRowError(
                f"Unexpected length for study id: {raw!r} "
                f"(expected {self.split_id_length}, got {len(raw)})",
                trial_id=raw or None,
            )

        trial_id = raw[:SPLIT_TRIAL_ID_LENGTH]
        country_code = raw[SPLIT_TRIAL_ID_LENGTH + 1:]
        self.log.bind(trial_id)

        existing = self.index.get(trial_id)
        if existing is not None:
            if existing.eu_new_id and existing.eu_new_id == existing.eu_old_id:
                # A split-country row names its id as EU old
                existing.update_ids(eu_old_id=trial_id)
                self.log.debug("Ambiguous EU id resolved as EU old")
            return Resolution(
                canonical_key=existing.canonical_key or trial_id,
                triple=existing,
                is_new_triple=False,
                preferred_key=existing.preferred_key(),
                country_code=country_code or None,
            )

        triple = self._new_triple({Scheme.EU_OLD: trial_id})
        return Resolution(
            canonical_key=triple.canonical_key,
            triple=triple,
            is_new_triple=True,
            preferred_key=triple.canonical_key,
            country_code=country_code or None,
        )

    # ------------------------------------------------------------------
    # Single id regime (registries that only publish their own id)
    # ------------------------------------------------------------------

    def resolve_single(self, raw_primary_id: Optional[str], scheme: Scheme) -> Resolution:
        raw = (raw_primary_id or "").strip()
        if not raw:
            raise StructuralRowError("Missing trial id")

        value = classify_token(raw).value if scheme in EU_SCHEMES else raw
        self.log.bind(value)

        existing = self.index.get(value)
        if existing is not None:
            return Resolution(
                canonical_key=existing.canonical_key or value,
                triple=existing,
                is_new_triple=False,
                preferred_key=existing.preferred_key(),
            )

        triple = self._new_triple({scheme: value})
        return Resolution(
            canonical_key=triple.canonical_key,
            triple=triple,
            is_new_triple=True,
            preferred_key=triple.canonical_key,
        )

    # ------------------------------------------------------------------
    # Multi-scheme alias regime
    # ------------------------------------------------------------------

    def resolve_multi_scheme(
        self,
        raw_primary_id: Optional[str],
        raw_alias_field: Optional[str] = None,
        primary_scheme: Optional[Scheme] = None,
    ) -> Resolution:
        raw = (raw_primary_id or "").strip()
        if not raw:
            raise StructuralRowError("Missing trial id")

        primary_scheme, primary_value = self._classify_primary(raw, primary_scheme)
        self.log.bind(primary_value)

        existing = self.index.get(primary_value)
        parsed: Dict[Scheme, str] = {primary_scheme: primary_value}
        other_ids = self._parse_alias_tokens(parsed, primary_scheme, raw_alias_field)

        candidate = RegistryIdentifierTriple(seq=0)
        for scheme, value in parsed.items():
            candidate.set(scheme, value)
        if existing is not None:
            candidate.update_ids(existing.us_id, existing.eu_new_id, existing.eu_old_id)

        for alias in candidate.ids():
            owner = self.index.conflict_for(alias, existing)
            if owner is not None:
                raise IdentityCollisionError(alias, trial_id=primary_value, bound_to=owner.canonical_key)

        if existing is None:
            triple = self._new_triple(candidate.slots())
            return Resolution(
                canonical_key=triple.canonical_key,
                triple=triple,
                is_new_triple=True,
                preferred_key=triple.canonical_key,
                other_ids=other_ids,
            )

        for scheme, value in candidate.slots().items():
            if value:
                existing.set(scheme, value)
        self._bind_all(existing)
        return Resolution(
            canonical_key=existing.canonical_key or existing.preferred_key(),
            triple=existing,
            is_new_triple=False,
            preferred_key=existing.preferred_key(),
            other_ids=other_ids,
        )

    def _classify_primary(self, raw: str, scheme: Optional[Scheme]):
        token = classify_token(raw)
        if scheme is not None:
            value = token.value if scheme in EU_SCHEMES and token.kind != TokenKind.OTHER else raw
            return scheme, value

        detected = scheme_of(token.kind)
        if detected is None:
            raise StructuralRowError(f"Cannot tell which registry issued primary id {raw!r}", trial_id=raw)
        return detected, token.value

    def _parse_alias_tokens(
        self,
        parsed: Dict[Scheme, str],
        primary_scheme: Scheme,
        raw_alias_field: Optional[str],
    ) -> List[str]:
        """
        Fill ``parsed`` from the alias field. Returns tokens that are not
        registry ids at all (sponsor codes and the like).
        """
        ambiguous: List[str] = []
        other_ids: List[str] = []

        for token_str in split_alias_field(raw_alias_field, self.alias_delimiter):
            token = classify_token(token_str)

            if token.kind == TokenKind.OTHER:
                other_ids.append(token.raw)
                continue

            if token.kind == TokenKind.CONFLICTING:
                self.log.warning("EU id carries both EU new and EU old markers, skipping: %s", token.raw)
                continue

            if token.kind == TokenKind.AMBIGUOUS:
                if token.value not in ambiguous:
                    ambiguous.append(token.value)
                continue

            scheme = scheme_of(token.kind)
            current = parsed.get(scheme, "")
            if current and current != token.value:
                if scheme == primary_scheme:
                    self.log.warning("Alias %s contradicts primary id %s, ignoring it", token.raw, current)
                    continue
                self.log.warning("%s id about to be set (%s) differs from the one it replaces (%s)", scheme.value, token.value, current)
            parsed[scheme] = token.value

        self._assign_ambiguous(parsed, ambiguous, raw_alias_field)
        return other_ids

    def _assign_ambiguous(self, parsed: Dict[Scheme, str], ambiguous: List[str], raw_alias_field: Optional[str]) -> None:
        if not ambiguous:
            return

        new_id = parsed.get(Scheme.EU_NEW, "")
        old_id = parsed.get(Scheme.EU_OLD, "")

        if len(ambiguous) > 2:
            self.log.warning("More than 2 EU ids found: %s; full string of ids: %s", ambiguous, raw_alias_field)
            return

        if len(ambiguous) == 2:
            if new_id or old_id:
                self.log.warning(
                    "2 EU ids found but an EU id is already set: %s; full string of ids: %s",
                    ambiguous,
                    raw_alias_field,
                )
                return
            # The more recent id (year + sequence) is assumed to be EU new
            newer, older = sorted(ambiguous, reverse=True)
            parsed[Scheme.EU_NEW] = newer
            parsed[Scheme.EU_OLD] = older
            return

        only = ambiguous[0]
        if not new_id and not old_id:
            # Kept in both slots until firmer information contradicts it
            parsed[Scheme.EU_NEW] = only
            parsed[Scheme.EU_OLD] = only
        elif not new_id:
            if only != old_id:
                parsed[Scheme.EU_NEW] = only
        elif not old_id:
            if only != new_id:
                parsed[Scheme.EU_OLD] = only
        elif only not in (new_id, old_id):
            self.log.warning(
                "1 EU id found but both EU ids are already set: %s; full string of ids: %s",
                only,
                raw_alias_field,
            )

    # ------------------------------------------------------------------
    # Commit helpers
    # ------------------------------------------------------------------

    def _new_triple(self, slots: Dict[Scheme, str]) -> RegistryIdentifierTriple:
        triple = RegistryIdentifierTriple(seq=self._sequence.next())
        for scheme, value in slots.items():
            triple.set(scheme, value)
        triple.canonical_key = triple.preferred_key()
        self._bind_all(triple)
        return triple

    def _bind_all(self, triple: RegistryIdentifierTriple) -> None:
        for alias in triple.ids():
            self.index.bind(alias, triple)
