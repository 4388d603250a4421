from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from trial_merger.config import DEFAULT_ALIAS_DELIMITER, DEFAULT_SPLIT_ID_LENGTH
from trial_merger.core.exceptions import StructuralRowError
from trial_merger.identity.ids import Scheme
from trial_merger.identity.resolver import IdentityResolver, Regime, Resolution
from trial_merger.identity.uuid_factory import SequenceSource
from trial_merger.logging import get_trial_logger
from trial_merger.merge.cache import MergeCache, Sink
from trial_merger.merge.policy import MergePolicy, RowScratch
from trial_merger.schema.items import Item, ItemFactory
from trial_merger.schema.linker import EntityLinker
from trial_merger.schema.metadata import SchemaMetadata
from trial_merger.vocab import country_name


@dataclass
class RowIdentity:
    canonical_key: str
    is_repeat_sighting: bool
    scratch: RowScratch
    resolution: Resolution

    @property
    def record(self) -> Item:
        return self.scratch.record


class MergeSession:
    """
    One merge run: resolver, cache and policy sharing one sequence source.

    ``begin_row`` is called once per input row, ``flush`` once at the end.
    """

    def __init__(
        self,
        *,
        split_id_length: int = DEFAULT_SPLIT_ID_LENGTH,
        alias_delimiter: str = DEFAULT_ALIAS_DELIMITER,
        metadata: Optional[SchemaMetadata] = None,
    ):
        sequence = SequenceSource()
        self.resolver = IdentityResolver(
            split_id_length=split_id_length,
            alias_delimiter=alias_delimiter,
            sequence=sequence,
        )
        self.linker = EntityLinker(metadata, ItemFactory(sequence))
        self.cache = MergeCache(self.linker)
        self.policy = MergePolicy(self.cache)
        self.scratch: Optional[RowScratch] = None
        self.log = get_trial_logger("session")

    @classmethod
    def from_config(cls, cfg, metadata: Optional[SchemaMetadata] = None) -> "MergeSession":
        return cls(
            split_id_length=cfg.split_id_length,
            alias_delimiter=cfg.alias_delimiter,
            metadata=metadata,
        )

    def begin_row(
        self,
        raw_primary_id: Optional[str],
        raw_alias_field: Optional[str] = None,
        *,
        regime: Regime,
        primary_scheme: Optional[Scheme] = None,
    ) -> RowIdentity:
        self.scratch = None

        if regime == Regime.SPLIT_BY_COUNTRY:
            resolution = self.resolver.resolve_split_country(raw_primary_id)
        elif regime == Regime.MULTI_SCHEME_ALIAS:
            resolution = self.resolver.resolve_multi_scheme(raw_primary_id, raw_alias_field, primary_scheme)
        elif regime == Regime.SINGLE:
            if primary_scheme is None:
                raise StructuralRowError("Single id rows need a primary scheme", trial_id=raw_primary_id)
            resolution = self.resolver.resolve_single(raw_primary_id, primary_scheme)
        else:
            raise StructuralRowError(f"Unknown identity regime: {regime!r}", trial_id=raw_primary_id)

        key = resolution.canonical_key
        record = self.cache.open(key)
        is_repeat = self.cache.is_repeat_sighting()

        # Ids learned later (e.g. a US id) make the record reachable by them too
        preferred = resolution.preferred_key
        if preferred and preferred != key:
            self.cache.bind_key(preferred, record)

        self.scratch = RowScratch(
            record=record,
            key=key,
            is_repeat=is_repeat,
            country_code=resolution.country_code,
            country_name=country_name(resolution.country_code),
        )
        self.log.bind(key)
        self.log.debug("Row resolved (%s)", "repeat" if is_repeat else "first sighting")
        return RowIdentity(key, is_repeat, self.scratch, resolution)

    def discard(self, row: RowIdentity) -> None:
        """Forget a record opened by a row that failed half-way."""
        if row.is_repeat_sighting:
            return
        self.cache.discard(row.canonical_key)

    def flush(self, sink: Optional[Sink] = None) -> List[Item]:
        # The alias index outlives the flush so any id of a flushed trial
        # still resolves to its key and is refused by the cache.
        self.scratch = None
        return self.cache.flush_all(sink)
