from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional

from trial_merger.core.context import RunContext
from trial_merger.core.exceptions import (
    FlushedRecordError,
    IdentityCollisionError,
    ParseExecutionError,
    RowError,
    StructuralRowError,
)
from trial_merger.exporter import JsonLinesSink, ListSink, export_records_json
from trial_merger.merge import MergeSession, RowMerger
from trial_merger.readers import READERS
from trial_merger.rows import TrialRow
from trial_merger.schema.items import Item


class Pipeline:
    """
    Orchestrates read -> merge -> flush -> export.
    No business logic lives here.
    """

    def __init__(self, context: RunContext, session: Optional[MergeSession] = None):
        self.ctx = context
        self.log = context.logger
        self.session = session or MergeSession.from_config(context.config)
        self.merger = RowMerger(self.session)

    def run(self) -> List[Item]:
        self.log.info("Pipeline starting (%d sources)", len(self.ctx.sources))

        try:
            for kind, path in self.ctx.sources:
                self._read_source(kind, path)

            records = self._flush()
            self.ctx.bump("records_emitted", len(records))
            self.log.info("Pipeline completed successfully")
            return records

        except Exception as exc:
            self.log.exception("Pipeline execution failed")
            raise ParseExecutionError(str(exc)) from exc

    # ------------------------------------------------------------------

    def _read_source(self, kind: str, path: str) -> None:
        reader = READERS.get(kind)
        if reader is None:
            raise ParseExecutionError(f"Unknown source kind: {kind!r} (expected one of {', '.join(READERS)})")

        self.log.info("Reading %s source: %s", kind, path)
        kwargs = {"alias_delimiter": self.session.resolver.alias_delimiter} if kind == "aggregator" else {}
        try:
            self.merge_rows(reader(path, **kwargs))
        except StructuralRowError as exc:
            # Raised before the first row: bad header
            self.log.error("Skipping source %s: %s", path, exc)
            self.ctx.bump("sources_skipped")
            self.ctx.errors.append(str(exc))

    def merge_rows(self, rows: Iterable[TrialRow]) -> None:
        for row in rows:
            self.ctx.bump("rows_read")
            try:
                ident = self.merger.merge(row)
            except StructuralRowError as exc:
                self._row_failed("skipped_structural", exc)
            except IdentityCollisionError as exc:
                self._row_failed("rejected_collisions", exc)
            except FlushedRecordError as exc:
                self._row_failed("flushed_key_errors", exc)
            except RowError as exc:
                self._row_failed("row_errors", exc)
            else:
                self.ctx.bump("rows_merged")
                if ident.is_repeat_sighting:
                    self.ctx.bump("repeat_sightings")

    def _row_failed(self, counter: str, exc: RowError) -> None:
        self.log.warning("Row skipped: %s", exc)
        self.ctx.bump(counter)
        self.ctx.errors.append(str(exc))

    def _flush(self) -> List[Item]:
        out = self.ctx.output_path
        if not out:
            return self.session.flush()

        if Path(out).suffix.lower() == ".json":
            records = self.session.flush(ListSink())
            export_records_json(records, out)
            return records

        with JsonLinesSink(out) as sink:
            return self.session.flush(sink)
