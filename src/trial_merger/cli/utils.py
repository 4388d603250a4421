from __future__ import annotations

import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import typer
from rich.console import Console

from trial_merger.config import get_config
from trial_merger.core.context import RunContext
from trial_merger.core.pipeline import Pipeline
from trial_merger.logging import get_logger
from trial_merger.readers import READERS

console = Console()


def parse_sources(values: Sequence[str]) -> List[Tuple[str, str]]:
    """
    ``kind:path`` pairs -> ``[(kind, path), ...]``.

    Only the first ``:`` separates, so Windows-style paths survive.
    """
    sources = []
    for value in values:
        kind, sep, path = value.partition(":")
        if not sep or not path:
            raise typer.BadParameter(f"Expected KIND:PATH, got {value!r}")
        if kind not in READERS:
            raise typer.BadParameter(f"Unknown source kind {kind!r} (expected one of {', '.join(READERS)})")
        if not Path(path).exists():
            raise typer.BadParameter(f"File not found: {path}")
        sources.append((kind, path))
    return sources


def config_sources() -> List[Tuple[str, str]]:
    cfg = get_config()
    return [(str(s["kind"]), str(s["path"])) for s in cfg.sources if s.get("kind") and s.get("path")]


def run_pipeline(
    sources: List[Tuple[str, str]],
    *,
    out: Optional[Path] = None,
    verbose: bool = False,
) -> RunContext:
    cfg = get_config()
    ctx = RunContext(
        config=cfg,
        logger=get_logger("pipeline"),
        sources=sources,
        output_path=str(out) if out else None,
        debug=bool(cfg.debug),
    )

    t0 = time.perf_counter()
    Pipeline(ctx).run()
    elapsed = time.perf_counter() - t0

    if verbose:
        console.log(f"Merged {ctx.stats.get('rows_read', 0)} rows in {elapsed:.2f}s")

    return ctx
