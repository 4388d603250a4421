from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from trial_merger.cli.utils import config_sources, parse_sources, run_pipeline
from trial_merger.config import get_config

console = Console()


def merge_command(
    sources: Optional[List[str]] = typer.Argument(
        None,
        help="Inputs as KIND:PATH (us_registry, eu_old, eu_new, aggregator). Defaults to the configured sources.",
    ),
    out: Optional[Path] = typer.Option(
        None,
        "--out",
        "-o",
        help="Output file: .jsonl for every item, .json for trial records with sub-records nested. Defaults to paths.output",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable rich logging",
    ),
):
    """
    Merge registry exports into one record per trial.
    """
    pairs = parse_sources(sources) if sources else config_sources()
    if not pairs:
        raise typer.BadParameter("No sources given and none configured")
    if out is None:
        out = Path(get_config().paths.get("output") or "outputs/trials.jsonl")

    ctx = run_pipeline(pairs, out=out, verbose=verbose)

    console.print(
        f"[bold green]{ctx.stats.get('records_emitted', 0)}[/] trial records written to {out}"
    )
    if ctx.errors:
        console.print(f"[yellow]{len(ctx.errors)} rows skipped (see logs)[/]")
