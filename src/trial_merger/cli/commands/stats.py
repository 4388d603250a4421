from __future__ import annotations

from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from trial_merger.cli.utils import config_sources, parse_sources, run_pipeline

console = Console()

COUNTERS = [
    ("rows_read", "Rows read"),
    ("rows_merged", "Rows merged"),
    ("repeat_sightings", "Repeat sightings"),
    ("skipped_structural", "Skipped (malformed id)"),
    ("rejected_collisions", "Rejected (id collision)"),
    ("flushed_key_errors", "Rejected (already flushed)"),
    ("sources_skipped", "Sources skipped"),
    ("records_emitted", "Trial records"),
]


def stats_command(
    sources: Optional[List[str]] = typer.Argument(None, help="Inputs as KIND:PATH"),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable rich logging",
    ),
):
    """
    Show merge statistics without writing output.
    """
    pairs = parse_sources(sources) if sources else config_sources()
    if not pairs:
        raise typer.BadParameter("No sources given and none configured")

    ctx = run_pipeline(pairs, verbose=verbose)

    table = Table(title="Merge Statistics")
    table.add_column("Counter", style="bold")
    table.add_column("Count", justify="right")

    for key, label in COUNTERS:
        table.add_row(label, str(ctx.stats.get(key, 0)))

    console.print(table)
