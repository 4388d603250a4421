
from __future__ import annotations

import typer
from rich.console import Console

from trial_merger.cli.commands.merge import merge_command
from trial_merger.cli.commands.stats import stats_command

app = typer.Typer(
    name="trial-merger",
    help="Merge clinical trial registry exports into one record per trial",
    add_completion=False,
)

console = Console()

app.command("merge")(merge_command)
app.command("stats")(stats_command)


def main():
    app()


if __name__ == "__main__":
    main()
