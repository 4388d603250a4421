"""
CLI command modules for trial_merger.

Each command module defines a single Typer-compatible command function.
"""

from trial_merger.cli.commands.merge import merge_command
from trial_merger.cli.commands.stats import stats_command

__all__ = [
    "merge_command",
    "stats_command",
]
