"""
CLI package for trial_merger.

Provides the Typer application entrypoint and shared CLI utilities.
"""

from trial_merger.cli.app import app, main

__all__ = [
    "app",
    "main",
]
