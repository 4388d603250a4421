"""
Logging package for ``trial_merger``.

Use ``get_logger("<module>")`` in modules to inherit shared handlers and write
to a module-specific log file.
"""

from .logger import (
    TrialLogAdapter,
    get_logger,
    get_trial_logger,
    list_active_loggers,
)

__all__ = [
    "TrialLogAdapter",
    "get_logger",
    "get_trial_logger",
    "list_active_loggers",
]
