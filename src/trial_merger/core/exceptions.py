from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base exception for pipeline failures."""


class ParseExecutionError(PipelineError):
    """Raised when the pipeline as a whole fails."""


class RowError(PipelineError):
    """A single input row could not be merged. The run continues."""

    def __init__(self, message: str, trial_id: Optional[str] = None):
        super().__init__(message)
        self.trial_id = trial_id

    def __str__(self) -> str:
        msg = super().__str__()
        if self.trial_id:
            return f"{msg} (trial: {self.trial_id})"
        return msg


class IdentityError(RowError):
    """Raised when a row's identity cannot be resolved."""


class StructuralRowError(IdentityError):
    """Malformed identifier or missing required field/header."""


class IdentityCollisionError(IdentityError):
    """An alias is already bound to a different trial identity."""

    def __init__(self, alias: str, trial_id: Optional[str] = None, bound_to: Optional[str] = None):
        message = f"Id {alias!r} already bound to another trial"
        if bound_to:
            message += f" ({bound_to})"
        super().__init__(message, trial_id=trial_id)
        self.alias = alias
        self.bound_to = bound_to


class FlushedRecordError(RowError):
    """A row resolved to a trial whose record was already flushed."""


class LinkageConfigError(PipelineError):
    """The schema does not say how a sub-record type attaches to its owner."""
