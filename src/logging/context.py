# src/logging/context.py - v2
"""Contextual logging support: attach the current view and operation to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set per CLI command; read by the formatters.
_view: contextvars.ContextVar[str | None] = contextvars.ContextVar("view", default=None)
_operation: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation", default=None
)


@dataclass
class LogContext:
    """Snapshot of the current logging context."""

    view: str | None = None
    operation: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(view=_view.get(), operation=_operation.get())


def set_operation_context(operation: str, view: str | None = None) -> None:
    """Set the command being run and, when there is one, the view it targets."""
    _operation.set(operation)
    _view.set(view)


def clear_context() -> None:
    """Reset all context variables."""
    _view.set(None)
    _operation.set(None)
