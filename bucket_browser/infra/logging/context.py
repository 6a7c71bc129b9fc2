"""Context management for structured logging.

Provides automatic context injection into log records using contextvars.
Every asyncio task gets its own copy of the context, so a transfer task
that binds ``op_id`` does not leak it into other operations running on
the same loop.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
import logging
from typing import Any

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Set logging context for the current task.

    All subsequent log calls in this context include these fields.

    Example:
        ```python
        set_log_context(op_id="3f2a", kind="upload")
        logger.info("Transfer started")  # Includes op_id and kind
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Clear all logging context for the current task."""
    _log_context.set({})


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Bind context for the duration of a ``with`` block.

    Example:
        ```python
        with log_context(op_id=op.id):
            await run_transfer()
        ```
    """
    token = _log_context.set({**_log_context.get(), **kwargs})
    try:
        yield
    finally:
        _log_context.reset(token)


class ContextInjectingFilter(logging.Filter):
    """Logging filter that injects the contextvars log context into records.

    Attached to the root QueueHandler, so records from every logger pass through it.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Inject context into the log record; always lets the record through."""
        for key, value in _log_context.get().items():
            # Don't overwrite existing attributes
            if not hasattr(record, key):
                setattr(record, key, value)
        return True
