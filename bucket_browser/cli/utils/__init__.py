"""CLI utilities for running async operations and formatting output."""

from bucket_browser.cli.utils.async_runner import coro
from bucket_browser.cli.utils.formatters import (
    error,
    format_bytes,
    info,
    success,
    warning,
)

__all__ = [
    "coro",
    "error",
    "format_bytes",
    "info",
    "success",
    "warning",
]
