"""Logging infrastructure.

Structured logging with automatic context injection:

    from bucket_browser.infra.logging import log_context
    import logging

    logger = logging.getLogger(__name__)

    with log_context(op_id="3f2a", kind="download"):
        logger.info("Download started")  # Includes op_id and kind
"""

from bucket_browser.infra.logging.config import (
    configure_logging,
    setup_logging,
    shutdown,
)
from bucket_browser.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    set_log_context,
)
from bucket_browser.infra.logging.formatters import JSONFormatter

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "clear_log_context",
    "configure_logging",
    "get_log_context",
    "log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
