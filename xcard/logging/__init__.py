"""Logging helpers."""

from xcard.logging.setup import (
    bind_batch_context,
    clear_batch_context,
    configure_logging,
    get_logger,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_batch_context",
    "clear_batch_context",
]
