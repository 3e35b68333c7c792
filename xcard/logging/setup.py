"""Structlog configuration for xcard."""

import logging
import sys

import structlog

from xcard.config import CardConfig, LogFormat


def summarize_binary(logger, method_name, event_dict: dict) -> dict:
    """Replace image and PDF payloads with their size."""
    for key, value in event_dict.items():
        if isinstance(value, (bytes, bytearray)):
            event_dict[key] = f"<{len(value)} bytes>"
    return event_dict


def configure_logging(config: CardConfig | None = None) -> None:
    """
    Configure structlog with appropriate processors and output format.

    Logs go to stderr so that commands writing PDF bytes to stdout stay clean.

    Args:
        config: CardConfig instance, uses defaults if None
    """
    if config is None:
        config = CardConfig()

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        summarize_binary,
        structlog.processors.UnicodeDecoder(),
    ]

    if config.debug:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                {
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.LINENO,
                }
            )
        )

    if config.log_format == LogFormat.JSON:
        processors.extend([
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ])
    else:
        processors.extend([
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """
    Get a configured structlog logger.

    Args:
        name: Optional logger name for context

    Returns:
        Configured structlog BoundLogger
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger


def bind_batch_context(batch_id: str, size: int) -> None:
    """Attach batch identifiers to every log line emitted until cleared."""
    structlog.contextvars.bind_contextvars(batch_id=batch_id, batch_size=size)


def clear_batch_context() -> None:
    """Drop batch identifiers bound by bind_batch_context."""
    structlog.contextvars.unbind_contextvars("batch_id", "batch_size")
