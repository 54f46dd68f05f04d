"""structlog configuration shared by the CLI and the bot process."""

from __future__ import annotations

import logging
import sys

import structlog

# Chatty third-party loggers; they only surface at WARNING and above.
_LIBRARY_LOGGERS = ("httpx", "httpcore", "telegram", "telegram.ext", "anthropic", "aiosqlite")


def _renderer(log_format: str) -> structlog.typing.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(level: str = "INFO", log_format: str = "console") -> None:
    """Route structlog events to stderr as console lines or JSON objects."""
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    processors: list[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=log_format == "json"),
        structlog.dev.set_exc_info,
    ]
    if log_format == "json":
        processors.append(structlog.processors.format_exc_info)
    processors.append(_renderer(log_format))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=log_level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
