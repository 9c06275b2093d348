"""structlog configuration for the confd client.

The library never configures logging on import. Applications call
configure_logging() once at startup; modules obtain loggers with get_logger().

Output goes to a handler on the "confd_client" logger only. The root logger
and other libraries' handlers are left alone, so an application's own
logging setup keeps working.

Two output modes:
- console (default): human readable, colored when the stream is a TTY
- json: one JSON object per line, tracebacks as structured lists
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Optional

import structlog

PACKAGE_LOGGER = "confd_client"


class _ClientLogHandler(logging.StreamHandler):
    """Stream handler installed by configure_logging(), replaced on reconfigure."""


def _renderers(log_format: str, stream: IO[str]) -> list[structlog.types.Processor]:
    if log_format == "json":
        return [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer(colors=stream.isatty())]


def configure_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> None:
    """Route confd_client events through structlog to one stream.

    Safe to call again; the previous handler is replaced.

    Args:
        level: Log level name. Defaults to settings.log_level.
        log_format: "console" or "json". Defaults to settings.log_format.
        stream: Output stream. Defaults to sys.stderr.
    """
    from confd_client.config import get_settings

    settings = get_settings()
    level = (level or settings.log_level).upper()
    log_format = (log_format or settings.log_format).lower()
    stream = stream or sys.stderr

    # Applied to structlog events and to plain logging records alike
    event_context: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            *event_context,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = _ClientLogHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=event_context,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_renderers(log_format, stream),
            ],
        )
    )

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in [h for h in package_logger.handlers if isinstance(h, _ClientLogHandler)]:
        package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, level))
    package_logger.propagate = False


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger bound to a module name."""
    return structlog.get_logger(name)
