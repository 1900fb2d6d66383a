"""structlog wiring shared by the CLI and the service."""

from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(verbose: bool = False, *, json_logs: bool = False) -> None:
    """Route structlog through stdlib logging on stderr.

    The CLI uses the console renderer; the service renders one JSON object
    per line. ``verbose`` lowers the threshold to DEBUG.
    """

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(format="%(message)s", level=level, stream=sys.stderr, force=True)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
