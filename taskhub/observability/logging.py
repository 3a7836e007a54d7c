from __future__ import annotations

import logging
import sys

import structlog


# Loggers that write through the JSON handler instead of their own formatters.
ROUTED_LOGGERS = ("", "uvicorn", "uvicorn.error", "uvicorn.access")

_handler: logging.Handler | None = None


def _json_handler() -> logging.Handler:
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            # stdlib `extra={...}` fields land as top-level keys.
            foreign_pre_chain=[*shared, structlog.stdlib.ExtraAdder()],
        )
    )
    return handler


def configure_logging(level: str = "INFO") -> None:
    """Send structlog events and stdlib records (uvicorn included) to stdout as JSON lines.

    Handlers are installed once per process; repeat calls only change the level.
    """

    global _handler
    if _handler is None:
        _handler = _json_handler()
        for name in ROUTED_LOGGERS:
            logger = logging.getLogger(name)
            logger.handlers = [_handler]
            logger.propagate = name == ""

    for name in ROUTED_LOGGERS:
        logging.getLogger(name).setLevel(level.upper())
