"""
Structured logging for swapstudio.

Every event carries the service name and the control plane it talks to,
so logs from several studios behind one collector stay apart.
"""

import logging
import sys
from typing import Any, Optional

import structlog

from swapstudio.core.config import settings

# Libraries that log every control plane request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "engineio.server", "socketio.server")


def add_service_context(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Stamp the service name and control plane URL on an event."""
    event_dict.setdefault("service", "swapstudio")
    event_dict.setdefault("control_plane", settings.CONTROL_PLANE_URL)
    return event_dict


def build_renderer(log_format: str) -> Any:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        level: Log level name, defaults to LOG_LEVEL.
        log_format: "json" or "console", defaults to LOG_FORMAT.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            add_service_context,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            build_renderer(log_format or settings.LOG_FORMAT),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, e.g. ``get_logger(__name__)``."""
    return structlog.get_logger(name)
