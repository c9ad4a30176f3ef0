"""Structured logging setup.

Routes structlog and stdlib logging (uvicorn, SQLAlchemy, the session
sweeper) through one handler at LOG_LEVEL. JSON lines in production,
console rendering elsewhere.
"""

import logging
import sys

import structlog
from structlog.types import EventDict, WrappedLogger

_SENSITIVE_KEYS = frozenset({"password", "secret", "token", "auth_secret"})


def mask_sensitive(
    _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Replace values of credential-like keys."""
    for key in event_dict:
        if key.lower() in _SENSITIVE_KEYS:
            event_dict[key] = "***MASKED***"
    return event_dict


def configure_logging(log_level: str = "INFO", *, json: bool = False) -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        log_level: Root log level name.
        json: Render JSON lines instead of console output.
    """
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            mask_sensitive,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
