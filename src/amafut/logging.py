"""Structured logging for amafut.

Usage:
    from amafut.logging import configure_logging, get_logger

    configure_logging(settings.log_level, settings.log_format)

    logger = get_logger(__name__)
    logger.info("member_approved", team_id="t1", member_id="u2")

Without arguments the level and format come from LOG_LEVEL / LOG_FORMAT;
production (ENVIRONMENT=production) defaults to JSON, everything else to the
coloured console renderer.
"""

import logging
import os
import sys
from typing import Any

import structlog

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "supabase", "postgrest", "realtime")


def _environment() -> str:
    return os.getenv("ENVIRONMENT", "local").lower()


def _add_environment(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict["environment"] = _environment()
    return event_dict


def _resolve_format(log_format: str | None) -> str:
    chosen = log_format or os.getenv("LOG_FORMAT")
    if chosen:
        return chosen.lower()
    return "json" if _environment() == "production" else "console"


def _renderer(log_format: str) -> list[structlog.typing.Processor]:
    if log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [
        structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )
    ]


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Logs go to stderr so CLI output on stdout stays clean.

    Args:
        level: Level name such as "DEBUG"; defaults to LOG_LEVEL, then INFO
        log_format: "json" or "console"; defaults to LOG_FORMAT, then the environment
    """
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            _add_environment,
            *_renderer(_resolve_format(log_format)),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, typically `get_logger(__name__)`."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Attach key/values to every later log entry in this context.

    The session bootstrapper binds `user_id` once a profile is applied.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop all bound context, e.g. on sign-out."""
    structlog.contextvars.clear_contextvars()
