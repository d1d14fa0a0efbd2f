"""Logging configuration for Newsletter Studio."""

import logging
import sys
import uuid
from typing import Any, List, MutableMapping

import structlog
from rich.logging import RichHandler

from newsletter_studio.infrastructure.config import get_logs_dir

LOG_FILE_NAME = "newsletter_studio.log"

# event keys whose values must never reach a log sink
SECRET_KEYS = frozenset({
    "api_key",
    "apikey",
    "authorization",
    "client_secret",
    "gmail_client_secret",
    "gmail_refresh_token",
    "password",
    "refresh_token",
    "token",
})
REDACTED = "***"

NOISY_LOGGERS = {
    "aiohttp.access": logging.WARNING,
    "googleapiclient.discovery_cache": logging.ERROR,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor that masks credential-like keys."""
    for key in list(event_dict):
        if key.lower() in SECRET_KEYS and event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def _file_handler(format_type: str) -> logging.Handler:
    handler = logging.FileHandler(get_logs_dir() / LOG_FILE_NAME)
    handler.setLevel(logging.DEBUG)
    if format_type == "structured":
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
    return handler


def _console_handler(format_type: str, log_level: int) -> logging.Handler:
    if format_type == "text":
        handler: logging.Handler = RichHandler(
            rich_tracebacks=True,
            show_path=False,
            show_time=False,
        )
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    return handler


def setup_logging(
    level: str = "INFO",
    format_type: str = "structured",
    log_file: bool = False,
) -> structlog.stdlib.BoundLogger:
    """Set up structured logging with rich console output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: "structured" for JSON lines, "text" for rich console output
        log_file: Also write every record to logs/newsletter_studio.log

    Returns:
        Configured structlog logger
    """
    log_level = getattr(logging, level.upper())

    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="ISO"),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if format_type == "structured":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers = [_console_handler(format_type, log_level)]
    if log_file:
        handlers.append(_file_handler(format_type))

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        format="%(message)s",
        force=True,
    )

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)

    logger = structlog.get_logger("newsletter_studio")
    logger.info("Logging configured", level=level, format=format_type, log_file=log_file)
    return logger


def bind_request_context(**values: Any) -> str:
    """Bind per-request values to every log line of the current task.

    Returns the request id, generated when not supplied.
    """
    request_id = values.pop("request_id", None) or uuid.uuid4().hex[:12]
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **values)
    return request_id


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name)


class LoggerMixin:
    """Mixin class to add logger to any class."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger
