"""Structured logging for the ACC Transform MCP Server.

Every line written while a save runs carries that save's correlation id,
which is also stamped on the failure returned to the caller. Credentials
never reach the output: token-like fields are masked by a processor and
httpx's own request log (which prints signed URLs) is kept at WARNING.
"""

import structlog
import uuid
import logging
import sys
from contextvars import ContextVar
from typing import Optional, Any, Dict
from .config import get_config, ServerConfig


# Correlation id of the save currently running in this context
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

SECRET_FIELDS = frozenset({
    "access_token",
    "refresh_token",
    "client_secret",
    "authorization",
    "token",
    "code",
})
MASK = "***"

# Third-party loggers that echo request URLs at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def new_correlation_id() -> str:
    """Generate and set a new correlation ID."""
    cid = uuid.uuid4().hex[:8]
    correlation_id_var.set(cid)
    return cid


def add_correlation_id(
    logger: Any,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Structlog processor: attach the correlation id, if a save is running."""
    cid = correlation_id_var.get()
    if cid is not None:
        event_dict.setdefault("correlation_id", cid)
    return event_dict


def redact_secrets(
    logger: Any,
    method_name: str,
    event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Structlog processor: mask credential fields passed as log keys."""
    for key in list(event_dict):
        if key.lower() in SECRET_FIELDS and event_dict[key]:
            event_dict[key] = MASK
    return event_dict


def setup_logging(config: Optional[ServerConfig] = None) -> None:
    """Configure structlog on top of stdlib logging.

    Output goes to stderr; with the stdio transport stdout is the MCP
    protocol stream.
    """
    config = config or get_config()

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
        redact_secrets,
        structlog.processors.format_exc_info,
    ]

    if config.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)


class LogContext:
    """Scope one save attempt under a correlation id.

    Usage:
        with LogContext() as ctx:
            logger.info("Save started")  # carries ctx.correlation_id

    The previous id (usually none) is restored on exit.
    """

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id
        self._previous_id: Optional[str] = None

    def __enter__(self) -> "LogContext":
        self._previous_id = correlation_id_var.get()
        if self.correlation_id:
            correlation_id_var.set(self.correlation_id)
        else:
            self.correlation_id = new_correlation_id()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        correlation_id_var.set(self._previous_id)
