"""Logging configuration for the chat widget backend.

Standard library logging set up through dictConfig: a text format for
local runs and JSON records for production.
"""

import json
import logging
import logging.config
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from chatwidget.app.core.config import settings


TEXT_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    " - request_id=%(request_id)s tenant_id=%(tenant_id)s client_ip=%(client_ip)s"
)

# Attributes every LogRecord carries; anything else came in through extra=
_RESERVED_ATTRS = frozenset((
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "asctime", "timestamp", "logger", "level", "source", "taskName",
))


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation.

    Set context fields are emitted at the top level; any other ``extra=``
    keys are grouped under ``extra``.
    """

    # Contextual fields for request tracking
    CONTEXT_FIELDS = [
        "request_id",       # Request ID from X-Request-ID header
        "tenant_id",        # Tenant the request belongs to
        "client_ip",        # Client address used for rate limiting
        "conversation_id",  # Widget conversation identifier
        "rule_id",          # WAF rule that matched
        "user_agent",       # Client user agent
        "path",             # Request path
        "method",           # HTTP method
        "status_code",      # HTTP response status
        "duration_ms",      # Request duration in milliseconds
    ]

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string representation of the log record
        """
        log_data: Dict[str, Any] = {}

        record.message = record.getMessage()

        log_data["timestamp"] = datetime.now().astimezone().isoformat()
        log_data["level"] = record.levelname
        log_data["logger"] = record.name
        log_data["message"] = record.message

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        for field in self.CONTEXT_FIELDS:
            if hasattr(record, field):
                value = getattr(record, field)
                if value is not None and value != "-":
                    log_data[field] = value

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key in self.CONTEXT_FIELDS:
                continue
            log_data.setdefault("extra", {})[key] = value

        if record.exc_info and record.exc_info != (None, None, None):
            log_data["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Logging filter that adds contextual fields to log records.

    Adds default values for request_id, tenant_id and the other contextual
    fields if not already present in the log record, so format strings that
    reference them never fail.
    """

    CONTEXT_DEFAULTS = {
        "request_id": None,
        "tenant_id": None,
        "client_ip": None,
        "conversation_id": None,
        "rule_id": None,
        "user_agent": None,
        "path": None,
        "method": None,
        "status_code": None,
        "duration_ms": None,
    }

    def filter(self, record: logging.LogRecord) -> bool:
        for field, default in self.CONTEXT_DEFAULTS.items():
            if not hasattr(record, field):
                setattr(record, field, default)
        return True


def get_logging_config() -> Dict[str, Any]:
    """Build the dictConfig for the service.

    ``log_format`` selects between ``text`` (human readable, with the tenant
    and client context appended) and ``json`` for log aggregation.

    Returns:
        Logging configuration dict compatible with logging.config.dictConfig
    """
    log_format = getattr(settings, "log_format", "text").lower()
    log_level = getattr(settings, "log_level", "INFO").upper()

    if log_format == "json":
        formatter: Dict[str, Any] = {"()": "chatwidget.app.core.logging.JSONFormatter"}
    else:
        formatter = {"format": TEXT_FORMAT}

    console = {
        "class": "logging.StreamHandler",
        "level": log_level,
        "formatter": "default",
        "stream": sys.stdout,
        "filters": ["context"],
    }
    service_logger = {"level": log_level, "handlers": ["console"], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "filters": {
            "context": {"()": "chatwidget.app.core.logging.ContextFilter"},
        },
        "handlers": {"console": console},
        "loggers": {
            "chatwidget": service_logger,
            "uvicorn": dict(service_logger),
        },
        "root": {"level": log_level, "handlers": ["console"]},
    }


def setup_logging() -> None:
    """Configure logging for the application."""
    logging.config.dictConfig(get_logging_config())

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str = "chatwidget") -> logging.Logger:
    """Get a logger instance with the specified name."""
    return logging.getLogger(name)


def get_log_context(
    request_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    client_ip: Optional[str] = None,
    conversation_id: Optional[str] = None,
    **extra
) -> Dict[str, Any]:
    """Create a log context dictionary for use with extra parameter.

    Args:
        request_id: Request ID
        tenant_id: Tenant identifier
        client_ip: Client address
        conversation_id: Widget conversation identifier
        **extra: Additional custom fields

    Returns:
        Dictionary suitable for passing as extra= parameter to logging calls

    Example:
        >>> logger.info(
        ...     "Rate limit exceeded",
        ...     extra=get_log_context(tenant_id="demo-tenant", client_ip="10.0.0.1")
        ... )
    """
    context = {
        "request_id": request_id,
        "tenant_id": tenant_id,
        "client_ip": client_ip,
        "conversation_id": conversation_id,
    }
    context.update(extra)
    return {k: v for k, v in context.items() if v is not None}
