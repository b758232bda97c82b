"""
Structured logging configuration using structlog.

Logs go to stdout, where the awslogs driver ships them to the ECS log group.
Production renders one JSON object per line; local development gets the
coloured console renderer.

Usage:
    from apps.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("db_roundtrip_finished", collection="testcollection")

Field naming:
    - trace_id: the load balancer's X-Amzn-Trace-Id (or a generated id)
    - http.method / http.path / http.status_code: request summary
    - duration: request duration in nanoseconds
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

# Keys whose values must never reach the log stream.
REDACTED_KEYS = frozenset({"password", "secret", "payload_secret", "db_password", "uri"})
REDACTED = "[redacted]"


def _redact_secrets(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask values of credential-like keys."""
    for key in event_dict.keys() & REDACTED_KEYS:
        event_dict[key] = REDACTED
    return event_dict


def _convert_duration_to_nanoseconds(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Convert duration_ms to duration (nanoseconds)."""
    if "duration_ms" in event_dict:
        duration_ms = event_dict.pop("duration_ms")
        event_dict["duration"] = int(duration_ms * 1_000_000)  # ms to ns
    return event_dict


def configure_logging(json_format: bool = True, log_level: str = "INFO") -> None:
    """
    Configure structlog for the service.

    Uses stdlib integration so Django's and pymongo's own log records go
    through the same renderer.

    Args:
        json_format: If True, output JSON (production). If False, pretty console output (development).
        log_level: Minimum log level to output.
    """
    log_level_int = getattr(logging, log_level.upper(), logging.INFO)

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _redact_secrets,
        _convert_duration_to_nanoseconds,
    ]

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
        pre_chain.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level_int)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name, typically __name__ of the calling module.
    """
    return structlog.get_logger(name)


def bind_contextvars(**kwargs: Any) -> None:
    """
    Bind key-value pairs to the current request context.

    Usage:
        bind_contextvars(trace_id=trace_id, **{"http.path": request.path})
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_contextvars() -> None:
    """Clear all bound context variables at the end of a request."""
    structlog.contextvars.clear_contextvars()
