"""
Structured logging for provisioning runs.

Same processor chain as the backend service: structlog rendered through
stdlib logging so CDK and boto3 messages share one format.

Usage:
    from provisioning.log import configure_logging

    configure_logging(json_format=False)
"""

import logging
import sys

import structlog
from structlog.types import Processor


def configure_logging(json_format: bool = False, log_level: str = "INFO") -> None:
    """
    Configure structlog for provisioning.

    Args:
        json_format: If True, output JSON (CI). If False, pretty console output.
        log_level: Minimum log level to output.
    """
    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_format:
        renderer: Processor = structlog.processors.JSONRenderer()
        pre_chain.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )

    # stdout carries `cdk synth` output, so logs go to stderr.
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
