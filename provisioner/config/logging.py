"""
Structured logging configuration using structlog.
Provides JSON logging for production and human-readable logging for development.

Logs go to stderr; stdout carries the operator-facing results.
"""
import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from provisioner.config.settings import Settings


def app_context(settings: Settings) -> Processor:
    """Build a processor that adds application context to log events."""

    def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict["app"] = settings.app_name
        event_dict["version"] = settings.app_version
        event_dict["environment"] = settings.environment
        return event_dict

    return add_app_context


def configure_logging(settings: Settings) -> None:
    """
    Configure structured logging for the tool.

    JSON lines in production, the console renderer otherwise.

    Args:
        settings: Settings providing log level, environment and app identity
    """

    # Shared processors for all log records
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        app_context(settings),
    ]

    if settings.is_production:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,  # type: ignore
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.log_level),
        force=True,
    )

    # The driver is chatty at DEBUG
    logging.getLogger("mysql.connector").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured structlog logger.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
