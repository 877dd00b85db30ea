"""Observability helpers: structured logging with structlog and CloudWatch Embedded Metrics.

Call `init_observability` once at process start, before the app handles requests.
Pipelines that emit metrics decorate themselves with `metric_scope`.
"""
from __future__ import annotations

import logging
from typing import Optional

from aws_embedded_metrics import metric_scope
import structlog

from settings import Settings, get_settings

__all__ = [
    "init_observability",
    "metric_scope",  # re-export for convenience
]

SERVICE_NAME = "portfolio-builder"


def _setup_logging(log_format: str, log_level: str) -> None:
    """Configure structlog for structured logging (JSON or console)."""

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format.lower() == "json":
        final_processor = structlog.processors.JSONRenderer()
    else:
        final_processor = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors + [final_processor],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # structlog renders the message; the handler only writes it out
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        root_logger.addHandler(logging.StreamHandler())
    root_logger.setLevel(log_level.upper())

    # Silence noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def init_observability(settings: Optional[Settings] = None) -> None:
    """Setup logging. Safe to call more than once."""

    settings = settings or get_settings()
    _setup_logging(settings.log_format, settings.log_level)

    structlog.get_logger(__name__).info(
        "Observability initialized", service=SERVICE_NAME, log_format=settings.log_format
    )
