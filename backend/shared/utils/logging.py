"""
structlog setup shared by the Kho-Kho Live services.

Everything, including stdlib loggers from uvicorn and SQLAlchemy, goes to
stdout through one ProcessorFormatter: a readable console layout in dev and
one JSON object per line in staging/production.
"""
from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from shared.config import Environment, Settings, get_settings

_QUIETED = ("uvicorn.access", "asyncio", "sqlalchemy.engine", "websockets")

Processor = structlog.types.Processor


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _render_chain(settings: Settings) -> list[Processor]:
    if settings.environment == Environment.DEV:
        return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]


def setup_logging(service_name: str, extra_context: dict[str, Any] | None = None) -> None:
    """
    Route structlog and stdlib logging through one stdout handler.

    ``service``, ``environment`` and (when set) ``instance_id`` are bound as
    context variables so they appear on every line, including lines logged
    by request handlers that bind their own ``request_id``.
    """
    settings = get_settings()
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_render_chain(settings),
            ],
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    for name in _QUIETED:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=settings.environment.value,
        **({"instance_id": settings.instance_id} if settings.instance_id else {}),
        **(extra_context or {}),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
