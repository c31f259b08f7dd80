"""Structlog configuration with plain-text output."""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any

import structlog
from structlog.types import Processor

_CONFIGURED = False


def _build_shared_processors() -> list[Processor]:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]


def _plain_text_renderer(_: Any, event_name: str, event_dict: dict[str, Any]) -> str:
    timestamp = event_dict.pop("timestamp", datetime.now(tz=timezone.utc).isoformat())
    level = str(event_dict.pop("level", "info")).upper()
    event = event_dict.pop("event", "") or event_name

    extras = " ".join(f"{key}={value}" for key, value in event_dict.items() if value is not None)
    parts = [timestamp, f"[{level}]", event]
    if extras:
        parts.append(extras)
    return " ".join(part for part in parts if part)


def configure_logging(level: str | None = None) -> None:
    """Configure application-wide logging once; later calls are no-ops."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    if level is None:
        from rag_gateway.config import get_settings

        level = get_settings().log_level

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_build_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _plain_text_renderer,
            ],
        )
    )

    root = logging.getLogger("rag_gateway")
    root.handlers = [handler]
    root.setLevel(level)
    root.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name``."""

    return structlog.get_logger(name)
