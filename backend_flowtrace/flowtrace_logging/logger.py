"""
Structured logging for FlowTrace: one JSON object per event.

Every record carries event_type, level, logger and an ISO-8601 UTC
timestamp. Modules call get_logger(__name__) and log a snake_case event
name with keyword context (wallet_id, counts, truncated signatures).

Level and renderer come from LOG_LEVEL / LOG_FORMAT on first import;
configure_structlog() can be called again (e.g. by main with the resolved
Settings) to switch them.

Imports nothing from backend_flowtrace so any module can use it.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

DEFAULT_LEVEL = "INFO"
DEFAULT_FORMAT = "json"


def _stamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog's 'event' becomes event_type; message mirrors it unless given."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "event_type" in event_dict:
        event_dict.setdefault("message", str(event_dict["event_type"]))
    return event_dict


def _level_value(level: str) -> int:
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.INFO


def configure_structlog(level: str | None = None, fmt: str | None = None) -> None:
    """
    Configure structlog processors and the level filter.

    Args:
        level: Level name; LOG_LEVEL env (default INFO) when None.
        fmt: "json" for JSON lines, anything else for the console renderer;
            LOG_FORMAT env (default json) when None.
    """
    level = level or os.getenv("LOG_LEVEL") or DEFAULT_LEVEL
    fmt = (fmt or os.getenv("LOG_FORMAT") or DEFAULT_FORMAT).strip().lower()
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        _stamp,
        _event_type,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_value(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Return a structured logger bound to the module name.

        logger = get_logger(__name__)
        logger.info("flow_analysis_done", wallet_id=addr, risk_score=42)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_wallet(wallet_id: str, name: str = "backend_flowtrace") -> structlog.BoundLogger:
    """Logger with wallet_id bound to every call, for per-wallet request scopes."""
    return get_logger(name).bind(wallet_id=wallet_id)


def short(value: str | None, keep: int = 16) -> str:
    """Truncate an address or signature for log fields."""
    s = value or ""
    return s[:keep] + "..." if len(s) > keep else s
