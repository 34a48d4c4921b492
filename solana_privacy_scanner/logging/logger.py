"""
structlog setup for the scanner.

Every record carries ``event_type`` (the snake_case event passed as the first
argument), ``level``, an ISO 8601 UTC ``timestamp`` and the module ``logger``.
Scan code binds ``target`` and ``target_type`` through bind_target().

Records are written to stderr; stdout is reserved for reports, so ``--json``
output stays parseable. This module imports nothing from the package.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
# "json" or anything else for the console renderer.
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()


def _scan_event_fields(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Stamp the record and expose the event name as event_type and message."""
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "event_type" in event_dict:
        event_dict.setdefault("message", str(event_dict["event_type"]))
    return event_dict


def configure_structlog(level: str | None = None, fmt: str | None = None) -> None:
    """
    Install the scanner's processor chain.

    Runs on first import with LOG_LEVEL and LOG_FORMAT. The CLI calls it again
    to apply ``--verbose`` or ``--quiet``.
    """
    threshold = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    renderer: Any
    if (fmt or LOG_FORMAT).strip().lower() == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _scan_event_fields,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        # Reconfiguration must reach loggers created at import time.
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Module logger with ``logger=name`` bound.

        logger = get_logger(__name__)
        logger.info("report_generated", overall_risk="HIGH", signal_count=4)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_target(target: str, target_type: str) -> structlog.BoundLogger:
    """Logger for one scan, tagged with its target."""
    return get_logger("solana_privacy_scanner").bind(target=target, target_type=target_type)
