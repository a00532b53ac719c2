"""
Logging for workflow runs.

The executor stores the ids of the current workflow, run and node in a
ContextVar. Both formatters read it, so a handler's plain
``logger.info(...)`` line already says which node of which run wrote it:

    [INFO    ] [wf:house-takeoff | run:3fa9c2d1 | node:filter-walls] Filtering 120 elements

    {"timestamp": "...", "level": "info", "logger": "ifcflow.nodes.elements",
     "message": "Filtering 120 elements", "workflow_id": "house-takeoff",
     "run_id": "...", "node_id": "filter-walls"}

The context survives awaits and is copied into tasks created from the run.
"""

import json
import logging
import os
import re
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any, TextIO

trace_context: ContextVar[dict[str, Any] | None] = ContextVar("trace_context", default=None)

# Order used by the human prefix
TRACE_KEYS = ("workflow_id", "run_id", "node_id")

# Attributes callers may attach with ``extra={...}``
EXTRA_FIELDS = ("event", "kind", "latency_ms", "result_type")

_ANSI = re.compile(r"\x1b\[[0-9;]*m")


def strip_ansi_codes(text: str) -> str:
    return _ANSI.sub("", text)


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    values = {}
    for name in EXTRA_FIELDS:
        value = getattr(record, name, None)
        if value is not None:
            values[name] = value
    return values


class StructuredFormatter(logging.Formatter):
    """One JSON object per line: record fields, trace context, then extras."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": strip_ansi_codes(record.getMessage()),
        }
        entry.update(trace_context.get() or {})

        for name, value in _extras(record).items():
            entry[name] = strip_ansi_codes(value) if isinstance(value, str) else value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Level tag plus a short ``[wf:.. | run:.. | node:..]`` prefix.

    Colors are on unless disabled explicitly or through NO_COLOR.
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, colors: bool | None = None):
        super().__init__()
        self.colors = (not os.environ.get("NO_COLOR")) if colors is None else colors

    @staticmethod
    def _prefix(context: dict[str, Any]) -> str:
        labels = {"workflow_id": "wf", "run_id": "run", "node_id": "node"}
        parts = []
        for key in TRACE_KEYS:
            value = context.get(key)
            if not value:
                continue
            if key == "run_id":
                value = str(value)[-8:]
            parts.append(f"{labels[key]}:{value}")
        return f"[{' | '.join(parts)}] " if parts else ""

    def format(self, record: logging.LogRecord) -> str:
        level = f"[{record.levelname:<8}]"
        if self.colors:
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{self.RESET}"

        line = f"{level} {self._prefix(trace_context.get() or {})}{record.getMessage()}"
        event = getattr(record, "event", None)
        if event is not None:
            line += f" [{event}]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _resolve_format(format: str) -> str:
    if format != "auto":
        return format
    if os.getenv("LOG_FORMAT", "").lower() == "json":
        return "json"
    return "json" if os.getenv("ENV", "development").lower() == "production" else "human"


def configure_logging(
    level: str = "INFO",
    format: str = "auto",  # "json", "human", or "auto"
    stream: TextIO | None = None,
) -> None:
    """
    Install a single root handler. Safe to call again; the previous
    handlers are replaced.

    "auto" picks JSON when LOG_FORMAT=json or ENV=production.
    """
    if _resolve_format(format) == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = HumanReadableFormatter()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())


def set_trace_context(**kwargs: Any) -> None:
    """Merge ids into the trace context of the current task."""
    trace_context.set({**(trace_context.get() or {}), **kwargs})


def get_trace_context() -> dict:
    """Copy of the current trace context ({} when unset)."""
    return dict(trace_context.get() or {})


def clear_trace_context() -> None:
    trace_context.set(None)
