"""Shared ifcflow configuration utilities.

Centralises reading of ~/.ifcflow/configuration.json so the CLI, the
executor and the built-in nodes share one implementation.

Example file:

    {
      "logging": {"level": "DEBUG", "format": "json"},
      "analysis": {"clash_tolerance": 25, "show_clashes": false},
      "events": {"max_history": 500}
    }
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

IFCFLOW_CONFIG_FILE = Path.home() / ".ifcflow" / "configuration.json"

DEFAULT_CLASH_TOLERANCE = 10.0  # millimetres
DEFAULT_MAX_EVENT_HISTORY = 1000


def get_ifcflow_config() -> dict[str, Any]:
    """Load ifcflow configuration from ~/.ifcflow/configuration.json."""
    if not IFCFLOW_CONFIG_FILE.exists():
        return {}
    try:
        with open(IFCFLOW_CONFIG_FILE, encoding="utf-8-sig") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}


# ---------------------------------------------------------------------------
# Derived helpers
# ---------------------------------------------------------------------------


def get_log_level() -> str:
    """Return the log level, IFCFLOW_LOG_LEVEL overriding the config file."""
    env_level = os.environ.get("IFCFLOW_LOG_LEVEL")
    if env_level:
        return env_level.upper()
    return str(get_ifcflow_config().get("logging", {}).get("level", "INFO")).upper()


def get_log_format() -> str:
    """Return "json", "human" or "auto" (auto honours LOG_FORMAT / ENV)."""
    return get_ifcflow_config().get("logging", {}).get("format", "auto")


def get_clash_tolerance() -> float:
    """Return the default clash tolerance in millimetres."""
    value = get_ifcflow_config().get("analysis", {}).get("clash_tolerance")
    try:
        return float(value) if value is not None else DEFAULT_CLASH_TOLERANCE
    except (TypeError, ValueError):
        return DEFAULT_CLASH_TOLERANCE


def get_show_clashes() -> bool:
    return bool(get_ifcflow_config().get("analysis", {}).get("show_clashes", True))


def get_max_event_history() -> int:
    return int(get_ifcflow_config().get("events", {}).get("max_history", DEFAULT_MAX_EVENT_HISTORY))


# ---------------------------------------------------------------------------
# RuntimeConfig – shared by the CLI, executor and built-in nodes
# ---------------------------------------------------------------------------


@dataclass
class RuntimeConfig:
    """Workflow runtime configuration loaded from ~/.ifcflow/configuration.json."""

    log_level: str = field(default_factory=get_log_level)
    log_format: str = field(default_factory=get_log_format)
    clash_tolerance: float = field(default_factory=get_clash_tolerance)
    show_clashes: bool = field(default_factory=get_show_clashes)
    max_event_history: int = field(default_factory=get_max_event_history)
