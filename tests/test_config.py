"""
Tests for configuration loading and logging setup.
"""

import json
import logging

import pytest

from ifcflow import config
from ifcflow.config import RuntimeConfig
from ifcflow.observability.logging import (
    HumanReadableFormatter,
    StructuredFormatter,
    clear_trace_context,
    configure_logging,
    get_trace_context,
    set_trace_context,
)


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    path = tmp_path / "configuration.json"
    monkeypatch.setattr(config, "IFCFLOW_CONFIG_FILE", path)
    monkeypatch.delenv("IFCFLOW_LOG_LEVEL", raising=False)
    return path


def test_defaults_without_config_file(config_file):
    runtime = RuntimeConfig()

    assert runtime.log_level == "INFO"
    assert runtime.log_format == "auto"
    assert runtime.clash_tolerance == config.DEFAULT_CLASH_TOLERANCE
    assert runtime.show_clashes is True
    assert runtime.max_event_history == config.DEFAULT_MAX_EVENT_HISTORY


def test_values_come_from_config_file(config_file):
    config_file.write_text(
        json.dumps(
            {
                "logging": {"level": "debug", "format": "json"},
                "analysis": {"clash_tolerance": "25", "show_clashes": False},
                "events": {"max_history": 50},
            }
        ),
        encoding="utf-8",
    )

    runtime = RuntimeConfig()

    assert runtime.log_level == "DEBUG"
    assert runtime.log_format == "json"
    assert runtime.clash_tolerance == 25.0
    assert runtime.show_clashes is False
    assert runtime.max_event_history == 50


def test_environment_overrides_log_level(config_file, monkeypatch):
    config_file.write_text(json.dumps({"logging": {"level": "DEBUG"}}), encoding="utf-8")
    monkeypatch.setenv("IFCFLOW_LOG_LEVEL", "warning")

    assert config.get_log_level() == "WARNING"


def test_invalid_config_file_is_ignored(config_file):
    config_file.write_text("{not json", encoding="utf-8")

    assert config.get_ifcflow_config() == {}
    assert config.get_clash_tolerance() == config.DEFAULT_CLASH_TOLERANCE


def test_bad_clash_tolerance_falls_back(config_file):
    config_file.write_text(json.dumps({"analysis": {"clash_tolerance": "wide"}}), encoding="utf-8")

    assert config.get_clash_tolerance() == config.DEFAULT_CLASH_TOLERANCE


# ---- Logging ----


def make_record(message="hello"):
    return logging.LogRecord(
        name="ifcflow.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )


def test_structured_formatter_includes_trace_context():
    clear_trace_context()
    set_trace_context(workflow_id="wf", run_id="run-123")
    set_trace_context(node_id="filter-1")
    try:
        entry = json.loads(StructuredFormatter().format(make_record("\x1b[32mgreen\x1b[0m")))
    finally:
        clear_trace_context()

    assert entry["message"] == "green"
    assert entry["level"] == "info"
    assert entry["workflow_id"] == "wf"
    assert entry["run_id"] == "run-123"
    assert entry["node_id"] == "filter-1"


def test_human_formatter_shows_node():
    clear_trace_context()
    set_trace_context(run_id="abcdef123456", node_id="quantity-1")
    try:
        line = HumanReadableFormatter().format(make_record("summing"))
    finally:
        clear_trace_context()

    assert "summing" in line
    assert "quantity-1" in line


def test_trace_context_is_copied():
    clear_trace_context()
    set_trace_context(run_id="r")
    context = get_trace_context()
    context["run_id"] = "changed"

    assert get_trace_context() == {"run_id": "r"}
    clear_trace_context()


def test_configure_logging_installs_single_handler():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        configure_logging(level="debug", format="human")
        configure_logging(level="warning", format="human")

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, HumanReadableFormatter)
        assert root.level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
