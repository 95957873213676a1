"""Tests for the observability module — prompt registry, structured logging, tracing setup."""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from ocpexplorer.observability.logging import (
    JSONFormatter,
    correlation_id,
    get_correlation_id,
    setup_logging,
)
from ocpexplorer.observability.prompts import (
    get_active_prompt,
    get_prompt_version,
    list_prompts,
)
from ocpexplorer.observability.tracing import init_tracing


def _record(msg="test message", name="ocpexplorer.test", **extra):
    record = logging.LogRecord(
        name=name,
        level=logging.INFO,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=None,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestPromptRegistry:
    def test_get_active_prompt_returns_string(self):
        prompt = get_active_prompt("ocp_assistant")
        assert "New Westminster Official Community Plan" in prompt
        assert "GUIDELINES:" in prompt

    def test_get_prompt_version(self):
        assert get_prompt_version("ocp_assistant") == "v1"

    def test_list_prompts(self):
        assert list_prompts() == [{"name": "ocp_assistant", "version": "v1"}]

    def test_unknown_prompt_raises(self):
        with pytest.raises(KeyError, match="Unknown prompt"):
            get_active_prompt("nonexistent")
        with pytest.raises(KeyError, match="Unknown prompt"):
            get_prompt_version("nonexistent")


class TestJSONFormatter:
    def test_json_formatter_output(self):
        parsed = json.loads(JSONFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "ocpexplorer.test"
        assert parsed["message"] == "test message"
        assert "timestamp" in parsed
        assert "correlation_id" not in parsed

    def test_json_formatter_includes_correlation_id(self):
        token = correlation_id.set("test-123")
        try:
            parsed = json.loads(JSONFormatter().format(_record()))
            assert parsed["correlation_id"] == "test-123"
        finally:
            correlation_id.reset(token)

    def test_search_extra_fields(self):
        record = _record(query="residential", method="local", lat=49.2, lng=-122.9, duration_ms=3.5)
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed["query"] == "residential"
        assert parsed["method"] == "local"
        assert parsed["lat"] == 49.2
        assert parsed["duration_ms"] == 3.5

    def test_exception_included(self):
        try:
            raise ValueError("bad data")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()
        parsed = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad data" in parsed["exception"]

    async def test_correlation_id_propagation(self):
        results = []

        async def inner():
            results.append(get_correlation_id())

        token = correlation_id.set("async-456")
        try:
            await inner()
        finally:
            correlation_id.reset(token)

        assert results == ["async-456"]

    def test_setup_logging_json(self):
        setup_logging(json_format=True, level="WARNING")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)
        assert logging.getLogger("httpx").level == logging.WARNING
        # Restore default for other tests
        setup_logging(json_format=False, level="INFO")
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)


class TestInitTracing:
    def test_points_mlflow_at_settings(self, test_settings):
        with patch("ocpexplorer.observability.tracing.mlflow") as mock_mlflow:
            init_tracing(test_settings)
        mock_mlflow.set_tracking_uri.assert_called_once_with(test_settings.mlflow_tracking_uri)
        mock_mlflow.set_experiment.assert_called_once_with("ocp-explorer")
        mock_mlflow.config.enable_async_logging.assert_called_once()
