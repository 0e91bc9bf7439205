"""
Tests for environment settings.
"""

import pytest

from chainflow import settings
from chainflow.domain.value_object import ExecutionOptions


class TestSettings:
    """Test cases for chainflow.settings."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for key in ("CHAINFLOW_RETRIES", "CHAINFLOW_RETRY_BACKOFF", "CHAINFLOW_HTTP_TIMEOUT", "CHAINFLOW_LOG_SPANS"):
            monkeypatch.delenv(key, raising=False)

    def test_defaults(self):
        """Test defaults match ExecutionOptions."""
        defaults = ExecutionOptions()

        assert settings.retries() == defaults.retries
        assert settings.retry_backoff() == defaults.retry_backoff
        assert settings.http_timeout() == defaults.http_timeout
        assert settings.log_spans() is False

    def test_overrides(self, monkeypatch):
        """Test values read from the environment."""
        monkeypatch.setenv("CHAINFLOW_RETRIES", "5")
        monkeypatch.setenv("CHAINFLOW_RETRY_BACKOFF", "0.5")
        monkeypatch.setenv("CHAINFLOW_HTTP_TIMEOUT", "12.5")
        monkeypatch.setenv("CHAINFLOW_LOG_SPANS", "Yes")

        assert settings.retries() == 5
        assert settings.retry_backoff() == 0.5
        assert settings.http_timeout() == 12.5
        assert settings.log_spans() is True

    @pytest.mark.parametrize("raw", ["none", "0", ""])
    def test_timeout_disabled(self, monkeypatch, raw):
        """Test values that disable the HTTP timeout."""
        monkeypatch.setenv("CHAINFLOW_HTTP_TIMEOUT", raw)

        assert settings.http_timeout() is None

    def test_execution_options_from_env(self, monkeypatch):
        """Test ExecutionOptions.from_env."""
        monkeypatch.setenv("CHAINFLOW_RETRIES", "1")

        options = ExecutionOptions.from_env()

        assert options.retries == 1
        assert options.deadline_offset == 300
