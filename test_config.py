#!/usr/bin/env python3
"""
Tests for configuration loading and the fail-closed credential check.
"""

import httpx
import pytest

from dat1_chat.config import DEFAULT_UPSTREAM_URL, Configuration
from dat1_chat.exceptions import ConfigurationError


def write_config(tmp_path, text: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


class TestCredential:
    """The API key is required and read lazily."""

    def test_missing_key_raises_configuration_error(self, configuration):
        with pytest.raises(ConfigurationError, match="DAT1_API_KEY is not configured"):
            _ = configuration.api_key

    def test_blank_key_counts_as_missing(self, configuration, monkeypatch):
        monkeypatch.setenv("DAT1_API_KEY", "   ")
        with pytest.raises(ConfigurationError):
            _ = configuration.api_key

    def test_key_is_returned_stripped(self, configuration, monkeypatch):
        monkeypatch.setenv("DAT1_API_KEY", " secret \n")
        assert configuration.api_key == "secret"

    def test_configuration_loads_without_key(self):
        """Constructing the configuration must not require the credential."""
        Configuration()


class TestUpstream:
    """Upstream URL and timeout."""

    def test_default_url(self, configuration):
        assert configuration.upstream_url == DEFAULT_UPSTREAM_URL

    def test_endpoint_override(self, configuration, monkeypatch):
        monkeypatch.setenv("DAT1_ENDPOINT_URL", "https://example.test/custom/invoke-chat")
        assert configuration.upstream_url == "https://example.test/custom/invoke-chat"

    def test_empty_override_is_ignored(self, configuration, monkeypatch):
        monkeypatch.setenv("DAT1_ENDPOINT_URL", "")
        assert configuration.upstream_url == DEFAULT_UPSTREAM_URL

    def test_timeout_only_bounds_connect(self, configuration):
        timeout = configuration.get_upstream_timeout()
        assert isinstance(timeout, httpx.Timeout)
        assert timeout.connect == 10.0
        assert timeout.read is None

    def test_invalid_connect_timeout(self, tmp_path):
        path = write_config(tmp_path, "upstream:\n  timeout:\n    connect: 0\n")
        with pytest.raises(ValueError, match="connect must be positive"):
            Configuration(path).get_upstream_timeout()


class TestChatDefaults:
    """Request defaults and their validation."""

    def test_shipped_defaults(self, configuration):
        assert configuration.get_chat_defaults() == {
            "temperature": 0.7,
            "max_tokens": 5000,
        }

    def test_defaults_when_section_missing(self, tmp_path):
        path = write_config(tmp_path, "server:\n  port: 9000\n")
        assert Configuration(path).get_chat_defaults() == {
            "temperature": 0.7,
            "max_tokens": 5000,
        }

    @pytest.mark.parametrize(
        "defaults, message",
        [
            ("temperature: -1", "non-negative"),
            ("temperature: hot", "must be a number"),
            ("max_tokens: 0", "at least 1"),
            ("max_tokens: 1.5", "must be an integer"),
        ],
    )
    def test_invalid_defaults(self, tmp_path, defaults, message):
        path = write_config(tmp_path, f"chat:\n  defaults:\n    {defaults}\n")
        with pytest.raises(ValueError, match=message):
            Configuration(path).get_chat_defaults()


class TestFileLoading:
    """YAML loading and other sections."""

    def test_non_mapping_yaml_rejected(self, tmp_path):
        path = write_config(tmp_path, "- just\n- a list\n")
        with pytest.raises(ValueError, match="must be YAML dict"):
            Configuration(path)

    def test_server_config(self, configuration):
        assert configuration.get_server_config() == {"host": "127.0.0.1", "port": 8000}

    def test_invalid_port(self, tmp_path):
        path = write_config(tmp_path, "server:\n  port: 70000\n")
        with pytest.raises(ValueError, match="server.port"):
            Configuration(path).get_server_config()

    def test_client_config_env_override(self, configuration, monkeypatch):
        monkeypatch.setenv("DAT1_PROXY_URL", "http://proxy.test:9000")
        assert configuration.get_client_config() == {
            "proxy_url": "http://proxy.test:9000",
            "mode": "streaming",
            "connect_timeout": 10.0,
        }

    def test_invalid_client_mode(self, tmp_path):
        path = write_config(tmp_path, "client:\n  mode: telepathy\n")
        with pytest.raises(ValueError, match="client.mode"):
            Configuration(path).get_client_config()

    def test_client_connect_timeout(self, tmp_path):
        path = write_config(tmp_path, "client:\n  timeout:\n    connect: 3\n")
        assert Configuration(path).get_client_config()["connect_timeout"] == 3.0

    def test_client_connect_timeout_default(self, tmp_path):
        path = write_config(tmp_path, "client:\n  mode: normal\n")
        assert Configuration(path).get_client_config()["connect_timeout"] == 10.0

    @pytest.mark.parametrize("value", ["0", "-1", "soon", "true"])
    def test_invalid_client_connect_timeout(self, tmp_path, value):
        path = write_config(tmp_path, f"client:\n  timeout:\n    connect: {value}\n")
        with pytest.raises(ValueError, match="client.timeout.connect"):
            Configuration(path).get_client_config()

    def test_logging_config(self, configuration):
        assert configuration.get_logging_config()["level"] == "INFO"
