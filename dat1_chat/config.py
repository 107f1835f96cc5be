"""Configuration management for the dat1 chat proxy and renderer."""

import os
from typing import Any

import httpx
import yaml
from dotenv import load_dotenv

from dat1_chat.exceptions import ConfigurationError

API_KEY_ENV = "DAT1_API_KEY"
ENDPOINT_ENV = "DAT1_ENDPOINT_URL"
PROXY_URL_ENV = "DAT1_PROXY_URL"

DEFAULT_UPSTREAM_URL = (
    "https://api.dat1.co/api/v1/collection/gpt-120-oss/invoke-chat"
)
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 5000
DEFAULT_CONNECT_TIMEOUT = 10.0


class Configuration:
    """Manages configuration and environment variables for the chat proxy."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for the API key
        self._config_path = config_path or os.path.join(
            os.path.dirname(__file__), "config.yaml"
        )
        self._config = self._load_yaml_config()

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(self._config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @property
    def api_key(self) -> str:
        """Get the dat1 API key.

        Returns:
            The API key as a string.

        Raises:
            ConfigurationError: If the API key is not set or blank.
        """
        api_key = os.getenv(API_KEY_ENV, "").strip()
        if not api_key:
            raise ConfigurationError(f"{API_KEY_ENV} is not configured")
        return api_key

    @property
    def upstream_url(self) -> str:
        """Upstream invoke-chat URL, honouring the endpoint override."""
        override = os.getenv(ENDPOINT_ENV, "").strip()
        if override:
            return override
        return self._config.get("upstream", {}).get("url", DEFAULT_UPSTREAM_URL)

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary.

        Returns:
            The complete configuration dictionary.
        """
        return self._config

    def get_upstream_timeout(self) -> httpx.Timeout:
        """Build the upstream HTTP timeout.

        Only the connect phase is bounded; reads, writes and pool waits are
        not, so an upstream that keeps its stream open keeps the call open.
        """
        timeout_config = self._config.get("upstream", {}).get("timeout") or {}
        connect = timeout_config.get("connect")
        if connect is not None and connect <= 0:
            raise ValueError("upstream.timeout.connect must be positive")
        return httpx.Timeout(None, connect=connect)

    def get_chat_defaults(self) -> dict[str, Any]:
        """Get request defaults applied when a chat request leaves them unset.

        Returns:
            Dictionary with validated ``temperature`` and ``max_tokens``.

        Raises:
            ValueError: If a configured default is out of range.
        """
        defaults = self._config.get("chat", {}).get("defaults", {})
        temperature = defaults.get("temperature", DEFAULT_TEMPERATURE)
        max_tokens = defaults.get("max_tokens", DEFAULT_MAX_TOKENS)

        if isinstance(temperature, bool) or not isinstance(temperature, int | float):
            raise ValueError("chat.defaults.temperature must be a number")
        if temperature < 0:
            raise ValueError("chat.defaults.temperature must be non-negative")
        if isinstance(max_tokens, bool) or not isinstance(max_tokens, int):
            raise ValueError("chat.defaults.max_tokens must be an integer")
        if max_tokens < 1:
            raise ValueError("chat.defaults.max_tokens must be at least 1")

        return {"temperature": float(temperature), "max_tokens": max_tokens}

    def get_server_config(self) -> dict[str, Any]:
        """Get the proxy server bind address.

        Returns:
            Dictionary with ``host`` and ``port``.
        """
        server_config = self._config.get("server", {})
        port = server_config.get("port", 8000)
        if not isinstance(port, int) or not 0 < port < 65536:
            raise ValueError("server.port must be an integer in 1..65535")
        return {"host": server_config.get("host", "127.0.0.1"), "port": port}

    def get_client_config(self) -> dict[str, Any]:
        """Get renderer-side configuration.

        Returns:
            Dictionary with ``proxy_url``, initial ``mode`` and the
            ``connect_timeout`` in seconds.
        """
        client_config = self._config.get("client", {})
        proxy_url = os.getenv(PROXY_URL_ENV, "").strip() or client_config.get(
            "proxy_url", "http://127.0.0.1:8000"
        )
        mode = client_config.get("mode", "streaming")
        if mode not in ("normal", "streaming"):
            raise ValueError("client.mode must be 'normal' or 'streaming'")

        timeout_config = client_config.get("timeout") or {}
        connect = timeout_config.get("connect", DEFAULT_CONNECT_TIMEOUT)
        if isinstance(connect, bool) or not isinstance(connect, int | float):
            raise ValueError("client.timeout.connect must be a number")
        if connect <= 0:
            raise ValueError("client.timeout.connect must be positive")

        return {
            "proxy_url": proxy_url,
            "mode": mode,
            "connect_timeout": float(connect),
        }

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Logging configuration dictionary.
        """
        return self._config.get("logging", {})
