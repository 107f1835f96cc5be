"""Shared fixtures for the dat1 chat tests."""

from collections.abc import AsyncIterator, Callable

import httpx
import pytest

from dat1_chat.config import Configuration


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep the developer's environment and .env file out of the tests."""
    for name in ("DAT1_API_KEY", "DAT1_ENDPOINT_URL", "DAT1_PROXY_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("dat1_chat.config.load_dotenv", lambda: None)


@pytest.fixture
def api_key(monkeypatch) -> str:
    monkeypatch.setenv("DAT1_API_KEY", "test-key")
    return "test-key"


@pytest.fixture
def configuration() -> Configuration:
    return Configuration()


def byte_stream(*chunks: bytes | str) -> AsyncIterator[bytes]:
    """Async body that yields exactly the given chunks."""
    async def gen():
        for chunk in chunks:
            yield chunk.encode() if isinstance(chunk, str) else chunk
    return gen()


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)
