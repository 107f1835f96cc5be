"""
Stream proxy for the dat1 chat-completion API.

The proxy adds the server-side credential and request defaults, makes
exactly one upstream call per inbound call, and hands the result back
untouched:
- Buffered route: the upstream JSON object, verbatim
- Streaming route: the upstream SSE bytes, relayed as they arrive

There are no retries; a failed call is a failed operation.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx
import structlog

from dat1_chat.config import Configuration
from dat1_chat.exceptions import TransportError, UpstreamError
from dat1_chat.logging_utils import log_operation
from dat1_chat.models import ChatRequest

logger = structlog.get_logger(__name__)


class UpstreamStream:
    """An open upstream SSE response, relayed byte for byte."""

    def __init__(self, response: httpx.Response):
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self._response.headers

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        """Yield upstream body chunks as they arrive."""
        try:
            async for chunk in self._response.aiter_bytes():
                yield chunk
        except (httpx.TransportError, httpx.StreamError) as e:
            logger.error("Upstream stream interrupted", error=str(e))
            raise TransportError(f"Upstream stream interrupted: {e!s}") from e

    async def aclose(self) -> None:
        await self._response.aclose()


class StreamProxy:
    """Forwards chat requests to the dat1 inference API."""

    def __init__(
        self,
        configuration: Configuration,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.configuration = configuration
        self._defaults = configuration.get_chat_defaults()
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.configuration.get_upstream_timeout()
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        # Raises ConfigurationError when the key is missing, before any I/O
        return {
            "Content-Type": "application/json",
            "X-API-Key": self.configuration.api_key,
        }

    def build_payload(self, request: ChatRequest, *, stream: bool) -> dict[str, Any]:
        """Build the upstream JSON body, filling unset fields from defaults."""
        temperature = request.temperature
        if temperature is None:
            temperature = self._defaults["temperature"]
        max_tokens = request.max_tokens
        if max_tokens is None:
            max_tokens = self._defaults["max_tokens"]

        return {
            "messages": [m.to_upstream() for m in request.messages],
            "temperature": temperature,
            "stream": stream,
            "max_tokens": max_tokens,
        }

    @log_operation("proxy.complete")
    async def complete(self, request: ChatRequest) -> dict[str, Any]:
        """Buffered route: return the upstream JSON object verbatim."""
        headers = self._headers()
        payload = self.build_payload(request, stream=False)
        url = self.configuration.upstream_url

        try:
            response = await self.client.post(url, json=payload, headers=headers)
        except httpx.TransportError as e:
            raise TransportError(f"Upstream request failed: {e!s}") from e

        if not response.is_success:
            raise UpstreamError(response.text, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError(
                response.text,
                status_code=response.status_code,
                prefix="dat1 API returned invalid JSON",
            ) from e

        logger.debug(
            "Upstream completion received",
            messages=len(request.messages),
            usage=data.get("usage") if isinstance(data, dict) else None,
        )
        return data

    @log_operation("proxy.open_stream")
    async def open_stream(self, request: ChatRequest) -> UpstreamStream:
        """Streaming route: open the upstream SSE response.

        The upstream status is checked before returning, so a failure
        surfaces as ``UpstreamError`` instead of a half-written stream. The
        caller owns the returned stream and must ``aclose()`` it.
        """
        headers = self._headers()
        payload = self.build_payload(request, stream=True)
        upstream_request = self.client.build_request(
            "POST", self.configuration.upstream_url, json=payload, headers=headers
        )

        try:
            response = await self.client.send(upstream_request, stream=True)
        except httpx.TransportError as e:
            raise TransportError(f"Upstream request failed: {e!s}") from e

        if not response.is_success:
            try:
                await response.aread()
                error_text = response.text
            except (httpx.TransportError, httpx.StreamError) as e:
                raise TransportError(
                    f"Upstream error body could not be read: {e!s}"
                ) from e
            finally:
                await response.aclose()
            raise UpstreamError(error_text, status_code=response.status_code)

        return UpstreamStream(response)

    async def close(self) -> None:
        """Close the HTTP client if this proxy created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> StreamProxy:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
