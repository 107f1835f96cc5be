"""
Incremental chat renderer.

Client-side counterpart of the proxy. It owns the chat state, sends the
conversation to one of the two proxy routes, and rebuilds the assistant
reply as SSE deltas arrive.

State rules:
- The message list is replaced wholesale on every change; only the
  assistant placeholder of the active stream is ever rewritten.
- ``loading`` gates new sends and is cleared in a ``finally`` block.
- ``reset_chat`` bumps ``generation``; a stream started under an older
  generation keeps draining but its writes are dropped.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from dat1_chat.exceptions import (
    ChatError,
    TransportError,
    UpstreamError,
    UserInputError,
)
from dat1_chat.formatting import format_metadata
from dat1_chat.logging_utils import operation_context
from dat1_chat.models import ChatMessage, ChatMode
from dat1_chat.streaming import ChunkAccumulator, iter_deltas

logger = structlog.get_logger(__name__)

CHAT_ROUTE = "/api/chat"
CHAT_STREAM_ROUTE = "/api/chat-stream"
PROXY_ERROR_PREFIX = "Failed to get response from chat API"
UNEXPECTED_RESPONSE_PREFIX = "Unexpected response from chat API"
DEFAULT_CONNECT_TIMEOUT = 10.0

UpdateCallback = Callable[[tuple[ChatMessage, ...]], None]


@dataclass
class ChatState:
    """Everything the chat surface renders."""
    messages: list[ChatMessage] = field(default_factory=list)
    input: str = ""
    loading: bool = False
    mode: ChatMode = ChatMode.STREAMING
    error: str | None = None
    generation: int = 0


class ChatRenderer:
    """Drives the input-to-render loop against the chat proxy."""

    def __init__(
        self,
        state: ChatState | None = None,
        client: httpx.AsyncClient | None = None,
        base_url: str = "http://127.0.0.1:8000",
        temperature: float | None = None,
        max_tokens: int | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ) -> None:
        self.state = state or ChatState()
        self._client = client
        self._owns_client = client is None
        self.base_url = base_url
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.connect_timeout = connect_timeout
        self._listeners: list[UpdateCallback] = []

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            # No read timeout: a stream lasts as long as the upstream keeps it open
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(None, connect=self.connect_timeout),
            )
        return self._client

    # ------------------------------------------------------------------ #
    # State helpers                                                      #
    # ------------------------------------------------------------------ #

    def subscribe(self, callback: UpdateCallback) -> None:
        """Register a callback invoked with a snapshot after each change."""
        self._listeners.append(callback)

    def unsubscribe(self, callback: UpdateCallback) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _notify(self) -> None:
        snapshot = tuple(self.state.messages)
        for callback in self._listeners:
            callback(snapshot)

    def _set_messages(self, messages: list[ChatMessage]) -> None:
        self.state.messages = messages
        self._notify()

    def _append(self, message: ChatMessage) -> int:
        self._set_messages([*self.state.messages, message])
        return len(self.state.messages) - 1

    def _replace_at(
        self, index: int, message: ChatMessage, generation: int
    ) -> bool:
        """Replace one message unless the chat was reset since ``generation``."""
        if generation != self.state.generation:
            logger.debug("Dropping write from stale stream", index=index)
            return False
        messages = list(self.state.messages)
        messages[index] = message
        self._set_messages(messages)
        return True

    def set_input(self, text: str) -> None:
        self.state.input = text

    def set_mode(self, mode: ChatMode | str) -> None:
        self.state.mode = ChatMode(mode)

    def reset_chat(self) -> None:
        """Clear all messages; an in-flight stream stops writing."""
        self.state.generation += 1
        self.state.error = None
        self._set_messages([])

    # ------------------------------------------------------------------ #
    # Sending                                                            #
    # ------------------------------------------------------------------ #

    def _request_body(self, history: list[ChatMessage]) -> dict[str, Any]:
        body: dict[str, Any] = {
            "messages": [m.model_dump(exclude={"thinking"}) for m in history]
        }
        if self.temperature is not None:
            body["temperature"] = self.temperature
        if self.max_tokens is not None:
            body["max_tokens"] = self.max_tokens
        return body

    async def send_message(self) -> None:
        """
        Send the pending input using the active mode.

        Raises:
            UserInputError: Input is blank or a send is already running.
                Nothing is mutated and no request is made.
            ChatError: The send failed; the message is also stored in
                ``state.error``.
        """
        if not self.state.input.strip():
            raise UserInputError("Cannot send empty message")
        if self.state.loading:
            raise UserInputError("A message is already being sent")

        user_message = ChatMessage(role="user", content=self.state.input)
        history = [*self.state.messages, user_message]

        self._append(user_message)
        self.state.input = ""
        self.state.loading = True
        self.state.error = None
        generation = self.state.generation

        try:
            async with operation_context(
                "renderer.send_message",
                context={"mode": self.state.mode.value, "messages": len(history)},
            ):
                if self.state.mode is ChatMode.STREAMING:
                    await self.send_streaming_message(history, generation)
                else:
                    await self.send_normal_message(history, generation)
        except ChatError as e:
            self.state.error = str(e)
            raise
        finally:
            self.state.loading = False

    async def _post(self, route: str, history: list[ChatMessage]) -> httpx.Response:
        try:
            response = await self.client.post(route, json=self._request_body(history))
        except httpx.TransportError as e:
            raise TransportError(f"Chat API request failed: {e!s}") from e
        if not response.is_success:
            raise UpstreamError(
                response.text, status_code=response.status_code,
                prefix=PROXY_ERROR_PREFIX,
            )
        return response

    async def send_normal_message(
        self, history: list[ChatMessage], generation: int
    ) -> None:
        """Buffered mode: one request, one completed assistant message."""
        response = await self._post(CHAT_ROUTE, history)

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise UpstreamError(
                response.text, status_code=response.status_code,
                prefix=UNEXPECTED_RESPONSE_PREFIX,
            ) from e

        # Structured content parts are not rendered
        if content is not None and not isinstance(content, str):
            raise UpstreamError(
                response.text, status_code=response.status_code,
                prefix=UNEXPECTED_RESPONSE_PREFIX,
            )

        thinking = format_metadata(data.get("timings"), data.get("usage"))
        assistant_message = ChatMessage(
            role="assistant", content=content or "", thinking=thinking
        )

        if generation != self.state.generation:
            logger.debug("Dropping reply for a chat that was reset")
            return
        self._append(assistant_message)

    async def send_streaming_message(
        self, history: list[ChatMessage], generation: int
    ) -> None:
        """Streaming mode: grow an assistant placeholder as deltas arrive."""
        index = self._append(ChatMessage(role="assistant", content=""))
        accumulator = ChunkAccumulator()

        request = self.client.build_request(
            "POST", CHAT_STREAM_ROUTE, json=self._request_body(history)
        )
        try:
            response = await self.client.send(request, stream=True)
        except httpx.TransportError as e:
            raise TransportError(f"Chat API request failed: {e!s}") from e

        try:
            if not response.is_success:
                await response.aread()
                raise UpstreamError(
                    response.text, status_code=response.status_code,
                    prefix=PROXY_ERROR_PREFIX,
                )

            async for delta in iter_deltas(response.aiter_bytes()):
                if accumulator.add(delta):
                    self._replace_at(
                        index,
                        ChatMessage(role="assistant", content=accumulator.content),
                        generation,
                    )
        except (httpx.TransportError, httpx.StreamError) as e:
            raise TransportError(f"Chat stream interrupted: {e!s}") from e
        finally:
            await response.aclose()

        logger.debug("Stream finished", **accumulator.get_stats())

        metadata = accumulator.metadata
        if metadata is not None:
            self._replace_at(
                index,
                ChatMessage(
                    role="assistant",
                    content=accumulator.content,
                    thinking=format_metadata(metadata.timings, metadata.usage),
                ),
                generation,
            )

    async def close(self) -> None:
        """Close the HTTP client if this renderer created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> ChatRenderer:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
