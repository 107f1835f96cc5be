"""
Error taxonomy for the chat proxy and renderer.

Every failure is terminal for the operation that raised it:
- Configuration problems surface before any network activity
- Upstream errors carry the raw upstream body
- Transport errors wrap the underlying httpx failure
- User input errors are rejected locally

Malformed SSE frames are not errors and never reach this module.
"""

from __future__ import annotations


class ChatError(Exception):
    """Base chat error with rich context."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


class ConfigurationError(ChatError):
    """Required configuration (the API credential) is missing or invalid."""
    pass


class UpstreamError(ChatError):
    """Non-success HTTP status from the inference API or the proxy."""

    def __init__(
        self,
        body: str,
        status_code: int | None = None,
        prefix: str = "dat1 API error",
    ):
        super().__init__(f"{prefix}: {body}", status_code=status_code, body=body)


class TransportError(ChatError):
    """Network failure or a stream that closed abruptly."""
    pass


class UserInputError(ChatError):
    """Empty input or a send attempted while another is in progress."""
    pass
