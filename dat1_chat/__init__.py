"""
Streaming chat proxy and incremental renderer for dat1-hosted models.

This package provides:
- A proxy that forwards OpenAI-compatible chat requests to dat1 with the
  server-side credential, streaming or buffered
- A renderer that rebuilds replies from the SSE delta stream
- Timing/usage formatting shared by both modes
"""

from __future__ import annotations

from .config import Configuration
from .exceptions import (
    ChatError,
    ConfigurationError,
    TransportError,
    UpstreamError,
    UserInputError,
)
from .formatting import format_metadata
from .models import ChatMessage, ChatMode, ChatRequest, Timings, Usage
from .proxy import StreamProxy, UpstreamStream
from .renderer import ChatRenderer, ChatState

__all__ = [
    "ChatError",
    "ChatMessage",
    "ChatMode",
    "ChatRenderer",
    "ChatRequest",
    "ChatState",
    "Configuration",
    "ConfigurationError",
    "StreamProxy",
    "Timings",
    "TransportError",
    "UpstreamError",
    "UpstreamStream",
    "Usage",
    "UserInputError",
    "format_metadata",
]
