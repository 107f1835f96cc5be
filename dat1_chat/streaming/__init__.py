"""
Streaming support for chat-completion SSE responses.

- Line decoding that survives arbitrary chunk boundaries
- Tagged parsing of each ``data:`` payload
- Content accumulation with last-write-wins metadata
"""

from .models import DeltaKind, SSEFrame, StreamDelta, StreamMetadata
from .parser import (
    ChunkAccumulator,
    SSELineDecoder,
    iter_deltas,
    parse_delta,
    parse_frame,
    parse_line,
)

__all__ = [
    "ChunkAccumulator",
    "DeltaKind",
    "SSEFrame",
    "SSELineDecoder",
    "StreamDelta",
    "StreamMetadata",
    "iter_deltas",
    "parse_delta",
    "parse_frame",
    "parse_line",
]
