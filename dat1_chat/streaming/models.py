"""
Streaming-specific dataclasses for the chat stream consumer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ..models import Timings, Usage

DONE_SENTINEL = "[DONE]"


class DeltaKind(Enum):
    """What a single parsed SSE payload carried."""
    CONTENT = "content"
    METADATA = "metadata"
    CONTENT_AND_METADATA = "content_and_metadata"
    DONE = "done"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class SSEFrame:
    """One ``data: `` line with the prefix stripped."""
    payload: str

    @property
    def is_done(self) -> bool:
        return self.payload == DONE_SENTINEL


@dataclass(frozen=True)
class StreamMetadata:
    """Usage and timing statistics reported by the upstream."""
    timings: Timings | None = None
    usage: Usage | None = None


@dataclass(frozen=True)
class StreamDelta:
    """Tagged result of parsing one SSE frame."""
    kind: DeltaKind
    content: str | None = None
    metadata: StreamMetadata | None = None

    @property
    def has_content(self) -> bool:
        return self.kind in (DeltaKind.CONTENT, DeltaKind.CONTENT_AND_METADATA)

    @property
    def has_metadata(self) -> bool:
        return self.kind in (DeltaKind.METADATA, DeltaKind.CONTENT_AND_METADATA)


@dataclass
class AccumulatorState:
    """Mutable state for delta accumulation."""
    content_buffer: str = ""
    metadata: StreamMetadata | None = None
    frame_count: int = 0
    discarded_frames: int = 0
