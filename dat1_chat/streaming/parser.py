"""
SSE line decoding and delta accumulation for chat-completion streams.

Chunk boundaries from the transport are arbitrary: a read can end in the
middle of a UTF-8 sequence, a line, or a JSON object. The decoder buffers
until a full line is available, so the accumulated text does not depend on
where the boundaries fall.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncGenerator, AsyncIterable
from typing import Any

from pydantic import ValidationError

from ..models import Timings, Usage
from .models import (
    AccumulatorState,
    DeltaKind,
    SSEFrame,
    StreamDelta,
    StreamMetadata,
)

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "


class SSELineDecoder:
    """Incrementally turn byte chunks into complete text lines."""

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes | str) -> list[str]:
        """Add a chunk and return every line it completed."""
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk

        if "\n" not in self._buffer:
            return []

        *lines, self._buffer = self._buffer.split("\n")
        return [line.removesuffix("\r") for line in lines]

    def flush(self) -> list[str]:
        """Return the trailing unterminated line at end of stream, if any."""
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        if not tail:
            return []
        return [tail.removesuffix("\r")]


def parse_frame(line: str) -> SSEFrame | None:
    """Extract the payload of a ``data: `` line; other lines are ignored."""
    if not line.startswith(DATA_PREFIX):
        return None
    return SSEFrame(payload=line[len(DATA_PREFIX):])


def _first_delta_content(data: dict[str, Any]) -> str | None:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        return None
    delta = choice.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if isinstance(content, str) and content:
        return content
    return None


def _validate_or_none(model: type[Timings] | type[Usage], raw: Any):
    if not isinstance(raw, dict):
        return None
    try:
        return model.model_validate(raw)
    except ValidationError:
        logger.debug("Ignoring malformed %s block: %r", model.__name__, raw)
        return None


def extract_metadata(data: dict[str, Any]) -> StreamMetadata | None:
    """Pull ``timings``/``usage`` out of a payload, if either is present."""
    if data.get("usage") is None and data.get("timings") is None:
        return None
    return StreamMetadata(
        timings=_validate_or_none(Timings, data.get("timings")),
        usage=_validate_or_none(Usage, data.get("usage")),
    )


def parse_delta(frame: SSEFrame) -> StreamDelta:
    """Classify one frame's payload into a tagged ``StreamDelta``."""
    if frame.is_done:
        return StreamDelta(kind=DeltaKind.DONE)

    try:
        data = json.loads(frame.payload)
    except json.JSONDecodeError:
        # Partial or malformed frames are expected and dropped
        logger.debug("Discarding malformed SSE payload: %r", frame.payload[:200])
        return StreamDelta(kind=DeltaKind.UNRECOGNIZED)

    if not isinstance(data, dict):
        return StreamDelta(kind=DeltaKind.UNRECOGNIZED)

    content = _first_delta_content(data)
    metadata = extract_metadata(data)

    if content is not None and metadata is not None:
        kind = DeltaKind.CONTENT_AND_METADATA
    elif content is not None:
        kind = DeltaKind.CONTENT
    elif metadata is not None:
        kind = DeltaKind.METADATA
    else:
        kind = DeltaKind.UNRECOGNIZED

    return StreamDelta(kind=kind, content=content, metadata=metadata)


def parse_line(line: str) -> StreamDelta | None:
    """Parse a raw SSE line; ``None`` for lines that carry no data."""
    frame = parse_frame(line)
    if frame is None:
        return None
    return parse_delta(frame)


class ChunkAccumulator:
    """
    Accumulate content fragments and keep the latest metadata.

    Metadata is last-write-wins: a later frame carrying usage or timings
    replaces whatever an earlier one reported.
    """

    def __init__(self):
        self.state = AccumulatorState()

    @property
    def content(self) -> str:
        return self.state.content_buffer

    @property
    def metadata(self) -> StreamMetadata | None:
        return self.state.metadata

    def add(self, delta: StreamDelta) -> bool:
        """Apply a delta; returns True when the accumulated content changed."""
        self.state.frame_count += 1

        if delta.kind is DeltaKind.UNRECOGNIZED:
            self.state.discarded_frames += 1
            return False

        if delta.has_metadata:
            self.state.metadata = delta.metadata

        if delta.has_content and delta.content:
            self.state.content_buffer += delta.content
            return True

        return False

    def get_stats(self) -> dict[str, int]:
        """Get accumulation statistics for logging."""
        return {
            "frames": self.state.frame_count,
            "discarded_frames": self.state.discarded_frames,
            "content_chars": len(self.state.content_buffer),
        }

    def reset(self) -> None:
        """Reset accumulator state for a new stream."""
        self.state = AccumulatorState()


async def iter_deltas(
    chunks: AsyncIterable[bytes],
) -> AsyncGenerator[StreamDelta]:
    """
    Decode an SSE byte stream into deltas.

    The ``[DONE]`` sentinel is yielded like any other delta; the generator
    only finishes when ``chunks`` is exhausted.
    """
    decoder = SSELineDecoder()

    async for chunk in chunks:
        for line in decoder.feed(chunk):
            delta = parse_line(line)
            if delta is not None:
                yield delta

    for line in decoder.flush():
        delta = parse_line(line)
        if delta is not None:
            yield delta
