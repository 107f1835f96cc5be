# dat1_chat/models.py
from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]


class ChatMode(Enum):
    """How the renderer talks to the proxy."""
    NORMAL = "normal"
    STREAMING = "streaming"


class ChatMessage(BaseModel):
    """
    A single chat turn.

    ``thinking`` holds the formatted timing line shown under assistant
    replies; it is display-only and never sent upstream.
    """
    role: Role
    content: str
    thinking: str | None = None

    def to_upstream(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


class ChatRequest(BaseModel):
    """Body accepted by both proxy routes."""
    model_config = ConfigDict(frozen=True)

    messages: list[ChatMessage]
    temperature: float | None = Field(default=None, ge=0)
    max_tokens: int | None = Field(default=None, ge=1)


class Timings(BaseModel):
    """llama.cpp-style timing block attached to the final frame."""
    model_config = ConfigDict(extra="ignore")

    prompt_ms: float | None = None
    predicted_ms: float | None = None
    predicted_per_second: float | None = None


class Usage(BaseModel):
    """Token usage statistics."""
    model_config = ConfigDict(extra="ignore")

    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None
