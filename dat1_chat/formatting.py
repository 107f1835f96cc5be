"""Human-readable rendering of completion timing and usage statistics."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any

from pydantic import ValidationError

from dat1_chat.models import Timings, Usage

QUANTIZE_PRECISION = 400


def _fixed(value: float | None, places: int) -> str:
    """Round half up on the exact binary value, ``0`` when missing."""
    if value is None or not math.isfinite(value):
        return "0"
    quantum = Decimal(1).scaleb(-places)
    # The largest finite float has 309 integer digits
    with localcontext(prec=QUANTIZE_PRECISION):
        return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def _as_model(model, raw):
    if raw is None or isinstance(raw, model):
        return raw
    if not isinstance(raw, dict):
        return None
    try:
        return model.model_validate(raw)
    except ValidationError:
        return None


def format_metadata(
    timings: Timings | dict[str, Any] | None,
    usage: Usage | dict[str, Any] | None = None,
) -> str:
    """
    Format timings and usage into the line shown under a reply.

    Example: ``Prompt: 120ms | Generation: 380ms | Speed: 15.7 tok/s | Tokens: 42``

    Without a timings block there is nothing to show and the result is
    empty, even when usage is present.
    """
    timings = _as_model(Timings, timings)
    usage = _as_model(Usage, usage)

    if timings is None:
        return ""

    info = (
        f"Prompt: {_fixed(timings.prompt_ms, 0)}ms"
        f" | Generation: {_fixed(timings.predicted_ms, 0)}ms"
        f" | Speed: {_fixed(timings.predicted_per_second, 1)} tok/s"
    )

    if usage is not None and usage.total_tokens is not None:
        info += f" | Tokens: {usage.total_tokens}"

    return info
