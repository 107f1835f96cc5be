#!/usr/bin/env python3
"""
Tests for the timing/usage line shown under assistant replies.
"""

from dat1_chat.formatting import format_metadata
from dat1_chat.models import Timings, Usage


class TestFormatMetadata:
    """Rounding, missing fields and the optional token count."""

    def test_full_metadata(self):
        result = format_metadata(
            {"prompt_ms": 120, "predicted_ms": 380, "predicted_per_second": 15.7},
            {"total_tokens": 42},
        )
        assert result == "Prompt: 120ms | Generation: 380ms | Speed: 15.7 tok/s | Tokens: 42"

    def test_accepts_models(self):
        result = format_metadata(
            Timings(prompt_ms=1.2, predicted_ms=9.8, predicted_per_second=3.14159),
            Usage(total_tokens=7),
        )
        assert result == "Prompt: 1ms | Generation: 10ms | Speed: 3.1 tok/s | Tokens: 7"

    def test_missing_field_renders_zero(self):
        result = format_metadata({"prompt_ms": 120, "predicted_per_second": 15.7})
        assert result == "Prompt: 120ms | Generation: 0ms | Speed: 15.7 tok/s"

    def test_empty_timings_render_all_zeros(self):
        assert format_metadata({}) == "Prompt: 0ms | Generation: 0ms | Speed: 0 tok/s"

    def test_no_timings_gives_empty_string(self):
        assert format_metadata(None, {"total_tokens": 42}) == ""

    def test_usage_without_total_tokens(self):
        result = format_metadata({"prompt_ms": 1}, {"prompt_tokens": 3})
        assert result == "Prompt: 1ms | Generation: 0ms | Speed: 0 tok/s"

    def test_ties_round_up(self):
        result = format_metadata(
            {"prompt_ms": 2.5, "predicted_ms": 0.5, "predicted_per_second": 0.25}
        )
        assert result == "Prompt: 3ms | Generation: 1ms | Speed: 0.3 tok/s"

    def test_huge_values_do_not_overflow_rounding(self):
        huge = float(2**100)
        result = format_metadata(
            {"prompt_ms": huge, "predicted_ms": 1e300, "predicted_per_second": huge}
        )
        assert result.startswith(f"Prompt: {2**100}ms | Generation: {int(1e300)}ms")
        assert result.endswith(f"Speed: {2**100}.0 tok/s")

    def test_speed_keeps_one_decimal(self):
        result = format_metadata({"predicted_per_second": 20})
        assert result.endswith("Speed: 20.0 tok/s")
