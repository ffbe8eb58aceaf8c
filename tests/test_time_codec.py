"""Tests for duration parsing and display formatting (talking_timer/time_codec.py)."""

from __future__ import annotations

import pytest

from talking_timer.time_codec import (
    MAX_DURATION_MS,
    DurationError,
    TimeComponents,
    clamp_duration,
    format_components,
    format_duration,
    parse_duration,
    to_duration,
    to_time_components,
)

# ---------------------------------------------------------------------------
# parse_duration
# ---------------------------------------------------------------------------


class TestParseDuration:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("45", 45_000),
            ("0", 0),
            ("1:30", 90_000),
            ("05:00", 300_000),
            ("1:00:00", 3_600_000),
            ("24:00:00", 86_400_000),
            ("  2:00 ", 120_000),
        ],
    )
    def test_colon_forms(self, text, expected):
        assert parse_duration(text) == expected

    def test_bare_second_count(self):
        assert parse_duration("90") == 90_000
        assert parse_duration("600") == 600_000

    def test_bare_second_count_is_capped_at_a_day(self):
        assert parse_duration("100000") == MAX_DURATION_MS

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_input_raises(self, text):
        with pytest.raises(DurationError, match="Empty string"):
            parse_duration(text)

    @pytest.mark.parametrize("text", ["abc", "1:60", "25:00:00", "1:2:3:4", "-5", "1.5"])
    def test_unmatched_input_raises(self, text):
        with pytest.raises(DurationError, match="does not"):
            parse_duration(text)

    def test_duration_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_duration("nope")


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


class TestTimeComponents:
    def test_split(self):
        assert to_time_components(3_723_456) == TimeComponents(
            hours=1, minutes=2, seconds=3, tenths=4, milliseconds=56
        )

    def test_round_trip_is_lossless(self):
        for value in (0, 1, 99, 100, 59_999, 3_723_456, MAX_DURATION_MS):
            assert to_duration(to_time_components(value)) == value

    def test_negative_is_treated_as_zero(self):
        assert to_time_components(-500) == TimeComponents()

    def test_clamp(self):
        assert clamp_duration(-5) == 0
        assert clamp_duration(10**9) == MAX_DURATION_MS
        assert clamp_duration(1_234) == 1_234


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


class TestFormatComponents:
    def test_full(self):
        assert format_components(TimeComponents(hours=1, minutes=2, seconds=3)) == "1:02:03"

    def test_leading_zero_fields_dropped(self):
        assert format_components(TimeComponents(minutes=2, seconds=3)) == "2:03"
        assert format_components(TimeComponents(seconds=7)) == "7"

    def test_zero_renders_as_zero(self):
        assert format_components(TimeComponents()) == "0"

    def test_tenths(self):
        assert format_components(TimeComponents(seconds=7, tenths=4), show_tenths=True) == "7.4"
        assert format_components(TimeComponents(tenths=5), show_tenths=True) == "0.5"

    def test_keep_leading_zeros(self):
        components = TimeComponents(minutes=2, seconds=3)
        assert format_components(components, suppress_leading_zeros=False) == "0:02:03"


class TestFormatDuration:
    def test_minutes(self):
        assert format_duration(90_000) == "1:30"

    def test_with_tenths(self):
        assert format_duration(3_723_456, show_tenths=True) == "1:02:03.4"

    def test_ten_minutes(self):
        assert format_duration(600_000) == "10:00"
