"""
Unit tests for typecheck_trace.formatters.time_formatter module.
"""
import pytest
from typecheck_trace.formatters.time_formatter import format_duration, format_time


class TestFormatTime:
    """Tests for the format_time() function."""

    def test_format_milliseconds(self):
        assert format_time(0.5) == "0.50 ms"
        assert format_time(999.99) == "999.99 ms"

    def test_format_seconds(self):
        assert format_time(1500) == "1.50 s"

    def test_format_minutes(self):
        assert format_time(90000) == "1m 30.00s"


class TestFormatDuration:
    """Tests for formatting trace durations given in microseconds."""

    def test_microseconds(self):
        assert format_duration(0) == "0 us"
        assert format_duration(850) == "850 us"

    def test_milliseconds(self):
        assert format_duration(12300) == "12.30 ms"

    def test_seconds(self):
        assert format_duration(2500000) == "2.50 s"
