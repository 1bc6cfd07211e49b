"""Tests for broker-time normalisation and time-bucket labels."""

from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.timeseg.normalizer import (
    TimestampParseError,
    calculate_segments,
    determine_session,
    normalize_timestamp,
    parse_timestamp,
    time_delta_minutes,
    try_parse_timestamp,
)


class TestParseTimestamp:
    def test_minutes_only(self):
        assert parse_timestamp("2025.11.17 10:00") == datetime(2025, 11, 17, 10, 0)

    def test_with_seconds(self):
        assert parse_timestamp("2025.11.17 10:00:42") == datetime(2025, 11, 17, 10, 0, 42)

    def test_dash_separated(self):
        assert parse_timestamp("2025-11-17 01:09") == datetime(2025, 11, 17, 1, 9)

    @pytest.mark.parametrize("bad", ["", "   ", "not a date", "2025.13.40 10:00", "10:00"])
    def test_invalid_raises(self, bad):
        with pytest.raises(TimestampParseError):
            parse_timestamp(bad)

    def test_parse_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_timestamp("garbage")

    def test_lenient_variant_returns_none(self):
        assert try_parse_timestamp("") is None
        assert try_parse_timestamp(None) is None
        assert try_parse_timestamp("garbage") is None
        assert try_parse_timestamp("2025.11.17 10:00") == datetime(2025, 11, 17, 10, 0)


class TestSegments:
    def test_midday(self):
        seg = calculate_segments(datetime(2025, 11, 17, 17, 0))
        assert seg.segment_15m == "15-069"
        assert seg.segment_30m == "30-035"
        assert seg.segment_1h == "1h-018"
        assert seg.segment_2h == "2h-009"
        assert seg.segment_3h == "3h-006"
        assert seg.segment_4h == "4h-005"

    def test_midnight_is_first_bucket(self):
        seg = calculate_segments(datetime(2025, 11, 17, 0, 0))
        assert seg.segment_15m == "15-001"
        assert seg.segment_4h == "4h-001"

    def test_last_minute_of_day(self):
        seg = calculate_segments(datetime(2025, 11, 17, 23, 59))
        assert seg.segment_15m == "15-096"
        assert seg.segment_30m == "30-048"
        assert seg.segment_1h == "1h-024"
        assert seg.segment_2h == "2h-012"
        assert seg.segment_3h == "3h-008"
        assert seg.segment_4h == "4h-006"


class TestSession:
    @pytest.mark.parametrize(
        "hh, mm, expected",
        [
            (7, 29, "After Hours"),
            (7, 30, "News"),
            (8, 0, "News"),
            (8, 15, "After Hours"),
            (8, 30, "Opening Bell"),
            (9, 0, "Opening Bell"),
            (9, 1, "Floor Session"),
            (14, 44, "Floor Session"),
            (14, 45, "Closing Bell"),
            (15, 15, "Closing Bell"),
            (15, 16, "After Hours"),
            (2, 0, "After Hours"),
        ],
    )
    def test_boundaries(self, hh, mm, expected):
        assert determine_session(datetime(2025, 11, 17, hh, mm)) == expected


class TestNormalizeTimestamp:
    def test_default_offset_shifts_eight_hours_back(self):
        t = normalize_timestamp("2025.11.17 10:00")
        assert t.broker_date == "2025-11-17"
        assert t.broker_time == "10:00:00"
        assert t.report_time == "02:00:00"
        assert t.report_date == "2025-11-17"

    def test_shift_crosses_midnight(self):
        t = normalize_timestamp("2025.11.17 03:30:15", offset_hours=-8)
        assert t.broker_day == "Monday"
        assert t.report_date == "2025-11-16"
        assert t.report_day == "Sunday"
        assert t.report_time == "19:30:15"

    def test_month_names(self):
        t = normalize_timestamp("2025.12.01 02:00", offset_hours=-8)
        assert t.broker_month == "December"
        assert t.report_month == "November"

    def test_session_and_segments_use_report_time(self):
        # 17:45 broker -> 09:45 report
        t = normalize_timestamp("2025.11.17 17:45", offset_hours=-8)
        assert t.session == "Floor Session"
        assert t.segments.segment_1h == "1h-010"

    def test_zero_offset(self):
        t = normalize_timestamp("2025.11.17 08:45", offset_hours=0)
        assert t.report_time == t.broker_time
        assert t.session == "Opening Bell"

    def test_source_kept_verbatim(self):
        assert normalize_timestamp("2025.11.17 10:00").source == "2025.11.17 10:00"

    def test_invalid_raises(self):
        with pytest.raises(TimestampParseError):
            normalize_timestamp("")


class TestTimeDelta:
    def test_absolute_minutes(self):
        assert time_delta_minutes("2025.11.17 09:00", "2025.11.17 09:10") == pytest.approx(10.0)
        assert time_delta_minutes("2025.11.17 09:10", "2025.11.17 09:00") == pytest.approx(10.0)

    def test_seconds_fraction(self):
        assert time_delta_minutes("2025.11.17 09:00:00", "2025.11.17 09:00:30") == pytest.approx(0.5)
