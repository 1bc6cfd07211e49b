"""Broker-time -> report-time conversion and time-bucket labelling.

Broker timestamps look like ``2025.11.17 01:09`` or ``2025.11.17 01:09:30``.
Report time is broker time shifted by a signed hour offset (default -8:
broker GMT+2 -> CST). Session and bucket labels are derived from report time.

All functions are stateless (no I/O).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta

DEFAULT_OFFSET_HOURS = -8

_TIMESTAMP_RE = re.compile(
    r"^\s*(\d{4})[./-](\d{1,2})[./-](\d{1,2})[ T]+(\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?\s*$"
)

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# (label, first minute of day, last minute of day), inclusive, report time
SESSION_WINDOWS: tuple[tuple[str, int, int], ...] = (
    ("News", 7 * 60 + 30, 8 * 60),
    ("Opening Bell", 8 * 60 + 30, 9 * 60),
    ("Floor Session", 9 * 60 + 1, 14 * 60 + 44),
    ("Closing Bell", 14 * 60 + 45, 15 * 60 + 15),
)
AFTER_HOURS = "After Hours"


class TimestampParseError(ValueError):
    """Raised when a broker/signal timestamp cannot be parsed."""


@dataclass(frozen=True)
class TimeSegments:
    segment_15m: str  # "15-069" (96/day)
    segment_30m: str  # "30-035" (48/day)
    segment_1h: str   # "1h-018" (24/day)
    segment_2h: str
    segment_3h: str
    segment_4h: str


@dataclass(frozen=True)
class NormalizedTime:
    """One timestamp seen in both broker time and report time."""

    source: str
    broker_date: str
    broker_time: str
    broker_day: str
    broker_month: str
    report_date: str
    report_time: str
    report_day: str
    report_month: str
    session: str
    segments: TimeSegments


def parse_timestamp(text: str) -> datetime:
    """Parse ``YYYY.MM.DD HH:MM[:SS]`` (also ``-`` or ``/`` separated dates).

    Raises:
        TimestampParseError: empty or unrecognised input.
    """
    if not text or not isinstance(text, str):
        raise TimestampParseError(f"Invalid timestamp: {text!r}")
    m = _TIMESTAMP_RE.match(text)
    if m is None:
        raise TimestampParseError(f"Invalid timestamp: {text!r}")
    year, month, day, hour, minute, second = m.groups()
    try:
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second or 0)
        )
    except ValueError as e:
        raise TimestampParseError(f"Invalid timestamp: {text!r} ({e})") from e


def try_parse_timestamp(text: str | None) -> datetime | None:
    """Lenient variant for secondary-log columns that are often blank."""
    if not text:
        return None
    try:
        return parse_timestamp(text)
    except TimestampParseError:
        return None


def calculate_segments(ts: datetime) -> TimeSegments:
    """Bucket a time of day into 15m/30m/1h/2h/3h/4h slots (1-indexed)."""
    hour, minute = ts.hour, ts.minute
    return TimeSegments(
        segment_15m=f"15-{hour * 4 + minute // 15 + 1:03d}",
        segment_30m=f"30-{hour * 2 + minute // 30 + 1:03d}",
        segment_1h=f"1h-{hour + 1:03d}",
        segment_2h=f"2h-{hour // 2 + 1:03d}",
        segment_3h=f"3h-{hour // 3 + 1:03d}",
        segment_4h=f"4h-{hour // 4 + 1:03d}",
    )


def determine_session(ts: datetime) -> str:
    """Trading session for a report-time timestamp."""
    minute_of_day = ts.hour * 60 + ts.minute
    for label, start, end in SESSION_WINDOWS:
        if start <= minute_of_day <= end:
            return label
    return AFTER_HOURS


def normalize_timestamp(
    text: str,
    offset_hours: int = DEFAULT_OFFSET_HOURS,
) -> NormalizedTime:
    """Convert a broker timestamp to report time and derive all labels.

    Args:
        text: Broker timestamp string.
        offset_hours: Signed hours added to broker time to get report time.

    Raises:
        TimestampParseError: if ``text`` is not a recognised timestamp.
    """
    broker = parse_timestamp(text)
    report = broker + timedelta(hours=offset_hours)
    return NormalizedTime(
        source=text,
        broker_date=broker.strftime("%Y-%m-%d"),
        broker_time=broker.strftime("%H:%M:%S"),
        broker_day=DAY_NAMES[broker.weekday()],
        broker_month=MONTH_NAMES[broker.month - 1],
        report_date=report.strftime("%Y-%m-%d"),
        report_time=report.strftime("%H:%M:%S"),
        report_day=DAY_NAMES[report.weekday()],
        report_month=MONTH_NAMES[report.month - 1],
        session=determine_session(report),
        segments=calculate_segments(report),
    )


def time_delta_minutes(first: str, second: str) -> float:
    """Absolute difference between two timestamps, in minutes."""
    delta = parse_timestamp(second) - parse_timestamp(first)
    return abs(delta.total_seconds()) / 60.0
