"""
Time utilities for CrewRate.
Contains clock-time conversion functions, the half-open Interval type and
the wrap-aware ClockWindow built on it, and calendar helpers.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, date
from typing import Any, Optional, Tuple
from zoneinfo import ZoneInfo

from core.config import config
from core.constants import Weekday, WEEKDAYS_BY_INDEX
from utils.error_handler import ValidationError

logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# Time constants (in minutes)
MINUTES_PER_HOUR = 60
MINUTES_PER_DAY = 24 * MINUTES_PER_HOUR  # 1440

_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{2})$")

LOCAL_TZ = config.LOCAL_TZ


# =============================================================================
# Date/Time Conversion Functions
# =============================================================================

def to_local_date(ts: int | float | str | datetime | date) -> date:
    """Convert epoch timestamp, ISO string, datetime, or date object to local date."""
    if isinstance(ts, date) and not isinstance(ts, datetime):
        return ts
    if isinstance(ts, str):
        try:
            ts = datetime.fromisoformat(ts.replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError(f"Invalid date: {ts!r}", details={"value": ts})
        if ts.tzinfo is None:
            return ts.date()
    if isinstance(ts, datetime):
        if ts.tzinfo is None:
            # Assume UTC if no timezone
            return ts.replace(tzinfo=ZoneInfo("UTC")).astimezone(LOCAL_TZ).date()
        return ts.astimezone(LOCAL_TZ).date()
    if isinstance(ts, bool) or not isinstance(ts, (int, float)):
        raise ValidationError(f"Invalid date: {ts!r}", details={"value": str(ts)})
    return datetime.fromtimestamp(ts, LOCAL_TZ).date()


def parse_hhmm(value: str) -> Tuple[int, int]:
    """Return (hours, minutes) integers from 'HH:MM'."""
    match = _HHMM_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"Invalid time {value!r}, expected HH:MM", details={"value": str(value)})
    h, m = int(match.group(1)), int(match.group(2))
    if h > 23 or m > 59:
        raise ValidationError(f"Invalid time {value!r}, expected HH:MM", details={"value": value})
    return h, m


def time_to_minutes(value: str) -> int:
    """Minutes since midnight for 'HH:MM'."""
    h, m = parse_hhmm(value)
    return h * MINUTES_PER_HOUR + m


def span_minutes(start_str: str, end_str: str) -> Tuple[int, int]:
    """Return start/end minutes-from-midnight, handling overnight end <= start."""
    start = time_to_minutes(start_str)
    end = time_to_minutes(end_str)
    if end <= start:
        end += MINUTES_PER_DAY
    return start, end


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes from midnight to HH:MM format (handles >24h wrapping)."""
    day_minutes = minutes % MINUTES_PER_DAY
    h = day_minutes // MINUTES_PER_HOUR
    m = day_minutes % MINUTES_PER_HOUR
    return f"{h:02d}:{m:02d}"


def weekday_of(day: date) -> Weekday:
    """Weekday name used by window day-gating."""
    return WEEKDAYS_BY_INDEX[day.weekday()]


def parse_weekday(value: Any) -> Weekday:
    if isinstance(value, Weekday):
        return value
    try:
        return Weekday(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown weekday: {value!r}", details={"value": str(value)})


# =============================================================================
# Intervals
# =============================================================================

@dataclass(frozen=True)
class Interval:
    """
    Half-open interval [start, end) over any ordered domain.

    end=None means open-ended. Used for wall-clock minutes and for
    calendar dates (rate card effective windows).
    """
    start: Any
    end: Any = None

    def contains(self, point: Any) -> bool:
        if point < self.start:
            return False
        return self.end is None or point < self.end

    def intersect(self, other: Interval) -> Optional[Interval]:
        """Overlap of two intervals, or None when they do not overlap."""
        start = max(self.start, other.start)
        if self.end is None:
            end = other.end
        elif other.end is None:
            end = self.end
        else:
            end = min(self.end, other.end)
        if end is not None and end <= start:
            return None
        return Interval(start, end)

    def shifted(self, offset: Any) -> Interval:
        return Interval(self.start + offset, None if self.end is None else self.end + offset)


@dataclass(frozen=True)
class ClockWindow:
    """
    Wall-clock range on the minute axis.

    end_minutes is wrap-adjusted: a range whose end is at or before its start
    crosses midnight and ends on the following day (end > 1440). Equal
    start and end therefore cover a full 24 hours.
    """
    start_minutes: int
    end_minutes: int

    @classmethod
    def from_hhmm(cls, start: str, end: str) -> ClockWindow:
        start_minutes, end_minutes = span_minutes(start, end)
        return cls(start_minutes, end_minutes)

    @property
    def interval(self) -> Interval:
        return Interval(self.start_minutes, self.end_minutes)

    @property
    def duration(self) -> int:
        return self.end_minutes - self.start_minutes

    @property
    def crosses_midnight(self) -> bool:
        return self.end_minutes > MINUTES_PER_DAY

    def contains(self, minute: int) -> bool:
        """Whether the clock minute (normalized to one day) is inside the range.

        The normalized minute is compared against the wrap-adjusted range, so
        an overnight range only matches from its start up to midnight when
        entered after midnight.
        """
        return self.interval.contains(minute % MINUTES_PER_DAY)

    def minutes_until_end(self, minute: int) -> int:
        return self.end_minutes - minute % MINUTES_PER_DAY

    def intersect(self, other: ClockWindow) -> Optional[Interval]:
        """First overlap of the two ranges on this window's axis, wrap-aware."""
        for offset in (-MINUTES_PER_DAY, 0, MINUTES_PER_DAY):
            overlap = self.interval.intersect(other.interval.shifted(offset))
            if overlap is not None:
                return overlap
        return None

    def label(self) -> str:
        return f"{minutes_to_time_str(self.start_minutes)}-{minutes_to_time_str(self.end_minutes)}"
