"""
Time-segmented pricing for CrewRate.

Splits a logged start/end clock interval across configured time-of-day rate
windows (optionally day-of-week gated) and prices every segment on both the
paying and the billing side. Portions no window covers are priced at the
fallback flat rate.
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from core.constants import ALL_WEEKDAYS, FALLBACK_SEGMENT_DESCRIPTION, Weekday
from core.models import BreakdownSegment, TimeBasedRate, TimeRangeCalculation
from core.time_utils import (
    MINUTES_PER_HOUR, MINUTES_PER_DAY,
    ClockWindow, minutes_to_time_str, to_local_date, weekday_of,
)
from utils.error_handler import ValidationError
from utils.utils import round_money, to_decimal

logger = logging.getLogger(__name__)

WindowLike = Union[TimeBasedRate, Mapping[str, Any]]


def _minutes_to_hours(minutes: int) -> Decimal:
    return Decimal(minutes) / MINUTES_PER_HOUR


def _as_windows(windows: Iterable[WindowLike]) -> List[TimeBasedRate]:
    return [w if isinstance(w, TimeBasedRate) else TimeBasedRate.from_record(w) for w in windows or ()]


# =============================================================================
# Window Validation
# =============================================================================

def _share_a_day(a: TimeBasedRate, b: TimeBasedRate) -> bool:
    days_a = a.applicable_days or ALL_WEEKDAYS
    days_b = b.applicable_days or ALL_WEEKDAYS
    return bool(days_a & days_b)


def find_window_overlaps(windows: Iterable[WindowLike]) -> List[Tuple[TimeBasedRate, TimeBasedRate]]:
    """
    Pairs of windows whose clock ranges intersect on a shared applicable day.

    When such a pair exists the segmenter silently prefers the earlier
    starting window, so templates should be free of them.
    """
    parsed = _as_windows(windows)
    conflicts = []
    for i, first in enumerate(parsed):
        for second in parsed[i + 1:]:
            if not _share_a_day(first, second):
                continue
            if first.window.intersect(second.window) is not None:
                conflicts.append((first, second))
    return conflicts


def validate_time_windows(windows: Iterable[WindowLike]) -> List[TimeBasedRate]:
    """Parse a window template, rejecting overlapping windows."""
    parsed = _as_windows(windows)
    conflicts = find_window_overlaps(parsed)
    if conflicts:
        raise ValidationError(
            "Time-based rate windows overlap",
            details={"conflicts": [[a.label(), b.label()] for a, b in conflicts]},
        )
    return parsed


# =============================================================================
# Segmentation
# =============================================================================

def _match_window(
    sorted_windows: Sequence[TimeBasedRate],
    cursor: int,
    weekday: Optional[Weekday],
) -> Optional[TimeBasedRate]:
    """First window in start-time order covering the cursor and open on the weekday.

    A window rejected by its day gate is skipped and the scan continues.
    """
    for window in sorted_windows:
        if window.window.contains(cursor) and window.applies_on(weekday):
            return window
    return None


def calculate_time_based_cost(
    start_time: str,
    end_time: str,
    windows: Iterable[WindowLike],
    fallback_sub_rate: Decimal | float | int,
    fallback_client_rate: Decimal | float | int,
    day: Optional[date | datetime | str] = None,
) -> TimeRangeCalculation:
    """
    Price a shift across time-based rate windows.

    Args:
        start_time: Shift start, HH:MM
        end_time: Shift end, HH:MM; at or before start_time means the shift
            ends the next day
        windows: Rate window definitions
        fallback_sub_rate: Hourly pay rate where no window applies
        fallback_client_rate: Hourly bill rate where no window applies
        day: Shift date, used only to gate windows declaring applicable days

    Returns:
        TimeRangeCalculation with one breakdown row per consumed segment.
        Rows are never merged, even when consecutive rows share a label.
    """
    shift = ClockWindow.from_hhmm(start_time, end_time)
    if shift.duration == MINUTES_PER_DAY:
        logger.warning(f"Shift {start_time}-{end_time} has equal start and end; priced as 24 hours")

    sub_fallback = to_decimal(fallback_sub_rate, "fallback_sub_rate")
    client_fallback = to_decimal(fallback_client_rate, "fallback_client_rate")
    weekday = weekday_of(to_local_date(day)) if day is not None else None

    # Stable sort: windows sharing a start time keep their configured order
    sorted_windows = sorted(_as_windows(windows), key=lambda w: w.window.start_minutes)
    if len(sorted_windows) > 1 and find_window_overlaps(sorted_windows):
        logger.warning("Overlapping time-based rate windows; the earlier-starting window takes priority")

    breakdown: List[BreakdownSegment] = []
    cursor = shift.start_minutes
    remaining = shift.duration

    while remaining > 0:
        window = _match_window(sorted_windows, cursor, weekday)

        if window is None:
            # Fallback closes out the rest of the shift
            hours = _minutes_to_hours(remaining)
            breakdown.append(BreakdownSegment(
                label=f"{minutes_to_time_str(cursor)}-{minutes_to_time_str(cursor + remaining)} "
                      f"({FALLBACK_SEGMENT_DESCRIPTION})",
                hours=hours,
                sub_rate=sub_fallback,
                client_rate=client_fallback,
                sub_cost=hours * sub_fallback,
                client_cost=hours * client_fallback,
                description=FALLBACK_SEGMENT_DESCRIPTION,
            ))
            break

        consumed = min(remaining, window.window.minutes_until_end(cursor))
        hours = _minutes_to_hours(consumed)
        breakdown.append(BreakdownSegment(
            label=window.label(),
            hours=hours,
            sub_rate=window.subcontractor_rate,
            client_rate=window.client_rate,
            sub_cost=hours * window.subcontractor_rate,
            client_cost=hours * window.client_rate,
            description=window.description,
        ))
        cursor += consumed
        remaining -= consumed

    return TimeRangeCalculation(
        total_hours=round_money(_minutes_to_hours(shift.duration)),
        subcontractor_cost=round_money(sum((s.sub_cost for s in breakdown), Decimal(0))),
        client_bill=round_money(sum((s.client_cost for s in breakdown), Decimal(0))),
        breakdown=tuple(breakdown),
    )


def calculate_simple_cost(
    hours: Decimal | float | int,
    sub_rate: Decimal | float | int,
    client_rate: Decimal | float | int,
    quantity: Decimal | float | int = 1,
) -> Dict[str, Decimal]:
    """Flat pricing of a duration with no rate windows."""
    hours = to_decimal(hours, "hours")
    quantity = to_decimal(quantity, "quantity")
    return {
        "subcontractor_cost": round_money(hours * to_decimal(sub_rate, "sub_rate") * quantity),
        "client_bill": round_money(hours * to_decimal(client_rate, "client_rate") * quantity),
    }
