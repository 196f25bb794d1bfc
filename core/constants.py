"""
Central constants for CrewRate.
Shift types, rate labels, target types and the other closed vocabularies
shared by the resolver, the calculators and the aggregator.

This module is the single source of truth for:
- core/rates.py
- core/pricing.py
- core/segmenter.py
- core/aggregation.py
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet


# =============================================================================
# Rate Card Vocabulary
# =============================================================================

class TargetType(str, Enum):
    """Which side a rate card prices."""
    SUBCONTRACTOR = "SUBCONTRACTOR"  # paying side
    CLIENT = "CLIENT"                # billing side


class RateMode(str, Enum):
    HOURLY = "HOURLY"
    SHIFT = "SHIFT"
    DAILY = "DAILY"


class RateLabel(str, Enum):
    """Shift classifications printed on rate cards."""
    WEEKDAY_DAY = "Mon–Fri Day"
    WEEKEND_NIGHT = "Fri & Sat Night"
    WEEKDAY_NIGHT = "Mon–Thurs Night"
    SUNDAY = "Sunday"
    SHIFT = "Shift"
    DAILY = "Daily"


class ShiftType(str, Enum):
    """Shift classification recorded on a time log."""
    WEEKDAY_DAY = "WEEKDAY_DAY"
    NIGHT = "NIGHT"
    SUNDAY = "SUNDAY"
    SHIFT = "SHIFT"
    DAILY = "DAILY"


# Static shift -> label table. Must cover every ShiftType.
SHIFT_TYPE_TO_RATE_LABEL: Dict[ShiftType, RateLabel] = {
    ShiftType.WEEKDAY_DAY: RateLabel.WEEKDAY_DAY,
    ShiftType.NIGHT: RateLabel.WEEKDAY_NIGHT,
    ShiftType.SUNDAY: RateLabel.SUNDAY,
    ShiftType.SHIFT: RateLabel.SHIFT,
    ShiftType.DAILY: RateLabel.DAILY,
}

# Shift types priced per unit (one shift / one day) rather than per hour
UNIT_SHIFT_TYPES: FrozenSet[ShiftType] = frozenset({ShiftType.SHIFT, ShiftType.DAILY})


# =============================================================================
# Calendar
# =============================================================================

class Weekday(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


# Indexed by date.weekday() (Monday = 0)
WEEKDAYS_BY_INDEX = (
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
    Weekday.SATURDAY,
    Weekday.SUNDAY,
)

ALL_WEEKDAYS: FrozenSet[Weekday] = frozenset(Weekday)


# =============================================================================
# Record Lifecycle
# =============================================================================

class RecordStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


# Statuses that get their own bucket in project tracking
TRACKED_STATUSES = (RecordStatus.DRAFT, RecordStatus.SUBMITTED, RecordStatus.APPROVED)


class ExpenseCategory(str, Enum):
    PARKING = "PARKING"
    ACCOMMODATION = "ACCOMMODATION"
    PARTS = "PARTS"
    TRAVEL = "TRAVEL"
    OTHER = "OTHER"


# =============================================================================
# Labels
# =============================================================================

# Closing breakdown row when no time window applies
FALLBACK_SEGMENT_DESCRIPTION = "Standard"

# Description used for windows saved without one
DEFAULT_WINDOW_DESCRIPTION = "Rate"

UNKNOWN_SUBCONTRACTOR_NAME = "Unknown Subcontractor"
