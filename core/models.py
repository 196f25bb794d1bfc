"""
Data shapes for CrewRate.

Rate cards are a tagged union keyed by rate mode: an HourlyRateCard carries
hourly fields only, a ShiftRateCard a shift rate only, a DailyRateCard a
daily rate only. Records coming from the store are converted with
rate_card_from_record(), which rejects records whose populated rate fields
do not belong to their mode.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, ClassVar, Dict, FrozenSet, Mapping, Optional, Tuple

from core.config import config
from core.constants import (
    TargetType, RateMode, RateLabel, ShiftType, Weekday, ExpenseCategory,
    DEFAULT_WINDOW_DESCRIPTION,
)
from core.time_utils import ClockWindow, Interval, to_local_date, parse_weekday
from utils.error_handler import ValidationError
from utils.utils import to_decimal, is_valid_rate

logger = logging.getLogger(__name__)


def get_field(record: Mapping[str, Any], snake: str, camel: str, default: Any = None) -> Any:
    """Read a field stored under either its snake_case or camelCase name."""
    if snake in record:
        return record[snake]
    return record.get(camel, default)


def _optional_decimal(value: Any, name: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return to_decimal(value, name)


def _parse_enum(enum_cls, value: Any, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Unknown {name}: {value!r}", details={name: str(value)})


def _check_rate(value: Decimal, name: str) -> None:
    if not is_valid_rate(value):
        raise ValidationError(
            f"{name} out of range",
            details={name: str(value), "max": str(config.MAX_RATE)},
        )


# =============================================================================
# Rate Cards
# =============================================================================

@dataclass(frozen=True)
class RateCardKey:
    """Lookup key of a rate card version chain."""
    company_id: str
    target_type: TargetType
    target_id: str
    role_id: str
    rate_label: RateLabel


@dataclass(frozen=True, kw_only=True)
class RateCard:
    """Fields shared by every rate card version, whatever its mode."""
    rate_mode: ClassVar[RateMode]

    id: str
    company_id: str
    target_type: TargetType
    target_id: str
    role_id: str
    rate_label: RateLabel
    effective_from: date
    effective_to: Optional[date] = None
    currency: str = config.DEFAULT_CURRENCY
    min_hours: Optional[Decimal] = None
    # Part of the card shape; not applied by any calculation yet.
    weekend_multiplier: Optional[Decimal] = None
    night_multiplier: Optional[Decimal] = None

    def __post_init__(self):
        for name in ("id", "company_id", "target_id", "role_id"):
            if not getattr(self, name):
                raise ValidationError(f"Rate card {name} is required", details={"field": name})
        if self.effective_to is not None and self.effective_to < self.effective_from:
            raise ValidationError(
                "Rate card effective_to is before effective_from",
                details={"id": self.id, "effective_from": str(self.effective_from),
                         "effective_to": str(self.effective_to)},
            )
        if self.min_hours is not None and self.min_hours < 0:
            raise ValidationError("min_hours cannot be negative", details={"id": self.id})

    @property
    def key(self) -> RateCardKey:
        return RateCardKey(self.company_id, self.target_type, self.target_id, self.role_id, self.rate_label)

    @property
    def effective_window(self) -> Interval:
        """Calendar dates on which the card applies.

        effective_to is honoured through the end of that day, so the window
        is [effective_from, effective_to + 1 day).
        """
        end = self.effective_to + timedelta(days=1) if self.effective_to is not None else None
        return Interval(self.effective_from, end)

    def is_effective_on(self, day: date) -> bool:
        return self.effective_window.contains(day)

    def base_and_ot_rates(self) -> Tuple[Decimal, Decimal]:
        raise NotImplementedError


@dataclass(frozen=True, kw_only=True)
class HourlyRateCard(RateCard):
    rate_mode: ClassVar[RateMode] = RateMode.HOURLY

    hourly_rate: Decimal
    ot_hourly_rate: Optional[Decimal] = None

    def __post_init__(self):
        super().__post_init__()
        _check_rate(self.hourly_rate, "hourly_rate")
        if self.ot_hourly_rate is not None:
            _check_rate(self.ot_hourly_rate, "ot_hourly_rate")

    def base_and_ot_rates(self) -> Tuple[Decimal, Decimal]:
        if self.ot_hourly_rate is not None:
            return self.hourly_rate, self.ot_hourly_rate
        return self.hourly_rate, self.hourly_rate * config.DEFAULT_OT_MULTIPLIER


@dataclass(frozen=True, kw_only=True)
class ShiftRateCard(RateCard):
    rate_mode: ClassVar[RateMode] = RateMode.SHIFT

    shift_rate: Decimal

    def __post_init__(self):
        super().__post_init__()
        _check_rate(self.shift_rate, "shift_rate")

    def base_and_ot_rates(self) -> Tuple[Decimal, Decimal]:
        return self.shift_rate, Decimal(0)


@dataclass(frozen=True, kw_only=True)
class DailyRateCard(RateCard):
    rate_mode: ClassVar[RateMode] = RateMode.DAILY

    daily_rate: Decimal

    def __post_init__(self):
        super().__post_init__()
        _check_rate(self.daily_rate, "daily_rate")

    def base_and_ot_rates(self) -> Tuple[Decimal, Decimal]:
        return self.daily_rate, Decimal(0)


# Mode -> (variant class, rate fields it owns as (snake, camel) names)
_RATE_FIELDS = {
    RateMode.HOURLY: (HourlyRateCard, (("hourly_rate", "hourlyRate"), ("ot_hourly_rate", "otHourlyRate"))),
    RateMode.SHIFT: (ShiftRateCard, (("shift_rate", "shiftRate"),)),
    RateMode.DAILY: (DailyRateCard, (("daily_rate", "dailyRate"),)),
}


def rate_card_from_record(record: Mapping[str, Any], card_id: Optional[str] = None) -> RateCard:
    """
    Build the rate card variant matching the record's rate mode.

    Accepts snake_case or camelCase keys. A record populating a rate field
    that belongs to another mode is rejected.
    """
    mode = _parse_enum(RateMode, get_field(record, "rate_mode", "rateMode"), "rate_mode")
    card_cls, own_fields = _RATE_FIELDS[mode]

    for other_mode, (_, other_fields) in _RATE_FIELDS.items():
        if other_mode == mode:
            continue
        for snake, camel in other_fields:
            if get_field(record, snake, camel) not in (None, ""):
                raise ValidationError(
                    f"{mode.value} rate card cannot carry {snake}",
                    details={"rate_mode": mode.value, "field": snake},
                )

    rates: Dict[str, Optional[Decimal]] = {
        snake: _optional_decimal(get_field(record, snake, camel), snake) for snake, camel in own_fields
    }
    required = own_fields[0][0]
    if rates[required] is None:
        raise ValidationError(f"{mode.value} rate card requires {required}", details={"field": required})

    effective_to = get_field(record, "effective_to", "effectiveTo")
    return card_cls(
        id=card_id or get_field(record, "id", "id"),
        company_id=get_field(record, "company_id", "companyId"),
        target_type=_parse_enum(TargetType, get_field(record, "target_type", "targetType"), "target_type"),
        target_id=get_field(record, "target_id", "targetId"),
        role_id=get_field(record, "role_id", "roleId"),
        rate_label=_parse_enum(RateLabel, get_field(record, "rate_label", "rateLabel"), "rate_label"),
        effective_from=to_local_date(get_field(record, "effective_from", "effectiveFrom")),
        effective_to=to_local_date(effective_to) if effective_to is not None else None,
        currency=get_field(record, "currency", "currency") or config.DEFAULT_CURRENCY,
        min_hours=_optional_decimal(get_field(record, "min_hours", "minHours"), "min_hours"),
        weekend_multiplier=_optional_decimal(get_field(record, "weekend_multiplier", "weekendMultiplier"),
                                             "weekend_multiplier"),
        night_multiplier=_optional_decimal(get_field(record, "night_multiplier", "nightMultiplier"),
                                           "night_multiplier"),
        **{k: v for k, v in rates.items() if v is not None},
    )


@dataclass(frozen=True)
class ResolvedRate:
    """The rate a card yields for one pricing call."""
    rate_label: RateLabel
    base_rate: Decimal
    ot_rate: Decimal
    currency: str
    rate_card_id: str
    rate_mode: RateMode
    min_hours: Optional[Decimal] = None


# =============================================================================
# Time-Based Rate Windows
# =============================================================================

@dataclass(frozen=True)
class TimeBasedRate:
    """A wall-clock window with its own pay/bill rates, optionally day-gated."""
    start_time: str
    end_time: str
    subcontractor_rate: Decimal
    client_rate: Decimal
    description: str = ""
    applicable_days: FrozenSet[Weekday] = frozenset()

    def __post_init__(self):
        # Coerce so callers may pass plain numbers and day names
        object.__setattr__(self, "subcontractor_rate", to_decimal(self.subcontractor_rate, "subcontractor_rate"))
        object.__setattr__(self, "client_rate", to_decimal(self.client_rate, "client_rate"))
        object.__setattr__(self, "applicable_days",
                           frozenset(parse_weekday(d) for d in (self.applicable_days or ())))
        _check_rate(self.subcontractor_rate, "subcontractor_rate")
        _check_rate(self.client_rate, "client_rate")
        # Validates both times
        object.__setattr__(self, "_window", ClockWindow.from_hhmm(self.start_time, self.end_time))

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> TimeBasedRate:
        return cls(
            start_time=get_field(record, "start_time", "startTime"),
            end_time=get_field(record, "end_time", "endTime"),
            subcontractor_rate=get_field(record, "subcontractor_rate", "subcontractorRate"),
            client_rate=get_field(record, "client_rate", "clientRate"),
            description=record.get("description") or "",
            applicable_days=get_field(record, "applicable_days", "applicableDays") or (),
        )

    @property
    def window(self) -> ClockWindow:
        return self._window

    def applies_on(self, weekday: Optional[Weekday]) -> bool:
        """Day gate: no date, or no declared days, means every day."""
        if weekday is None or not self.applicable_days:
            return True
        return weekday in self.applicable_days

    def label(self) -> str:
        return f"{self.start_time}-{self.end_time} ({self.description or DEFAULT_WINDOW_DESCRIPTION})"


# =============================================================================
# Calculation Results
# =============================================================================

@dataclass(frozen=True)
class PriceCalculation:
    sub_rate_label: RateLabel
    client_rate_label: RateLabel
    sub_base_rate: Decimal
    sub_ot_rate: Decimal
    client_bill_rate: Decimal
    client_ot_bill_rate: Decimal
    sub_cost: Decimal
    client_bill: Decimal
    margin_value: Decimal
    margin_pct: Decimal
    currency: str

    def as_record(self) -> Dict[str, Any]:
        """Fields callers denormalize onto the record being priced."""
        record = asdict(self)
        record["sub_rate_label"] = self.sub_rate_label.value
        record["client_rate_label"] = self.client_rate_label.value
        return record


@dataclass(frozen=True)
class BreakdownSegment:
    label: str
    hours: Decimal
    sub_rate: Decimal
    client_rate: Decimal
    sub_cost: Decimal
    client_cost: Decimal
    description: str = ""


@dataclass(frozen=True)
class TimeRangeCalculation:
    total_hours: Decimal
    subcontractor_cost: Decimal
    client_bill: Decimal
    breakdown: Tuple[BreakdownSegment, ...] = field(default_factory=tuple)

    def as_record(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# Time Log Input
# =============================================================================

def _hours(value: Any, name: str) -> Decimal:
    hours = to_decimal(value, name)
    if hours < 0 or hours > config.MAX_LOGGED_HOURS:
        raise ValidationError(
            f"{name} must be between 0 and {config.MAX_LOGGED_HOURS}",
            details={name: str(hours)},
        )
    return hours


def _required_str(payload: Mapping[str, Any], snake: str, camel: str) -> str:
    value = get_field(payload, snake, camel)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{snake} is required", details={"field": snake})
    return value


@dataclass(frozen=True)
class ExpenseInput:
    category: ExpenseCategory
    description: str
    amount: Decimal
    date: date

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ExpenseInput:
        amount = to_decimal(payload.get("amount"), "amount")
        if amount < 0:
            raise ValidationError("amount cannot be negative", details={"amount": str(amount)})
        return cls(
            category=_parse_enum(ExpenseCategory, payload.get("category"), "category"),
            description=payload.get("description") or "",
            amount=amount,
            date=to_local_date(payload.get("date")),
        )


@dataclass(frozen=True)
class TimeLogInput:
    project_id: str
    subcontractor_id: str
    client_id: str
    role_id: str
    date: date
    shift_type: ShiftType
    hours_regular: Decimal
    hours_ot: Decimal = Decimal(0)
    notes: str = ""
    expenses: Tuple[ExpenseInput, ...] = ()

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> TimeLogInput:
        """Validate an incoming time log payload (snake_case or camelCase)."""
        day = get_field(payload, "date", "date")
        if day is None:
            raise ValidationError("date is required", details={"field": "date"})
        return cls(
            project_id=_required_str(payload, "project_id", "projectId"),
            subcontractor_id=_required_str(payload, "subcontractor_id", "subcontractorId"),
            client_id=_required_str(payload, "client_id", "clientId"),
            role_id=_required_str(payload, "role_id", "roleId"),
            date=to_local_date(day),
            shift_type=_parse_enum(ShiftType, get_field(payload, "shift_type", "shiftType"), "shift_type"),
            hours_regular=_hours(get_field(payload, "hours_regular", "hoursRegular"), "hours_regular"),
            hours_ot=_hours(get_field(payload, "hours_ot", "hoursOT", 0), "hours_ot"),
            notes=payload.get("notes") or "",
            expenses=tuple(ExpenseInput.from_payload(e) for e in payload.get("expenses") or ()),
        )

