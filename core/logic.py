"""
Core business logic for CrewRate.
Contains the public pricing flows used by the API layer.

The building blocks live in submodules; the most used names are
re-exported here:
- core.rates: Rate card resolution
- core.pricing: Cost/bill/margin calculation
- core.segmenter: Time-window segmentation
- core.aggregation: Project rollups
"""
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional

from core.constants import TargetType, RecordStatus
from core.models import TimeLogInput, PriceCalculation
from core.pricing import PriceCalculator, margin_value, margin_percentage
from core.rates import RateResolver
from core.segmenter import (
    WindowLike,
    calculate_time_based_cost,
    calculate_simple_cost,
)
from core.time_utils import ClockWindow, MINUTES_PER_HOUR
from utils.error_handler import ValidationError
from utils.utils import format_currency, round_money, to_decimal

# =============================================================================
# Re-exports
# =============================================================================

from core.rates import shift_type_to_rate_label, InMemoryRateCardStore  # noqa: F401
from core.segmenter import find_window_overlaps, validate_time_windows  # noqa: F401
from core.aggregation import aggregate_project_costs, project_summary  # noqa: F401

logger = logging.getLogger(__name__)


# =============================================================================
# Time Log Pricing
# =============================================================================

def price_time_log(
    resolver: RateResolver,
    company_id: str,
    time_log: TimeLogInput | Mapping[str, Any],
    min_hours: Optional[Decimal] = None,
) -> Dict[str, Any]:
    """
    Price a time log and build the record to persist.

    Both sides are resolved for the same role, shift and date. A missing
    card on either side raises RateNotFoundError before anything is built,
    so no partially priced record can exist.

    Args:
        resolver: Resolver over the company's rate cards
        company_id: Owning company
        time_log: Validated time log input, or a raw payload to validate
        min_hours: Minimum billable hours; pads regular hours when set

    Returns:
        Record dict: the time log fields, every PriceCalculation field,
        status DRAFT and any inline expenses priced in the log's currency.
    """
    if not isinstance(time_log, TimeLogInput):
        time_log = TimeLogInput.from_payload(time_log)

    sub_rate = resolver.require_rate(
        company_id, TargetType.SUBCONTRACTOR, time_log.subcontractor_id,
        time_log.role_id, time_log.shift_type, time_log.date,
    )
    client_rate = resolver.require_rate(
        company_id, TargetType.CLIENT, time_log.client_id,
        time_log.role_id, time_log.shift_type, time_log.date,
    )

    hours_regular, hours_ot = time_log.hours_regular, time_log.hours_ot
    if min_hours:
        hours_regular, hours_ot = PriceCalculator.apply_min_hours(hours_regular, hours_ot, min_hours)

    pricing: PriceCalculation = PriceCalculator.calculate(
        sub_rate, client_rate, time_log.shift_type, hours_regular, hours_ot,
    )

    logger.info(
        f"Priced time log for subcontractor {time_log.subcontractor_id} on {time_log.date}: "
        f"cost {format_currency(pricing.sub_cost, pricing.currency)} "
        f"bill {format_currency(pricing.client_bill, pricing.currency)} "
        f"(cards {sub_rate.rate_card_id}/{client_rate.rate_card_id})"
    )

    record: Dict[str, Any] = {
        "company_id": company_id,
        "project_id": time_log.project_id,
        "subcontractor_id": time_log.subcontractor_id,
        "client_id": time_log.client_id,
        "role_id": time_log.role_id,
        "date": time_log.date,
        "shift_type": time_log.shift_type.value,
        "hours_regular": hours_regular,
        "hours_ot": hours_ot,
        "notes": time_log.notes,
        "sub_rate_card_id": sub_rate.rate_card_id,
        "client_rate_card_id": client_rate.rate_card_id,
        **pricing.as_record(),
        "status": RecordStatus.DRAFT.value,
    }
    record["expenses"] = [
        {
            "company_id": company_id,
            "project_id": time_log.project_id,
            "subcontractor_id": time_log.subcontractor_id,
            "date": expense.date,
            "category": expense.category.value,
            "description": expense.description,
            "amount": round_money(expense.amount),
            "currency": pricing.currency,
            "status": RecordStatus.DRAFT.value,
        }
        for expense in time_log.expenses
    ]
    return record


# =============================================================================
# Clock-Time Pricing
# =============================================================================

def price_timed_entry(
    start_time: str,
    end_time: str,
    windows: Iterable[WindowLike],
    pay_rate: Decimal | float | int,
    bill_rate: Decimal | float | int,
    quantity: Decimal | float | int = 1,
    day: Optional[date | datetime | str] = None,
) -> Dict[str, Any]:
    """
    Price a start/end entry, e.g. a crew of `quantity` people on one shift.

    With rate windows configured the shift is segmented; otherwise the
    wrapped duration is priced flat at pay_rate/bill_rate.
    """
    quantity = to_decimal(quantity, "quantity")
    if quantity <= 0:
        raise ValidationError("quantity must be positive", details={"quantity": str(quantity)})

    windows = list(windows or ())
    if windows:
        result = calculate_time_based_cost(start_time, end_time, windows, pay_rate, bill_rate, day)
        hours = result.total_hours
        # Unrounded segment sums so quantity does not multiply a rounding error
        cost = sum((s.sub_cost for s in result.breakdown), Decimal(0)) * quantity
        bill = sum((s.client_cost for s in result.breakdown), Decimal(0)) * quantity
        breakdown = [
            {
                "label": s.label,
                "hours": s.hours,
                "sub_rate": s.sub_rate,
                "client_rate": s.client_rate,
                "sub_cost": s.sub_cost,
                "client_cost": s.client_cost,
            }
            for s in result.breakdown
        ]
    else:
        shift = ClockWindow.from_hhmm(start_time, end_time)
        raw_hours = Decimal(shift.duration) / MINUTES_PER_HOUR
        hours = round_money(raw_hours)
        flat = calculate_simple_cost(raw_hours, pay_rate, bill_rate, quantity)
        cost, bill = flat["subcontractor_cost"], flat["client_bill"]
        breakdown = []

    sub_cost = round_money(cost)
    client_bill = round_money(bill)
    return {
        "hours": hours,
        "quantity": quantity,
        "sub_cost": sub_cost,
        "client_bill": client_bill,
        "margin_value": margin_value(client_bill, sub_cost),
        "margin_pct": margin_percentage(bill, cost),
        "breakdown": breakdown,
    }
