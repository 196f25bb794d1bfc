"""
Price calculation for CrewRate.
Turns a resolved paying-side rate and a resolved billing-side rate plus the
hours worked into cost, bill and margin figures.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, NamedTuple, Optional

from core.constants import ShiftType, UNIT_SHIFT_TYPES
from core.models import PriceCalculation, ResolvedRate
from utils.error_handler import InvariantViolation, ValidationError
from utils.utils import round_money, to_decimal

logger = logging.getLogger(__name__)

ZERO = Decimal(0)
HUNDRED = Decimal(100)


class Hours(NamedTuple):
    regular: Decimal
    ot: Decimal


# =============================================================================
# Margin Helpers
# =============================================================================

def margin_value(client_bill: Decimal, cost: Decimal) -> Decimal:
    """Margin on already-rounded amounts, so bill - cost == margin to the cent."""
    return round_money(client_bill - cost)


def margin_percentage(client_bill: Decimal, cost: Decimal) -> Decimal:
    """(bill - cost) / bill * 100, rounded; 0 when nothing is billed."""
    if client_bill <= 0:
        return round_money(ZERO)
    return round_money((client_bill - cost) / client_bill * HUNDRED)


def _non_negative_hours(value: Any, name: str) -> Decimal:
    hours = to_decimal(value, name)
    if hours < 0:
        raise ValidationError(f"{name} cannot be negative", details={name: str(hours)})
    return hours


def _shift_type(value: ShiftType | str) -> ShiftType:
    try:
        return ShiftType(value)
    except ValueError:
        raise InvariantViolation(f"Unmapped shift type: {value!r}", details={"shift_type": str(value)})


# =============================================================================
# Price Calculator
# =============================================================================

class PriceCalculator:
    """Computes costs and margins from resolved rates."""

    @staticmethod
    def calculate(
        sub_rate: ResolvedRate,
        client_rate: ResolvedRate,
        shift_type: ShiftType | str,
        hours_regular: Decimal | float | int,
        hours_ot: Decimal | float | int = 0,
    ) -> PriceCalculation:
        """
        Price one line item on both sides.

        SHIFT and DAILY work is priced per unit: hours_regular is the number
        of shifts or days and hours_ot is ignored. Hourly work is
        base * regular + ot * overtime on each side independently.

        Only the final amounts are rounded. The margin is taken from the
        rounded cost and bill so the persisted record always satisfies
        client_bill - sub_cost == margin_value.
        """
        shift_type = _shift_type(shift_type)
        regular = _non_negative_hours(hours_regular, "hours_regular")
        overtime = _non_negative_hours(hours_ot, "hours_ot")

        if shift_type in UNIT_SHIFT_TYPES:
            sub_cost = sub_rate.base_rate * regular
            client_bill = client_rate.base_rate * regular
        else:
            sub_cost = sub_rate.base_rate * regular + sub_rate.ot_rate * overtime
            client_bill = client_rate.base_rate * regular + client_rate.ot_rate * overtime

        if sub_rate.currency != client_rate.currency:
            logger.warning(
                f"Currency mismatch between rate cards {sub_rate.rate_card_id} ({sub_rate.currency}) "
                f"and {client_rate.rate_card_id} ({client_rate.currency}); reporting {client_rate.currency}"
            )

        if client_bill > 0:
            pct = (client_bill - sub_cost) / client_bill * HUNDRED
        else:
            pct = ZERO

        rounded_cost = round_money(sub_cost)
        rounded_bill = round_money(client_bill)

        return PriceCalculation(
            sub_rate_label=sub_rate.rate_label,
            client_rate_label=client_rate.rate_label,
            sub_base_rate=sub_rate.base_rate,
            sub_ot_rate=sub_rate.ot_rate,
            client_bill_rate=client_rate.base_rate,
            client_ot_bill_rate=client_rate.ot_rate,
            sub_cost=rounded_cost,
            client_bill=rounded_bill,
            margin_value=margin_value(rounded_bill, rounded_cost),
            margin_pct=round_money(pct),
            currency=client_rate.currency,
        )

    @staticmethod
    def apply_min_hours(
        hours_regular: Decimal | float | int,
        hours_ot: Decimal | float | int,
        min_hours: Optional[Decimal | float | int] = None,
    ) -> Hours:
        """Pad a short shift up to the minimum commitment, always into regular hours."""
        regular = _non_negative_hours(hours_regular, "hours_regular")
        overtime = _non_negative_hours(hours_ot, "hours_ot")
        if not min_hours:
            return Hours(regular, overtime)

        minimum = to_decimal(min_hours, "min_hours")
        total = regular + overtime
        if total >= minimum:
            return Hours(regular, overtime)

        return Hours(regular + (minimum - total), overtime)


apply_min_hours = PriceCalculator.apply_min_hours
