"""
Utility functions for CrewRate.
Contains money helpers, formatting, and general utilities.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from core.config import config
from utils.error_handler import ValidationError

CENT = Decimal("0.01")


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """Convert a numeric input to Decimal without binary float artifacts."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", details={field: repr(value)})
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number", details={field: repr(value)})
    else:
        raise ValidationError(f"{field} must be a number", details={field: repr(value)})

    if not result.is_finite():
        raise ValidationError(f"{field} must be finite", details={field: str(value)})
    return result


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def is_valid_rate(rate: Decimal) -> bool:
    return Decimal(0) <= rate <= config.MAX_RATE


def format_currency(value: Decimal | float | int | None, currency: str | None = None) -> str:
    """Format number as currency with thousand separators (e.g., 11403 -> GBP 11,403.00)."""
    if value is None:
        value = 0
    amount = f"{round_money(to_decimal(value)):,.2f}"
    return f"{currency or config.DEFAULT_CURRENCY} {amount}"
