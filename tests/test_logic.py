"""
Unit tests for logic module - time log pricing and clock-time entries.
"""

import unittest
from datetime import date
from decimal import Decimal
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core.constants import RateLabel, TargetType
from core.logic import price_time_log, price_timed_entry
from core.models import HourlyRateCard, ShiftRateCard, TimeLogInput
from core.rates import InMemoryRateCardStore, RateResolver
from core.aggregation import check_record_consistency
from utils.error_handler import RateNotFoundError, ValidationError


def card(card_id, target_type, target_id, rate, ot=None, label=RateLabel.WEEKDAY_DAY, currency="GBP"):
    return HourlyRateCard(
        id=card_id, company_id="acme", target_type=target_type, target_id=target_id,
        role_id="electrician", rate_label=label, effective_from=date(2024, 1, 1),
        hourly_rate=Decimal(rate), ot_hourly_rate=None if ot is None else Decimal(ot),
        currency=currency,
    )


def time_log(**overrides):
    payload = {
        "projectId": "p-1", "subcontractorId": "sub-1", "clientId": "cl-1",
        "roleId": "electrician", "date": "2024-03-05", "shiftType": "WEEKDAY_DAY",
        "hoursRegular": 8, "hoursOT": 2,
    }
    payload.update(overrides)
    return TimeLogInput.from_payload(payload)


class TestPriceTimeLog(unittest.TestCase):
    """Test pricing a time log against both sides."""

    def setUp(self):
        self.store = InMemoryRateCardStore([
            card("sub-card", TargetType.SUBCONTRACTOR, "sub-1", "20", "30"),
            card("client-card", TargetType.CLIENT, "cl-1", "32"),
        ])
        self.resolver = RateResolver(self.store)

    def test_priced_record(self):
        record = price_time_log(self.resolver, "acme", time_log())
        self.assertEqual(record["status"], "DRAFT")
        self.assertEqual(record["sub_cost"], Decimal("220.00"))
        # Client OT defaults to 1.5 x 32
        self.assertEqual(record["client_ot_bill_rate"], Decimal("48.0"))
        self.assertEqual(record["client_bill"], Decimal("352.00"))
        self.assertEqual(record["margin_value"], Decimal("132.00"))
        self.assertEqual(record["sub_rate_card_id"], "sub-card")
        self.assertEqual(record["client_rate_card_id"], "client-card")
        self.assertEqual(record["sub_rate_label"], "Mon–Fri Day")
        self.assertEqual(record["date"], date(2024, 3, 5))
        self.assertEqual(record["expenses"], [])
        self.assertTrue(check_record_consistency(record))

    def test_min_hours_pad_regular(self):
        record = price_time_log(self.resolver, "acme", time_log(hoursRegular=3, hoursOT=0),
                                min_hours=Decimal(4))
        self.assertEqual(record["hours_regular"], Decimal(4))
        self.assertEqual(record["sub_cost"], Decimal("80.00"))

    def test_missing_client_card_creates_nothing(self):
        with self.assertRaises(RateNotFoundError) as ctx:
            price_time_log(self.resolver, "acme", time_log(clientId="cl-unknown"))
        self.assertEqual(ctx.exception.details["target_type"], "CLIENT")

    def test_missing_subcontractor_card(self):
        with self.assertRaises(RateNotFoundError) as ctx:
            price_time_log(self.resolver, "acme", time_log(date="2023-06-01"))
        self.assertEqual(ctx.exception.details["target_type"], "SUBCONTRACTOR")

    def test_inline_expenses_take_pricing_currency(self):
        self.store = InMemoryRateCardStore([
            card("sub-card", TargetType.SUBCONTRACTOR, "sub-1", "20", currency="EUR"),
            card("client-card", TargetType.CLIENT, "cl-1", "32", currency="EUR"),
        ])
        log = time_log(expenses=[
            {"category": "PARKING", "amount": "7.5", "date": "2024-03-05", "description": "Car park"},
        ])
        record = price_time_log(RateResolver(self.store), "acme", log)
        self.assertEqual(record["currency"], "EUR")
        self.assertEqual(record["expenses"], [{
            "company_id": "acme", "project_id": "p-1", "subcontractor_id": "sub-1",
            "date": date(2024, 3, 5), "category": "PARKING", "description": "Car park",
            "amount": Decimal("7.50"), "currency": "EUR", "status": "DRAFT",
        }])

    def test_shift_rate_ignores_ot(self):
        self.store.add(ShiftRateCard(
            id="sub-shift", company_id="acme", target_type=TargetType.SUBCONTRACTOR, target_id="sub-1",
            role_id="electrician", rate_label=RateLabel.SHIFT, effective_from=date(2024, 1, 1),
            shift_rate=Decimal("180"),
        ))
        self.store.add(ShiftRateCard(
            id="client-shift", company_id="acme", target_type=TargetType.CLIENT, target_id="cl-1",
            role_id="electrician", rate_label=RateLabel.SHIFT, effective_from=date(2024, 1, 1),
            shift_rate=Decimal("260"),
        ))
        record = price_time_log(self.resolver, "acme", time_log(shiftType="SHIFT", hoursRegular=1, hoursOT=3))
        self.assertEqual(record["sub_cost"], Decimal("180.00"))
        self.assertEqual(record["client_bill"], Decimal("260.00"))
        self.assertEqual(record["sub_ot_rate"], Decimal(0))


class TestPriceTimedEntry(unittest.TestCase):
    """Test pricing start/end entries with a crew size."""

    def test_flat_without_windows(self):
        result = price_timed_entry("22:00", "06:00", [], 20, 30, quantity=2)
        self.assertEqual(result["hours"], Decimal("8.00"))
        self.assertEqual(result["sub_cost"], Decimal("320.00"))
        self.assertEqual(result["client_bill"], Decimal("480.00"))
        self.assertEqual(result["margin_value"], Decimal("160.00"))
        self.assertEqual(result["margin_pct"], Decimal("33.33"))
        self.assertEqual(result["breakdown"], [])

    def test_with_windows(self):
        windows = [{"startTime": "18:00", "endTime": "22:00", "subcontractorRate": 30, "clientRate": 45,
                    "description": "Evening"}]
        result = price_timed_entry("18:00", "23:00", windows, 20, 30, quantity=3, day="2024-03-05")
        # 4h at 30/45 then 1h fallback at 20/30, times three people
        self.assertEqual(result["sub_cost"], Decimal("420.00"))
        self.assertEqual(result["client_bill"], Decimal("630.00"))
        self.assertEqual([row["label"] for row in result["breakdown"]],
                         ["18:00-22:00 (Evening)", "22:00-23:00 (Standard)"])
        self.assertEqual(result["client_bill"] - result["sub_cost"], result["margin_value"])

    def test_quantity_must_be_positive(self):
        with self.assertRaises(ValidationError):
            price_timed_entry("08:00", "16:00", [], 20, 30, quantity=0)


if __name__ == '__main__':
    unittest.main()
