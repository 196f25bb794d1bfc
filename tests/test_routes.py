"""
API tests for the pricing routes, using an in-memory rate card store.
"""

import unittest
from datetime import date
from decimal import Decimal
from unittest.mock import patch
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fastapi.testclient import TestClient

from app import app
from core.config import config
from core.constants import RateLabel, TargetType
from core.models import HourlyRateCard
from core.rates import InMemoryRateCardStore
from routes.pricing import get_rate_card_store


def card(card_id, target_type, target_id, rate):
    return HourlyRateCard(
        id=card_id, company_id="acme", target_type=target_type, target_id=target_id,
        role_id="electrician", rate_label=RateLabel.WEEKDAY_DAY, effective_from=date(2024, 1, 1),
        hourly_rate=Decimal(rate),
    )


TIME_LOG = {
    "companyId": "acme", "projectId": "p-1", "subcontractorId": "sub-1", "clientId": "cl-1",
    "roleId": "electrician", "date": "2024-03-05", "shiftType": "WEEKDAY_DAY",
    "hoursRegular": 8, "hoursOT": 1,
}


class TestPricingRoutes(unittest.TestCase):
    """Test the JSON pricing API."""

    def setUp(self):
        self.store = InMemoryRateCardStore([
            card("sub-card", TargetType.SUBCONTRACTOR, "sub-1", "20"),
            card("client-card", TargetType.CLIENT, "cl-1", "30"),
        ])
        app.dependency_overrides[get_rate_card_store] = lambda: self.store
        self.addCleanup(app.dependency_overrides.clear)
        self.client = TestClient(app)

    def test_health_without_database(self):
        with patch.object(config, "DATABASE_URL", ""):
            response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["database"], "not_configured")

    def test_price_time_log(self):
        response = self.client.post("/api/pricing/time-log", json=TIME_LOG)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        # 8 x 20 + 1 x 30 and 8 x 30 + 1 x 45
        self.assertEqual(body["sub_cost"], "190.00")
        self.assertEqual(body["client_bill"], "285.00")
        self.assertEqual(body["margin_value"], "95.00")
        self.assertEqual(body["margin_pct"], "33.33")
        self.assertEqual(body["status"], "DRAFT")
        self.assertEqual(body["date"], "2024-03-05")
        self.assertEqual(body["client_rate_label"], "Mon–Fri Day")

    def test_min_hours(self):
        payload = dict(TIME_LOG, hoursRegular=2, hoursOT=0, minHours=4)
        body = self.client.post("/api/pricing/time-log", json=payload).json()
        self.assertEqual(body["sub_cost"], "80.00")

    def test_missing_rate_card_is_412(self):
        payload = dict(TIME_LOG, clientId="cl-unknown")
        response = self.client.post("/api/pricing/time-log", json=payload)
        self.assertEqual(response.status_code, 412)
        body = response.json()
        self.assertEqual(body["error_type"], "RateNotFoundError")
        self.assertEqual(body["details"]["target_id"], "cl-unknown")

    def test_invalid_time_log_is_400(self):
        response = self.client.post("/api/pricing/time-log", json=dict(TIME_LOG, hoursRegular=30))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error_type"], "ValidationError")

    def test_missing_company_is_400(self):
        payload = {k: v for k, v in TIME_LOG.items() if k != "companyId"}
        self.assertEqual(self.client.post("/api/pricing/time-log", json=payload).status_code, 400)

    def test_malformed_json_is_400(self):
        response = self.client.post("/api/pricing/time-log", content=b"{not json",
                                    headers={"content-type": "application/json"})
        self.assertEqual(response.status_code, 400)

    def test_price_time_range(self):
        response = self.client.post("/api/pricing/time-range", json={
            "startTime": "22:00", "endTime": "06:00",
            "windows": [], "fallbackSubRate": 20, "fallbackClientRate": 30,
        })
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["hours"], "8.00")
        self.assertEqual(body["sub_cost"], "160.00")
        self.assertEqual(body["client_bill"], "240.00")

    def test_price_time_range_requires_times(self):
        response = self.client.post("/api/pricing/time-range", json={
            "startTime": "22:00", "fallbackSubRate": 20, "fallbackClientRate": 30,
        })
        self.assertEqual(response.status_code, 400)

    def test_validate_windows(self):
        response = self.client.post("/api/pricing/windows/validate", json={"windows": [
            {"startTime": "06:00", "endTime": "12:00", "subcontractorRate": 20, "clientRate": 30},
            {"startTime": "11:00", "endTime": "14:00", "subcontractorRate": 25, "clientRate": 35},
        ]})
        body = response.json()
        self.assertFalse(body["valid"])
        self.assertEqual(body["conflicts"], [["06:00-12:00 (Rate)", "11:00-14:00 (Rate)"]])

    def test_project_summary(self):
        response = self.client.post("/api/projects/p-1/summary", json={
            "timeLogs": [
                {"id": "t1", "subcontractorId": "sub-1", "status": "APPROVED", "hoursRegular": 8,
                 "subCost": "160.00", "clientBill": "240.00", "marginValue": "80.00"},
                {"id": "t2", "subcontractorId": "sub-1", "status": "DRAFT", "hoursRegular": 8,
                 "subCost": "160.00", "clientBill": "240.00", "marginValue": "79.00"},
            ],
            "expenses": [{"id": "e1", "subcontractorId": "sub-1", "status": "APPROVED", "amount": 10}],
        })
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["summary"]["total_cost"], "170.00")
        self.assertEqual(body["summary"]["margin_value"], "70.00")
        self.assertEqual(body["tracking"]["totals"]["cost"], "330.00")
        self.assertEqual(body["inconsistent_record_ids"], ["t2"])


if __name__ == '__main__':
    unittest.main()
