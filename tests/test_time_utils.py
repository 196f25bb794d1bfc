"""
Unit tests for time utilities - clock parsing, intervals and date conversion.
"""

import unittest
from datetime import date, datetime, timezone
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from core.constants import Weekday
from core.time_utils import (
    ClockWindow,
    Interval,
    minutes_to_time_str,
    parse_hhmm,
    parse_weekday,
    span_minutes,
    to_local_date,
    weekday_of,
)
from utils.error_handler import ValidationError


class TestTimeUtilities(unittest.TestCase):
    """Test time utility functions."""

    def test_minutes_to_time_str(self):
        """Test conversion from minutes to HH:MM string."""
        self.assertEqual(minutes_to_time_str(0), "00:00")
        self.assertEqual(minutes_to_time_str(90), "01:30")
        self.assertEqual(minutes_to_time_str(1439), "23:59")
        # Past midnight wraps
        self.assertEqual(minutes_to_time_str(1800), "06:00")

    def test_parse_hhmm(self):
        self.assertEqual(parse_hhmm("00:00"), (0, 0))
        self.assertEqual(parse_hhmm("8:30"), (8, 30))
        self.assertEqual(parse_hhmm("23:59"), (23, 59))

    def test_parse_hhmm_rejects_malformed(self):
        for bad in ("24:00", "12:60", "noon", "", "12", None, 1200):
            with self.assertRaises(ValidationError):
                parse_hhmm(bad)

    def test_span_minutes(self):
        """Test calculating span between times - returns (start_min, end_min) tuple."""
        self.assertEqual(span_minutes("08:00", "16:00"), (480, 960))
        self.assertEqual(span_minutes("22:00", "06:00"), (1320, 1800))
        # Equal start and end is a full day
        self.assertEqual(span_minutes("09:00", "09:00"), (540, 1980))


class TestDateConversion(unittest.TestCase):
    """Test conversion of the accepted date representations."""

    def test_date_passes_through(self):
        self.assertEqual(to_local_date(date(2024, 3, 5)), date(2024, 3, 5))

    def test_plain_iso_string(self):
        self.assertEqual(to_local_date("2024-03-05"), date(2024, 3, 5))

    def test_aware_datetime_uses_local_timezone(self):
        # 23:30 UTC in July is 00:30 the next day in London (BST)
        ts = datetime(2024, 7, 1, 23, 30, tzinfo=timezone.utc)
        self.assertEqual(to_local_date(ts), date(2024, 7, 2))

    def test_epoch_seconds(self):
        self.assertEqual(to_local_date(0), date(1970, 1, 1))

    def test_rejects_garbage(self):
        for bad in ("not a date", None, True, [2024, 3, 5]):
            with self.assertRaises(ValidationError):
                to_local_date(bad)

    def test_weekday_of(self):
        self.assertEqual(weekday_of(date(2024, 3, 5)), Weekday.TUESDAY)
        self.assertEqual(weekday_of(date(2024, 3, 10)), Weekday.SUNDAY)

    def test_parse_weekday(self):
        self.assertEqual(parse_weekday("Saturday"), Weekday.SATURDAY)
        self.assertEqual(parse_weekday(Weekday.MONDAY), Weekday.MONDAY)
        with self.assertRaises(ValidationError):
            parse_weekday("funday")


class TestInterval(unittest.TestCase):
    """Test the half-open interval type."""

    def test_contains_is_half_open(self):
        interval = Interval(10, 20)
        self.assertTrue(interval.contains(10))
        self.assertTrue(interval.contains(19))
        self.assertFalse(interval.contains(20))
        self.assertFalse(interval.contains(9))

    def test_open_ended(self):
        interval = Interval(date(2024, 1, 1))
        self.assertTrue(interval.contains(date(2099, 1, 1)))

    def test_intersect(self):
        self.assertEqual(Interval(0, 10).intersect(Interval(5, 20)), Interval(5, 10))
        self.assertEqual(Interval(0, None).intersect(Interval(5, 20)), Interval(5, 20))
        self.assertIsNone(Interval(0, 10).intersect(Interval(10, 20)))


class TestClockWindow(unittest.TestCase):
    """Test the wrap-aware wall-clock window."""

    def test_overnight_window(self):
        window = ClockWindow.from_hhmm("22:00", "06:00")
        self.assertTrue(window.crosses_midnight)
        self.assertEqual(window.duration, 480)
        self.assertEqual(window.label(), "22:00-06:00")

    def test_contains_normalizes_cursor(self):
        window = ClockWindow.from_hhmm("02:00", "08:00")
        # 26:00 on the shift axis is 02:00 on the clock
        self.assertTrue(window.contains(26 * 60))
        self.assertEqual(window.minutes_until_end(26 * 60), 360)

    def test_overnight_window_not_entered_after_midnight(self):
        window = ClockWindow.from_hhmm("22:00", "06:00")
        self.assertTrue(window.contains(23 * 60))
        self.assertFalse(window.contains(60))

    def test_intersect_wraps(self):
        night = ClockWindow.from_hhmm("22:00", "06:00")
        early = ClockWindow.from_hhmm("05:00", "09:00")
        self.assertIsNotNone(night.intersect(early))
        self.assertIsNotNone(early.intersect(night))

    def test_disjoint_windows(self):
        day = ClockWindow.from_hhmm("08:00", "18:00")
        night = ClockWindow.from_hhmm("18:00", "08:00")
        self.assertIsNone(day.intersect(night))


if __name__ == '__main__':
    unittest.main()
