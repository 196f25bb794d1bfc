"""
Unit tests for error handling helpers and the TTL cache.
"""

import unittest
from unittest.mock import MagicMock
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from utils.cache_manager import CacheManager
from utils.error_handler import (
    CrewRateError,
    DatabaseError,
    RateNotFoundError,
    ValidationError,
    safe_database_operation,
    sanitize_error_message,
    validate_input,
)
from utils.utils import format_currency, to_decimal


class TestValidateInput(unittest.TestCase):
    """Test the argument validation decorator."""

    def setUp(self):
        @validate_input({
            'name': {'type': str, 'non_empty': True},
            'count': {'min': 0, 'max': 10},
        })
        def func(name, count=1):
            return name, count

        self.func = func

    def test_valid_call(self):
        self.assertEqual(self.func("a", 3), ("a", 3))
        self.assertEqual(self.func(name="a"), ("a", 1))

    def test_positional_arguments_are_checked(self):
        with self.assertRaises(ValidationError):
            self.func("")
        with self.assertRaises(ValidationError):
            self.func(5)
        with self.assertRaises(ValidationError):
            self.func("a", 11)
        with self.assertRaises(ValidationError):
            self.func("a", count=-1)


class TestSafeDatabaseOperation(unittest.TestCase):

    def test_application_errors_pass_through(self):
        @safe_database_operation("lookup")
        def lookup():
            raise RateNotFoundError("missing")

        with self.assertRaises(RateNotFoundError):
            lookup()

    def test_database_failure_is_wrapped_and_rolled_back(self):
        conn = MagicMock()

        @safe_database_operation("lookup")
        def lookup(conn=None):
            raise RuntimeError("database connection lost")

        with self.assertRaises(DatabaseError):
            lookup(conn=conn)
        conn.rollback.assert_called_once()

    def test_other_errors_propagate(self):
        @safe_database_operation("lookup")
        def lookup():
            raise KeyError("id")

        with self.assertRaises(KeyError):
            lookup()


class TestErrorMessages(unittest.TestCase):

    def test_user_message_defaults_to_message(self):
        error = CrewRateError("bad thing", details={"a": 1})
        self.assertEqual(error.user_message, "bad thing")
        self.assertEqual(error.status_code, 400)

    def test_sanitize(self):
        self.assertEqual(sanitize_error_message("failed in /srv/app/core/rates.py"), "failed in [PATH]")
        self.assertEqual(sanitize_error_message("error: SELECT * FROM rate_cards"), "error: [QUERY]")


class TestMoneyHelpers(unittest.TestCase):

    def test_to_decimal_avoids_float_artifacts(self):
        self.assertEqual(str(to_decimal(0.1)), "0.1")
        for bad in (None, True, "abc", float("nan"), [1]):
            with self.assertRaises(ValidationError):
                to_decimal(bad)

    def test_format_currency(self):
        self.assertEqual(format_currency(11403), "GBP 11,403.00")
        self.assertEqual(format_currency(2.005, "EUR"), "EUR 2.01")


class TestCacheManager(unittest.TestCase):

    def test_set_get_and_prefix_clear(self):
        cache = CacheManager(default_ttl=60)
        key_a = cache.make_key("rate_cards", "acme", 1)
        key_b = cache.make_key("other", "acme", 1)
        cache.set(key_a, ["card"])
        cache.set(key_b, ["x"])
        self.assertEqual(cache.get(key_a), ["card"])

        cache.clear("rate_cards")
        self.assertIsNone(cache.get(key_a))
        self.assertEqual(cache.get(key_b), ["x"])
        self.assertEqual(cache.get_stats()["entries"], 1)

    def test_expired_entries(self):
        cache = CacheManager()
        cache.set("k", 1, ttl=-1)
        self.assertIsNone(cache.get("k"))


if __name__ == '__main__':
    unittest.main()
