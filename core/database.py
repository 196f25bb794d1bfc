"""
Database connection and utilities for CrewRate.
Provides the PostgreSQL connection wrapper and the rate card store backed by it.
Uses connection pooling for better performance.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Any, List, Optional, Sequence

import psycopg2
import psycopg2.extras
from psycopg2 import pool

from core.config import config
from core.models import RateCard, RateCardKey, rate_card_from_record
from utils.cache_manager import cache, cached
from utils.error_handler import safe_database_operation

logger = logging.getLogger(__name__)

# Connection pool - initialized lazily
_pool: Optional[pool.ThreadedConnectionPool] = None

RATE_CARD_CACHE_PREFIX = "rate_cards"


def _get_pool() -> pool.ThreadedConnectionPool:
    """Get or create the connection pool."""
    global _pool
    if _pool is None:
        if not config.DATABASE_URL:
            raise RuntimeError("DATABASE_URL environment variable is required")
        _pool = pool.ThreadedConnectionPool(
            minconn=config.DB_POOL_MIN,
            maxconn=config.DB_POOL_MAX,
            dsn=config.DATABASE_URL
        )
        logger.info("Database connection pool created")
    return _pool


def get_pooled_connection():
    """Get a connection from the pool."""
    return _get_pool().getconn()


def return_connection(conn):
    """Return a connection to the pool."""
    if _pool is not None:
        _pool.putconn(conn)


class PostgresConnection:
    """Wrapper for a pooled PostgreSQL connection.

    Queries may use `?` placeholders; they are rewritten to `%s`.
    """

    def __init__(self, conn, use_pool: bool = True):
        self.conn = conn
        self._use_pool = use_pool

    def execute(self, query: str, params: tuple = ()) -> Any:
        """Execute a query and return a RealDictCursor."""
        query = query.replace("?", "%s")
        cursor = self.conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
        cursor.execute(query, params)
        return cursor

    def commit(self):
        if not self.conn.closed:
            self.conn.commit()

    def rollback(self):
        if not self.conn.closed:
            self.conn.rollback()

    def close(self):
        if self.conn.closed:
            return
        if self._use_pool:
            return_connection(self.conn)
        else:
            self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.conn.closed:
            return
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()
        self.close()


def get_conn() -> PostgresConnection:
    """Create and return a pooled PostgreSQL connection wrapper."""
    return PostgresConnection(get_pooled_connection(), use_pool=True)


def check_connection() -> bool:
    """Whether the database answers a trivial query. Used by the health check."""
    try:
        with get_conn() as conn:
            conn.execute("SELECT 1").fetchone()
        return True
    except (RuntimeError, psycopg2.Error) as e:
        logger.warning(f"Database health check failed: {e}")
        return False


def close_all_pools():
    """Close the database connection pool. Used for graceful shutdown."""
    global _pool

    if _pool:
        try:
            _pool.closeall()
            logger.info("Database pool closed")
        except Exception as e:
            logger.error(f"Error closing database pool: {e}")
        finally:
            _pool = None


# =============================================================================
# Rate Card Store
# =============================================================================

# Every version on or before the date, newest first. No LIMIT: an expired
# newer version must never hide the effective older one.
RATE_CARD_CANDIDATES_QUERY = """
    SELECT id, company_id, target_type, target_id, role_id, rate_label, rate_mode,
           hourly_rate, ot_hourly_rate, shift_rate, daily_rate, currency, min_hours,
           weekend_multiplier, night_multiplier, effective_from, effective_to
    FROM rate_cards
    WHERE company_id = ? AND target_type = ? AND target_id = ?
      AND role_id = ? AND rate_label = ? AND effective_from <= ?
    ORDER BY effective_from DESC
"""


class PostgresRateCardStore:
    """Read-only rate card store over the `rate_cards` table."""

    def __init__(self, connection_factory=get_conn):
        self._connection_factory = connection_factory

    def find_candidates(self, key: RateCardKey, as_of: date) -> Sequence[RateCard]:
        if config.ENABLE_CACHING:
            return self._cached_candidates(key, as_of)
        return self._fetch_candidates(key, as_of)

    @cached(ttl=config.RATE_CARD_CACHE_TTL, key_prefix=RATE_CARD_CACHE_PREFIX, skip_args=1)
    def _cached_candidates(self, key: RateCardKey, as_of: date) -> List[RateCard]:
        return self._fetch_candidates(key, as_of)

    @safe_database_operation("fetch_rate_cards")
    def _fetch_candidates(self, key: RateCardKey, as_of: date) -> List[RateCard]:
        params = (
            key.company_id, key.target_type.value, key.target_id,
            key.role_id, key.rate_label.value, as_of,
        )
        with self._connection_factory() as conn:
            rows = conn.execute(RATE_CARD_CANDIDATES_QUERY, params).fetchall()
        logger.debug(f"Fetched {len(rows)} rate card row(s) for {key} as of {as_of}")
        return [rate_card_from_record(row) for row in rows]

    @staticmethod
    def invalidate() -> None:
        """Drop cached candidate lists, e.g. after rate cards were edited."""
        cache.clear(RATE_CARD_CACHE_PREFIX)
