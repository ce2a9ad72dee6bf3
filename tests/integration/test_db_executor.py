"""
Integration tests -- SQL executor against live PostgreSQL.

These tests require a reachable Postgres instance (POSTGRES_* / DATABASE_URL
in .env).  They are automatically skipped when the database is unreachable.
"""
from __future__ import annotations

import pytest
from sqlalchemy import text

# ── Guard: skip all tests if DB is unreachable ───────────
try:
    from medbrain_gateway.db.connection import get_engine

    engine = get_engine()
    with engine.connect() as _conn:
        _conn.execute(text("SELECT 1"))
    DB_AVAILABLE = True
except Exception:
    DB_AVAILABLE = False

pytestmark = pytest.mark.skipif(not DB_AVAILABLE, reason="Postgres not reachable")

from medbrain_gateway.db.executor import execute_readonly


# ── Basic connectivity ───────────────────────────────────

def test_simple_select():
    rows = execute_readonly("SELECT 1 AS n")
    assert rows == [{"n": 1}]


def test_multiple_rows():
    rows = execute_readonly("SELECT generate_series(1,3) AS n")
    assert [r["n"] for r in rows] == [1, 2, 3]


# ── Positional parameters ────────────────────────────────

def test_positional_params():
    rows = execute_readonly("SELECT $1::int + $2::int AS total", [2, 3])
    assert rows == [{"total": 5}]


def test_placeholder_in_literal_untouched():
    rows = execute_readonly("SELECT '$1' AS literal, $1::text AS bound", ["x"])
    assert rows == [{"literal": "$1", "bound": "x"}]


# ── Read-only enforcement ───────────────────────────────

def test_write_blocked():
    """READ ONLY transaction must reject writes."""
    with pytest.raises(Exception):
        execute_readonly("CREATE TABLE _test_no_write (id INT)")


# ── Decimal / date serialisation ─────────────────────────

def test_decimal_serialised_to_float():
    rows = execute_readonly("SELECT 3.14::numeric AS val")
    assert isinstance(rows[0]["val"], float)
    assert abs(rows[0]["val"] - 3.14) < 0.001


def test_date_serialised_to_iso():
    rows = execute_readonly("SELECT DATE '2024-01-15' AS d")
    assert rows[0]["d"] == "2024-01-15"


def test_timestamp_serialised_to_iso():
    rows = execute_readonly("SELECT TIMESTAMP '2024-01-15 10:30:00' AS ts")
    assert rows[0]["ts"].startswith("2024-01-15T10:30:00")
