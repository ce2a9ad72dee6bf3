"""
Read-only SQL executor.

All gateway queries run through `execute_readonly`, which:
  1. Opens a READ ONLY transaction (Postgres-enforced)
  2. Binds PostgreSQL-style positional parameters ($1, $2, ...)
  3. Converts Decimal/date/datetime/UUID to JSON-safe Python types

There is no statement timeout here; the pool's connection limits bound
query duration and the callers cap the number of rows returned.
"""
from __future__ import annotations

import decimal
import datetime
import re
import uuid
from typing import Any, Sequence

from sqlalchemy import text

from medbrain_gateway.db.connection import readonly_connection
from medbrain_gateway.core.logging import get_logger

logger = get_logger(__name__)

_STRING_LITERAL_RE = re.compile(r"('(?:[^']|'')*')")
_POSITIONAL_PARAM_RE = re.compile(r"\$(\d+)(::)?")


def _serialise_value(val: Any) -> Any:
    """Convert DB types to JSON-serialisable Python types."""
    if isinstance(val, decimal.Decimal):
        return float(val)
    if isinstance(val, (datetime.date, datetime.datetime, datetime.time)):
        return val.isoformat()
    if isinstance(val, datetime.timedelta):
        return str(val)
    if isinstance(val, uuid.UUID):
        return str(val)
    return val


def _named_bind(match: re.Match) -> str:
    # ":p1::int" would parse as a bind named "p"; Postgres accepts ":p1 ::int".
    return f":p{match.group(1)}" + (" ::" if match.group(2) else "")


def bind_positional(sql: str, params: Sequence[Any] | None) -> tuple[str, dict[str, Any]]:
    """Rewrite ``$n`` placeholders to ``:pn`` binds outside string literals.

    >>> bind_positional("SELECT 1 FROM t WHERE a = $1", ["x"])
    ('SELECT 1 FROM t WHERE a = :p1', {'p1': 'x'})
    """
    parts = _STRING_LITERAL_RE.split(sql)
    rewritten = [
        part if part.startswith("'") else _POSITIONAL_PARAM_RE.sub(_named_bind, part)
        for part in parts
    ]
    bound = {f"p{i}": value for i, value in enumerate(params or [], start=1)}
    return "".join(rewritten), bound


def execute_readonly(
    sql: str,
    params: Sequence[Any] | None = None,
) -> list[dict[str, Any]]:
    """Execute a read-only SQL query and return rows as serialisable dicts.

    Raises
    ------
    sqlalchemy.exc.SQLAlchemyError
        If the database rejects the query.
    """
    statement, bound = bind_positional(sql, params)
    logger.info("Executing SQL (%d chars, %d params)", len(sql), len(bound))

    with readonly_connection() as conn:
        result = conn.execute(text(statement), bound)
        columns = list(result.keys())
        rows = [
            {col: _serialise_value(val) for col, val in zip(columns, row)}
            for row in result.fetchall()
        ]

    logger.info("Returned %d rows", len(rows))
    return rows
