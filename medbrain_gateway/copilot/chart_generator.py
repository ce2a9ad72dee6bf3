"""
Chart-type suggestion from the shape of a result set.

Advisory only: the UI may ignore it.  The heuristic looks at the first row:

  - no rows / single column          -> table
  - 2 columns, date-like + numeric   -> line
  - 2 columns, text + numeric        -> bar
  - single row with up to 3 columns  -> kpi
  - anything else                    -> table
"""
from __future__ import annotations

import decimal
import re
from typing import Any

# ── Chart types ─────────────────────────────────────────

CHART_TABLE = "table"
CHART_LINE = "line"
CHART_BAR = "bar"
CHART_KPI = "kpi"

_DATE_PREFIX_RE = re.compile(r"^\d{4}-\d{2}")


def _is_date_like(value: Any) -> bool:
    return isinstance(value, str) and bool(_DATE_PREFIX_RE.match(value))


def _is_numeric(value: Any) -> bool:
    """Numbers, or strings Postgres used to render numerics (e.g. '12.50')."""
    if isinstance(value, (int, float, decimal.Decimal)):
        return True
    if isinstance(value, str) and value.strip():
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def suggest_chart(rows: list[dict[str, Any]]) -> str:
    """Return one of ``table``, ``line``, ``bar``, ``kpi`` for *rows*."""
    if not rows:
        return CHART_TABLE

    columns = list(rows[0].keys())
    if len(columns) == 1:
        return CHART_TABLE

    if len(columns) == 2:
        first, second = rows[0][columns[0]], rows[0][columns[1]]
        if _is_date_like(first) and _is_numeric(second):
            return CHART_LINE
        if isinstance(first, str) and not _is_numeric(first) and _is_numeric(second):
            return CHART_BAR

    if len(rows) == 1 and len(columns) <= 3:
        return CHART_KPI
    return CHART_TABLE
