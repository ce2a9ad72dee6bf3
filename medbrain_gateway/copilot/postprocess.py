"""
Result post-processing: row caps, masking and CSV rendering.

Every endpoint that returns database rows goes through ``process_rows`` so
the row cap and phone masking are applied in one place.  The CSV export
rejects oversize results instead of truncating them (a partial export
looks complete to whoever opens the file).
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import pandas as pd

from medbrain_gateway.governance.masking import mask_sensitive_columns
from medbrain_gateway.core.logging import get_logger

logger = get_logger(__name__)

_CSV_SPECIAL_CHARS = (",", '"', "\n", "\r")


class RowLimitExceeded(Exception):
    """Raised when a result must not be truncated and is over the cap."""

    def __init__(self, row_count: int, max_rows: int):
        self.row_count = row_count
        self.max_rows = max_rows
        super().__init__(
            f"Result exceeds the {max_rows:,}-row limit ({row_count:,} rows). "
            "Add filters to the query."
        )


@dataclass
class ProcessedRows:
    rows: list[dict[str, Any]]
    row_count_total: int
    truncated: bool


def process_rows(
    rows: list[dict[str, Any]],
    max_rows: int,
    *,
    reject_overflow: bool = False,
) -> ProcessedRows:
    """Bound *rows* to *max_rows* and mask sensitive columns.

    Raises
    ------
    RowLimitExceeded
        If ``reject_overflow`` is set and the result is over the cap.
    """
    total = len(rows)
    truncated = total > max_rows
    if truncated and reject_overflow:
        raise RowLimitExceeded(total, max_rows)
    if truncated:
        logger.info("Truncating result from %d to %d rows", total, max_rows)
        rows = rows[:max_rows]
    return ProcessedRows(
        rows=mask_sensitive_columns(rows),
        row_count_total=total,
        truncated=truncated,
    )


def _csv_field(value: Any) -> str:
    """One CSV cell: quoted only when it holds a comma, quote or newline."""
    if value is None or (pd.api.types.is_scalar(value) and pd.isna(value)):
        text = ""
    elif isinstance(value, bool):
        text = "true" if value else "false"
    elif isinstance(value, (dict, list)):
        text = json.dumps(value, ensure_ascii=False)
    else:
        text = str(value)
    if any(ch in text for ch in _CSV_SPECIAL_CHARS):
        return '"' + text.replace('"', '""') + '"'
    return text


def rows_to_csv(rows: list[dict[str, Any]]) -> str:
    """Render rows as CSV with minimal (RFC 4180 style) quoting.

    Header order follows the first row.  Nulls and empty strings become bare
    empty fields; booleans are written as ``true``/``false``.
    """
    if not rows:
        return ""
    columns = list(rows[0].keys())
    cells = pd.DataFrame(rows, columns=columns, dtype=object).map(_csv_field)
    lines = [",".join(_csv_field(c) for c in columns)]
    lines.extend(",".join(row) for row in cells.itertuples(index=False, name=None))
    return "\n".join(lines) + "\n"
