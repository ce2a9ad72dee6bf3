"""
Phone-number masking for result rows.

Columns listed under ``sensitive_columns`` in the access policy are always
masked.  ``session_id`` holds the WhatsApp phone number for most rows, so
it is masked only when the value is phone-shaped (10-13 digits).
"""
from __future__ import annotations

import decimal
import re
from typing import Any, Iterable

from medbrain_gateway.governance.policy_loader import load_access_policy

_NON_DIGIT_RE = re.compile(r"\D")
_PHONE_SHAPED_RE = re.compile(r"^\d{10,13}$")

SESSION_ID_COLUMN = "session_id"


def mask_phone(value: str) -> str:
    """Mask a phone number, keeping country/area code and the last 4 digits.

    >>> mask_phone("5511987654321")
    '+55 11 9****-4321'
    """
    digits = _NON_DIGIT_RE.sub("", value)
    if len(digits) < 10:
        return value

    last4 = digits[-4:]
    if len(digits) >= 12:
        return f"+{digits[:2]} {digits[2:4]} 9****-{last4}"
    if len(digits) == 11:
        return f"({digits[:2]}) 9****-{last4}"
    return f"({digits[:2]}) ****-{last4}"


def _phone_text(value: Any) -> str | None:
    """Text form of a value that may hold a phone number, or None.

    psycopg2 returns bigint columns as int and numerics as Decimal (float
    once serialised), so whole numbers are rendered as their digits.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (float, decimal.Decimal)) and value == value and value % 1 == 0:
        return str(int(value))
    return None


def _should_mask(column: str, value: str, sensitive: Iterable[str]) -> bool:
    if column.lower() in sensitive:
        return True
    return column == SESSION_ID_COLUMN and bool(_PHONE_SHAPED_RE.match(value))


def mask_sensitive_columns(
    rows: list[dict[str, Any]],
    sensitive_columns: Iterable[str] | None = None,
) -> list[dict[str, Any]]:
    """Return copies of *rows* with phone-like values masked.

    Strings and whole numbers are considered. A value too short to be a
    phone number keeps its original type; nulls pass through untouched.
    """
    if not rows:
        return rows
    sensitive = set(sensitive_columns) if sensitive_columns is not None \
        else load_access_policy().sensitive_columns

    masked_rows: list[dict[str, Any]] = []
    for row in rows:
        masked = dict(row)
        for column, value in row.items():
            text = _phone_text(value)
            if text is None or not _should_mask(column, text, sensitive):
                continue
            result = mask_phone(text)
            if result != text:
                masked[column] = result
        masked_rows.append(masked)
    return masked_rows
