"""
Parse a generation provider's free-text answer into a GeneratedQuery.

Strategies are tried in order:
  1. a JSON object containing a "sql" key  ({"sql", "explanation", "params"})
  2. a fenced ```sql code block; the remaining prose becomes the explanation
  3. nothing found -> empty sql (a conversational reply, nothing to execute)

Parsing never fails: unrecognisable output is simply a reply without SQL.
"""
from __future__ import annotations

import json
import re
from typing import Any

from medbrain_gateway.copilot.models import GeneratedQuery
from medbrain_gateway.core.logging import get_logger

logger = get_logger(__name__)

EXPLANATION_MAX_CHARS = 500

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\"sql\"[\s\S]*\}")
_SQL_FENCE_RE = re.compile(r"```sql\s*\n?([\s\S]*?)```", re.IGNORECASE)
_ANY_FENCE_RE = re.compile(r"```[\s\S]*?```")

_SCALAR_TYPES = (str, int, float, bool, type(None))


def _coerce_params(raw: Any) -> list[Any]:
    if not isinstance(raw, list):
        return []
    return [p if isinstance(p, _SCALAR_TYPES) else json.dumps(p) for p in raw]


def parse_json_block(text: str) -> GeneratedQuery | None:
    """Return the query from an embedded JSON object, or None if absent/invalid."""
    match = _JSON_OBJECT_RE.search(text)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        logger.debug("JSON-looking block did not parse: %s", exc)
        return None
    if not isinstance(data, dict):
        return None
    return GeneratedQuery(
        sql=str(data.get("sql") or ""),
        explanation=str(data.get("explanation") or ""),
        params=_coerce_params(data.get("params")),
    )


def parse_fenced_sql(text: str) -> GeneratedQuery:
    """Use the first ```sql block as the query and the rest as explanation.

    Without a sql block the result has empty ``sql``.
    """
    match = _SQL_FENCE_RE.search(text)
    sql = match.group(1).strip() if match else ""
    explanation = _ANY_FENCE_RE.sub("", text).strip()[:EXPLANATION_MAX_CHARS]
    return GeneratedQuery(sql=sql, explanation=explanation, params=[])


def parse_generation(text: str) -> GeneratedQuery:
    """Turn raw model output into a GeneratedQuery (never raises)."""
    result = parse_json_block(text)
    if result is None:
        result = parse_fenced_sql(text)
    if not result.has_sql:
        logger.info("Model answered without SQL (%d chars)", len(text))
    return result
