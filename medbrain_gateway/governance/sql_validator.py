"""
Deterministic SQL validation (non-LLM).

This is the gate every candidate query passes before it reaches Postgres,
whether it was written by a generation provider or sent to /api/query.
Checks run in a fixed order and stop at the first failure, so the error
message is always the most fundamental problem:

  1. Normalise whitespace; reject an empty query
  2. Single statement only (a trailing ';' is tolerated)
  3. No CTEs (leading WITH)
  4. No system / file / process functions (pg_*, lo_import, dblink ...)
  5. No data- or schema-modification keywords
  6. Must start with SELECT
  7. Every referenced table must be in the access policy allow-list

Pattern matching, not parsing: comments, exotic whitespace or
vendor-specific syntax may hide keywords from these checks. The database
role the gateway connects with is expected to be read-only as well.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from medbrain_gateway.governance.policy_loader import load_access_policy, AccessPolicy
from medbrain_gateway.core.logging import get_logger

logger = get_logger(__name__)

# ── Error messages ───────────────────────────────────────

ERR_EMPTY = "empty query"
ERR_MULTI_STATEMENT = "multiple statements not allowed"
ERR_CTE = "CTEs not allowed"
ERR_SYSTEM_FUNCTION = "system functions not allowed"
ERR_NOT_READ_ONLY = "only SELECT queries allowed"
ERR_NOT_SELECT = "query must start with SELECT"
ERR_TABLE_PREFIX = "table not allowed: "

# ── Compiled patterns ────────────────────────────────────

_WHITESPACE_RE = re.compile(r"\s+")

_STRING_LITERAL_RE = re.compile(r"'[^']*'")

_MULTI_STMT_RE = re.compile(r";\s*\S")  # semicolon followed by non-whitespace

_CTE_RE = re.compile(r"^\s*WITH\b", re.IGNORECASE)

_SYSTEM_FUNCTION_RE = re.compile(
    r"\b(pg_read_file|pg_sleep|pg_terminate_backend|lo_import|lo_export|dblink|pg_\w+)\s*\(",
    re.IGNORECASE,
)

_DML_DDL_RE = re.compile(
    r"\b(INSERT|UPDATE|DELETE|DROP|ALTER|CREATE|TRUNCATE|GRANT|REVOKE|EXECUTE|COPY)\b",
    re.IGNORECASE,
)

_SELECT_RE = re.compile(r"^\s*SELECT\b", re.IGNORECASE)

# Captures only the identifier right after the keyword; aliases are ignored.
_TABLE_REF_RE = re.compile(
    r"\b(?:FROM|JOIN|INTO|UPDATE|TABLE)\s+(\"?\w+\"?(?:\.\"?\w+\"?)?)",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str | None = None


_VALID = ValidationResult(valid=True)


def _reject(error: str) -> ValidationResult:
    logger.warning("SQL rejected: %s", error)
    return ValidationResult(valid=False, error=error)


def normalize_sql(sql: str) -> str:
    """Trim and collapse every whitespace run to a single space."""
    return _WHITESPACE_RE.sub(" ", sql.strip())


def strip_string_literals(sql: str) -> str:
    """Remove single-quoted literals so their content cannot trip a check."""
    return _STRING_LITERAL_RE.sub("", sql)


def extract_tables(sql: str) -> list[str]:
    """Return every table identifier following FROM / JOIN / INTO / UPDATE / TABLE.

    Schema qualifiers are dropped (``public.users`` -> ``users``); quoted
    identifiers keep their quotes.
    """
    tables: list[str] = []
    for match in _TABLE_REF_RE.finditer(sql):
        table = match.group(1).strip()
        if "." in table:
            table = table.split(".")[-1]
        tables.append(table)
    return tables


def is_table_allowed(table: str, policy: AccessPolicy) -> bool:
    if table.startswith('"'):
        return table in policy.allowed_tables
    return table.lower() in policy.allowed_tables_folded


def validate_sql(sql: str, policy: AccessPolicy | None = None) -> ValidationResult:
    """Validate *sql* against the read-only policy.

    Parameters
    ----------
    sql : str
        Candidate query text.
    policy : AccessPolicy, optional
        If None, auto-loads the access policy from disk.
    """
    if policy is None:
        policy = load_access_policy()

    normalized = normalize_sql(sql or "")
    if not normalized:
        return _reject(ERR_EMPTY)

    without_strings = strip_string_literals(normalized)

    if _MULTI_STMT_RE.search(without_strings):
        return _reject(ERR_MULTI_STATEMENT)

    if _CTE_RE.search(normalized):
        return _reject(ERR_CTE)

    if _SYSTEM_FUNCTION_RE.search(without_strings):
        return _reject(ERR_SYSTEM_FUNCTION)

    if _DML_DDL_RE.search(without_strings):
        return _reject(ERR_NOT_READ_ONLY)

    if not _SELECT_RE.search(normalized):
        return _reject(ERR_NOT_SELECT)

    for table in extract_tables(normalized):
        if not is_table_allowed(table, policy):
            return _reject(f"{ERR_TABLE_PREFIX}{table}")

    return _VALID
