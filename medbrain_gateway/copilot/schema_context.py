"""
Schema context -- the grounding document sent as the system prompt.

``schema_context.txt`` is regenerated offline by introspecting the live
database (rules, FAQ-to-table guide, per-table columns, sample values and
date ranges).  The gateway treats it as an opaque string.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

_SCHEMA_CONTEXT_PATH = Path(__file__).resolve().parent / "schema_context.txt"


@lru_cache
def load_schema_context() -> str:
    """Read and cache the schema context document."""
    return _SCHEMA_CONTEXT_PATH.read_text(encoding="utf-8")


def build_system_prompt() -> str:
    return load_schema_context().strip()
