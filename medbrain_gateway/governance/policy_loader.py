"""
Loads, parses, and caches the access policy YAML into typed objects.

The access policy is the single source of truth for:
  - allowed tables / views  (the SQL validator's allow-list)
  - sensitive result columns (masked before leaving the gateway)
  - per-endpoint rate limits (token bucket capacity and refill rate)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from functools import lru_cache
from typing import Any

import yaml

_POLICY_PATH = Path(__file__).resolve().parent / "access_policy.yml"

_DEFAULT_REQUESTS_PER_MINUTE = 60


# ── Typed domain objects ─────────────────────────────────

@dataclass(frozen=True)
class EndpointLimit:
    """Token bucket parameters for one endpoint."""
    max_tokens: int
    refill_rate_per_second: float

    @classmethod
    def from_requests_per_minute(cls, rpm: int) -> "EndpointLimit":
        return cls(max_tokens=int(rpm), refill_rate_per_second=rpm / 60)


@dataclass(frozen=True)
class AccessPolicy:
    version: int
    allowed_tables: tuple[str, ...]
    sensitive_columns: frozenset[str]
    endpoint_limits: dict[str, EndpointLimit] = field(default_factory=dict)
    default_limit: EndpointLimit = field(
        default_factory=lambda: EndpointLimit.from_requests_per_minute(_DEFAULT_REQUESTS_PER_MINUTE)
    )

    @property
    def allowed_tables_folded(self) -> frozenset[str]:
        """Allow-list for lookups: quoted names verbatim, unquoted lower-cased."""
        return frozenset(
            t if t.startswith('"') else t.lower() for t in self.allowed_tables
        )

    def limit_for(self, endpoint: str) -> EndpointLimit:
        return self.endpoint_limits.get(endpoint, self.default_limit)


# ── Parsing ──────────────────────────────────────────────

def _parse_rate_limits(raw: dict[str, Any] | None) -> tuple[dict[str, EndpointLimit], EndpointLimit]:
    if not raw:
        return {}, EndpointLimit.from_requests_per_minute(_DEFAULT_REQUESTS_PER_MINUTE)
    default = EndpointLimit.from_requests_per_minute(
        raw.get("default", _DEFAULT_REQUESTS_PER_MINUTE)
    )
    endpoints = {
        path: EndpointLimit.from_requests_per_minute(rpm)
        for path, rpm in (raw.get("endpoints") or {}).items()
    }
    return endpoints, default


def parse_policy(raw_yaml: dict[str, Any]) -> AccessPolicy:
    endpoints, default = _parse_rate_limits(raw_yaml.get("rate_limits"))
    return AccessPolicy(
        version=raw_yaml.get("version", 1),
        allowed_tables=tuple(raw_yaml.get("allowed_tables") or []),
        sensitive_columns=frozenset(c.lower() for c in raw_yaml.get("sensitive_columns") or []),
        endpoint_limits=endpoints,
        default_limit=default,
    )


# ── Public API ───────────────────────────────────────────

@lru_cache
def load_access_policy() -> AccessPolicy:
    """Load and cache the access policy from YAML."""
    with open(_POLICY_PATH, encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    return parse_policy(raw)
