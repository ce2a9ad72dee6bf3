"""
Per-client, per-endpoint admission control (token bucket).

Each (client, endpoint) pair owns a bucket that starts full, refills
continuously at the endpoint's rate and spends one token per admitted
request. Capacities and rates come from the access policy.

Bucket state lives behind ``BucketStore``.  The default store is a
process-local dict: it resets on restart and is not shared between
replicas.  A shared store (e.g. Redis) only needs to implement
``consume`` atomically.
"""
from __future__ import annotations

import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Mapping

from medbrain_gateway.governance.policy_loader import load_access_policy, AccessPolicy, EndpointLimit
from medbrain_gateway.core.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass
class TokenBucket:
    """Mutable bucket state for one (client, endpoint) key."""
    tokens: float
    last_refill: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_seconds: int | None = None


def take_token(bucket: TokenBucket, limit: EndpointLimit, now: float) -> RateLimitDecision:
    """Refill *bucket* up to *now*, then try to spend one token."""
    elapsed = max(0.0, now - bucket.last_refill)
    bucket.tokens = min(limit.max_tokens, bucket.tokens + elapsed * limit.refill_rate_per_second)
    bucket.last_refill = now

    if bucket.tokens >= 1:
        bucket.tokens -= 1
        return RateLimitDecision(allowed=True)

    retry_after = math.ceil((1 - bucket.tokens) / limit.refill_rate_per_second)
    return RateLimitDecision(allowed=False, retry_after_seconds=retry_after)


# ── Storage backends ────────────────────────────────────


class BucketStore(ABC):
    """Owns bucket state; ``consume`` must be atomic per key."""

    @abstractmethod
    def consume(self, key: str, limit: EndpointLimit, now: float) -> RateLimitDecision:
        ...


class InMemoryBucketStore(BucketStore):
    """Thread-safe dict of buckets.  Buckets are never evicted."""

    def __init__(self) -> None:
        self._buckets: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    def consume(self, key: str, limit: EndpointLimit, now: float) -> RateLimitDecision:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = TokenBucket(tokens=float(limit.max_tokens), last_refill=now)
                self._buckets[key] = bucket
            return take_token(bucket, limit, now)

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)


# ── Limiter ─────────────────────────────────────────────


class RateLimiter:
    """Admits or rejects requests per (client, endpoint).

    Parameters
    ----------
    store : BucketStore, optional
        Bucket storage; defaults to a fresh in-memory store.
    policy : AccessPolicy, optional
        Source of endpoint limits; defaults to the packaged policy.
    clock : callable, optional
        Monotonic seconds; injectable for tests.
    """

    def __init__(
        self,
        store: BucketStore | None = None,
        policy: AccessPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store or InMemoryBucketStore()
        self._policy = policy or load_access_policy()
        self._clock = clock

    def admit(self, client_id: str, endpoint: str) -> RateLimitDecision:
        limit = self._policy.limit_for(endpoint)
        decision = self._store.consume(f"{client_id}:{endpoint}", limit, self._clock())
        if not decision.allowed:
            logger.info(
                "Rate limit hit client=%s endpoint=%s retry_after=%ss",
                client_id, endpoint, decision.retry_after_seconds,
            )
        return decision


def client_id_from_headers(headers: Mapping[str, str]) -> str:
    """First X-Forwarded-For entry, or the shared 'unknown' identity.

    Clients without the header all share one bucket per endpoint.
    """
    forwarded = headers.get("x-forwarded-for") or ""
    first = forwarded.split(",")[0].strip()
    return first or UNKNOWN_CLIENT


# ── Module-level singleton ──────────────────────────────

_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide limiter (lazy-created)."""
    global _limiter
    if _limiter is None:
        _limiter = RateLimiter()
    return _limiter
