"""
Unit tests -- token-bucket rate limiter with a fake clock.
"""
import pytest

from medbrain_gateway.governance.policy_loader import EndpointLimit, parse_policy
from medbrain_gateway.governance.rate_limiter import (
    UNKNOWN_CLIENT,
    InMemoryBucketStore,
    RateLimiter,
    TokenBucket,
    client_id_from_headers,
    take_token,
)

CHAT = "/api/ai/chat"


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    policy = parse_policy({
        "rate_limits": {"default": 60, "endpoints": {CHAT: 10, "/api/export": 5}},
    })
    return RateLimiter(store=InMemoryBucketStore(), policy=policy, clock=clock)


# ── Bucket behaviour ─────────────────────────────────────

def test_admits_capacity_then_rejects(limiter):
    for _ in range(10):
        assert limiter.admit("1.2.3.4", CHAT).allowed

    decision = limiter.admit("1.2.3.4", CHAT)
    assert not decision.allowed
    assert decision.retry_after_seconds == 6


def test_admits_again_after_retry_after(limiter, clock):
    for _ in range(10):
        limiter.admit("1.2.3.4", CHAT)
    assert not limiter.admit("1.2.3.4", CHAT).allowed

    clock.advance(6.0)
    assert limiter.admit("1.2.3.4", CHAT).allowed
    assert not limiter.admit("1.2.3.4", CHAT).allowed


def test_allowed_decision_has_no_retry_hint(limiter):
    decision = limiter.admit("1.2.3.4", CHAT)
    assert decision.allowed
    assert decision.retry_after_seconds is None


def test_refill_capped_at_capacity(limiter, clock):
    limiter.admit("1.2.3.4", CHAT)
    clock.advance(3600)
    admitted = sum(limiter.admit("1.2.3.4", CHAT).allowed for _ in range(20))
    assert admitted == 10


def test_clients_have_separate_buckets(limiter):
    for _ in range(10):
        limiter.admit("1.1.1.1", CHAT)
    assert not limiter.admit("1.1.1.1", CHAT).allowed
    assert limiter.admit("2.2.2.2", CHAT).allowed


def test_endpoints_have_separate_buckets(limiter):
    for _ in range(10):
        limiter.admit("1.1.1.1", CHAT)
    assert not limiter.admit("1.1.1.1", CHAT).allowed
    assert limiter.admit("1.1.1.1", "/api/query").allowed


def test_unlisted_endpoint_uses_default(limiter):
    admitted = sum(limiter.admit("1.1.1.1", "/api/other").allowed for _ in range(61))
    assert admitted == 60


def test_export_limit(limiter):
    admitted = sum(limiter.admit("1.1.1.1", "/api/export").allowed for _ in range(6))
    assert admitted == 5


def test_clock_going_backwards_adds_no_tokens():
    limit = EndpointLimit.from_requests_per_minute(10)
    bucket = TokenBucket(tokens=0.0, last_refill=100.0)
    decision = take_token(bucket, limit, now=50.0)
    assert not decision.allowed
    assert bucket.tokens == 0.0


def test_store_creates_one_bucket_per_key(clock):
    store = InMemoryBucketStore()
    limiter = RateLimiter(store=store, policy=parse_policy({}), clock=clock)
    limiter.admit("a", CHAT)
    limiter.admit("a", CHAT)
    limiter.admit("b", CHAT)
    assert len(store) == 2


def test_packaged_policy_chat_limit(clock):
    limiter = RateLimiter(clock=clock)
    admitted = sum(limiter.admit("9.9.9.9", CHAT).allowed for _ in range(11))
    assert admitted == 10


# ── Client identity ──────────────────────────────────────

def test_client_id_first_forwarded_entry():
    headers = {"x-forwarded-for": " 203.0.113.7 , 10.0.0.1"}
    assert client_id_from_headers(headers) == "203.0.113.7"


def test_client_id_missing_header():
    assert client_id_from_headers({}) == UNKNOWN_CLIENT


def test_client_id_empty_header():
    assert client_id_from_headers({"x-forwarded-for": " "}) == UNKNOWN_CLIENT
