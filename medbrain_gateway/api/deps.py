"""
FastAPI dependencies: collaborators the routers resolve per request.

Tests and deployments swap any of these through
``app.dependency_overrides``.
"""
from __future__ import annotations

from typing import Iterator

from fastapi import Depends, HTTPException, Request

from medbrain_gateway.copilot.generator import generate_sql
from medbrain_gateway.copilot.service import Executor, QueryGenerator
from medbrain_gateway.db.executor import execute_readonly
from medbrain_gateway.governance.rate_limiter import RateLimiter, client_id_from_headers, get_rate_limiter
from medbrain_gateway.integrations.n8n import N8NClient, WorkflowServiceNotConfigured, get_n8n_client

RATE_LIMIT_MESSAGE = "Rate limit exceeded"


def get_limiter() -> RateLimiter:
    return get_rate_limiter()


def get_generator() -> QueryGenerator:
    return generate_sql


def get_executor() -> Executor:
    return execute_readonly


def get_workflow_client() -> Iterator[N8NClient]:
    try:
        client = get_n8n_client()
    except WorkflowServiceNotConfigured:
        raise HTTPException(status_code=503, detail="n8n not configured")
    try:
        yield client
    finally:
        client.close()


def enforce_rate_limit(request: Request, limiter: RateLimiter, endpoint: str) -> None:
    """Raise 429 with ``Retry-After`` when the caller's bucket is empty."""
    decision = limiter.admit(client_id_from_headers(request.headers), endpoint)
    if not decision.allowed:
        raise HTTPException(
            status_code=429,
            detail=RATE_LIMIT_MESSAGE,
            headers={"Retry-After": str(decision.retry_after_seconds)},
        )


def rate_limited(endpoint: str):
    """Route dependency enforcing the rate limit for *endpoint*."""

    def _dependency(request: Request, limiter: RateLimiter = Depends(get_limiter)) -> None:
        enforce_rate_limit(request, limiter, endpoint)

    return _dependency
