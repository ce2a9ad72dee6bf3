"""GET /api/n8n/... -- chatbot workflow executions from n8n."""
from __future__ import annotations

import re

from fastapi import APIRouter, Depends, HTTPException, Query

from medbrain_gateway.api.deps import get_workflow_client, rate_limited
from medbrain_gateway.integrations.n8n import (
    DEFAULT_LIMIT,
    N8NClient,
    WorkflowServiceError,
    summarise_errors,
)

router = APIRouter(prefix="/n8n", dependencies=[Depends(rate_limited("/api/n8n"))])

_EXECUTION_ID_RE = re.compile(r"[\w-]+")


@router.get("")
def list_executions(
    status: str | None = Query(None),
    workflow_id: str | None = Query(None, alias="workflowId"),
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    client: N8NClient = Depends(get_workflow_client),
):
    try:
        return client.list_executions(status=status, workflow_id=workflow_id, limit=limit)
    except WorkflowServiceError:
        raise HTTPException(status_code=502, detail="Could not reach the n8n API")


@router.get("/errors")
def list_errors(
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    client: N8NClient = Depends(get_workflow_client),
):
    """Failed executions, one summary entry each."""
    try:
        payload = client.list_executions(status="error", limit=limit)
    except WorkflowServiceError:
        raise HTTPException(status_code=502, detail="Could not reach the n8n API")
    return summarise_errors(payload.get("data", []))


@router.get("/{execution_id}")
def get_execution(execution_id: str, client: N8NClient = Depends(get_workflow_client)):
    if not _EXECUTION_ID_RE.fullmatch(execution_id):
        raise HTTPException(status_code=400, detail="Invalid execution id")
    try:
        return client.get_execution(execution_id)
    except WorkflowServiceError:
        raise HTTPException(status_code=502, detail="Could not fetch execution details")
