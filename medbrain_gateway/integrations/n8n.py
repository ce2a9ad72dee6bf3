"""
n8n workflow-status client.

The dashboard polls the n8n REST API for executions of the chatbot
workflow.  Responses are passed through as JSON; ``summarise_errors``
reduces an execution list to the failed runs.
"""
from __future__ import annotations

import datetime
from typing import Any

import httpx

from medbrain_gateway.core.config import get_settings
from medbrain_gateway.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_LIMIT = 250


class WorkflowServiceNotConfigured(RuntimeError):
    """N8N_API_URL / N8N_API_KEY are missing."""


class WorkflowServiceError(RuntimeError):
    """The n8n API could not be reached or answered with an error."""


class N8NClient:
    """Thin synchronous wrapper around the n8n executions API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        workflow_id: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        if not base_url or not api_key:
            raise WorkflowServiceNotConfigured("n8n is not configured")
        self.workflow_id = workflow_id
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"X-N8N-API-KEY": api_key},
            timeout=timeout,
            transport=transport,
        )

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            resp = self._client.get(path, params=params)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("n8n request %s failed: %s", path, exc)
            raise WorkflowServiceError(f"n8n API error: {exc}") from exc

    def list_executions(
        self,
        status: str | None = None,
        workflow_id: str | None = None,
        limit: int = DEFAULT_LIMIT,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "workflowId": workflow_id or self.workflow_id,
            "limit": limit,
        }
        if status:
            params["status"] = status
        return self._get("/executions", params=params)

    def get_execution(self, execution_id: str) -> dict[str, Any]:
        return self._get(f"/executions/{execution_id}", params={"includeData": "true"})

    def close(self) -> None:
        self._client.close()


def _parse_timestamp(value: str) -> datetime.datetime:
    return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))


def summarise_errors(executions: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """One entry per failed execution, with its duration in seconds.

    The failing node is only known from the execution detail, so
    ``nodeName`` is always None here.
    """
    errors: list[dict[str, Any]] = []
    for execution in executions:
        if execution.get("status") != "error":
            continue
        started = execution.get("startedAt")
        stopped = execution.get("stoppedAt")
        duration = None
        if started and stopped:
            duration = (_parse_timestamp(stopped) - _parse_timestamp(started)).total_seconds()
        errors.append({
            "executionId": execution.get("id"),
            "startedAt": started,
            "stoppedAt": stopped,
            "nodeName": None,
            "errorMessage": "Error in execution",
            "duration": duration,
        })
    return errors


def get_n8n_client() -> N8NClient:
    """Build a client from settings.

    Raises
    ------
    WorkflowServiceNotConfigured
        If the n8n URL or API key is missing.
    """
    settings = get_settings()
    return N8NClient(
        base_url=settings.n8n_api_url,
        api_key=settings.n8n_api_key,
        workflow_id=settings.n8n_workflow_id,
        timeout=settings.n8n_timeout_seconds,
    )
