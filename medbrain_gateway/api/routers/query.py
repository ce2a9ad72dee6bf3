"""POST /api/query -- run a caller-supplied SELECT through the validator."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from medbrain_gateway.api.deps import get_executor, rate_limited
from medbrain_gateway.copilot.postprocess import process_rows
from medbrain_gateway.copilot.service import Executor
from medbrain_gateway.core.config import get_settings
from medbrain_gateway.core.logging import get_logger
from medbrain_gateway.governance.sql_validator import validate_sql

logger = get_logger(__name__)
router = APIRouter()

SQL_REQUIRED_MESSAGE = "SQL is required"


class QueryRequest(BaseModel):
    sql: str = Field("", description="A single SELECT statement, $n placeholders allowed")
    params: list[Any] = Field(default_factory=list, description="Values for $1, $2, ...")


def run_validated(req: QueryRequest, execute: Executor) -> list[dict[str, Any]]:
    """Validate and execute *req*; shared by the query and export routes."""
    if not req.sql:
        raise HTTPException(status_code=400, detail=SQL_REQUIRED_MESSAGE)

    validation = validate_sql(req.sql)
    if not validation.valid:
        raise HTTPException(status_code=400, detail=validation.error)

    try:
        return execute(req.sql, req.params)
    except Exception as exc:
        logger.exception("Query execution failed")
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/query", dependencies=[Depends(rate_limited("/api/query"))])
def query_endpoint(req: QueryRequest, execute: Executor = Depends(get_executor)):
    rows = run_validated(req, execute)
    processed = process_rows(rows, get_settings().query_max_rows)
    return {
        "data": processed.rows,
        "rowCount": processed.row_count_total,
        "truncated": processed.truncated,
    }
