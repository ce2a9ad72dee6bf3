"""POST /api/export -- validated query results as a CSV download."""
from __future__ import annotations

import time

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from medbrain_gateway.api.deps import get_executor, rate_limited
from medbrain_gateway.api.routers.query import QueryRequest, run_validated
from medbrain_gateway.copilot.postprocess import RowLimitExceeded, process_rows, rows_to_csv
from medbrain_gateway.copilot.service import Executor
from medbrain_gateway.core.config import get_settings

router = APIRouter()


@router.post("/export", dependencies=[Depends(rate_limited("/api/export"))])
def export_endpoint(req: QueryRequest, execute: Executor = Depends(get_executor)):
    """Whole result or nothing: over the export cap answers 400."""
    rows = run_validated(req, execute)
    try:
        processed = process_rows(rows, get_settings().export_max_rows, reject_overflow=True)
    except RowLimitExceeded as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    filename = f"export-{int(time.time() * 1000)}.csv"
    return StreamingResponse(
        iter([rows_to_csv(processed.rows)]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
