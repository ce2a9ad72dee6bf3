"""POST /api/ai/chat -- natural-language question to validated, executed SQL."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from medbrain_gateway.api.deps import enforce_rate_limit, get_executor, get_generator, get_limiter
from medbrain_gateway.copilot.generator import AIUnavailableError
from medbrain_gateway.copilot.models import ConversationTurn
from medbrain_gateway.copilot.service import (
    ChatResult,
    Executor,
    NoValidQueryError,
    QueryGenerator,
    answer_question,
)
from medbrain_gateway.core.logging import get_logger
from medbrain_gateway.governance.rate_limiter import RateLimiter

logger = get_logger(__name__)
router = APIRouter()

ENDPOINT = "/api/ai/chat"


class ChatRequest(BaseModel):
    message: str = Field("", description="Natural-language question")
    history: list[ConversationTurn] = Field(default_factory=list, description="Prior turns, oldest first")


def _to_response(result: ChatResult) -> dict[str, Any]:
    body: dict[str, Any] = {
        "sql": result.sql,
        "explanation": result.explanation,
        "results": result.results,
        "suggestedChart": result.suggested_chart,
    }
    if result.row_count is not None:
        body["rowCount"] = result.row_count
    return body


@router.post("/ai/chat")
def chat_endpoint(
    req: ChatRequest,
    request: Request,
    limiter: RateLimiter = Depends(get_limiter),
    generate: QueryGenerator = Depends(get_generator),
    execute: Executor = Depends(get_executor),
):
    """Generate SQL for the question, validate it (with one corrective retry), run it."""
    if not req.message.strip():
        raise HTTPException(status_code=400, detail="Message is required")

    enforce_rate_limit(request, limiter, ENDPOINT)

    try:
        result = answer_question(req.message, req.history, generate=generate, execute=execute)
    except AIUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except NoValidQueryError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except Exception as exc:
        logger.exception("Chat request failed")
        raise HTTPException(status_code=500, detail=str(exc))

    return _to_response(result)
