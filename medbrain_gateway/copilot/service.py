"""
Chat service -- orchestrates generate -> validate -> (retry) -> execute -> shape.

The retry loop is an explicit state machine:

    GENERATING -> VALIDATING
    VALIDATING -> SUCCEEDED               (query is valid)
    VALIDATING -> RETRYING_WITH_FEEDBACK  (invalid, attempts remain)
    VALIDATING -> EXHAUSTED_INVALID       (invalid, no attempts remain)
    RETRYING_WITH_FEEDBACK -> GENERATING  (prompt now names the rejection)

A generation without SQL is a conversational reply and ends the loop
immediately.  A query still invalid after the last attempt is returned
with the rejection reason instead of being executed.  Database errors are
not retried; they propagate to the caller.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Sequence

from medbrain_gateway.copilot.chart_generator import suggest_chart
from medbrain_gateway.copilot.generator import generate_sql
from medbrain_gateway.copilot.models import ConversationTurn, GeneratedQuery
from medbrain_gateway.copilot.postprocess import process_rows
from medbrain_gateway.governance.sql_validator import validate_sql, ValidationResult
from medbrain_gateway.db.executor import execute_readonly
from medbrain_gateway.core.config import get_settings
from medbrain_gateway.core.logging import get_logger

logger = get_logger(__name__)

QueryGenerator = Callable[[str, Sequence[ConversationTurn]], GeneratedQuery]
Validator = Callable[[str], ValidationResult]
Executor = Callable[[str, list[Any]], list[dict[str, Any]]]

NO_VALID_QUERY_MESSAGE = "Could not produce a valid query."


class NoValidQueryError(Exception):
    """The loop ended without any candidate query to return."""

    def __init__(self, message: str = NO_VALID_QUERY_MESSAGE):
        super().__init__(message)


class ChatState(str, Enum):
    GENERATING = "generating"
    VALIDATING = "validating"
    RETRYING_WITH_FEEDBACK = "retrying_with_feedback"
    SUCCEEDED = "succeeded"
    EXHAUSTED_INVALID = "exhausted_invalid"


@dataclass
class ChatResult:
    sql: str | None
    explanation: str
    results: list[dict[str, Any]] | None = None
    row_count: int | None = None
    suggested_chart: str | None = None
    attempts: int = 0
    states: list[ChatState] = field(default_factory=list)

    @property
    def executed(self) -> bool:
        return self.results is not None


def correction_prompt(message: str, error: str) -> str:
    """The user's message plus a notice describing the previous rejection."""
    return (
        f"{message}\n\n"
        f'NOTE: the previous query was rejected by the validator: "{error}". '
        "Generate a new query that does not use CTEs, DML, or tables outside the allow-list."
    )


def answer_question(
    message: str,
    history: Sequence[ConversationTurn] = (),
    *,
    generate: QueryGenerator | None = None,
    validate: Validator | None = None,
    execute: Executor | None = None,
    max_attempts: int | None = None,
    max_rows: int | None = None,
) -> ChatResult:
    """End-to-end: user message -> shaped chat result.

    Parameters
    ----------
    message : str
        Natural-language question.
    history : sequence of ConversationTurn
        Client-held dialogue, oldest first.
    generate, validate, execute : callable, optional
        Collaborators; default to the provider fallback chain, the SQL
        validator and the read-only executor.
    max_attempts : int, optional
        Generation attempts (default ``Settings.chat_max_attempts``).
    max_rows : int, optional
        Row cap for returned results (default ``Settings.chat_max_rows``).

    Raises
    ------
    AIUnavailableError
        From ``generate`` when no provider answers.
    NoValidQueryError
        If no attempt is allowed at all.
    """
    settings = get_settings()
    generate = generate or generate_sql
    validate = validate or validate_sql
    execute = execute or execute_readonly
    max_attempts = settings.chat_max_attempts if max_attempts is None else max_attempts
    max_rows = settings.chat_max_rows if max_rows is None else max_rows

    if max_attempts < 1:
        raise NoValidQueryError()

    states: list[ChatState] = []
    state = ChatState.GENERATING
    prompt = message
    attempts = 0
    candidate = GeneratedQuery()
    last_error = ""

    while True:
        states.append(state)

        if state is ChatState.GENERATING:
            attempts += 1
            candidate = generate(prompt, history)
            if not candidate.has_sql:
                return ChatResult(
                    sql=None,
                    explanation=candidate.explanation,
                    attempts=attempts,
                    states=states,
                )
            state = ChatState.VALIDATING

        elif state is ChatState.VALIDATING:
            validation = validate(candidate.sql)
            if validation.valid:
                state = ChatState.SUCCEEDED
            else:
                last_error = validation.error or "invalid query"
                logger.info("Attempt %d/%d rejected: %s", attempts, max_attempts, last_error)
                state = (
                    ChatState.RETRYING_WITH_FEEDBACK
                    if attempts < max_attempts
                    else ChatState.EXHAUSTED_INVALID
                )

        elif state is ChatState.RETRYING_WITH_FEEDBACK:
            prompt = correction_prompt(message, last_error)
            state = ChatState.GENERATING

        elif state is ChatState.EXHAUSTED_INVALID:
            return ChatResult(
                sql=candidate.sql,
                explanation=f"Query rejected by the validator: {last_error}",
                attempts=attempts,
                states=states,
            )

        elif state is ChatState.SUCCEEDED:
            rows = execute(candidate.sql, candidate.params)
            processed = process_rows(rows, max_rows)
            return ChatResult(
                sql=candidate.sql,
                explanation=candidate.explanation,
                results=processed.rows,
                row_count=processed.row_count_total,
                suggested_chart=suggest_chart(processed.rows),
                attempts=attempts,
                states=states,
            )
