"""
SQL generation with provider fallback.

The providers are tried in order (primary, then secondary).  Each try is
recorded as a ``ProviderAttempt``; the first successful one wins.  Any
provider error -- timeout, auth failure, bad response -- moves on to the
next provider.  When the list is exhausted, ``AIUnavailableError`` is
raised and the chat endpoint answers 503.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from medbrain_gateway.copilot.llm_client import ProviderFn, configured_providers
from medbrain_gateway.copilot.models import ConversationTurn, GeneratedQuery
from medbrain_gateway.copilot.response_parser import parse_generation
from medbrain_gateway.copilot.schema_context import build_system_prompt
from medbrain_gateway.core.logging import get_logger

logger = get_logger(__name__)

AI_UNAVAILABLE_MESSAGE = "Assistant temporarily unavailable. Try again in a few seconds."


class AIUnavailableError(Exception):
    """No generation provider produced a response."""

    def __init__(self, message: str = AI_UNAVAILABLE_MESSAGE, attempts: list["ProviderAttempt"] | None = None):
        super().__init__(message)
        self.attempts = attempts or []


@dataclass
class ProviderAttempt:
    provider: str
    ok: bool
    result: GeneratedQuery | None = None
    error: str | None = None


def attempt_provider(
    name: str,
    fn: ProviderFn,
    system_prompt: str,
    message: str,
    history: Sequence[ConversationTurn],
) -> ProviderAttempt:
    """Call one provider and parse its answer; failures become a failed attempt."""
    try:
        text = fn(system_prompt, message, history)
    except Exception as exc:
        logger.warning("Provider %s failed: %s: %s", name, type(exc).__name__, exc)
        return ProviderAttempt(provider=name, ok=False, error=f"{type(exc).__name__}: {exc}")
    logger.info("Provider %s responded", name)
    return ProviderAttempt(provider=name, ok=True, result=parse_generation(text))


def generate_sql(
    message: str,
    history: Sequence[ConversationTurn] = (),
    providers: Sequence[tuple[str, ProviderFn]] | None = None,
) -> GeneratedQuery:
    """Ask the providers, in order, for a query answering *message*.

    Parameters
    ----------
    message : str
        The user's question (possibly with a correction notice appended).
    history : sequence of ConversationTurn
        Prior dialogue, passed unchanged to every provider.
    providers : sequence of (name, callable), optional
        Defaults to the primary and secondary providers from settings.

    Raises
    ------
    AIUnavailableError
        If every provider failed.
    """
    if providers is None:
        providers = configured_providers()

    system_prompt = build_system_prompt()
    attempts: list[ProviderAttempt] = []
    for name, fn in providers:
        attempt = attempt_provider(name, fn, system_prompt, message, history)
        attempts.append(attempt)
        if attempt.ok and attempt.result is not None:
            return attempt.result

    logger.error(
        "All generation providers failed: %s",
        "; ".join(f"{a.provider}={a.error}" for a in attempts),
    )
    raise AIUnavailableError(attempts=attempts)
