"""
LLM client abstraction -- provider-agnostic wrappers.

Supported providers:
  mock      -- echo back the message (for tests / offline dev)
  openai    -- OpenAI Chat Completions (gpt-4o default)
  anthropic -- Anthropic Messages (claude-sonnet-4-5 default)

Every provider takes the same arguments -- the system prompt, the new
user message and the prior conversation -- and returns raw text.
Sampling is deterministic (temperature 0) and each request is bounded by
``Settings.llm_timeout_seconds``.
"""
from __future__ import annotations

from typing import Callable, Sequence

from medbrain_gateway.copilot.models import ConversationTurn
from medbrain_gateway.core.config import get_settings
from medbrain_gateway.core.logging import get_logger

logger = get_logger(__name__)

ProviderFn = Callable[[str, str, Sequence[ConversationTurn]], str]


def _history_messages(history: Sequence[ConversationTurn]) -> list[dict[str, str]]:
    return [{"role": turn.role, "content": turn.content} for turn in history]


def _call_mock(system_prompt: str, message: str, history: Sequence[ConversationTurn]) -> str:
    logger.info("LLM mock mode -- returning echo")
    return f"[MOCK] {message[:200]}"


def _call_openai(system_prompt: str, message: str, history: Sequence[ConversationTurn]) -> str:
    """Call OpenAI Chat Completions API."""
    settings = get_settings()
    api_key = settings.openai_api_key
    if not api_key:
        raise RuntimeError(
            "openai_api_key is not set.  "
            "Set OPENAI_API_KEY in your .env file or environment."
        )

    try:
        import openai  # type: ignore[import-untyped]
    except ImportError as exc:
        raise RuntimeError(
            "The 'openai' package is not installed.  "
            "Run: pip install openai"
        ) from exc

    client = openai.OpenAI(api_key=api_key, timeout=settings.llm_timeout_seconds)
    response = client.chat.completions.create(
        model=settings.openai_model,
        messages=[
            {"role": "system", "content": system_prompt},
            *_history_messages(history),
            {"role": "user", "content": message},
        ],
        temperature=0.0,
        max_tokens=settings.llm_max_tokens,
    )
    text = response.choices[0].message.content or ""
    logger.info("OpenAI response (%d chars)", len(text))
    return text


def _call_anthropic(system_prompt: str, message: str, history: Sequence[ConversationTurn]) -> str:
    """Call Anthropic Messages API."""
    settings = get_settings()
    api_key = settings.anthropic_api_key
    if not api_key:
        raise RuntimeError(
            "anthropic_api_key is not set.  "
            "Set ANTHROPIC_API_KEY in your .env file or environment."
        )

    try:
        import anthropic  # type: ignore[import-untyped]
    except ImportError as exc:
        raise RuntimeError(
            "The 'anthropic' package is not installed.  "
            "Run: pip install anthropic"
        ) from exc

    client = anthropic.Anthropic(api_key=api_key, timeout=settings.llm_timeout_seconds)
    response = client.messages.create(
        model=settings.anthropic_model,
        max_tokens=settings.llm_max_tokens,
        system=system_prompt,
        temperature=0.0,
        messages=[
            *_history_messages(history),
            {"role": "user", "content": message},
        ],
    )
    text = "".join(
        block.text for block in response.content if getattr(block, "type", None) == "text"
    )
    logger.info("Anthropic response (%d chars)", len(text))
    return text


_PROVIDERS: dict[str, ProviderFn] = {
    "mock": _call_mock,
    "openai": _call_openai,
    "anthropic": _call_anthropic,
}


def get_provider(name: str) -> ProviderFn:
    """Look up a provider callable by name."""
    fn = _PROVIDERS.get(name.lower())
    if fn is None:
        raise NotImplementedError(
            f"LLM provider '{name}' is not supported.  "
            f"Choose from: {', '.join(_PROVIDERS)}"
        )
    return fn


def call_llm(
    system_prompt: str,
    message: str,
    history: Sequence[ConversationTurn] = (),
    provider: str | None = None,
) -> str:
    """Send the conversation to the configured (or overridden) provider.

    Parameters
    ----------
    system_prompt : str
        Grounding instructions (the schema context).
    message : str
        The new user message.
    history : sequence of ConversationTurn
        Prior turns, oldest first.
    provider : str, optional
        Override the primary provider from settings.  One of: mock, openai, anthropic.
    """
    if provider is None:
        provider = get_settings().llm_primary_provider

    fn = get_provider(provider)
    logger.info("Calling LLM provider=%s  message_len=%d  history=%d",
                provider, len(message), len(history))
    return fn(system_prompt, message, history)


def configured_providers() -> list[tuple[str, ProviderFn]]:
    """Primary then secondary provider, as named in settings (duplicates dropped)."""
    settings = get_settings()
    names: list[str] = []
    for name in (settings.llm_primary_provider, settings.llm_secondary_provider):
        if name and name.lower() not in names:
            names.append(name.lower())
    return [(name, get_provider(name)) for name in names]
