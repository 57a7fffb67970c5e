"""Completion entry point: dispatches to Gemini or Anthropic."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import anthropic

from agentdesk.config import settings
from agentdesk.llm import gemini
from agentdesk.llm.gemini import LLMError
from agentdesk.llm.models import ModelManager
from agentdesk.llm.prompt import build_prompt

logger = logging.getLogger(__name__)

_client: anthropic.AsyncAnthropic | None = None


@dataclass(frozen=True)
class Completion:
    text: str
    model: str


def _get_client() -> anthropic.AsyncAnthropic:
    """Lazily initialize the Anthropic client."""
    global _client  # noqa: PLW0603
    if _client is None:
        _client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
    return _client


async def _complete_anthropic(prompt: list[dict[str, str]], model: str) -> str:
    """Single-shot Claude call with the system preamble plus history, no tools."""
    if not settings.anthropic_api_key:
        raise LLMError("Anthropic API key not configured")
    system = "\n\n".join(m["content"] for m in prompt if m["role"] == "system")
    messages = [m for m in prompt if m["role"] != "system"]
    kwargs: dict[str, Any] = {"model": model, "max_tokens": 2048, "messages": messages}
    if system:
        kwargs["system"] = system
    try:
        response = await _get_client().messages.create(**kwargs)
    except anthropic.APIError as exc:
        logger.exception("Anthropic request failed")
        raise LLMError(f"Anthropic API error: {exc}") from exc

    text = "".join(block.text for block in response.content if block.type == "text")
    if not text.strip():
        raise LLMError("Anthropic returned an empty reply")
    return text


async def complete_chat(
    agent_id: str,
    messages: Any,
    plan: str,
    files: list[dict[str, Any]] | None = None,
) -> Completion:
    """Produce the next assistant reply for an agent conversation.

    Args:
        agent_id: Persona whose preamble leads the prompt.
        messages: ``[{role, content}]`` history ending with the new user turn.
        plan: Caller's subscription plan; selects the model tier.
        files: Optional uploaded-file metadata noted on the last message.

    Raises:
        UnknownAgentError, PromptError: bad input.
        LLMError: the provider failed or replied with nothing usable.
    """
    prompt = build_prompt(agent_id, messages, files)
    manager = ModelManager.get()
    model = manager.model_for(plan)

    logger.info(
        "Completion: agent=%s, provider=%s, model=%s, turns=%d",
        agent_id,
        manager.provider,
        model,
        len(prompt) - 1,
    )

    if manager.provider == "anthropic":
        text = await _complete_anthropic(prompt, model)
    else:
        text = await gemini.generate(prompt, model)
    return Completion(text=text, model=model)
