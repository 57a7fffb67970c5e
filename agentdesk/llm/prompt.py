"""Prompt assembly: agent preamble plus conversation history."""

from __future__ import annotations

import logging
from typing import Any

from agentdesk.agents import get_agent

logger = logging.getLogger(__name__)

ROLES = ("user", "assistant")


class PromptError(ValueError):
    """The submitted conversation cannot be turned into a prompt."""


def _validate_messages(messages: Any) -> list[dict[str, str]]:
    if not isinstance(messages, list) or not messages:
        raise PromptError("messages must be a non-empty list")
    cleaned: list[dict[str, str]] = []
    for msg in messages:
        if not isinstance(msg, dict):
            raise PromptError("each message must be an object")
        role = msg.get("role")
        content = msg.get("content")
        if role not in ROLES or not isinstance(content, str):
            raise PromptError("each message needs a user/assistant role and text content")
        cleaned.append({"role": role, "content": content})
    if cleaned[-1]["role"] != "user":
        raise PromptError("the last message must come from the user")
    return cleaned


def _format_files(files: list[dict[str, Any]]) -> str:
    lines = [f"- {f.get('name', 'file')} ({f.get('type', 'unknown')})" for f in files]
    return "Files uploaded:\n" + "\n".join(lines)


def build_prompt(
    agent_id: str,
    messages: Any,
    files: list[dict[str, Any]] | None = None,
) -> list[dict[str, str]]:
    """Build the provider-neutral prompt for one completion.

    The first entry is the agent's instruction preamble with role
    ``"system"``; the rest is the history, oldest first, ending with the
    user's new message. Uploaded file names are noted on that last message.

    Raises:
        UnknownAgentError: if *agent_id* is not a known persona.
        PromptError: if *messages* is malformed.
    """
    profile = get_agent(agent_id)
    history = _validate_messages(messages)

    if files:
        last = history[-1]
        history[-1] = {"role": "user", "content": f"{last['content']}\n\n{_format_files(files)}"}

    return [{"role": "system", "content": profile.preamble}, *history]
