"""Gemini ``generateContent`` REST client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from agentdesk.config import settings

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

GENERATION_CONFIG = {
    "temperature": 0.7,
    "topK": 40,
    "topP": 0.95,
    "maxOutputTokens": 2048,
}

SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_MEDIUM_AND_ABOVE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]


class LLMError(Exception):
    """The hosted model could not produce a reply."""


def to_gemini_request(prompt: list[dict[str, str]]) -> dict[str, Any]:
    """Translate a provider-neutral prompt into a Gemini request body."""
    system = [m["content"] for m in prompt if m["role"] == "system"]
    contents = [
        {
            "role": "model" if m["role"] == "assistant" else "user",
            "parts": [{"text": m["content"]}],
        }
        for m in prompt
        if m["role"] != "system"
    ]
    body: dict[str, Any] = {
        "contents": contents,
        "generationConfig": GENERATION_CONFIG,
        "safetySettings": SAFETY_SETTINGS,
    }
    if system:
        body["systemInstruction"] = {"parts": [{"text": "\n\n".join(system)}]}
    return body


def extract_text(data: Any) -> str:
    """Pull the reply text out of a Gemini response. Raises LLMError if absent."""
    try:
        parts = data["candidates"][0]["content"]["parts"]
        text = "".join(p.get("text", "") for p in parts)
    except (KeyError, IndexError, TypeError) as exc:
        raise LLMError("Invalid response from Gemini API") from exc
    if not text.strip():
        raise LLMError("Gemini returned an empty reply")
    return text


async def generate(prompt: list[dict[str, str]], model: str) -> str:
    """Run one completion against Gemini and return the reply text."""
    if not settings.gemini_api_key:
        raise LLMError("Gemini API key not configured")

    url = GEMINI_API_URL.format(model=model)
    headers = {"x-goog-api-key": settings.gemini_api_key}
    try:
        async with httpx.AsyncClient(timeout=settings.request_timeout) as client:
            resp = await client.post(url, headers=headers, json=to_gemini_request(prompt))
    except httpx.HTTPError as exc:
        logger.exception("Gemini request failed")
        raise LLMError(f"Gemini request failed: {exc}") from exc

    if resp.status_code != 200:
        raise LLMError(f"Gemini API error: {resp.status_code} - {resp.text[:300]}")

    try:
        data = resp.json()
    except ValueError as exc:
        raise LLMError("Gemini returned invalid JSON") from exc
    return extract_text(data)
