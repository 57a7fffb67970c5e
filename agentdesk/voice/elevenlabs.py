"""ElevenLabs speech-to-text and text-to-speech client."""

from __future__ import annotations

import logging
import re

import httpx

from agentdesk.chat.voice import Transcript
from agentdesk.config import settings

logger = logging.getLogger(__name__)

ELEVENLABS_API_URL = "https://api.elevenlabs.io/v1"
STT_MODEL = "scribe_v1"
TTS_MODEL = "eleven_multilingual_v2"
VOICE_SETTINGS = {"stability": 0.75, "similarity_boost": 0.75}
# Voice ids are interpolated into the request path.
VOICE_ID_RE = re.compile(r"[A-Za-z0-9]+")


class SpeechProviderError(Exception):
    """ElevenLabs rejected the request or could not be reached."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


def _headers() -> dict[str, str]:
    if not settings.elevenlabs_api_key:
        raise SpeechProviderError("ElevenLabs API key not configured")
    return {"xi-api-key": settings.elevenlabs_api_key}


def is_valid_voice_id(voice_id: str) -> bool:
    return bool(VOICE_ID_RE.fullmatch(voice_id))


def _detail(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200]
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        return str(detail.get("message") or detail)
    return str(detail or body)[:200]


async def transcribe(audio: bytes, filename: str, content_type: str) -> Transcript:
    """Send one full utterance for transcription.

    Returns the transcript even when the text is empty; callers decide
    whether silence is an error.
    """
    headers = _headers()
    try:
        async with httpx.AsyncClient(timeout=settings.request_timeout) as client:
            resp = await client.post(
                f"{ELEVENLABS_API_URL}/speech-to-text",
                headers=headers,
                data={"model_id": STT_MODEL},
                files={"file": (filename, audio, content_type)},
            )
    except httpx.HTTPError as exc:
        logger.exception("ElevenLabs transcription request failed")
        raise SpeechProviderError(f"Transcription request failed: {exc}") from exc

    if resp.status_code != 200:
        raise SpeechProviderError(
            f"Transcription failed: {_detail(resp)}", status=resp.status_code
        )
    try:
        data = resp.json()
    except ValueError as exc:
        raise SpeechProviderError("Transcription returned an unreadable response") from exc
    if not isinstance(data, dict):
        raise SpeechProviderError("Transcription returned an unexpected response")
    return Transcript(
        text=str(data.get("text") or "").strip(),
        language=str(data.get("language_code") or data.get("language") or ""),
    )


async def synthesize(text: str, voice_id: str | None = None) -> bytes:
    """Render *text* to MP3 audio with the given (or default) voice.

    Raises ValueError for a voice id that is not plain alphanumeric.
    """
    headers = _headers()
    voice = voice_id or settings.default_voice_id
    if not is_valid_voice_id(voice):
        raise ValueError(f"invalid voice id: {voice!r}")
    try:
        async with httpx.AsyncClient(timeout=settings.request_timeout) as client:
            resp = await client.post(
                f"{ELEVENLABS_API_URL}/text-to-speech/{voice}",
                headers={**headers, "Accept": "audio/mpeg"},
                json={"text": text, "model_id": TTS_MODEL, "voice_settings": VOICE_SETTINGS},
            )
    except httpx.HTTPError as exc:
        logger.exception("ElevenLabs synthesis request failed")
        raise SpeechProviderError(f"Synthesis request failed: {exc}") from exc

    if resp.status_code != 200:
        raise SpeechProviderError(
            f"ElevenLabs API error: {resp.status_code} - {_detail(resp)}",
            status=resp.status_code,
        )
    return resp.content
