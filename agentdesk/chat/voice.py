"""Voice input/output path: speech-to-text before send, text-to-speech after reply."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import mimetypes
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from agentdesk.chat.api import ApiError, BackendClient

if TYPE_CHECKING:
    from agentdesk.chat.api import Identity

logger = logging.getLogger(__name__)

TRANSCRIBE_PATH = "/transcribe-voice"
TTS_PATH = "/text-to-speech"


class VoiceError(Exception):
    """Transcription or synthesis failed for one utterance."""


class VoiceUnavailableError(VoiceError):
    """The platform has no audio capability."""


@dataclass(frozen=True)
class Transcript:
    text: str
    language: str


class VoiceAdapter:
    """Request/response bridge to the backend speech endpoints."""

    def __init__(self, client: BackendClient | None = None) -> None:
        self._client = client or BackendClient()

    async def transcribe(self, identity: Identity, audio: bytes, filename: str) -> Transcript:
        """Turn a recorded utterance into text. Raises VoiceError on failure or silence."""
        if not audio:
            raise VoiceError("Recording is empty")
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        try:
            data = await self._client.request(
                "POST",
                TRANSCRIBE_PATH,
                identity,
                files={"file": (filename, audio, content_type)},
            )
        except ApiError as exc:
            raise VoiceError(f"Transcription failed: {exc}") from exc

        text = str(data.get("text") or "").strip()
        if not text:
            raise VoiceError("No speech detected")
        return Transcript(text=text, language=str(data.get("language") or ""))

    async def synthesize(
        self,
        identity: Identity,
        text: str,
        voice_id: str | None = None,
        language: str | None = None,
    ) -> str:
        """Turn reply text into a playable audio URL."""
        body: dict[str, str] = {"text": text}
        if voice_id:
            body["voiceId"] = voice_id
        if language:
            body["language"] = language
        try:
            data = await self._client.request("POST", TTS_PATH, identity, json=body)
        except ApiError as exc:
            raise VoiceError(f"Speech synthesis failed: {exc}") from exc

        url = data.get("voiceUrl")
        if not isinstance(url, str) or not url:
            raise VoiceError("Speech synthesis returned no audio URL")
        return url


# -- Platform playback capability ---------------------------------------------


@runtime_checkable
class AudioPlayer(Protocol):
    """Platform audio output. Implementations block until playback ends."""

    available: bool

    async def play(self, url: str) -> None: ...


class NullAudioPlayer:
    """Stand-in for platforms without audio output."""

    available = False

    async def play(self, url: str) -> None:
        raise VoiceUnavailableError("Audio playback is not supported on this platform")


class VoicePlayback:
    """Fire-and-forget playback with a ``speaking`` flag.

    The flag is set when playback starts and cleared when it ends or fails.
    Starting a new clip stops the one in progress.
    """

    def __init__(self, player: AudioPlayer | None = None) -> None:
        self._player = player or NullAudioPlayer()
        self._task: asyncio.Task[None] | None = None
        self.speaking = False

    @property
    def available(self) -> bool:
        return bool(getattr(self._player, "available", False))

    def speak(self, url: str) -> bool:
        """Start playing *url* in the background. Returns False if unavailable."""
        if not self.available:
            return False
        self.stop()
        self.speaking = True
        self._task = asyncio.create_task(self._run(url))
        return True

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.speaking = False

    async def wait(self) -> None:
        """Wait for the current clip (if any) to finish."""
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task

    async def _run(self, url: str) -> None:
        try:
            await self._player.play(url)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Audio playback failed")
        finally:
            # A superseded clip must not clear the flag of its replacement.
            if self._task is asyncio.current_task():
                self.speaking = False
