"""Conversation session with one agent persona for one identity."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from agentdesk.agents import get_agent, welcome_text
from agentdesk.chat.completion import CompletionAdapter, CompletionError
from agentdesk.chat.delivery import DeliveryTracker
from agentdesk.chat.history import HistoryAdapter
from agentdesk.chat.models import Role, assistant_turn, user_turn, welcome_turn
from agentdesk.chat.quota import QuotaCheckError, QuotaGate, UpgradeNudge
from agentdesk.chat.store import MessageStore
from agentdesk.chat.voice import VoiceAdapter, VoiceError, VoicePlayback
from agentdesk.config import settings

if TYPE_CHECKING:
    from collections.abc import Callable

    from agentdesk.chat.api import Identity
    from agentdesk.chat.models import Attachment, QuotaDecision, Turn

logger = logging.getLogger(__name__)

SEND_FAILED_NOTICE = "Failed to send message. Please try again."
QUOTA_FAILED_NOTICE = "Failed to verify conversation limit."
AUTH_REQUIRED_NOTICE = "Please sign in to chat with agents."


class SendStatus(StrEnum):
    SENT = "sent"
    BLOCKED = "blocked"  # quota exhausted: show the upgrade prompt
    FAILED = "failed"  # transient error notice, turn rolled back
    VOICE_FAILED = "voice_failed"
    BUSY = "busy"  # a send is already in flight
    IGNORED = "ignored"  # empty input
    AUTH_REQUIRED = "auth_required"


@dataclass(frozen=True)
class SendResult:
    """Outcome of one send attempt, for the UI to render."""

    status: SendStatus
    reply: Turn | None = None
    decision: QuotaDecision | None = None
    nudge: bool = False
    notice: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is SendStatus.SENT


class ChatSession:
    """The live conversation behind one chat widget.

    Per-turn flow: quota gate → optimistic append → delivery timers →
    completion with full history → reply append → history save.

    Args:
        identity: Signed-in user, or None for anonymous visitors.
        agent_id: Which persona to talk to.
        quota, history, completion, voice: Adapters (defaults talk to the
            configured backend).
        playback: Audio output for spoken replies.
        on_change: Called after every store mutation (UI re-render hook).
    """

    def __init__(
        self,
        identity: Identity | None,
        agent_id: str,
        *,
        quota: QuotaGate | None = None,
        history: HistoryAdapter | None = None,
        completion: CompletionAdapter | None = None,
        voice: VoiceAdapter | None = None,
        playback: VoicePlayback | None = None,
        tracker: DeliveryTracker | None = None,
        nudge: UpgradeNudge | None = None,
        on_change: Callable[[], None] | None = None,
        auto_speak: bool | None = None,
    ) -> None:
        self.identity = identity
        self.agent = get_agent(agent_id)
        self.store = MessageStore(on_change=on_change)
        self.tracker = tracker or DeliveryTracker(self.store)
        self.quota = quota or QuotaGate()
        self.history = history or HistoryAdapter()
        self.completion = completion or CompletionAdapter()
        self.voice = voice or VoiceAdapter()
        self.playback = playback or VoicePlayback()
        self.nudge = nudge or UpgradeNudge()
        self.auto_speak = settings.auto_speak_replies if auto_speak is None else auto_speak
        self.is_loading = False
        self.closed = False
        self._saved_ids: set[str] = set()

    @property
    def agent_id(self) -> str:
        return self.agent.id

    @property
    def turns(self) -> tuple[Turn, ...]:
        return self.store.turns

    # -- Lifecycle -------------------------------------------------------------

    async def start(self) -> None:
        """Seed the welcome turn and rehydrate prior history, if any."""
        self.store.reset(welcome_turn(welcome_text(self.agent)))
        if self.identity is None:
            return
        for turn in await self.history.load(self.identity, self.agent_id):
            self.store.append(turn)
            self._saved_ids.add(turn.id)

    def clear(self) -> None:
        """Drop in-memory turns (storage is untouched) and reseed the welcome turn."""
        for turn in self.store.conversation():
            self.tracker.forget(turn.id)
        self.store.reset(welcome_turn(welcome_text(self.agent)))

    async def close(self) -> None:
        """Discard the session: cancel timers and stop any playback."""
        self.closed = True
        self.tracker.close()
        self.playback.stop()

    # -- Sending ---------------------------------------------------------------

    async def send(self, text: str, attachments: list[Attachment] | None = None) -> SendResult:
        """Send one user message and wait for the agent's reply."""
        content = text.strip()
        if not content:
            return SendResult(SendStatus.IGNORED)
        if self.is_loading or self.closed:
            return SendResult(SendStatus.BUSY)
        if self.identity is None:
            return SendResult(SendStatus.AUTH_REQUIRED, notice=AUTH_REQUIRED_NOTICE)

        self.is_loading = True
        try:
            return await self._send(self.identity, content, attachments or [])
        finally:
            self.is_loading = False

    async def _send(
        self, identity: Identity, content: str, attachments: list[Attachment]
    ) -> SendResult:
        try:
            decision = await self.quota.check_and_reserve(identity)
        except QuotaCheckError:
            return SendResult(SendStatus.FAILED, notice=QUOTA_FAILED_NOTICE)
        if not decision.allowed:
            return SendResult(SendStatus.BLOCKED, decision=decision)
        self.nudge.seed(decision)

        pending = user_turn(content, attachment=attachments[0] if attachments else None)
        self.store.append(pending)
        self.tracker.track(pending.id)

        try:
            reply_text = await self.completion.complete(
                identity, self.agent_id, self.store.to_api_messages(), attachments
            )
        except CompletionError:
            logger.warning(
                "Send failed for agent=%s; rolling back turn %s", self.agent_id, pending.id
            )
            self._rollback(pending.id)
            return SendResult(SendStatus.FAILED, decision=decision, notice=SEND_FAILED_NOTICE)

        if self.closed:
            # Unmounted while waiting: the reply has nowhere to go.
            return SendResult(SendStatus.FAILED, decision=decision, notice=SEND_FAILED_NOTICE)

        reply = assistant_turn(reply_text)
        self.store.append(reply)
        self.tracker.mark_read(pending.id)

        nudge = self.nudge.record_send(decision.plan)
        await self._save_new_turns(identity)

        if self.auto_speak:
            await self.speak(reply)

        return SendResult(SendStatus.SENT, reply=reply, decision=decision, nudge=nudge)

    def _rollback(self, turn_id: str) -> None:
        self.tracker.forget(turn_id)
        self.store.remove(turn_id)

    async def _save_new_turns(self, identity: Identity) -> None:
        # Only turns storage has not seen; a failed save is retried with the next send.
        unsaved = [t for t in self.store.conversation() if t.id not in self._saved_ids]
        if await self.history.save(identity, self.agent_id, unsaved):
            self._saved_ids.update(t.id for t in unsaved)

    # -- Voice -----------------------------------------------------------------

    async def send_voice(self, audio: bytes, filename: str = "recording.webm") -> SendResult:
        """Transcribe a recorded utterance, then send it as a normal message."""
        if self.identity is None:
            return SendResult(SendStatus.AUTH_REQUIRED, notice=AUTH_REQUIRED_NOTICE)
        if self.is_loading or self.closed:
            return SendResult(SendStatus.BUSY)

        # Held across transcription so a typed message cannot slip in ahead.
        self.is_loading = True
        try:
            try:
                transcript = await self.voice.transcribe(self.identity, audio, filename)
            except VoiceError as exc:
                logger.warning("Voice input failed: %s", exc)
                return SendResult(SendStatus.VOICE_FAILED, notice=str(exc))
            logger.info(
                "Voice input transcribed (%s, %d chars)", transcript.language, len(transcript.text)
            )
            content = transcript.text.strip()
            if not content:
                return SendResult(SendStatus.IGNORED)
            if self.closed:
                return SendResult(SendStatus.BUSY)
            return await self._send(self.identity, content, [])
        finally:
            self.is_loading = False

    async def speak(self, turn: Turn) -> bool:
        """Synthesize an assistant turn and start playing it."""
        if self.identity is None or turn.role is not Role.ASSISTANT:
            return False
        if not self.playback.available:
            return False
        try:
            url = await self.voice.synthesize(self.identity, turn.content)
        except VoiceError:
            logger.exception("Could not synthesize reply %s", turn.id)
            return False
        return self.playback.speak(url)
