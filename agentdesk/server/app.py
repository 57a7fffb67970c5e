"""Backend HTTP service for the chat widget.

Serves completions, quota checks, history persistence, speech endpoints, file
uploads and the admin dashboard from one aiohttp application. Uses aiohttp's
AppRunner/TCPSite for non-blocking start/stop.
"""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from agentdesk.agents import UnknownAgentError
from agentdesk.chat.models import Turn
from agentdesk.config import settings
from agentdesk.llm.client import complete_chat
from agentdesk.llm.gemini import LLMError
from agentdesk.llm.prompt import PromptError
from agentdesk.server.accounts import Account, AccountStore
from agentdesk.server.auth import ACCOUNT_KEY, require_account, require_admin
from agentdesk.server.history_store import ChatHistoryStore
from agentdesk.server.media import MAX_FILE_SIZE, MEDIA_ROUTE, MediaStore
from agentdesk.voice import elevenlabs
from agentdesk.voice.elevenlabs import SpeechProviderError

logger = logging.getLogger(__name__)

HISTORY_KEY = web.AppKey("history_store", ChatHistoryStore)
MEDIA_KEY = web.AppKey("media_store", MediaStore)

STATS_DAYS = 30


def _error(message: str, status: int) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _json_body(request: web.Request) -> dict[str, Any] | None:
    try:
        payload = await request.json()
    except Exception:
        logger.warning("Bad request: invalid JSON (%s %s)", request.method, request.path)
        return None
    return payload if isinstance(payload, dict) else None


@web.middleware
async def _cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Answer preflight requests and stamp CORS headers on every response."""
    cors = settings.get_cors_headers()
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=cors)

    try:
        response = await handler(request)
    except web.HTTPException as exc:
        response = _error(exc.reason, exc.status)
    except Exception:
        logger.exception("Unhandled error: %s %s", request.method, request.path)
        response = _error("Internal server error", 500)

    response.headers.update(cors)
    return response


# -- Routes ----------------------------------------------------------------------


async def _health(request: web.Request) -> web.Response:
    """GET /health: basic liveness check."""
    return web.json_response({"status": "ok"})


async def _chat(request: web.Request, account: Account) -> web.Response:
    """POST /chat: produce the agent's next reply."""
    payload = await _json_body(request)
    if payload is None:
        return _error("invalid JSON", 400)

    agent_id = payload.get("agentId")
    if not isinstance(agent_id, str) or not agent_id:
        return _error("agentId is required", 400)
    files = payload.get("files")
    if files is not None and not isinstance(files, list):
        return _error("files must be a list", 400)

    try:
        completion = await complete_chat(agent_id, payload.get("messages"), account.plan, files)
    except UnknownAgentError as exc:
        return _error(str(exc), 400)
    except PromptError as exc:
        return _error(str(exc), 400)
    except LLMError as exc:
        logger.warning("Completion failed for %s/%s: %s", account.user_id, agent_id, exc)
        return _error("The assistant could not reply. Please try again.", 502)

    return web.json_response({"message": completion.text, "model": completion.model})


async def _check_limit(request: web.Request, account: Account) -> web.Response:
    """POST /check-conversation-limit: reserve one conversation turn."""
    store = request.app[ACCOUNT_KEY]
    try:
        decision = await store.check_and_increment(account.user_id)
    except KeyError:
        return _error("Authentication failed", 401)

    if not decision.allowed:
        logger.info(
            "Conversation limit reached for %s (%d used)",
            account.user_id,
            decision.conversations_used,
        )
    return web.json_response(decision.to_dict())


async def _get_history(request: web.Request, account: Account) -> web.Response:
    """GET /chat-history?agentId=&limit=: stored turns, oldest first."""
    agent_id = request.query.get("agentId", "")
    if not agent_id:
        return _error("agentId is required", 400)
    try:
        limit = int(request.query.get("limit", settings.history_limit))
    except ValueError:
        return _error("limit must be an integer", 400)
    if limit < 1:
        return _error("limit must be positive", 400)

    turns = await request.app[HISTORY_KEY].load(account.user_id, agent_id, limit)
    return web.json_response({"messages": [turn.to_dict() for turn in turns]})


async def _save_history(request: web.Request, account: Account) -> web.Response:
    """POST /chat-history: add or update turns of the conversation with this agent."""
    payload = await _json_body(request)
    if payload is None:
        return _error("invalid JSON", 400)

    agent_id = payload.get("agentId")
    messages = payload.get("messages")
    if not isinstance(agent_id, str) or not agent_id:
        return _error("agentId is required", 400)
    if not isinstance(messages, list):
        return _error("messages must be a list", 400)

    try:
        turns = [Turn.from_dict(m) for m in messages]
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        return _error(f"invalid message: {exc}", 400)

    saved = await request.app[HISTORY_KEY].save(account.user_id, agent_id, turns)
    return web.json_response({"success": True, "saved": saved})


async def _transcribe(request: web.Request, account: Account) -> web.Response:
    """POST /transcribe-voice: multipart ``file`` to text."""
    form = await request.post()
    field = form.get("file")
    if not isinstance(field, web.FileField):
        return _error("No audio file provided", 400)

    audio = field.file.read()
    if not audio:
        return _error("No audio file provided", 400)

    content_type = field.content_type or "application/octet-stream"
    try:
        transcript = await elevenlabs.transcribe(audio, field.filename, content_type)
    except SpeechProviderError as exc:
        logger.warning("Transcription failed for %s: %s", account.user_id, exc)
        return _error(str(exc), 502)

    if not transcript.text:
        return _error("No speech detected", 422)

    logger.info("Transcribed %d bytes for %s", len(audio), account.user_id)
    return web.json_response({"text": transcript.text, "language": transcript.language})


async def _text_to_speech(request: web.Request, account: Account) -> web.Response:
    """POST /text-to-speech: synthesize, store, and return a playable URL."""
    payload = await _json_body(request)
    if payload is None:
        return _error("invalid JSON", 400)

    text = payload.get("text")
    if not isinstance(text, str) or not text.strip():
        return _error("Text is required", 400)
    voice_id = payload.get("voiceId") or None
    if voice_id is not None and (
        not isinstance(voice_id, str) or not elevenlabs.is_valid_voice_id(voice_id)
    ):
        return _error("voiceId must be alphanumeric", 400)
    language = payload.get("language") or "en"

    try:
        audio = await elevenlabs.synthesize(text, voice_id)
    except SpeechProviderError as exc:
        logger.warning("Synthesis failed for %s: %s", account.user_id, exc)
        return _error(str(exc), 502)

    media = request.app[MEDIA_KEY]
    try:
        name = media.save_audio(audio)
    except ValueError as exc:
        return _error(str(exc), 502)

    return web.json_response({"voiceUrl": media.public_url(name), "language": language})


async def _file_upload(request: web.Request, account: Account) -> web.Response:
    """POST /file-upload: store a multipart ``file`` for the caller and return its URL."""
    form = await request.post()
    field = form.get("file")
    if not isinstance(field, web.FileField):
        return _error("No file provided", 400)

    data = field.file.read()
    media = request.app[MEDIA_KEY]
    try:
        stored = media.save_upload(account.user_id, data, field.filename)
    except ValueError as exc:
        return _error(str(exc), 400)

    return web.json_response(
        {
            "id": stored.id,
            "filename": field.filename,
            "url": media.public_url(stored.path),
            "type": field.content_type or "application/octet-stream",
            "size": len(data),
        }
    )


# -- Admin -------------------------------------------------------------------------


async def _admin_users(request: web.Request, account: Account) -> web.Response:
    """GET /admin/users: every account with its plan and counter."""
    accounts = await request.app[ACCOUNT_KEY].list_accounts()
    return web.json_response({"users": [a.to_dict() for a in accounts]})


async def _admin_chat_stats(request: web.Request, account: Account) -> web.Response:
    """GET /admin/chat-stats: stored messages per day over the last 30 days."""
    counts = await request.app[HISTORY_KEY].daily_counts(days=STATS_DAYS)
    return web.json_response(
        {
            "days": STATS_DAYS,
            "total": sum(counts.values()),
            "stats": [{"date": day, "count": count} for day, count in counts.items()],
        }
    )


async def _admin_reset(request: web.Request, account: Account) -> web.Response:
    """POST /admin/reset-conversations: zero one user's counter."""
    payload = await _json_body(request)
    if payload is None:
        return _error("invalid JSON", 400)
    user_id = payload.get("userId")
    if not isinstance(user_id, str) or not user_id:
        return _error("userId is required", 400)

    if not await request.app[ACCOUNT_KEY].reset_conversations(user_id):
        return _error("unknown user", 404)

    logger.info("Admin %s reset conversations for %s", account.user_id, user_id)
    return web.json_response({"success": True})


def _create_web_app(
    accounts: AccountStore | None = None,
    history: ChatHistoryStore | None = None,
    media: MediaStore | None = None,
) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application(middlewares=[_cors_middleware], client_max_size=MAX_FILE_SIZE)
    app[ACCOUNT_KEY] = accounts or AccountStore.get()
    app[HISTORY_KEY] = history or ChatHistoryStore.get()
    app[MEDIA_KEY] = media or MediaStore.get()

    app.router.add_get("/health", _health)
    app.router.add_post("/chat", require_account(_chat))
    app.router.add_post("/check-conversation-limit", require_account(_check_limit))
    app.router.add_get("/chat-history", require_account(_get_history))
    app.router.add_post("/chat-history", require_account(_save_history))
    app.router.add_post("/transcribe-voice", require_account(_transcribe))
    app.router.add_post("/text-to-speech", require_account(_text_to_speech))
    app.router.add_post("/file-upload", require_account(_file_upload))

    app.router.add_get("/admin/users", require_admin(_admin_users))
    app.router.add_get("/admin/chat-stats", require_admin(_admin_chat_stats))
    app.router.add_post("/admin/reset-conversations", require_admin(_admin_reset))

    app.router.add_static(MEDIA_ROUTE, app[MEDIA_KEY].root)
    return app


class ChatServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(self, host: str | None = None, port: int | None = None) -> None:
        self.host = host or settings.host
        self.port = settings.port if port is None else port
        self._runner: web.AppRunner | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        """Start serving the backend routes."""
        app = _create_web_app()
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Chat backend listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Chat backend stopped")
