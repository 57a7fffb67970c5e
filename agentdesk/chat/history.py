"""Best-effort durable history, keyed by (identity, agent)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from agentdesk.chat.api import BackendClient
from agentdesk.chat.models import Turn
from agentdesk.config import settings

if TYPE_CHECKING:
    from collections.abc import Iterable

    from agentdesk.chat.api import Identity

logger = logging.getLogger(__name__)

HISTORY_PATH = "/chat-history"


class HistoryAdapter:
    """Loads and saves a session's turns through the backend.

    History is an enhancement, not a correctness requirement: ``load``
    treats every error as "no history" and ``save`` never raises or retries.
    """

    def __init__(self, client: BackendClient | None = None, limit: int | None = None) -> None:
        self._client = client or BackendClient()
        self._limit = settings.history_limit if limit is None else limit

    async def load(self, identity: Identity, agent_id: str) -> list[Turn]:
        try:
            data = await self._client.request(
                "GET",
                HISTORY_PATH,
                identity,
                params={"agentId": agent_id, "limit": self._limit},
            )
            turns = [Turn.from_dict(item) for item in data.get("messages") or []]
        except Exception:
            logger.exception("Failed to load chat history (agent=%s)", agent_id)
            return []
        turns = [t for t in turns if not t.is_welcome]
        logger.info("Loaded %d history turn(s) for agent=%s", len(turns), agent_id)
        return turns

    async def save(self, identity: Identity, agent_id: str, turns: Iterable[Turn]) -> bool:
        payload = [t.to_dict() for t in turns if not t.is_welcome]
        try:
            data = await self._client.request(
                "POST",
                HISTORY_PATH,
                identity,
                json={"messages": payload, "agentId": agent_id},
            )
        except Exception:
            logger.exception("Failed to save chat history (agent=%s)", agent_id)
            return False
        return bool(data.get("success"))
