"""Client side of the completion endpoint."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from agentdesk.chat.api import ApiError, BackendClient

if TYPE_CHECKING:
    from collections.abc import Sequence

    from agentdesk.chat.api import Identity
    from agentdesk.chat.models import Attachment

logger = logging.getLogger(__name__)

COMPLETION_PATH = "/chat"


class CompletionError(Exception):
    """Any failure producing a reply: network, non-2xx, or malformed body."""


class CompletionAdapter:
    """Sends the conversation to the backend and returns the reply text.

    The backend picks the agent's instruction preamble from ``agent_id``;
    no preamble text ever leaves the client.
    """

    def __init__(self, client: BackendClient | None = None) -> None:
        self._client = client or BackendClient()

    async def complete(
        self,
        identity: Identity,
        agent_id: str,
        messages: list[dict[str, str]],
        attachments: Sequence[Attachment] = (),
    ) -> str:
        body: dict[str, Any] = {"messages": messages, "agentId": agent_id}
        if attachments:
            body["files"] = [a.to_dict() for a in attachments]

        try:
            data = await self._client.request("POST", COMPLETION_PATH, identity, json=body)
        except ApiError as exc:
            logger.warning("Completion failed (agent=%s, status=%s): %s", agent_id, exc.status, exc)
            raise CompletionError(str(exc)) from exc

        message = data.get("message")
        if not isinstance(message, str) or not message.strip():
            raise CompletionError("Completion response has no message")
        return message
