"""In-memory ordered turn list for one agent session."""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from agentdesk.chat.models import Turn

logger = logging.getLogger(__name__)


class MessageStore:
    """Holds the Turn sequence of the active session.

    Pure local state: every method succeeds. ``on_change`` (if given) is
    called after each mutation so a UI can re-render.
    """

    def __init__(self, on_change: Callable[[], None] | None = None) -> None:
        self._turns: list[Turn] = []
        self._on_change = on_change

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def turns(self) -> tuple[Turn, ...]:
        """Snapshot of all turns, welcome turn included."""
        return tuple(self._turns)

    def get(self, turn_id: str) -> Turn | None:
        for turn in self._turns:
            if turn.id == turn_id:
                return turn
        return None

    # -- Mutations -------------------------------------------------------------

    def append(self, turn: Turn) -> None:
        """Add a turn to the end. No reordering, no dedup."""
        self._turns.append(turn)
        self._changed()

    def replace(self, predicate: Callable[[Turn], bool], patch: dict[str, Any]) -> int:
        """Patch fields of every matching turn in place. Returns the match count."""
        count = 0
        for idx, turn in enumerate(self._turns):
            if predicate(turn):
                self._turns[idx] = dataclasses.replace(turn, **patch)
                count += 1
        if count:
            self._changed()
        return count

    def remove(self, turn_id: str) -> bool:
        """Drop a turn by ID. Returns True if one was removed."""
        before = len(self._turns)
        self._turns = [t for t in self._turns if t.id != turn_id]
        removed = len(self._turns) != before
        if removed:
            self._changed()
        return removed

    def reset(self, welcome: Turn) -> None:
        """Clear everything and seed a single welcome turn."""
        self._turns = [welcome]
        self._changed()

    # -- Views -----------------------------------------------------------------

    def conversation(self) -> list[Turn]:
        """All turns except the synthetic welcome turn."""
        return [t for t in self._turns if not t.is_welcome]

    def to_api_messages(self) -> list[dict[str, str]]:
        """Format the conversation for the completion endpoint."""
        return [t.to_api_message() for t in self.conversation()]

    def _changed(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change()
        except Exception:
            logger.exception("Message store change listener failed")
