"""Delivery status progression for freshly sent user turns."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from agentdesk.chat.models import DeliveryState, Role
from agentdesk.config import settings

if TYPE_CHECKING:
    from collections.abc import Callable

    from agentdesk.chat.store import MessageStore

logger = logging.getLogger(__name__)


class DeliveryTracker:
    """Advances user turns sending → sent → delivered → read.

    The first two steps are timer-driven (``call_later``); ``read`` is set
    immediately when the paired assistant reply lands. States only ever move
    forward, one step at a time. After ``close()`` every pending timer is
    cancelled and late callbacks do nothing.

    Args:
        store: The session's MessageStore.
        sent_delay: Seconds until sending → sent.
        delivered_delay: Seconds until sent → delivered.
        on_transition: Optional observer called with (turn_id, new_state).
    """

    def __init__(
        self,
        store: MessageStore,
        sent_delay: float | None = None,
        delivered_delay: float | None = None,
        on_transition: Callable[[str, DeliveryState], None] | None = None,
    ) -> None:
        self._store = store
        self._sent_delay = settings.sent_delay if sent_delay is None else sent_delay
        self._delivered_delay = (
            settings.delivered_delay if delivered_delay is None else delivered_delay
        )
        self._on_transition = on_transition
        self._timers: dict[str, dict[DeliveryState, asyncio.TimerHandle]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self, turn_id: str) -> int:
        """Number of timers still scheduled for a turn."""
        return len(self._timers.get(turn_id, {}))

    # -- Scheduling ------------------------------------------------------------

    def track(self, turn_id: str) -> None:
        """Schedule the timed transitions for a newly appended user turn."""
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        self._timers[turn_id] = {
            DeliveryState.SENT: loop.call_later(
                self._sent_delay, self._fire, turn_id, DeliveryState.SENT
            ),
            DeliveryState.DELIVERED: loop.call_later(
                self._delivered_delay, self._fire, turn_id, DeliveryState.DELIVERED
            ),
        }

    def mark_read(self, turn_id: str) -> bool:
        """Jump to ``read`` now that the reply arrived. Cancels pending timers."""
        self.forget(turn_id)
        return self.advance(turn_id, DeliveryState.READ)

    def forget(self, turn_id: str) -> None:
        """Cancel any timers for a turn (e.g. after rolling it back)."""
        for handle in self._timers.pop(turn_id, {}).values():
            handle.cancel()

    def close(self) -> None:
        """Cancel every pending timer. The tracker is inert afterwards."""
        self._closed = True
        for turn_id in list(self._timers):
            self.forget(turn_id)

    # -- Transitions -----------------------------------------------------------

    def advance(self, turn_id: str, target: DeliveryState) -> bool:
        """Move a user turn forward to *target*, one state at a time.

        Returns False when the turn is gone, is not a user turn, or is
        already at or past *target*.
        """
        if self._closed:
            return False
        turn = self._store.get(turn_id)
        if turn is None or turn.role is not Role.USER or turn.delivery_state is None:
            return False
        current = turn.delivery_state
        if target.rank <= current.rank:
            return False

        while current is not target:
            current = current.next()
            self._store.replace(lambda t: t.id == turn_id, {"delivery_state": current})
            if self._on_transition is not None:
                self._on_transition(turn_id, current)
        logger.debug("Turn %s → %s", turn_id, target)
        return True

    def _fire(self, turn_id: str, target: DeliveryState) -> None:
        handles = self._timers.get(turn_id)
        if handles is not None:
            handles.pop(target, None)
            if not handles:
                del self._timers[turn_id]
        self.advance(turn_id, target)
