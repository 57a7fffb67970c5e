"""Conversation quota: hard pre-send gate and the soft upgrade nudge."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from agentdesk.chat.api import ApiError, BackendClient
from agentdesk.chat.models import Plan, QuotaDecision
from agentdesk.config import settings

if TYPE_CHECKING:
    from agentdesk.chat.api import Identity

logger = logging.getLogger(__name__)

QUOTA_PATH = "/check-conversation-limit"


class QuotaCheckError(Exception):
    """The quota endpoint could not be reached or answered badly."""


class QuotaGate:
    """Asks the backend to atomically check and reserve one conversation turn.

    The counter lives server-side; this class only caches the last decision
    so a UI can render usage without another round trip.
    """

    def __init__(self, client: BackendClient | None = None) -> None:
        self._client = client or BackendClient()
        self.last_decision: QuotaDecision | None = None

    async def check_and_reserve(self, identity: Identity) -> QuotaDecision:
        """Reserve one turn. Raises QuotaCheckError if the check itself fails."""
        try:
            data = await self._client.request("POST", QUOTA_PATH, identity)
            decision = QuotaDecision.from_dict(data)
        except ApiError as exc:
            logger.warning("Quota check failed for %s: %s", identity.user_id, exc)
            raise QuotaCheckError(str(exc)) from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise QuotaCheckError(f"Malformed quota response: {exc}") from exc

        self.last_decision = decision
        if not decision.allowed:
            logger.info(
                "Quota exhausted for %s (%d used, plan=%s)",
                identity.user_id,
                decision.conversations_used,
                decision.plan,
            )
        return decision


class UpgradeNudge:
    """One-time upgrade prompt when a free user's send count hits a milestone.

    Independent from the hard quota: it counts completed sends locally and
    is seeded once from the first quota decision of the session.
    """

    def __init__(self, milestone: int | None = None) -> None:
        self.milestone = settings.upgrade_nudge_at if milestone is None else milestone
        self.count: int | None = None
        self.fired = False

    def seed(self, decision: QuotaDecision) -> None:
        """Initialise the counter from the first reservation (pre-increment value)."""
        if self.count is None:
            self.count = max(decision.conversations_used - 1, 0)

    def record_send(self, plan: str) -> bool:
        """Count a completed send. Returns True exactly once, at the milestone."""
        self.count = (self.count or 0) + 1
        if self.fired or plan != Plan.FREE or self.count != self.milestone:
            return False
        self.fired = True
        logger.info("Upgrade nudge triggered at %d messages", self.count)
        return True


def days_until_reset(now: datetime | None = None) -> int:
    """Whole days until the monthly window rolls over (first of next month)."""
    now = now or datetime.now(UTC)
    reset = next_window_start(now)
    seconds = (reset - now).total_seconds()
    return max(int(-(-seconds // 86400)), 0)


def next_window_start(now: datetime) -> datetime:
    """First instant of the month after *now*, in *now*'s timezone."""
    year, month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
    return datetime(year, month, 1, tzinfo=now.tzinfo)
