"""Tests for the quota gate, upgrade nudge and reset countdown."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from agentdesk.chat.api import ApiError, BackendClient
from agentdesk.chat.models import QuotaDecision
from agentdesk.chat.quota import (
    QUOTA_PATH,
    QuotaCheckError,
    QuotaGate,
    UpgradeNudge,
    days_until_reset,
    next_window_start,
)


def make_decision(used: int, plan: str = "free") -> QuotaDecision:
    return QuotaDecision(allowed=True, conversations_used=used, plan=plan)


def _client(return_value=None, side_effect=None) -> MagicMock:
    client = MagicMock(spec=BackendClient)
    client.request = AsyncMock(return_value=return_value, side_effect=side_effect)
    return client


class TestQuotaGate:
    async def test_allowed(self, identity):
        client = _client({"can_send": True, "conversations_used": 5, "plan": "free"})
        gate = QuotaGate(client)

        decision = await gate.check_and_reserve(identity)

        assert decision.allowed is True
        assert decision.conversations_used == 5
        assert gate.last_decision == decision
        client.request.assert_awaited_once_with("POST", QUOTA_PATH, identity)

    async def test_blocked(self, identity):
        gate = QuotaGate(_client({"can_send": False, "conversations_used": 100, "plan": "free"}))
        decision = await gate.check_and_reserve(identity)
        assert decision.allowed is False

    async def test_api_error_becomes_quota_error(self, identity):
        gate = QuotaGate(_client(side_effect=ApiError("down")))
        with pytest.raises(QuotaCheckError):
            await gate.check_and_reserve(identity)
        assert gate.last_decision is None

    async def test_malformed_response(self, identity):
        gate = QuotaGate(_client({"can_send": True}))
        with pytest.raises(QuotaCheckError, match="Malformed"):
            await gate.check_and_reserve(identity)


class TestUpgradeNudge:
    def test_fires_once_at_milestone(self):
        nudge = UpgradeNudge(milestone=100)
        nudge.seed(make_decision(used=100))  # 99 before this reservation
        assert nudge.record_send("free") is True
        assert nudge.count == 100
        assert nudge.record_send("free") is False

    def test_not_for_paid_plans(self):
        nudge = UpgradeNudge(milestone=100)
        nudge.seed(make_decision(used=100, plan="premium"))
        assert nudge.record_send("premium") is False

    def test_seed_only_once(self):
        nudge = UpgradeNudge(milestone=3)
        nudge.seed(make_decision(used=1))
        nudge.seed(make_decision(used=50))
        assert nudge.count == 0
        assert [nudge.record_send("free") for _ in range(4)] == [False, False, True, False]

    def test_unseeded_counts_from_zero(self):
        nudge = UpgradeNudge(milestone=1)
        assert nudge.record_send("free") is True


class TestResetWindow:
    def test_next_window_start(self):
        now = datetime(2025, 3, 15, 10, 30, tzinfo=UTC)
        assert next_window_start(now) == datetime(2025, 4, 1, tzinfo=UTC)

    def test_december_rolls_year(self):
        now = datetime(2025, 12, 31, 23, 0, tzinfo=UTC)
        assert next_window_start(now) == datetime(2026, 1, 1, tzinfo=UTC)

    def test_days_until_reset_rounds_up(self):
        assert days_until_reset(datetime(2025, 3, 30, 12, 0, tzinfo=UTC)) == 2
        assert days_until_reset(datetime(2025, 3, 31, 23, 59, tzinfo=UTC)) == 1

    def test_days_until_reset_first_of_month(self):
        assert days_until_reset(datetime(2025, 4, 1, tzinfo=UTC)) == 30
