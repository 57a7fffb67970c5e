"""Tests for the shared conversation data model."""

from datetime import UTC, datetime

import pytest

from agentdesk.chat.models import (
    WELCOME_TURN_ID,
    Attachment,
    DeliveryState,
    Plan,
    QuotaDecision,
    Role,
    Turn,
    assistant_turn,
    make_turn_id,
    user_turn,
    welcome_turn,
)


class TestDeliveryState:
    def test_order(self):
        states = [DeliveryState.SENDING, DeliveryState.SENT, DeliveryState.DELIVERED]
        assert [s.next() for s in states] == [
            DeliveryState.SENT,
            DeliveryState.DELIVERED,
            DeliveryState.READ,
        ]

    def test_read_is_terminal(self):
        assert DeliveryState.READ.next() is None

    def test_rank_increases(self):
        ranks = [s.rank for s in DeliveryState]
        assert ranks == sorted(ranks)


class TestPlan:
    def test_free_is_not_paid(self):
        assert Plan.FREE.is_paid is False

    @pytest.mark.parametrize("plan", [Plan.PREMIUM, Plan.ENTERPRISE])
    def test_paid_plans(self, plan):
        assert plan.is_paid is True


class TestTurnIds:
    def test_strictly_increasing(self):
        ids = [int(make_turn_id()) for _ in range(200)]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)

    def test_factories(self):
        u = user_turn("hi")
        a = assistant_turn("hello")
        assert u.role is Role.USER
        assert u.delivery_state is DeliveryState.SENDING
        assert a.role is Role.ASSISTANT
        assert a.delivery_state is None
        assert int(a.id) > int(u.id)

    def test_welcome_turn(self):
        w = welcome_turn("Hey!")
        assert w.id == WELCOME_TURN_ID
        assert w.is_welcome
        assert not user_turn("x").is_welcome


class TestTurnSerialization:
    def test_to_dict_uses_wire_keys(self):
        turn = Turn(
            id="1",
            role=Role.USER,
            content="hello",
            created_at=datetime(2025, 3, 1, 12, 0, tzinfo=UTC),
            delivery_state=DeliveryState.READ,
            attachment=Attachment(name="a.pdf", mime_type="application/pdf", size=10),
        )
        data = turn.to_dict()
        assert data["createdAt"] == "2025-03-01T12:00:00+00:00"
        assert data["deliveryState"] == "read"
        assert data["attachment"]["type"] == "application/pdf"

    def test_from_dict_accepts_timestamp_key(self):
        turn = Turn.from_dict(
            {"id": "7", "role": "assistant", "content": "ok", "timestamp": "2025-03-01T12:00:00"}
        )
        assert turn.created_at == datetime(2025, 3, 1, 12, 0, tzinfo=UTC)

    def test_from_dict_drops_delivery_state_on_assistant(self):
        turn = Turn.from_dict({"role": "assistant", "content": "ok", "deliveryState": "read"})
        assert turn.delivery_state is None

    def test_from_dict_generates_missing_id(self):
        turn = Turn.from_dict({"role": "user", "content": "hi"})
        assert turn.id.isdigit()

    def test_from_dict_rejects_unknown_role(self):
        with pytest.raises(ValueError):
            Turn.from_dict({"role": "system", "content": "x"})

    def test_to_api_message(self):
        assert user_turn("hi").to_api_message() == {"role": "user", "content": "hi"}


class TestQuotaDecision:
    def test_wire_round_trip(self):
        decision = QuotaDecision(allowed=False, conversations_used=100, plan="free")
        data = decision.to_dict()
        assert data == {"can_send": False, "conversations_used": 100, "plan": "free"}
        assert QuotaDecision.from_dict(data) == decision

    def test_from_dict_missing_key(self):
        with pytest.raises(KeyError):
            QuotaDecision.from_dict({"can_send": True})
