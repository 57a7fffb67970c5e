"""Tests for the server-side ChatHistoryStore."""

from datetime import UTC, datetime, timedelta

from agentdesk.chat.models import (
    Attachment,
    DeliveryState,
    Role,
    Turn,
    assistant_turn,
    user_turn,
    welcome_turn,
)


def _turn(role: Role, content: str, when: datetime) -> Turn:
    return Turn(id=str(int(when.timestamp() * 1000)), role=role, content=content, created_at=when)


class TestRoundTrip:
    async def test_u1_ceo_round_trip(self, history_store):
        user = user_turn("What should we focus on?")
        user.delivery_state = DeliveryState.READ
        turns = [welcome_turn("Hey!"), user, assistant_turn("Focus on retention.")]

        saved = await history_store.save("u1", "ceo", turns)
        loaded = await history_store.load("u1", "ceo")

        assert saved == 2
        assert [(t.id, t.role, t.content) for t in loaded] == [
            (user.id, Role.USER, "What should we focus on?"),
            (turns[2].id, Role.ASSISTANT, "Focus on retention."),
        ]
        assert loaded[0].delivery_state is DeliveryState.READ
        assert loaded[0].created_at == user.created_at

    async def test_attachment_survives(self, history_store):
        doc = Attachment(name="deck.pdf", mime_type="application/pdf", size=2048)
        await history_store.save("u1", "ceo", [user_turn("see deck", attachment=doc)])
        (loaded,) = await history_store.load("u1", "ceo")
        assert loaded.attachment == doc

    async def test_save_adds_without_deleting(self, history_store):
        await history_store.save("u1", "ceo", [user_turn("old")])
        await history_store.save("u1", "ceo", [user_turn("new"), assistant_turn("reply")])
        loaded = await history_store.load("u1", "ceo")
        assert [t.content for t in loaded] == ["old", "new", "reply"]

    async def test_same_turn_id_updates_in_place(self, history_store):
        first = user_turn("hello")
        later = assistant_turn("hi")
        await history_store.save("u1", "ceo", [first, later])

        first.delivery_state = DeliveryState.READ
        await history_store.save("u1", "ceo", [first])

        loaded = await history_store.load("u1", "ceo")
        assert [t.id for t in loaded] == [first.id, later.id]
        assert loaded[0].delivery_state is DeliveryState.READ

    async def test_empty_save_writes_nothing(self, history_store):
        assert await history_store.save("u1", "ceo", [welcome_turn("Hey!")]) == 0
        assert await history_store.load("u1", "ceo") == []


class TestIsolation:
    async def test_keys_are_independent(self, history_store):
        await history_store.save("u1", "ceo", [user_turn("for ceo")])
        await history_store.save("u1", "buzzbot", [user_turn("for buzz")])
        await history_store.save("u2", "ceo", [user_turn("other user")])

        assert [t.content for t in await history_store.load("u1", "ceo")] == ["for ceo"]
        assert [t.content for t in await history_store.load("u1", "buzzbot")] == ["for buzz"]
        assert await history_store.load("u3", "ceo") == []


class TestLimit:
    async def test_most_recent_oldest_first(self, history_store):
        base = datetime(2025, 3, 1, tzinfo=UTC)
        turns = [_turn(Role.USER, f"m{i}", base + timedelta(minutes=i)) for i in range(10)]
        await history_store.save("u1", "ceo", turns)

        loaded = await history_store.load("u1", "ceo", limit=3)
        assert [t.content for t in loaded] == ["m7", "m8", "m9"]


class TestDailyCounts:
    async def test_groups_by_day(self, history_store):
        now = datetime(2025, 3, 20, 12, 0, tzinfo=UTC)
        turns = [
            _turn(Role.USER, "a", now - timedelta(days=1)),
            _turn(Role.ASSISTANT, "b", now - timedelta(days=1, minutes=-1)),
            _turn(Role.USER, "c", now),
            _turn(Role.USER, "too old", now - timedelta(days=45)),
        ]
        await history_store.save("u1", "ceo", turns)

        counts = await history_store.daily_counts(days=30, now=now)
        assert counts == {"2025-03-19": 2, "2025-03-20": 1}
