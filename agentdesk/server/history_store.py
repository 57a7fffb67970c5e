"""ChatHistoryStore: aiosqlite persistence of turns per (user, agent)."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import aiosqlite

from agentdesk.chat.models import Attachment, DeliveryState, Role, Turn
from agentdesk.config import settings

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = logging.getLogger(__name__)

# seq records first-insert order; a re-sent turn keeps its original position.
_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS chat_history (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    agent_id TEXT NOT NULL,
    turn_id TEXT NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    delivery_state TEXT,
    attachment TEXT,
    created_at TEXT NOT NULL,
    UNIQUE (user_id, agent_id, turn_id)
)
"""

_UPSERT = """
INSERT INTO chat_history
    (user_id, agent_id, turn_id, role, content, delivery_state, attachment, created_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT (user_id, agent_id, turn_id) DO UPDATE SET
    role = excluded.role,
    content = excluded.content,
    delivery_state = excluded.delivery_state,
    attachment = excluded.attachment
"""


def _to_row(user_id: str, agent_id: str, turn: Turn) -> tuple:
    return (
        user_id,
        agent_id,
        turn.id,
        str(turn.role),
        turn.content,
        str(turn.delivery_state) if turn.delivery_state else None,
        json.dumps(turn.attachment.to_dict()) if turn.attachment else None,
        turn.created_at.astimezone(UTC).isoformat(),
    )


def _from_row(row: tuple) -> Turn:
    role = Role(row[1])
    return Turn(
        id=row[0],
        role=role,
        content=row[2],
        delivery_state=DeliveryState(row[3]) if row[3] and role is Role.USER else None,
        attachment=Attachment.from_dict(json.loads(row[4])) if row[4] else None,
        created_at=datetime.fromisoformat(row[5]),
    )


class ChatHistoryStore:
    """Stores the conversation of each (user, agent) pair in SQLite.

    Turns are only ever added or updated, never deleted: a client that has
    cleared its view, or failed to load, can keep saving without erasing
    what is already stored.

    Singleton accessed via ``ChatHistoryStore.get()``.  Pass an explicit
    *db_path* for test isolation.
    """

    _instance: ChatHistoryStore | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._initialised = False

    @classmethod
    def get(cls) -> ChatHistoryStore:
        """Return the shared ChatHistoryStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path))
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            await db.commit()
            self._initialised = True
        return db

    async def save(self, user_id: str, agent_id: str, turns: Iterable[Turn]) -> int:
        """Add *turns* to the stored conversation for (user, agent).

        A turn whose id is already stored is updated in place. The welcome
        turn is never stored. Returns the number of turns written.
        """
        rows = [_to_row(user_id, agent_id, t) for t in turns if not t.is_welcome]
        if not rows:
            return 0
        db = await self._connect()
        try:
            await db.executemany(_UPSERT, rows)
            await db.commit()
            logger.info("Saved %d turn(s) for user=%s agent=%s", len(rows), user_id, agent_id)
            return len(rows)
        finally:
            await db.close()

    async def load(self, user_id: str, agent_id: str, limit: int = 50) -> list[Turn]:
        """The most recent *limit* turns, oldest first."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                SELECT turn_id, role, content, delivery_state, attachment, created_at
                FROM chat_history
                WHERE user_id = ? AND agent_id = ?
                ORDER BY seq DESC
                LIMIT ?
                """,
                (user_id, agent_id, limit),
            )
            rows = await cursor.fetchall()
            return [_from_row(row) for row in reversed(rows)]
        finally:
            await db.close()

    async def daily_counts(self, days: int = 30, now: datetime | None = None) -> dict[str, int]:
        """Stored turns per calendar day (UTC) over the last *days* days."""
        since = (now or datetime.now(UTC)) - timedelta(days=days)
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                SELECT substr(created_at, 1, 10) AS day, COUNT(*)
                FROM chat_history
                WHERE created_at >= ?
                GROUP BY day
                ORDER BY day
                """,
                (since.isoformat(),),
            )
            rows = await cursor.fetchall()
            return {row[0]: row[1] for row in rows}
        finally:
            await db.close()
