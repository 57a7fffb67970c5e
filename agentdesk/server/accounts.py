"""AccountStore: accounts, bearer tokens and the monthly conversation counter."""

from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import aiosqlite

from agentdesk.chat.models import Plan, QuotaDecision
from agentdesk.chat.quota import next_window_start
from agentdesk.config import settings

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS accounts (
    user_id TEXT PRIMARY KEY,
    token_hash TEXT NOT NULL UNIQUE,
    plan TEXT NOT NULL DEFAULT 'free',
    is_admin INTEGER NOT NULL DEFAULT 0,
    conversations_used INTEGER NOT NULL DEFAULT 0,
    window_reset_at TEXT NOT NULL,
    created_at TEXT NOT NULL
)
"""

_COLUMNS = "user_id, plan, is_admin, conversations_used, window_reset_at, created_at"


@dataclass
class Account:
    """One user account and its cached quota counter."""

    user_id: str
    plan: Plan
    is_admin: bool
    conversations_used: int
    window_reset_at: str
    created_at: str

    @classmethod
    def from_row(cls, row: tuple) -> Account:
        return cls(
            user_id=row[0],
            plan=Plan(row[1]),
            is_admin=bool(row[2]),
            conversations_used=int(row[3]),
            window_reset_at=row[4],
            created_at=row[5],
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "plan": str(self.plan),
            "is_admin": self.is_admin,
            "conversations_used": self.conversations_used,
            "window_reset_at": self.window_reset_at,
            "created_at": self.created_at,
        }


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AccountStore:
    """Persists accounts in SQLite.

    Singleton accessed via ``AccountStore.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: AccountStore | None = None

    def __init__(self, db_path: Path | None = None, free_limit: int | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._free_limit = settings.free_conversation_limit if free_limit is None else free_limit
        self._initialised = False

    @classmethod
    def get(cls) -> AccountStore:
        """Return the shared AccountStore instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    @property
    def free_limit(self) -> int:
        return self._free_limit

    # -- Internal helpers ------------------------------------------------------

    async def _connect(self) -> aiosqlite.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(self._db_path), isolation_level=None)
        await db.execute("PRAGMA busy_timeout=5000")
        if not self._initialised:
            await db.execute(_CREATE_TABLE)
            self._initialised = True
        return db

    # -- CRUD ------------------------------------------------------------------

    async def create(
        self,
        user_id: str,
        plan: Plan = Plan.FREE,
        *,
        is_admin: bool = False,
        now: datetime | None = None,
    ) -> str:
        """Create an account and return its freshly minted bearer token."""
        now = now or datetime.now(UTC)
        token = secrets.token_urlsafe(32)
        db = await self._connect()
        try:
            await db.execute(
                """
                INSERT INTO accounts
                    (user_id, token_hash, plan, is_admin, conversations_used,
                     window_reset_at, created_at)
                VALUES (?, ?, ?, ?, 0, ?, ?)
                """,
                (
                    user_id,
                    hash_token(token),
                    str(plan),
                    int(is_admin),
                    next_window_start(now).isoformat(),
                    now.isoformat(),
                ),
            )
            logger.info("Created account %s (plan=%s)", user_id, plan)
            return token
        finally:
            await db.close()

    async def get_account(self, user_id: str) -> Account | None:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM accounts WHERE user_id = ?", (user_id,)  # noqa: S608
            )
            row = await cursor.fetchone()
            return Account.from_row(row) if row else None
        finally:
            await db.close()

    async def get_by_token(self, token: str) -> Account | None:
        """Resolve a bearer token to its account, or None."""
        if not token:
            return None
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM accounts WHERE token_hash = ?",  # noqa: S608
                (hash_token(token),),
            )
            row = await cursor.fetchone()
            return Account.from_row(row) if row else None
        finally:
            await db.close()

    async def list_accounts(self) -> list[Account]:
        db = await self._connect()
        try:
            cursor = await db.execute(
                f"SELECT {_COLUMNS} FROM accounts ORDER BY created_at DESC"  # noqa: S608
            )
            rows = await cursor.fetchall()
            return [Account.from_row(row) for row in rows]
        finally:
            await db.close()

    async def set_plan(self, user_id: str, plan: Plan) -> bool:
        """Change an account's plan. Returns True if a row was updated."""
        db = await self._connect()
        try:
            cursor = await db.execute(
                "UPDATE accounts SET plan = ? WHERE user_id = ?", (str(plan), user_id)
            )
            updated = cursor.rowcount > 0
            if updated:
                logger.info("Plan for %s → %s", user_id, plan)
            return updated
        finally:
            await db.close()

    async def reset_conversations(self, user_id: str, now: datetime | None = None) -> bool:
        """Zero the counter and start a new window. Returns True if updated."""
        now = now or datetime.now(UTC)
        db = await self._connect()
        try:
            cursor = await db.execute(
                """
                UPDATE accounts SET conversations_used = 0, window_reset_at = ?
                WHERE user_id = ?
                """,
                (next_window_start(now).isoformat(), user_id),
            )
            return cursor.rowcount > 0
        finally:
            await db.close()

    # -- Quota -----------------------------------------------------------------

    async def check_and_increment(
        self, user_id: str, now: datetime | None = None
    ) -> QuotaDecision:
        """Atomically check the ceiling and reserve one conversation turn.

        Runs inside a single ``BEGIN IMMEDIATE`` transaction, so concurrent
        callers (several tabs of one user) serialise on the write lock and
        can never both pass at the last free slot.

        Raises:
            KeyError: if the account does not exist.
        """
        now = now or datetime.now(UTC)
        db = await self._connect()
        try:
            await db.execute("BEGIN IMMEDIATE")
            try:
                cursor = await db.execute(
                    """
                    SELECT plan, conversations_used, window_reset_at
                    FROM accounts WHERE user_id = ?
                    """,
                    (user_id,),
                )
                row = await cursor.fetchone()
                if row is None:
                    raise KeyError(user_id)
                plan, used, reset_at = Plan(row[0]), int(row[1]), row[2]

                if now >= datetime.fromisoformat(reset_at):
                    used = 0
                    reset_at = next_window_start(now).isoformat()
                    logger.info("Conversation window rolled over for %s", user_id)

                if plan is Plan.FREE and used >= self._free_limit:
                    allowed = False
                else:
                    allowed = True
                    used += 1

                await db.execute(
                    """
                    UPDATE accounts SET conversations_used = ?, window_reset_at = ?
                    WHERE user_id = ?
                    """,
                    (used, reset_at, user_id),
                )
                await db.execute("COMMIT")
            except BaseException:
                await db.execute("ROLLBACK")
                raise
            return QuotaDecision(allowed=allowed, conversations_used=used, plan=str(plan))
        finally:
            await db.close()
