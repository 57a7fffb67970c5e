"""Shared test fixtures."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from agentdesk.chat.api import Identity
from agentdesk.chat.completion import CompletionAdapter
from agentdesk.chat.history import HistoryAdapter
from agentdesk.chat.models import QuotaDecision
from agentdesk.chat.quota import QuotaGate
from agentdesk.chat.voice import VoiceAdapter
from agentdesk.server.accounts import AccountStore
from agentdesk.server.history_store import ChatHistoryStore
from agentdesk.server.media import MediaStore


@pytest.fixture
def identity() -> Identity:
    return Identity(user_id="alice", access_token="tok-alice")


@pytest.fixture
def account_store(tmp_path):
    """AccountStore backed by a temporary SQLite file."""
    AccountStore._reset()
    store = AccountStore(db_path=tmp_path / "test.db", free_limit=100)
    AccountStore._instance = store
    yield store
    AccountStore._reset()


@pytest.fixture
def history_store(tmp_path):
    """ChatHistoryStore backed by a temporary SQLite file."""
    ChatHistoryStore._reset()
    store = ChatHistoryStore(db_path=tmp_path / "test.db")
    ChatHistoryStore._instance = store
    yield store
    ChatHistoryStore._reset()


@pytest.fixture
def media_store(tmp_path):
    """MediaStore rooted in a temporary directory."""
    MediaStore._reset()
    store = MediaStore(root=tmp_path / "media", base_url="http://test.local")
    MediaStore._instance = store
    yield store
    MediaStore._reset()


# -- Client adapter doubles -----------------------------------------------------


def make_decision(used: int = 1, plan: str = "free", allowed: bool = True) -> QuotaDecision:
    return QuotaDecision(allowed=allowed, conversations_used=used, plan=plan)


@pytest.fixture
def quota() -> MagicMock:
    gate = MagicMock(spec=QuotaGate)
    gate.check_and_reserve = AsyncMock(return_value=make_decision())
    return gate


@pytest.fixture
def history() -> MagicMock:
    adapter = MagicMock(spec=HistoryAdapter)
    adapter.load = AsyncMock(return_value=[])
    adapter.save = AsyncMock(return_value=True)
    return adapter


@pytest.fixture
def completion() -> MagicMock:
    adapter = MagicMock(spec=CompletionAdapter)
    adapter.complete = AsyncMock(return_value="Hi there!")
    return adapter


@pytest.fixture
def voice() -> MagicMock:
    return MagicMock(spec=VoiceAdapter)
