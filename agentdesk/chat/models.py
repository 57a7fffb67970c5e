"""Conversation data model shared by the chat client and the backend."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

WELCOME_TURN_ID = "welcome"


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class DeliveryState(StrEnum):
    """Delivery progression of a user turn. Order matters."""

    SENDING = "sending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"

    @property
    def rank(self) -> int:
        return _DELIVERY_ORDER.index(self)

    def next(self) -> DeliveryState | None:
        """The state right after this one, or None at the end."""
        idx = self.rank + 1
        return _DELIVERY_ORDER[idx] if idx < len(_DELIVERY_ORDER) else None


_DELIVERY_ORDER: tuple[DeliveryState, ...] = (
    DeliveryState.SENDING,
    DeliveryState.SENT,
    DeliveryState.DELIVERED,
    DeliveryState.READ,
)


class Plan(StrEnum):
    FREE = "free"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"

    @property
    def is_paid(self) -> bool:
        return self is not Plan.FREE


@dataclass(frozen=True)
class Attachment:
    """An uploaded file reference or a synthesized voice clip."""

    name: str
    mime_type: str
    size: int = 0
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "type": self.mime_type, "size": self.size, "url": self.url}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attachment:
        return cls(
            name=str(data.get("name", "")),
            mime_type=str(data.get("type", "application/octet-stream")),
            size=int(data.get("size") or 0),
            url=data.get("url"),
        )


@dataclass
class Turn:
    """A single conversation turn.

    Attributes:
        id: Unique, time-derived identifier (``"welcome"`` for the greeting).
        role: Who wrote the turn.
        content: Message text.
        created_at: UTC timestamp; turns in a session are ordered by it.
        delivery_state: Delivery progression for user turns, None otherwise.
        attachment: Optional file or voice clip reference.
    """

    id: str
    role: Role
    content: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    delivery_state: DeliveryState | None = None
    attachment: Attachment | None = None

    @property
    def is_welcome(self) -> bool:
        return self.id == WELCOME_TURN_ID

    def to_api_message(self) -> dict[str, str]:
        """The ``{role, content}`` pair sent to the completion endpoint."""
        return {"role": str(self.role), "content": self.content}

    # -- Serialization ---------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": str(self.role),
            "content": self.content,
            "createdAt": self.created_at.isoformat(),
            "deliveryState": str(self.delivery_state) if self.delivery_state else None,
            "attachment": self.attachment.to_dict() if self.attachment else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Turn:
        """Build a Turn from its wire form. Raises ValueError on bad data."""
        role = Role(data["role"])
        created_raw = data.get("createdAt") or data.get("timestamp")
        created_at = datetime.fromisoformat(created_raw) if created_raw else datetime.now(UTC)
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)
        state_raw = data.get("deliveryState")
        attachment_raw = data.get("attachment")
        return cls(
            id=str(data.get("id") or make_turn_id()),
            role=role,
            content=str(data.get("content", "")),
            created_at=created_at,
            delivery_state=DeliveryState(state_raw) if state_raw and role is Role.USER else None,
            attachment=Attachment.from_dict(attachment_raw) if attachment_raw else None,
        )


@dataclass(frozen=True)
class QuotaDecision:
    """Result of an atomic check-and-reserve against the conversation counter."""

    allowed: bool
    conversations_used: int
    plan: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "can_send": self.allowed,
            "conversations_used": self.conversations_used,
            "plan": self.plan,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuotaDecision:
        return cls(
            allowed=bool(data["can_send"]),
            conversations_used=int(data["conversations_used"]),
            plan=str(data["plan"]),
        )


_id_lock = threading.Lock()
_last_id = 0


def make_turn_id() -> str:
    """Generate a time-derived turn ID, strictly increasing within the process."""
    global _last_id  # noqa: PLW0603
    with _id_lock:
        candidate = time.time_ns()
        if candidate <= _last_id:
            candidate = _last_id + 1
        _last_id = candidate
        return str(candidate)


def user_turn(content: str, attachment: Attachment | None = None) -> Turn:
    """A fresh user turn in the ``sending`` state."""
    return Turn(
        id=make_turn_id(),
        role=Role.USER,
        content=content,
        delivery_state=DeliveryState.SENDING,
        attachment=attachment,
    )


def assistant_turn(content: str, attachment: Attachment | None = None) -> Turn:
    return Turn(id=make_turn_id(), role=Role.ASSISTANT, content=content, attachment=attachment)


def welcome_turn(content: str) -> Turn:
    return Turn(id=WELCOME_TURN_ID, role=Role.ASSISTANT, content=content)
