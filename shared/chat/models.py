"""Chat room and message models shared by the pollers and renderers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Dict, Optional


class ChatRoomKind(IntEnum):
    """Chat rooms known to the server, by their network id."""

    PUBLIC = 1
    TEAM = 2


def _parse_created_at(raw: Any) -> datetime:
    try:
        if isinstance(raw, datetime):
            ts = raw
        elif isinstance(raw, (int, float)) and not isinstance(raw, bool):
            ts = datetime.fromtimestamp(raw, tz=timezone.utc)
        elif isinstance(raw, str) and raw:
            ts = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        else:
            raise ValueError(f"chat message has no usable created_at: {raw!r}")

        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts.astimezone(timezone.utc)
    except (OverflowError, OSError, TypeError, ValueError) as e:
        raise ValueError(f"chat message has an invalid created_at {raw!r}: {e}") from e


@dataclass
class ChatRoom:
    """
    Per-room polling state.

    `last_update` is only moved by the room poller and never goes backwards.
    `unread_count` is only moved by the badge tracker.
    """

    room_id: str
    network_id: int
    title: str = ""
    last_update: Optional[int] = None
    unread_count: int = 0

    @property
    def is_first_run(self) -> bool:
        return self.last_update is None

    def advance_watermark(self, ts: int) -> int:
        if self.last_update is None or ts > self.last_update:
            self.last_update = ts
        return self.last_update


@dataclass(frozen=True)
class ChatMessage:
    """A chat message as delivered by /api/v1/chat/messages."""

    message_id: str
    created_at: datetime
    user_id: str
    user_name: str
    user_group: str
    message: str
    chat: Optional[int] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def line_id(self) -> str:
        return f"cm-{self.message_id}"

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ChatMessage":
        if not isinstance(payload, dict):
            raise ValueError(f"chat message payload must be an object, got {type(payload).__name__}")

        message_id = payload.get("id")
        if message_id in (None, ""):
            raise ValueError("chat message payload has no id")

        chat = payload.get("chat")
        return cls(
            message_id=str(message_id),
            created_at=_parse_created_at(payload.get("created_at")),
            user_id=str(payload.get("user_id") or ""),
            user_name=str(payload.get("user_name") or "unknown"),
            user_group=str(payload.get("user_group") or ""),
            message=str(payload.get("message") or ""),
            chat=int(chat) if isinstance(chat, int) else None,
            raw=payload,
        )
