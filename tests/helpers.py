"""Payload builders shared by the test modules."""
from __future__ import annotations

from typing import Any, Dict


def make_message(
    message_id: str,
    *,
    created_at: Any = "2024-05-01T12:00:00Z",
    message: str = "hello",
    user_id: str = "u-1",
    user_name: str = "alice",
    user_group: str = "g-user",
    chat: int = 1,
) -> Dict[str, Any]:
    return {
        "id": message_id,
        "user_id": user_id,
        "chat": chat,
        "message": message,
        "created_at": created_at,
        "user_name": user_name,
        "user_group": user_group,
    }
