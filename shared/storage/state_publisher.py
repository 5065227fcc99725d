"""
Shoutbox state publisher helpers.

This module centralizes atomic writes of the rendered shoutbox rooms and
the user stats header as JSON snapshots.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from shared.logging.logger import get_logger

if TYPE_CHECKING:
    from services.chat.registry import RoomRegistry
    from services.stats.header import StatsHeader

log = get_logger("shared.state_publisher")


class ShoutboxStatePublisher:
    """
    Atomic snapshot writer rooted at the configured state directory.
    """

    DEFAULT_BASE_DIR = Path("shared/state")
    SNAPSHOT_NAME = "shoutbox.json"

    def __init__(self, base_dir: Path | str | None = None):
        self._base_dir = Path(base_dir) if base_dir else self.DEFAULT_BASE_DIR
        self._base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    # ------------------------------------------------------------------
    # Atomic writer
    # ------------------------------------------------------------------

    def _write_atomic(self, path: Path, payload: Any) -> None:
        serialized = json.dumps(payload, indent=2)
        path.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            "w", dir=path.parent, delete=False, encoding="utf-8"
        ) as tmp:
            tmp.write(serialized)
            tmp.flush()
            os.fsync(tmp.fileno())
            temp_path = Path(tmp.name)

        temp_path.replace(path)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def publish(self, relative_path: Path | str, payload: Any) -> bool:
        """
        Write snapshot to <base_dir>/<relative_path>.
        """
        rel = Path(relative_path)
        target = self._base_dir / rel

        try:
            self._write_atomic(target, payload)
        except (OSError, TypeError, ValueError) as e:
            log.error(f"Failed to write state snapshot {rel}: {e}")
            return False

        return True

    @staticmethod
    def snapshot(
        registry: "RoomRegistry",
        header: Optional["StatsHeader"] = None,
    ) -> Dict[str, Any]:
        rooms = []
        for binding in registry.bindings():
            room, tab = binding.room, binding.tab
            rooms.append(
                {
                    "room_id": room.room_id,
                    "network_id": room.network_id,
                    "title": room.title,
                    "last_update": room.last_update,
                    "unread_count": room.unread_count,
                    "active": tab.active,
                    "badge": tab.badge_text if tab.badge_visible else None,
                    "lines": len(binding.surface),
                    "html": binding.surface.render_html(),
                }
            )

        return {
            "rooms": rooms,
            "stats": header.to_dict() if header else None,
        }

    def publish_snapshot(
        self,
        registry: "RoomRegistry",
        header: Optional["StatsHeader"] = None,
    ) -> bool:
        return self.publish(self.SNAPSHOT_NAME, self.snapshot(registry, header))
