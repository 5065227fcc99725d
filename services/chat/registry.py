from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional

from shared.chat.models import ChatRoom
from shared.chat.surface import ChatTab, MemoryShoutbox, TabStrip
from shared.config.shoutbox import RoomSettings
from shared.logging.logger import get_logger

log = get_logger("chat.registry")


@dataclass
class RoomBinding:
    room: ChatRoom
    surface: MemoryShoutbox
    tab: ChatTab


class RoomRegistry:
    """
    Process-wide set of known chat rooms and their display surfaces.

    Rooms are registered once at boot and never removed for the lifetime
    of the runtime.
    """

    def __init__(self, tabs: Optional[TabStrip] = None):
        self.tabs = tabs or TabStrip()
        self._bindings: Dict[str, RoomBinding] = {}

    @classmethod
    def from_config(
        cls,
        rooms: Iterable[RoomSettings],
        *,
        viewport_lines: int = 20,
    ) -> "RoomRegistry":
        registry = cls()
        for settings in rooms:
            registry.register(
                ChatRoom(
                    room_id=settings.room_id,
                    network_id=settings.network_id,
                    title=settings.title,
                ),
                active=settings.active,
                viewport_lines=viewport_lines,
            )
        return registry

    def register(
        self,
        room: ChatRoom,
        *,
        active: bool = False,
        viewport_lines: int = 20,
    ) -> RoomBinding:
        if room.room_id in self._bindings:
            raise ValueError(f"chat room already registered: {room.room_id}")

        tab = self.tabs.add(ChatTab(room.room_id, title=room.title, active=active))
        binding = RoomBinding(
            room=room,
            surface=MemoryShoutbox(room.room_id, viewport_lines=viewport_lines),
            tab=tab,
        )
        self._bindings[room.room_id] = binding
        log.info(
            f"Registered chat room '{room.room_id}' (nid={room.network_id}, active={tab.active})"
        )
        return binding

    def get(self, room_id: str) -> RoomBinding:
        try:
            return self._bindings[room_id]
        except KeyError:
            raise KeyError(f"unknown chat room: {room_id}") from None

    def rooms(self) -> List[ChatRoom]:
        return [binding.room for binding in self._bindings.values()]

    def bindings(self) -> List[RoomBinding]:
        return list(self._bindings.values())

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._bindings

    def __iter__(self) -> Iterator[RoomBinding]:
        return iter(self.bindings())

    def __len__(self) -> int:
        return len(self._bindings)
