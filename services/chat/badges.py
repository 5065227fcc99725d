from __future__ import annotations

from shared.chat.models import ChatRoom
from shared.chat.surface import ChatTab
from shared.logging.logger import get_logger

log = get_logger("chat.badges")


class BadgeTracker:
    """
    Unread counters on inactive room tabs.

    The displayed number is the source of truth for increments; the room's
    unread_count mirrors it. Both are cleared by the first interaction with
    the tab.
    """

    def increment(self, room: ChatRoom, tab: ChatTab, delta: int) -> None:
        if tab.active or delta <= 0:
            return

        current = self._displayed_count(tab)
        tab.set_badge_text(str(current + delta))
        tab.show_badge()
        room.unread_count += delta

        if not tab.pending_handlers:
            tab.once(lambda _tab: self.clear(room, _tab))

        log.debug(
            f"[{room.room_id}] {delta} new message(s), badge={tab.badge_text}"
        )

    def clear(self, room: ChatRoom, tab: ChatTab) -> None:
        tab.hide_badge()
        tab.set_badge_text("")
        room.unread_count = 0
        log.debug(f"[{room.room_id}] unread badge cleared")

    @staticmethod
    def _displayed_count(tab: ChatTab) -> int:
        text = (tab.badge_text or "").strip()
        if not text:
            return 0
        try:
            return int(text, 10)
        except ValueError:
            log.debug(f"[{tab.room_id}] badge text '{text}' is not a number; counting from 0")
            return 0
