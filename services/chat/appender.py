from __future__ import annotations

import html
from datetime import tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shared.chat.markup import render_inline_markup
from shared.chat.models import ChatMessage
from shared.chat.surface import ChatSurface, ShoutboxLine
from shared.logging.logger import get_logger

log = get_logger("chat.appender")


def resolve_display_timezone(name: Optional[str]) -> Optional[tzinfo]:
    """None means the local timezone of the process."""
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        log.warning(f"Unknown display timezone '{name}' ({e}); using local time")
        return None


class LineAppender:
    """
    Turns chat messages into shoutbox lines, once per message id.

    A surface that is pinned to the bottom before an append stays pinned
    afterwards; a reader who scrolled up keeps their position.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        time_format: str = "%H:%M:%S",
        display_tz: Optional[tzinfo] = None,
        scroll_threshold: int = 1,
    ):
        self.base_url = base_url
        self.time_format = time_format
        self.display_tz = display_tz
        self.scroll_threshold = scroll_threshold

    def build_line(self, message: ChatMessage) -> ShoutboxLine:
        created = message.created_at.astimezone(self.display_tz)
        user_html = (
            '<span class="shoutbox-user">&lt;'
            f'<a class="user-group-{html.escape(message.user_group)}" '
            f'href="/user/{html.escape(message.user_id)}">'
            f"{html.escape(message.user_name)}</a>&gt;</span>"
        )
        return ShoutboxLine(
            line_id=message.line_id,
            timestamp=created.strftime(self.time_format),
            user_html=user_html,
            body_html=render_inline_markup(message.message, self.base_url),
        )

    def append(self, surface: ChatSurface, message: ChatMessage) -> bool:
        if surface.has_line(message.line_id):
            return False

        pinned = surface.scroll_state().is_near_bottom(self.scroll_threshold)
        surface.append_line(self.build_line(message))

        if pinned:
            surface.scroll_to_bottom()
        return True
