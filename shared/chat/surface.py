"""
Display surfaces for shoutbox rooms.

The pollers never touch a concrete rendering target. They talk to a
ChatSurface (line container with a scroll position) and a ChatTab (tab
header with an unread badge). MemoryShoutbox and TabStrip are the
in-process implementations used by the runtime and the tests.
"""

from __future__ import annotations

import html
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional

from shared.logging.logger import get_logger

log = get_logger("chat.surface")


@dataclass(frozen=True)
class ScrollState:
    scroll_top: int
    client_height: int
    scroll_height: int

    @property
    def overflowing(self) -> bool:
        return self.scroll_height > self.client_height

    def is_near_bottom(self, threshold: int = 1) -> bool:
        if not self.overflowing:
            return True
        distance = self.scroll_height - (self.scroll_top + self.client_height)
        return distance <= threshold


@dataclass(frozen=True)
class ShoutboxLine:
    """One rendered chat line. Append-only, never updated in place."""

    line_id: str
    timestamp: str
    user_html: str
    body_html: str

    def to_html(self) -> str:
        return (
            f'<li id="{html.escape(self.line_id)}" class="shoutbox-line">'
            f'<span class="shoutbox-date">[{self.timestamp}]</span> '
            f"{self.user_html} "
            f'<span class="shoutbox-message">{self.body_html}</span>'
            "</li>"
        )


class ChatSurface(ABC):
    """Capability interface of a room's line container."""

    @abstractmethod
    def has_line(self, line_id: str) -> bool:
        ...

    @abstractmethod
    def append_line(self, line: ShoutboxLine) -> None:
        ...

    @abstractmethod
    def scroll_state(self) -> ScrollState:
        ...

    @abstractmethod
    def scroll_to_bottom(self) -> None:
        ...


class MemoryShoutbox(ChatSurface):
    """
    Insertion-ordered line container with a line-based viewport.

    Scroll positions are measured in lines: the viewport shows
    `viewport_lines` lines starting at `scroll_top`.
    """

    def __init__(self, room_id: str, *, viewport_lines: int = 20):
        self.room_id = room_id
        self.viewport_lines = max(1, int(viewport_lines))
        self.scroll_top = 0
        self._lines: "OrderedDict[str, ShoutboxLine]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._lines)

    def has_line(self, line_id: str) -> bool:
        return line_id in self._lines

    def append_line(self, line: ShoutboxLine) -> None:
        if line.line_id in self._lines:
            raise ValueError(f"line {line.line_id} already rendered in {self.room_id}")
        self._lines[line.line_id] = line

    def scroll_state(self) -> ScrollState:
        return ScrollState(
            scroll_top=self.scroll_top,
            client_height=self.viewport_lines,
            scroll_height=len(self._lines),
        )

    def scroll_to(self, top: int) -> None:
        max_top = max(0, len(self._lines) - self.viewport_lines)
        self.scroll_top = min(max(0, int(top)), max_top)

    def scroll_to_bottom(self) -> None:
        self.scroll_to(len(self._lines))

    def lines(self) -> List[ShoutboxLine]:
        return list(self._lines.values())

    def visible_lines(self) -> List[ShoutboxLine]:
        lines = self.lines()
        return lines[self.scroll_top:self.scroll_top + self.viewport_lines]

    def render_html(self) -> str:
        items = "".join(line.to_html() for line in self._lines.values())
        return (
            f'<div id="shoutbox-{html.escape(self.room_id)}" class="shoutbox">'
            f"<ul>{items}</ul></div>"
        )


class ChatTab:
    """Tab header of one room, carrying the unread badge."""

    def __init__(self, room_id: str, *, title: str = "", active: bool = False):
        self.room_id = room_id
        self.title = title or room_id
        self.active = active
        self.badge_text = ""
        self.badge_visible = False
        self._once: List[Callable[["ChatTab"], None]] = []

    @property
    def pending_handlers(self) -> int:
        return len(self._once)

    def set_badge_text(self, text: str) -> None:
        self.badge_text = text

    def show_badge(self) -> None:
        self.badge_visible = True

    def hide_badge(self) -> None:
        self.badge_visible = False

    def once(self, callback: Callable[["ChatTab"], None]) -> None:
        """Register a handler fired on the next interaction, then dropped."""
        self._once.append(callback)

    def click(self) -> None:
        handlers, self._once = self._once, []
        for handler in handlers:
            handler(self)


class TabStrip:
    """Set of room tabs with exactly one active tab."""

    def __init__(self, tabs: Iterable[ChatTab] = ()):
        self._tabs: Dict[str, ChatTab] = {}
        for tab in tabs:
            self.add(tab)

    def add(self, tab: ChatTab) -> ChatTab:
        self._tabs[tab.room_id] = tab
        if tab.active:
            for other in self._tabs.values():
                if other is not tab:
                    other.active = False
        elif not any(t.active for t in self._tabs.values()):
            tab.active = True
        return tab

    def get(self, room_id: str) -> Optional[ChatTab]:
        return self._tabs.get(room_id)

    @property
    def active(self) -> Optional[ChatTab]:
        for tab in self._tabs.values():
            if tab.active:
                return tab
        return None

    def select(self, room_id: str) -> ChatTab:
        tab = self._tabs.get(room_id)
        if tab is None:
            raise KeyError(f"unknown chat tab: {room_id}")

        tab.click()
        for other in self._tabs.values():
            other.active = other is tab
        log.debug(f"Tab '{room_id}' selected")
        return tab
