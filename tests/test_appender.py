from __future__ import annotations

from datetime import timedelta, timezone

from services.chat.appender import LineAppender, resolve_display_timezone
from shared.chat.models import ChatMessage
from shared.chat.surface import MemoryShoutbox
from tests.helpers import make_message


def _message(message_id: str, **kwargs) -> ChatMessage:
    return ChatMessage.from_payload(make_message(message_id, **kwargs))


def test_same_message_twice_renders_one_line(appender):
    box = MemoryShoutbox("public")
    message = _message("42")

    assert appender.append(box, message) is True
    assert appender.append(box, message) is False

    assert [line.line_id for line in box.lines()] == ["cm-42"]


def test_line_markup(appender):
    box = MemoryShoutbox("public")
    appender.append(
        box,
        _message(
            "7",
            created_at="2024-05-01T08:09:10Z",
            user_id="u-9",
            user_name="<bob>",
            user_group="g-mod",
            message="**hi**",
        ),
    )

    html = box.lines()[0].to_html()
    assert html.startswith('<li id="cm-7" class="shoutbox-line">')
    assert '<span class="shoutbox-date">[08:09:10]</span>' in html
    assert '<a class="user-group-g-mod" href="/user/u-9">&lt;bob&gt;</a>' in html
    assert '<span class="shoutbox-message"><strong>hi</strong></span>' in html


def test_timestamp_uses_display_timezone():
    appender = LineAppender(display_tz=timezone(timedelta(hours=2)))
    line = appender.build_line(_message("1", created_at="2024-05-01T22:30:05Z"))
    assert line.timestamp == "00:30:05"


def test_lines_keep_insertion_order(appender):
    box = MemoryShoutbox("public")
    for message_id in ("a", "b", "c"):
        appender.append(box, _message(message_id))

    assert [line.line_id for line in box.lines()] == ["cm-a", "cm-b", "cm-c"]


def test_pinned_reader_follows_new_lines(appender):
    box = MemoryShoutbox("public", viewport_lines=2)
    for message_id in ("1", "2", "3", "4"):
        appender.append(box, _message(message_id))

    assert box.scroll_top == 2
    assert [line.line_id for line in box.visible_lines()] == ["cm-3", "cm-4"]


def test_scrolled_up_reader_is_not_moved(appender):
    box = MemoryShoutbox("public", viewport_lines=2)
    for message_id in ("1", "2", "3", "4"):
        appender.append(box, _message(message_id))

    box.scroll_to(0)
    appender.append(box, _message("5"))

    assert box.scroll_top == 0
    assert len(box) == 5


def test_unknown_timezone_falls_back_to_local():
    assert resolve_display_timezone("Not/AZone") is None
    assert resolve_display_timezone(None) is None
