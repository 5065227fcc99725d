from __future__ import annotations

from services.chat.badges import BadgeTracker
from shared.chat.models import ChatRoom
from shared.chat.surface import ChatTab, TabStrip


def _inactive_pair():
    strip = TabStrip([ChatTab("public", active=True), ChatTab("team")])
    return strip, ChatRoom("team", 2), strip.get("team")


def test_increment_shows_running_total():
    tracker = BadgeTracker()
    _, room, tab = _inactive_pair()

    tracker.increment(room, tab, 1)
    tracker.increment(room, tab, 2)

    assert tab.badge_text == "3"
    assert tab.badge_visible is True
    assert room.unread_count == 3
    assert tab.pending_handlers == 1


def test_active_tab_is_ignored():
    tracker = BadgeTracker()
    room, tab = ChatRoom("public", 1), ChatTab("public", active=True)

    tracker.increment(room, tab, 4)

    assert tab.badge_text == ""
    assert tab.badge_visible is False
    assert room.unread_count == 0


def test_unparseable_badge_counts_from_zero():
    tracker = BadgeTracker()
    _, room, tab = _inactive_pair()
    tab.set_badge_text("lots")

    tracker.increment(room, tab, 2)

    assert tab.badge_text == "2"


def test_first_interaction_clears_once():
    tracker = BadgeTracker()
    strip, room, tab = _inactive_pair()
    tracker.increment(room, tab, 5)

    strip.select("team")

    assert tab.badge_visible is False
    assert room.unread_count == 0
    assert tab.pending_handlers == 0

    strip.select("public")
    tracker.increment(room, tab, 1)
    assert tab.badge_text == "1"
    assert tab.badge_visible is True


def test_zero_delta_is_a_no_op():
    tracker = BadgeTracker()
    _, room, tab = _inactive_pair()

    tracker.increment(room, tab, 0)

    assert tab.badge_visible is False
    assert tab.pending_handlers == 0
