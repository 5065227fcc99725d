from __future__ import annotations

import pytest

from shared.chat.markup import (
    MARKUP_PIPELINE,
    LinkResolutionError,
    render_inline_markup,
    resolve_link,
)

BASE = "http://tracker.test/chat"


def test_all_inline_styles_in_order():
    rendered = render_inline_markup("**a** *b* `c` [d](http://x/y)")
    assert rendered == (
        '<strong>a</strong> <em>b</em> <code>c</code> '
        '<a href="http://x/y" target="_blank">d</a>'
    )


def test_angle_brackets_are_escaped_first():
    assert render_inline_markup("<script>") == "&lt;script&gt;"


def test_escaped_markup_is_not_revived():
    rendered = render_inline_markup("<b>**x**</b>")
    assert rendered == "&lt;b&gt;<strong>x</strong>&lt;/b&gt;"
    assert "<b>" not in rendered


def test_underscore_variants():
    assert render_inline_markup("__bold__ _it_") == "<strong>bold</strong> <em>it</em>"


def test_strong_runs_before_emphasis():
    assert render_inline_markup("**bold**") == "<strong>bold</strong>"
    assert render_inline_markup("**a** and *b*") == "<strong>a</strong> and <em>b</em>"


def test_spans_do_not_cross_lines():
    assert render_inline_markup("*a\nb*") == "*a\nb*"
    assert render_inline_markup("`a\nb`") == "`a\nb`"


def test_unbalanced_markers_stay_literal():
    assert render_inline_markup("2 * 3 = 6") == "2 * 3 = 6"


def test_relative_link_resolves_against_page():
    rendered = render_inline_markup("[rules](/static/rules)", BASE)
    assert rendered == '<a href="http://tracker.test/static/rules" target="_blank">rules</a>'


def test_quotes_in_target_stay_inside_href():
    rendered = render_inline_markup('[x](http://a"onmouseover="alert/)', "http://t/")
    assert rendered == '<a href="http://a&quot;onmouseover=&quot;alert/" target="_blank">x</a>'

    rendered = render_inline_markup('[x](//a"onmouseover="alert/)', "http://t/")
    assert rendered.count('"') == 4
    assert 'onmouseover="' not in rendered


def test_query_ampersand_is_attribute_escaped():
    rendered = render_inline_markup("[q](/search?a=1&b=2)", BASE)
    assert rendered == '<a href="http://tracker.test/search?a=1&amp;b=2" target="_blank">q</a>'


def test_unresolvable_link_is_left_verbatim():
    text = "[bad](not a url with spaces and no scheme)"
    assert render_inline_markup(text) == text
    assert render_inline_markup(text, "relative/base") == text


def test_script_scheme_is_left_verbatim():
    text = "[x](javascript:alert(1))"
    assert render_inline_markup(text, BASE) == text


def test_empty_message():
    assert render_inline_markup("") == ""


def test_pipeline_order_is_fixed():
    assert [name for name, _ in MARKUP_PIPELINE] == [
        "escape",
        "strong",
        "emphasis",
        "code",
        "links",
    ]


class TestResolveLink:
    def test_absolute_url_is_kept(self):
        assert resolve_link("https://example.org/a?b=c", BASE) == "https://example.org/a?b=c"

    def test_mailto_is_allowed(self):
        assert resolve_link("mailto:staff@example.org") == "mailto:staff@example.org"

    def test_relative_without_base_fails(self):
        with pytest.raises(LinkResolutionError):
            resolve_link("/torrent/1")

    def test_disallowed_scheme_fails(self):
        with pytest.raises(LinkResolutionError):
            resolve_link("data:text/html,hi", BASE)
