"""
Inline markup renderer for shoutbox messages.

Raw message text is turned into a small, safe HTML fragment by a fixed
pipeline of substitutions. Order matters: angle brackets are escaped before
any tag is produced, and strong emphasis is consumed before single-marker
emphasis.
"""

from __future__ import annotations

import html
import re
from typing import Callable, Optional, Tuple

import httpx

from shared.logging.logger import get_logger

log = get_logger("chat.markup")

ALLOWED_LINK_SCHEMES = frozenset({"http", "https", "ftp", "mailto"})

_STRONG_RE = re.compile(r"(\*\*|__)(.+?)\1")
_EMPHASIS_RE = re.compile(r"(\*|_)(.+?)\1")
_CODE_RE = re.compile(r"`(.+?)`")
_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")


class LinkResolutionError(ValueError):
    """A link target could not be turned into an absolute, allowed URL."""


def resolve_link(url: str, base_url: Optional[str] = None) -> str:
    """
    Resolve ``url`` against ``base_url`` the way a browser resolves an
    anchor against the current page location.
    """
    try:
        target = httpx.URL(url.strip())
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise LinkResolutionError(f"invalid link target {url!r}: {e}") from e

    if not target.scheme:
        if not base_url:
            raise LinkResolutionError(f"relative link {url!r} without a base URL")
        try:
            base = httpx.URL(base_url)
            if not base.is_absolute_url:
                raise LinkResolutionError(f"base URL {base_url!r} is not absolute")
            target = base.join(target)
        except (httpx.InvalidURL, TypeError, ValueError) as e:
            raise LinkResolutionError(f"cannot resolve {url!r} against {base_url!r}: {e}") from e

    if target.scheme not in ALLOWED_LINK_SCHEMES:
        raise LinkResolutionError(f"link scheme {target.scheme!r} is not allowed")
    if target.scheme in {"http", "https", "ftp"} and not target.host:
        raise LinkResolutionError(f"link {url!r} has no host")

    return str(target)


def _escape_angle_brackets(text: str, base_url: Optional[str]) -> str:
    return text.replace("<", "&lt;").replace(">", "&gt;")


def _strong(text: str, base_url: Optional[str]) -> str:
    return _STRONG_RE.sub(r"<strong>\2</strong>", text)


def _emphasis(text: str, base_url: Optional[str]) -> str:
    return _EMPHASIS_RE.sub(r"<em>\2</em>", text)


def _code(text: str, base_url: Optional[str]) -> str:
    return _CODE_RE.sub(r"<code>\1</code>", text)


def _links(text: str, base_url: Optional[str]) -> str:
    def _replace(match: re.Match) -> str:
        label, url = match.group(1), match.group(2)
        try:
            href = resolve_link(url, base_url)
        except LinkResolutionError as e:
            log.debug(f"Leaving link as text: {e}")
            return match.group(0)
        return f'<a href="{html.escape(href, quote=True)}" target="_blank">{label}</a>'

    return _LINK_RE.sub(_replace, text)


MarkupStep = Callable[[str, Optional[str]], str]

MARKUP_PIPELINE: Tuple[Tuple[str, MarkupStep], ...] = (
    ("escape", _escape_angle_brackets),
    ("strong", _strong),
    ("emphasis", _emphasis),
    ("code", _code),
    ("links", _links),
)


def render_inline_markup(text: str, base_url: Optional[str] = None) -> str:
    """
    Render a raw chat message into limited HTML.

    Supports ``**strong**``/``__strong__``, ``*em*``/``_em_``,
    ``code`` in backticks and ``[label](url)`` links. Must be called once
    per raw message; rendering already rendered HTML is not supported.
    """
    rendered = text or ""
    for _name, step in MARKUP_PIPELINE:
        rendered = step(rendered, base_url)
    return rendered
