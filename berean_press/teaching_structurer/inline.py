"""Inline emphasis handling."""
from __future__ import annotations

import re

from .document import EmphasisKind, InlineFragment

# A bold span may hold one italic pair and an italic span one bold pair.
INLINE_EMPHASIS_RE = re.compile(
    r"\*\*(?P<bold>(?:\*[^*]+\*|[^*])+?)\*\*"
    r"|\*(?P<italic>(?:\*\*[^*]+\*\*|[^*])+?)\*(?!\*)"
)

_LEADING_MARKER_RE = re.compile(r"^\s*(?:#{1,6}\s*|>\s*)+")
_BOLD_STAR_RE = re.compile(r"\*\*(.+?)\*\*", re.DOTALL)
_BOLD_UNDERSCORE_RE = re.compile(r"__(.+?)__", re.DOTALL)
_ITALIC_STAR_RE = re.compile(r"\*(.+?)\*", re.DOTALL)
_ITALIC_UNDERSCORE_RE = re.compile(r"(?<!\w)_(.+?)_(?!\w)", re.DOTALL)


def strip_emphasis(text: str) -> str:
    """Return ``text`` as a flat label.

    Leading heading hashes and blockquote markers go first, then bold pairs
    (``**x**``, ``__x__``) and italic pairs (``*x*``, ``_x_``) are replaced by
    their inner text.
    """
    cleaned = _LEADING_MARKER_RE.sub("", text)
    cleaned = _BOLD_STAR_RE.sub(r"\1", cleaned)
    cleaned = _BOLD_UNDERSCORE_RE.sub(r"\1", cleaned)
    cleaned = _ITALIC_STAR_RE.sub(r"\1", cleaned)
    cleaned = _ITALIC_UNDERSCORE_RE.sub(r"\1", cleaned)
    return cleaned.strip()


def render_inline(text: str) -> tuple[InlineFragment, ...]:
    """Split ``text`` into plain and emphasised fragments in encounter order.

    Markers nested inside a span are dropped; the fragment keeps the outer
    emphasis.
    """
    fragments: list[InlineFragment] = []
    position = 0
    for match in INLINE_EMPHASIS_RE.finditer(text):
        if match.start() > position:
            fragments.append(InlineFragment(text[position : match.start()]))
        if match.group("bold") is not None:
            inner = _ITALIC_STAR_RE.sub(r"\1", match.group("bold"))
            fragments.append(InlineFragment(inner, EmphasisKind.BOLD))
        else:
            inner = _BOLD_STAR_RE.sub(r"\1", match.group("italic"))
            fragments.append(InlineFragment(inner, EmphasisKind.ITALIC))
        position = match.end()
    if position < len(text):
        fragments.append(InlineFragment(text[position:]))
    return tuple(fragments)


def fragments_text(fragments: tuple[InlineFragment, ...]) -> str:
    return "".join(fragment.text for fragment in fragments)
