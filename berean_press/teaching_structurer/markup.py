"""Candidate extraction from block-tagged markup."""
from __future__ import annotations

import re

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from .document import BlockKind, Candidate

TAG_HINTS: dict[str, BlockKind] = {
    "h1": BlockKind.HEADING,
    "h2": BlockKind.HEADING,
    "h3": BlockKind.HEADING,
    "h4": BlockKind.SUBHEADING,
    "h5": BlockKind.SUBHEADING,
    "h6": BlockKind.SUBHEADING,
    "li": BlockKind.BULLET,
    "blockquote": BlockKind.ITALIC_PARAGRAPH,
}
LEAF_TAGS = {"p", "li", "blockquote", "div", "pre"} | set(TAG_HINTS)
CONTAINER_TAGS = {"ul", "ol", "section", "article", "main", "body", "html", "div", "[document]"}
NOISE_TAGS = {"script", "style", "noscript", "head"}
BOLD_TAGS = {"strong", "b"}
ITALIC_TAGS = {"em", "i"}

_WHITESPACE_RE = re.compile(r"\s+")


def inline_markdown(element: Tag | NavigableString) -> str:
    """Flatten an element to text, keeping bold/italic as ``**``/``*`` markers."""
    if isinstance(element, Comment):
        return ""
    if isinstance(element, NavigableString):
        return str(element)
    name = element.name
    if name in NOISE_TAGS:
        return ""
    if name == "br":
        return " "
    inner = "".join(inline_markdown(child) for child in element.children)
    if not inner.strip():
        return inner
    if name in BOLD_TAGS:
        return f"**{inner.strip()}**"
    if name in ITALIC_TAGS:
        return f"*{inner.strip()}*"
    return inner


def _clean(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def _has_block_child(element: Tag) -> bool:
    return any(isinstance(child, Tag) and child.name in LEAF_TAGS for child in element.children)


def extract_candidates(markup: str) -> list[Candidate]:
    """Walk the markup and emit one hinted candidate per leaf block.

    Headings and leaf blocks emit their whole text; containers with block
    children recurse instead, so no text is emitted twice. Loose text
    directly inside a container becomes a paragraph.
    """
    soup = BeautifulSoup(markup, "lxml")
    root = soup.body or soup
    candidates: list[Candidate] = []

    def emit(text: str, hint: BlockKind) -> None:
        cleaned = _clean(text)
        if cleaned:
            candidates.append(Candidate(cleaned, hint))

    def walk(element: Tag) -> None:
        name = element.name
        if name in NOISE_TAGS or name == "hr":
            return
        hint = TAG_HINTS.get(name, BlockKind.PARAGRAPH)
        if name in TAG_HINTS or (name in LEAF_TAGS and not _has_block_child(element)):
            emit(inline_markdown(element), hint)
            return
        if name not in CONTAINER_TAGS and name not in LEAF_TAGS:
            emit(inline_markdown(element), BlockKind.PARAGRAPH)
            return
        loose: list[str] = []
        for child in element.children:
            if isinstance(child, Tag) and (child.name in LEAF_TAGS or child.name in CONTAINER_TAGS):
                emit("".join(loose), BlockKind.PARAGRAPH)
                loose = []
                walk(child)
            elif isinstance(child, Tag) and child.name in NOISE_TAGS | {"hr"}:
                continue
            else:
                loose.append(inline_markdown(child))
        emit("".join(loose), BlockKind.PARAGRAPH)

    walk(root)
    return candidates
