"""Stateful block classification.

Candidates are folded through a small section state machine. The state is an
immutable :class:`SectionState`; :func:`classify_step` maps one state and one
candidate to the next state and at most one block, and :func:`classify_blocks`
threads it through the document. Attribution lines are deduplicated
afterwards by :func:`remove_all_but_last_attribution`.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace

from .document import Block, BlockKind, Candidate
from .inline import strip_emphasis
from .options import StructureOptions

logger = logging.getLogger(__name__)

HEADING_MAX_LENGTH = 80
FALLBACK_MIN_LENGTH = 5
FALLBACK_MAX_LENGTH = 60
ALL_CAPS_MIN_LENGTH = 3

RULE_RE = re.compile(r"\s*(?:-{3,}|\*{3,}|_{3,})\s*")
LEVEL3_RE = re.compile(r"^###\s+(?P<label>.+)$", re.DOTALL)
LEVEL2_RE = re.compile(r"^##\s+(?P<label>.+)$", re.DOTALL)
BOLD_LINE_RE = re.compile(r"^\*\*(?P<label>(?:(?!\*\*).)+)\*\*$", re.DOTALL)
ORDINAL_RE = re.compile(r"^(?:\d+|[IVXLCDM]+)\.\s+\S")
ALL_CAPS_RE = re.compile(r"[A-Z0-9][A-Z0-9\s\-:,.'&?!()]*")
BULLET_RE = re.compile(r"^[-*]\s+(?P<text>.*)$", re.DOTALL)

SUPPRESSED_SECTION_PATTERNS = (
    re.compile(r"^reflective questions\b", re.IGNORECASE),
    re.compile(r"^have you\b.*\bpondered\b", re.IGNORECASE),
    re.compile(r"^questions to consider\b", re.IGNORECASE),
)

CONVERSATIONAL_MARKERS = (
    "let's",
    "let us",
    "we will",
    "we'll",
    "we can",
    "we see",
    "here is",
    "here's",
    "there are",
    "there is",
    "this is",
    "you will",
    "i will",
)

TITLE_STOPWORDS = {
    "a",
    "an",
    "and",
    "as",
    "at",
    "by",
    "for",
    "from",
    "in",
    "into",
    "of",
    "on",
    "or",
    "the",
    "to",
    "with",
}


@dataclass(frozen=True)
class SectionState:
    in_callout: bool = False
    in_suppressed: bool = False


def is_horizontal_rule(text: str) -> bool:
    """Block is nothing but a run of 3+ ``-``, ``*`` or ``_``."""
    return bool(RULE_RE.fullmatch(text))


def is_suppressed_opener(text: str) -> bool:
    """Label starts a section that never reaches the output.

    Matches "reflective questions", "have you ... pondered" and "questions to
    consider" case-insensitively on a label of at most 80 characters.
    """
    label = strip_emphasis(text).rstrip(":?").strip()
    if not label or len(label) > HEADING_MAX_LENGTH:
        return False
    return any(pattern.search(label) for pattern in SUPPRESSED_SECTION_PATTERNS)


def is_bold_heading(text: str) -> bool:
    """Line fully wrapped in one ``**`` pair with inner text under 80 characters."""
    match = BOLD_LINE_RE.match(text)
    return bool(match) and len(match.group("label").strip()) < HEADING_MAX_LENGTH


def is_major_heading(candidate: Candidate) -> bool:
    """Bold-wrapped short line, ``##``/``###`` line, or a tagged top-level heading.

    A tagged paragraph counts when its whole text is one bold pair.
    """
    text = candidate.text.strip()
    if candidate.hint is BlockKind.PARAGRAPH:
        return is_bold_heading(text)
    if candidate.hint is not None:
        return candidate.hint is BlockKind.HEADING
    return is_bold_heading(text) or bool(LEVEL2_RE.match(text) or LEVEL3_RE.match(text))


def is_attribution(text: str, phrase: str) -> bool:
    return phrase.lower() in text.lower()


def is_ordinal_heading(text: str) -> bool:
    """``1.`` or ``IV.`` followed by text, under 80 characters, one line."""
    return len(text) < HEADING_MAX_LENGTH and "\n" not in text and bool(ORDINAL_RE.match(text))


def is_all_caps_heading(text: str) -> bool:
    """Over 3 and under 80 characters of uppercase letters, digits, spaces and light punctuation."""
    if not ALL_CAPS_MIN_LENGTH < len(text) < HEADING_MAX_LENGTH:
        return False
    if not any(char.isalpha() for char in text):
        return False
    return text == text.upper() and bool(ALL_CAPS_RE.fullmatch(text))


def is_title_case(text: str) -> bool:
    """Every word after the first is capitalised unless it is a short stopword.

    Keeps sentence-cased prose such as "Intro paragraph" out of the fallback
    heading rule.
    """
    words = [re.sub(r"[^A-Za-z0-9']", "", word) for word in text.split()]
    words = [word for word in words if word]
    if not words:
        return False
    for index, word in enumerate(words):
        if index > 0 and word.lower() in TITLE_STOPWORDS:
            continue
        if not (word[0].isupper() or word[0].isdigit()):
            return False
    return True


def is_fallback_heading(text: str) -> bool:
    """Short title-cased line that does not read like a sentence.

    Length 5 to 60, no trailing ``. , ? !``, starts uppercase with title-cased
    words, and none of the conversational markers ("let's", "we will",
    "here is", "there are", ...).
    """
    if not FALLBACK_MIN_LENGTH <= len(text) <= FALLBACK_MAX_LENGTH:
        return False
    if text.endswith((".", ",", "?", "!")):
        return False
    if not text[0].isupper() or not is_title_case(text):
        return False
    lowered = text.lower().replace("’", "'")
    return not any(marker in lowered for marker in CONVERSATIONAL_MARKERS)


def detect_heading(text: str) -> str | None:
    """Return the heading label for ``text`` or ``None`` if it is not a heading."""
    for pattern in (LEVEL3_RE, LEVEL2_RE):
        match = pattern.match(text)
        if match:
            return strip_emphasis(match.group("label"))
    if is_bold_heading(text):
        return strip_emphasis(text)
    if is_ordinal_heading(text) or is_all_caps_heading(text) or is_fallback_heading(text):
        return strip_emphasis(text)
    return None


def detect_bullet(text: str) -> str | None:
    """``- `` or ``* `` prefix; returns the text with the marker removed."""
    match = BULLET_RE.match(text)
    if not match:
        return None
    return match.group("text").strip()


def enters_callout(label: str, options: StructureOptions) -> bool:
    lowered = label.lower()
    return any(lowered.startswith(prefix) for prefix in options.callout_prefixes)


def classify_step(
    state: SectionState,
    candidate: Candidate,
    options: StructureOptions,
) -> tuple[SectionState, Block | None]:
    text = candidate.text.strip()
    if not text:
        return state, None
    if is_horizontal_rule(text):
        return state, None
    if state.in_suppressed:
        if not is_major_heading(candidate):
            return state, None
        state = replace(state, in_suppressed=False)
    elif is_suppressed_opener(text):
        return replace(state, in_suppressed=True), None

    if is_attribution(text, options.attribution_phrase):
        return state, Block(BlockKind.PARAGRAPH, text)

    kind = BlockKind.HEADING
    label: str | None = None
    if candidate.hint is None:
        label = detect_heading(text)
    elif candidate.hint.is_heading:
        kind = candidate.hint
        label = strip_emphasis(text)
    elif candidate.hint is BlockKind.PARAGRAPH and is_bold_heading(text):
        label = strip_emphasis(text)
    if label is not None:
        state = replace(state, in_callout=enters_callout(label, options))
        return state, Block(kind, label)

    if candidate.hint is BlockKind.BULLET:
        return state, Block(BlockKind.BULLET, text)
    if candidate.hint is None:
        bullet = detect_bullet(text)
        if bullet is not None:
            return state, Block(BlockKind.BULLET, bullet)

    if state.in_callout or candidate.hint is BlockKind.ITALIC_PARAGRAPH:
        return state, Block(BlockKind.ITALIC_PARAGRAPH, text)
    return state, Block(BlockKind.PARAGRAPH, text)


def remove_all_but_last_attribution(blocks: Sequence[Block], phrase: str) -> list[Block]:
    """Drop every attribution paragraph except the last one."""
    positions = [
        index
        for index, block in enumerate(blocks)
        if block.kind is BlockKind.PARAGRAPH and is_attribution(block.text, phrase)
    ]
    if len(positions) <= 1:
        return list(blocks)
    logger.debug("Removing %d duplicate attribution lines", len(positions) - 1)
    dropped = set(positions[:-1])
    return [block for index, block in enumerate(blocks) if index not in dropped]


def classify_blocks(
    candidates: Iterable[Candidate],
    options: StructureOptions | None = None,
) -> tuple[Block, ...]:
    """Classify ``candidates`` in reading order and renumber the survivors."""
    options = options or StructureOptions()
    state = SectionState()
    emitted: list[Block] = []
    dropped = 0
    for candidate in candidates:
        state, block = classify_step(state, candidate, options)
        if block is None:
            dropped += 1
            continue
        emitted.append(block)
    if dropped:
        logger.debug("Dropped %d rule or suppressed blocks", dropped)
    survivors = remove_all_but_last_attribution(emitted, options.attribution_phrase)
    return tuple(replace(block, original_index=index) for index, block in enumerate(survivors))
