"""Normalization helpers for loose prose."""
from __future__ import annotations

import logging
import re

from .options import DEFAULT_CHUNK_TARGET, DEFAULT_RUN_ON_LIMIT

logger = logging.getLogger(__name__)

SEGMENTED_NEWLINE_COUNT = 3

PARAGRAPH_WRAPPER_RE = re.compile(r"<p(?:\s[^>]*)?>(?P<inner>.*)</p\s*>", re.IGNORECASE | re.DOTALL)
PARAGRAPH_TAG_RE = re.compile(r"</?p(?:\s[^>]*)?>", re.IGNORECASE)

_CLOSING_QUOTES = "\"'”’"
BOLD_HEADING_BREAK_RE = re.compile(rf"([.!?][{_CLOSING_QUOTES}]?)\s+(?=\*\*[A-Z])")
RULE_BREAK_RE = re.compile(r"\s*(?<!\S)-{3,}(?!\S)\s*")
BULLET_AFTER_SENTENCE_RE = re.compile(rf"([.!?:][{_CLOSING_QUOTES}]?)\s+(?=\* \*\*)")
CONSECUTIVE_BULLET_RE = re.compile(r"(\* \*\*[^\n]*?)[ \t]+(?=\* \*\*)")
SENTENCE_BOUNDARY_RE = re.compile(rf"[.!?][{_CLOSING_QUOTES}]?\s+(?=[A-Z])")
BLOCK_SPLIT_RE = re.compile(r"\n{2,}")


def unwrap(raw: str) -> str:
    """Strip a single ``<p>`` wrapper enclosing the whole input."""
    trimmed = raw.strip()
    match = PARAGRAPH_WRAPPER_RE.fullmatch(trimmed)
    if not match:
        return trimmed
    inner = match.group("inner")
    if PARAGRAPH_TAG_RE.search(inner):
        return trimmed
    return inner.strip()


def insert_breaks(
    text: str,
    *,
    run_on_limit: int = DEFAULT_RUN_ON_LIMIT,
    chunk_target: int = DEFAULT_CHUNK_TARGET,
) -> str:
    """Add paragraph breaks to run-on text.

    Text with more than three line breaks is assumed to be segmented already
    and comes back untouched.
    """
    if text.count("\n") > SEGMENTED_NEWLINE_COUNT:
        return text
    updated = BOLD_HEADING_BREAK_RE.sub(r"\1\n\n", text)
    updated = RULE_BREAK_RE.sub("\n\n---\n\n", updated)
    updated = BULLET_AFTER_SENTENCE_RE.sub(r"\1\n\n", updated)
    updated = CONSECUTIVE_BULLET_RE.sub(r"\1\n\n", updated)
    blocks: list[str] = []
    for block in BLOCK_SPLIT_RE.split(updated.strip()):
        block = block.strip()
        if not block:
            continue
        if len(block) > run_on_limit and "\n" not in block:
            chunks = split_run_on(block, chunk_target=chunk_target)
            logger.debug("Split %d-character run-on block into %d chunks", len(block), len(chunks))
            blocks.extend(chunks)
        else:
            blocks.append(block)
    return "\n\n".join(blocks)


def sentence_spans(text: str) -> list[str]:
    """Cut ``text`` at sentence boundaries that sit outside parentheses."""
    sentences: list[str] = []
    depth = 0
    scanned = 0
    start = 0
    for match in SENTENCE_BOUNDARY_RE.finditer(text):
        for char in text[scanned : match.start()]:
            if char == "(":
                depth += 1
            elif char == ")":
                depth = max(depth - 1, 0)
        scanned = match.start()
        if depth > 0:
            continue
        sentence = text[start : match.end()].strip()
        if sentence:
            sentences.append(sentence)
        start = match.end()
    tail = text[start:].strip()
    if tail:
        sentences.append(tail)
    return sentences


def split_run_on(text: str, *, chunk_target: int = DEFAULT_CHUNK_TARGET) -> list[str]:
    """Group sentences into chunks, closing a chunk once it passes ``chunk_target``."""
    chunks: list[str] = []
    current = ""
    for sentence in sentence_spans(text):
        current = f"{current} {sentence}" if current else sentence
        if len(current) > chunk_target:
            chunks.append(current)
            current = ""
    if current:
        chunks.append(current)
    return chunks
