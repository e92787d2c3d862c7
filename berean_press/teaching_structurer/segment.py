"""Block segmentation and sentence rejoin."""
from __future__ import annotations

import re
from collections.abc import Iterable

COARSE_SPLIT_RE = re.compile(r"\n[ \t]*\n\s*")
TERMINAL_RE = re.compile(r"[.!?][\"'”’]?$")
COMPLETE_ENDINGS = (".", "!", "?", '"', "”", ":", ")")
INCOMPLETE_MIN_LENGTH = 60
EMPHASIS_MARKERS = "*_"


def segment(text: str) -> list[str]:
    """Split on blank lines, then split any remaining lines apart."""
    blocks: list[str] = []
    for coarse in COARSE_SPLIT_RE.split(text):
        coarse = coarse.strip()
        if not coarse:
            continue
        if "\n" in coarse:
            blocks.extend(line.strip() for line in coarse.splitlines() if line.strip())
        else:
            blocks.append(coarse)
    return blocks


def ends_sentence(block: str) -> bool:
    return bool(TERMINAL_RE.search(block.rstrip(EMPHASIS_MARKERS)))


def is_incomplete(block: str) -> bool:
    """True for a block that looks cut off mid-sentence.

    Trailing emphasis markers are ignored. It must end in a comma or in none
    of ``. ! ? " : )``, and be either longer than 60 characters or start
    lowercase. Short capitalised lines are left alone so headings are not
    glued onto the next paragraph.
    """
    if not block:
        return False
    ending = block.rstrip(EMPHASIS_MARKERS)
    dangling = ending.endswith(",") or not ending.endswith(COMPLETE_ENDINGS)
    return dangling and (len(block) > INCOMPLETE_MIN_LENGTH or block[0].islower())


def rejoin(blocks: Iterable[str]) -> list[str]:
    """Merge blocks that were broken mid-sentence."""
    result: list[str] = []
    pending = ""
    for block in blocks:
        if pending:
            pending = f"{pending} {block}"
            if ends_sentence(block):
                result.append(pending)
                pending = ""
            continue
        if is_incomplete(block):
            pending = block
        else:
            result.append(block)
    if pending:
        result.append(pending)
    return result
