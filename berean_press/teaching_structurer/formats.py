"""Format detection for incoming teaching content."""
from __future__ import annotations

import re

from .document import DocumentFormat

PARAGRAPH_CLOSE_RE = re.compile(r"</p\s*>", re.IGNORECASE)
SUBHEADING_TAG_RE = re.compile(r"<h[2-6](?:\s[^>]*)?>", re.IGNORECASE)
LIST_TAG_RE = re.compile(r"<(?:ul|ol|li|blockquote)(?:\s[^>]*)?>", re.IGNORECASE)


def classify(raw: str) -> DocumentFormat:
    """Decide whether ``raw`` is block-tagged markup or loose prose.

    Two or more ``</p>`` closers, any ``<h2>``-``<h6>`` or any list/blockquote
    tag mark the input as structured. A single paragraph wrapper does not.
    """
    if len(PARAGRAPH_CLOSE_RE.findall(raw)) >= 2:
        return DocumentFormat.MARKED
    if SUBHEADING_TAG_RE.search(raw) or LIST_TAG_RE.search(raw):
        return DocumentFormat.MARKED
    return DocumentFormat.LOOSE
