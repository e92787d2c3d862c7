"""Value types produced by the structuring pipeline."""
from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from hashlib import sha256


class DocumentFormat(str, Enum):
    MARKED = "marked"
    LOOSE = "loose"


class BlockKind(str, Enum):
    HEADING = "heading"
    SUBHEADING = "subheading"
    PARAGRAPH = "paragraph"
    BULLET = "bullet"
    ITALIC_PARAGRAPH = "italic_paragraph"

    @property
    def is_heading(self) -> bool:
        return self in {BlockKind.HEADING, BlockKind.SUBHEADING}


class EmphasisKind(str, Enum):
    BOLD = "bold"
    ITALIC = "italic"


@dataclass(frozen=True)
class InlineFragment:
    """A run of text inside a block, optionally emphasised."""

    text: str
    emphasis: EmphasisKind | None = None

    @property
    def is_plain(self) -> bool:
        return self.emphasis is None


@dataclass(frozen=True)
class Candidate:
    """A segmented block awaiting classification.

    ``hint`` is set when the source markup already states the block kind
    (block-tagged input); loose prose leaves it empty.
    """

    text: str
    hint: BlockKind | None = None


@dataclass(frozen=True)
class Block:
    kind: BlockKind
    text: str
    original_index: int = 0

    def fragments(self) -> tuple[InlineFragment, ...]:
        from .inline import render_inline

        if self.kind.is_heading:
            return (InlineFragment(self.text),)
        return render_inline(self.text)

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "text": self.text,
            "original_index": self.original_index,
        }


@dataclass(frozen=True)
class StructuredDocument:
    """Ordered, immutable sequence of blocks in reading order."""

    blocks: tuple[Block, ...] = ()
    format: DocumentFormat = DocumentFormat.LOOSE
    title: str | None = field(default=None, compare=False)

    def __iter__(self) -> Iterator[Block]:
        return iter(self.blocks)

    def __len__(self) -> int:
        return len(self.blocks)

    def __getitem__(self, index: int) -> Block:
        return self.blocks[index]

    def kinds(self) -> list[BlockKind]:
        return [block.kind for block in self.blocks]

    def first_paragraph(self) -> Block | None:
        for block in self.blocks:
            if block.kind is BlockKind.PARAGRAPH:
                return block
        return None

    def to_dict(self) -> dict[str, object]:
        return {
            "title": self.title,
            "format": self.format.value,
            "blocks": [block.to_dict() for block in self.blocks],
        }

    def output_digest(self) -> str:
        """Hash of the block kinds and texts; the title plays no part."""
        payload = json.dumps(
            [[block.kind.value, block.text] for block in self.blocks],
            ensure_ascii=False,
        )
        return sha256(payload.encode("utf-8")).hexdigest()
