"""Teaching structurer package."""
from __future__ import annotations

from . import classifier, formats, inline, manifest, markup, normalize, parser, renderer, segment
from .document import (
    Block,
    BlockKind,
    DocumentFormat,
    EmphasisKind,
    InlineFragment,
    StructuredDocument,
)
from .options import StructureOptions, resolve_options
from .parser import structure_document

__all__ = [
    "classifier",
    "formats",
    "inline",
    "manifest",
    "markup",
    "normalize",
    "parser",
    "renderer",
    "segment",
    "Block",
    "BlockKind",
    "DocumentFormat",
    "EmphasisKind",
    "InlineFragment",
    "StructuredDocument",
    "StructureOptions",
    "resolve_options",
    "structure_document",
]
