"""Structuring pipeline and source loading for teaching documents."""
from __future__ import annotations

import logging
from collections.abc import Iterator
from collections import Counter
from dataclasses import dataclass, field, replace
from functools import lru_cache
from hashlib import sha256
from pathlib import Path

from docx import Document
from docx.text.run import Run

from .classifier import classify_blocks
from .document import Candidate, DocumentFormat, StructuredDocument
from .formats import classify
from .markup import extract_candidates
from .normalize import insert_breaks, unwrap
from .options import StructureOptions
from .segment import rejoin, segment

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = {
    ".md",
    ".markdown",
    ".txt",
    ".html",
    ".htm",
    ".docx",
}

DEFAULT_OPTIONS = StructureOptions()


@dataclass
class StructuredFile:
    """A structured document together with where it came from."""

    source_file: str
    document: StructuredDocument
    file_sha: str | None = None

    def to_dict(self) -> dict[str, object]:
        data = self.document.to_dict()
        data["source_file"] = self.source_file
        data["file_sha256"] = self.file_sha
        return data


@dataclass
class FileScanResult:
    """Metadata captured while structuring a single file."""

    file: str
    sha256: str
    mtime: int
    block_count: int
    format: str | None = None
    output_sha256: str | None = None
    kind_counts: dict[str, int] = field(default_factory=dict)
    status: str = "pending"
    error: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "file": self.file,
            "sha256": self.sha256,
            "mtime": self.mtime,
            "block_count": self.block_count,
            "format": self.format,
            "output_sha256": self.output_sha256,
            "kind_counts": dict(self.kind_counts),
            "status": self.status,
            "error": self.error,
        }


def loose_candidates(raw: str, options: StructureOptions = DEFAULT_OPTIONS) -> list[Candidate]:
    text = unwrap(raw)
    text = insert_breaks(
        text,
        run_on_limit=options.run_on_limit,
        chunk_target=options.chunk_target,
    )
    return [Candidate(block) for block in rejoin(segment(text))]


@lru_cache(maxsize=256)
def _structure_cached(raw: str, options: StructureOptions) -> StructuredDocument:
    if not raw.strip():
        return StructuredDocument()
    detected = classify(raw)
    logger.debug("Classified %d characters of input as %s", len(raw), detected.value)
    if detected is DocumentFormat.MARKED:
        candidates = extract_candidates(raw)
    else:
        candidates = loose_candidates(raw, options)
    blocks = classify_blocks(candidates, options)
    return StructuredDocument(blocks=blocks, format=detected)


def structure_document(
    raw: str,
    title: str | None = None,
    options: StructureOptions | None = None,
) -> StructuredDocument:
    """Turn raw teaching content into an ordered sequence of typed blocks.

    The result depends only on ``raw`` and ``options``; repeated calls with
    the same input are served from a cache. ``title`` is carried along for
    display and plays no part in structuring.
    """
    document = _structure_cached(raw, options or DEFAULT_OPTIONS)
    if title is not None:
        document = replace(document, title=title)
    return document


def iter_supported_files(root: Path) -> Iterator[Path]:
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        if any(part == "_index" for part in path.parts):
            continue
        if path.suffix.lower() in SUPPORTED_EXTENSIONS:
            yield path


def read_raw_text(path: Path) -> str | None:
    suffix = path.suffix.lower()
    if suffix in {".md", ".markdown", ".txt", ".html", ".htm"}:
        return path.read_text(encoding="utf-8", errors="ignore")
    if suffix == ".docx":
        return read_docx_text(path)
    return None


def _docx_run_text(run: Run) -> str:
    text = run.text
    if not text.strip():
        return text
    if run.bold:
        return f"**{text.strip()}**"
    if run.italic:
        return f"*{text.strip()}*"
    return text


def read_docx_text(path: Path) -> str:
    """Flatten a .docx file into loose prose, one paragraph per block."""
    document = Document(str(path))
    paragraphs: list[str] = []
    for paragraph in document.paragraphs:
        text = "".join(_docx_run_text(run) for run in paragraph.runs).strip()
        if not text:
            continue
        style_name = (paragraph.style.name if paragraph.style is not None else "") or ""
        if style_name.lower().startswith("list"):
            text = f"- {text}"
        elif style_name.lower().startswith("heading") and not text.startswith("**"):
            text = f"## {text}"
        paragraphs.append(text)
    return "\n\n".join(paragraphs)


def title_from_path(path: Path) -> str:
    return path.stem.replace("_", " ").replace("-", " ").strip().title()


def scan_directory(
    target_dir: Path,
    base_path: Path,
    options: StructureOptions | None = None,
) -> tuple[list[StructuredFile], dict[str, FileScanResult]]:
    documents: list[StructuredFile] = []
    files: dict[str, FileScanResult] = {}
    for file_path in iter_supported_files(target_dir):
        rel_file = str(file_path.relative_to(base_path).as_posix())
        try:
            raw_bytes = file_path.read_bytes()
        except OSError as exc:
            logger.error("Failed to read %s: %s", file_path, exc)
            files[rel_file] = FileScanResult(
                file=rel_file,
                sha256="",
                mtime=0,
                block_count=0,
                status="error",
                error=str(exc),
            )
            continue
        file_sha = sha256(raw_bytes).hexdigest()
        mtime = int(file_path.stat().st_mtime)
        try:
            raw = read_raw_text(file_path) or ""
        except Exception as exc:  # python-docx raises a variety of errors for bad archives
            logger.warning("Failed to load %s: %s", file_path, exc)
            files[rel_file] = FileScanResult(
                file=rel_file,
                sha256=file_sha,
                mtime=mtime,
                block_count=0,
                status="error",
                error=str(exc),
            )
            continue
        document = structure_document(raw, title=title_from_path(file_path), options=options)
        documents.append(StructuredFile(source_file=rel_file, document=document, file_sha=file_sha))
        files[rel_file] = FileScanResult(
            file=rel_file,
            sha256=file_sha,
            mtime=mtime,
            block_count=len(document),
            format=document.format.value,
            output_sha256=document.output_digest(),
            kind_counts=dict(Counter(kind.value for kind in document.kinds())),
        )
    return documents, files
