"""Rendering of structured teachings for print/export and the index summary."""
from __future__ import annotations

import html
from collections import Counter
from collections.abc import Iterable
from pathlib import Path

from .document import Block, BlockKind, EmphasisKind, StructuredDocument
from .manifest import now_iso
from .parser import StructuredFile

PRINT_STYLES = """
body { font-family: 'Source Sans 3', sans-serif; line-height: 1.7; color: #1a1a1a;
       padding: 40px; max-width: 800px; margin: 0 auto; }
h1, h2, h3 { font-family: 'Playfair Display', serif; }
h2.heading { font-size: 20px; margin-top: 32px; margin-bottom: 12px; }
h3.subheading { font-size: 18px; margin-top: 24px; margin-bottom: 12px; }
p { margin-bottom: 16px; }
p.drop-cap::first-letter { float: left; font-size: 3.2em; line-height: 0.9; padding-right: 6px; }
p.callout { font-style: italic; }
hr.section-divider { border: none; text-align: center; margin: 32px 0; }
hr.section-divider::after { content: "\\2766"; color: #888; }
@media print { body { padding: 20px; } }
""".strip()


def render_fragments(block: Block) -> str:
    parts: list[str] = []
    for fragment in block.fragments():
        text = html.escape(fragment.text)
        if fragment.emphasis is EmphasisKind.BOLD:
            parts.append(f"<strong>{text}</strong>")
        elif fragment.emphasis is EmphasisKind.ITALIC:
            parts.append(f"<em>{text}</em>")
        else:
            parts.append(text)
    return "".join(parts)


def render_body(document: StructuredDocument) -> list[str]:
    """Map each block to its element, grouping bullets and dividing sections."""
    lines: list[str] = []
    first_paragraph = document.first_paragraph()
    in_list = False
    for block in document:
        if in_list and block.kind is not BlockKind.BULLET:
            lines.append("</ul>")
            in_list = False
        if block.kind is BlockKind.HEADING:
            if lines:
                lines.append('<hr class="section-divider">')
            lines.append(f'<h2 class="heading">{html.escape(block.text)}</h2>')
        elif block.kind is BlockKind.SUBHEADING:
            lines.append(f'<h3 class="subheading">{html.escape(block.text)}</h3>')
        elif block.kind is BlockKind.BULLET:
            if not in_list:
                lines.append("<ul>")
                in_list = True
            lines.append(f"<li>{render_fragments(block)}</li>")
        elif block.kind is BlockKind.ITALIC_PARAGRAPH:
            lines.append(f'<p class="callout"><em>{render_fragments(block)}</em></p>')
        elif block is first_paragraph:
            lines.append(f'<p class="drop-cap">{render_fragments(block)}</p>')
        else:
            lines.append(f"<p>{render_fragments(block)}</p>")
    if in_list:
        lines.append("</ul>")
    return lines


def render_html(document: StructuredDocument, title: str | None = None) -> str:
    page_title = title or document.title or "Teaching"
    escaped_title = html.escape(page_title)
    lines = [
        "<!DOCTYPE html>",
        "<html>",
        "<head>",
        '<meta charset="utf-8">',
        f"<title>{escaped_title}</title>",
        f"<style>\n{PRINT_STYLES}\n</style>",
        "</head>",
        "<body>",
        f"<h1>{escaped_title}</h1>",
        *render_body(document),
        "</body>",
        "</html>",
    ]
    return "\n".join(lines) + "\n"


def write_html(document: StructuredDocument, output_path: Path, title: str | None = None) -> str:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    content = render_html(document, title=title)
    output_path.write_text(content, encoding="utf-8")
    return content


def render_summary(entries: Iterable[StructuredFile], output_path: Path) -> str:
    structured = sorted(entries, key=lambda entry: entry.source_file.lower())
    format_counts: Counter[str] = Counter(entry.document.format.value for entry in structured)
    now = now_iso()
    lines = ["# Structured Teachings", "", f"_Last build: {now}_", ""]
    lines.append(f"**Total teachings:** {len(structured)}")
    lines.append("")
    if format_counts:
        format_summary = ", ".join(
            f"{name} ({count})" for name, count in sorted(format_counts.items())
        )
        lines.append(f"**By format:** {format_summary}")
        lines.append("")
    lines.append("| Title | Format | Headings | Paragraphs | Bullets | Callouts | Source |")
    lines.append("| --- | --- | --- | --- | --- | --- | --- |")
    for entry in structured:
        lines.append(format_entry_row(entry))
    lines.append("")
    output_path.parent.mkdir(parents=True, exist_ok=True)
    content = "\n".join(lines)
    output_path.write_text(content, encoding="utf-8")
    return content


def format_entry_row(entry: StructuredFile) -> str:
    kinds: Counter[BlockKind] = Counter(entry.document.kinds())
    headings = kinds[BlockKind.HEADING] + kinds[BlockKind.SUBHEADING]
    title = entry.document.title or entry.source_file.rsplit("/", 1)[-1]
    display = entry.source_file.rsplit("/", 1)[-1]
    return (
        f"| {escape_cell(title)} | {entry.document.format.value} | {headings} | "
        f"{kinds[BlockKind.PARAGRAPH]} | {kinds[BlockKind.BULLET]} | "
        f"{kinds[BlockKind.ITALIC_PARAGRAPH]} | [{escape_cell(display)}]({entry.source_file}) |"
    )


def escape_cell(value: str) -> str:
    return value.replace("|", "\\|")
