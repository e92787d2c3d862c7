from __future__ import annotations

import pytest

from berean_press.teaching_structurer import formats, inline, normalize, segment
from berean_press.teaching_structurer.document import DocumentFormat, EmphasisKind, InlineFragment


@pytest.mark.parametrize(
    "raw",
    [
        "<p>One.</p><p>Two.</p>",
        "<h2>Heading</h2>Body",
        "<H3 class='x'>Heading</H3>",
        "<ul><li>Item</li></ul>",
        "<blockquote>Quote</blockquote>",
    ],
)
def test_classify_marked(raw: str) -> None:
    assert formats.classify(raw) is DocumentFormat.MARKED


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "Plain prose with **bold** headings.",
        "<p>The whole document wrapped once.</p>",
        "<h1>Only a top heading</h1>",
        "## Markdown heading\n\n- bullet",
    ],
)
def test_classify_loose(raw: str) -> None:
    assert formats.classify(raw) is DocumentFormat.LOOSE


def test_classify_is_repeatable() -> None:
    raw = "<p>One.</p>\n<p>Two.</p>"
    assert formats.classify(raw) == formats.classify(raw)


def test_unwrap_single_paragraph() -> None:
    assert normalize.unwrap("  <p>Grace abounds.</p>\n") == "Grace abounds."
    assert normalize.unwrap('<p class="lead">Grace.</p>') == "Grace."


def test_unwrap_leaves_other_input_alone() -> None:
    assert normalize.unwrap("<p>One.</p><p>Two.</p>") == "<p>One.</p><p>Two.</p>"
    assert normalize.unwrap("Before <p>inner</p>") == "Before <p>inner</p>"
    assert normalize.unwrap("  no wrapper  ") == "no wrapper"


def test_insert_breaks_before_bold_heading() -> None:
    text = "Grace abounds. **Covenant Context** The law was given."
    assert normalize.insert_breaks(text) == (
        "Grace abounds.\n\n**Covenant Context** The law was given."
    )


def test_insert_breaks_isolates_rules() -> None:
    text = "First part. --- Second part."
    assert normalize.insert_breaks(text) == "First part.\n\n---\n\nSecond part."
    assert normalize.insert_breaks("well---known") == "well---known"


def test_insert_breaks_separates_bullets() -> None:
    text = "Key points: * **One** first idea * **Two** second idea"
    assert normalize.insert_breaks(text) == (
        "Key points:\n\n* **One** first idea\n\n* **Two** second idea"
    )


def test_insert_breaks_skips_segmented_text() -> None:
    text = "a\nb\nc\nd\ne. **Bold Heading** here"
    assert normalize.insert_breaks(text) == text


def test_split_run_on_respects_parentheses() -> None:
    text = "First claim stands. This point (see the note. Then return to it.) matters. Last one."
    sentences = normalize.sentence_spans(text)
    assert sentences == [
        "First claim stands.",
        "This point (see the note. Then return to it.) matters.",
        "Last one.",
    ]


def test_split_run_on_chunks_past_target() -> None:
    sentence = "The covenant shaped the life of the nation in every way."
    text = " ".join([sentence] * 30)
    chunks = normalize.split_run_on(text, chunk_target=500)
    assert len(chunks) > 1
    assert all(len(chunk) > 500 for chunk in chunks[:-1])
    assert all(len(chunk) <= 500 + len(sentence) + 1 for chunk in chunks)
    assert " ".join(chunks) == text


def test_segment_splits_blank_lines_and_single_breaks() -> None:
    assert segment.segment("A\n\nB\nC\n\n\nD\n  \nE") == ["A", "B", "C", "D", "E"]
    assert segment.segment("") == []


def test_rejoin_merges_lowercase_fragments() -> None:
    blocks = ["and this sentence was broken across", "two lines of text.", "Short Heading"]
    assert segment.rejoin(blocks) == [
        "and this sentence was broken across two lines of text.",
        "Short Heading",
    ]


def test_rejoin_merges_long_fragments_until_terminal_punctuation() -> None:
    first = "Many of us were taught that the promises given at Sinai apply to"
    assert len(first) > 60
    blocks = [first, "every reader in every age", "without distinction.", "Next paragraph."]
    assert segment.rejoin(blocks) == [
        f"{first} every reader in every age without distinction.",
        "Next paragraph.",
    ]


def test_rejoin_keeps_short_capitalised_lines() -> None:
    assert segment.rejoin(["Because of this,", "Next line."]) == ["Because of this,", "Next line."]


def test_rejoin_flushes_residual_accumulator() -> None:
    assert segment.rejoin(["an unfinished thought", "that never ends"]) == [
        "an unfinished thought that never ends"
    ]


def test_rejoin_ignores_trailing_emphasis() -> None:
    credit = "*(This teaching is adapted from The Christian Theologist. Visit us again soon.)*"
    assert segment.rejoin([credit, "Next paragraph."]) == [credit, "Next paragraph."]


def test_strip_emphasis() -> None:
    assert inline.strip_emphasis("## **Covenant** _Basics_") == "Covenant Basics"
    assert inline.strip_emphasis("> quoted *text*") == "quoted text"
    assert inline.strip_emphasis("__Bold__ label") == "Bold label"


def test_render_inline_fragments() -> None:
    fragments = inline.render_inline("Grace is **chesed** and *mercy* today")
    assert fragments == (
        InlineFragment("Grace is "),
        InlineFragment("chesed", EmphasisKind.BOLD),
        InlineFragment(" and "),
        InlineFragment("mercy", EmphasisKind.ITALIC),
        InlineFragment(" today"),
    )


@pytest.mark.parametrize(
    "text",
    [
        "No emphasis at all.",
        "**Leading** bold",
        "Trailing *italic*",
        "*ekklesia* and **New Covenant** and *pistoi*.",
        "Grace is **truly *free* today** indeed",
        "**a *b***",
        "*see **this** now* and then",
    ],
)
def test_render_inline_round_trip(text: str) -> None:
    fragments = inline.render_inline(text)
    assert inline.fragments_text(fragments) == text.replace("*", "")


def test_render_inline_empty() -> None:
    assert inline.render_inline("") == ()


def test_render_inline_nested_emphasis() -> None:
    assert inline.render_inline("Grace is **truly *free* today** indeed") == (
        InlineFragment("Grace is "),
        InlineFragment("truly free today", EmphasisKind.BOLD),
        InlineFragment(" indeed"),
    )
    assert inline.render_inline("*see **this** now*") == (
        InlineFragment("see this now", EmphasisKind.ITALIC),
    )
