from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any, cast

import pytest
from docx import Document

from berean_press.scripts import structure_teachings
from berean_press.teaching_structurer import manifest, options, parser, renderer
from berean_press.teaching_structurer.document import BlockKind

SAMPLE_DIR = Path(__file__).resolve().parents[1] / "teachings" / "_samples"


@pytest.fixture()
def sandbox(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    target = root / "berean_press" / "teachings"
    target.mkdir(parents=True)
    for sample_file in SAMPLE_DIR.iterdir():
        if sample_file.is_file():
            shutil.copy(sample_file, target / sample_file.name)
    return root


def make_docx(path: Path) -> Path:
    document = Document()
    document.add_heading("Covenant Basics", level=1)
    paragraph = document.add_paragraph("The ")
    paragraph.add_run("Mosaic Covenant").bold = True
    paragraph.add_run(" was national.")
    document.add_paragraph("First point", style="List Bullet")
    document.save(str(path))
    return path


def test_scan_structures_samples(sandbox: Path) -> None:
    target = sandbox / "berean_press" / "teachings"
    documents, files = parser.scan_directory(target, sandbox)
    by_name = {Path(entry.source_file).name: entry for entry in documents}
    assert set(by_name) == {"covenant_basics.md", "editor_export.html", "grace_import.txt"}
    assert all(entry.file_sha for entry in documents)
    assert all(result.status == "pending" for result in files.values())

    basics = by_name["covenant_basics.md"].document
    assert basics.title == "Covenant Basics"
    assert basics.kinds() == [
        BlockKind.HEADING,
        BlockKind.PARAGRAPH,
        BlockKind.PARAGRAPH,
        BlockKind.HEADING,
        BlockKind.BULLET,
        BlockKind.BULLET,
        BlockKind.HEADING,
        BlockKind.ITALIC_PARAGRAPH,
        BlockKind.HEADING,
        BlockKind.BULLET,
        BlockKind.PARAGRAPH,
    ]
    assert "substack" in basics[-1].text
    assert not any("first hearers" in block.text for block in basics)

    export = by_name["editor_export.html"].document
    assert export.format.value == "marked"
    assert export.kinds()[-1] is BlockKind.ITALIC_PARAGRAPH

    imported = by_name["grace_import.txt"].document
    assert imported.format.value == "loose"
    assert len(imported) == 2


def test_read_docx_text(tmp_path: Path) -> None:
    path = make_docx(tmp_path / "teaching.docx")
    text = parser.read_raw_text(path)
    assert text == "## Covenant Basics\n\nThe **Mosaic Covenant** was national.\n\n- First point"
    document = parser.structure_document(text or "")
    assert [(block.kind, block.text) for block in document] == [
        (BlockKind.HEADING, "Covenant Basics"),
        (BlockKind.PARAGRAPH, "The **Mosaic Covenant** was national."),
        (BlockKind.BULLET, "First point"),
    ]


def test_unsupported_suffix_returns_none(tmp_path: Path) -> None:
    path = tmp_path / "notes.rtf"
    path.write_text("text", encoding="utf-8")
    assert parser.read_raw_text(path) is None


def test_broken_docx_is_recorded_as_error(tmp_path: Path) -> None:
    target = tmp_path / "teachings"
    target.mkdir()
    (target / "broken.docx").write_bytes(b"not a zip archive")
    documents, files = parser.scan_directory(target, tmp_path)
    assert documents == []
    result = files["teachings/broken.docx"]
    assert result.status == "error"
    assert result.error
    assert result.block_count == 0


def test_scan_skips_index_directory(sandbox: Path) -> None:
    target = sandbox / "berean_press" / "teachings"
    index_dir = target / "_index"
    index_dir.mkdir()
    (index_dir / "SUMMARY.md").write_text("# Summary", encoding="utf-8")
    _, files = parser.scan_directory(target, sandbox)
    assert not any("_index" in path for path in files)


def statuses(changes: list[manifest.OutputChange]) -> dict[str, str]:
    return {change.file.rsplit("/", 1)[-1]: change.status for change in changes}


def test_manifest_tracks_block_output(sandbox: Path) -> None:
    target = sandbox / "berean_press" / "teachings"
    structure_options = options.StructureOptions()
    manifest_data = manifest.empty_manifest()
    _, files = parser.scan_directory(target, sandbox)
    changes = manifest.record_run(manifest_data, files, manifest.now_iso(), structure_options)
    assert set(statuses(changes).values()) == {manifest.STATUS_NEW}
    assert all(change.changed for change in changes)

    changes = manifest.record_run(manifest_data, files, manifest.now_iso(), structure_options)
    assert set(statuses(changes).values()) == {manifest.STATUS_UNCHANGED}
    assert manifest_data["metadata"]["restructured_count"] == 0

    basics = target / "covenant_basics.md"
    basics.write_text(basics.read_text(encoding="utf-8") + "\n\n\n", encoding="utf-8")
    (target / "grace_import.txt").write_text("Changed text.", encoding="utf-8")
    (target / "editor_export.html").unlink()
    _, files = parser.scan_directory(target, sandbox)
    changes = manifest.record_run(manifest_data, files, manifest.now_iso(), structure_options)
    assert statuses(changes) == {
        "covenant_basics.md": manifest.STATUS_EDITED,
        "grace_import.txt": manifest.STATUS_RESTRUCTURED,
        "editor_export.html": manifest.STATUS_REMOVED,
    }
    by_name = {change.file.rsplit("/", 1)[-1]: change for change in changes}
    assert by_name["grace_import.txt"].kind_delta == {"paragraph": -1}
    assert by_name["grace_import.txt"].previous_blocks == 2
    assert by_name["grace_import.txt"].blocks == 1
    assert not by_name["covenant_basics.md"].changed

    documents = cast(dict[str, dict[str, Any]], manifest_data["documents"])
    assert documents["berean_press/teachings/editor_export.html"]["status"] == "removed"
    assert manifest_data["metadata"]["document_count"] == 2
    assert manifest_data["metadata"]["restructured_count"] == 2

    changes = manifest.record_run(manifest_data, files, manifest.now_iso(), structure_options)
    assert "editor_export.html" not in statuses(changes)


def test_manifest_detects_option_changes(sandbox: Path) -> None:
    target = sandbox / "berean_press" / "teachings"
    manifest_data = manifest.empty_manifest()
    _, files = parser.scan_directory(target, sandbox)
    manifest.record_run(manifest_data, files, manifest.now_iso(), options.StructureOptions())

    other = options.StructureOptions(attribution_phrase="Credit: Berean Press")
    assert manifest.options_changed(manifest_data, other)
    assert not manifest.options_changed(manifest_data, options.StructureOptions())
    _, files = parser.scan_directory(target, sandbox, options=other)
    changes = manifest.compare_run(manifest_data, files)
    assert statuses(changes)["covenant_basics.md"] == manifest.STATUS_RESTRUCTURED
    assert statuses(changes)["grace_import.txt"] == manifest.STATUS_UNCHANGED


def test_manifest_keeps_last_good_output_on_error(tmp_path: Path) -> None:
    target = tmp_path / "teachings"
    target.mkdir()
    source = target / "notes.md"
    source.write_text("**Covenant Basics**\n\nGrace abounds.", encoding="utf-8")
    manifest_data = manifest.empty_manifest()
    structure_options = options.StructureOptions()
    _, files = parser.scan_directory(target, tmp_path)
    manifest.record_run(manifest_data, files, manifest.now_iso(), structure_options)
    digest = manifest_data["documents"]["teachings/notes.md"]["output_sha256"]

    failed = dict(files)
    failed["teachings/notes.md"] = parser.FileScanResult(
        file="teachings/notes.md", sha256="", mtime=0, block_count=0, status="error", error="boom"
    )
    changes = manifest.record_run(manifest_data, failed, manifest.now_iso(), structure_options)
    assert changes[0].status == manifest.STATUS_ERROR
    assert manifest_data["documents"]["teachings/notes.md"]["output_sha256"] == digest

    changes = manifest.record_run(manifest_data, files, manifest.now_iso(), structure_options)
    assert changes[0].status == manifest.STATUS_UNCHANGED


def test_manifest_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "_index" / "manifest.json"
    assert manifest.load_manifest(path)["documents"] == {}
    data = manifest.empty_manifest()
    manifest.save_manifest(path, data)
    assert manifest.load_manifest(path) == data


def test_render_html() -> None:
    raw = (
        "**Covenant Basics**\n\nThe **Mosaic Covenant** was national & bounded.\n\n"
        "- First point\n\n- Second point\n\n**Key Takeaways**\n\nA < B always."
    )
    document = parser.structure_document(raw, title="Covenant Basics")
    content = renderer.render_html(document)
    assert "<title>Covenant Basics</title>" in content
    assert '<p class="drop-cap">The <strong>Mosaic Covenant</strong> was national &amp; bounded.</p>' in content
    assert content.count("<ul>") == 1
    assert content.count("<li>") == 2
    assert content.count('<hr class="section-divider">') == 1
    assert '<p class="callout"><em>A &lt; B always.</em></p>' in content


def test_render_summary(sandbox: Path) -> None:
    target = sandbox / "berean_press" / "teachings"
    documents, _ = parser.scan_directory(target, sandbox)
    output_path = sandbox / "berean_press" / "_index" / "SUMMARY.md"
    content = renderer.render_summary(documents, output_path)
    assert output_path.exists()
    assert "**Total teachings:** 3" in content
    assert "| Covenant Basics | loose |" in content


def test_resolve_options(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TEACHING_RUN_ON_LIMIT", "1200")
    monkeypatch.setenv("TEACHING_CHUNK_TARGET", "not-a-number")
    monkeypatch.setenv("TEACHING_ATTRIBUTION_PHRASE", "Adapted from Berean Press")
    resolved = options.resolve_options()
    assert resolved.run_on_limit == 1200
    assert resolved.chunk_target == options.DEFAULT_CHUNK_TARGET
    assert resolved.attribution_phrase == "Adapted from Berean Press"
    explicit = options.resolve_options(run_on_limit=900, attribution_phrase="Credit")
    assert explicit.run_on_limit == 900
    assert explicit.attribution_phrase == "Credit"


def test_resolve_options_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("TEACHING_RUN_ON_LIMIT", "TEACHING_CHUNK_TARGET", "TEACHING_ATTRIBUTION_PHRASE"):
        monkeypatch.delenv(name, raising=False)
    assert options.resolve_options() == options.StructureOptions()


def test_cli_scan_and_render(sandbox: Path) -> None:
    structure_teachings.main(["--root", str(sandbox), "scan"])
    paths = structure_teachings.StructurerPaths(sandbox, sandbox / "berean_press" / "teachings")
    report = json.loads(paths.scan_report_path.read_text(encoding="utf-8"))
    assert report["counts"]["files"] == 3
    assert report["counts"]["errors"] == 0
    lines = paths.structured_path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert {json.loads(line)["format"] for line in lines} == {"loose", "marked"}
    assert manifest.load_manifest(paths.manifest_path)["metadata"]["document_count"] == 3

    structure_teachings.main(["--root", str(sandbox), "render"])
    assert (paths.rendered_dir / "covenant_basics.html").exists()
    assert paths.summary_path.exists()


def test_cli_check(sandbox: Path, capsys: pytest.CaptureFixture[str]) -> None:
    structure_teachings.main(["--root", str(sandbox), "scan"])
    capsys.readouterr()
    structure_teachings.main(["--root", str(sandbox), "check"])
    out = capsys.readouterr().out
    assert "unchanged" in out
    assert "berean_press/teachings/covenant_basics.md" in out


def test_cli_show_json(sandbox: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = sandbox / "berean_press" / "teachings" / "covenant_basics.md"
    structure_teachings.main(["show", str(source), "--json"])
    data = json.loads(capsys.readouterr().out)
    assert data["title"] == "Covenant Basics"
    assert data["blocks"][0] == {"kind": "heading", "text": "Covenant Basics", "original_index": 0}


def test_cli_missing_target(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        structure_teachings.main(["--root", str(tmp_path), "scan"])
