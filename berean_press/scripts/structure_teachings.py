#!/usr/bin/env python3
"""CLI entrypoint for the teaching structurer."""
from __future__ import annotations

import argparse
import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from berean_press.teaching_structurer import manifest, parser, renderer
from berean_press.teaching_structurer.document import BlockKind
from berean_press.teaching_structurer.options import StructureOptions, resolve_options

DEFAULT_ROOT = Path(__file__).resolve().parents[2]
DEFAULT_TARGET = DEFAULT_ROOT / "berean_press" / "teachings"
DEFAULT_INDEX = DEFAULT_ROOT / "berean_press" / "_index"


class StructurerPaths:
    def __init__(self, root: Path, target: Path, index_dir: Path | None = None) -> None:
        self.root = root
        self.target = target
        if root == DEFAULT_ROOT:
            default_index = DEFAULT_INDEX
        else:
            default_index = root / "berean_press" / "_index"
        self.index_dir = (index_dir or default_index).resolve()
        self.structured_path = self.index_dir / "structured.jsonl"
        self.scan_report_path = self.index_dir / "scan_report.json"
        self.manifest_path = self.index_dir / "manifest.json"
        self.summary_path = self.index_dir / "SUMMARY.md"
        self.rendered_dir = self.index_dir / "rendered"


logger = logging.getLogger("berean_press.teaching_structurer.cli")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )


def resolve_root(path: str | None) -> Path:
    if path:
        return Path(path).expanduser().resolve()
    return DEFAULT_ROOT


def resolve_target(root: Path, target: str | None) -> Path:
    if target:
        resolved = Path(target).expanduser().resolve()
    else:
        if root == DEFAULT_ROOT:
            resolved = DEFAULT_TARGET
        else:
            resolved = root / "berean_press" / "teachings"
    if not resolved.exists():
        raise SystemExit(f"Target directory not found: {resolved}")
    return resolved


def options_from_args(args: argparse.Namespace) -> StructureOptions:
    return resolve_options(
        attribution_phrase=getattr(args, "attribution_phrase", None),
        run_on_limit=getattr(args, "run_on_limit", None),
        chunk_target=getattr(args, "chunk_target", None),
    )


def command_scan(args: argparse.Namespace) -> None:
    root = resolve_root(args.root)
    target = resolve_target(root, args.target)
    paths = StructurerPaths(root, target)
    options = options_from_args(args)
    logger.info("Structuring teachings in %s", target)
    paths.index_dir.mkdir(parents=True, exist_ok=True)
    documents, files = parser.scan_directory(target, root, options=options)
    timestamp = manifest.now_iso()
    write_jsonl(paths.structured_path, [entry.to_dict() for entry in documents])
    write_scan_report(paths, files, timestamp)
    manifest_data = manifest.load_manifest(paths.manifest_path)
    changes = manifest.record_run(manifest_data, files, timestamp, options)
    manifest.save_manifest(paths.manifest_path, manifest_data)
    logger.info(
        "Structured %d files into %d blocks; %d with changed output",
        len(documents),
        sum(len(entry.document) for entry in documents),
        sum(1 for change in changes if change.changed),
    )


def command_render(args: argparse.Namespace) -> None:
    root = resolve_root(args.root)
    target = resolve_target(root, args.target)
    paths = StructurerPaths(root, target)
    documents, _ = parser.scan_directory(target, root, options=options_from_args(args))
    for entry in documents:
        output_path = paths.rendered_dir / Path(entry.source_file).with_suffix(".html").name
        renderer.write_html(entry.document, output_path)
        logger.debug("Rendered %s to %s", entry.source_file, output_path)
    content = renderer.render_summary(documents, paths.summary_path)
    logger.info(
        "Rendered %d teachings; summary written to %s (%d characters)",
        len(documents),
        paths.summary_path,
        len(content),
    )


def command_check(args: argparse.Namespace) -> None:
    root = resolve_root(args.root)
    target = resolve_target(root, args.target)
    paths = StructurerPaths(root, target)
    options = options_from_args(args)
    manifest_data = manifest.load_manifest(paths.manifest_path)
    _, scan_results = parser.scan_directory(target, root, options=options)
    changes = manifest.compare_run(manifest_data, scan_results)
    print_change_table(changes, manifest_data)
    if manifest.options_changed(manifest_data, options):
        print("Options differ from the last recorded run.")


def command_show(args: argparse.Namespace) -> None:
    source = Path(args.file).expanduser().resolve()
    if not source.exists():
        raise SystemExit(f"File not found: {source}")
    raw = parser.read_raw_text(source)
    if raw is None:
        raise SystemExit(f"Unsupported file type: {source.suffix}")
    document = parser.structure_document(
        raw, title=parser.title_from_path(source), options=options_from_args(args)
    )
    if args.json:
        print(json.dumps(document.to_dict(), indent=2, ensure_ascii=False))
        return
    for block in document:
        print(format_block_line(block.kind, block.text))


def format_block_line(kind: BlockKind, text: str, width: int = 18) -> str:
    return f"{kind.value.ljust(width)} {text}"


def write_jsonl(path: Path, items: Iterable[dict[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        for item in items:
            fh.write(json.dumps(item, ensure_ascii=False))
            fh.write("\n")


def write_scan_report(
    paths: StructurerPaths, files: dict[str, parser.FileScanResult], timestamp: str
) -> None:
    if paths.target.is_relative_to(paths.root):
        target_path = str(paths.target.relative_to(paths.root))
    else:
        target_path = str(paths.target)
    report = {
        "timestamp": timestamp,
        "target": target_path,
        "files": {file: data.to_dict() for file, data in files.items()},
        "counts": {
            "files": len(files),
            "blocks": sum(result.block_count for result in files.values()),
            "errors": sum(1 for result in files.values() if result.status == "error"),
        },
    }
    paths.scan_report_path.parent.mkdir(parents=True, exist_ok=True)
    with paths.scan_report_path.open("w", encoding="utf-8") as fh:
        json.dump(report, fh, indent=2)


def print_change_table(
    changes: list[manifest.OutputChange],
    manifest_data: Mapping[str, Any],
) -> None:
    print("File".ljust(60), "Status".ljust(13), "Blocks".ljust(10), "Kind change")
    print("-" * 100)
    for change in changes:
        previous = "-" if change.previous_blocks is None else str(change.previous_blocks)
        current = "-" if change.blocks is None else str(change.blocks)
        blocks = current if previous in {"-", current} else f"{previous}->{current}"
        print(
            change.file.ljust(60),
            change.status.ljust(13),
            blocks.ljust(10),
            change.describe_delta(),
        )
    metadata = manifest_data.get("metadata", {})
    print("\nLast run:", metadata.get("last_run") or "never")


def add_option_arguments(subparser: argparse.ArgumentParser) -> None:
    subparser.add_argument(
        "--attribution-phrase",
        help="Credit line kept only once (overrides TEACHING_ATTRIBUTION_PHRASE)",
    )
    subparser.add_argument(
        "--run-on-limit",
        type=int,
        help="Length above which unbroken text is split (overrides TEACHING_RUN_ON_LIMIT)",
    )
    subparser.add_argument(
        "--chunk-target",
        type=int,
        help="Length a split chunk grows past before closing (overrides TEACHING_CHUNK_TARGET)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser_obj = argparse.ArgumentParser(description="Structure teaching documents")
    parser_obj.add_argument("--root", help="Repository root (defaults to script location)")
    parser_obj.add_argument("--target", help="Override directory holding teaching sources")
    parser_obj.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser_obj.add_subparsers(dest="command")

    scan_parser = subparsers.add_parser("scan", help="Structure teachings and record results")
    add_option_arguments(scan_parser)
    scan_parser.set_defaults(func=command_scan)

    render_parser = subparsers.add_parser("render", help="Render HTML and Markdown summary")
    add_option_arguments(render_parser)
    render_parser.set_defaults(func=command_render)

    check_parser = subparsers.add_parser("check", help="Report documents whose block output would change")
    add_option_arguments(check_parser)
    check_parser.set_defaults(func=command_check)

    show_parser = subparsers.add_parser("show", help="Print the blocks of a single file")
    show_parser.add_argument("file", help="Teaching source file")
    show_parser.add_argument("--json", action="store_true", help="Emit JSON instead of a table")
    add_option_arguments(show_parser)
    show_parser.set_defaults(func=command_show)

    return parser_obj


def main(argv: list[str] | None = None) -> None:
    parser_obj = build_parser()
    args = parser_obj.parse_args(argv)
    if not getattr(args, "command", None):
        parser_obj.print_help()
        return
    configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
