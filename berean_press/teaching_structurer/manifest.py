"""Per-document record of structured output across runs.

Each entry keeps the digest of the block sequence a source produced, so a run
can tell a teaching whose structure changed apart from one whose source was
only touched up (whitespace, re-export) while yielding the same blocks. The
options in force are stored with the run, which makes a change of attribution
phrase or split lengths show up as ``restructured`` documents.
"""
from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast

from .options import StructureOptions
from .parser import FileScanResult

STATUS_NEW = "new"
STATUS_RESTRUCTURED = "restructured"
# source bytes changed, block output identical
STATUS_EDITED = "edited"
STATUS_UNCHANGED = "unchanged"
STATUS_REMOVED = "removed"
STATUS_ERROR = "error"

CHANGED_STATUSES = {STATUS_NEW, STATUS_RESTRUCTURED, STATUS_REMOVED}


@dataclass
class OutputChange:
    """How one document's output compares with the previous run."""

    file: str
    status: str
    previous_blocks: int | None = None
    blocks: int | None = None
    kind_delta: dict[str, int] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return self.status in CHANGED_STATUSES

    def describe_delta(self) -> str:
        if not self.kind_delta:
            return "-"
        return ", ".join(f"{kind} {count:+d}" for kind, count in sorted(self.kind_delta.items()))


def now_iso() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def options_snapshot(options: StructureOptions) -> dict[str, Any]:
    snapshot = asdict(options)
    snapshot["callout_prefixes"] = list(options.callout_prefixes)
    return snapshot


def empty_manifest() -> dict[str, Any]:
    timestamp = now_iso()
    return {
        "metadata": {
            "created_at": timestamp,
            "updated_at": timestamp,
            "last_run": None,
            "options": None,
            "document_count": 0,
            "restructured_count": 0,
        },
        "documents": {},
    }


def load_manifest(path: Path) -> dict[str, Any]:
    if not path.exists():
        return empty_manifest()
    return cast(dict[str, Any], json.loads(path.read_text(encoding="utf-8")))


def save_manifest(path: Path, data: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, sort_keys=True) + "\n", encoding="utf-8")


def classify_change(previous: Mapping[str, Any] | None, result: FileScanResult) -> str:
    if result.status == "error":
        return STATUS_ERROR
    if previous is None or previous.get("output_sha256") is None:
        return STATUS_NEW
    if previous.get("status") == STATUS_REMOVED:
        return STATUS_NEW
    if previous.get("output_sha256") != result.output_sha256:
        return STATUS_RESTRUCTURED
    if previous.get("source_sha256") != result.sha256:
        return STATUS_EDITED
    return STATUS_UNCHANGED


def kind_delta(previous: Mapping[str, int], current: Mapping[str, int]) -> dict[str, int]:
    delta = {}
    for kind in set(previous) | set(current):
        difference = current.get(kind, 0) - previous.get(kind, 0)
        if difference:
            delta[kind] = difference
    return delta


def compare_run(
    manifest: Mapping[str, Any],
    scan_results: Mapping[str, FileScanResult],
) -> list[OutputChange]:
    """Compare a scan with the recorded output without touching the manifest."""
    documents = cast(Mapping[str, Mapping[str, Any]], manifest.get("documents", {}))
    changes: list[OutputChange] = []
    for file_path, result in sorted(scan_results.items()):
        previous = documents.get(file_path)
        status = classify_change(previous, result)
        previous_blocks = None
        delta: dict[str, int] = {}
        if previous is not None and status != STATUS_NEW:
            previous_blocks = previous.get("block_count")
        if status == STATUS_RESTRUCTURED and previous is not None:
            delta = kind_delta(previous.get("kind_counts", {}), result.kind_counts)
        changes.append(
            OutputChange(
                file=file_path,
                status=status,
                previous_blocks=previous_blocks,
                blocks=None if status == STATUS_ERROR else result.block_count,
                kind_delta=delta,
            )
        )
    for file_path, entry in sorted(documents.items()):
        if file_path not in scan_results and entry.get("status") != STATUS_REMOVED:
            changes.append(
                OutputChange(
                    file=file_path,
                    status=STATUS_REMOVED,
                    previous_blocks=entry.get("block_count"),
                )
            )
    return changes


def record_run(
    manifest: dict[str, Any],
    scan_results: Mapping[str, FileScanResult],
    run_timestamp: str,
    options: StructureOptions,
) -> list[OutputChange]:
    """Store this run's output digests and return the changes it found."""
    changes = compare_run(manifest, scan_results)
    documents = cast(dict[str, dict[str, Any]], manifest.setdefault("documents", {}))
    for change in changes:
        previous = documents.get(change.file, {})
        if change.status == STATUS_REMOVED:
            previous["status"] = STATUS_REMOVED
            continue
        result = scan_results[change.file]
        failed = change.status == STATUS_ERROR
        if change.status in {STATUS_NEW, STATUS_RESTRUCTURED}:
            restructured_at = run_timestamp
        else:
            restructured_at = previous.get("restructured_at", run_timestamp)
        # A failed read keeps the last good output so the next run compares against it.
        kept = previous if failed else {
            "source_sha256": result.sha256,
            "output_sha256": result.output_sha256,
            "format": result.format,
            "block_count": result.block_count,
            "kind_counts": dict(result.kind_counts),
        }
        documents[change.file] = {
            "source_sha256": kept.get("source_sha256") or result.sha256,
            "output_sha256": kept.get("output_sha256"),
            "format": kept.get("format"),
            "block_count": kept.get("block_count", 0),
            "kind_counts": dict(kept.get("kind_counts", {})),
            "restructured_at": restructured_at,
            "status": change.status,
            "error": result.error,
        }
    metadata = cast(dict[str, Any], manifest.setdefault("metadata", {}))
    metadata["updated_at"] = run_timestamp
    metadata["last_run"] = run_timestamp
    metadata["options"] = options_snapshot(options)
    metadata["document_count"] = sum(
        1 for entry in documents.values() if entry.get("status") != STATUS_REMOVED
    )
    metadata["restructured_count"] = sum(1 for change in changes if change.changed)
    return changes


def options_changed(manifest: Mapping[str, Any], options: StructureOptions) -> bool:
    recorded = manifest.get("metadata", {}).get("options")
    return recorded is not None and recorded != options_snapshot(options)
