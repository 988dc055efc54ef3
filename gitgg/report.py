from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable

from .classify import (
    STATUS_ADDED,
    STATUS_CHANGED,
    STATUS_DELETED,
    STATUS_UNCHANGED,
    FileDiffRecord,
    patch_lines,
)

PAYLOAD_BUCKET_KEYS = {
    STATUS_ADDED: "addedFiles",
    STATUS_CHANGED: "changedFiles",
    STATUS_DELETED: "deletedFiles",
    STATUS_UNCHANGED: "unchangedFiles",
}


@dataclass(frozen=True)
class ReportModel:
    added: tuple[FileDiffRecord, ...]
    changed: tuple[FileDiffRecord, ...]
    deleted: tuple[FileDiffRecord, ...]
    unchanged: tuple[FileDiffRecord, ...]
    target_branch: str
    local_file_label: str

    def buckets(self) -> list[tuple[str, tuple[FileDiffRecord, ...]]]:
        """Buckets in display order."""
        return [
            (STATUS_ADDED, self.added),
            (STATUS_CHANGED, self.changed),
            (STATUS_DELETED, self.deleted),
            (STATUS_UNCHANGED, self.unchanged),
        ]

    def records(self) -> list[FileDiffRecord]:
        return [record for _status, bucket in self.buckets() for record in bucket]

    def find(self, path: str) -> FileDiffRecord | None:
        for record in self.records():
            if record.path == path:
                return record
        return None

    @property
    def file_count(self) -> int:
        return len(self.added) + len(self.changed) + len(self.deleted) + len(self.unchanged)

    def summary(self) -> dict[str, int]:
        counts = {status: len(bucket) for status, bucket in self.buckets()}
        counts["withChanges"] = counts[STATUS_ADDED] + counts[STATUS_CHANGED] + counts[STATUS_DELETED]
        counts["total"] = self.file_count
        return counts

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            PAYLOAD_BUCKET_KEYS[status]: [record.to_payload() for record in bucket]
            for status, bucket in self.buckets()
        }
        payload["targetBranch"] = self.target_branch
        payload["localFileLabel"] = self.local_file_label
        return payload


def sort_records(records: Iterable[FileDiffRecord]) -> list[FileDiffRecord]:
    return sorted(records, key=lambda record: record.path)


def build_report_model(
    records: Iterable[FileDiffRecord],
    local_label: str,
    target_branch: str,
) -> ReportModel:
    grouped: dict[str, list[FileDiffRecord]] = {status: [] for status in PAYLOAD_BUCKET_KEYS}
    for record in records:
        grouped.get(record.status, grouped[STATUS_CHANGED]).append(record)
    return ReportModel(
        added=tuple(sort_records(grouped[STATUS_ADDED])),
        changed=tuple(sort_records(grouped[STATUS_CHANGED])),
        deleted=tuple(sort_records(grouped[STATUS_DELETED])),
        unchanged=tuple(sort_records(grouped[STATUS_UNCHANGED])),
        target_branch=target_branch,
        local_file_label=local_label,
    )


def report_payload_json(model: ReportModel) -> str:
    # safe to embed inside a <script> element
    return json.dumps(model.to_payload(), ensure_ascii=False).replace("</", "<\\/")


def line_changes(patch: str | None) -> dict[str, int]:
    added = 0
    removed = 0
    for line in patch_lines(patch):
        if line.startswith("+") and not line.startswith("+++"):
            added += 1
        elif line.startswith("-") and not line.startswith("---"):
            removed += 1
    return {"added": added, "removed": removed}
