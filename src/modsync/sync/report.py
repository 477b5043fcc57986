"""
Update report - per-run classification of tracked packages.

Every package lands in exactly one of three ordered lists: successful,
failed or skipped.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from modsync.store.artifacts import BackupSnapshot

# Skip/failure reasons
REASON_UP_TO_DATE = "Already up to date"
REASON_NO_COMPATIBLE = "No compatible version found"
REASON_NO_INFO = "Failed to get mod info"
REASON_INTEGRITY = "Download failed: integrity check mismatch"
REASON_NO_DIGEST = "Download refused: registry published no digest"


@dataclass(frozen=True)
class ReportEntry:
    """One package's outcome."""

    package_id: str
    name: str | None = None
    version: str | None = None
    file: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"package_id": self.package_id}
        if self.reason is None:
            data.update({"name": self.name, "version": self.version, "file": self.file})
        else:
            data["reason"] = self.reason
        return data


@dataclass
class UpdateReport:
    """
    Aggregated result of one synchronize() call.

    Built incrementally during the run; close() freezes it.
    """

    successful: list[ReportEntry] = field(default_factory=list)
    failed: list[ReportEntry] = field(default_factory=list)
    skipped: list[ReportEntry] = field(default_factory=list)
    unverified: list[str] = field(default_factory=list)
    evicted: dict[str, list[str]] = field(default_factory=dict)
    backup: BackupSnapshot | None = None
    backup_error: str | None = None
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    finished_at: str | None = None

    @property
    def closed(self) -> bool:
        return self.finished_at is not None

    def _check_open(self) -> None:
        if self.closed:
            raise RuntimeError("UpdateReport is closed")

    def record_success(self, package_id: str, name: str, version: str, file: str) -> None:
        self._check_open()
        self.successful.append(ReportEntry(package_id, name=name, version=version, file=file))

    def record_failure(self, package_id: str, reason: str) -> None:
        self._check_open()
        self.failed.append(ReportEntry(package_id, reason=reason))

    def record_skip(self, package_id: str, reason: str) -> None:
        self._check_open()
        self.skipped.append(ReportEntry(package_id, reason=reason))

    def record_eviction(self, package_id: str, filenames: list[str]) -> None:
        self._check_open()
        if filenames:
            self.evicted[package_id] = list(filenames)

    def record_unverified(self, package_id: str) -> None:
        self._check_open()
        self.unverified.append(package_id)

    def close(self) -> "UpdateReport":
        """Mark the report complete; further record_* calls raise."""
        if not self.closed:
            self.finished_at = datetime.now(timezone.utc).isoformat()
        return self

    def counts(self) -> dict[str, int]:
        return {
            "successful": len(self.successful),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
        }

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def summary_lines(self) -> list[str]:
        """Generate a human-readable summary of the run."""
        counts = self.counts()
        lines = [
            f"Successful updates: {counts['successful']}",
            f"Failed updates: {counts['failed']}",
            f"Skipped: {counts['skipped']}",
        ]

        if self.successful:
            lines.append("Successfully updated mods:")
            lines.extend(f"  - {e.name} v{e.version} ({e.file})" for e in self.successful)
        if self.failed:
            lines.append("Failed to update:")
            lines.extend(f"  - {e.package_id}: {e.reason}" for e in self.failed)
        if self.skipped:
            lines.append("Skipped:")
            lines.extend(f"  - {e.package_id}: {e.reason}" for e in self.skipped)
        if self.unverified:
            lines.append(f"Installed without digest check: {', '.join(self.unverified)}")
        if self.backup_error:
            lines.append(f"Backup failed: {self.backup_error}")

        return lines

    def to_dict(self) -> dict[str, Any]:
        """Convert the report to a JSON-serializable dict."""
        return {
            "counts": self.counts(),
            "successful": [e.to_dict() for e in self.successful],
            "failed": [e.to_dict() for e in self.failed],
            "skipped": [e.to_dict() for e in self.skipped],
            "unverified": list(self.unverified),
            "evicted": {k: list(v) for k, v in self.evicted.items()},
            "backup": str(self.backup.path) if self.backup else None,
            "backup_error": self.backup_error,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }
