"""
Sync Engine - per-package update orchestration.

For every tracked package, in order:
resolve -> compare against installed -> evict stale variants ->
download -> verify -> commit. A single backup snapshot is taken before
the first package is processed.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Protocol

from modsync.core.exceptions import FilesystemError, IntegrityError, ModSyncError, TransportError
from modsync.core.models import (
    Lookup,
    LookupStatus,
    PackageMetadata,
    PlatformConstraint,
    ReleaseDescriptor,
)
from modsync.store.artifacts import ArtifactStore, slug_matcher
from modsync.sync.integrity import IntegrityVerifier, Verification
from modsync.sync.report import (
    REASON_INTEGRITY,
    REASON_NO_COMPATIBLE,
    REASON_NO_DIGEST,
    REASON_NO_INFO,
    REASON_UP_TO_DATE,
    UpdateReport,
)

logger = logging.getLogger(__name__)


class VersionResolver(Protocol):
    """What the engine needs from the registry."""

    def resolve_package_info(self, package_id: str) -> Lookup[PackageMetadata]: ...

    def resolve_latest(
        self, package_id: str, constraint: PlatformConstraint
    ) -> Lookup[ReleaseDescriptor]: ...

    def download(self, url: str) -> bytes: ...


class PlanAction(Enum):
    """What a sync run would do with a package."""

    INSTALL = "install"
    UP_TO_DATE = "up_to_date"
    SKIP = "skip"
    FAIL = "fail"


@dataclass
class PlanEntry:
    """Dry-run decision for one package."""

    package_id: str
    action: PlanAction
    name: str | None = None
    version: str | None = None
    file: str | None = None
    evicts: list[str] = field(default_factory=list)
    reason: str | None = None


class SyncEngine:
    """
    Keeps the artifact store in line with the registry.

    Guarantees:
    - packages are processed sequentially, in list order
    - a failure in one package never stops the others
    - a digest mismatch never writes the downloaded file
    """

    def __init__(
        self,
        resolver: VersionResolver,
        store: ArtifactStore,
        constraint: PlatformConstraint,
        verifier: IntegrityVerifier | None = None,
        *,
        backup_enabled: bool = True,
        backup_keep: int = 0,
        require_digest: bool = False,
    ):
        """
        Initialize the engine with its collaborators.

        Args:
            resolver: Registry lookups and file downloads
            store: Installed artifact directory
            constraint: Platform filter for the whole run
            verifier: Digest checker (default: sha1)
            backup_enabled: Snapshot the store before the first package
            backup_keep: Snapshots to retain after backing up (0 = all)
            require_digest: Refuse files the registry publishes no digest for
        """
        self._resolver = resolver
        self._store = store
        self._constraint = constraint
        self._verifier = verifier or IntegrityVerifier()
        self._backup_enabled = backup_enabled
        self._backup_keep = backup_keep
        self._require_digest = require_digest

    def synchronize(
        self,
        package_ids: Iterable[str],
        on_package_complete: Callable[[str, UpdateReport], None] | None = None,
    ) -> UpdateReport:
        """
        Bring every tracked package up to date.

        Args:
            package_ids: Tracked package identifiers, processed in order
            on_package_complete: Optional callback after each package

        Returns:
            Closed UpdateReport
        """
        report = UpdateReport()

        if self._backup_enabled:
            self._backup(report)

        seen: set[str] = set()
        for package_id in package_ids:
            if package_id in seen:
                continue
            seen.add(package_id)

            logger.info(f"Processing {package_id}...")
            try:
                self._sync_package(package_id, report)
            except IntegrityError as e:
                logger.error(str(e))
                report.record_failure(package_id, REASON_INTEGRITY)
            except Exception as e:
                logger.exception(f"Error processing {package_id}")
                report.record_failure(package_id, str(e) or type(e).__name__)

            if on_package_complete:
                on_package_complete(package_id, report)

        return report.close()

    def _backup(self, report: UpdateReport) -> None:
        """Snapshot the store; failures are logged and the run continues."""
        try:
            report.backup = self._store.backup_all()
        except ModSyncError as e:
            report.backup_error = str(e)
            logger.warning(f"Failed to backup mods, continuing without a backup: {e}")
            return

        try:
            self._store.prune_backups(self._backup_keep)
        except FilesystemError as e:
            logger.warning(f"Failed to prune old backups: {e}")

    def _sync_package(self, package_id: str, report: UpdateReport) -> None:
        info = self._resolver.resolve_package_info(package_id)
        if not info.found:
            reason = REASON_NO_INFO
            if info.status == LookupStatus.TRANSPORT_FAILURE and info.error:
                reason = f"{REASON_NO_INFO}: {info.error}"
            report.record_failure(package_id, reason)
            return
        metadata = info.value

        latest = self._resolver.resolve_latest(package_id, self._constraint)
        if latest.status == LookupStatus.NO_COMPATIBLE_VERSION:
            report.record_skip(package_id, REASON_NO_COMPATIBLE)
            return
        if not latest.found:
            report.record_failure(package_id, f"Failed to get versions: {latest.error}")
            return
        release = latest.value
        primary = release.primary_file()

        if self._store.exists(primary.filename):
            logger.info(f"{metadata.title} v{release.version_number} already exists")
            report.record_skip(package_id, REASON_UP_TO_DATE)
            return

        removed = self._store.evict(slug_matcher(metadata.slug, self._store.archive_extension))
        report.record_eviction(package_id, removed)

        logger.info(f"Downloading {metadata.title} v{release.version_number}...")
        try:
            content = self._resolver.download(primary.download_url)
        except TransportError as e:
            report.record_failure(package_id, f"Download failed: {e.message}")
            return

        expected = primary.expected_digest(self._verifier.algorithm)
        verification = self._verifier.verify(content, expected)
        if verification == Verification.MISMATCH:
            raise IntegrityError(
                f"Hash verification failed for {primary.filename}",
                expected=expected,
                actual=self._verifier.digest(content),
                algorithm=self._verifier.algorithm,
            )
        if verification == Verification.UNVERIFIABLE:
            if self._require_digest:
                report.record_failure(package_id, REASON_NO_DIGEST)
                return
            logger.warning(f"No {self._verifier.algorithm} digest published for {primary.filename}")

        self._store.commit(primary.filename, content)
        logger.info(f"Downloaded {primary.filename}")
        if verification == Verification.UNVERIFIABLE:
            report.record_unverified(package_id)
        report.record_success(package_id, metadata.title, release.version_number, primary.filename)

    def plan(self, package_ids: Iterable[str]) -> list[PlanEntry]:
        """
        Resolve packages and report what synchronize() would do.

        Takes no backup and changes nothing on disk.
        """
        entries = []
        for package_id in dict.fromkeys(package_ids):
            try:
                entries.append(self._plan_package(package_id))
            except Exception as e:
                logger.exception(f"Error planning {package_id}")
                entries.append(PlanEntry(package_id, PlanAction.FAIL, reason=str(e)))
        return entries

    def _plan_package(self, package_id: str) -> PlanEntry:
        info = self._resolver.resolve_package_info(package_id)
        if not info.found:
            return PlanEntry(package_id, PlanAction.FAIL, reason=info.error or REASON_NO_INFO)
        metadata = info.value

        latest = self._resolver.resolve_latest(package_id, self._constraint)
        if latest.status == LookupStatus.NO_COMPATIBLE_VERSION:
            return PlanEntry(package_id, PlanAction.SKIP, name=metadata.title, reason=REASON_NO_COMPATIBLE)
        if not latest.found:
            return PlanEntry(package_id, PlanAction.FAIL, name=metadata.title, reason=latest.error)
        release = latest.value
        primary = release.primary_file()

        entry = PlanEntry(
            package_id,
            PlanAction.INSTALL,
            name=metadata.title,
            version=release.version_number,
            file=primary.filename,
        )
        if self._store.exists(primary.filename):
            entry.action = PlanAction.UP_TO_DATE
            entry.reason = REASON_UP_TO_DATE
            return entry

        matches = slug_matcher(metadata.slug, self._store.archive_extension)
        entry.evicts = sorted(f for f in self._store.list_artifacts() if matches(f))
        return entry

