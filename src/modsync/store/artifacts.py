"""
Artifact store - the on-disk directory of installed mod archives.

Manages:
- {mods_dir}/{filename}                  installed archives
- {backup_dir}/mods-{timestamp}/         write-once backup snapshots

Identity is the filename alone; no metadata is persisted per artifact.
"""

import logging
import os
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from modsync.core.exceptions import FilesystemError, SetupError

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".modsync-"
BACKUP_PREFIX = "mods-"
SNAPSHOT_NAME = re.compile(r"^mods-(\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3})Z(?:-(\d+))?$")


@dataclass(frozen=True)
class BackupSnapshot:
    """A timestamped copy of the artifact directory."""

    path: Path
    created_at: datetime
    files: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.path.name


def slug_matcher(slug: str, extension: str = ".jar") -> Callable[[str], bool]:
    """
    Build the stale-version predicate for a package slug.

    Matches any filename containing the slug case-insensitively and ending
    with the archive extension. A slug that is a substring of another
    package's slug ("foo" in "foo-extra") also matches that package's files.
    """
    needle = slug.lower()

    def matches(filename: str) -> bool:
        return needle in filename.lower() and filename.endswith(extension)

    return matches


def _timestamp_name(moment: datetime) -> str:
    """Render a UTC moment as a filesystem-safe ISO-8601 stamp."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H-%M-%S-") + f"{moment.microsecond // 1000:03d}Z"


def _parse_snapshot_name(name: str) -> tuple[datetime, int] | None:
    """Return (timestamp, collision suffix) for a snapshot directory name."""
    match = SNAPSHOT_NAME.match(name)
    if match is None:
        return None
    try:
        moment = datetime.strptime(match.group(1), "%Y-%m-%dT%H-%M-%S-%f")
    except ValueError:
        return None
    return moment.replace(tzinfo=timezone.utc), int(match.group(2) or 0)


class ArtifactStore:
    """
    Owner of installed archives and their backups.

    Writes are atomic: content lands in a hidden temp file in the same
    directory and is moved into place with os.replace.
    """

    def __init__(
        self,
        artifacts_dir: Path,
        backup_dir: Path | None = None,
        archive_extension: str = ".jar",
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the store.

        Args:
            artifacts_dir: Directory holding installed archives
            backup_dir: Parent directory for snapshots (default: sibling "mods-backup")
            archive_extension: Extension of installable archives
            clock: Time source for snapshot names (default: now in UTC)
        """
        self._dir = artifacts_dir
        self._backup_dir = backup_dir or artifacts_dir.parent / "mods-backup"
        self.archive_extension = archive_extension
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def directory(self) -> Path:
        return self._dir

    @property
    def backup_directory(self) -> Path:
        return self._backup_dir

    def prepare(self, with_backups: bool = True) -> None:
        """
        Create the artifact (and backup) directories.

        Raises:
            SetupError: If a directory cannot be created
        """
        targets = [self._dir]
        if with_backups:
            targets.append(self._backup_dir)
        for target in targets:
            try:
                target.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise SetupError(f"Cannot create directory: {e}", path=str(target))

    def _path_for(self, filename: str) -> Path:
        """Resolve a registry-supplied filename inside the artifact directory."""
        if (
            not filename
            or filename in (".", "..")
            or "/" in filename
            or "\\" in filename
            or filename.startswith(TEMP_PREFIX)
        ):
            raise FilesystemError(f"Refusing unsafe artifact filename: {filename!r}")
        return self._dir / filename

    def exists(self, filename: str) -> bool:
        """Return True if an artifact with exactly this filename is installed."""
        return self._path_for(filename).is_file()

    def list_artifacts(self) -> list[str]:
        """Return installed artifact filenames in no particular order."""
        if not self._dir.is_dir():
            return []
        return [
            entry.name
            for entry in self._dir.iterdir()
            if entry.is_file() and not entry.name.startswith(TEMP_PREFIX)
        ]

    def backup_all(self) -> BackupSnapshot:
        """
        Copy every installed artifact into a new timestamped snapshot.

        Raises:
            FilesystemError: If the snapshot cannot be written completely
        """
        moment = self._clock().astimezone(timezone.utc)
        created_at = moment.replace(microsecond=moment.microsecond // 1000 * 1000)
        base_name = f"{BACKUP_PREFIX}{_timestamp_name(created_at)}"
        snapshot_dir = self._backup_dir / base_name

        copied = []
        created = False
        try:
            suffix = 1
            while snapshot_dir.exists():
                snapshot_dir = self._backup_dir / f"{base_name}-{suffix}"
                suffix += 1
            snapshot_dir.mkdir(parents=True)
            created = True
            for filename in sorted(self.list_artifacts()):
                shutil.copy2(self._dir / filename, snapshot_dir / filename)
                copied.append(filename)
        except (OSError, shutil.Error) as e:
            # never leave a partial snapshot behind
            if created:
                shutil.rmtree(snapshot_dir, ignore_errors=True)
            raise FilesystemError(f"Backup failed: {e}", path=str(snapshot_dir))

        logger.info(f"Backed up {len(copied)} artifact(s) to {snapshot_dir}")
        return BackupSnapshot(path=snapshot_dir, created_at=created_at, files=tuple(copied))

    def list_backups(self) -> list[BackupSnapshot]:
        """
        Return existing snapshots, newest first.

        Snapshots are ordered by the timestamp in their name, then by their
        collision suffix. Directories whose name does not parse sort by
        modification time and are never pruned.
        """
        if not self._backup_dir.is_dir():
            return []

        keyed = []
        for entry in self._backup_dir.iterdir():
            if not entry.is_dir() or not entry.name.startswith(BACKUP_PREFIX):
                continue
            files = tuple(sorted(f.name for f in entry.iterdir() if f.is_file()))
            parsed = _parse_snapshot_name(entry.name)
            if parsed is None:
                created_at, suffix = datetime.fromtimestamp(entry.stat().st_mtime, timezone.utc), -1
            else:
                created_at, suffix = parsed
            keyed.append(((created_at, suffix), BackupSnapshot(path=entry, created_at=created_at, files=files)))

        keyed.sort(key=lambda item: item[0], reverse=True)
        return [snapshot for _, snapshot in keyed]

    def prune_backups(self, keep: int) -> list[Path]:
        """
        Remove all but the newest `keep` snapshots.

        Args:
            keep: Number of snapshots to retain; 0 keeps everything

        Returns:
            Paths of removed snapshots

        Raises:
            FilesystemError: If a snapshot cannot be removed
        """
        if keep <= 0:
            return []

        managed = [s for s in self.list_backups() if _parse_snapshot_name(s.name) is not None]
        removed = []
        for snapshot in managed[keep:]:
            try:
                shutil.rmtree(snapshot.path)
            except OSError as e:
                raise FilesystemError(f"Could not remove old backup: {e}", path=str(snapshot.path))
            removed.append(snapshot.path)
            logger.debug(f"Removed old backup {snapshot.path}")
        return removed

    def evict(self, predicate: Callable[[str], bool]) -> list[str]:
        """
        Delete every installed artifact whose filename matches predicate.

        Returns:
            Filenames that were removed

        Raises:
            FilesystemError: If a matching artifact cannot be deleted
        """
        removed = []
        for filename in self.list_artifacts():
            if not predicate(filename):
                continue
            try:
                (self._dir / filename).unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise FilesystemError(f"Could not remove old version: {e}", path=filename)
            removed.append(filename)
            logger.info(f"Removed old version: {filename}")
        return removed

    def commit(self, filename: str, content: bytes) -> Path:
        """
        Write content as an installed artifact, replacing any existing file.

        Raises:
            FilesystemError: If the write or replace fails
        """
        target = self._path_for(filename)
        temp_path = self._dir / f"{TEMP_PREFIX}{filename}.part"

        try:
            temp_path.write_bytes(content)
            os.replace(temp_path, target)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise FilesystemError(f"Could not write artifact: {e}", path=str(target))

        return target
