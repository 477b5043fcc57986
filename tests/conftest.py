"""Pytest configuration and fixtures."""

import hashlib
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from modsync.config import ENV_OVERRIDES
from modsync.core.exceptions import TransportError
from modsync.core.models import (
    FileDescriptor,
    Lookup,
    LookupStatus,
    PackageMetadata,
    PlatformConstraint,
    ReleaseDescriptor,
)
from modsync.store.artifacts import ArtifactStore


class FakeRegistry:
    """In-memory stand-in for RegistryClient."""

    def __init__(self):
        self.packages: dict[str, PackageMetadata] = {}
        self.releases: dict[str, list[ReleaseDescriptor]] = {}
        self.payloads: dict[str, bytes] = {}
        self.info_failures: dict[str, LookupStatus] = {}
        self.release_failures: dict[str, LookupStatus] = {}
        self.download_failures: set[str] = set()
        self.download_calls: list[str] = []
        self.constraints: list[PlatformConstraint] = []

    def add(
        self,
        package_id: str,
        version: str,
        filename: str,
        content: bytes = b"jar-bytes",
        *,
        digest: str | None = "auto",
        title: str | None = None,
        slug: str | None = None,
    ) -> ReleaseDescriptor:
        """Register a package with a single release and one primary file."""
        url = f"https://cdn.example.test/{package_id}/{filename}"
        hashes = {}
        if digest == "auto":
            hashes["sha1"] = hashlib.sha1(content).hexdigest()
        elif digest is not None:
            hashes["sha1"] = digest

        release = ReleaseDescriptor(
            version_number=version,
            files=[FileDescriptor(filename=filename, url=url, primary=True, hashes=hashes)],
        )
        self.packages[package_id] = PackageMetadata(
            slug=slug or package_id, title=title or package_id.title()
        )
        self.releases[package_id] = [release]
        self.payloads[url] = content
        return release

    def resolve_package_info(self, package_id: str) -> Lookup[PackageMetadata]:
        if package_id in self.info_failures:
            return Lookup.miss(self.info_failures[package_id], "boom")
        if package_id not in self.packages:
            return Lookup.miss(LookupStatus.NOT_FOUND, f"Not found: {package_id}")
        return Lookup.hit(self.packages[package_id])

    def resolve_latest(
        self, package_id: str, constraint: PlatformConstraint
    ) -> Lookup[ReleaseDescriptor]:
        self.constraints.append(constraint)
        if package_id in self.release_failures:
            return Lookup.miss(self.release_failures[package_id], "registry down")
        releases = self.releases.get(package_id, [])
        if not releases:
            return Lookup.miss(LookupStatus.NO_COMPATIBLE_VERSION, "none")
        return Lookup.hit(releases[0])

    def download(self, url: str) -> bytes:
        self.download_calls.append(url)
        if url in self.download_failures:
            raise TransportError("connection reset", url=url)
        return self.payloads[url]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep MODSYNC_* variables from the host out of tests."""
    for env_var in ENV_OVERRIDES:
        monkeypatch.delenv(env_var, raising=False)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mods_dir(temp_dir: Path) -> Path:
    """Provide an existing, empty mods directory."""
    path = temp_dir / "server" / "mods"
    path.mkdir(parents=True)
    return path


@pytest.fixture
def store(mods_dir: Path) -> ArtifactStore:
    """Provide an ArtifactStore over the temporary mods directory."""
    return ArtifactStore(mods_dir, backup_dir=mods_dir.parent / "mods-backup")


@pytest.fixture
def fake_registry() -> FakeRegistry:
    """Provide an empty in-memory registry."""
    return FakeRegistry()


@pytest.fixture
def constraint() -> PlatformConstraint:
    """Provide the default platform constraint."""
    return PlatformConstraint(game_version="1.21.6", loader_kind="fabric")
