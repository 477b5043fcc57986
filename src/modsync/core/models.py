"""
Core data models for modsync.

Registry payloads are parsed into pydantic models; run-scoped values and
collaborator outcomes are plain dataclasses.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


@dataclass(frozen=True)
class PlatformConstraint:
    """Immutable platform filter applied to every registry version query."""

    game_version: str
    loader_kind: str = "fabric"

    def query_params(self) -> dict[str, str]:
        """Return query parameters in the registry's JSON-array form."""
        return {
            "loaders": json.dumps([self.loader_kind]),
            "game_versions": json.dumps([self.game_version]),
        }


class PackageMetadata(BaseModel):
    """Package metadata as returned by GET /project/{id}."""

    slug: str
    title: str
    id: str | None = None

    model_config = ConfigDict(extra="ignore")


class FileDescriptor(BaseModel):
    """One downloadable file of a release."""

    filename: str
    download_url: str = Field(alias="url")
    is_primary: bool = Field(default=False, alias="primary")
    hashes: dict[str, str] = Field(default_factory=dict)
    size: int | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    def expected_digest(self, algorithm: str = "sha1") -> str | None:
        """Return the published hex digest for an algorithm, if any."""
        digest = self.hashes.get(algorithm)
        return digest.lower() if digest else None


class ReleaseDescriptor(BaseModel):
    """One release of a package, as listed by the version query."""

    version_number: str
    files: list[FileDescriptor] = Field(default_factory=list)
    published_at: datetime | None = Field(default=None, alias="date_published")
    name: str | None = None

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    def primary_file(self) -> FileDescriptor:
        """
        Select the file to install.

        The first file flagged primary wins; when none is flagged, the first
        file in registry order is used.

        Raises:
            ValueError: If the release lists no files
        """
        if not self.files:
            raise ValueError(f"Release {self.version_number} has no downloadable files")
        for candidate in self.files:
            if candidate.is_primary:
                return candidate
        return self.files[0]


class LookupStatus(Enum):
    """Outcomes of a registry lookup."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    NO_COMPATIBLE_VERSION = "no_compatible_version"
    TRANSPORT_FAILURE = "transport_failure"


@dataclass(frozen=True)
class Lookup(Generic[T]):
    """Tagged result of a registry lookup; `value` is set only when found."""

    status: LookupStatus
    value: T | None = None
    error: str | None = None

    @property
    def found(self) -> bool:
        return self.status == LookupStatus.FOUND

    @classmethod
    def hit(cls, value: T) -> "Lookup[T]":
        return cls(status=LookupStatus.FOUND, value=value)

    @classmethod
    def miss(cls, status: LookupStatus, error: str | None = None) -> "Lookup[T]":
        return cls(status=status, error=error)


def parse_latest_release(payload: Any) -> ReleaseDescriptor | None:
    """
    Parse the first release of a version-list response body.

    Only the first entry is validated; older releases may be malformed
    without affecting the result. Returns None for an empty list.

    Raises:
        ValueError: If the payload is not a list, or its first entry is not
            a valid release object
    """
    if not isinstance(payload, list):
        raise ValueError(f"Expected a JSON array of releases, got {type(payload).__name__}")
    if not payload:
        return None
    return ReleaseDescriptor.model_validate(payload[0])
