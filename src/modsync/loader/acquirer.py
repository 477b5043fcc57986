"""
Loader acquisition - fetch the server launcher binary.

The sync run only depends on the LoaderAcquirer protocol. The bundled
implementation downloads the Fabric server launcher straight from the
Fabric meta API:
- GET {meta}/versions/loader/{game}                               -> loader builds
- GET {meta}/versions/installer                                   -> installer builds
- GET {meta}/versions/loader/{game}/{loader}/{installer}/server/jar -> launcher jar
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from modsync.config import SyncConfig
from modsync.core.exceptions import AcquisitionError
from modsync.http import build_client, retry_policy

logger = logging.getLogger(__name__)

LATEST = "latest"


@dataclass(frozen=True)
class LoaderAcquisition:
    """Outcome of fetching the loader binary."""

    ok: bool
    path: Path | None = None
    loader_version: str | None = None
    error: str | None = None

    @classmethod
    def acquired(cls, path: Path, loader_version: str) -> "LoaderAcquisition":
        return cls(ok=True, path=path, loader_version=loader_version)

    @classmethod
    def failed(cls, error: str) -> "LoaderAcquisition":
        return cls(ok=False, error=error)


class LoaderAcquirer(Protocol):
    """Fetches the loader binary for a game version."""

    def fetch_loader_binary(self, game_version: str, loader_version: str = LATEST) -> LoaderAcquisition: ...


def _pick_version(entries: Any, key: str | None = None) -> str:
    """Return the first stable version in a meta listing, else the first one."""
    if not isinstance(entries, list) or not entries:
        raise ValueError("empty version listing")

    def unwrap(entry: dict[str, Any]) -> dict[str, Any]:
        return entry[key] if key else entry

    for entry in entries:
        if unwrap(entry).get("stable"):
            return str(unwrap(entry)["version"])
    return str(unwrap(entries[0])["version"])


class FabricLoaderAcquirer:
    """Direct-download acquirer for the Fabric server launcher."""

    def __init__(
        self,
        config: SyncConfig,
        client: httpx.Client | None = None,
        target_name: str = "server.jar",
    ):
        self._config = config
        self._base_url = config.loader_meta_url.rstrip("/")
        self._target = config.install_dir / target_name
        self._owns_client = client is None
        self._client = client or build_client(config)

    def _get(self, url: str) -> httpx.Response:
        for attempt in retry_policy(self._config):
            with attempt:
                response = self._client.get(url)
                response.raise_for_status()
        return response

    def _resolve_loader(self, game_version: str, loader_version: str) -> str:
        if loader_version.lower() != LATEST:
            return loader_version
        listing = self._get(f"{self._base_url}/versions/loader/{quote(game_version, safe='')}").json()
        return _pick_version(listing, key="loader")

    def _resolve_installer(self) -> str:
        return _pick_version(self._get(f"{self._base_url}/versions/installer").json())

    def _write(self, content: bytes) -> Path:
        temp_path = self._target.with_name(f".{self._target.name}.part")
        try:
            self._target.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(content)
            os.replace(temp_path, self._target)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise
        return self._target

    def acquire(self, game_version: str, loader_version: str = LATEST) -> tuple[Path, str]:
        """
        Download the launcher for a game version.

        Returns:
            Path of the written launcher and the resolved loader version

        Raises:
            AcquisitionError: If any lookup, download or write fails
        """
        try:
            loader = self._resolve_loader(game_version, loader_version)
            installer = self._resolve_installer()
            url = (
                f"{self._base_url}/versions/loader/{quote(game_version, safe='')}/"
                f"{quote(loader, safe='')}/{quote(installer, safe='')}/server/jar"
            )
            path = self._write(self._get(url).content)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError, OSError) as e:
            raise AcquisitionError(
                f"Fabric loader update failed: {e}",
                game_version=game_version,
                loader_version=loader_version,
            )

        logger.info(f"Fabric server launcher updated: {path} (loader {loader}, installer {installer})")
        return path, loader

    def fetch_loader_binary(self, game_version: str, loader_version: str = LATEST) -> LoaderAcquisition:
        """Fetch the launcher, reporting failure as a value instead of raising."""
        if loader_version.lower() == LATEST:
            logger.info("Checking for latest Fabric loader...")
        else:
            logger.info(f"Updating Fabric loader to {loader_version}...")

        try:
            path, resolved = self.acquire(game_version, loader_version)
        except AcquisitionError as e:
            logger.warning(f"{e}; skipping loader update, continuing with mod updates")
            return LoaderAcquisition.failed(str(e))
        return LoaderAcquisition.acquired(path, resolved)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
