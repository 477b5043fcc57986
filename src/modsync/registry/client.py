"""
Registry client - resolves packages and their latest compatible release.

Talks to a Modrinth-compatible v2 API:
- GET /project/{id}                          -> {slug, title, ...}
- GET /project/{id}/version?loaders&game_versions -> [release, ...]

Lookups never raise; every outcome is returned as a Lookup variant.
"""

import logging
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from modsync.config import SyncConfig
from modsync.core.exceptions import TransportError
from modsync.core.models import (
    Lookup,
    LookupStatus,
    PackageMetadata,
    PlatformConstraint,
    ReleaseDescriptor,
    parse_latest_release,
)
from modsync.http import build_client, retry_policy

logger = logging.getLogger(__name__)


class RegistryClient:
    """
    Version resolver backed by the package registry.

    "Latest" is the first release the registry returns for the filtered
    query. Releases are not re-sorted by version number or publish date.
    """

    def __init__(self, config: SyncConfig, client: httpx.Client | None = None):
        """
        Initialize the registry client.

        Args:
            config: Run configuration (registry URL, timeout, retries)
            client: Optional pre-built httpx client; one is created if omitted
        """
        self._config = config
        self._base_url = config.registry_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or build_client(config)

    def _project_url(self, package_id: str) -> str:
        return f"{self._base_url}/project/{quote(package_id, safe='')}"

    def _get_json(self, url: str, params: dict[str, str] | None = None):
        """GET a URL with retries and return the decoded JSON body."""
        for attempt in retry_policy(self._config):
            with attempt:
                response = self._client.get(url, params=params)
                response.raise_for_status()
        return response.json()

    def _failure(self, error: Exception, url: str) -> Lookup:
        """Map a request exception to a lookup outcome."""
        if isinstance(error, httpx.HTTPStatusError):
            status_code = error.response.status_code
            if status_code == 404:
                return Lookup.miss(LookupStatus.NOT_FOUND, f"Not found: {url}")
            return Lookup.miss(
                LookupStatus.TRANSPORT_FAILURE,
                f"Registry returned HTTP {status_code} for {url}",
            )
        if isinstance(error, httpx.HTTPError):
            return Lookup.miss(
                LookupStatus.TRANSPORT_FAILURE,
                f"Registry unreachable: {error}",
            )
        return Lookup.miss(
            LookupStatus.TRANSPORT_FAILURE,
            f"Malformed registry response from {url}: {error}",
        )

    def resolve_package_info(self, package_id: str) -> Lookup[PackageMetadata]:
        """
        Fetch a package's metadata.

        Returns:
            Lookup with PackageMetadata when found, otherwise NOT_FOUND or
            TRANSPORT_FAILURE
        """
        url = self._project_url(package_id)
        try:
            payload = self._get_json(url)
            metadata = PackageMetadata.model_validate(payload)
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            lookup = self._failure(e, url)
            logger.warning(f"Failed to get package info for {package_id}: {lookup.error}")
            return lookup

        return Lookup.hit(metadata)

    def resolve_latest(
        self, package_id: str, constraint: PlatformConstraint
    ) -> Lookup[ReleaseDescriptor]:
        """
        Fetch the latest release compatible with a platform constraint.

        Returns:
            Lookup with the first compatible ReleaseDescriptor, or
            NO_COMPATIBLE_VERSION for an empty filtered list, or NOT_FOUND /
            TRANSPORT_FAILURE when the query itself fails
        """
        url = f"{self._project_url(package_id)}/version"
        try:
            payload = self._get_json(url, params=constraint.query_params())
            latest = parse_latest_release(payload)
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            lookup = self._failure(e, url)
            logger.warning(f"Failed to get versions for {package_id}: {lookup.error}")
            return lookup

        if latest is None:
            logger.info(
                f"No compatible versions found for {package_id} "
                f"({constraint.loader_kind} {constraint.game_version})"
            )
            return Lookup.miss(
                LookupStatus.NO_COMPATIBLE_VERSION,
                f"No release of {package_id} supports "
                f"{constraint.loader_kind} {constraint.game_version}",
            )

        if not latest.files:
            return Lookup.miss(
                LookupStatus.TRANSPORT_FAILURE,
                f"Release {latest.version_number} of {package_id} lists no files",
            )
        return Lookup.hit(latest)

    def download(self, url: str) -> bytes:
        """
        Stream a file's bytes into memory.

        Raises:
            TransportError: If the file cannot be fetched
        """
        try:
            for attempt in retry_policy(self._config):
                with attempt:
                    buffer = bytearray()
                    with self._client.stream("GET", url) as response:
                        response.raise_for_status()
                        for chunk in response.iter_bytes():
                            buffer.extend(chunk)
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Download failed with HTTP {e.response.status_code}",
                url=url,
                status_code=e.response.status_code,
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Download failed: {e}", url=url)

        return bytes(buffer)

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, *args):
        """Context manager exit."""
        self.close()
