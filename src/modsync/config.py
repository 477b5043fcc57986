"""
Configuration for a sync run.

Values are layered: defaults, then a YAML or JSON config file, then
MODSYNC_* environment variables, then explicit overrides from the CLI.
"""

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from modsync.core.exceptions import ConfigurationError
from modsync.core.models import PlatformConstraint

SUPPORTED_DIGESTS = ("sha1", "sha512")

# env var -> config key
ENV_OVERRIDES = {
    "MODSYNC_INSTALL_DIR": "install_dir",
    "MODSYNC_MODS_DIR": "mods_dir",
    "MODSYNC_GAME_VERSION": "game_version",
    "MODSYNC_LOADER_VERSION": "loader_version",
    "MODSYNC_SERVICE_UNIT": "service_unit",
    "MODSYNC_TIMEOUT_MS": "request_timeout_ms",
    "MODSYNC_BACKUP": "backup_enabled",
    "MODSYNC_RESTART": "restart_on_update",
}


class SyncConfig(BaseModel):
    """Settings for one synchronization run."""

    install_dir: Path = Path("./server")
    mods_dir: Path | None = None
    backup_dir: Path | None = None
    game_version: str = "1.20.4"
    loader_kind: str = "fabric"
    loader_version: str = "latest"
    request_timeout_ms: int = 30000
    backup_enabled: bool = True
    backup_keep: int = 0
    service_unit: str | None = None
    restart_on_update: bool = False
    server_user: str | None = None
    server_group: str | None = None
    registry_url: str = "https://api.modrinth.com/v2"
    loader_meta_url: str = "https://meta.fabricmc.net/v2"
    archive_extension: str = ".jar"
    digest_algorithm: str = "sha1"
    require_digest: bool = False
    max_retries: int = 3
    retry_backoff_seconds: float = 1.0
    user_agent: str = "modsync/0.1.0"
    mods: list[str] = Field(default_factory=list)

    model_config = {"extra": "forbid"}

    @field_validator("request_timeout_ms")
    @classmethod
    def _positive_timeout(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("request_timeout_ms must be positive")
        return value

    @field_validator("backup_keep")
    @classmethod
    def _non_negative_keep(cls, value: int) -> int:
        if value < 0:
            raise ValueError("backup_keep must be >= 0")
        return value

    @field_validator("max_retries")
    @classmethod
    def _at_least_one_attempt(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_retries must be >= 1")
        return value

    @field_validator("archive_extension")
    @classmethod
    def _dotted_extension(cls, value: str) -> str:
        if not value.startswith(".") or len(value) < 2:
            raise ValueError("archive_extension must look like '.jar'")
        return value

    @field_validator("loader_version", "game_version", mode="before")
    @classmethod
    def _coerce_version(cls, value: Any) -> Any:
        # YAML reads "1.21" as a float
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("loader_version", "game_version")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("digest_algorithm")
    @classmethod
    def _known_digest(cls, value: str) -> str:
        value = value.lower()
        if value not in SUPPORTED_DIGESTS:
            raise ValueError(f"digest_algorithm must be one of {', '.join(SUPPORTED_DIGESTS)}")
        return value

    @field_validator("mods")
    @classmethod
    def _unique_mods(cls, value: list[str]) -> list[str]:
        seen: set[str] = set()
        unique = []
        for mod_id in value:
            if mod_id not in seen:
                seen.add(mod_id)
                unique.append(mod_id)
        return unique

    @model_validator(mode="after")
    def _derive_directories(self) -> "SyncConfig":
        if self.mods_dir is None:
            self.mods_dir = self.install_dir / "mods"
        if self.backup_dir is None:
            self.backup_dir = self.install_dir / "mods-backup"
        return self

    @property
    def timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000

    @property
    def latest_loader(self) -> bool:
        return self.loader_version.lower() == "latest"

    def constraint(self) -> PlatformConstraint:
        """Return the platform constraint for this run."""
        return PlatformConstraint(game_version=self.game_version, loader_kind=self.loader_kind)


def _read_config_file(path: Path) -> dict[str, Any]:
    """Load a YAML or JSON config file into a mapping."""
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}", config_file=str(path))

    try:
        content = path.read_text()
        if path.suffix.lower() == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Could not read config file: {e}", config_file=str(path))

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Config file must contain a mapping at the top level",
            config_file=str(path),
        )
    return data


def _env_overrides() -> dict[str, Any]:
    """Collect MODSYNC_* environment overrides."""
    values: dict[str, Any] = {}
    for env_var, key in ENV_OVERRIDES.items():
        raw = os.getenv(env_var)
        if raw is None or raw == "":
            continue
        if key in ("backup_enabled", "restart_on_update"):
            values[key] = raw.strip().lower() in ("1", "true", "yes", "on")
        else:
            values[key] = raw
    return values


def load_config(
    path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> SyncConfig:
    """
    Build a SyncConfig from file, environment and explicit overrides.

    Args:
        path: Optional YAML (.yaml/.yml) or JSON config file
        overrides: Values that win over everything else; None values are ignored

    Returns:
        Validated SyncConfig

    Raises:
        ConfigurationError: If the file is unreadable or a value is invalid
    """
    data: dict[str, Any] = {}
    if path is not None:
        data.update(_read_config_file(path))
    data.update(_env_overrides())
    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return SyncConfig(**data)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigurationError(
            f"Invalid configuration: {first.get('msg', 'validation failed')}",
            config_file=str(path) if path else None,
            config_key=key or None,
        )
