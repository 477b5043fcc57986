"""
Server updater - one complete update run.

Sequence:
1. create required directories (the only abort point)
2. stop the service if it is running and restarts are enabled
3. refresh the loader binary
4. synchronize tracked mods
5. repair file ownership
6. start the service again if this run stopped it

Every step after the first degrades gracefully: its failure is logged and
recorded on the UpdateRun, and the remaining steps still run.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from modsync.config import SyncConfig
from modsync.core.exceptions import LifecycleError
from modsync.loader.acquirer import FabricLoaderAcquirer, LoaderAcquirer, LoaderAcquisition
from modsync.registry.client import RegistryClient
from modsync.service.lifecycle import (
    ServiceLifecycleGate,
    ServiceStatus,
    SystemdServiceGate,
    fix_permissions,
)
from modsync.store.artifacts import ArtifactStore
from modsync.sync.engine import SyncEngine
from modsync.sync.integrity import IntegrityVerifier
from modsync.sync.report import UpdateReport

logger = logging.getLogger(__name__)


@dataclass
class UpdateRun:
    """Everything that happened during update_server()."""

    report: UpdateReport
    loader: LoaderAcquisition | None = None
    server_was_running: bool = False
    service_stopped: bool = False
    service_restarted: bool = False
    lifecycle_errors: list[str] = field(default_factory=list)
    permissions_fixed: bool | None = None

    @property
    def degraded(self) -> bool:
        """True if any non-package step failed."""
        loader_failed = self.loader is not None and not self.loader.ok
        return bool(
            loader_failed
            or self.lifecycle_errors
            or self.report.backup_error
            or self.permissions_fixed is False
        )


class ServerUpdater:
    """Runs the loader refresh and mod synchronization as one unit."""

    def __init__(
        self,
        config: SyncConfig,
        engine: SyncEngine,
        store: ArtifactStore,
        acquirer: LoaderAcquirer | None = None,
        gate: ServiceLifecycleGate | None = None,
        permission_fixer: Callable[..., bool] = fix_permissions,
    ):
        """
        Initialize the updater with its collaborators.

        Args:
            config: Run configuration
            engine: Mod synchronization engine
            store: Artifact store the engine writes to
            acquirer: Loader binary source; None skips the loader step
            gate: Service control; None skips the lifecycle steps
            permission_fixer: Ownership repair callable
        """
        self._config = config
        self._engine = engine
        self._store = store
        self._acquirer = acquirer
        self._gate = gate
        self._fix_permissions = permission_fixer
        self._resources: list = []

    @classmethod
    def from_config(cls, config: SyncConfig, *, skip_loader: bool = False) -> "ServerUpdater":
        """Wire the production collaborators for a config."""
        store = ArtifactStore(
            config.mods_dir,
            backup_dir=config.backup_dir,
            archive_extension=config.archive_extension,
        )
        registry = RegistryClient(config)
        engine = SyncEngine(
            registry,
            store,
            config.constraint(),
            IntegrityVerifier(config.digest_algorithm),
            backup_enabled=config.backup_enabled,
            backup_keep=config.backup_keep,
            require_digest=config.require_digest,
        )
        acquirer = None if skip_loader else FabricLoaderAcquirer(config)
        gate = SystemdServiceGate(config.service_unit) if config.service_unit else None

        updater = cls(config, engine, store, acquirer=acquirer, gate=gate)
        updater._resources = [r for r in (registry, acquirer) if r is not None]
        return updater

    @property
    def engine(self) -> SyncEngine:
        return self._engine

    @property
    def store(self) -> ArtifactStore:
        return self._store

    def update_server(self, mod_ids: Iterable[str] = ()) -> UpdateRun:
        """
        Perform a full update run.

        Args:
            mod_ids: Tracked package identifiers

        Returns:
            UpdateRun with the mod report and step outcomes

        Raises:
            SetupError: If required directories cannot be created
        """
        mod_ids = list(mod_ids)
        self._store.prepare(with_backups=self._config.backup_enabled)

        run = UpdateRun(report=UpdateReport())
        logger.info("Starting server update...")

        if self._gate is not None:
            self._pause_service(run)

        try:
            if self._acquirer is not None:
                run.loader = self._fetch_loader()

            if mod_ids:
                logger.info("Starting mod updates...")
                run.report = self._engine.synchronize(mod_ids)
                if self._config.server_user:
                    run.permissions_fixed = self._fix_permissions(
                        self._config.install_dir,
                        self._config.server_user,
                        self._config.server_group,
                    )
            else:
                run.report.close()
        finally:
            if run.service_stopped:
                self._resume_service(run)

        logger.info("Server update completed")
        return run

    def _fetch_loader(self) -> LoaderAcquisition:
        try:
            return self._acquirer.fetch_loader_binary(
                self._config.game_version, self._config.loader_version
            )
        except Exception as e:
            logger.exception("Loader update failed, continuing with mod updates")
            return LoaderAcquisition.failed(str(e) or type(e).__name__)

    def _pause_service(self, run: UpdateRun) -> None:
        status = self._gate.query_status()
        run.server_was_running = status == ServiceStatus.ACTIVE
        if not run.server_was_running:
            return

        logger.info(f"Server is currently running ({status.value})")
        if not self._config.restart_on_update:
            logger.warning("Server is running. Consider stopping it before updating mods.")
            return

        try:
            self._gate.stop()
        except LifecycleError as e:
            logger.error(f"Failed to stop server, continuing anyway: {e}")
            run.lifecycle_errors.append(str(e))
            return
        run.service_stopped = True

    def _resume_service(self, run: UpdateRun) -> None:
        try:
            self._gate.start()
        except LifecycleError as e:
            logger.error(f"Failed to start server: {e}")
            run.lifecycle_errors.append(str(e))
            return
        run.service_restarted = True

    def close(self) -> None:
        """Close HTTP clients created by from_config()."""
        for resource in self._resources:
            resource.close()
        self._resources = []

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
