"""Tests for the full server update run."""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from modsync.config import SyncConfig
from modsync.core.exceptions import LifecycleError, SetupError
from modsync.loader.acquirer import LoaderAcquisition
from modsync.service.lifecycle import ServiceStatus
from modsync.store.artifacts import ArtifactStore
from modsync.sync.engine import SyncEngine
from modsync.sync.runner import ServerUpdater


class FakeGate:
    """Records lifecycle calls."""

    def __init__(self, status: ServiceStatus = ServiceStatus.INACTIVE, fail_on: str | None = None):
        self.status = status
        self.fail_on = fail_on
        self.calls: list[str] = []

    def query_status(self) -> ServiceStatus:
        self.calls.append("query")
        return self.status

    def stop(self) -> None:
        self.calls.append("stop")
        if self.fail_on == "stop":
            raise LifecycleError("stop refused", unit="mc", action="stop")
        self.status = ServiceStatus.INACTIVE

    def start(self) -> None:
        self.calls.append("start")
        if self.fail_on == "start":
            raise LifecycleError("start refused", unit="mc", action="start")
        self.status = ServiceStatus.ACTIVE


@pytest.fixture
def config(temp_dir: Path) -> SyncConfig:
    return SyncConfig(install_dir=temp_dir / "server", game_version="1.21.6")


@pytest.fixture
def acquirer() -> Mock:
    mock = Mock()
    mock.fetch_loader_binary.return_value = LoaderAcquisition.acquired(Path("server.jar"), "0.16.14")
    return mock


def _updater(config, registry, **kwargs) -> ServerUpdater:
    store = ArtifactStore(config.mods_dir, backup_dir=config.backup_dir)
    engine = SyncEngine(registry, store, config.constraint(), backup_enabled=config.backup_enabled)
    return ServerUpdater(config, engine, store, **kwargs)


class TestUpdateServer:
    """Tests for ServerUpdater.update_server."""

    def test_creates_directories_and_syncs(self, config, fake_registry, acquirer) -> None:
        fake_registry.add("alpha", "1.0", "alpha-1.0.jar")

        run = _updater(config, fake_registry, acquirer=acquirer).update_server(["alpha"])

        assert config.mods_dir.is_dir()
        assert config.backup_dir.is_dir()
        assert [e.package_id for e in run.report.successful] == ["alpha"]
        assert run.loader.ok
        acquirer.fetch_loader_binary.assert_called_once_with("1.21.6", "latest")
        assert not run.degraded

    def test_loader_failure_does_not_block_mods(self, config, fake_registry, acquirer) -> None:
        acquirer.fetch_loader_binary.return_value = LoaderAcquisition.failed("meta unreachable")
        fake_registry.add("alpha", "1.0", "alpha-1.0.jar")

        run = _updater(config, fake_registry, acquirer=acquirer).update_server(["alpha"])

        assert run.loader.ok is False
        assert [e.package_id for e in run.report.successful] == ["alpha"]
        assert run.degraded

    def test_no_mods_updates_loader_only(self, config, fake_registry, acquirer) -> None:
        run = _updater(config, fake_registry, acquirer=acquirer).update_server([])

        assert run.report.closed
        assert run.report.counts() == {"successful": 0, "failed": 0, "skipped": 0}
        assert run.report.backup is None
        acquirer.fetch_loader_binary.assert_called_once()

    def test_setup_error_aborts(self, temp_dir: Path, fake_registry) -> None:
        blocker = temp_dir / "blocker"
        blocker.write_text("file")
        config = SyncConfig(install_dir=blocker)

        with pytest.raises(SetupError):
            _updater(config, fake_registry).update_server(["alpha"])
        assert fake_registry.constraints == []

    def test_permissions_fixed_when_user_set(self, temp_dir: Path, fake_registry) -> None:
        config = SyncConfig(install_dir=temp_dir / "server", server_user="minecraft", server_group="games")
        fixer = Mock(return_value=True)
        fake_registry.add("alpha", "1.0", "alpha-1.0.jar")

        run = _updater(config, fake_registry, permission_fixer=fixer).update_server(["alpha"])

        fixer.assert_called_once_with(config.install_dir, "minecraft", "games")
        assert run.permissions_fixed is True

    def test_permissions_skipped_without_user(self, config, fake_registry) -> None:
        fixer = Mock()
        run = _updater(config, fake_registry, permission_fixer=fixer).update_server(["alpha"])
        fixer.assert_not_called()
        assert run.permissions_fixed is None


class TestServiceLifecycle:
    """Tests for stopping and restarting the service around a run."""

    def test_running_service_left_alone_by_default(self, config, fake_registry) -> None:
        gate = FakeGate(ServiceStatus.ACTIVE)
        run = _updater(config, fake_registry, gate=gate).update_server([])

        assert run.server_was_running
        assert gate.calls == ["query"]
        assert not run.service_stopped

    def test_stop_and_restart(self, temp_dir: Path, fake_registry) -> None:
        config = SyncConfig(install_dir=temp_dir / "server", restart_on_update=True)
        gate = FakeGate(ServiceStatus.ACTIVE)
        fake_registry.add("alpha", "1.0", "alpha-1.0.jar")

        run = _updater(config, fake_registry, gate=gate).update_server(["alpha"])

        assert gate.calls == ["query", "stop", "start"]
        assert run.service_stopped and run.service_restarted
        assert run.lifecycle_errors == []

    def test_inactive_service_not_started(self, temp_dir: Path, fake_registry) -> None:
        config = SyncConfig(install_dir=temp_dir / "server", restart_on_update=True)
        gate = FakeGate(ServiceStatus.INACTIVE)

        run = _updater(config, fake_registry, gate=gate).update_server([])

        assert gate.calls == ["query"]
        assert not run.service_restarted

    def test_stop_failure_continues(self, temp_dir: Path, fake_registry) -> None:
        config = SyncConfig(install_dir=temp_dir / "server", restart_on_update=True)
        gate = FakeGate(ServiceStatus.ACTIVE, fail_on="stop")
        fake_registry.add("alpha", "1.0", "alpha-1.0.jar")

        run = _updater(config, fake_registry, gate=gate).update_server(["alpha"])

        assert [e.package_id for e in run.report.successful] == ["alpha"]
        assert "start" not in gate.calls
        assert len(run.lifecycle_errors) == 1
        assert run.degraded

    def test_start_failure_recorded(self, temp_dir: Path, fake_registry) -> None:
        config = SyncConfig(install_dir=temp_dir / "server", restart_on_update=True)
        gate = FakeGate(ServiceStatus.ACTIVE, fail_on="start")

        run = _updater(config, fake_registry, gate=gate).update_server([])

        assert run.service_stopped
        assert not run.service_restarted
        assert "start refused" in run.lifecycle_errors[0]

    def test_loader_exception_still_restarts(self, temp_dir: Path, fake_registry, acquirer) -> None:
        """An acquirer that raises is a failed loader step, and the server comes back."""
        config = SyncConfig(install_dir=temp_dir / "server", restart_on_update=True)
        gate = FakeGate(ServiceStatus.ACTIVE)
        acquirer.fetch_loader_binary.side_effect = RuntimeError("unexpected")
        fake_registry.add("alpha", "1.0", "alpha-1.0.jar")

        run = _updater(config, fake_registry, acquirer=acquirer, gate=gate).update_server(["alpha"])

        assert gate.calls == ["query", "stop", "start"]
        assert gate.status == ServiceStatus.ACTIVE
        assert run.loader.ok is False
        assert "unexpected" in run.loader.error
        assert [e.package_id for e in run.report.successful] == ["alpha"]

    def test_engine_exception_still_restarts(self, temp_dir: Path, fake_registry) -> None:
        config = SyncConfig(install_dir=temp_dir / "server", restart_on_update=True)
        gate = FakeGate(ServiceStatus.ACTIVE)
        updater = _updater(config, fake_registry, gate=gate)

        with patch.object(updater.engine, "synchronize", side_effect=RuntimeError("disk gone")):
            with pytest.raises(RuntimeError):
                updater.update_server(["alpha"])

        assert gate.calls == ["query", "stop", "start"]
        assert gate.status == ServiceStatus.ACTIVE


class TestFromConfig:
    """Tests for production wiring."""

    def test_wires_collaborators(self, config) -> None:
        with ServerUpdater.from_config(config) as updater:
            assert updater.store.directory == config.mods_dir
            assert updater._acquirer is not None
            assert updater._gate is None
            assert len(updater._resources) == 2
        assert updater._resources == []

    def test_skip_loader_and_service_unit(self, temp_dir: Path) -> None:
        config = SyncConfig(install_dir=temp_dir, service_unit="minecraft")
        with ServerUpdater.from_config(config, skip_loader=True) as updater:
            assert updater._acquirer is None
            assert updater._gate.unit == "minecraft"
