"""
Service lifecycle gate - pause and resume the game server around a run.

The updater depends only on the ServiceLifecycleGate protocol; the
systemd implementation shells out to systemctl.
"""

import logging
import subprocess
import time
from enum import Enum
from pathlib import Path
from typing import Callable, Protocol

from modsync.core.exceptions import LifecycleError

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


class ServiceStatus(Enum):
    """Coarse service state."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class ServiceLifecycleGate(Protocol):
    """Query, stop and start the running service."""

    def query_status(self) -> ServiceStatus: ...

    def stop(self) -> None: ...

    def start(self) -> None: ...


class SystemdServiceGate:
    """
    Lifecycle gate for a systemd unit.

    stop() and start() raise LifecycleError when systemctl fails; a unit
    that does not reach the expected state within the settle delay is
    only logged.
    """

    def __init__(
        self,
        unit: str,
        *,
        use_sudo: bool = True,
        settle_seconds: float = 5.0,
        runner: Runner = subprocess.run,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.unit = unit
        self._use_sudo = use_sudo
        self._settle_seconds = settle_seconds
        self._run = runner
        self._sleep = sleep

    def query_status(self) -> ServiceStatus:
        """Return ACTIVE only when systemctl reports exactly 'active'."""
        try:
            result = self._run(
                ["systemctl", "is-active", self.unit],
                capture_output=True,
                text=True,
                timeout=30,
                shell=False,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"systemctl is-active {self.unit} failed: {e}")
            return ServiceStatus.INACTIVE

        if result.stdout.strip() == ServiceStatus.ACTIVE.value:
            return ServiceStatus.ACTIVE
        return ServiceStatus.INACTIVE

    def _control(self, action: str, expected: ServiceStatus) -> None:
        cmd = ["systemctl", action, self.unit]
        if self._use_sudo:
            cmd.insert(0, "sudo")

        try:
            self._run(cmd, capture_output=True, text=True, check=True, timeout=120, shell=False)
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise LifecycleError(
                f"Failed to {action} {self.unit}: exit {e.returncode} {stderr}".rstrip(),
                unit=self.unit,
                action=action,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired, OSError) as e:
            raise LifecycleError(f"Failed to {action} {self.unit}: {e}", unit=self.unit, action=action)

        self._sleep(self._settle_seconds)
        status = self.query_status()
        if status == expected:
            logger.info(f"{self.unit} {action} completed ({status.value})")
        else:
            logger.warning(f"{self.unit} status after {action}: {status.value}")

    def stop(self) -> None:
        logger.info(f"Stopping {self.unit} service...")
        self._control("stop", ServiceStatus.INACTIVE)

    def start(self) -> None:
        logger.info(f"Starting {self.unit} service...")
        self._control("start", ServiceStatus.ACTIVE)


def fix_permissions(
    path: Path,
    user: str,
    group: str | None = None,
    runner: Runner = subprocess.run,
) -> bool:
    """
    Hand the server directory back to the server's OS account.

    Returns:
        True if chown succeeded; failures are logged, never raised
    """
    owner = f"{user}:{group}" if group else user
    logger.info(f"Fixing file permissions for {owner} on {path}...")
    try:
        runner(
            ["sudo", "chown", "-R", owner, str(path)],
            capture_output=True,
            text=True,
            check=True,
            timeout=300,
            shell=False,
        )
    except (subprocess.CalledProcessError, FileNotFoundError, subprocess.TimeoutExpired, OSError) as e:
        logger.warning(f"Failed to fix permissions: {e}")
        return False
    return True
