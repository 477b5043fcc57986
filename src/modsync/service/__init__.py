"""
modsync Service Module.

Game server service control used around a sync run.
"""

__all__ = ["ServiceLifecycleGate", "ServiceStatus", "SystemdServiceGate", "fix_permissions"]

from modsync.service.lifecycle import (
    ServiceLifecycleGate,
    ServiceStatus,
    SystemdServiceGate,
    fix_permissions,
)
