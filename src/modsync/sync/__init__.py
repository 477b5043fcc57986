"""
modsync Sync Module.

The synchronization engine, its report, and the whole-run updater.
"""

__all__ = [
    "IntegrityVerifier",
    "PlanAction",
    "PlanEntry",
    "ServerUpdater",
    "SyncEngine",
    "UpdateReport",
    "UpdateRun",
    "Verification",
]

from modsync.sync.engine import PlanAction, PlanEntry, SyncEngine
from modsync.sync.integrity import IntegrityVerifier, Verification
from modsync.sync.report import UpdateReport
from modsync.sync.runner import ServerUpdater, UpdateRun
