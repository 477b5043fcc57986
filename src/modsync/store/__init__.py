"""
modsync Store Module.

On-disk artifact directory with backup snapshots.
"""

__all__ = ["ArtifactStore", "BackupSnapshot", "slug_matcher"]

from modsync.store.artifacts import ArtifactStore, BackupSnapshot, slug_matcher
