"""
modsync Core Module.

Provides foundational types and the exception hierarchy.
"""

__all__ = [
    "FileDescriptor",
    "Lookup",
    "LookupStatus",
    "PackageMetadata",
    "PlatformConstraint",
    "ReleaseDescriptor",
    # Exceptions
    "ModSyncError",
    "TransportError",
    "IntegrityError",
    "FilesystemError",
    "SetupError",
    "AcquisitionError",
    "LifecycleError",
    "ConfigurationError",
]

from modsync.core.exceptions import (
    AcquisitionError,
    ConfigurationError,
    FilesystemError,
    IntegrityError,
    LifecycleError,
    ModSyncError,
    SetupError,
    TransportError,
)
from modsync.core.models import (
    FileDescriptor,
    Lookup,
    LookupStatus,
    PackageMetadata,
    PlatformConstraint,
    ReleaseDescriptor,
)
