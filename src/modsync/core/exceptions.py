"""
modsync Exception Hierarchy.

Defines the error taxonomy shared by the registry client, artifact store,
loader acquisition and service lifecycle collaborators.
"""

from typing import Any


class ModSyncError(Exception):
    """
    Base exception for all modsync errors.

    All custom exceptions inherit from this class, allowing the sync engine
    to downgrade any of them to a report entry at the package boundary.
    """

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        """
        Initialize a ModSyncError.

        Args:
            message: Human-readable error message
            details: Optional structured data for debugging
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return string representation with details."""
        base = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{base} ({details_str})"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class TransportError(ModSyncError):
    """
    Errors talking to the registry or a download host.

    Covers unreachable hosts, timeouts, error statuses and malformed
    response bodies.
    """

    def __init__(
        self,
        message: str,
        *,
        url: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize a TransportError.

        Args:
            message: Human-readable error message
            url: Request URL that failed
            status_code: HTTP status code if a response was received
            details: Optional structured data for debugging
        """
        details = details or {}
        if url:
            details["url"] = url
        if status_code is not None:
            details["status_code"] = status_code

        super().__init__(message, details=details)
        self.url = url
        self.status_code = status_code


class IntegrityError(ModSyncError):
    """
    Raised when downloaded content does not match its published digest.

    The content is discarded and never written to the artifact store.
    """

    def __init__(
        self,
        message: str,
        *,
        expected: str | None = None,
        actual: str | None = None,
        algorithm: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if algorithm:
            details["algorithm"] = algorithm
        if expected:
            details["expected"] = expected
        if actual:
            details["actual"] = actual

        super().__init__(message, details=details)
        self.expected = expected
        self.actual = actual
        self.algorithm = algorithm


class FilesystemError(ModSyncError):
    """Errors reading or mutating the artifact or backup directories."""

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if path:
            details["path"] = path

        super().__init__(message, details=details)
        self.path = path


class SetupError(FilesystemError):
    """
    Raised when required directories cannot be created at all.

    The only error that aborts a run before any package is processed.
    """


class AcquisitionError(ModSyncError):
    """Raised when the loader binary cannot be fetched."""

    def __init__(
        self,
        message: str,
        *,
        game_version: str | None = None,
        loader_version: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if game_version:
            details["game_version"] = game_version
        if loader_version:
            details["loader_version"] = loader_version

        super().__init__(message, details=details)
        self.game_version = game_version
        self.loader_version = loader_version


class LifecycleError(ModSyncError):
    """Raised when stopping or starting the game server service fails."""

    def __init__(
        self,
        message: str,
        *,
        unit: str | None = None,
        action: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if unit:
            details["unit"] = unit
        if action:
            details["action"] = action

        super().__init__(message, details=details)
        self.unit = unit
        self.action = action


class ConfigurationError(ModSyncError):
    """
    Errors in configuration.

    Raised when a config file is missing or unreadable, or when a
    configured value fails validation.
    """

    def __init__(
        self,
        message: str,
        *,
        config_file: str | None = None,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if config_file:
            details["config_file"] = config_file
        if config_key:
            details["config_key"] = config_key

        super().__init__(message, details=details)
        self.config_file = config_file
        self.config_key = config_key
