"""Exceptions for portainer-backup.

All exceptions include structured error information:
- code: Machine-readable error identifier
- message: Human-readable error description
- details: Additional context for debugging/recovery
- remediation: How the operator can fix the condition

Usage:
    from portainer_backup.exceptions import (
        PortainerBackupError,
        ConfigurationError,
        FilesystemError,
        RemoteServiceError,
    )
"""

from portainer_backup.exceptions.base import (
    ConfigurationError,
    FilesystemError,
    OperationInterrupted,
    OperationNotSupportedError,
    PartialItemError,
    PortainerBackupError,
    RemoteAuthorizationError,
    RemoteConnectionError,
    RemoteServerError,
    RemoteServiceError,
    UnsupportedVersionError,
)

__all__ = [
    # Base exception
    "PortainerBackupError",
    # Taxonomy
    "ConfigurationError",
    "FilesystemError",
    "RemoteServiceError",
    "RemoteConnectionError",
    "RemoteAuthorizationError",
    "UnsupportedVersionError",
    "RemoteServerError",
    "PartialItemError",
    "OperationNotSupportedError",
    "OperationInterrupted",
]
