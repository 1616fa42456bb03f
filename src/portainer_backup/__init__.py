"""portainer-backup - Backup portainer data and stack files.

This package provides:
- backup: Operation pipeline, naming substitutions, conflict resolution,
  reports and cron scheduling
- portainer: HTTP client for the portainer management API
- logger: Structured logging with run tracking and JSON support
- config: .env and environment loading
- exceptions: Error taxonomy with remediation hints
"""

__version__ = "1.0.0"

# Re-export commonly used items for convenience
from portainer_backup.logger import (
    Logger,
    StructuredLogger,
    get_logger,
    create_logger,
)

from portainer_backup.exceptions import (
    PortainerBackupError,
    ConfigurationError,
    FilesystemError,
    RemoteServiceError,
    PartialItemError,
)

from portainer_backup.backup import (
    BackupConfig,
    BackupService,
    Operation,
    Report,
    process_substitutions,
)

from portainer_backup.portainer import PortainerClient

__all__ = [
    "__version__",
    # Logger
    "Logger",
    "StructuredLogger",
    "get_logger",
    "create_logger",
    # Exceptions
    "PortainerBackupError",
    "ConfigurationError",
    "FilesystemError",
    "RemoteServiceError",
    "PartialItemError",
    # Backup
    "BackupConfig",
    "BackupService",
    "Operation",
    "Report",
    "process_substitutions",
    # Portainer
    "PortainerClient",
]
