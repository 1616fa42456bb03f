"""Base exception classes for portainer-backup.

All portainer-backup exceptions include structured error information:
- code: Machine-readable condition identifier
- message: Human-readable error description
- details: Additional context (e.g. the offending setting)
- remediation: Operator hint describing how to fix the condition
- number: Optional numeric code (OS errno or HTTP status)
"""

from typing import Any, Dict, Optional


class PortainerBackupError(Exception):
    """Base exception for all portainer-backup errors.

    Attributes:
        code: Machine-readable error code (e.g., "BACKUP_DIRECTORY_MISSING")
        message: Human-readable error message
        details: Optional additional context for debugging/recovery
        remediation: Optional operator hint
        number: Optional numeric error code
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        remediation: Optional[str] = None,
        number: Optional[int] = None,
    ):
        """Initialize error with structured information.

        Args:
            code: Machine-readable error code
            message: Human-readable error message
            details: Optional additional context
            remediation: Optional operator hint
            number: Optional numeric error code
        """
        self.code = code
        self.message = message
        self.details = details or {}
        self.remediation = remediation
        self.number = number
        super().__init__(message)

    @property
    def setting(self) -> Optional[str]:
        """Name of the configuration setting at fault, if any."""
        return self.details.get("setting")

    def __str__(self) -> str:
        """Return formatted error string."""
        if self.details:
            return f"{self.code}: {self.message} (details: {self.details})"
        return f"{self.code}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "message": self.message,
            "number": self.number,
            "details": self.details,
            "remediation": self.remediation,
        }


class ConfigurationError(PortainerBackupError):
    """Missing or invalid required setting.

    Always fatal to the current run; never retried.
    """

    pass


class FilesystemError(PortainerBackupError):
    """Backup directory unusable or target file conflicts."""

    pass


class RemoteServiceError(PortainerBackupError):
    """Base for failures talking to the Portainer server."""

    pass


class RemoteConnectionError(RemoteServiceError):
    """Server unreachable, connection reset or request timed out."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        number: Optional[int] = None,
    ):
        super().__init__(
            code="REMOTE_UNREACHABLE",
            message=message,
            details={"setting": "PORTAINER_BACKUP_URL", **(details or {})},
            remediation=(
                "Check your 'PORTAINER_BACKUP_URL'; unable to access "
                "portainer server via this URL."
            ),
            number=number,
        )


class RemoteAuthorizationError(RemoteServiceError):
    """Server rejected the access token (HTTP 401)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code="REMOTE_UNAUTHORIZED",
            message=message,
            details={"setting": "PORTAINER_BACKUP_TOKEN", **(details or {})},
            remediation=(
                "Check your 'PORTAINER_BACKUP_TOKEN' to make sure it is valid and "
                "is assigned to a user with 'ADMIN' privileges."
            ),
            number=401,
        )


class UnsupportedVersionError(RemoteServiceError):
    """Server is older than the minimum supported version."""

    pass


class RemoteServerError(RemoteServiceError):
    """Any other non-successful server response."""

    def __init__(
        self,
        message: str,
        number: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            code="REMOTE_SERVER_ERROR",
            message=message,
            details=details,
            number=number,
        )


class PartialItemError(PortainerBackupError):
    """A single stack's fetch or save failed while siblings continued.

    Recorded against the stack; never fatal to the batch.
    """

    def __init__(self, stack_id: Any, stack_name: str, cause: BaseException):
        reason = getattr(cause, "message", None) or str(cause) or type(cause).__name__
        super().__init__(
            code="STACK_FILE_FAILED",
            message=f"Failed to save stack file: (stack #{stack_id}) [{stack_name}]: {reason}",
            details={"stack_id": stack_id, "stack_name": stack_name, "reason": reason},
            number=getattr(cause, "number", None) or getattr(cause, "errno", None),
        )
        self.cause = cause


class OperationNotSupportedError(PortainerBackupError):
    """Requested operation exists on the command line but is not implemented."""

    pass


class OperationInterrupted(PortainerBackupError):
    """Run aborted by a termination signal."""

    def __init__(self, signal_name: str):
        super().__init__(
            code="INTERRUPTED",
            message=f"Terminate signal detected: {signal_name}",
            details={"signal": signal_name},
        )
        self.signal_name = signal_name
