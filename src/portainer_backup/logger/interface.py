"""
Logger interface for portainer-backup.

Abstract base class defining the logging contract used by the pipeline,
the scheduler and the remote client.
"""

from abc import ABC, abstractmethod
from typing import Any


class Logger(ABC):
    """Abstract base class for logging interface.

    Every message may carry keyword fields (``step="validate-file"``,
    ``stack_id=3``) which implementations attach to the record.
    """

    @abstractmethod
    def debug(self, message: str, **kwargs: Any) -> None:
        """Log a debug message."""
        pass

    @abstractmethod
    def info(self, message: str, **kwargs: Any) -> None:
        """Log an info message."""
        pass

    @abstractmethod
    def warning(self, message: str, **kwargs: Any) -> None:
        """Log a warning message."""
        pass

    @abstractmethod
    def error(self, message: str, **kwargs: Any) -> None:
        """Log an error message.

        Args:
            message: The message to log
            **kwargs: Additional key-value pairs to include in the log
        """
        pass

    @abstractmethod
    def critical(self, message: str, **kwargs: Any) -> None:
        """Log a critical message."""
        pass

    @abstractmethod
    def get_run_id(self) -> str:
        """Get the identifier shared by all records of this process run.

        Returns:
            Short unique run identifier.
        """
        pass
