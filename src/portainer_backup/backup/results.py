"""Result and report model for portainer-backup operations

A Report accumulates the outcome of one pipeline run: timing, the success
flag, the top-level error, the data archive result and one result per stack.
"""

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional


class Disposition(str, Enum):
    """Outcome classification for one file target"""

    PENDING = "pending"
    READY = "ready"
    DRYRUN = "dryrun"
    OVERWRITE = "overwrite"
    ALREADY_EXISTS = "already-exists"
    SAVED = "saved"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Disposition.SAVED, Disposition.FAILED)

    @property
    def is_writable(self) -> bool:
        """True when the target may be written (no conflict, not a dry-run)"""
        return self in (Disposition.READY, Disposition.OVERWRITE)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class _FileResult:
    """Shared behaviour of results that track a disposition"""

    status: Disposition = Disposition.PENDING

    def _ensure_open(self, status: Disposition) -> None:
        if self.status.is_terminal:
            raise ValueError(f"result is final ({self.status.value}); cannot mark {status.value}")

    def mark(self, status: Disposition) -> None:
        """Move to ``status``; saved/failed results never change again"""
        self._ensure_open(status)
        self.status = status

    def record_file(self, path: Path) -> None:
        """Capture size and creation time of the written file and mark it saved"""
        self._ensure_open(Disposition.SAVED)
        stats = path.stat()
        self.size = stats.st_size
        self.created = datetime.fromtimestamp(stats.st_ctime).astimezone()
        self.mark(Disposition.SAVED)


@dataclass
class BackupResult(_FileResult):
    """Data archive target and outcome"""

    directory: Optional[Path] = None
    filename: str = ""
    file: Optional[Path] = None
    protected: bool = False
    overwrite: bool = False
    size: Optional[int] = None
    created: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "directory": str(self.directory) if self.directory else None,
            "filename": self.filename,
            "file": str(self.file) if self.file else None,
            "protected": self.protected,
            "status": self.status.value,
            "overwrite": self.overwrite,
            "size": self.size,
            "created": _isoformat(self.created),
        }


@dataclass
class StackResult(_FileResult):
    """One stack's definition file target and outcome"""

    id: Any = None
    name: str = ""
    filename: str = ""
    file: Optional[Path] = None
    directory: Optional[Path] = None
    overwrite: bool = False
    size: Optional[int] = None
    created: Optional[datetime] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "filename": self.filename,
            "file": str(self.file) if self.file else None,
            "directory": str(self.directory) if self.directory else None,
            "status": self.status.value,
            "overwrite": self.overwrite,
            "size": self.size,
            "created": _isoformat(self.created),
            "error": self.error,
        }


@dataclass
class ServerInfo:
    """Portainer server identity captured by the status step"""

    version: str
    instance: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ReportError:
    """Top-level error recorded when a run fails"""

    message: str
    code: Optional[str] = None
    number: Optional[int] = None
    setting: Optional[str] = None
    remediation: Optional[str] = None

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ReportError":
        number = getattr(exc, "number", None)
        if number is None:
            number = getattr(exc, "errno", None)
        code = getattr(exc, "code", None)
        details = getattr(exc, "details", None) or {}
        return cls(
            message=getattr(exc, "message", None) or str(exc) or type(exc).__name__,
            code=code if isinstance(code, str) else None,
            number=number,
            setting=details.get("setting"),
            remediation=getattr(exc, "remediation", None),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Report:
    """Aggregate outcome of one pipeline run"""

    operation: str
    started: Optional[datetime] = None
    finished: Optional[datetime] = None
    elapsed: Optional[float] = None
    success: bool = False
    dry_run: bool = False
    interrupted: Optional[str] = None
    error: Optional[ReportError] = None
    backup: Optional[BackupResult] = None
    portainer: Optional[ServerInfo] = None
    stacks: Optional[Dict[Any, StackResult]] = None

    def start(self, when: Optional[datetime] = None) -> None:
        self.started = when or datetime.now().astimezone()

    def finish(self, error: Optional[BaseException] = None, when: Optional[datetime] = None) -> None:
        """Record finish time, elapsed milliseconds, success and error"""
        self.finished = when or datetime.now().astimezone()
        if self.started:
            self.elapsed = (self.finished - self.started).total_seconds() * 1000
        self.success = error is None
        if error is not None:
            self.error = ReportError.from_exception(error)

    @property
    def elapsed_seconds(self) -> Optional[float]:
        return None if self.elapsed is None else self.elapsed / 1000

    def stack_counts(self) -> Dict[str, int]:
        """Number of stacks per disposition"""
        counts: Dict[str, int] = {}
        for result in (self.stacks or {}).values():
            counts[result.status.value] = counts.get(result.status.value, 0) + 1
        return counts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation": self.operation,
            "success": self.success,
            "dryRun": self.dry_run,
            "interrupted": self.interrupted,
            "started": _isoformat(self.started),
            "finished": _isoformat(self.finished),
            "elapsed": self.elapsed,
            "backup": self.backup.to_dict() if self.backup else None,
            "portainer": self.portainer.to_dict() if self.portainer else None,
            "stacks": (
                {str(key): result.to_dict() for key, result in self.stacks.items()}
                if self.stacks is not None else None
            ),
            "error": self.error.to_dict() if self.error else None,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
