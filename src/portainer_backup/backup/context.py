"""Execution context shared by the steps of one pipeline run"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from portainer_backup.backup.config import BackupConfig
from portainer_backup.backup.results import BackupResult, Report


class Operation(str, Enum):
    """Operations that run through the pipeline"""

    BACKUP = "backup"
    STACKS = "stacks"
    INFO = "info"
    SCHEDULE = "schedule"
    TEST = "test"


@dataclass
class ExecutionContext:
    """State owned by exactly one pipeline run

    Attributes:
        operation: Operation being executed
        config: Immutable configuration snapshot for the run
        report: Result accumulator, emitted once the run finishes
        stacks_cache: Stack catalog fetched from the server (stacks step)
        directory: Resolved backup directory (directory step)
    """

    operation: Operation
    config: BackupConfig
    report: Report
    stacks_cache: Optional[List] = None
    directory: Optional[Path] = None

    @classmethod
    def create(cls, operation: Operation, config: BackupConfig) -> "ExecutionContext":
        """Build a fresh context; ``test`` always runs as a dry-run"""
        operation = Operation(operation)
        if operation is Operation.TEST:
            config = config.with_overrides(dry_run=True)
        report = Report(operation=operation.value, dry_run=config.dry_run)
        if operation in (Operation.BACKUP, Operation.TEST):
            report.backup = BackupResult(
                protected=config.protected,
                overwrite=config.overwrite,
            )
        return cls(operation=operation, config=config, report=report)

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run

    @property
    def includes_stacks(self) -> bool:
        """True when this run saves stack files"""
        if self.operation is Operation.STACKS:
            return True
        return self.operation in (Operation.BACKUP, Operation.TEST) and self.config.stacks
