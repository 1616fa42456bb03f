"""Ordered-step pipeline for portainer-backup operations

Each operation is a fixed sequence of steps run against one
ExecutionContext. The first step that raises stops the run; the report is
finalized whether the run succeeds or fails.
"""

import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from portainer_backup.backup.context import ExecutionContext, Operation
from portainer_backup.exceptions import OperationInterrupted
from portainer_backup.logger import Logger, get_logger

StepAction = Callable[[ExecutionContext], None]


class CancellationToken:
    """Thread-safe stop flag shared between a signal handler and running pipelines

    A pipeline checks the token before each step, so a run executing on a
    scheduler worker thread stops at the next step boundary.
    """

    def __init__(self):
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str) -> None:
        if not self._event.is_set():
            self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason


@dataclass(frozen=True)
class PipelineStep:
    """One validation gate or action

    Attributes:
        name: Stable step identifier
        label: Human-readable description
        action: Callable that mutates the context or raises
        reads: Context fields the step reads
        writes: Context fields the step may mutate
    """

    name: str
    label: str
    action: StepAction
    reads: Tuple[str, ...] = ()
    writes: Tuple[str, ...] = ()


class Pipeline:
    """Runs steps in order, stopping at the first failure"""

    def __init__(
        self,
        steps: Sequence[PipelineStep],
        finalize_on_success: bool = True,
        logger: Optional[Logger] = None,
        cancellation: Optional[CancellationToken] = None,
    ):
        self.steps = list(steps)
        self.finalize_on_success = finalize_on_success
        self.cancellation = cancellation
        self.logger = logger or get_logger()
        self.error: Optional[BaseException] = None
        self.failed_step: Optional[PipelineStep] = None

    @property
    def names(self) -> List[str]:
        return [step.name for step in self.steps]

    def run(self, ctx: ExecutionContext) -> bool:
        """Execute every step against ``ctx``

        Args:
            ctx: Context owned by this run

        Returns:
            True if every step succeeded

        Raises:
            BaseException: only for interrupts (KeyboardInterrupt, SystemExit);
                the report is finalized before they propagate
        """
        report = ctx.report
        if report.started is None:
            report.start()
        error: Optional[BaseException] = None
        try:
            for step in self.steps:
                if self.cancellation is not None and self.cancellation.cancelled:
                    self.logger.warning(
                        "Run interrupted",
                        step=step.name,
                        operation=ctx.operation.value,
                        signal=self.cancellation.reason,
                    )
                    error = OperationInterrupted(self.cancellation.reason or "cancelled")
                    return False
                self.logger.debug("Step started", step=step.name, operation=ctx.operation.value)
                try:
                    step.action(ctx)
                except Exception as exc:
                    self.logger.error(
                        "Step failed",
                        step=step.name,
                        operation=ctx.operation.value,
                        error=str(exc),
                    )
                    error = exc
                    self.failed_step = step
                    return False
                self.logger.debug("Step completed", step=step.name)
            return True
        except BaseException as exc:
            error = exc
            raise
        finally:
            self.error = error
            if error is not None or self.finalize_on_success:
                report.finish(error)


def build_pipeline(
    operation: Operation,
    steps,
    include_stacks: bool = False,
    logger: Optional[Logger] = None,
    cancellation: Optional[CancellationToken] = None,
) -> Pipeline:
    """Assemble the fixed step sequence for ``operation``

    Args:
        operation: Operation to run
        steps: Object providing the step actions (see ``BackupSteps``)
        include_stacks: Append the stack files step to backup/test
        logger: Optional logger
        cancellation: Optional token checked before each step

    Returns:
        Pipeline for the operation
    """
    operation = Operation(operation)
    catalog: Dict[str, PipelineStep] = {
        "init": PipelineStep(
            "init", "Initialize", steps.initialize,
            reads=("config",), writes=("report",),
        ),
        "validate-directory": PipelineStep(
            "validate-directory", "Validate backup directory", steps.validate_directory,
            reads=("config",), writes=("directory", "report.backup"),
        ),
        "validate-file": PipelineStep(
            "validate-file", "Validate backup file", steps.validate_file,
            reads=("config", "directory"), writes=("report.backup",),
        ),
        "remote-status": PipelineStep(
            "remote-status", "Retrieve portainer server status", steps.remote_status,
            reads=("config",), writes=("report.portainer",),
        ),
        "validate-remote-version": PipelineStep(
            "validate-remote-version", "Validate portainer server version",
            steps.validate_remote_version,
            reads=("config", "report.portainer"),
        ),
        "validate-token": PipelineStep(
            "validate-token", "Validate access token", steps.validate_token,
            reads=("config",),
        ),
        "backup-data": PipelineStep(
            "backup-data", "Download and save backup archive", steps.backup_data,
            reads=("config", "report.backup"), writes=("report.backup",),
        ),
        "backup-stacks": PipelineStep(
            "backup-stacks", "Download and save stack files", steps.backup_stacks,
            reads=("config", "directory"), writes=("stacks_cache", "report.stacks"),
        ),
        "validate-schedule": PipelineStep(
            "validate-schedule", "Validate schedule expression", steps.validate_schedule,
            reads=("config",),
        ),
    }

    if operation in (Operation.BACKUP, Operation.TEST):
        names = [
            "init", "validate-directory", "validate-file", "remote-status",
            "validate-remote-version", "validate-token", "backup-data",
        ]
        if include_stacks:
            names.append("backup-stacks")
    elif operation is Operation.STACKS:
        names = [
            "init", "validate-directory", "remote-status",
            "validate-remote-version", "validate-token", "backup-stacks",
        ]
    elif operation is Operation.INFO:
        names = ["init", "remote-status", "validate-remote-version"]
    else:
        names = [
            "init", "remote-status", "validate-remote-version",
            "validate-token", "validate-schedule",
        ]

    return Pipeline(
        [catalog[name] for name in names],
        finalize_on_success=operation is not Operation.SCHEDULE,
        logger=logger,
        cancellation=cancellation,
    )
