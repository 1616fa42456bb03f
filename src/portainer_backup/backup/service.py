"""Backup Service Orchestrator for portainer-backup

Runs one operation (or a cron schedule of backups) through its pipeline,
renders the outcome and emits the JSON report.
"""

import signal
import sys
from typing import Callable, List, Optional, TextIO

from apscheduler.schedulers.base import BaseScheduler

from portainer_backup import __version__
from portainer_backup.backup import scheduler as cron
from portainer_backup.backup.config import BackupConfig
from portainer_backup.backup.context import ExecutionContext, Operation
from portainer_backup.backup.pipeline import CancellationToken, Pipeline, build_pipeline
from portainer_backup.backup.results import Report
from portainer_backup.backup.scheduler import CronScheduleAdapter
from portainer_backup.backup.steps import BackupSteps
from portainer_backup.exceptions import OperationInterrupted, OperationNotSupportedError
from portainer_backup.logger import Logger, get_logger
from portainer_backup.portainer import PortainerClient
from portainer_backup.render import Renderer


def exit_code(report: Report) -> int:
    """0 for successful or interrupted runs, 1 otherwise"""
    return 0 if report.success or report.interrupted else 1


class BackupService:
    """Main portainer-backup orchestrator"""

    def __init__(
        self,
        config: BackupConfig,
        client=None,
        renderer: Optional[Renderer] = None,
        logger: Optional[Logger] = None,
        output: Optional[TextIO] = None,
        scheduler: Optional[BaseScheduler] = None,
        clock: Optional[Callable] = None,
    ):
        self.config = config
        self.logger = logger or get_logger()
        self.renderer = renderer or Renderer.from_config(config)
        self._owns_client = client is None
        self.client = client or PortainerClient(
            config.url,
            config.token,
            timeout=config.timeout,
            logger=self.logger,
        )
        self.output = output
        self.steps = BackupSteps(
            self.client,
            self.renderer,
            logger=self.logger,
            clock=clock,
            schedule_validator=cron.validate,
        )
        self._scheduler = scheduler
        self.adapter: Optional[CronScheduleAdapter] = None
        self.cancellation = CancellationToken()
        self.reports: List[Report] = []

    @property
    def shutdown_requested(self) -> bool:
        return self.cancellation.cancelled

    def __enter__(self) -> "BackupService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def _execute(self, ctx: ExecutionContext) -> Pipeline:
        pipeline = build_pipeline(
            ctx.operation,
            self.steps,
            include_stacks=ctx.config.stacks,
            logger=self.logger,
            cancellation=self.cancellation,
        )
        try:
            pipeline.run(ctx)
        except OperationInterrupted:
            # raised between steps; report already finalized
            pass
        if isinstance(pipeline.error, OperationInterrupted):
            ctx.report.interrupted = pipeline.error.signal_name
        return pipeline

    def run(self, operation: Operation) -> Report:
        """Run a single operation and emit its report

        Args:
            operation: backup, stacks, info or test

        Returns:
            The finalized report
        """
        ctx = ExecutionContext.create(operation, self.config)
        self.renderer.title(__version__)
        pipeline = self._execute(ctx)
        self.emit(ctx.report, pipeline.error)
        return ctx.report

    def schedule(self) -> Report:
        """Validate the schedule, then run a backup on every cron tick

        Blocks until the scheduler stops. Each tick runs a fresh backup
        pipeline and emits its own report.

        Returns:
            The schedule setup report (finalized when the scheduler stops)
        """
        ctx = ExecutionContext.create(Operation.SCHEDULE, self.config)
        self.renderer.title(__version__)
        pipeline = self._execute(ctx)
        if pipeline.error is not None:
            self.emit(ctx.report, pipeline.error)
            return ctx.report

        self.adapter = CronScheduleAdapter(
            self.config.schedule,
            scheduler=self._scheduler,
            logger=self.logger,
        )
        self.adapter.on_tick(self.run_scheduled_backup)
        self.renderer.schedule(self.config.schedule, self.adapter.next_fire_time())
        self.logger.info("Backup service started", schedule=self.config.schedule)

        error = None
        try:
            self.adapter.start()
        except OperationInterrupted as exc:
            ctx.report.interrupted = exc.signal_name
            error = exc
        except (KeyboardInterrupt, SystemExit):
            self.logger.info("Backup service stopped")
        ctx.report.finish(error)
        if ctx.report.interrupted:
            self.emit(ctx.report, error)
        return ctx.report

    def run_scheduled_backup(self) -> Optional[Report]:
        """Scheduled tick: one full backup run"""
        if self.shutdown_requested:
            self.logger.info("Shutdown requested, skipping backup")
            return None
        return self.run(Operation.BACKUP)

    def restore(self, filename: str) -> Report:
        """Restore is not supported; always produces a failed report"""
        report = Report(operation="restore", dry_run=self.config.dry_run)
        report.start()
        error = OperationNotSupportedError(
            code="RESTORE_NOT_SUPPORTED",
            message=f"The 'restore' operation is not supported: [{filename}]",
            details={"filename": filename},
            remediation="Restore portainer backup archives using the portainer web UI.",
        )
        self.logger.error("Unsupported operation", operation="restore", filename=filename)
        report.finish(error)
        self.emit(report, error)
        return report

    def emit(self, report: Report, error: Optional[BaseException] = None) -> None:
        """Render the outcome and write the JSON report when enabled"""
        self.reports.append(report)
        if report.interrupted:
            self.renderer.terminate(report.interrupted)
        else:
            self.renderer.summary(report)
            if error is not None:
                self.renderer.error(error)
            elif report.success:
                if report.dry_run:
                    self.renderer.dry_run()
                self.renderer.success(report.operation)

        if self.config.json_output:
            stream = self.output or sys.stdout
            stream.write(report.to_json() + "\n")
            stream.flush()

        self.logger.info(
            "Operation finished",
            operation=report.operation,
            success=report.success,
            elapsed_ms=report.elapsed,
        )

    def handle_shutdown(self, signum, frame):
        """Handle shutdown signals"""
        signal_name = signal.Signals(signum).name
        self.logger.info("Received signal, initiating graceful shutdown", signal=signal_name)
        self.cancellation.cancel(signal_name)
        if self.adapter is not None:
            self.adapter.shutdown()
        raise OperationInterrupted(signal_name)

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self.handle_shutdown)
        signal.signal(signal.SIGINT, self.handle_shutdown)
