"""portainer-backup Backup Module

Backup pipeline, naming substitutions, conflict resolution, reports and
cron scheduling.

Usage:
    from portainer_backup.backup import BackupConfig, BackupService, Operation

    config = BackupConfig.from_env()
    with BackupService(config) as service:
        report = service.run(Operation.BACKUP)
"""

from portainer_backup.backup.config import BackupConfig, parse_bool
from portainer_backup.backup.conflicts import ConflictResolver, Resolution, resolve_disposition
from portainer_backup.backup.context import ExecutionContext, Operation
from portainer_backup.backup.pipeline import (
    CancellationToken,
    Pipeline,
    PipelineStep,
    build_pipeline,
)
from portainer_backup.backup.results import (
    BackupResult,
    Disposition,
    Report,
    ReportError,
    ServerInfo,
    StackResult,
)
from portainer_backup.backup.scheduler import CronScheduleAdapter
from portainer_backup.backup.service import BackupService, exit_code
from portainer_backup.backup.steps import BackupSteps
from portainer_backup.backup.substitution import (
    SubstitutionSnapshot,
    process_substitutions,
    resolve_directory,
    sanitize_filename,
)

__all__ = [
    "BackupConfig",
    "parse_bool",
    "ConflictResolver",
    "Resolution",
    "resolve_disposition",
    "ExecutionContext",
    "Operation",
    "CancellationToken",
    "Pipeline",
    "PipelineStep",
    "build_pipeline",
    "BackupResult",
    "Disposition",
    "Report",
    "ReportError",
    "ServerInfo",
    "StackResult",
    "CronScheduleAdapter",
    "BackupService",
    "exit_code",
    "BackupSteps",
    "SubstitutionSnapshot",
    "process_substitutions",
    "resolve_directory",
    "sanitize_filename",
]
