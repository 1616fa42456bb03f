"""Validation gates and action steps of the backup pipeline

Every step takes the run's ExecutionContext and either returns (possibly
after mutating the context) or raises a PortainerBackupError carrying the
offending setting and a remediation hint.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from packaging.version import InvalidVersion, Version

from portainer_backup.backup.conflicts import ConflictResolver
from portainer_backup.backup.context import ExecutionContext
from portainer_backup.backup.results import Disposition, ServerInfo, StackResult
from portainer_backup.backup.substitution import (
    SubstitutionSnapshot,
    process_substitutions,
    resolve_directory,
    sanitize_filename,
)
from portainer_backup.exceptions import (
    ConfigurationError,
    FilesystemError,
    PartialItemError,
    UnsupportedVersionError,
)
from portainer_backup.logger import Logger, get_logger

MIN_VERSION = "2.11.0"
STACK_FILE_SUFFIX = ".docker-compose.yaml"
MAX_STACK_WORKERS = 8

TOKEN_DOCS_URL = "https://docs.portainer.io/v/ce-2.11/api/access#creating-an-access-token"


def is_supported_version(version: str, minimum: str = MIN_VERSION) -> bool:
    """True if ``version`` is at least ``minimum``; unparseable versions are not"""
    try:
        return Version(version) >= Version(minimum)
    except InvalidVersion:
        return False


def stack_filename(name: str) -> str:
    """Filesystem-safe definition file name for a stack"""
    return sanitize_filename(f"{name}{STACK_FILE_SUFFIX}")


def partial_path(target: Path) -> Path:
    """In-progress download location next to ``target``"""
    return target.with_name(f".{target.name}.part")


class BackupSteps:
    """Step actions bound to one remote client and renderer

    Args:
        client: Portainer API client (see ``PortainerClient``)
        renderer: Console renderer (see ``Renderer``)
        logger: Optional logger
        clock: Optional "now" source for name substitutions
        schedule_validator: Callable validating a cron expression
        max_workers: Thread pool size for stack file downloads
    """

    def __init__(
        self,
        client,
        renderer,
        logger: Optional[Logger] = None,
        clock: Optional[Callable] = None,
        schedule_validator: Optional[Callable[[str], bool]] = None,
        max_workers: int = MAX_STACK_WORKERS,
    ):
        self.client = client
        self.renderer = renderer
        self.logger = logger or get_logger()
        self.clock = clock
        self.schedule_validator = schedule_validator
        self.max_workers = max_workers

    def _snapshot(self) -> SubstitutionSnapshot:
        return SubstitutionSnapshot.capture(self.clock)

    # ------------------------------------------------------------------
    # validation gates
    # ------------------------------------------------------------------

    def initialize(self, ctx: ExecutionContext) -> None:
        if ctx.report.started is None:
            ctx.report.start()
        self.logger.info(
            "Operation started",
            operation=ctx.operation.value,
            dry_run=ctx.dry_run,
            url=ctx.config.url,
        )
        self.renderer.configuration(ctx.operation.value, ctx.config)

    def validate_directory(self, ctx: ExecutionContext) -> None:
        config = ctx.config
        directory = resolve_directory(config.directory, self._snapshot())
        ctx.directory = directory
        if ctx.report.backup is not None:
            ctx.report.backup.directory = directory

        created = False
        if config.mkdir and not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            created = True
            self.logger.info("Backup directory created", directory=str(directory))

        if not directory.is_dir():
            self.renderer.fail("Validating target backup directory", str(directory))
            raise FilesystemError(
                code="BACKUP_DIRECTORY_MISSING",
                message="'PORTAINER_BACKUP_DIRECTORY' is invalid!",
                details={"setting": "PORTAINER_BACKUP_DIRECTORY", "directory": str(directory)},
                remediation=(
                    "The 'PORTAINER_BACKUP_DIRECTORY' environment variable or '--directory' "
                    "command line option is not pointing to a valid directory on the filesystem. "
                    "Please ensure the backup directory or mount path exists. You can use the "
                    "'PORTAINER_BACKUP_MKDIR' environment variable or '--mkdir' command line "
                    "option to dynamically create directories if needed."
                ),
            )
        self.renderer.ok(
            "Validating target backup directory",
            f"{'CREATED' if created else 'EXISTS'} -> {directory}",
        )

    def validate_file(self, ctx: ExecutionContext) -> None:
        config = ctx.config
        result = ctx.report.backup
        filename = process_substitutions(config.filename, self._snapshot())
        target = (ctx.directory / filename).resolve()
        result.filename = filename
        result.file = target

        resolution = ConflictResolver(config.dry_run, config.overwrite).resolve(target)
        result.mark(resolution.disposition)
        result.overwrite = resolution.disposition is Disposition.OVERWRITE
        label = "Validating target backup file"

        if resolution.is_conflict:
            self.renderer.fail(label, filename)
            raise FilesystemError(
                code="BACKUP_FILE_EXISTS",
                message=f"Backup file [{target}] already exists.",
                details={"setting": "PORTAINER_BACKUP_OVERWRITE", "file": str(target)},
                remediation=(
                    "Set the 'PORTAINER_BACKUP_OVERWRITE' environment variable "
                    "or '--overwrite' command line option to enable file overwriting."
                ),
            )
        if resolution.would_conflict:
            self.logger.warning("Backup file exists; dry-run only", file=str(target))
            self.renderer.warn(label, f"DRYRUN -> {filename} (already exists)")
        elif resolution.is_warning:
            prefix = "DRYRUN" if config.dry_run else "OVERWRITE"
            self.renderer.warn(label, f"{prefix} -> {filename}")
        elif config.dry_run:
            self.renderer.ok(label, f"DRYRUN -> {filename}")
        else:
            self.renderer.ok(label, filename)

    def validate_remote_version(self, ctx: ExecutionContext) -> None:
        version = ctx.report.portainer.version
        label = "Validating portainer version"
        if is_supported_version(version):
            self.renderer.ok(label, f"v{version}")
            return

        self.renderer.unsupported_version(version, MIN_VERSION)
        if ctx.config.ignore_version:
            self.logger.warning("Unsupported portainer version ignored", version=version)
            self.renderer.warn(label, f"v{version} [UNSUPPORTED]")
            return

        self.renderer.fail(label, f"v{version}")
        raise UnsupportedVersionError(
            code="UNSUPPORTED_VERSION",
            message="The portainer server is older than the minimum supported version.",
            details={
                "setting": "PORTAINER_BACKUP_IGNORE_VERSION",
                "version": version,
                "minimum": MIN_VERSION,
            },
            remediation=(
                f"The portainer server is [{version}]; the minimum supported version is "
                f"[{MIN_VERSION}]. Please upgrade your portainer server or use the "
                "'PORTAINER_BACKUP_IGNORE_VERSION' environment variable or "
                "'--ignore-version' command line option to override the version checking."
            ),
        )

    def validate_token(self, ctx: ExecutionContext) -> None:
        label = "Validating portainer access token"
        if ctx.config.token:
            self.renderer.ok(label)
            return
        self.renderer.fail(label)
        raise ConfigurationError(
            code="TOKEN_MISSING",
            message="'PORTAINER_BACKUP_TOKEN' is missing!",
            details={"setting": "PORTAINER_BACKUP_TOKEN"},
            remediation=(
                "The 'PORTAINER_BACKUP_TOKEN' environment variable or '--token' command line "
                "option is missing; you can create an API token in portainer under your user "
                f"account / access tokens: {TOKEN_DOCS_URL}"
            ),
        )

    def validate_schedule(self, ctx: ExecutionContext) -> None:
        expression = ctx.config.schedule
        label = "Validating schedule expression"
        if self.schedule_validator is not None and self.schedule_validator(expression):
            self.renderer.ok(label, expression)
            return
        self.renderer.fail(label, expression)
        raise ConfigurationError(
            code="SCHEDULE_INVALID",
            message=f"Invalid 'PORTAINER_BACKUP_SCHEDULE' cron expression: [{expression}]",
            details={"setting": "PORTAINER_BACKUP_SCHEDULE", "schedule": expression},
            remediation=(
                "The 'PORTAINER_BACKUP_SCHEDULE' environment variable or '--schedule' command "
                "line option does not have a valid cron expression; please see the "
                "documentation for more details on the schedule cron expression."
            ),
        )

    # ------------------------------------------------------------------
    # actions
    # ------------------------------------------------------------------

    def remote_status(self, ctx: ExecutionContext) -> None:
        label = "Validating portainer server"
        try:
            status = self.client.status()
        except Exception:
            self.renderer.fail(label, ctx.config.url)
            raise
        ctx.report.portainer = ServerInfo(
            version=status.version,
            instance=status.instance_id,
            url=ctx.config.url,
        )
        self.logger.info("Portainer status", version=status.version, instance=status.instance_id)
        self.renderer.ok(label, ctx.config.url)
        self.renderer.status(ctx.report.portainer)

    def backup_data(self, ctx: ExecutionContext) -> None:
        """Stream the archive into a hidden sibling file, then move it into place"""
        result = ctx.report.backup
        label = "Retrieving portainer data backup"
        partial = partial_path(Path(result.file))
        try:
            with self.client.fetch_backup_archive(ctx.config.password) as chunks:
                if ctx.dry_run:
                    self.logger.info("Dry-run; backup archive discarded")
                    self.renderer.ok(label, "DRYRUN")
                    return
                self.renderer.ok(label)
                with open(partial, "wb") as handle:
                    for chunk in chunks:
                        handle.write(chunk)
            os.replace(partial, result.file)
        except Exception:
            if partial.exists():
                partial.unlink()
                self.logger.warning("Incomplete backup archive removed", file=str(partial))
            if not result.status.is_terminal and not ctx.dry_run:
                result.mark(Disposition.FAILED)
            self.renderer.fail(label)
            raise

        result.record_file(result.file)
        self.logger.info("Backup archive saved", file=str(result.file), size=result.size)
        self.renderer.ok("Saving portainer data backup", str(result.file))
        self.renderer.backup_file(result)

    def backup_stacks(self, ctx: ExecutionContext) -> None:
        """Fetch the stack catalog, check conflicts, then save every stack file

        Conflicts fail the step before anything is written. Once the conflict
        check passes, a failure on one stack is recorded against that stack
        only; the others still complete.
        """
        label = "Acquiring portainer stacks catalog"
        try:
            stacks = self.client.list_stacks()
        except Exception:
            self.renderer.fail(label)
            raise
        ctx.stacks_cache = stacks
        self.renderer.ok(label, f"{len(stacks)} STACKS")
        self.renderer.stacks(stacks)

        results = self._resolve_stack_files(ctx, stacks)
        if ctx.dry_run:
            return

        self._save_stack_files(ctx, stacks, results)

    def _resolve_stack_files(self, ctx: ExecutionContext, stacks: List) -> Dict[Any, StackResult]:
        config = ctx.config
        resolver = ConflictResolver(config.dry_run, config.overwrite)
        results: Dict[Any, StackResult] = {}
        ctx.report.stacks = results
        seen: Dict[str, Any] = {}
        conflicts = 0

        for stack in stacks:
            filename = stack_filename(stack.name)
            target = (ctx.directory / filename).resolve()
            owner = seen.setdefault(filename, stack.id)

            resolution = resolver.resolve(target)
            result = StackResult(
                id=stack.id,
                name=stack.name,
                filename=filename,
                file=target,
                directory=ctx.directory,
                status=resolution.disposition,
                overwrite=resolution.disposition is Disposition.OVERWRITE,
            )
            results[stack.id] = result

            if owner != stack.id:
                self.logger.warning(
                    "Stacks share a target file",
                    file=filename,
                    stack_id=stack.id,
                    other_stack_id=owner,
                )
                # only the first stack claiming a file may write it
                if resolution.disposition.is_writable:
                    error = PartialItemError(stack.id, stack.name, FilesystemError(
                        code="STACK_FILE_DUPLICATE",
                        message=f"target file [{filename}] is already used by stack #{owner}",
                        details={"file": str(target), "stack_id": owner},
                    ))
                    result.error = error.details["reason"]
                    result.mark(Disposition.FAILED)
                    self.logger.error(error.message, stack_id=stack.id, code=error.code)
                    self.renderer.stack_item(target, "fail", f"duplicate of stack #{owner}")
                    continue

            if resolution.is_conflict:
                conflicts += 1
                self.renderer.stack_item(target, "fail")
            elif resolution.is_warning:
                self.renderer.stack_item(target, "warn", "DRYRUN" if config.dry_run else "OVERWRITE")
            else:
                self.renderer.stack_item(target, "ok", "DRYRUN" if config.dry_run else None)

        if conflicts:
            raise FilesystemError(
                code="STACK_FILES_EXIST",
                message=(
                    f"[{conflicts}] stack file(s) with the same name already exists "
                    "in the target backup directory."
                ),
                details={"setting": "PORTAINER_BACKUP_OVERWRITE", "conflicts": conflicts},
                remediation=(
                    "Set the 'PORTAINER_BACKUP_OVERWRITE' environment variable or "
                    "'--overwrite' command line option to enable file overwriting."
                ),
            )
        return results

    def _save_stack_files(self, ctx: ExecutionContext, stacks: List, results: Dict[Any, StackResult]) -> None:
        def save(stack) -> None:
            result = results[stack.id]
            try:
                content = self.client.fetch_stack_file(stack.id)
                Path(result.file).write_text(content, encoding="utf-8")
                result.record_file(Path(result.file))
            except Exception as exc:
                error = PartialItemError(stack.id, stack.name, exc)
                result.error = error.details["reason"]
                result.mark(Disposition.FAILED)
                self.logger.error(error.message, stack_id=stack.id, code=error.code)
                self.renderer.stack_saved(stack, result, ok=False)
                return
            self.renderer.stack_saved(stack, result, ok=True)

        pending = [stack for stack in stacks if not results[stack.id].status.is_terminal]
        if pending:
            workers = max(1, min(self.max_workers, len(pending)))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                list(pool.map(save, pending))

        counts = ctx.report.stack_counts()
        self.logger.info(
            "Stack files complete",
            saved=counts.get(Disposition.SAVED.value, 0),
            failed=counts.get(Disposition.FAILED.value, 0),
        )
        self.renderer.ok("Saving stack files complete", f"{len(stacks)} STACK FILES")
        self.renderer.stack_files(results.values())
