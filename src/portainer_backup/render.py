"""Console rendering for portainer-backup

Human-readable output only; the JSON report is written by the service.
Nothing is printed when quiet or JSON output is enabled.
"""

import sys
from typing import Any, Iterable, Optional, TextIO

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.traceback import Traceback

from portainer_backup.backup.results import BackupResult, Report, ServerInfo

MARKS = {
    "ok": "[green]✔[/green]",
    "warn": "[yellow]⚠[/yellow]",
    "fail": "[red]✖[/red]",
}

LABEL_WIDTH = 35


def _mask(value: str) -> str:
    return "********" if value else ""


def _megabytes(size: Optional[int]) -> str:
    return "" if size is None else f"{size / (1024 * 1024):.2f} MB"


class Renderer:
    """Writes human-readable progress to the console

    Args:
        enabled: False silences all output (quiet / JSON modes)
        concise: Only step lines; no tables or banners
        debug: Include tracebacks in error blocks
        file: Output stream (defaults to stdout)
    """

    def __init__(
        self,
        enabled: bool = True,
        concise: bool = False,
        debug: bool = False,
        file: Optional[TextIO] = None,
    ):
        self.concise = concise
        self.debug = debug
        self.console = Console(
            file=file or sys.stdout,
            quiet=not enabled,
            highlight=False,
            soft_wrap=True,
        )

    @classmethod
    def from_config(cls, config, file: Optional[TextIO] = None) -> "Renderer":
        return cls(
            enabled=config.output_enabled,
            concise=config.concise,
            debug=config.debug,
            file=file,
        )

    @property
    def verbose(self) -> bool:
        return not self.concise

    def writeln(self, text: str = "") -> None:
        self.console.print(text)

    # steps

    def _step(self, mark: str, label: str, detail: Optional[str] = None) -> None:
        line = f"{label:<{LABEL_WIDTH}}: {MARKS[mark]}"
        if detail:
            line += f" {escape(detail)}"
        self.console.print(line, markup=True)

    def ok(self, label: str, detail: Optional[str] = None) -> None:
        self._step("ok", label, detail)

    def warn(self, label: str, detail: Optional[str] = None) -> None:
        self._step("warn", label, detail)

    def fail(self, label: str, detail: Optional[str] = None) -> None:
        self._step("fail", label, detail)

    # banners and tables

    def title(self, version: str) -> None:
        if self.verbose:
            self.console.rule(f"[bold]Portainer Backup[/bold] v{version}")

    def configuration(self, operation: str, config) -> None:
        if not self.verbose:
            return
        table = Table(title=f"Operation: {operation.upper()}", show_header=True)
        table.add_column("Setting")
        table.add_column("Value")
        table.add_row("PORTAINER_BACKUP_URL", config.url)
        table.add_row("PORTAINER_BACKUP_TOKEN", _mask(config.token))
        table.add_row("PORTAINER_BACKUP_DIRECTORY", escape(config.directory))
        table.add_row("PORTAINER_BACKUP_FILENAME", escape(config.filename))
        table.add_row("PORTAINER_BACKUP_PASSWORD", _mask(config.password))
        table.add_row("PORTAINER_BACKUP_STACKS", str(config.stacks))
        table.add_row("PORTAINER_BACKUP_OVERWRITE", str(config.overwrite))
        table.add_row("PORTAINER_BACKUP_MKDIR", str(config.mkdir))
        table.add_row("PORTAINER_BACKUP_SCHEDULE", config.schedule)
        table.add_row("PORTAINER_BACKUP_DRYRUN", str(config.dry_run))
        self.console.print(table)

    def status(self, info: ServerInfo) -> None:
        if not self.verbose:
            return
        table = Table(title="Portainer Server", show_header=False)
        table.add_row("Version", info.version)
        table.add_row("Instance ID", info.instance)
        table.add_row("URL", info.url)
        self.console.print(table)

    def unsupported_version(self, version: str, minimum: str) -> None:
        if self.verbose:
            self.console.print(
                f"[yellow]Portainer server v{version} is older than the minimum "
                f"supported version v{minimum}.[/yellow]"
            )

    def backup_file(self, result: BackupResult) -> None:
        if not self.verbose:
            return
        table = Table(title="Backup File", show_header=False)
        table.add_row("File", escape(str(result.file)))
        table.add_row("Size", _megabytes(result.size))
        table.add_row("Created", result.created.isoformat() if result.created else "")
        table.add_row("Protected", str(result.protected))
        self.console.print(table)

    def stacks(self, stacks: Iterable[Any]) -> None:
        if not self.verbose:
            return
        table = Table("ID", "Stack")
        for stack in stacks:
            table.add_row(str(stack.id), escape(stack.name))
        self.console.print(table)

    def stack_item(self, path: Any, mark: str, note: Optional[str] = None) -> None:
        line = f"  -> {escape(str(path))} ... {MARKS[mark]}"
        if note:
            line += f" ({note})"
        self.console.print(line)

    def stack_saved(self, stack: Any, result: Any, ok: bool) -> None:
        line = f"  -> saving (stack #{stack.id}) \\[{escape(result.filename)}] ... {MARKS['ok' if ok else 'fail']}"
        if not ok and result.error:
            line += f" {escape(result.error)}"
        self.console.print(line)

    def stack_files(self, results: Iterable[Any]) -> None:
        if not self.verbose:
            return
        table = Table("ID", "Stack", "File", "Size", "Status", title="Stack Files")
        for result in results:
            table.add_row(
                str(result.id),
                escape(result.name),
                escape(result.filename),
                _megabytes(result.size),
                result.status.value,
            )
        self.console.print(table)

    def dry_run(self) -> None:
        self.console.print("[yellow]DRY-RUN: no data was written to the filesystem.[/yellow]")

    def summary(self, report: Report) -> None:
        if not self.verbose:
            return
        table = Table(title="Summary", show_header=False)
        table.add_row("Result", "[green]SUCCESS[/green]" if report.success else "[red]FAILED[/red]")
        if report.backup and report.backup.file:
            table.add_row("Backup file", escape(f"{report.backup.file} ({report.backup.status.value})"))
        if report.stacks is not None:
            table.add_row("Stacks", str(len(report.stacks)))
        if report.elapsed_seconds is not None:
            table.add_row("Elapsed", f"{report.elapsed_seconds:.3f} seconds")
        self.console.print(table)

    def success(self, operation: str) -> None:
        self.console.print(f"[bold green]✔ {operation.upper()} COMPLETE[/bold green]")

    def error(self, exc: BaseException, note: Optional[str] = None) -> None:
        """Error block: message, API status, remediation (and traceback in debug)"""
        table = Table(title="[red]ERROR[/red]", show_header=False)
        table.add_row("ERROR MESSAGE", escape(getattr(exc, "message", None) or str(exc)))
        number = getattr(exc, "number", None)
        if number is None:
            number = getattr(exc, "errno", None)
        code = getattr(exc, "code", None)
        if code:
            table.add_row("CONDITION", str(code))
        if number is not None:
            table.add_row("STATUS", str(number))
        remediation = getattr(exc, "remediation", None) or note
        if remediation:
            table.add_row("NOTES", escape(remediation))
        self.console.print(table)
        if self.debug and exc.__traceback__ is not None:
            self.console.print(Traceback.from_exception(type(exc), exc, exc.__traceback__))

    def schedule(self, expression: str, next_run: Any) -> None:
        self.console.print(f"Backup scheduled: [bold]{expression}[/bold]; next run at {next_run}")

    def terminate(self, signal_name: str) -> None:
        self.console.print(f"[red]Terminate signal detected: {signal_name}[/red]")

    def goodbye(self) -> None:
        if self.verbose:
            self.console.print("Goodbye.")
