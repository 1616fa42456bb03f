#!/usr/bin/env python3
"""Command line interface for portainer-backup.

USAGE:
    portainer-backup backup   [options]   Backup portainer data (and optionally stacks)
    portainer-backup stacks   [options]   Backup portainer stack files only
    portainer-backup info     [options]   Show portainer server information
    portainer-backup test     [options]   Backup with --dryrun forced on
    portainer-backup schedule [options]   Run backups on a cron schedule
    portainer-backup restore <filename>   Not supported
    portainer-backup help | version

Every option can also be set with a PORTAINER_BACKUP_* environment variable
(or a .env file in the working directory); command line options win.

EXIT CODES:
    0  operation succeeded (or was interrupted by a signal)
    1  operation failed
"""

import argparse
import logging
import sys
from typing import Dict, List, Optional

from pydantic import ValidationError

from portainer_backup import __version__
from portainer_backup.backup.config import BackupConfig
from portainer_backup.backup.context import Operation
from portainer_backup.backup.results import Report
from portainer_backup.backup.service import BackupService, exit_code
from portainer_backup.exceptions import ConfigurationError, OperationInterrupted
from portainer_backup.logger import create_logger
from portainer_backup.render import Renderer

PIPELINE_COMMANDS = {
    "backup": (Operation.BACKUP, "Backup portainer data"),
    "stacks": (Operation.STACKS, "Backup portainer stacks"),
    "info": (Operation.INFO, "Get portainer server info"),
    "test": (Operation.TEST, "Test backup data & stacks (backup --dryrun)"),
    "schedule": (Operation.SCHEDULE, "Run scheduled portainer backups"),
}

# argparse dest -> BackupConfig field
OPTION_FIELDS: Dict[str, str] = {
    "url": "url",
    "token": "token",
    "ignore_version": "ignore_version",
    "timeout": "timeout",
    "directory": "directory",
    "filename": "filename",
    "password": "password",
    "stacks": "stacks",
    "overwrite": "overwrite",
    "mkdir": "mkdir",
    "schedule": "schedule",
    "dryrun": "dry_run",
    "debug": "debug",
    "quiet": "quiet",
    "json": "json_output",
    "concise": "concise",
}


def _options_parser() -> argparse.ArgumentParser:
    """Options shared by every command; unset options are left out of the namespace"""
    options = argparse.ArgumentParser(add_help=False, argument_default=argparse.SUPPRESS)
    flag = argparse.BooleanOptionalAction

    server = options.add_argument_group("portainer server")
    server.add_argument("-u", "--url", help="Portainer base URL (PORTAINER_BACKUP_URL)")
    server.add_argument("-t", "--token", help="Portainer access token (PORTAINER_BACKUP_TOKEN)")
    server.add_argument(
        "-Z", "--ignore-version", dest="ignore_version", action=flag,
        help="Bypass portainer version checking (PORTAINER_BACKUP_IGNORE_VERSION)",
    )
    server.add_argument(
        "-T", "--timeout", type=float,
        help="Request timeout in seconds (PORTAINER_BACKUP_TIMEOUT)",
    )

    backup = options.add_argument_group("backup")
    backup.add_argument(
        "-d", "--directory", "--dir", dest="directory",
        help="Backup directory; may contain {{TOKEN}} substitutions (PORTAINER_BACKUP_DIRECTORY)",
    )
    backup.add_argument(
        "-f", "--filename",
        help="Backup filename; may contain {{TOKEN}} substitutions (PORTAINER_BACKUP_FILENAME)",
    )
    backup.add_argument(
        "-p", "--password", "--pwd", dest="password",
        help="Password protecting the backup archive (PORTAINER_BACKUP_PASSWORD)",
    )
    backup.add_argument(
        "-i", "--include-stacks", "--stacks", dest="stacks", action=flag,
        help="Include stack files in the backup (PORTAINER_BACKUP_STACKS)",
    )
    backup.add_argument(
        "-o", "--overwrite", action=flag,
        help="Overwrite existing files (PORTAINER_BACKUP_OVERWRITE)",
    )
    backup.add_argument(
        "-M", "--mkdir", "--make-directory", dest="mkdir", action=flag,
        help="Create the backup directory if needed (PORTAINER_BACKUP_MKDIR)",
    )
    backup.add_argument(
        "-s", "--schedule",
        help="Cron expression for scheduled backups (PORTAINER_BACKUP_SCHEDULE)",
    )

    output = options.add_argument_group("output")
    output.add_argument(
        "-D", "--dryrun", action=flag,
        help="Execute without writing any files (PORTAINER_BACKUP_DRYRUN)",
    )
    output.add_argument("-X", "--debug", action=flag, help="Print error details (PORTAINER_BACKUP_DEBUG)")
    output.add_argument("-q", "--quiet", action=flag, help="No console output (PORTAINER_BACKUP_QUIET)")
    output.add_argument("-J", "--json", action=flag, help="Print the JSON report (PORTAINER_BACKUP_JSON)")
    output.add_argument("-c", "--concise", action=flag, help="Concise console output (PORTAINER_BACKUP_CONCISE)")
    return options


def build_parser() -> argparse.ArgumentParser:
    options = _options_parser()
    parser = argparse.ArgumentParser(
        prog="portainer-backup",
        description="Backup portainer data and stack files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        parents=[options],
        epilog="""
EXAMPLES:
  Backup data and stacks into a dated directory:
    %(prog)s backup --url http://portainer:9000 --token TOKEN \\
        --directory "/backup/{{DATE}}" --mkdir --stacks

  Check server and settings without writing files:
    %(prog)s test --json

  Daily backup at 00:00:00:
    %(prog)s schedule --schedule "0 0 0 * * *"
        """,
    )
    parser.add_argument("-v", "--version", action="version", version=__version__)

    subparsers = parser.add_subparsers(dest="command", help="Command", required=False)
    for name, (_, description) in PIPELINE_COMMANDS.items():
        subparsers.add_parser(name, help=description, description=description, parents=[options])

    restore = subparsers.add_parser(
        "restore", help="Restore portainer data (not supported)", parents=[options],
    )
    restore.add_argument("filename", help="Backup archive to restore")
    subparsers.add_parser("help", help="Show help")
    subparsers.add_parser("version", help="Show version")
    return parser


def config_overrides(args: argparse.Namespace) -> Dict[str, object]:
    """BackupConfig overrides for the options given on the command line"""
    return {
        field: getattr(args, dest)
        for dest, field in OPTION_FIELDS.items()
        if hasattr(args, dest)
    }


def load_config(args: argparse.Namespace, env_file: Optional[str] = None) -> BackupConfig:
    """Environment (and .env) settings with command line overrides applied

    Raises:
        ConfigurationError: if a setting fails validation
    """
    try:
        return BackupConfig.from_env(env_file=env_file).with_overrides(**config_overrides(args))
    except (ValidationError, ValueError) as e:
        raise ConfigurationError(
            code="CONFIG_INVALID",
            message=f"Invalid configuration: {e}",
            remediation="Check the PORTAINER_BACKUP_* environment variables and command line options.",
        ) from e


def _fatal(
    operation: str,
    error: BaseException,
    renderer: Renderer,
    json_output: bool,
) -> int:
    """Report an error raised outside the pipeline; still emits a report"""
    report = Report(operation=operation)
    report.start()
    if isinstance(error, OperationInterrupted):
        report.interrupted = error.signal_name
    report.finish(error)
    if report.interrupted:
        renderer.terminate(report.interrupted)
    else:
        renderer.error(error)
    if json_output:
        sys.stdout.write(report.to_json() + "\n")
    return exit_code(report)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1
    if args.command == "help":
        parser.print_help()
        return 0
    if args.command == "version":
        print(__version__)
        return 0

    try:
        config = load_config(args)
    except ConfigurationError as e:
        json_output = bool(getattr(args, "json", False))
        renderer = Renderer(enabled=not (json_output or getattr(args, "quiet", False)))
        return _fatal(args.command, e, renderer, json_output)

    logger = create_logger(level=logging.DEBUG if config.debug else logging.WARNING)

    service = None
    try:
        service = BackupService(config, logger=logger)
        service.install_signal_handlers()
        if args.command == "restore":
            report = service.restore(args.filename)
        elif args.command == "schedule":
            report = service.schedule()
        else:
            report = service.run(PIPELINE_COMMANDS[args.command][0])
        service.renderer.goodbye()
        return exit_code(report)
    except Exception as e:
        logger.critical("Unhandled error", error=str(e), operation=args.command)
        return _fatal(args.command, e, Renderer.from_config(config), config.json_output)
    finally:
        if service is not None:
            service.close()


if __name__ == "__main__":
    sys.exit(main())
