"""Backup configuration management for portainer-backup

Settings come from PORTAINER_BACKUP_* environment variables (optionally via
a .env file) and may be overridden by command line options.
"""

from pathlib import Path
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portainer_backup.config import EnvLoader

ENV_PREFIX = "PORTAINER_BACKUP"

_FALSE_STRINGS = {"", "false", "no", "0"}


def parse_bool(value: Any) -> bool:
    """Interpret booleans, numbers and strings as True/False.

    Empty, "false", "no" and "0" (any case) are False; any other
    non-empty value is True.
    """
    if value is None or value is False:
        return False
    if value is True:
        return True
    return str(value).strip().lower() not in _FALSE_STRINGS


class BackupConfig(BaseModel):
    """Runtime configuration snapshot for one portainer-backup invocation

    Instances are frozen; use ``with_overrides`` to derive a new snapshot.
    """

    model_config = ConfigDict(frozen=True)

    # Portainer server
    url: str = Field(
        default="http://127.0.0.1:9000",
        description="Portainer base URL"
    )
    token: str = Field(
        default="",
        description="Portainer API access token"
    )
    ignore_version: bool = Field(
        default=False,
        description="Bypass the minimum server version check"
    )
    timeout: float = Field(
        default=30.0,
        description="Timeout in seconds applied to every server request",
        gt=0
    )

    # Backup target
    directory: str = Field(
        default="backup",
        description="Backup directory (may contain {{TOKEN}} substitutions)"
    )
    filename: str = Field(
        default="portainer-backup.tar.gz",
        description="Backup archive filename (may contain {{TOKEN}} substitutions)"
    )
    password: str = Field(
        default="",
        description="Password protecting the backup archive"
    )
    stacks: bool = Field(
        default=False,
        description="Include stack files in a 'backup' operation"
    )
    overwrite: bool = Field(
        default=False,
        description="Overwrite existing files"
    )
    mkdir: bool = Field(
        default=False,
        description="Create the backup directory if needed"
    )
    schedule: str = Field(
        default="0 0 0 * * *",
        description="Cron expression for scheduled backups (seconds optional)"
    )

    # Behaviour / output
    dry_run: bool = Field(
        default=False,
        description="Execute the task without persisting any data"
    )
    debug: bool = Field(
        default=False,
        description="Print full error details"
    )
    quiet: bool = Field(
        default=False,
        description="Do not display any console output"
    )
    json_output: bool = Field(
        default=False,
        description="Print the structured JSON report"
    )
    concise: bool = Field(
        default=False,
        description="Print concise console output"
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an http(s) URL; drop trailing slashes"""
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("schedule")
    @classmethod
    def strip_schedule(cls, v: str) -> str:
        return " ".join(v.split())

    @property
    def protected(self) -> bool:
        """True when the archive is password protected"""
        return bool(self.password)

    @property
    def output_enabled(self) -> bool:
        """True when human-readable console output should be written"""
        return not (self.quiet or self.json_output)

    def with_overrides(self, **overrides: Any) -> "BackupConfig":
        """Return a validated copy; None values leave the setting unchanged"""
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return self
        return type(self).model_validate({**self.model_dump(), **updates})

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        env_file: Optional[Union[str, Path]] = None,
        env_prefix: str = ENV_PREFIX,
    ) -> "BackupConfig":
        """Create configuration from environment variables

        Args:
            env: Mapping used instead of the OS environment (tests)
            env_file: Optional .env file (defaults to ./.env when present)
            env_prefix: Environment variable prefix

        Returns:
            BackupConfig instance
        """
        values = EnvLoader(env_file, prefix=env_prefix).load(environ=env)

        def get(name: str, default: str = "") -> str:
            return values.get(f"{env_prefix}_{name}") or default

        return cls(
            url=get("URL", "http://127.0.0.1:9000"),
            token=get("TOKEN"),
            ignore_version=parse_bool(get("IGNORE_VERSION")),
            timeout=float(get("TIMEOUT", "30")),
            directory=get("DIRECTORY", "backup"),
            filename=get("FILENAME", "portainer-backup.tar.gz"),
            password=get("PASSWORD"),
            stacks=parse_bool(get("STACKS")),
            overwrite=parse_bool(get("OVERWRITE")),
            mkdir=parse_bool(get("MKDIR")),
            schedule=get("SCHEDULE", "0 0 0 * * *"),
            dry_run=parse_bool(get("DRYRUN")),
            debug=parse_bool(get("DEBUG")),
            quiet=parse_bool(get("QUIET")),
            json_output=parse_bool(get("JSON")),
            concise=parse_bool(get("CONCISE")),
        )
