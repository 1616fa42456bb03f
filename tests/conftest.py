"""Shared fixtures for portainer-backup tests."""

import io
import logging
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from portainer_backup.backup.config import BackupConfig
from portainer_backup.backup.service import BackupService
from portainer_backup.logger import StructuredLogger
from portainer_backup.portainer.models import ServerStatus, Stack
from portainer_backup.render import Renderer

# Tuesday 2024-01-16 13:05:09.123 at UTC+02:00
FIXED_INSTANT = datetime(2024, 1, 16, 13, 5, 9, 123000, tzinfo=timezone(timedelta(hours=2)))


class FakePortainerClient:
    """In-memory stand-in for PortainerClient recording every call."""

    def __init__(
        self,
        version: str = "2.19.4",
        instance_id: str = "8d98af6e-8908-4d5c-80f0-11b8e6272219",
        archive: bytes = b"portainer-archive-bytes",
        stacks: Optional[List[Stack]] = None,
        stack_files: Optional[Dict[Any, Any]] = None,
        status_error: Optional[Exception] = None,
        backup_error: Optional[Exception] = None,
    ):
        self.version = version
        self.instance_id = instance_id
        self.archive = archive
        self.stacks = stacks or []
        self.stack_files = stack_files or {}
        self.status_error = status_error
        self.backup_error = backup_error
        self.calls: List[str] = []
        self.passwords: List[str] = []
        self.archive_consumed = False
        self.closed = False

    def status(self) -> ServerStatus:
        self.calls.append("status")
        if self.status_error:
            raise self.status_error
        return ServerStatus(version=self.version, instance_id=self.instance_id)

    @contextmanager
    def fetch_backup_archive(self, password: str = ""):
        self.calls.append("backup")
        self.passwords.append(password)
        if self.backup_error:
            raise self.backup_error

        def chunks():
            self.archive_consumed = True
            half = len(self.archive) // 2
            yield self.archive[:half]
            yield self.archive[half:]

        yield chunks()

    def list_stacks(self) -> List[Stack]:
        self.calls.append("stacks")
        return list(self.stacks)

    def fetch_stack_file(self, stack_id: Any) -> str:
        self.calls.append(f"stack-file:{stack_id}")
        content = self.stack_files.get(stack_id, f"services:\n  app{stack_id}:\n    image: nginx\n")
        if isinstance(content, Exception):
            raise content
        return content

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def backup_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "backup"
    directory.mkdir()
    return directory


@pytest.fixture
def make_config(backup_dir: Path):
    """Factory for configurations pointing at a temporary backup directory."""

    def factory(**overrides: Any) -> BackupConfig:
        values: Dict[str, Any] = {
            "url": "http://portainer.test:9000",
            "token": "ptr_test_token",
            "directory": str(backup_dir),
            "filename": "portainer-backup.tar.gz",
        }
        values.update(overrides)
        return BackupConfig(**values)

    return factory


@pytest.fixture
def fake_client() -> FakePortainerClient:
    return FakePortainerClient()


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def test_logger(log_stream: io.StringIO) -> StructuredLogger:
    return StructuredLogger(name="portainer-backup-test", level=logging.DEBUG, stream=log_stream)


@pytest.fixture
def renderer() -> Renderer:
    return Renderer(enabled=False)


@pytest.fixture
def make_service(fake_client, renderer, test_logger):
    """Factory for a BackupService wired to fakes; JSON goes to ``service.output``."""

    def factory(config: BackupConfig, client=None, **kwargs: Any) -> BackupService:
        return BackupService(
            config,
            client=client or fake_client,
            renderer=renderer,
            logger=test_logger,
            output=io.StringIO(),
            clock=lambda: FIXED_INSTANT,
            **kwargs,
        )

    return factory
