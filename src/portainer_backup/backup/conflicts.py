"""Per-file conflict resolution

Decides the disposition of one target path from the dry-run and overwrite
flags and whether the path already exists:

    exists  dry_run  overwrite  ->  disposition
    no      no       any            ready
    no      yes      any            dryrun
    yes     yes      any            dryrun (warning)
    yes     no       yes            overwrite
    yes     no       no             already-exists (conflict)
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union

from portainer_backup.backup.results import Disposition

PathLike = Union[str, Path]


def resolve_disposition(exists: bool, dry_run: bool, overwrite: bool) -> Disposition:
    if not exists:
        return Disposition.DRYRUN if dry_run else Disposition.READY
    if dry_run:
        return Disposition.DRYRUN
    if overwrite:
        return Disposition.OVERWRITE
    return Disposition.ALREADY_EXISTS


@dataclass(frozen=True)
class Resolution:
    """Disposition of one target plus whether the target already existed"""

    path: Path
    disposition: Disposition
    exists: bool
    overwrite: bool = False

    @property
    def is_conflict(self) -> bool:
        return self.disposition is Disposition.ALREADY_EXISTS

    @property
    def is_warning(self) -> bool:
        """An existing file that will be (or would be) replaced"""
        return self.exists and not self.is_conflict

    @property
    def would_conflict(self) -> bool:
        """Dry-run over an existing file without overwrite enabled"""
        return self.exists and self.disposition is Disposition.DRYRUN and not self.overwrite


class ConflictResolver:
    """Applies the conflict policy of one run to target paths"""

    def __init__(
        self,
        dry_run: bool,
        overwrite: bool,
        exists: Callable[[PathLike], bool] = os.path.exists,
    ):
        self.dry_run = dry_run
        self.overwrite = overwrite
        self._exists = exists

    def resolve(self, path: PathLike) -> Resolution:
        exists = bool(self._exists(path))
        return Resolution(
            path=Path(path),
            disposition=resolve_disposition(exists, self.dry_run, self.overwrite),
            exists=exists,
            overwrite=self.overwrite,
        )
