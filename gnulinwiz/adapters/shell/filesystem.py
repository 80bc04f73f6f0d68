"""
Filesystem operations — config deployment with backup.

Writing a config is all-or-nothing from the caller's view: the
existing destination is copied to ``<destination>.gnulinwiz.bak``
first, and if that copy fails the destination is left untouched. The
new content is written to a temp file beside the destination and
renamed into place.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from gnulinwiz.adapters.shell.command import CommandRunner
from gnulinwiz.core.models.task import BackupPolicy

logger = logging.getLogger(__name__)

# Documented, fixed suffix so people (and tools) can find backups.
BACKUP_SUFFIX = ".gnulinwiz.bak"


class ConfigWriteError(Exception):
    """Raised when a config file could not be deployed."""


@dataclass(frozen=True)
class WriteResult:
    destination: Path
    backup: Path | None
    size: int


def backup_path_for(destination: Path) -> Path:
    return destination.with_name(destination.name + BACKUP_SUFFIX)


def path_exists(
    path: Path,
    runner: CommandRunner | None = None,
    *,
    elevated: bool = False,
) -> bool:
    """Check for ``path`` as the user that is going to touch it.

    Elevated checks run ``test -e`` through sudo: the invoking user may
    not be able to look inside root-only directories such as ``/root``.
    """
    if elevated and runner is not None:
        return runner.run(["test", "-e", str(path)], elevated=True).ok
    try:
        return path.exists()
    except PermissionError:
        return False


def _needs_backup(
    destination: Path,
    backup: Path,
    policy: BackupPolicy,
    runner: CommandRunner | None = None,
    *,
    elevated: bool = False,
) -> bool:
    if policy is BackupPolicy.NONE:
        return False
    if not path_exists(destination, runner, elevated=elevated):
        return False
    if policy is BackupPolicy.KEEP_EXISTING and path_exists(backup, runner, elevated=elevated):
        logger.debug("Keeping existing backup %s", backup)
        return False
    return True


def write_config(
    source: Path,
    destination: Path,
    *,
    backup_policy: BackupPolicy = BackupPolicy.OVERWRITE,
) -> WriteResult:
    """Deploy ``source`` to ``destination`` as the current user.

    Raises:
        ConfigWriteError: If the source is unreadable, the backup fails,
            or the destination cannot be replaced.
    """
    if not source.is_file():
        raise ConfigWriteError(f"Source file not found: {source}")

    backup = backup_path_for(destination)
    made_backup: Path | None = None
    if _needs_backup(destination, backup, backup_policy):
        try:
            shutil.copy2(destination, backup)
        except OSError as e:
            raise ConfigWriteError(f"Backup of {destination} failed: {e}") from e
        made_backup = backup
        logger.info("Backed up %s → %s", destination, backup)

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=destination.parent,
            prefix=f".{destination.name}.",
            suffix=".tmp",
        )
        os.close(fd)
        tmp = Path(tmp_name)
        try:
            shutil.copyfile(source, tmp)
            if destination.exists():
                shutil.copymode(destination, tmp)
            os.replace(tmp, destination)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except OSError as e:
        raise ConfigWriteError(f"Writing {destination} failed: {e}") from e

    size = destination.stat().st_size
    logger.info("Wrote %s (%d bytes)", destination, size)
    return WriteResult(destination=destination, backup=made_backup, size=size)


def write_config_elevated(
    source: Path,
    destination: Path,
    runner: CommandRunner,
    *,
    backup_policy: BackupPolicy = BackupPolicy.OVERWRITE,
) -> WriteResult:
    """Deploy a config to a root-owned location through sudo.

    Uses ``cp -p`` for the backup and ``install`` for the write, which
    replaces the target in one step.
    """
    if not source.is_file():
        raise ConfigWriteError(f"Source file not found: {source}")

    backup = backup_path_for(destination)
    made_backup: Path | None = None
    if _needs_backup(destination, backup, backup_policy, runner, elevated=True):
        result = runner.run(["cp", "-p", str(destination), str(backup)], elevated=True)
        if not result.ok:
            raise ConfigWriteError(f"Backup of {destination} failed: {result.describe_failure()}")
        made_backup = backup

    result = runner.run(
        ["install", "-D", "-m", "0644", str(source), str(destination)],
        elevated=True,
    )
    if not result.ok:
        raise ConfigWriteError(f"Writing {destination} failed: {result.describe_failure()}")

    return WriteResult(destination=destination, backup=made_backup, size=source.stat().st_size)


class ConfigWriter:
    """Deploys config files, through sudo when the task asks for it."""

    def __init__(self, runner: CommandRunner | None = None):
        self.runner = runner or CommandRunner()

    def write(
        self,
        source: Path,
        destination: Path,
        *,
        elevated: bool = False,
        backup_policy: BackupPolicy = BackupPolicy.OVERWRITE,
    ) -> WriteResult:
        """Deploy one file.

        Raises:
            ConfigWriteError: If the backup or the write fails.
        """
        if elevated:
            return write_config_elevated(
                source, destination, self.runner, backup_policy=backup_policy,
            )
        return write_config(source, destination, backup_policy=backup_policy)
