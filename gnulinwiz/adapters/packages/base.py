"""
Package manager adapter base — the contract between engine and managers.

This is the ONLY way the engine touches the package database. Each
supported manager is one subclass; call sites only ever see this
interface, so adding a manager never touches the executor.

Unlike shell steps, package operations raise typed errors: the
executor turns them into outcomes.
"""

from __future__ import annotations

import logging
import re
import shutil
from abc import ABC, abstractmethod

from gnulinwiz.adapters.shell.command import CommandResult, CommandRunner
from gnulinwiz.core.models.environment import MANAGER_SPECS, ManagerSpec, PackageManagerKind

logger = logging.getLogger(__name__)


class AdapterError(Exception):
    """Base class for package manager adapter errors."""


class QueryFailedError(AdapterError):
    """The installed-package query exited with an unexpected status."""

    def __init__(self, package: str, exit_code: int, stderr: str = ""):
        self.package = package
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"Query for '{package}' failed (exit {exit_code}): {stderr.strip()}")


class InstallFailedError(AdapterError):
    """The install command exited non-zero.

    ``transient`` is True when the failure matched the manager's
    lock-contention signature and is worth retrying.
    """

    def __init__(
        self,
        package: str,
        exit_code: int,
        stderr: str = "",
        transient: bool = False,
        result: CommandResult | None = None,
    ):
        self.package = package
        self.exit_code = exit_code
        self.stderr = stderr
        self.transient = transient
        self.result = result
        super().__init__(f"Install of '{package}' failed (exit {exit_code}): {stderr.strip()}")


class PackageManagerAdapter(ABC):
    """Abstract base class for package manager adapters.

    To add a manager:
        1. Add a variant + ManagerSpec in ``core.models.environment``
        2. Subclass this and implement ``_interpret_query``
        3. Register it in the ``AdapterRegistry``
    """

    kind: PackageManagerKind = PackageManagerKind.NONE

    def __init__(self, runner: CommandRunner | None = None):
        self.runner = runner or CommandRunner()
        self._lock_res = [re.compile(p, re.IGNORECASE) for p in self.spec.lock_patterns]

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def spec(self) -> ManagerSpec:
        return MANAGER_SPECS[self.kind]

    def is_available(self) -> bool:
        """Whether the manager's executable is on PATH."""
        return shutil.which(self.spec.executable) is not None

    def install_command(self, package: str) -> list[str]:
        return [part.replace("{package}", package) for part in self.spec.install_command]

    def query_command(self, package: str) -> list[str]:
        return [part.replace("{package}", package) for part in self.spec.query_command]

    @abstractmethod
    def _interpret_query(self, package: str, result: CommandResult) -> bool | None:
        """Map a query result to installed / not installed.

        Returns None when the exit status is unexpected.
        """

    def is_installed(self, package: str) -> bool:
        """Check the package database.

        Raises:
            QueryFailedError: On an unexpected exit status.
        """
        result = self.runner.run(self.query_command(package))
        installed = self._interpret_query(package, result)
        if installed is None:
            raise QueryFailedError(package, result.returncode, result.stderr)
        logger.debug("%s: %s installed=%s", self.name, package, installed)
        return installed

    def install(self, package: str) -> CommandResult:
        """Install a package, blocking until the manager exits.

        Raises:
            InstallFailedError: If the command exits non-zero.
        """
        result = self.runner.run(
            self.install_command(package),
            elevated=self.spec.requires_root,
            env=self.spec.install_env or None,
        )
        if not result.ok:
            raise InstallFailedError(
                package,
                result.returncode,
                result.stderr,
                transient=self.is_lock_contention(result),
                result=result,
            )
        logger.info("%s: installed %s", self.name, package)
        return result

    def is_lock_contention(self, result: CommandResult) -> bool:
        """Whether a failed command looks like "database is locked"."""
        if result.ok or result.cancelled:
            return False
        if result.returncode in self.spec.lock_exit_codes:
            return True
        text = f"{result.stderr}\n{result.stdout}"
        return any(rx.search(text) for rx in self._lock_res)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
