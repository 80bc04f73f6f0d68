"""
Mock adapters — test doubles for everything that touches the system.

Used in mock mode (and in tests) to simulate a run without starting
processes or writing files. The package adapter is configurable per
package: already installed, hard failure, failing query, or N
lock-contention failures before succeeding.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import Path

from gnulinwiz.adapters.packages.base import (
    InstallFailedError,
    PackageManagerAdapter,
    QueryFailedError,
)
from gnulinwiz.adapters.shell.command import EXIT_CANCELLED, CommandResult, CommandRunner
from gnulinwiz.adapters.shell.filesystem import ConfigWriteError, ConfigWriter, WriteResult
from gnulinwiz.core.models.environment import PackageManagerKind
from gnulinwiz.core.models.task import BackupPolicy


class MockPackageAdapter(PackageManagerAdapter):
    """In-memory package manager.

    By default every install succeeds and marks the package installed.
    """

    def __init__(
        self,
        kind: PackageManagerKind = PackageManagerKind.APT,
        installed: set[str] | None = None,
        available: bool = True,
    ):
        self.kind = kind
        super().__init__()
        self._available = available
        self.installed: set[str] = set(installed or ())
        self._failures: dict[str, tuple[int, str]] = {}
        self._query_failures: dict[str, int] = {}
        self._lock_failures: dict[str, int] = {}
        self._call_log: list[tuple[str, str]] = []

    @property
    def call_log(self) -> list[tuple[str, str]]:
        """``(operation, package)`` pairs in call order."""
        return self._call_log

    @property
    def install_calls(self) -> list[str]:
        return [pkg for op, pkg in self._call_log if op == "install"]

    def is_available(self) -> bool:
        return self._available

    def set_failure(self, package: str, exit_code: int = 1, stderr: str = "Mock failure") -> None:
        """Configure installs of ``package`` to fail permanently."""
        self._failures[package] = (exit_code, stderr)

    def set_query_failure(self, package: str, exit_code: int = 2) -> None:
        self._query_failures[package] = exit_code

    def set_locked(self, package: str, times: int = 1) -> None:
        """Fail the next ``times`` installs with a lock-contention error."""
        self._lock_failures[package] = times

    def _interpret_query(self, package: str, result: CommandResult) -> bool | None:
        return package in self.installed

    def is_installed(self, package: str) -> bool:
        self._call_log.append(("query", package))
        if package in self._query_failures:
            raise QueryFailedError(package, self._query_failures[package], "mock query failure")
        return package in self.installed

    def install(self, package: str) -> CommandResult:
        self._call_log.append(("install", package))
        argv = self.install_command(package)

        remaining = self._lock_failures.get(package, 0)
        if remaining > 0:
            self._lock_failures[package] = remaining - 1
            result = CommandResult(
                argv=argv,
                returncode=100,
                stderr="E: Could not get lock /var/lib/dpkg/lock-frontend",
            )
            raise InstallFailedError(
                package, result.returncode, result.stderr, transient=True, result=result,
            )

        if package in self._failures:
            code, stderr = self._failures[package]
            result = CommandResult(argv=argv, returncode=code, stderr=stderr)
            raise InstallFailedError(package, code, stderr, transient=False, result=result)

        self.installed.add(package)
        return CommandResult(argv=argv, returncode=0, stdout=f"[mock] installed {package}")

    def reset(self) -> None:
        """Clear call log and configured failures."""
        self._call_log.clear()
        self._failures.clear()
        self._query_failures.clear()
        self._lock_failures.clear()


class MockCommandRunner(CommandRunner):
    """Records commands instead of starting them.

    Every command succeeds unless configured with ``set_result``, except
    ``test``: nothing exists on the simulated system until a test says so.
    """

    def __init__(self, cancel_event=None, is_root: bool = False):
        super().__init__(cancel_event=cancel_event, is_root=is_root)
        self.calls: list[dict] = []
        self._results: dict[str, CommandResult] = {
            "test": CommandResult(argv=["test"], returncode=1),
        }
        self._on_run = None

    def set_result(self, command: str, returncode: int = 1, stderr: str = "", stdout: str = "") -> None:
        """Make every run of ``command`` (argv[0]) return this result."""
        self._results[command] = CommandResult(
            argv=[command], returncode=returncode, stdout=stdout, stderr=stderr,
        )

    def on_run(self, callback) -> None:
        """Call ``callback(argv)`` before each command (e.g. to cancel mid-run)."""
        self._on_run = callback

    def run(
        self,
        argv: Sequence[str],
        *,
        elevated: bool = False,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        argv = list(argv)
        self.calls.append({"argv": argv, "elevated": elevated, "env": dict(env or {}), "cwd": cwd})
        if self._on_run is not None:
            self._on_run(argv)
        if self.cancel_event.is_set():
            return CommandResult(argv=argv, returncode=EXIT_CANCELLED, cancelled=True)
        configured = self._results.get(argv[0])
        if configured is not None:
            return CommandResult(
                argv=argv,
                returncode=configured.returncode,
                stdout=configured.stdout,
                stderr=configured.stderr,
            )
        return CommandResult(argv=argv, returncode=0, stdout=f"[mock] {' '.join(argv)}")

    @property
    def commands(self) -> list[list[str]]:
        return [c["argv"] for c in self.calls]


class MockConfigWriter(ConfigWriter):
    """Records config deployments without touching the filesystem."""

    def __init__(self, runner: CommandRunner | None = None):
        super().__init__(runner or MockCommandRunner())
        self.writes: list[tuple[Path, Path, bool]] = []
        self._failures: dict[Path, str] = {}

    def set_failure(self, destination: Path, message: str = "Mock write failure") -> None:
        self._failures[Path(destination)] = message

    def write(
        self,
        source: Path,
        destination: Path,
        *,
        elevated: bool = False,
        backup_policy: BackupPolicy = BackupPolicy.OVERWRITE,
    ) -> WriteResult:
        self.writes.append((source, destination, elevated))
        if destination in self._failures:
            raise ConfigWriteError(self._failures[destination])
        return WriteResult(destination=destination, backup=None, size=0)
