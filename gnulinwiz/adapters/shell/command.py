"""
Command runner — the SINGLE PLACE where subprocesses are started.

Package-manager adapters, shell steps and elevated file writes all go
through ``CommandRunner.run``. Logging, sudo elevation, timeouts and
cancellation are handled here.

The runner never raises for a failed command: failures come back as a
``CommandResult`` with a non-zero return code.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import threading
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Conventional shell exit codes for "could not run at all".
EXIT_NOT_FOUND = 127
EXIT_CANCELLED = 130
EXIT_TIMEOUT = 124

_OUTPUT_TAIL = 4000


@dataclass(frozen=True)
class CommandResult:
    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    cancelled: bool = False
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.cancelled

    @property
    def output(self) -> str:
        """Combined output, stdout first."""
        parts = [p for p in (self.stdout.strip(), self.stderr.strip()) if p]
        return "\n".join(parts)

    def describe_failure(self) -> str:
        if self.cancelled:
            return "interrupted by cancellation"
        if self.timed_out:
            return f"timed out: {format_argv(self.argv)}"
        detail = self.stderr.strip() or self.stdout.strip()
        msg = f"exit {self.returncode}: {format_argv(self.argv)}"
        return f"{msg}\n{detail}" if detail else msg


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def _tail(text: str | None) -> str:
    if not text:
        return ""
    return text[-_OUTPUT_TAIL:]


class CommandRunner:
    """Run commands synchronously, with optional sudo and cancellation.

    Args:
        cancel_event: When set, the running child is terminated and the
            result is marked ``cancelled``.
        default_timeout: Seconds before a command is killed (None = no limit).
        poll_interval: How often to check ``cancel_event`` while waiting.
        is_root: The run already has root privileges, so elevated
            commands are started without sudo.
    """

    def __init__(
        self,
        cancel_event: threading.Event | None = None,
        default_timeout: float | None = None,
        poll_interval: float = 0.2,
        is_root: bool = False,
    ):
        self.cancel_event = cancel_event or threading.Event()
        self.is_root = is_root
        self._default_timeout = default_timeout
        self._poll_interval = poll_interval

    def elevate(self, argv: Sequence[str]) -> list[str]:
        """Prefix with sudo unless we already run as root."""
        if self.is_root:
            return list(argv)
        return ["sudo", *argv]

    def run(
        self,
        argv: Sequence[str],
        *,
        elevated: bool = False,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run a command and capture its output.

        Args:
            argv: Command and arguments.
            elevated: Run through sudo (unless already root).
            env: Extra environment variables.
            cwd: Working directory.
            timeout: Override for the default timeout.

        Returns:
            CommandResult (never raises for command failures).
        """
        cmd = self.elevate(argv) if elevated else list(argv)
        if elevated and env and cmd[:1] == ["sudo"]:
            # sudo drops the caller's environment; pass overrides explicitly.
            cmd = ["sudo", "env", *[f"{k}={v}" for k, v in env.items()], *cmd[1:]]
        limit = timeout if timeout is not None else self._default_timeout

        logger.info("CMD %s", format_argv(cmd))

        if self.cancel_event.is_set():
            return CommandResult(argv=cmd, returncode=EXIT_CANCELLED, cancelled=True)

        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                encoding="utf-8",
                errors="replace",
                cwd=cwd,
                env={**os.environ, **(env or {})},
            )
        except FileNotFoundError:
            return CommandResult(
                argv=cmd,
                returncode=EXIT_NOT_FOUND,
                stderr=f"command not found: {cmd[0]}",
            )
        except OSError as e:
            logger.exception("Cannot start %s", format_argv(cmd))
            return CommandResult(argv=cmd, returncode=EXIT_NOT_FOUND, stderr=str(e))

        stdout, stderr = "", ""
        cancelled = timed_out = False
        while True:
            try:
                stdout, stderr = proc.communicate(timeout=self._poll_interval)
                break
            except subprocess.TimeoutExpired:
                if self.cancel_event.is_set():
                    cancelled = True
                elif limit is not None and time.monotonic() - start > limit:
                    timed_out = True
                else:
                    continue
                stdout, stderr = self._terminate(proc)
                break

        elapsed_ms = int((time.monotonic() - start) * 1000)
        returncode = proc.returncode
        if cancelled:
            returncode = EXIT_CANCELLED
        elif timed_out:
            returncode = EXIT_TIMEOUT

        if stdout:
            logger.debug("STDOUT %s", stdout.strip())
        if stderr:
            logger.debug("STDERR %s", stderr.strip())

        return CommandResult(
            argv=cmd,
            returncode=returncode,
            stdout=_tail(stdout),
            stderr=_tail(stderr),
            duration_ms=elapsed_ms,
            cancelled=cancelled,
            timed_out=timed_out,
        )

    @staticmethod
    def _terminate(proc: subprocess.Popen) -> tuple[str, str]:
        logger.warning("Terminating pid %s", proc.pid)
        proc.terminate()
        try:
            return proc.communicate(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()
            return proc.communicate()
