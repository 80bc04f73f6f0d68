"""
Task executor — runs a plan, one task at a time.

Flow per task:
    cancelled? → dry run? → dependencies satisfied? → dispatch by kind → outcome

Every task of the plan ends with exactly one ExecutionOutcome. Task
failures are captured as outcomes, never raised; only misuse of the
state machine raises (``InvalidTransitionError``).

Cancellation is cooperative: ``cancel()`` sets an event the command
runner polls, so a running subprocess is terminated, the interrupted
task is recorded as failed and everything after it is skipped. Nothing
is rolled back.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

from gnulinwiz.adapters.packages.base import (
    InstallFailedError,
    PackageManagerAdapter,
    QueryFailedError,
)
from gnulinwiz.adapters.shell.command import CommandRunner
from gnulinwiz.adapters.shell.filesystem import (
    ConfigWriteError,
    ConfigWriter,
    path_exists,
)
from gnulinwiz.core.context import RunContext
from gnulinwiz.core.engine.planner import Plan
from gnulinwiz.core.engine.report import Report, finalize
from gnulinwiz.core.models.outcome import (
    DRY_RUN_PREFIX,
    REASON_CANCELLED,
    REASON_DEPENDENCY,
    REASON_INTERRUPTED,
    ExecutionOutcome,
    TaskStatus,
)
from gnulinwiz.core.models.task import InstallPackage, RunShellStep, Task, WriteConfigFile
from gnulinwiz.core.reliability.retry import RetryPolicy
from gnulinwiz.data import CONFIGS_DIR

logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """A task was moved along an edge the lifecycle does not allow."""

    def __init__(self, task_id: str, current: TaskStatus, target: TaskStatus):
        self.task_id = task_id
        self.current = current
        self.target = target
        super().__init__(
            f"Task '{task_id}': illegal transition {current.value} → {target.value}"
        )


_ALLOWED: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.RUNNING, TaskStatus.SKIPPED}),
    TaskStatus.RUNNING: frozenset({
        TaskStatus.SUCCEEDED,
        TaskStatus.FAILED,
        TaskStatus.SKIPPED,
    }),
}

_MARKERS = {
    TaskStatus.SUCCEEDED: "✓",
    TaskStatus.FAILED: "✗",
    TaskStatus.SKIPPED: "⊘",
}


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class TaskExecutor:
    """Drives a plan to completion.

    Args:
        context: Facts about the system and user for this run.
        adapter: Package manager adapter for ``InstallPackage`` tasks.
        runner: Command runner for shell steps and elevated writes.
            Its ``cancel_event`` is the executor's cancel signal.
        retry: Policy for lock-contention retries.
        writer: Deploys config files (defaults to one sharing ``runner``).
        dry_run: Describe every task instead of running it.
        source_dirs: Where relative config sources are looked up,
            in order. The bundled configs directory is always last.
    """

    def __init__(
        self,
        context: RunContext,
        adapter: PackageManagerAdapter,
        runner: CommandRunner | None = None,
        retry: RetryPolicy | None = None,
        writer: ConfigWriter | None = None,
        dry_run: bool = False,
        source_dirs: Sequence[Path] = (),
    ):
        self.context = context
        self.adapter = adapter
        self.runner = runner or CommandRunner(is_root=context.is_root)
        self.retry = retry or RetryPolicy()
        self.writer = writer or ConfigWriter(self.runner)
        self.dry_run = dry_run
        self.source_dirs = [Path(d) for d in source_dirs]
        if CONFIGS_DIR not in self.source_dirs:
            self.source_dirs.append(CONFIGS_DIR)
        self.states: dict[str, TaskStatus] = {}

    # ── Cancellation ────────────────────────────────────────────────

    @property
    def cancel_event(self) -> threading.Event:
        return self.runner.cancel_event

    def cancel(self) -> None:
        """Request cancellation. Safe to call from a signal handler."""
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    # ── State machine ───────────────────────────────────────────────

    def _transition(self, task_id: str, target: TaskStatus) -> None:
        current = self.states.get(task_id, TaskStatus.PENDING)
        if target not in _ALLOWED.get(current, frozenset()):
            raise InvalidTransitionError(task_id, current, target)
        self.states[task_id] = target

    # ── Main loop ───────────────────────────────────────────────────

    def execute(self, plan: Plan) -> Report:
        """Run every task of ``plan`` in order and aggregate the outcomes."""
        started_at = _now_iso()
        self.states = {task.id: TaskStatus.PENDING for task in plan}
        outcomes: dict[str, ExecutionOutcome] = {}

        logger.info(
            "Executing %d tasks on %s (%s)%s",
            len(plan),
            self.context.distribution.value,
            self.context.package_manager.value,
            " [dry run]" if self.dry_run else "",
        )

        for task in plan:
            outcome = self._execute_one(task, outcomes)
            outcomes[task.id] = outcome
            logger.info(
                "%s %s → %s%s",
                _MARKERS[outcome.status],
                task.id,
                outcome.status.value,
                f" ({outcome.reason})" if outcome.reason else "",
            )

        return finalize(
            [outcomes[t.id] for t in plan],
            cancelled=self.cancelled,
            dry_run=self.dry_run,
            started_at=started_at,
            context=self.context,
        )

    def _execute_one(
        self,
        task: Task,
        done: dict[str, ExecutionOutcome],
    ) -> ExecutionOutcome:
        if self.cancelled:
            self._transition(task.id, TaskStatus.SKIPPED)
            return ExecutionOutcome.skip(task.id, REASON_CANCELLED, allow_failure=task.allow_failure)

        if self.dry_run:
            self._transition(task.id, TaskStatus.SKIPPED)
            return ExecutionOutcome.skip(
                task.id,
                f"{DRY_RUN_PREFIX}: would {self._describe(task)}",
                allow_failure=task.allow_failure,
            )

        unmet = sorted(
            dep for dep in task.depends_on
            if dep not in done or not done[dep].satisfies_dependents
        )
        if unmet:
            self._transition(task.id, TaskStatus.SKIPPED)
            logger.debug("%s: unmet dependencies %s", task.id, ", ".join(unmet))
            return ExecutionOutcome.skip(
                task.id,
                REASON_DEPENDENCY,
                allow_failure=task.allow_failure,
                metadata={"unmet": unmet},
            )

        self._transition(task.id, TaskStatus.RUNNING)
        started_at = _now_iso()
        start = time.monotonic()

        try:
            outcome = self._dispatch(task)
        except Exception as e:
            logger.exception("Task %s raised unexpectedly", task.id)
            outcome = ExecutionOutcome.failure(task.id, f"Unexpected error: {e}")

        if outcome.failed and self.cancelled:
            outcome = outcome.model_copy(update={"reason": REASON_INTERRUPTED})

        self._transition(task.id, outcome.status)
        return outcome.model_copy(update={
            "started_at": started_at,
            "finished_at": _now_iso(),
            "duration_ms": int((time.monotonic() - start) * 1000),
            "allow_failure": task.allow_failure,
        })

    def _dispatch(self, task: Task) -> ExecutionOutcome:
        kind = task.kind
        if isinstance(kind, InstallPackage):
            return self._install(task.id, kind)
        if isinstance(kind, WriteConfigFile):
            return self._write_config(task.id, kind)
        if isinstance(kind, RunShellStep):
            return self._run_shell(task.id, kind)
        return ExecutionOutcome.failure(task.id, f"Unsupported task kind: {kind!r}")

    # ── Task kinds ──────────────────────────────────────────────────

    def _install(self, task_id: str, kind: InstallPackage) -> ExecutionOutcome:
        package = kind.name
        try:
            if self.adapter.is_installed(package):
                return ExecutionOutcome.success(
                    task_id,
                    output=f"{package} already installed",
                    metadata={"changed": False},
                )
        except QueryFailedError as e:
            logger.warning("%s; attempting install anyway", e)

        attempt = 0
        while True:
            attempt += 1
            try:
                result = self.adapter.install(package)
            except InstallFailedError as e:
                if e.result is not None and e.result.cancelled:
                    return ExecutionOutcome.failure(task_id, REASON_INTERRUPTED, attempts=attempt)
                if not self.retry.should_retry(attempt, e.transient):
                    return ExecutionOutcome.failure(
                        task_id,
                        str(e),
                        attempts=attempt,
                        output=e.result.output if e.result else "",
                    )
                logger.warning(
                    "%s: package database locked (attempt %d/%d), retrying in %.0fs",
                    package, attempt, self.retry.max_attempts, self.retry.delay_seconds,
                )
                if not self.retry.wait(self.cancel_event):
                    return ExecutionOutcome.failure(task_id, REASON_INTERRUPTED, attempts=attempt)
                continue

            return ExecutionOutcome.success(
                task_id,
                output=result.output,
                attempts=attempt,
                metadata={"changed": True},
            )

    def _write_config(self, task_id: str, kind: WriteConfigFile) -> ExecutionOutcome:
        source = self._resolve_source(kind.source)
        destination = Path(kind.destination).expanduser()
        try:
            written = self.writer.write(
                source,
                destination,
                elevated=kind.elevated,
                backup_policy=kind.backup_policy,
            )
        except ConfigWriteError as e:
            return ExecutionOutcome.failure(task_id, str(e), attempts=1)

        return ExecutionOutcome.success(
            task_id,
            output=f"wrote {written.destination}",
            attempts=1,
            metadata={
                "destination": str(written.destination),
                "backup": str(written.backup) if written.backup else None,
                "changed": True,
            },
        )

    def _run_shell(self, task_id: str, kind: RunShellStep) -> ExecutionOutcome:
        if kind.creates and path_exists(
            Path(kind.creates).expanduser(), self.runner, elevated=kind.elevated,
        ):
            return ExecutionOutcome.success(
                task_id,
                output=f"{kind.creates} exists",
                metadata={"changed": False},
            )

        result = self.runner.run(
            kind.argv,
            elevated=kind.elevated,
            env=kind.env or None,
            cwd=str(Path(kind.cwd).expanduser()) if kind.cwd else None,
            timeout=kind.timeout,
        )
        if result.cancelled:
            return ExecutionOutcome.failure(task_id, REASON_INTERRUPTED, attempts=1)
        if not result.ok:
            return ExecutionOutcome.failure(
                task_id, result.describe_failure(), attempts=1, output=result.output,
            )
        return ExecutionOutcome.success(
            task_id,
            output=result.output,
            attempts=1,
            metadata={"changed": True},
        )

    # ── Helpers ─────────────────────────────────────────────────────

    def _resolve_source(self, source: str) -> Path:
        """Find a config source; relative paths are searched in ``source_dirs``."""
        path = Path(source).expanduser()
        if path.is_absolute():
            return path
        for base in self.source_dirs:
            candidate = base / path
            if candidate.is_file():
                return candidate
        # Let the writer report the missing file.
        return self.source_dirs[0] / path

    def _describe(self, task: Task) -> str:
        kind = task.kind
        if isinstance(kind, InstallPackage):
            argv = self.adapter.install_command(kind.name)
            if self.adapter.spec.requires_root:
                argv = self.runner.elevate(argv)
            return f"run {' '.join(argv)}"
        if isinstance(kind, WriteConfigFile):
            dest = Path(kind.destination).expanduser()
            via = " (sudo)" if kind.elevated else ""
            return f"write {self._resolve_source(kind.source)} to {dest}{via}"
        if isinstance(kind, RunShellStep):
            argv = self.runner.elevate(kind.argv) if kind.elevated else kind.argv
            suffix = f" unless {kind.creates} exists" if kind.creates else ""
            return f"run {' '.join(argv)}{suffix}"
        return task.label
