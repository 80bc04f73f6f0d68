"""
Run use case — probe, load, plan, execute, audit.

The full vertical slice from "set up this machine" to an audited
report. Fatal problems (unsupported system, bad task file, invalid
plan) stop the run before anything is changed and come back as a
``RunResult`` with an error and exit code. Task-level failures are in
the report.
"""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from gnulinwiz.adapters.mock import MockCommandRunner, MockConfigWriter
from gnulinwiz.adapters.packages.base import AdapterError
from gnulinwiz.adapters.registry import AdapterRegistry
from gnulinwiz.adapters.shell.command import CommandRunner
from gnulinwiz.core.config.loader import (
    ConfigError,
    find_task_file,
    load_default_tasks,
    load_tasks,
)
from gnulinwiz.core.context import RunContext, build_context
from gnulinwiz.core.engine.executor import TaskExecutor
from gnulinwiz.core.engine.planner import Plan, PlanError, plan
from gnulinwiz.core.engine.report import (
    EXIT_CONFIG_ERROR,
    EXIT_PLAN_ERROR,
    EXIT_UNSUPPORTED_SYSTEM,
    Report,
)
from gnulinwiz.core.persistence.audit import AuditEntry, AuditWriter
from gnulinwiz.core.reliability.retry import RetryPolicy
from gnulinwiz.core.services.probe import ProbeError, UnsupportedSystemError, probe_system
from gnulinwiz.data import DEFAULT_TASKS_FILE

logger = logging.getLogger(__name__)


@dataclass
class RunResult:
    """Result of preparing (and possibly executing) a run."""

    context: RunContext | None = None
    task_file: Path | None = None
    plan: Plan | None = None
    report: Report | None = None
    audit_path: Path | None = None
    error: str | None = None
    exit_code: int = 0

    def fail(self, message: str, exit_code: int) -> RunResult:
        logger.error("%s", message)
        self.error = message
        self.exit_code = exit_code
        return self

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error, "exit_code": self.exit_code}

        result: dict = {
            "task_file": str(self.task_file) if self.task_file else None,
            "exit_code": self.exit_code,
        }
        if self.context is not None:
            result["system"] = self.context.profile.to_dict()
            result["user"] = self.context.user
        if self.plan is not None:
            result["plan"] = self.plan.to_dict()
        if self.report is not None:
            result["report"] = self.report.to_dict()
        return result


# ── Preparation ─────────────────────────────────────────────────────


def prepare_plan(
    task_file: Path | None = None,
    use_defaults: bool = False,
    allow_root: bool = False,
    root_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
    euid: int | None = None,
) -> RunResult:
    """Probe the system, load the task list and order it.

    Without ``task_file``, ``gnulinwiz.yml`` is searched upwards from
    the working directory; if none is found the bundled defaults are
    used.
    """
    result = RunResult()

    # ── Probe ────────────────────────────────────────────────────
    try:
        profile = probe_system(root_dir)
    except UnsupportedSystemError as e:
        return result.fail(str(e), EXIT_UNSUPPORTED_SYSTEM)

    try:
        context = build_context(profile, environ=environ, euid=euid)
    except ProbeError as e:
        return result.fail(str(e), EXIT_CONFIG_ERROR)
    result.context = context

    if context.is_root and not allow_root:
        return result.fail(
            "Refusing to run as root: run as your normal user (sudo is used "
            "where needed) or pass --allow-root.",
            EXIT_CONFIG_ERROR,
        )

    # ── Load ─────────────────────────────────────────────────────
    if task_file is None and not use_defaults:
        task_file = find_task_file()
    try:
        if task_file is None:
            result.task_file = DEFAULT_TASKS_FILE
            tasks = load_default_tasks(context)
        else:
            result.task_file = task_file.resolve()
            tasks = load_tasks(result.task_file, context)
    except ConfigError as e:
        return result.fail(str(e), EXIT_CONFIG_ERROR)

    # ── Plan ─────────────────────────────────────────────────────
    try:
        result.plan = plan(tasks)
    except PlanError as e:
        return result.fail(str(e), EXIT_PLAN_ERROR)

    return result


# ── Execution ───────────────────────────────────────────────────────


@contextmanager
def cancel_on_sigint(executor: TaskExecutor) -> Iterator[None]:
    """Turn Ctrl-C into a cooperative cancel while the block runs."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _handler(signum, frame):
        logger.warning("Interrupted: cancelling the current step, skipping the rest")
        executor.cancel()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def run_setup(
    task_file: Path | None = None,
    use_defaults: bool = False,
    dry_run: bool = False,
    mock_mode: bool = False,
    allow_root: bool = False,
    registry: AdapterRegistry | None = None,
    retry: RetryPolicy | None = None,
    audit_writer: AuditWriter | None = None,
    root_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
    euid: int | None = None,
) -> RunResult:
    """Set up the system from a task list.

    Args:
        task_file: Explicit task file (default: search, then defaults).
        use_defaults: Use the bundled task list even if a file exists.
        dry_run: Describe what would happen, change nothing.
        mock_mode: Simulate the package manager, commands and file writes.
        allow_root: Permit running as root.
        registry: Adapter registry (default: the built-in managers).
        retry: Lock-contention retry policy.
        audit_writer: Ledger for the run (default: XDG state dir).
        root_dir: Probe os-release below this directory.
        environ: Environment for USER/HOME (default: os.environ).
        euid: Effective uid override for the root check.

    Returns:
        RunResult with the plan and, if execution started, the report.
    """
    result = prepare_plan(
        task_file=task_file,
        use_defaults=use_defaults,
        allow_root=allow_root,
        root_dir=root_dir,
        environ=environ,
        euid=euid,
    )
    if result.error:
        return result
    context, task_plan = result.context, result.plan
    if context is None or task_plan is None:
        raise RuntimeError("prepare_plan returned neither a plan nor an error")

    # ── Adapters ─────────────────────────────────────────────────
    if mock_mode:
        runner: CommandRunner = MockCommandRunner(is_root=context.is_root)
        writer = MockConfigWriter(runner)
    else:
        runner = CommandRunner(is_root=context.is_root)
        writer = None

    registry = registry or AdapterRegistry(mock_mode=mock_mode)
    try:
        adapter = registry.for_kind(context.package_manager, runner=runner)
    except AdapterError as e:
        return result.fail(str(e), EXIT_UNSUPPORTED_SYSTEM)

    executor = TaskExecutor(
        context,
        adapter,
        runner=runner,
        retry=retry,
        writer=writer,
        dry_run=dry_run,
        source_dirs=[result.task_file.parent] if result.task_file else (),
    )

    # ── Execute ──────────────────────────────────────────────────
    with cancel_on_sigint(executor):
        report = executor.execute(task_plan)
    result.report = report
    result.exit_code = report.exit_code

    # ── Audit ────────────────────────────────────────────────────
    if not dry_run and not mock_mode:
        audit_writer = audit_writer or AuditWriter()
        entry = AuditEntry.from_report(
            report,
            user=context.user,
            task_file=str(result.task_file or ""),
        )
        if audit_writer.write(entry):
            result.audit_path = audit_writer.path

    return result
