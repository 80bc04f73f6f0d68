"""
Report aggregator — the run summary and its exit code.

``finalize`` is pure: it only looks at the outcomes it is given. The
executor calls it once at the end of a run; the CLI prints the result
and exits with ``report.exit_code``.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from gnulinwiz.core.context import RunContext
from gnulinwiz.core.models.outcome import ExecutionOutcome, TaskStatus

# ── Exit codes ──────────────────────────────────────────────────────

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_UNSUPPORTED_SYSTEM = 2
EXIT_PLAN_ERROR = 3
EXIT_PARTIAL_FAILURE = 4
EXIT_CANCELLED = 130


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class Report(BaseModel):
    """Summary of one run."""

    outcomes: list[ExecutionOutcome] = Field(default_factory=list)
    success: bool = True
    cancelled: bool = False
    dry_run: bool = False

    started_at: str = Field(default_factory=_now_iso)
    finished_at: str = Field(default_factory=_now_iso)

    distribution: str = ""
    package_manager: str = ""

    @property
    def succeeded(self) -> list[ExecutionOutcome]:
        return [o for o in self.outcomes if o.status == TaskStatus.SUCCEEDED]

    @property
    def failed(self) -> list[ExecutionOutcome]:
        return [o for o in self.outcomes if o.status == TaskStatus.FAILED]

    @property
    def skipped(self) -> list[ExecutionOutcome]:
        return [o for o in self.outcomes if o.status == TaskStatus.SKIPPED]

    @property
    def exit_code(self) -> int:
        if self.cancelled:
            return EXIT_CANCELLED
        if not self.success:
            return EXIT_PARTIAL_FAILURE
        return EXIT_OK

    def outcome_for(self, task_id: str) -> ExecutionOutcome | None:
        for outcome in self.outcomes:
            if outcome.task_id == task_id:
                return outcome
        return None

    def counts(self) -> dict[str, int]:
        return {
            "total": len(self.outcomes),
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "cancelled": self.cancelled,
            "dry_run": self.dry_run,
            "exit_code": self.exit_code,
            "distribution": self.distribution,
            "package_manager": self.package_manager,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "counts": self.counts(),
            "outcomes": [
                {
                    "task_id": o.task_id,
                    "status": o.status.value,
                    "reason": o.reason,
                    "attempts": o.attempts,
                    "duration_ms": o.duration_ms,
                    "allow_failure": o.allow_failure,
                }
                for o in self.outcomes
            ],
        }


def finalize(
    outcomes: Iterable[ExecutionOutcome],
    *,
    cancelled: bool = False,
    dry_run: bool = False,
    started_at: str | None = None,
    context: RunContext | None = None,
) -> Report:
    """Aggregate per-task outcomes into a Report.

    The run succeeds iff it was not cancelled, no task failed without
    ``allow_failure``, and nothing was skipped because of such a failure.
    """
    outcomes = list(outcomes)
    success = not cancelled and not any(
        o.blocking_failure or o.skipped_by_failure for o in outcomes
    )

    extra: dict[str, Any] = {}
    if started_at:
        extra["started_at"] = started_at
    if context is not None:
        extra["distribution"] = context.distribution.value
        extra["package_manager"] = context.package_manager.value

    return Report(
        outcomes=outcomes,
        success=success,
        cancelled=cancelled,
        dry_run=dry_run,
        **extra,
    )
