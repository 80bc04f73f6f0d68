"""
Task status and ExecutionOutcome — the execution contract.

The executor turns every task of a plan into exactly one outcome.
Task-level failures are captured here, never raised: an outcome is
the receipt of what happened to one task.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class TaskStatus(str, Enum):
    """Lifecycle of a task inside one run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.SKIPPED})


# Skip reasons with meaning for aggregation.
REASON_DEPENDENCY = "dependency not satisfied"
REASON_CANCELLED = "run cancelled"
REASON_INTERRUPTED = "interrupted by cancellation"
DRY_RUN_PREFIX = "dry run"


class ExecutionOutcome(BaseModel):
    """Terminal result of one task."""

    task_id: str
    status: TaskStatus
    reason: str = ""

    started_at: str = Field(default_factory=_now_iso)
    finished_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    attempts: int = 0
    allow_failure: bool = False

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == TaskStatus.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status == TaskStatus.FAILED

    @property
    def skipped(self) -> bool:
        return self.status == TaskStatus.SKIPPED

    @property
    def blocking_failure(self) -> bool:
        """Failed, and the task did not allow failure."""
        return self.failed and not self.allow_failure

    @property
    def skipped_by_failure(self) -> bool:
        """Skipped because something upstream really failed."""
        return self.skipped and self.reason == REASON_DEPENDENCY

    @property
    def satisfies_dependents(self) -> bool:
        """Whether tasks depending on this one may run."""
        return self.ok or (self.failed and self.allow_failure)

    @classmethod
    def success(cls, task_id: str, output: str = "", **kwargs: Any) -> ExecutionOutcome:
        """Create a success outcome."""
        return cls(task_id=task_id, status=TaskStatus.SUCCEEDED, output=output, **kwargs)

    @classmethod
    def failure(cls, task_id: str, reason: str, **kwargs: Any) -> ExecutionOutcome:
        """Create a failure outcome."""
        return cls(task_id=task_id, status=TaskStatus.FAILED, reason=reason, **kwargs)

    @classmethod
    def skip(cls, task_id: str, reason: str, **kwargs: Any) -> ExecutionOutcome:
        """Create a skip outcome."""
        return cls(task_id=task_id, status=TaskStatus.SKIPPED, reason=reason, **kwargs)
