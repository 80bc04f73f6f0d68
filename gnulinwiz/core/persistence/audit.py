"""
Audit ledger — append-only history of runs.

Each non-dry run appends one JSON line to
``$XDG_STATE_HOME/gnulinwiz/audit.ndjson`` (default
``~/.local/state/gnulinwiz/audit.ndjson``): when it ran, on what
system, and what happened to each task. Entries are never rewritten.
"""

from __future__ import annotations

import json
import logging
import os
import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from gnulinwiz.core.engine.report import Report

logger = logging.getLogger(__name__)

AUDIT_FILE = "audit.ndjson"


def default_audit_path(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    state_home = env.get("XDG_STATE_HOME")
    base = Path(state_home) if state_home else Path.home() / ".local" / "state"
    return base / "gnulinwiz" / AUDIT_FILE


def generate_run_id() -> str:
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    return f"run-{now}-{uuid.uuid4().hex[:6]}"


class AuditEntry(BaseModel):
    """One line of the ledger."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = Field(default_factory=generate_run_id)
    user: str = ""

    distribution: str = ""
    package_manager: str = ""
    task_file: str = ""

    status: str = ""               # ok, partial, cancelled
    exit_code: int = 0
    tasks_total: int = 0
    tasks_succeeded: int = 0
    tasks_failed: int = 0
    tasks_skipped: int = 0

    # task id → status, plus reasons for anything that did not succeed
    outcomes: dict[str, str] = Field(default_factory=dict)
    errors: list[str] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: Report, **kwargs: Any) -> AuditEntry:
        if report.cancelled:
            status = "cancelled"
        elif report.success:
            status = "ok"
        else:
            status = "partial"
        counts = report.counts()
        return cls(
            distribution=report.distribution,
            package_manager=report.package_manager,
            status=status,
            exit_code=report.exit_code,
            tasks_total=counts["total"],
            tasks_succeeded=counts["succeeded"],
            tasks_failed=counts["failed"],
            tasks_skipped=counts["skipped"],
            outcomes={o.task_id: o.status.value for o in report.outcomes},
            errors=[f"{o.task_id}: {o.reason}" for o in report.failed],
            **kwargs,
        )


class AuditWriter:
    """Append-only writer for the run ledger."""

    def __init__(self, path: Path | None = None):
        self._path = path or default_audit_path()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> bool:
        """Append one entry. Returns False if the ledger is not writable."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)
            return False
        logger.debug("Audit entry written: %s", entry.run_id)
        return True

    def read_all(self) -> list[AuditEntry]:
        """All entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        return self.read_all()[-n:]
