"""
Domain models — Pydantic types for the configuration engine.

All models are re-exported here for convenient access:

    from gnulinwiz.core.models import Task, ExecutionOutcome, Distribution
"""

from gnulinwiz.core.models.environment import (
    MANAGER_SPECS,
    Distribution,
    ManagerSpec,
    PackageManagerKind,
    SystemProfile,
)
from gnulinwiz.core.models.outcome import ExecutionOutcome, TaskStatus
from gnulinwiz.core.models.task import (
    BackupPolicy,
    InstallPackage,
    RunShellStep,
    Task,
    WriteConfigFile,
)

__all__ = [
    "BackupPolicy",
    "Distribution",
    "ExecutionOutcome",
    "InstallPackage",
    "MANAGER_SPECS",
    "ManagerSpec",
    "PackageManagerKind",
    "RunShellStep",
    "SystemProfile",
    "Task",
    "TaskStatus",
    "WriteConfigFile",
]
