"""
Task models — the unit of configuration work.

A Task is a requested change to the system. Its ``kind`` says what
the change is (install a package, deploy a config file, run a shell
step); ``depends_on`` says which tasks must succeed first.

Tasks are frozen: once built by the caller they are never mutated,
neither by the planner nor by the executor.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BackupPolicy(str, Enum):
    """What to do with an existing destination before overwriting it."""

    OVERWRITE = "overwrite"          # always refresh the backup copy
    KEEP_EXISTING = "keep_existing"  # never clobber an earlier backup
    NONE = "none"                    # no backup at all


class InstallPackage(BaseModel):
    """Install a package through the detected package manager."""

    model_config = ConfigDict(frozen=True)

    type: Literal["install_package"] = "install_package"
    name: str

    @field_validator("name")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("package name must not be empty")
        return value.strip()

    def describe(self) -> str:
        return f"install package {self.name}"


class WriteConfigFile(BaseModel):
    """Deploy ``source`` to ``destination``, backing up what was there."""

    model_config = ConfigDict(frozen=True)

    type: Literal["write_config"] = "write_config"
    source: str
    destination: str
    backup_policy: BackupPolicy = BackupPolicy.OVERWRITE
    elevated: bool = False          # destination needs root (e.g. /etc)

    def describe(self) -> str:
        return f"write {self.source} -> {self.destination}"


class RunShellStep(BaseModel):
    """Run a command with arguments (no shell interpolation)."""

    model_config = ConfigDict(frozen=True)

    type: Literal["shell"] = "shell"
    command: str
    args: tuple[str, ...] = ()
    elevated: bool = False
    creates: str | None = None      # path that marks the step as done
    cwd: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    timeout: int | None = None

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]

    def describe(self) -> str:
        return " ".join(self.argv)


TaskKind = Annotated[
    Union[InstallPackage, WriteConfigFile, RunShellStep],
    Field(discriminator="type"),
]


class Task(BaseModel):
    """A unit of work with its dependencies.

    ``allow_failure`` tasks may fail without blocking their dependents
    and without failing the run.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: TaskKind
    depends_on: frozenset[str] = Field(default_factory=frozenset)
    allow_failure: bool = False
    description: str = ""

    @field_validator("id")
    @classmethod
    def _valid_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("task id must not be empty")
        return value

    @property
    def label(self) -> str:
        """Human-readable summary of what the task does."""
        return self.description or self.kind.describe()

    @classmethod
    def install(cls, task_id: str, package: str, **kwargs) -> Task:
        return cls(id=task_id, kind=InstallPackage(name=package), **kwargs)

    @classmethod
    def write_config(
        cls,
        task_id: str,
        source: str,
        destination: str,
        **kwargs,
    ) -> Task:
        kind_fields = {
            key: kwargs.pop(key)
            for key in ("backup_policy", "elevated")
            if key in kwargs
        }
        return cls(
            id=task_id,
            kind=WriteConfigFile(source=source, destination=destination, **kind_fields),
            **kwargs,
        )

    @classmethod
    def shell(
        cls,
        task_id: str,
        command: str,
        args: list[str] | tuple[str, ...] = (),
        **kwargs,
    ) -> Task:
        kind_fields = {
            key: kwargs.pop(key)
            for key in ("elevated", "creates", "cwd", "env", "timeout")
            if key in kwargs
        }
        return cls(
            id=task_id,
            kind=RunShellStep(command=command, args=tuple(args), **kind_fields),
            **kwargs,
        )
