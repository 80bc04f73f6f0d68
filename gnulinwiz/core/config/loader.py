"""
Task file loader — reads gnulinwiz.yml into Task models.

A task file is YAML:

    version: 1
    variables:
      plugins: "{home}/.oh-my-zsh/custom/plugins"
    packages: [git, zsh]          # shorthand: one install-<name> task each
    tasks:
      - id: zshrc
        type: write_config
        source: zshrc
        destination: "{home}/.zshrc"
        depends_on: [install-zsh]

Strings are rendered with ``{var}`` placeholders before validation.
Built-ins come from the run context (``user``, ``home``, ``distro``,
``family``, ``package_manager``); file ``variables`` override them.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gnulinwiz.core.context import RunContext
from gnulinwiz.core.models.task import Task
from gnulinwiz.data import DEFAULT_TASKS_FILE

logger = logging.getLogger(__name__)

TASK_FILE_NAME = "gnulinwiz.yml"
SUPPORTED_VERSION = 1

# Keys that belong to the Task itself; everything else describes the kind.
_TASK_KEYS = ("id", "depends_on", "allow_failure", "description")


class ConfigError(Exception):
    """Raised when a task file is missing or invalid."""


class TaskFile(BaseModel):
    """Raw, unrendered task file."""

    model_config = ConfigDict(extra="forbid")

    version: int = SUPPORTED_VERSION
    variables: dict[str, str] = Field(default_factory=dict)
    packages: list[str] = Field(default_factory=list)
    tasks: list[dict[str, Any]] = Field(default_factory=list)


# ── Templates ───────────────────────────────────────────────────────


def render_template(template: str, variables: dict[str, str]) -> str:
    """Substitute ``{var}`` placeholders.

    Simple string replacement, no Jinja and no escaping. Unknown
    placeholders are left as they are.
    """
    result = template
    for key, value in variables.items():
        result = result.replace(f"{{{key}}}", str(value))
    return result


def _render(value: Any, variables: dict[str, str]) -> Any:
    if isinstance(value, str):
        return render_template(value, variables)
    if isinstance(value, list):
        return [_render(v, variables) for v in value]
    if isinstance(value, dict):
        return {k: _render(v, variables) for k, v in value.items()}
    return value


def _variables(task_file: TaskFile, context: RunContext) -> dict[str, str]:
    builtins = context.template_vars()
    rendered = {
        key: render_template(value, builtins)
        for key, value in task_file.variables.items()
    }
    return {**builtins, **rendered}


# ── Parsing ─────────────────────────────────────────────────────────


def _to_task(entry: dict[str, Any], index: int, source: str) -> Task:
    if not isinstance(entry, dict):
        raise ConfigError(f"{source}: task #{index + 1} is not a mapping")

    kind = {k: v for k, v in entry.items() if k not in _TASK_KEYS}
    data = {k: entry[k] for k in _TASK_KEYS if k in entry}
    data["kind"] = kind
    data["depends_on"] = frozenset(data.get("depends_on") or ())

    try:
        return Task.model_validate(data)
    except ValidationError as e:
        label = entry.get("id", f"#{index + 1}")
        raise ConfigError(f"{source}: invalid task '{label}': {e}") from e


def parse_tasks(data: Any, context: RunContext, source: str = "<memory>") -> list[Task]:
    """Validate already-parsed YAML and build tasks.

    Raises:
        ConfigError: If the structure or any task is invalid.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {source}, got {type(data).__name__}")

    try:
        task_file = TaskFile.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid task file {source}: {e}") from e

    if task_file.version != SUPPORTED_VERSION:
        raise ConfigError(
            f"{source}: unsupported version {task_file.version} "
            f"(expected {SUPPORTED_VERSION})"
        )

    variables = _variables(task_file, context)
    tasks: list[Task] = []

    for name in task_file.packages:
        package = render_template(name, variables).strip()
        if not package:
            raise ConfigError(f"{source}: empty package name in 'packages'")
        tasks.append(Task.install(f"install-{package}", package))

    for index, entry in enumerate(task_file.tasks):
        tasks.append(_to_task(_render(entry, variables), index, source))

    return tasks


def find_task_file(start_dir: Path | None = None) -> Path | None:
    """Search for gnulinwiz.yml starting from the given directory, walking up."""
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / TASK_FILE_NAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def load_tasks(path: Path, context: RunContext) -> list[Task]:
    """Load and validate a task file.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    if not path.is_file():
        raise ConfigError(f"Task file not found: {path}")

    logger.debug("Loading tasks from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    tasks = parse_tasks(data, context, source=str(path))
    logger.info("Loaded %d tasks from %s", len(tasks), path)
    return tasks


def load_default_tasks(context: RunContext) -> list[Task]:
    """The bundled workstation setup."""
    return load_tasks(DEFAULT_TASKS_FILE, context)
