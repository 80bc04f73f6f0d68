"""
Task planner — dependency-ordered, deterministic plans.

Validates the task set (unique ids, known dependencies, no cycles)
and orders it with Kahn's algorithm. Among ready tasks the smallest
id goes first, so identical input always yields the identical plan.

Nothing runs until planning succeeds: a structurally invalid task set
never gets partially applied.
"""

from __future__ import annotations

import heapq
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from gnulinwiz.core.models.task import Task

logger = logging.getLogger(__name__)


class PlanError(Exception):
    """Raised when a task set cannot be ordered."""


class DuplicateTaskError(PlanError):
    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Duplicate task id: '{task_id}'")


class UnknownDependencyError(PlanError):
    def __init__(self, task_id: str, missing_id: str):
        self.task_id = task_id
        self.missing_id = missing_id
        super().__init__(f"Task '{task_id}' depends on unknown task '{missing_id}'")


class CyclicDependencyError(PlanError):
    def __init__(self, cycle_ids: list[str]):
        self.cycle_ids = cycle_ids
        super().__init__(f"Dependency cycle: {' -> '.join(cycle_ids)}")


@dataclass(frozen=True)
class Plan:
    """An ordered, immutable sequence of tasks."""

    tasks: tuple[Task, ...] = ()

    def __iter__(self) -> Iterator[Task]:
        return iter(self.tasks)

    def __len__(self) -> int:
        return len(self.tasks)

    @property
    def ids(self) -> list[str]:
        return [t.id for t in self.tasks]

    def get(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def position(self, task_id: str) -> int:
        return self.ids.index(task_id)

    def to_dict(self) -> dict:
        return {
            "total": len(self.tasks),
            "tasks": [
                {
                    "id": t.id,
                    "type": t.kind.type,
                    "description": t.label,
                    "depends_on": sorted(t.depends_on),
                    "allow_failure": t.allow_failure,
                }
                for t in self.tasks
            ],
        }


def _validate(tasks: list[Task]) -> dict[str, Task]:
    by_id: dict[str, Task] = {}
    for task in tasks:
        if task.id in by_id:
            raise DuplicateTaskError(task.id)
        by_id[task.id] = task

    for task_id in sorted(by_id):
        for dep in sorted(by_id[task_id].depends_on):
            if dep not in by_id:
                raise UnknownDependencyError(task_id, dep)
    return by_id


def _find_cycle(by_id: dict[str, Task], remaining: set[str]) -> list[str]:
    """Extract one cycle from the tasks Kahn's algorithm could not order.

    DFS with in-progress / visited marking; returns the cycle as a
    closed path, e.g. ``["a", "b", "a"]``.
    """
    IN_PROGRESS, DONE = 1, 2
    marks: dict[str, int] = {}
    stack: list[str] = []

    def visit(node: str) -> list[str] | None:
        marks[node] = IN_PROGRESS
        stack.append(node)
        for dep in sorted(by_id[node].depends_on):
            if dep not in remaining:
                continue
            if marks.get(dep) == IN_PROGRESS:
                return stack[stack.index(dep):] + [dep]
            if dep not in marks:
                found = visit(dep)
                if found:
                    return found
        stack.pop()
        marks[node] = DONE
        return None

    for start in sorted(remaining):
        if start not in marks:
            cycle = visit(start)
            if cycle:
                # Report in dependency order: a depends on b → a first.
                return cycle
    return sorted(remaining)


def plan(tasks: Iterable[Task]) -> Plan:
    """Order a task set so every task follows its dependencies.

    Args:
        tasks: The tasks to order (any iterable; order is irrelevant).

    Returns:
        Plan with a deterministic topological ordering.

    Raises:
        DuplicateTaskError: Two tasks share an id.
        UnknownDependencyError: A task depends on an id not in the set.
        CyclicDependencyError: The dependency graph has a cycle.
    """
    by_id = _validate(list(tasks))

    in_degree: dict[str, int] = {tid: len(t.depends_on) for tid, t in by_id.items()}
    dependents: dict[str, list[str]] = {tid: [] for tid in by_id}
    for tid, task in by_id.items():
        for dep in task.depends_on:
            dependents[dep].append(tid)

    ready = [tid for tid, deg in in_degree.items() if deg == 0]
    heapq.heapify(ready)
    ordered: list[Task] = []

    while ready:
        tid = heapq.heappop(ready)
        ordered.append(by_id[tid])
        for successor in dependents[tid]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                heapq.heappush(ready, successor)

    if len(ordered) < len(by_id):
        remaining = set(by_id) - {t.id for t in ordered}
        cycle = _find_cycle(by_id, remaining)
        logger.error("Cannot plan: dependency cycle %s", " -> ".join(cycle))
        raise CyclicDependencyError(cycle)

    logger.info("Planned %d tasks: %s", len(ordered), ", ".join(t.id for t in ordered))
    return Plan(tasks=tuple(ordered))
