"""
Tests for the task planner — ordering, determinism, validation.
"""

import pytest

from gnulinwiz.core.engine.planner import (
    CyclicDependencyError,
    DuplicateTaskError,
    PlanError,
    UnknownDependencyError,
    plan,
)
from gnulinwiz.core.models.task import Task


def _t(task_id: str, *deps: str) -> Task:
    return Task.install(task_id, task_id, depends_on=frozenset(deps))


class TestOrdering:
    def test_empty(self):
        assert len(plan([])) == 0

    def test_independent_tasks_sorted_by_id(self):
        assert plan([_t("c"), _t("a"), _t("b")]).ids == ["a", "b", "c"]

    def test_dependency_first(self):
        result = plan([_t("zshrc", "zsh"), _t("zsh")])
        assert result.ids == ["zsh", "zshrc"]

    def test_lexicographic_tie_break_among_ready(self):
        tasks = [_t("z"), _t("b", "z"), _t("a", "z"), _t("m")]
        assert plan(tasks).ids == ["m", "z", "a", "b"]

    def test_diamond(self):
        tasks = [_t("d", "b", "c"), _t("b", "a"), _t("c", "a"), _t("a")]
        assert plan(tasks).ids == ["a", "b", "c", "d"]

    def test_every_task_after_its_dependencies(self):
        tasks = [
            _t("omz", "zsh", "git", "curl"),
            _t("plugin", "omz"),
            _t("zshrc", "omz", "plugin"),
            _t("zsh"), _t("git"), _t("curl"), _t("vimrc"),
        ]
        result = plan(tasks)
        for task in result:
            for dep in task.depends_on:
                assert result.position(dep) < result.position(task.id)

    def test_deterministic(self):
        tasks = [_t("b", "a"), _t("c"), _t("a"), _t("d", "c")]
        first = plan(tasks).ids
        assert all(plan(list(reversed(tasks))).ids == first for _ in range(5))

    def test_get(self):
        result = plan([_t("a")])
        assert result.get("a").id == "a"
        assert result.get("missing") is None

    def test_to_dict(self):
        data = plan([_t("b", "a"), _t("a")]).to_dict()
        assert data["total"] == 2
        assert data["tasks"][1] == {
            "id": "b",
            "type": "install_package",
            "description": "install package b",
            "depends_on": ["a"],
            "allow_failure": False,
        }


class TestValidation:
    def test_duplicate_id(self):
        with pytest.raises(DuplicateTaskError) as exc:
            plan([_t("a"), _t("a")])
        assert exc.value.task_id == "a"

    def test_unknown_dependency(self):
        with pytest.raises(UnknownDependencyError) as exc:
            plan([_t("zshrc", "zsh")])
        assert exc.value.task_id == "zshrc"
        assert exc.value.missing_id == "zsh"

    def test_self_dependency_is_a_cycle(self):
        with pytest.raises(CyclicDependencyError) as exc:
            plan([_t("a", "a")])
        assert exc.value.cycle_ids == ["a", "a"]

    def test_two_cycle(self):
        with pytest.raises(CyclicDependencyError) as exc:
            plan([_t("a", "b"), _t("b", "a")])
        assert exc.value.cycle_ids == ["a", "b", "a"]

    def test_cycle_reported_without_bystanders(self):
        tasks = [_t("ok"), _t("x", "ok", "z"), _t("y", "x"), _t("z", "y"), _t("after", "z")]
        with pytest.raises(CyclicDependencyError) as exc:
            plan(tasks)
        cycle = exc.value.cycle_ids
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"x", "y", "z"}

    def test_all_errors_are_plan_errors(self):
        for bad in ([_t("a"), _t("a")], [_t("a", "nope")], [_t("a", "b"), _t("b", "a")]):
            with pytest.raises(PlanError):
                plan(bad)
