"""
Tests for domain models — tasks, outcomes, environment.
"""

import pytest
from pydantic import ValidationError

from gnulinwiz.core.models.environment import (
    MANAGER_PRIORITY,
    MANAGER_SPECS,
    PackageManagerKind,
)
from gnulinwiz.core.models.outcome import (
    REASON_CANCELLED,
    REASON_DEPENDENCY,
    ExecutionOutcome,
    TaskStatus,
)
from gnulinwiz.core.models.task import (
    BackupPolicy,
    InstallPackage,
    RunShellStep,
    Task,
    WriteConfigFile,
)


class TestTask:
    def test_install_factory(self):
        task = Task.install("install-git", "git")
        assert isinstance(task.kind, InstallPackage)
        assert task.kind.name == "git"
        assert task.depends_on == frozenset()
        assert not task.allow_failure

    def test_write_config_factory_splits_kind_fields(self):
        task = Task.write_config(
            "zshrc", "zshrc", "~/.zshrc",
            backup_policy=BackupPolicy.NONE,
            depends_on=frozenset({"install-zsh"}),
        )
        assert isinstance(task.kind, WriteConfigFile)
        assert task.kind.backup_policy is BackupPolicy.NONE
        assert task.depends_on == {"install-zsh"}

    def test_shell_factory(self):
        task = Task.shell("omz", "sh", ["-c", "true"], creates="~/.oh-my-zsh", elevated=True)
        assert isinstance(task.kind, RunShellStep)
        assert task.kind.argv == ["sh", "-c", "true"]
        assert task.kind.creates == "~/.oh-my-zsh"
        assert task.kind.elevated

    def test_kind_discriminated_by_type(self):
        task = Task.model_validate({
            "id": "t",
            "kind": {"type": "shell", "command": "echo", "args": ["hi"]},
        })
        assert isinstance(task.kind, RunShellStep)
        assert task.kind.args == ("hi",)

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            Task.model_validate({"id": "t", "kind": {"type": "reboot"}})

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            Task.install("  ", "git")

    def test_empty_package_rejected(self):
        with pytest.raises(ValidationError):
            Task.install("t", "")

    def test_frozen(self):
        task = Task.install("t", "git")
        with pytest.raises(ValidationError):
            task.id = "other"

    def test_label_prefers_description(self):
        assert Task.install("t", "git").label == "install package git"
        assert Task.install("t", "git", description="VCS").label == "VCS"


class TestExecutionOutcome:
    def test_success(self):
        o = ExecutionOutcome.success("t", output="done")
        assert o.ok
        assert o.status is TaskStatus.SUCCEEDED
        assert o.satisfies_dependents

    def test_failure_blocks(self):
        o = ExecutionOutcome.failure("t", "boom")
        assert o.failed
        assert o.blocking_failure
        assert not o.satisfies_dependents

    def test_allowed_failure_satisfies_dependents(self):
        o = ExecutionOutcome.failure("t", "boom", allow_failure=True)
        assert not o.blocking_failure
        assert o.satisfies_dependents

    def test_skip_by_dependency(self):
        o = ExecutionOutcome.skip("t", REASON_DEPENDENCY)
        assert o.skipped_by_failure
        assert not o.satisfies_dependents

    def test_skip_by_cancel_is_not_failure_skip(self):
        assert not ExecutionOutcome.skip("t", REASON_CANCELLED).skipped_by_failure

    def test_terminal_states(self):
        assert not TaskStatus.PENDING.terminal
        assert not TaskStatus.RUNNING.terminal
        assert TaskStatus.SUCCEEDED.terminal
        assert TaskStatus.FAILED.terminal
        assert TaskStatus.SKIPPED.terminal


class TestManagerSpecs:
    def test_every_manager_has_command_templates(self):
        for kind in MANAGER_PRIORITY:
            spec = MANAGER_SPECS[kind]
            assert "{package}" in spec.install_command
            assert "{package}" in spec.query_command

    def test_probe_order(self):
        assert MANAGER_PRIORITY == (
            PackageManagerKind.APT,
            PackageManagerKind.DNF,
            PackageManagerKind.PACMAN,
            PackageManagerKind.ZYPPER,
        )

    def test_install_is_non_interactive(self):
        assert "-y" in MANAGER_SPECS[PackageManagerKind.APT].install_command
        assert "--noconfirm" in MANAGER_SPECS[PackageManagerKind.PACMAN].install_command
        assert "--non-interactive" in MANAGER_SPECS[PackageManagerKind.ZYPPER].install_command
