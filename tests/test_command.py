"""
Tests for the command runner (real subprocesses, POSIX shell only).
"""

import threading

import pytest

from gnulinwiz.adapters.shell.command import (
    EXIT_CANCELLED,
    EXIT_NOT_FOUND,
    CommandResult,
    CommandRunner,
    format_argv,
)


class TestCommandResult:
    def test_ok(self):
        assert CommandResult(argv=["true"], returncode=0).ok
        assert not CommandResult(argv=["false"], returncode=1).ok
        assert not CommandResult(argv=["x"], returncode=0, cancelled=True).ok

    def test_output_combines_streams(self):
        result = CommandResult(argv=["x"], returncode=0, stdout="out\n", stderr="err\n")
        assert result.output == "out\nerr"

    def test_describe_failure(self):
        result = CommandResult(argv=["cp", "a b", "c"], returncode=1, stderr="denied")
        assert result.describe_failure() == "exit 1: cp 'a b' c\ndenied"

    def test_format_argv_quotes(self):
        assert format_argv(["echo", "hello world"]) == "echo 'hello world'"


class TestCommandRunner:
    def test_success_captures_stdout(self):
        result = CommandRunner().run(["sh", "-c", "echo hello"])
        assert result.ok
        assert result.stdout.strip() == "hello"

    def test_failure_is_returned_not_raised(self):
        result = CommandRunner().run(["sh", "-c", "echo oops >&2; exit 3"])
        assert result.returncode == 3
        assert "oops" in result.stderr

    def test_command_not_found(self):
        result = CommandRunner().run(["gnulinwiz-no-such-command"])
        assert result.returncode == EXIT_NOT_FOUND
        assert "command not found" in result.stderr

    def test_undecodable_output_does_not_fail(self):
        result = CommandRunner().run(["sh", "-c", "printf '\\377\\n'; printf '\\376' >&2; exit 0"])
        assert result.ok
        assert result.stdout == "\ufffd\n"
        assert result.stderr == "\ufffd"

    def test_env_and_cwd(self, tmp_path):
        result = CommandRunner().run(
            ["sh", "-c", 'echo "$GREETING"; pwd'],
            env={"GREETING": "hi"},
            cwd=str(tmp_path),
        )
        lines = result.stdout.split()
        assert lines[0] == "hi"
        assert lines[1] == str(tmp_path)

    def test_timeout(self):
        result = CommandRunner(poll_interval=0.05).run(["sleep", "5"], timeout=0.2)
        assert result.timed_out
        assert not result.ok

    def test_cancel_terminates_child(self):
        event = threading.Event()
        runner = CommandRunner(cancel_event=event, poll_interval=0.05)
        threading.Timer(0.2, event.set).start()

        result = runner.run(["sleep", "5"])
        assert result.cancelled
        assert result.returncode == EXIT_CANCELLED
        assert result.duration_ms < 5000

    def test_already_cancelled_does_not_start(self, tmp_path):
        event = threading.Event()
        event.set()
        marker = tmp_path / "ran"
        result = CommandRunner(cancel_event=event).run(["touch", str(marker)])
        assert result.cancelled
        assert not marker.exists()


class TestElevate:
    def test_prefixes_sudo_for_normal_user(self):
        assert CommandRunner().elevate(["chsh", "-s", "/usr/bin/zsh"]) == [
            "sudo", "chsh", "-s", "/usr/bin/zsh",
        ]

    def test_no_sudo_as_root(self):
        assert CommandRunner(is_root=True).elevate(["chsh"]) == ["chsh"]

    def test_root_flag_is_not_redetected(self, monkeypatch):
        monkeypatch.setattr("gnulinwiz.adapters.shell.command.os.geteuid", lambda: 0)
        assert CommandRunner(is_root=False).elevate(["chsh"]) == ["sudo", "chsh"]

    def test_env_passed_through_sudo(self, monkeypatch):
        seen = {}

        class FakePopen:
            def __init__(self, cmd, **kwargs):
                seen["cmd"] = cmd
                raise FileNotFoundError(cmd[0])

        monkeypatch.setattr("gnulinwiz.adapters.shell.command.subprocess.Popen", FakePopen)
        CommandRunner().run(["apt-get", "install", "git"], elevated=True, env={"A": "1"})
        assert seen["cmd"] == ["sudo", "env", "A=1", "apt-get", "install", "git"]


@pytest.mark.parametrize("argv", [["true"], ["sh", "-c", "exit 0"]])
def test_zero_exit_is_ok(argv):
    assert CommandRunner().run(argv).ok
