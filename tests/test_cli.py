"""
Tests for CLI commands — detect, plan, run, and global options.
"""

import json
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from gnulinwiz.core.services.probe import UnsupportedSystemError
from gnulinwiz.main import cli


@pytest.fixture
def probed(monkeypatch, profile):
    """Make every probe return the test profile."""
    monkeypatch.setattr("gnulinwiz.core.use_cases.run.probe_system", lambda root_dir=None: profile)
    monkeypatch.setattr("gnulinwiz.core.use_cases.detect.probe_system", lambda root_dir=None: profile)
    monkeypatch.setattr("gnulinwiz.core.context.os.geteuid", lambda: 1000)
    return profile


@pytest.fixture
def env(home, tmp_path):
    return {
        "USER": "alice",
        "HOME": str(home),
        "XDG_STATE_HOME": str(tmp_path / "state"),
        "GNULINWIZ_LOG_LEVEL": "",
    }


def _task_file(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "gnulinwiz.yml"
    path.write_text(textwrap.dedent(body), encoding="utf-8")
    return path


class TestCLIGlobal:
    def test_help(self):
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Linux workstation" in result.output

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestDetectCommand:
    def test_human(self, probed):
        result = CliRunner().invoke(cli, ["detect"])
        assert result.exit_code == 0
        assert "Ubuntu 24.04 LTS" in result.output
        assert "apt" in result.output

    def test_json(self, probed):
        result = CliRunner().invoke(cli, ["detect", "--json"])
        data = json.loads(result.stdout)
        assert data["distribution"] == "debian"
        assert data["package_manager"] == "apt"
        assert "pacman" in data["managers"]

    def test_unsupported(self, monkeypatch):
        def no_manager(root_dir=None):
            raise UnsupportedSystemError("No supported package manager found")

        monkeypatch.setattr("gnulinwiz.core.use_cases.detect.probe_system", no_manager)
        result = CliRunner().invoke(cli, ["detect"])
        assert result.exit_code == 2


class TestPlanCommand:
    def test_prints_order(self, probed, env, tmp_path):
        path = _task_file(tmp_path, """\
            packages: [zsh]
            tasks:
              - id: chsh
                type: shell
                command: chsh
                args: [-s, /usr/bin/zsh, "{user}"]
                depends_on: [install-zsh]
        """)
        result = CliRunner(env=env).invoke(cli, ["plan", "-f", str(path)])
        assert result.exit_code == 0, result.output
        assert result.output.index("install-zsh") < result.output.index("chsh")
        assert "chsh -s /usr/bin/zsh alice" in result.output

    def test_defaults_json(self, probed, env):
        result = CliRunner(env=env).invoke(cli, ["plan", "--defaults", "--json"])
        assert result.exit_code == 0, result.output
        ids = [t["id"] for t in json.loads(result.stdout)["plan"]["tasks"]]
        assert "oh-my-zsh" in ids

    def test_cycle_is_plan_error(self, probed, env, tmp_path):
        path = _task_file(tmp_path, """\
            tasks:
              - {id: a, type: shell, command: "true", depends_on: [b]}
              - {id: b, type: shell, command: "true", depends_on: [a]}
        """)
        result = CliRunner(env=env).invoke(cli, ["plan", "-f", str(path)])
        assert result.exit_code == 3
        assert "cycle" in result.output.lower()

    def test_invalid_file_is_config_error(self, probed, env, tmp_path):
        path = _task_file(tmp_path, "tasks: [{id: x, type: nope}]\n")
        result = CliRunner(env=env).invoke(cli, ["plan", "-f", str(path)])
        assert result.exit_code == 1


class TestRunCommand:
    def test_mock_run_of_defaults(self, probed, env, home):
        result = CliRunner(env=env).invoke(cli, ["run", "--defaults", "--mock"])
        assert result.exit_code == 0, result.output
        assert "Done." in result.output
        assert not (home / ".zshrc").exists()

    def test_dry_run(self, probed, env, home):
        result = CliRunner(env=env).invoke(cli, ["run", "--defaults", "--dry-run", "--json"])
        assert result.exit_code == 0, result.output
        report = json.loads(result.stdout)["report"]
        assert report["dry_run"]
        assert all(o["status"] == "skipped" for o in report["outcomes"])
        assert not (home / ".zshrc").exists()

    def test_failure_exit_code(self, probed, env, tmp_path):
        path = _task_file(tmp_path, """\
            tasks:
              - {id: bad, type: shell, command: gnulinwiz-no-such-command}
              - {id: after, type: shell, command: "true", depends_on: [bad]}
        """)
        result = CliRunner(env=env).invoke(cli, ["run", "-f", str(path), "--json"])
        assert result.exit_code == 4
        outcomes = {o["task_id"]: o for o in json.loads(result.stdout)["report"]["outcomes"]}
        assert outcomes["bad"]["status"] == "failed"
        assert outcomes["after"]["reason"] == "dependency not satisfied"

    def test_real_run_writes_audit(self, probed, env, tmp_path, home):
        (tmp_path / "vimrc").write_text("set number\n")
        path = _task_file(tmp_path, """\
            tasks:
              - id: vimrc
                type: write_config
                source: vimrc
                destination: "{home}/.vimrc"
        """)
        result = CliRunner(env=env).invoke(cli, ["run", "-f", str(path)])
        assert result.exit_code == 0, result.output
        assert (home / ".vimrc").read_text() == "set number\n"

        audit = tmp_path / "state" / "gnulinwiz" / "audit.ndjson"
        entry = json.loads(audit.read_text().splitlines()[-1])
        assert entry["status"] == "ok"
        assert entry["outcomes"] == {"vimrc": "succeeded"}

    def test_refuses_root(self, probed, env, monkeypatch):
        monkeypatch.setattr("gnulinwiz.core.context.os.geteuid", lambda: 0)
        result = CliRunner(env=env).invoke(cli, ["run", "--defaults", "--mock"])
        assert result.exit_code == 1
        assert "root" in result.output

    def test_allow_root(self, probed, env, monkeypatch):
        monkeypatch.setattr("gnulinwiz.core.context.os.geteuid", lambda: 0)
        result = CliRunner(env=env).invoke(cli, ["run", "--defaults", "--mock", "--allow-root"])
        assert result.exit_code == 0, result.output
