"""Tests for vibetree CLI commands."""

import json

import pytest
from click.testing import CliRunner

from vibetree.cli import main
from vibetree.config import get_notifications_enabled, get_projects
from vibetree.hooks import OWNED_HOOKS


@pytest.fixture
def runner():
    """Click CLI runner."""
    return CliRunner()


def _invoke(runner, vt_home, *args):
    return runner.invoke(main, ["--home", str(vt_home), *args])


class TestWorktreeCommands:
    def test_list(self, runner, vt_home, local_repo):
        result = _invoke(runner, vt_home, "worktree", "list", str(local_repo))
        assert result.exit_code == 0, result.output
        assert "main" in result.output
        assert str(local_repo.resolve()) in result.output

    def test_list_json(self, runner, vt_home, local_repo):
        result = _invoke(runner, vt_home, "worktree", "list", str(local_repo), "--json")
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [w["branch"] for w in data] == ["refs/heads/main"]
        assert set(data[0]) == {"path", "head", "branch"}

    def test_add(self, runner, vt_home, local_repo):
        result = _invoke(runner, vt_home, "worktree", "add", str(local_repo), "feature-x")
        assert result.exit_code == 0, result.output
        expected = local_repo.parent / "myproject-feature-x"
        assert f"Created worktree 'feature-x' at {expected}" in result.output
        assert expected.is_dir()

    def test_add_failure_is_reported(self, runner, vt_home, local_repo):
        result = _invoke(runner, vt_home, "worktree", "add", str(local_repo), "main")
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_list_failure_is_reported(self, runner, vt_home, tmp_path, monkeypatch):
        monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
        plain = tmp_path / "plain"
        plain.mkdir()
        result = _invoke(runner, vt_home, "worktree", "list", str(plain))
        assert result.exit_code == 1
        assert "not a git repository" in result.output


class TestHooksCommands:
    def test_install_global(self, runner, vt_home, user_home):
        result = _invoke(runner, vt_home, "hooks", "install")
        assert result.exit_code == 0, result.output
        settings = json.loads((user_home / ".claude" / "settings.json").read_text())
        assert settings["hooks"] == OWNED_HOOKS

    def test_install_project(self, runner, vt_home, local_repo):
        result = _invoke(runner, vt_home, "hooks", "install", "--project", str(local_repo))
        assert result.exit_code == 0, result.output
        assert (local_repo / ".claude" / "settings.json").is_file()

    def test_install_failure_warns(self, runner, vt_home, tmp_path):
        proj = tmp_path / "proj"
        proj.mkdir()
        (proj / ".claude").write_text("not a directory")
        result = _invoke(runner, vt_home, "hooks", "install", "--project", str(proj))
        assert result.exit_code == 0
        assert "could not update" in result.output


class TestProjectCommands:
    def test_open_registers_and_injects(self, runner, vt_home, local_repo):
        result = _invoke(runner, vt_home, "project", "open", str(local_repo))
        assert result.exit_code == 0, result.output
        assert "Opened project" in result.output
        assert get_projects(vt_home) == [str(local_repo.resolve())]
        assert (local_repo / ".claude" / "settings.json").is_file()

    def test_open_twice(self, runner, vt_home, local_repo):
        _invoke(runner, vt_home, "project", "open", str(local_repo))
        result = _invoke(runner, vt_home, "project", "open", str(local_repo))
        assert "already open" in result.output
        assert len(get_projects(vt_home)) == 1

    def test_list(self, runner, vt_home, local_repo):
        assert "No projects opened." in _invoke(runner, vt_home, "project", "list").output
        _invoke(runner, vt_home, "project", "open", str(local_repo))
        assert str(local_repo.resolve()) in _invoke(runner, vt_home, "project", "list").output


class TestConfigCommands:
    def test_set_notifications(self, runner, vt_home):
        result = _invoke(runner, vt_home, "config", "set", "notifications", "off")
        assert result.exit_code == 0, result.output
        assert get_notifications_enabled(vt_home) is False

    def test_show(self, runner, vt_home):
        _invoke(runner, vt_home, "config", "set", "notifications", "OFF")
        result = _invoke(runner, vt_home, "config", "show")
        assert "notifications: false" in result.output
        assert "relay_retry_delay: 1.0" in result.output


class TestStart:
    def test_injects_hooks_then_runs_relay(self, runner, vt_home, user_home, local_repo, monkeypatch):
        ran = []

        async def fake_run_relay(home, icon):
            ran.append((home, icon))

        monkeypatch.setattr("vibetree.cli._run_relay", fake_run_relay)
        monkeypatch.setattr("vibetree.logging_setup.configure_logging", lambda *a, **kw: None)
        _invoke(runner, vt_home, "project", "open", str(local_repo))
        (local_repo / ".claude" / "settings.json").unlink()

        result = _invoke(runner, vt_home, "start", "--icon", "/i.png")

        assert result.exit_code == 0, result.output
        assert ran == [(vt_home, "/i.png")]
        assert (user_home / ".claude" / "settings.json").is_file()
        assert (local_repo / ".claude" / "settings.json").is_file()
        assert "Relay stopped" in result.output
