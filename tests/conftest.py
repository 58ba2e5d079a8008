"""Shared test fixtures for vibetree tests."""

import subprocess

import pytest


@pytest.fixture
def vt_home(tmp_path, monkeypatch):
    """An isolated vibetree home directory, exported as VIBETREE_HOME."""
    home = tmp_path / "vt"
    home.mkdir()
    monkeypatch.setenv("VIBETREE_HOME", str(home))
    return home


@pytest.fixture
def user_home(tmp_path, monkeypatch):
    """A fake user home so nothing touches the real ~/.claude."""
    home = tmp_path / "user"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setattr("pathlib.Path.home", classmethod(lambda cls: home))
    return home


@pytest.fixture
def local_repo(tmp_path):
    """Create a local git repo with a main branch and one commit."""
    repo = tmp_path / "myproject"
    repo.mkdir()
    subprocess.run(["git", "init", "-b", "main"], cwd=str(repo), capture_output=True, check=True)
    subprocess.run(["git", "config", "user.email", "test@test.com"], cwd=str(repo), capture_output=True)
    subprocess.run(["git", "config", "user.name", "Test"], cwd=str(repo), capture_output=True)
    (repo / "README.md").write_text("# Project\n")
    subprocess.run(["git", "add", "."], cwd=str(repo), capture_output=True)
    subprocess.run(["git", "commit", "-m", "Initial commit"], cwd=str(repo), capture_output=True, check=True)
    return repo


class FakeUiContext:
    """Records everything the relay sends to the UI."""

    def __init__(self, enabled=True, fail_preference=False, fail_send=False):
        self.enabled = enabled
        self.fail_preference = fail_preference
        self.fail_send = fail_send
        self.events: list[dict] = []
        self.focused: list[str] = []

    async def notifications_enabled(self) -> bool:
        if self.fail_preference:
            raise RuntimeError("window unreachable")
        return self.enabled

    def send_event(self, payload: dict) -> None:
        if self.fail_send:
            raise RuntimeError("renderer destroyed")
        self.events.append(payload)

    def focus_worktree(self, worktree: str) -> None:
        self.focused.append(worktree)


class FakeNotifier:
    """Stand-in for DesktopNotifier that records notifications."""

    def __init__(self, fail=False):
        self.fail = fail
        self.shown: list[tuple[str, str]] = []
        self.callbacks: list = []

    async def show(self, title, body, on_click=None):
        if self.fail:
            raise OSError("notification daemon gone")
        self.shown.append((title, body))
        self.callbacks.append(on_click)


@pytest.fixture
def ui():
    return FakeUiContext()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def make_ui():
    """Factory for UI contexts with specific failure behaviour."""
    return FakeUiContext


@pytest.fixture
def make_notifier():
    return FakeNotifier
