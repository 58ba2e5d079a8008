"""Tests for vibetree/ui.py — the console UI context."""

import asyncio
import threading

from vibetree.config import set_notifications_enabled
from vibetree.ui import ConsoleUiContext


def test_preference_follows_config(vt_home):
    ui = ConsoleUiContext(vt_home)
    assert asyncio.run(ui.notifications_enabled()) is True
    set_notifications_enabled(vt_home, False)
    assert asyncio.run(ui.notifications_enabled()) is False


def test_send_event_echoes(vt_home, capsys):
    ConsoleUiContext(vt_home).send_event({
        "type": "claude-needs-input",
        "worktree": "/w/proj",
        "projectName": "proj",
        "message": "Approve?",
    })
    assert capsys.readouterr().out == "[proj] Claude needs input: Approve?\n"


def test_send_event_without_message(vt_home, capsys):
    ConsoleUiContext(vt_home).send_event({
        "type": "claude-finished", "worktree": "/w/proj", "projectName": "proj", "message": None,
    })
    assert capsys.readouterr().out == "[proj] Claude finished\n"


def test_focus_worktree(vt_home):
    ui = ConsoleUiContext(vt_home)
    ui.focus_worktree("/w/proj")
    assert ui.focused == "/w/proj"


def test_preference_read_off_the_event_loop_thread(vt_home, monkeypatch):
    threads = []

    def fake_get(home):
        threads.append(threading.current_thread())
        return True

    monkeypatch.setattr("vibetree.ui.get_notifications_enabled", fake_get)
    assert asyncio.run(ConsoleUiContext(vt_home).notifications_enabled()) is True
    assert threads and threads[0] is not threading.main_thread()
