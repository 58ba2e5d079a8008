"""UI context — the relay's view of whatever surface shows sessions.

The relay only ever talks to the UI through :class:`UiContext` and only
holds it weakly; a window can go away between two events and the relay
must cope.  :class:`ConsoleUiContext` is the implementation used by
``vibetree start``: it answers the preference from ``config.yaml`` and
echoes events to the terminal.
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol

import click

from vibetree.config import get_notifications_enabled

logger = logging.getLogger(__name__)


class UiContext(Protocol):
    async def notifications_enabled(self) -> bool:
        """Return the user's desktop-notification preference.  May raise."""
        ...

    def send_event(self, payload: dict) -> None:
        """Deliver an in-app event (``type``, ``worktree``, ``projectName``, ``message``)."""
        ...

    def focus_worktree(self, worktree: str) -> None:
        """Bring the UI to the foreground and select *worktree*."""
        ...


_LABELS = {
    "claude-needs-input": "needs input",
    "claude-finished": "finished",
}


class ConsoleUiContext:
    """Terminal-backed UI context for the foreground relay."""

    def __init__(self, vt_home: Path):
        self.vt_home = vt_home
        self.focused: str | None = None

    async def notifications_enabled(self) -> bool:
        return await asyncio.to_thread(get_notifications_enabled, self.vt_home)

    def send_event(self, payload: dict) -> None:
        label = _LABELS.get(payload.get("type"), payload.get("type"))
        line = f"[{payload.get('projectName')}] Claude {label}"
        if payload.get("message"):
            line += f": {payload['message']}"
        logger.info("Event from %s: %s", payload.get("worktree"), label)
        click.echo(line)

    def focus_worktree(self, worktree: str) -> None:
        self.focused = worktree
        logger.info("Focus requested for %s", worktree)
        click.echo(f"→ {worktree}")
