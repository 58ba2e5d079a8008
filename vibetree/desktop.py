"""Desktop notification integration.

Notifications are presented with the platform's command-line notifier:

* Linux: ``notify-send`` (libnotify).  When a click callback is supplied the
  notification carries a ``default`` action and ``notify-send --wait`` is
  run in the background; the callback fires when the user clicks it.
* macOS: ``osascript`` ``display notification``.  This backend cannot report
  clicks, so callbacks are ignored.

Anything else is logged and skipped.  Failures never propagate: a
notification that cannot be shown is not worth failing the caller for.
"""

import asyncio
import contextlib
import logging
import platform
import shutil
import subprocess
from collections.abc import Callable

logger = logging.getLogger(__name__)

APP_NAME = "VibeTree"
_CLICK_ACTION = "default"
_RUN_TIMEOUT = 10


def _applescript_quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


class DesktopNotifier:
    """Send desktop notifications for Claude session events.

    Example:
        >>> notifier = DesktopNotifier(icon="/path/to/icon.png")
        >>> await notifier.show("Claude finished", "proj: Task completed")
    """

    def __init__(self, icon: str | None = None, system: str | None = None):
        self.icon = icon
        self.system = system or platform.system()
        self._pending: set[asyncio.Task] = set()

    def build_command(self, title: str, body: str, clickable: bool = False) -> list[str] | None:
        """Return the notifier command for this platform, or None if unsupported."""
        if self.system == "Linux":
            cmd = ["notify-send", "--app-name", APP_NAME]
            if self.icon:
                cmd += ["--icon", self.icon]
            if clickable:
                cmd += [f"--action={_CLICK_ACTION}=Open", "--wait"]
            return cmd + [title, body]
        if self.system == "Darwin":
            script = (
                f"display notification {_applescript_quote(body)} "
                f"with title {_applescript_quote(title)}"
            )
            return ["osascript", "-e", script]
        return None

    async def show(
        self,
        title: str,
        body: str,
        on_click: Callable[[], None] | None = None,
    ) -> None:
        """Present a notification.  *on_click* runs if the user clicks it."""
        clickable = on_click is not None and self.system == "Linux"
        cmd = self.build_command(title, body, clickable=clickable)
        if cmd is None:
            logger.info("Desktop notifications unsupported on %s: %s", self.system, title)
            return
        if shutil.which(cmd[0]) is None:
            logger.warning("%s not found — skipping desktop notification", cmd[0])
            return

        if not clickable:
            await asyncio.to_thread(self._run, cmd)
            return

        # notify-send --wait blocks until the notification is closed, so it
        # runs as a child of the event loop that aclose() can kill
        task = asyncio.create_task(self._wait_for_click(cmd, on_click))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _run(self, cmd: list[str]) -> str | None:
        """Run *cmd*, returning its stdout, or None on failure."""
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, check=False, timeout=_RUN_TIMEOUT,
            )
        except subprocess.TimeoutExpired:
            logger.error("%s timed out", cmd[0])
            return None
        except OSError as e:
            logger.error("Failed to send notification: %s", e)
            return None
        if result.returncode != 0:
            logger.error("%s failed: %s", cmd[0], result.stderr.strip())
            return None
        return result.stdout

    async def _wait_for_click(self, cmd: list[str], on_click: Callable[[], None]) -> None:
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("Failed to send notification: %s", e)
            return
        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            # Notification still open
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            await proc.wait()
            raise
        if proc.returncode != 0:
            logger.error("%s failed: %s", cmd[0], stderr.decode(errors="replace").strip())
            return
        if stdout.decode(errors="replace").strip() != _CLICK_ACTION:
            return
        try:
            on_click()
        except Exception:
            logger.exception("Notification click handler failed")

    async def aclose(self) -> None:
        """Cancel notifications still waiting for a click and reap their processes."""
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()
