"""Claude hook injection — point Claude's lifecycle hooks at the relay.

Claude reads hooks from two settings documents::

    ~/.claude/settings.json            # global, written at startup
    <project>/.claude/settings.json    # per project, written when opened

VibeTree owns exactly ``hooks.Notification`` and ``hooks.Stop`` in both and
overwrites them on every run.  Every other top-level key and every other
``hooks.*`` entry is carried over unchanged, so user configuration survives.

Injection is best-effort: a missing or corrupt document is treated as empty,
and any failure is logged and swallowed so a bad settings file never blocks
startup or opening a project.  Documents are rewritten whole via a temp file
and rename; concurrent external edits made during injection may be lost.
"""

import json
import logging
import os
import uuid
from pathlib import Path

from vibetree.paths import global_settings_path, project_settings_path

logger = logging.getLogger(__name__)

RELAY_PORT = 7878
RELAY_URL = f"http://127.0.0.1:{RELAY_PORT}/notification"

STOP_GUARD_VAR = "CLAUDE_STOP_HOOK_ACTIVE"
"""Set by Claude while a Stop hook runs; guards against hook recursion."""

_NEEDS_INPUT_COMMAND = (
    f"curl -X POST {RELAY_URL} -H \"Content-Type: application/json\" "
    "-d '{\"type\": \"claude-needs-input\", \"worktree\": \"'$PWD'\", "
    "\"message\": \"'$CLAUDE_NOTIFICATION'\"}' --silent --fail || true"
)

_FINISHED_COMMAND = (
    f"[ \"${STOP_GUARD_VAR}\" != \"true\" ] && "
    f"curl -X POST {RELAY_URL} -H \"Content-Type: application/json\" "
    "-d '{\"type\": \"claude-finished\", \"worktree\": \"'$PWD'\", "
    "\"message\": \"Task completed\"}' --silent --fail || true"
)

OWNED_HOOKS: dict[str, list] = {
    "Notification": [
        {"hooks": [{"type": "command", "command": _NEEDS_INPUT_COMMAND}]},
    ],
    "Stop": [
        {"hooks": [{"type": "command", "command": _FINISHED_COMMAND}]},
    ],
}


def merge_hooks(settings: dict) -> dict:
    """Return *settings* with the owned hook entries overlaid.

    The input is not modified.  Key order of the existing document is kept
    so repeated merges serialize identically.
    """
    existing = settings.get("hooks")
    hooks = dict(existing) if isinstance(existing, dict) else {}
    hooks.update(json.loads(json.dumps(OWNED_HOOKS)))
    return {**settings, "hooks": hooks}


def _read_settings(path: Path) -> dict:
    """Read a settings document, or ``{}`` if it is missing or unusable."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError):
        logger.warning("Unreadable Claude settings at %s — starting fresh", path)
        return {}
    if not isinstance(data, dict):
        logger.warning("Claude settings at %s is not an object — starting fresh", path)
        return {}
    return data


def _write_settings(path: Path, settings: dict) -> None:
    """Replace *path* with pretty-printed *settings* (temp file + rename)."""
    tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    try:
        tmp_path.write_text(json.dumps(settings, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, path)
    except Exception:
        tmp_path.unlink(missing_ok=True)
        raise


def _inject(path: Path) -> bool:
    """Read-merge-write one settings document.  Returns True on success."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        settings = merge_hooks(_read_settings(path))
        _write_settings(path, settings)
    except Exception:
        logger.exception("Failed to set up Claude hooks in %s", path)
        return False
    logger.info("Claude hooks ensured in %s", path)
    return True


def ensure_global_hooks(user_home: Path | None = None) -> bool:
    """Ensure ``~/.claude/settings.json`` routes Claude hooks to the relay.

    Never raises.  Returns False if the document could not be written.
    """
    return _inject(global_settings_path(user_home))


def ensure_project_hooks(project_path: str | Path) -> bool:
    """Ensure ``<project>/.claude/settings.json`` routes hooks to the relay.

    Never raises.  Returns False if the document could not be written.
    """
    return _inject(project_settings_path(project_path))
