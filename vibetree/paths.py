"""Centralized path computations for VibeTree.

App state lives under a single home directory (``~/.vibetree`` by default).
The ``VIBETREE_HOME`` environment variable overrides the default for testing.

Layout::

    ~/.vibetree/
      config.yaml
      vibetree.log

Claude settings documents live outside the home directory::

    ~/.claude/settings.json               # global hooks
    <project>/.claude/settings.json       # per-project hooks
"""

import os
from pathlib import Path

_DEFAULT_HOME = Path.home() / ".vibetree"

CLAUDE_DIR_NAME = ".claude"
SETTINGS_FILE_NAME = "settings.json"


def home(override: Path | None = None) -> Path:
    """Return the VibeTree home directory.

    Resolution order:
    1. *override* argument (used in tests)
    2. ``VIBETREE_HOME`` environment variable
    3. ``~/.vibetree``
    """
    if override is not None:
        return override
    env = os.environ.get("VIBETREE_HOME")
    if env:
        return Path(env)
    return _DEFAULT_HOME


def config_path(vt_home: Path) -> Path:
    """App config: ``<home>/config.yaml``."""
    return vt_home / "config.yaml"


def log_path(vt_home: Path) -> Path:
    """Rotated log file: ``<home>/vibetree.log``."""
    return vt_home / "vibetree.log"


def global_settings_path(user_home: Path | None = None) -> Path:
    """Global Claude settings: ``~/.claude/settings.json``."""
    base = user_home if user_home is not None else Path.home()
    return base / CLAUDE_DIR_NAME / SETTINGS_FILE_NAME


def project_settings_path(project: str | Path) -> Path:
    """Per-project Claude settings: ``<project>/.claude/settings.json``."""
    return Path(project) / CLAUDE_DIR_NAME / SETTINGS_FILE_NAME
