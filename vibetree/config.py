"""App configuration stored in ``~/.vibetree/config.yaml``.

Manages:
- the notification preference answered by the console UI context
- relay tuning (bind retry delay, preference query timeout)
- opened projects
"""

import logging
from pathlib import Path

import yaml

from vibetree.paths import config_path

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY = 1.0
DEFAULT_PREFERENCE_TIMEOUT = 2.0


def _read(vt_home: Path) -> dict:
    """Read config.yaml, returning empty dict if missing or corrupt."""
    cp = config_path(vt_home)
    if not cp.exists():
        return {}
    try:
        data = yaml.safe_load(cp.read_text()) or {}
    except yaml.YAMLError:
        logger.warning("Corrupt %s — using defaults", cp)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring non-mapping config in %s", cp)
        return {}
    return data


def _write(vt_home: Path, data: dict) -> None:
    """Write config.yaml (creates parent dirs if needed)."""
    cp = config_path(vt_home)
    cp.parent.mkdir(parents=True, exist_ok=True)
    cp.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))


def load(vt_home: Path) -> dict:
    """Return the full config with defaults filled in."""
    data = _read(vt_home)
    return {
        "notifications": get_notifications_enabled(vt_home, data),
        "relay_retry_delay": get_retry_delay(vt_home, data),
        "preference_timeout": get_preference_timeout(vt_home, data),
        "projects": list(data.get("projects") or []),
    }


# --- Notifications ---

def get_notifications_enabled(vt_home: Path, data: dict | None = None) -> bool:
    """Return the desktop notification preference (default: enabled)."""
    data = _read(vt_home) if data is None else data
    return bool(data.get("notifications", True))


def set_notifications_enabled(vt_home: Path, enabled: bool) -> None:
    data = _read(vt_home)
    data["notifications"] = enabled
    _write(vt_home, data)


# --- Relay tuning ---

def get_retry_delay(vt_home: Path, data: dict | None = None) -> float:
    """Seconds to wait before rebinding on the next port."""
    data = _read(vt_home) if data is None else data
    return float(data.get("relay_retry_delay", DEFAULT_RETRY_DELAY))


def get_preference_timeout(vt_home: Path, data: dict | None = None) -> float:
    """Upper bound on the UI preference query, in seconds."""
    data = _read(vt_home) if data is None else data
    return float(data.get("preference_timeout", DEFAULT_PREFERENCE_TIMEOUT))


# --- Projects ---

def get_projects(vt_home: Path) -> list[str]:
    """Return opened project paths in the order they were opened."""
    return list(_read(vt_home).get("projects") or [])


def add_project(vt_home: Path, project: str | Path) -> bool:
    """Record an opened project.  Returns False if it was already present."""
    path = str(Path(project).resolve())
    data = _read(vt_home)
    projects = list(data.get("projects") or [])
    if path in projects:
        return False
    projects.append(path)
    data["projects"] = projects
    _write(vt_home, data)
    return True
