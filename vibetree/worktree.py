"""Git worktree listing and creation.

Every worktree of a project hosts its own Claude session.  The UI asks for
the current worktree set on demand and never caches it here; each call
re-runs ``git worktree list --porcelain`` and parses the result.

New worktrees are created as siblings of the project directory::

    /home/u/proj              (project)
    /home/u/proj-feature-x    (worktree for branch ``feature-x``)

Both operations are coroutines that run ``git`` in a worker thread.  Calls
are independent of one another; two concurrent adds race at the filesystem
level exactly as two concurrent ``git worktree add`` invocations would.
"""

import asyncio
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_WORKTREE_MARKER = "worktree "
_HEAD_MARKER = "HEAD "
_BRANCH_MARKER = "branch "


class WorktreeQueryFailed(RuntimeError):
    """``git worktree list`` exited non-zero (message is git's stderr)."""


class WorktreeCreateFailed(RuntimeError):
    """``git worktree add`` exited non-zero (message is git's stderr)."""


@dataclass(frozen=True)
class WorktreeRecord:
    path: str
    head: str
    branch: str

    def to_dict(self) -> dict:
        return {"path": self.path, "head": self.head, "branch": self.branch}


@dataclass(frozen=True)
class CreatedWorktree:
    path: str
    branch: str

    def to_dict(self) -> dict:
        return {"path": self.path, "branch": self.branch}


# ---------------------------------------------------------------------------
# Porcelain parsing
# ---------------------------------------------------------------------------

def parse_worktrees(output: str) -> list[WorktreeRecord]:
    """Parse ``git worktree list --porcelain`` output.

    Records are returned in the order git reported them.  A record is only
    emitted once it has a path, a HEAD and a branch; bare and detached
    entries (no ``branch`` line) are dropped.  Unknown lines are ignored.
    """
    worktrees: list[WorktreeRecord] = []
    current: dict[str, str] = {}

    def _flush() -> None:
        if current.get("path") and current.get("head") and current.get("branch"):
            worktrees.append(
                WorktreeRecord(current["path"], current["head"], current["branch"])
            )

    for line in output.strip().splitlines():
        if line.startswith(_WORKTREE_MARKER):
            _flush()
            current = {"path": line[len(_WORKTREE_MARKER):]}
        elif line.startswith(_HEAD_MARKER):
            current["head"] = line[len(_HEAD_MARKER):]
        elif line.startswith(_BRANCH_MARKER):
            current["branch"] = line[len(_BRANCH_MARKER):]

    _flush()
    return worktrees


def sibling_worktree_path(project_path: str | Path, branch_name: str) -> str:
    """Return ``<parent>/<project basename>-<branch>`` for a new worktree.

    Examples:
        /home/u/proj, feature-x  -> /home/u/proj-feature-x
        /home/u/proj/, fix       -> /home/u/proj-fix
    """
    project = os.path.normpath(str(project_path))
    name = f"{os.path.basename(project)}-{branch_name}"
    return os.path.normpath(os.path.join(project, "..", name))


# ---------------------------------------------------------------------------
# git subprocess bridge
# ---------------------------------------------------------------------------

def _run_git(args: list[str], cwd: str | Path) -> subprocess.CompletedProcess:
    """Run ``git`` with *args* in *cwd*, capturing stdout and stderr."""
    return subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        errors="replace",
        check=False,
    )


async def list_worktrees(project_path: str | Path) -> list[WorktreeRecord]:
    """List the worktrees of the repository at *project_path*.

    Raises:
        WorktreeQueryFailed: git exited non-zero or could not be started.
    """
    try:
        result = await asyncio.to_thread(
            _run_git, ["worktree", "list", "--porcelain"], project_path,
        )
    except OSError as exc:
        raise WorktreeQueryFailed(str(exc)) from exc

    if result.returncode != 0:
        logger.warning(
            "git worktree list failed in %s (exit %d)", project_path, result.returncode,
        )
        raise WorktreeQueryFailed(result.stderr or "Failed to list worktrees")
    return parse_worktrees(result.stdout)


async def add_worktree(project_path: str | Path, branch_name: str) -> CreatedWorktree:
    """Create a worktree on a new branch *branch_name* next to the project.

    No rollback is attempted when git fails half way; callers re-list to
    reconcile.

    Raises:
        WorktreeCreateFailed: git exited non-zero or could not be started.
    """
    worktree_path = sibling_worktree_path(project_path, branch_name)
    try:
        result = await asyncio.to_thread(
            _run_git,
            ["worktree", "add", "-b", branch_name, worktree_path],
            project_path,
        )
    except OSError as exc:
        raise WorktreeCreateFailed(str(exc)) from exc

    if result.returncode != 0:
        logger.warning(
            "git worktree add %s failed in %s (exit %d)",
            branch_name, project_path, result.returncode,
        )
        raise WorktreeCreateFailed(result.stderr or "Failed to create worktree")

    logger.info("Created worktree %s on branch '%s'", worktree_path, branch_name)
    return CreatedWorktree(path=worktree_path, branch=branch_name)
