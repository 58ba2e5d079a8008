"""VibeTree CLI entry point using Click.

Commands:
    vibetree start                               — run the notification relay (foreground)
    vibetree hooks install [--project PATH]      — inject Claude hooks (global or per project)
    vibetree project open <path>                 — register a project and inject its hooks
    vibetree project list                        — list opened projects
    vibetree worktree list <project> [--json]    — list a project's worktrees
    vibetree worktree add <project> <branch>     — create a sibling worktree on a new branch
    vibetree config set notifications on|off     — toggle desktop notifications
    vibetree config show                         — print the effective config
"""

import asyncio
import json
from pathlib import Path

import click

from vibetree import __version__
from vibetree.paths import home as _home


def _get_home(ctx: click.Context) -> Path:
    """Resolve vibetree home from context or default."""
    return _home(ctx.obj.get("home_override") if ctx.obj else None)


@click.group()
@click.version_option(version=__version__, prog_name="vibetree")
@click.option(
    "--home", "home_override", type=click.Path(path_type=Path), default=None,
    envvar="VIBETREE_HOME",
    help="Override vibetree home directory (default: ~/.vibetree).",
)
@click.pass_context
def main(ctx: click.Context, home_override: Path | None) -> None:
    """VibeTree — parallel Claude sessions across git worktrees."""
    ctx.ensure_object(dict)
    ctx.obj["home_override"] = home_override


# ──────────────────────────────────────────────────────────────
# vibetree start
# ──────────────────────────────────────────────────────────────

async def _run_relay(vt_home: Path, icon: str | None) -> None:
    from vibetree.config import load
    from vibetree.relay import NotificationRelayServer
    from vibetree.ui import ConsoleUiContext

    cfg = load(vt_home)
    relay = NotificationRelayServer(
        retry_delay=cfg["relay_retry_delay"],
        preference_timeout=cfg["preference_timeout"],
        icon=icon,
    )
    # The relay only holds the context weakly; keep it alive here.
    ui = ConsoleUiContext(vt_home)
    relay.set_ui_context(ui)

    await relay.start()
    click.echo(f"Relay listening on http://{relay.host}:{relay.port}")
    try:
        await relay.wait_closed()
    finally:
        await relay.stop()


@main.command()
@click.option("--icon", default=None, help="Icon file for desktop notifications.")
@click.pass_context
def start(ctx: click.Context, icon: str | None) -> None:
    """Run the notification relay in the foreground until interrupted."""
    from vibetree.config import get_projects
    from vibetree.hooks import ensure_global_hooks, ensure_project_hooks
    from vibetree.logging_setup import configure_logging

    vt_home = _get_home(ctx)
    configure_logging(vt_home, console=True)

    ensure_global_hooks()
    for project in get_projects(vt_home):
        ensure_project_hooks(project)

    try:
        asyncio.run(_run_relay(vt_home, icon))
    except KeyboardInterrupt:
        pass
    click.echo("Relay stopped")


# ──────────────────────────────────────────────────────────────
# vibetree hooks
# ──────────────────────────────────────────────────────────────

@main.group()
def hooks() -> None:
    """Manage Claude hook configuration."""
    pass


@hooks.command("install")
@click.option(
    "--project", "project_path", type=click.Path(file_okay=False, path_type=Path),
    default=None, help="Install into PROJECT/.claude instead of ~/.claude.",
)
def hooks_install(project_path: Path | None) -> None:
    """Point Claude's Notification and Stop hooks at the relay."""
    from vibetree.hooks import ensure_global_hooks, ensure_project_hooks
    from vibetree.paths import global_settings_path, project_settings_path

    if project_path is None:
        ok, target = ensure_global_hooks(), global_settings_path()
    else:
        ok, target = ensure_project_hooks(project_path), project_settings_path(project_path)

    if not ok:
        click.echo(f"Warning: could not update {target} (see log)", err=True)
        return
    click.echo(f"Hooks installed in {target}")


# ──────────────────────────────────────────────────────────────
# vibetree project
# ──────────────────────────────────────────────────────────────

@main.group()
def project() -> None:
    """Manage opened projects."""
    pass


@project.command("open")
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.pass_context
def project_open(ctx: click.Context, path: Path) -> None:
    """Open a project: remember it and inject its Claude hooks."""
    from vibetree.config import add_project
    from vibetree.hooks import ensure_project_hooks

    vt_home = _get_home(ctx)
    added = add_project(vt_home, path)
    ensure_project_hooks(path)
    if added:
        click.echo(f"Opened project {path.resolve()}")
    else:
        click.echo(f"Project {path.resolve()} already open")


@project.command("list")
@click.pass_context
def project_list(ctx: click.Context) -> None:
    """List opened projects."""
    from vibetree.config import get_projects

    projects = get_projects(_get_home(ctx))
    if not projects:
        click.echo("No projects opened.")
        return
    for p in projects:
        click.echo(f"  - {p}")


# ──────────────────────────────────────────────────────────────
# vibetree worktree
# ──────────────────────────────────────────────────────────────

@main.group()
def worktree() -> None:
    """List and create git worktrees."""
    pass


@worktree.command("list")
@click.argument("project_path", type=click.Path(file_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table.")
def worktree_list(project_path: Path, as_json: bool) -> None:
    """List the worktrees of PROJECT_PATH."""
    from vibetree.worktree import WorktreeQueryFailed, list_worktrees

    try:
        records = asyncio.run(list_worktrees(project_path))
    except WorktreeQueryFailed as e:
        raise click.ClickException(str(e).strip())

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in records], indent=2))
        return
    if not records:
        click.echo("No worktrees with a branch found.")
        return
    for r in records:
        branch = r.branch.removeprefix("refs/heads/")
        click.echo(f"{r.head[:8]}  {branch:<24}  {r.path}")


@worktree.command("add")
@click.argument("project_path", type=click.Path(file_okay=False, path_type=Path))
@click.argument("branch_name")
def worktree_add(project_path: Path, branch_name: str) -> None:
    """Create a worktree for a new branch BRANCH_NAME beside PROJECT_PATH."""
    from vibetree.worktree import WorktreeCreateFailed, add_worktree

    try:
        created = asyncio.run(add_worktree(project_path, branch_name))
    except WorktreeCreateFailed as e:
        raise click.ClickException(str(e).strip())
    click.echo(f"Created worktree '{created.branch}' at {created.path}")


# ──────────────────────────────────────────────────────────────
# vibetree config
# ──────────────────────────────────────────────────────────────

@main.group()
def config() -> None:
    """Manage VibeTree configuration."""
    pass


@config.group("set")
def config_set() -> None:
    """Set a configuration value."""
    pass


@config_set.command("notifications")
@click.argument("state", type=click.Choice(["on", "off"], case_sensitive=False))
@click.pass_context
def config_set_notifications(ctx: click.Context, state: str) -> None:
    """Enable or disable desktop notifications."""
    from vibetree.config import set_notifications_enabled

    enabled = state.lower() == "on"
    set_notifications_enabled(_get_home(ctx), enabled)
    click.echo(f"Desktop notifications {'enabled' if enabled else 'disabled'}")


@config.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Print the effective configuration."""
    import yaml

    from vibetree.config import load

    click.echo(yaml.dump(load(_get_home(ctx)), default_flow_style=False, sort_keys=False), nl=False)


if __name__ == "__main__":
    main()
