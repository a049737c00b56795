"""taskvault CLI.

Installed as ``taskvault`` console_script via pipx / pip.
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Any

import click
from rich.markup import escape

from taskvault import __version__
from taskvault import log as glog
from taskvault import listing, render, vault, vcs
from taskvault.config import Config
from taskvault.errors import TaskVaultError
from taskvault.listing import Column, ListOptions, Order, OrderBy
from taskvault.state import VaultState
from taskvault.tasks.io import decode, encode
from taskvault.tasks.model import Priority
from taskvault.tasks.validate import validate_and_report

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

_DATE = click.DateTime(formats=["%Y-%m-%d"])
_DATETIME = click.DateTime(formats=["%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d"])


# ── Error / session helpers ──────────────────────────────────────────


@contextmanager
def _errors() -> Iterator[None]:
    """Report taskvault errors and exit non-zero instead of dumping a traceback."""
    try:
        yield
    except TaskVaultError as e:
        glog.error(escape(str(e)))
        sys.exit(1)


@contextmanager
def _session(*, check: bool = True, save: bool = True) -> Iterator[tuple[Config, VaultState]]:
    """Load config and the current vault; save the vault if the block succeeds."""
    with _errors():
        config = Config.load()
        _, state = vault.open_current(config, check=check)
        yield config, state
        if save:
            state.save()


def _label(state: VaultState, task_id: int) -> str:
    return f"{glog.task_name(state.task(task_id).name)} (ID: {glog.task_id(task_id)})"


# ── Main group ───────────────────────────────────────────────────────


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="taskvault")
def main(verbose: bool) -> None:
    """taskvault — tasks in local, file-backed vaults.

    Tasks can be referred to by ID or by name; purely numeric arguments are
    always read as IDs.

    \b
    EXAMPLES:
      taskvault vault new personal ~/vaults/personal
      taskvault new -n "buy milk" -t shopping
      taskvault new -n "cook dinner" -d "buy milk"
      taskvault list -c due -c tags
      taskvault verify --repair
    """
    glog.set_verbose(verbose)


# ── Task commands ────────────────────────────────────────────────────


@main.command()
@click.option("-n", "--name", required=True, help="Task name (must not be purely numeric)")
@click.option("-i", "--info", default=None, help="Free-form description")
@click.option("-t", "--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.option("-d", "--dependency", "dependencies", multiple=True, help="ID or name of a task this depends on (repeatable)")
@click.option("-p", "--priority", type=click.Choice([p.value for p in Priority]), default=None)
@click.option("--due", type=_DATETIME, default=None, help="Due date, yyyy-mm-ddThh:mm:ss")
def new(
    name: str,
    info: str | None,
    tags: tuple[str, ...],
    dependencies: tuple[str, ...],
    priority: str | None,
    due: datetime | None,
) -> None:
    """Create a new task."""
    with _session() as (_, state):
        dep_ids = [state.resolve(d) for d in dependencies]
        result = state.create_task(
            name,
            dep_ids,
            info=info,
            tags=set(tags),
            priority=Priority(priority) if priority else Priority.LOW,
            due=due,
        )
        for dropped in result.dropped:
            glog.warn(f"Dependency dropped: {escape(str(dropped))}")
    glog.success(f"Created task {_label(state, result.task.id)}")


@main.command()
@click.argument("id_or_name")
def view(id_or_name: str) -> None:
    """Display a task in detail."""
    with _session(save=False) as (_, state):
        task = state.task(state.resolve(id_or_name))
        render.show_task(task, {t.id: t for t in state.tasks()}, state.graph)


@main.command()
@click.argument("id_or_name")
@click.option("-i", "--info", "info_only", is_flag=True, help="Edit only the info text")
def edit(id_or_name: str, info_only: bool) -> None:
    """Edit a task record directly in your editor."""
    with _session() as (config, state):
        task_id = state.resolve(id_or_name)
        task = state.task(task_id)

        if info_only:
            text = click.edit(task.info or "", editor=config.editor, extension=".md")
            if text is None:
                glog.warn("No changes made")
                return
            state.apply_edit(task_id, replace(task, info=text if text.strip() else None))
        else:
            text = click.edit(encode(task), editor=config.editor, extension=".yaml")
            if text is None:
                glog.warn("No changes made")
                return
            edited = decode(text, Path(f"{task_id}.yaml (edited)"))
            state.apply_edit(task_id, edited)
    glog.success(f"Updated task {_label(state, task_id)}")


@main.command()
@click.argument("id_or_name")
@click.argument("new_name")
def rename(id_or_name: str, new_name: str) -> None:
    """Rename a task."""
    with _session() as (_, state):
        task_id = state.resolve(id_or_name)
        state.rename_task(task_id, new_name)
    glog.success(f"Renamed task {glog.task_id(task_id)} to {glog.task_name(new_name)}")


@main.command()
@click.argument("id_or_name")
@click.option("--cascade", is_flag=True, help="Also remove the dependencies other tasks have on it")
def delete(id_or_name: str, cascade: bool) -> None:
    """Delete a task."""
    with _session() as (_, state):
        task_id = state.resolve(id_or_name)
        name = state.task(task_id).name
        released = state.delete_task(task_id, cascade=cascade)
    if released:
        glog.warn(f"Removed dependency on it from tasks {sorted(released)}")
    glog.success(f"Deleted task {glog.task_name(name)} (ID: {glog.task_id(task_id)})")


@main.command()
@click.argument("id_or_name")
def complete(id_or_name: str) -> None:
    """Mark a task as complete."""
    with _session() as (_, state):
        task_id = state.resolve(id_or_name)
        state.complete_task(task_id)
    glog.success(f"Marked task {_label(state, task_id)} as complete")


@main.command()
@click.argument("id_or_name")
def discard(id_or_name: str) -> None:
    """Discard a task without deleting its record."""
    with _session() as (_, state):
        task_id = state.resolve(id_or_name)
        state.discard_task(task_id)
    glog.success(f"Discarded task {_label(state, task_id)}")


@main.command()
@click.argument("task")
@click.argument("dependency")
def depend(task: str, dependency: str) -> None:
    """Make TASK depend on DEPENDENCY."""
    with _session() as (_, state):
        source, target = state.resolve(task), state.resolve(dependency)
        state.add_dependency(source, target)
    glog.success(f"Task {_label(state, source)} now depends on {_label(state, target)}")


@main.command()
@click.argument("task")
@click.argument("dependency")
def undepend(task: str, dependency: str) -> None:
    """Remove TASK's dependency on DEPENDENCY."""
    with _session() as (_, state):
        source, target = state.resolve(task), state.resolve(dependency)
        removed = state.remove_dependency(source, target)
    if removed:
        glog.success(f"Task {glog.task_id(source)} no longer depends on {glog.task_id(target)}")
    else:
        glog.warn(f"Task {glog.task_id(source)} did not depend on {glog.task_id(target)}")


@main.command()
@click.argument("id_or_name")
@click.option("-H", "--hours", type=click.IntRange(min=0), default=0)
@click.option("-M", "--minutes", type=click.IntRange(min=0), default=0)
@click.option("-d", "--date", "logged", type=_DATE, default=None, help="Date of the entry [default: today]")
@click.option("-m", "--message", default=None, help="Message to identify the entry")
def track(id_or_name: str, hours: int, minutes: int, logged: datetime | None, message: str | None) -> None:
    """Track time against a task."""
    with _session() as (_, state):
        task_id = state.resolve(id_or_name)
        entry = state.track_time(task_id, hours, minutes, logged.date() if logged else None, message)
    glog.success(f"Tracked {entry.duration} against task {_label(state, task_id)}")


# ── Listing ──────────────────────────────────────────────────────────


def _list_options(func: Callable[..., Any]) -> Callable[..., Any]:
    decorators = [
        click.option("-c", "--column", "columns", multiple=True, type=click.Choice([c.value for c in Column]), help="Extra column (repeatable)"),
        click.option("--order-by", type=click.Choice([o.value for o in OrderBy]), default=None),
        click.option("--order", type=click.Choice([o.value for o in Order]), default=None),
        click.option("-t", "--tag", "tags", multiple=True, help="Only tasks with one of these tags"),
        click.option("-e", "--exclude-tag", "exclude_tags", multiple=True, help="Hide tasks with these tags"),
        click.option("-p", "--priority", "priorities", multiple=True, type=click.Choice([p.value for p in Priority])),
        click.option("--due-before", type=_DATE, default=None),
        click.option("--due-after", type=_DATE, default=None),
        click.option("--created-before", type=_DATE, default=None),
        click.option("--created-after", type=_DATE, default=None),
        click.option("--include-completed", is_flag=True),
        click.option("--include-discarded", is_flag=True),
        click.option("--no-dependencies", "--bottom-level", "no_dependencies", is_flag=True, help="Only tasks whose dependencies are all complete"),
        click.option("--no-dependents", "--top-level", "no_dependents", is_flag=True, help="Only tasks nothing depends on"),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def _build_list_options(params: dict[str, Any]) -> ListOptions:
    def as_date(value: datetime | None):
        return value.date() if value else None

    return ListOptions(
        columns=[Column(c) for c in params["columns"]],
        order_by=OrderBy(params["order_by"]) if params["order_by"] else None,
        order=Order(params["order"]) if params["order"] else None,
        tags=list(params["tags"]),
        exclude_tags=list(params["exclude_tags"]),
        priorities=[Priority(p) for p in params["priorities"]],
        due_before=as_date(params["due_before"]),
        due_after=as_date(params["due_after"]),
        created_before=as_date(params["created_before"]),
        created_after=as_date(params["created_after"]),
        include_completed=params["include_completed"],
        include_discarded=params["include_discarded"],
        no_dependencies=params["no_dependencies"],
        no_dependents=params["no_dependents"],
    )


@main.command(name="list")
@click.option("--profile", default=None, help="Start from a saved list profile")
@_list_options
def list_tasks(profile: str | None, **params: Any) -> None:
    """List tasks according to the given columns, ordering and filters."""
    with _session(save=False) as (config, state):
        options = _build_list_options(params)
        if profile:
            options = ListOptions.combine(ListOptions.from_dict(config.profile(profile)), options)
        tasks = listing.select(state.tasks(), state.graph, options)
        glog.console.print(render.task_table(tasks, options.columns))


@main.group()
def stats() -> None:
    """Statistics about the current vault."""


@stats.command()
@click.option("-d", "--days", type=click.IntRange(min=1), default=7, show_default=True)
def tracked(days: int) -> None:
    """Time tracked per tag recently."""
    with _session(save=False) as (_, state):
        totals = listing.time_per_tag(state.tasks(), days)
        glog.console.print(render.time_per_tag_table(totals))


@stats.command()
@click.option("-d", "--days", type=click.IntRange(min=1), default=7, show_default=True)
def completed(days: int) -> None:
    """Recently completed tasks."""
    with _session(save=False) as (_, state):
        done = listing.recently_completed(state.tasks(), days)
        glog.console.print(render.completed_table(done))


# ── Consistency ──────────────────────────────────────────────────────


@main.command()
@click.option("--repair", is_flag=True, help="Rebuild the name index and dependency graph from the task records")
def verify(repair: bool) -> None:
    """Check that the vault state matches its task records."""
    with _session(check=False, save=repair) as (_, state):
        ok = validate_and_report(state.verify(repair=repair))
    if not ok:
        sys.exit(1)


# ── Version control ──────────────────────────────────────────────────

_PASSTHROUGH = dict(ignore_unknown_options=True, allow_interspersed_args=False, help_option_names=[])


def _current_vault_dir() -> Path:
    with _errors():
        return Config.load().current_vault()[1]


@main.command(context_settings=_PASSTHROUGH)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def git(ctx: click.Context, args: tuple[str, ...]) -> None:
    """Run git commands at the root of the vault."""
    path = _current_vault_dir()
    with _errors():
        ctx.exit(vcs.git(list(args), path))


@main.command(context_settings=_PASSTHROUGH)
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def svn(ctx: click.Context, args: tuple[str, ...]) -> None:
    """Run Subversion commands at the root of the vault."""
    path = _current_vault_dir()
    with _errors():
        ctx.exit(vcs.svn(list(args), path))


@main.command(name="gitignore")
def gitignore() -> None:
    """Add the recommended .gitignore file to the vault."""
    path = vcs.create_gitignore(_current_vault_dir())
    glog.success(f"Wrote {path}")


@main.command(name="svn:ignore")
@click.pass_context
def svn_ignore(ctx: click.Context) -> None:
    """Set the recommended svn:ignore property on the vault root."""
    path = _current_vault_dir()
    with _errors():
        ctx.exit(vcs.set_svn_ignore(path))


# ── Vaults ───────────────────────────────────────────────────────────


@main.command()
@click.argument("name")
def switch(name: str) -> None:
    """Switch to the vault NAME."""
    with _errors():
        config = Config.load()
        vault.switch(name, config)
        config.save()
    glog.success(f"Switched to vault {glog.vault(name)}")


@main.group(name="vault")
def vault_group() -> None:
    """Create, connect and manage vaults."""


@vault_group.command(name="new")
@click.argument("name")
@click.argument("path", type=click.Path(path_type=Path))
def vault_new(name: str, path: Path) -> None:
    """Create a new vault NAME at PATH."""
    with _errors():
        config = Config.load()
        vault.new(name, path, config)
        config.save()
    glog.success(f"Created vault {glog.vault(name)}")


@vault_group.command(name="connect")
@click.argument("name")
@click.argument("path", type=click.Path(path_type=Path))
def vault_connect(name: str, path: Path) -> None:
    """Connect an existing vault at PATH as NAME."""
    with _errors():
        config = Config.load()
        vault.connect(name, path, config)
        config.save()
    glog.success(f"Connected vault {glog.vault(name)}")


@vault_group.command(name="disconnect")
@click.argument("name")
def vault_disconnect(name: str) -> None:
    """Forget vault NAME without touching its files."""
    with _errors():
        config = Config.load()
        vault.disconnect(name, config)
        config.save()
    glog.success(f"Disconnected vault {glog.vault(name)}")


@vault_group.command(name="delete")
@click.argument("name")
@click.option("-y", "--yes", is_flag=True, help="Do not ask for confirmation")
def vault_delete(name: str, yes: bool) -> None:
    """Delete vault NAME along with all of its data."""
    if not yes:
        click.confirm(f"Delete vault {name!r} and all of its tasks?", abort=True)
    with _errors():
        config = Config.load()
        vault.delete(name, config)
        config.save()
    glog.success(f"Deleted vault {glog.vault(name)}")


@vault_group.command(name="rename")
@click.argument("old_name")
@click.argument("new_name")
def vault_rename(old_name: str, new_name: str) -> None:
    """Rename a vault."""
    with _errors():
        config = Config.load()
        vault.rename(old_name, new_name, config)
        config.save()
    glog.success(f"Renamed vault {glog.vault(old_name)} to {glog.vault(new_name)}")


@vault_group.command(name="list")
def vault_list() -> None:
    """List all configured vaults; the current one is starred."""
    with _errors():
        config = Config.load()
    if not config.vaults:
        glog.error(
            f"No vaults currently set up, try running: {glog.command('taskvault vault new <NAME> <PATH>')}"
        )
        sys.exit(1)
    width = max(len(name) for name, _ in config.vaults)
    for i, (name, path) in enumerate(config.vaults):
        marker = "*" if i == 0 else " "
        padding = " " * (width - len(name) + 1)
        glog.console.print(f"{marker} {glog.vault(name)}{padding}{escape(str(path))}")


# ── Configuration ────────────────────────────────────────────────────


@main.group(name="config")
def config_group() -> None:
    """Change global configuration."""


@config_group.command()
@click.argument("command", required=False)
def editor(command: str | None) -> None:
    """Show or set the command used to launch your text editor."""
    with _errors():
        config = Config.load()
        if command is None:
            glog.console.print(f"Current editor command: {glog.command(config.editor)}")
            return
        config.editor = command
        config.save()
    glog.success(f"Updated editor command to {glog.command(command)}")


@config_group.command()
@click.argument("name")
@_list_options
def profile(name: str, **params: Any) -> None:
    """Save the given list options as profile NAME (use with list --profile)."""
    with _errors():
        config = Config.load()
        config.set_profile(name, _build_list_options(params).to_dict())
        config.save()
    glog.success(f"Saved list profile {escape(name)}")


if __name__ == "__main__":
    main()
