"""Rich renderables for task lists, task details, dependency trees and statistics."""

from __future__ import annotations

from datetime import datetime, timedelta

from rich import box
from rich.markup import escape
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from taskvault import log
from taskvault.graph import DependencyGraph
from taskvault.listing import Column
from taskvault.tasks.model import Duration, Priority, Task

_PRIORITY_STYLE = {
    Priority.BACKLOG: log.GREY,
    Priority.LOW: "#2ecc71",
    Priority.MEDIUM: "#f1c40f",
    Priority.HIGH: "#e74c3c",
}


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'' if n == 1 else 's'}"


def fuzzy_period(delta: timedelta) -> str:
    seconds = abs(int(delta.total_seconds()))
    if seconds >= 86400:
        return _plural(seconds // 86400, "day")
    if seconds >= 3600:
        return _plural(seconds // 3600, "hour")
    if seconds >= 60:
        return _plural(seconds // 60, "minute")
    return _plural(seconds, "second")


def due_text(due: datetime, pending: bool, now: datetime | None = None) -> Text:
    """Due date, with remaining/overdue time coloured by urgency while *pending*."""
    if not pending:
        return Text(str(due))
    remaining = due - (now or datetime.now())
    period = fuzzy_period(remaining)
    if remaining < timedelta(0):
        return Text(f"{due} ({period} overdue)", style="#c0392b")
    if remaining < timedelta(days=1):
        return Text(f"{due} ({period} remaining)", style="#e74c3c")
    if remaining < timedelta(days=5):
        return Text(f"{due} ({period} remaining)", style="#f1c40f")
    return Text(f"{due} ({period} remaining)", style="#2ecc71")


def priority_text(priority: Priority) -> Text:
    return Text(priority.value, style=_PRIORITY_STYLE[priority])


def _status(task: Task) -> str:
    if task.discarded:
        return "discarded"
    return "complete" if task.is_complete else "incomplete"


def task_table(tasks: list[Task], columns: list[Column]) -> Table:
    table = Table(box=box.ROUNDED)
    table.add_column("Id", justify="right", style=log.ID_COLOUR)
    table.add_column("Name")
    for column in columns:
        table.add_column(column.value.capitalize())

    for task in tasks:
        row: list[str | Text] = [str(task.id), Text(task.name)]
        for column in columns:
            if column == Column.TRACKED:
                row.append("" if task.tracked == Duration.zero() else str(task.tracked))
            elif column == Column.DUE:
                row.append(due_text(task.due, not task.is_complete) if task.due else "")
            elif column == Column.TAGS:
                row.append(Text(", ".join(sorted(task.tags))))
            elif column == Column.PRIORITY:
                row.append(priority_text(task.priority))
            elif column == Column.STATUS:
                row.append(_status(task))
            elif column == Column.CREATED:
                row.append(str(task.created))
        table.add_row(*row)
    return table


def dependency_tree(root: Task, tasks: dict[int, Task], graph: DependencyGraph) -> Tree:
    """Tree of everything *root* depends on; shared dependencies appear under each parent."""

    def label(task: Task) -> str:
        name = log.greyed_out(task.name) if task.is_complete else log.task_name(task.name)
        return f"{name} (ID: {log.task_id(task.id)})"

    tree = Tree(label(root))

    def grow(branch: Tree, node: int) -> None:
        for dep in sorted(graph.dependencies(node)):
            grow(branch.add(label(tasks[dep])), dep)

    grow(tree, root.id)
    return tree


def show_task(task: Task, tasks: dict[int, Task], graph: DependencyGraph) -> None:
    out = log.console
    mark = "X" if task.is_complete else " "
    out.print(f"\\[{mark}] {log.task_id(task.id)} {log.task_name(task.name)}")
    out.print("-" * (5 + len(task.name) + len(str(task.id))))

    out.print(Text.assemble("Priority:     ", priority_text(task.priority)))
    out.print(f"Tags:         \\[{escape(', '.join(sorted(task.tags)))}]")
    out.print(f"Created:      {task.created}")
    if task.due:
        out.print(Text.assemble("Due:          ", due_text(task.due, not task.is_complete)))
    if task.completed:
        out.print(f"Completed:    {task.completed}")
    if task.discarded:
        out.print("Discarded:    yes")

    if task.info:
        out.print("Info:")
        for line in task.info.rstrip("\n").split("\n"):
            out.print(f"    {line}", markup=False)

    if task.time_entries:
        out.print(f"Time Entries (totaling {task.tracked}):")
        for entry in sorted(task.time_entries, key=lambda e: e.logged_date):
            out.print(f"    {entry.duration} [{entry.logged_date}] {entry.message or ''}", markup=False)

    if task.dependencies:
        out.print("Dependencies:")
        out.print(dependency_tree(task, tasks, graph))


def time_per_tag_table(totals: dict[str, Duration]) -> Table:
    table = Table(box=box.ROUNDED)
    table.add_column("Tag")
    table.add_column("Time", justify="right")
    for tag, duration in totals.items():
        table.add_row(Text(tag), str(duration))
    return table


def completed_table(tasks: list[Task]) -> Table:
    table = Table(box=box.ROUNDED)
    table.add_column("Id", justify="right", style=log.ID_COLOUR)
    table.add_column("Name")
    table.add_column("Completed")
    for task in tasks:
        table.add_row(str(task.id), Text(task.name), str(task.completed))
    return table
