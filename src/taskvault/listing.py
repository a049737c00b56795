"""Task listing filters and ordering, list profiles, and vault statistics."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field, fields
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from taskvault.graph import DependencyGraph
from taskvault.tasks.model import Duration, Priority, Task


class Column(str, Enum):
    DUE = "due"
    PRIORITY = "priority"
    CREATED = "created"
    TRACKED = "tracked"
    TAGS = "tags"
    STATUS = "status"


class OrderBy(str, Enum):
    ID = "id"
    NAME = "name"
    DUE = "due"
    PRIORITY = "priority"
    CREATED = "created"
    TRACKED = "tracked"


class Order(str, Enum):
    ASC = "asc"
    DESC = "desc"


_DATE_FIELDS = ("due_before", "due_after", "created_before", "created_after")


@dataclass
class ListOptions:
    columns: list[Column] = field(default_factory=list)
    order_by: OrderBy | None = None
    order: Order | None = None
    tags: list[str] = field(default_factory=list)
    exclude_tags: list[str] = field(default_factory=list)
    priorities: list[Priority] = field(default_factory=list)
    due_before: date | None = None
    due_after: date | None = None
    created_before: date | None = None
    created_after: date | None = None
    include_completed: bool = False
    include_discarded: bool = False
    # Only tasks whose dependencies (direct and nested) are all complete.
    no_dependencies: bool = False
    # Only tasks nothing else depends on.
    no_dependents: bool = False

    @classmethod
    def combine(cls, profile: ListOptions, additional: ListOptions) -> ListOptions:
        """Merge a saved profile with options given on the command line.

        Lists are concatenated, scalar options given on the command line win
        over the profile's, and flags are or-ed.
        """

        def pick(a: Any, b: Any) -> Any:
            return b if b is not None else a

        return cls(
            columns=_dedupe([*profile.columns, *additional.columns]),
            order_by=pick(profile.order_by, additional.order_by),
            order=pick(profile.order, additional.order),
            tags=[*profile.tags, *additional.tags],
            exclude_tags=[*profile.exclude_tags, *additional.exclude_tags],
            priorities=[*profile.priorities, *additional.priorities],
            due_before=pick(profile.due_before, additional.due_before),
            due_after=pick(profile.due_after, additional.due_after),
            created_before=pick(profile.created_before, additional.created_before),
            created_after=pick(profile.created_after, additional.created_after),
            include_completed=profile.include_completed or additional.include_completed,
            include_discarded=profile.include_discarded or additional.include_discarded,
            no_dependencies=profile.no_dependencies or additional.no_dependencies,
            no_dependents=profile.no_dependents or additional.no_dependents,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["columns"] = [c.value for c in self.columns]
        data["priorities"] = [p.value for p in self.priorities]
        data["order_by"] = self.order_by.value if self.order_by else None
        data["order"] = self.order.value if self.order else None
        for name in _DATE_FIELDS:
            value = getattr(self, name)
            data[name] = value.isoformat() if value else None
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ListOptions:
        known = {f.name for f in fields(cls)}
        data = {k: v for k, v in data.items() if k in known}
        data["columns"] = [Column(c) for c in data.get("columns") or []]
        data["priorities"] = [Priority(p) for p in data.get("priorities") or []]
        if data.get("order_by"):
            data["order_by"] = OrderBy(data["order_by"])
        if data.get("order"):
            data["order"] = Order(data["order"])
        for name in _DATE_FIELDS:
            value = data.get(name)
            if isinstance(value, str):
                data[name] = date.fromisoformat(value)
        return cls(**data)


def _dedupe(values: list[Column]) -> list[Column]:
    seen: set[Column] = set()
    ordered: list[Column] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


# ── Filtering / ordering ─────────────────────────────────────────────


def _due_date(task: Task) -> date | None:
    return task.due.date() if task.due else None


def _sort_key(order_by: OrderBy):
    if order_by == OrderBy.NAME:
        return lambda t: t.name
    if order_by == OrderBy.DUE:
        # Tasks without a due date sort as if due at infinity.
        return lambda t: (t.due is None, t.due or datetime.min)
    if order_by == OrderBy.PRIORITY:
        return lambda t: t.priority.rank
    if order_by == OrderBy.CREATED:
        return lambda t: t.created
    if order_by == OrderBy.TRACKED:
        return lambda t: t.tracked
    return lambda t: t.id


def select(tasks: Iterable[Task], graph: DependencyGraph, options: ListOptions) -> list[Task]:
    """Apply the filters and ordering of *options* to *tasks*."""
    tasks = list(tasks)
    completed_ids = {t.id for t in tasks if t.is_complete}
    with_dependents = graph.tasks_with_dependents() if options.no_dependents else set()

    def keep(t: Task) -> bool:
        if options.created_before and t.created.date() > options.created_before:
            return False
        if options.created_after and t.created.date() < options.created_after:
            return False
        # A missing due date counts as due at infinity.
        due = _due_date(t)
        if options.due_before and (due is None or due > options.due_before):
            return False
        if options.due_after and due is not None and due < options.due_after:
            return False
        if not options.include_completed and t.is_complete:
            return False
        if not options.include_discarded and t.discarded:
            return False
        if options.tags and not set(options.tags) & t.tags:
            return False
        if options.exclude_tags and set(options.exclude_tags) & t.tags:
            return False
        if options.priorities and t.priority not in options.priorities:
            return False
        if options.no_dependencies and not graph.nested_dependencies(t.id) <= completed_ids:
            return False
        if options.no_dependents and t.id in with_dependents:
            return False
        return True

    selected = [t for t in tasks if keep(t)]
    selected.sort(
        key=_sort_key(options.order_by or OrderBy.ID),
        reverse=(options.order or Order.ASC) == Order.DESC,
    )
    return selected


# ── Statistics ───────────────────────────────────────────────────────


def time_per_tag(tasks: Iterable[Task], days: int, today: date | None = None) -> dict[str, Duration]:
    """Time tracked in the last *days* days, split evenly across each task's tags."""
    today = today or date.today()
    window = timedelta(days=days)
    totals: dict[str, Duration] = {}

    for task in tasks:
        if task.discarded or not task.tags:
            continue
        recent = Duration.zero()
        for entry in task.time_entries:
            if today - entry.logged_date < window:
                recent = recent + entry.duration
        share = recent / len(task.tags)
        for tag in task.tags:
            totals[tag] = totals.get(tag, Duration.zero()) + share

    return dict(sorted(totals.items()))


def recently_completed(tasks: Iterable[Task], days: int, now: datetime | None = None) -> list[Task]:
    """Tasks completed within the last *days* days, most recent first."""
    now = now or datetime.now()
    cutoff = now - timedelta(days=days)
    done = [t for t in tasks if t.completed is not None and t.completed >= cutoff]
    done.sort(key=lambda t: t.completed, reverse=True)
    return done
