"""Tests for taskvault.listing — filters, ordering, profiles and statistics."""

from __future__ import annotations

from datetime import date, datetime

from taskvault.graph import DependencyGraph
from taskvault.listing import (
    Column,
    ListOptions,
    Order,
    OrderBy,
    recently_completed,
    select,
    time_per_tag,
)
from taskvault.tasks.model import Duration, Priority, TimeEntry


def _ids(tasks) -> list[int]:
    return [t.id for t in tasks]


class TestSelect:
    def test_default_hides_completed_and_discarded(self, make_task):
        tasks = [
            make_task(1),
            make_task(2, completed=datetime(2024, 1, 1)),
            make_task(3, discarded=True),
        ]
        graph = DependencyGraph.from_tasks(tasks)
        assert _ids(select(tasks, graph, ListOptions())) == [1]
        opts = ListOptions(include_completed=True, include_discarded=True)
        assert _ids(select(tasks, graph, opts)) == [1, 2, 3]

    def test_tags(self, make_task):
        tasks = [make_task(1, tags={"home"}), make_task(2, tags={"work"}), make_task(3)]
        graph = DependencyGraph.from_tasks(tasks)
        assert _ids(select(tasks, graph, ListOptions(tags=["home", "work"]))) == [1, 2]
        assert _ids(select(tasks, graph, ListOptions(exclude_tags=["work"]))) == [1, 3]

    def test_priorities(self, make_task):
        tasks = [make_task(1, priority=Priority.HIGH), make_task(2)]
        graph = DependencyGraph.from_tasks(tasks)
        assert _ids(select(tasks, graph, ListOptions(priorities=[Priority.HIGH]))) == [1]

    def test_missing_due_counts_as_infinity(self, make_task):
        tasks = [make_task(1, due=datetime(2024, 1, 10)), make_task(2)]
        graph = DependencyGraph.from_tasks(tasks)
        assert _ids(select(tasks, graph, ListOptions(due_before=date(2024, 2, 1)))) == [1]
        assert _ids(select(tasks, graph, ListOptions(due_after=date(2024, 2, 1)))) == [2]

    def test_no_dependencies_means_all_nested_complete(self, make_task):
        tasks = [
            make_task(1, dependencies={2}),
            make_task(2, dependencies={3}, completed=datetime(2024, 1, 1)),
            make_task(3),
            make_task(4),
        ]
        graph = DependencyGraph.from_tasks(tasks)
        # 1 is blocked through 3 even though its direct dependency is done.
        assert _ids(select(tasks, graph, ListOptions(no_dependencies=True))) == [3, 4]

    def test_no_dependents(self, make_task):
        tasks = [make_task(1, dependencies={2}), make_task(2)]
        graph = DependencyGraph.from_tasks(tasks)
        assert _ids(select(tasks, graph, ListOptions(no_dependents=True))) == [1]

    def test_order_by_due_puts_undated_last(self, make_task):
        tasks = [make_task(1), make_task(2, due=datetime(2024, 3, 1)), make_task(3, due=datetime(2024, 1, 1))]
        graph = DependencyGraph.from_tasks(tasks)
        opts = ListOptions(order_by=OrderBy.DUE)
        assert _ids(select(tasks, graph, opts)) == [3, 2, 1]
        opts.order = Order.DESC
        assert _ids(select(tasks, graph, opts)) == [1, 2, 3]

    def test_order_by_priority(self, make_task):
        tasks = [make_task(1, priority=Priority.LOW), make_task(2, priority=Priority.HIGH)]
        graph = DependencyGraph.from_tasks(tasks)
        opts = ListOptions(order_by=OrderBy.PRIORITY, order=Order.DESC)
        assert _ids(select(tasks, graph, opts)) == [2, 1]


class TestProfiles:
    def test_combine(self):
        profile = ListOptions(columns=[Column.DUE], tags=["home"], order_by=OrderBy.NAME)
        extra = ListOptions(columns=[Column.DUE, Column.TAGS], tags=["work"], include_completed=True)
        merged = ListOptions.combine(profile, extra)
        assert merged.columns == [Column.DUE, Column.TAGS]
        assert merged.tags == ["home", "work"]
        assert merged.order_by == OrderBy.NAME
        assert merged.include_completed

    def test_command_line_scalar_wins(self):
        merged = ListOptions.combine(ListOptions(order=Order.ASC), ListOptions(order=Order.DESC))
        assert merged.order == Order.DESC

    def test_dict_round_trip(self):
        opts = ListOptions(
            columns=[Column.PRIORITY],
            priorities=[Priority.HIGH],
            due_before=date(2024, 5, 1),
            order_by=OrderBy.DUE,
        )
        data = opts.to_dict()
        assert data["due_before"] == "2024-05-01"
        assert ListOptions.from_dict(data) == opts

    def test_from_dict_ignores_unknown_keys(self):
        assert ListOptions.from_dict({"colour": "red"}) == ListOptions()


class TestStats:
    def test_time_per_tag_splits_evenly(self, make_task):
        today = date(2024, 6, 10)
        tasks = [
            make_task(1, tags={"a", "b"}, time_entries=[TimeEntry.new(1, 0, today)]),
            make_task(2, tags={"a"}, time_entries=[TimeEntry.new(0, 15, today)]),
            make_task(3, tags={"old"}, time_entries=[TimeEntry.new(5, 0, date(2024, 1, 1))]),
            make_task(4, tags={"x"}, discarded=True, time_entries=[TimeEntry.new(1, 0, today)]),
            make_task(5, time_entries=[TimeEntry.new(1, 0, today)]),
        ]
        totals = time_per_tag(tasks, 7, today=today)
        assert totals == {"a": Duration(0, 45), "b": Duration(0, 30), "old": Duration.zero()}

    def test_recently_completed(self, make_task):
        now = datetime(2024, 6, 10, 12, 0)
        tasks = [
            make_task(1, completed=datetime(2024, 6, 9)),
            make_task(2, completed=datetime(2024, 6, 10)),
            make_task(3, completed=datetime(2024, 5, 1)),
            make_task(4),
        ]
        assert _ids(recently_completed(tasks, 7, now=now)) == [2, 1]
