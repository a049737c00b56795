"""Dependency graph over task ids with cycle-freedom enforced on every insertion."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import Any

from taskvault import log
from taskvault.errors import CycleError, GraphInconsistent, NotFound
from taskvault.tasks.model import Task


class DependencyGraph:
    """Directed graph whose edge ``A -> B`` means task A depends on task B.

    Two adjacency maps are kept in step:

    * ``_forward[A]``: the ids A depends on;
    * ``_reverse[B]``: the ids that depend on B.

    Usage::

        graph = DependencyGraph.from_tasks(store.load_all())
        graph.add_edge(1, 2)         # 1 depends on 2
        graph.add_edge(2, 1)         # raises CycleError([2, 1, 2])
        graph.remove_node(2)         # returns {1}, the former dependents
    """

    __slots__ = ("_forward", "_reverse")

    def __init__(self) -> None:
        self._forward: dict[int, set[int]] = {}
        self._reverse: dict[int, set[int]] = {}

    # ── construction ─────────────────────────────────────────────

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> DependencyGraph:
        """Build the graph declared by *tasks*' own ``dependencies`` fields.

        Raises :class:`GraphInconsistent` for dependencies on missing tasks
        and :class:`CycleError` if the declared edges are cyclic.
        """
        tasks = list(tasks)
        graph = cls()
        for task in tasks:
            graph.add_node(task.id)

        missing = [
            f"task {task.id} depends on missing task {dep}"
            for task in tasks
            for dep in sorted(task.dependencies)
            if dep not in graph._forward
        ]
        if missing:
            raise GraphInconsistent(missing)

        for task in tasks:
            for dep in task.dependencies:
                graph._link(task.id, dep)

        cycle = graph.find_cycle()
        if cycle is not None:
            raise CycleError(cycle)
        return graph

    @classmethod
    def from_dict(cls, data: dict[Any, Any] | None) -> DependencyGraph:
        """Load a snapshot. No validation; see :meth:`reconcile`."""
        graph = cls()
        edges = {int(node): [int(d) for d in deps or []] for node, deps in (data or {}).items()}
        for node in edges:
            graph.add_node(node)
        for node, deps in edges.items():
            for dep in deps:
                graph.add_node(dep)
                graph._link(node, dep)
        return graph

    def to_dict(self) -> dict[int, list[int]]:
        return {node: sorted(self._forward[node]) for node in sorted(self._forward)}

    def copy(self) -> DependencyGraph:
        clone = DependencyGraph()
        clone._forward = {node: set(deps) for node, deps in self._forward.items()}
        clone._reverse = {node: set(deps) for node, deps in self._reverse.items()}
        return clone

    # ── queries ──────────────────────────────────────────────────

    def __contains__(self, node: object) -> bool:
        return node in self._forward

    def __len__(self) -> int:
        return len(self._forward)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DependencyGraph):
            return NotImplemented
        return self._forward == other._forward

    def __repr__(self) -> str:
        return f"DependencyGraph({self.to_dict()!r})"

    def nodes(self) -> list[int]:
        return sorted(self._forward)

    def edges(self) -> list[tuple[int, int]]:
        return sorted((node, dep) for node, deps in self._forward.items() for dep in deps)

    def dependencies(self, node: int) -> set[int]:
        return set(self._forward.get(node, ()))

    def dependents(self, node: int) -> set[int]:
        return set(self._reverse.get(node, ()))

    def tasks_with_dependents(self) -> set[int]:
        return {node for node, deps in self._reverse.items() if deps}

    def nested_dependencies(self, node: int) -> set[int]:
        """All ids *node* depends on, directly or transitively."""
        seen: set[int] = set()
        queue: deque[int] = deque(self._forward.get(node, ()))
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self._forward.get(current, ()))
        seen.discard(node)
        return seen

    def _path(self, start: int, goal: int) -> list[int] | None:
        """BFS along forward edges; only the subgraph reachable from *start* is visited."""
        if start == goal:
            return [start]
        parent: dict[int, int] = {start: start}
        queue: deque[int] = deque([start])
        while queue:
            current = queue.popleft()
            for nxt in sorted(self._forward.get(current, ())):
                if nxt in parent:
                    continue
                parent[nxt] = current
                if nxt == goal:
                    path = [goal]
                    while path[-1] != start:
                        path.append(parent[path[-1]])
                    path.reverse()
                    return path
                queue.append(nxt)
        return None

    def find_cycle(self) -> list[int] | None:
        """Return one cycle as ``[a, b, ..., a]``, or ``None`` if the graph is acyclic."""
        in_progress, done = 1, 2
        color: dict[int, int] = {}

        for root in sorted(self._forward):
            if root in color:
                continue
            color[root] = in_progress
            path = [root]
            stack = [iter(sorted(self._forward[root]))]
            while stack:
                nxt = next(stack[-1], None)
                if nxt is None:
                    stack.pop()
                    color[path.pop()] = done
                    continue
                state = color.get(nxt)
                if state == in_progress:
                    return path[path.index(nxt):] + [nxt]
                if state is None:
                    color[nxt] = in_progress
                    path.append(nxt)
                    stack.append(iter(sorted(self._forward.get(nxt, ()))))
        return None

    # ── mutation ─────────────────────────────────────────────────

    def _link(self, source: int, target: int) -> None:
        self._forward.setdefault(source, set()).add(target)
        self._reverse.setdefault(target, set()).add(source)

    def add_node(self, node: int) -> bool:
        if node in self._forward:
            return False
        self._forward[node] = set()
        self._reverse.setdefault(node, set())
        return True

    def add_edge(self, source: int, target: int) -> bool:
        """Insert ``source -> target`` unless it would close a cycle.

        Returns ``False`` if the edge already existed. On :class:`CycleError`
        the graph is left untouched.
        """
        for node in (source, target):
            if node not in self._forward:
                raise NotFound(node)
        if target in self._forward[source]:
            return False

        back = self._path(target, source)
        if back is not None:
            raise CycleError([source, *back])

        self._link(source, target)
        return True

    def remove_edge(self, source: int, target: int) -> bool:
        deps = self._forward.get(source)
        if deps is None or target not in deps:
            return False
        deps.discard(target)
        self._reverse[target].discard(source)
        return True

    def remove_node(self, node: int) -> set[int]:
        """Drop *node* and every incident edge; return the ids that depended on it."""
        if node not in self._forward:
            return set()
        dependents = self._reverse.pop(node, set())
        for dependent in dependents:
            self._forward[dependent].discard(node)
        for dep in self._forward.pop(node):
            self._reverse.get(dep, set()).discard(node)
        return dependents

    # ── reconciliation ───────────────────────────────────────────

    def reconcile(self, tasks: Iterable[Task], *, repair: bool = False) -> list[str]:
        """Compare the graph against the dependencies the task records declare.

        Read-only unless *repair* is set: discrepancies raise
        :class:`GraphInconsistent`. In repair mode the graph is rebuilt from
        the records and the list of repaired discrepancies is returned.
        """
        tasks = list(tasks)
        task_ids = {task.id for task in tasks}
        problems: list[str] = []

        for node in sorted(set(self._forward) - task_ids):
            problems.append(f"graph node {node} has no task record")
        for task_id in sorted(task_ids - set(self._forward)):
            problems.append(f"task {task_id} missing from graph")

        declared = {(task.id, dep) for task in tasks for dep in task.dependencies}
        actual = set(self.edges())
        for source, target in sorted(declared - actual):
            problems.append(f"edge {source} -> {target} declared by task {source} missing from graph")
        for source, target in sorted(actual - declared):
            problems.append(f"edge {source} -> {target} in graph but not declared by task {source}")

        if not problems:
            return []
        if not repair:
            raise GraphInconsistent(problems)

        rebuilt = DependencyGraph.from_tasks(tasks)
        self._forward, self._reverse = rebuilt._forward, rebuilt._reverse
        log.debug(f"Rebuilt dependency graph ({len(problems)} discrepancies)")
        return problems
