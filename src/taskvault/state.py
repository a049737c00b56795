"""Vault state: the aggregate root keeping records, counter, index and graph consistent.

Every task mutation goes through :class:`VaultState`. Each operation runs
inside a transaction: it validates, mutates the in-memory state and either
commits or restores everything it touched. The undo snapshot copies the whole
index and graph, so every mutation costs O(tasks in the vault); vaults hold
hundreds to a few thousand tasks. Changes reach disk only on
:meth:`VaultState.save`, which stages all task records before replacing any
of them and writes the snapshot last.

Usage::

    state = VaultState.load(vault_dir)
    created = state.create_task("shopping", dependencies=[3])
    state.add_dependency(created.task.id, 4)
    state.save()
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import Any

import yaml

from taskvault import log
from taskvault.errors import (
    CorruptRecord,
    CounterInvariantViolation,
    CycleError,
    DependentsExist,
    GraphInconsistent,
    IndexInconsistent,
    InvalidEdit,
    NotFound,
)
from taskvault.graph import DependencyGraph
from taskvault.index import NameIndex
from taskvault.io_utils import read_text, write_temp
from taskvault.tasks.io import TaskStore
from taskvault.tasks.model import Task, TimeEntry, now, validate_name
from taskvault.tasks.validate import VerifyReport, check_task, validate_task

STATE_FILE = "state.yaml"


@dataclass
class CreateResult:
    task: Task
    # Requested dependency edges that were refused because they closed a cycle.
    dropped: list[CycleError] = field(default_factory=list)


def _read_snapshot(path: Path) -> tuple[int, NameIndex, DependencyGraph]:
    try:
        data = yaml.safe_load(read_text(path))
    except yaml.YAMLError as e:
        raise CorruptRecord(path, f"invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise CorruptRecord(path, "expected a mapping at the top level")
    try:
        next_id = data["next_id"]
        if isinstance(next_id, bool) or not isinstance(next_id, int):
            raise ValueError(f"next_id must be an integer, got {next_id!r}")
        return next_id, NameIndex.from_dict(data.get("index")), DependencyGraph.from_dict(data.get("graph"))
    except KeyError as e:
        raise CorruptRecord(path, f"missing field {e.args[0]!r}") from e
    except (TypeError, ValueError, AttributeError) as e:
        raise CorruptRecord(path, str(e)) from e


class VaultState:
    def __init__(
        self,
        vault_dir: Path,
        next_id: int = 1,
        index: NameIndex | None = None,
        graph: DependencyGraph | None = None,
        tasks: dict[int, Task] | None = None,
    ) -> None:
        self.vault_dir = vault_dir
        self.store = TaskStore(vault_dir)
        self.index = index if index is not None else NameIndex()
        self.graph = graph if graph is not None else DependencyGraph()
        self._next_id = next_id
        self._tasks: dict[int, Task] = dict(tasks or {})
        self._writes: dict[int, Task] = {}
        self._deletes: set[int] = set()

    # ── lifecycle ────────────────────────────────────────────────

    @property
    def state_path(self) -> Path:
        return self.vault_dir / STATE_FILE

    @classmethod
    def init(cls, vault_dir: Path) -> VaultState:
        """Create the metadata of an empty vault in *vault_dir*."""
        state = cls(vault_dir)
        state.store.tasks_dir.mkdir(parents=True, exist_ok=True)
        state.save()
        return state

    @classmethod
    def load(cls, vault_dir: Path, *, check: bool = True) -> VaultState:
        """Load the snapshot and every task record of *vault_dir*.

        A broken counter or an unreadable record always aborts the load.
        With *check* the index, graph and record rules are verified as well
        and the first problem is raised; ``verify`` loads with
        ``check=False`` so it can report instead.
        """
        store = TaskStore(vault_dir)
        tasks = store.load_all_as_map()
        state_path = vault_dir / STATE_FILE

        if state_path.is_file():
            next_id, index, graph = _read_snapshot(state_path)
            state = cls(vault_dir, next_id, index, graph, tasks)
            derived = False
        else:
            log.debug(f"No {STATE_FILE} in {vault_dir}, deriving state from task records")
            graph = DependencyGraph.from_dict({t.id: sorted(t.dependencies) for t in tasks.values()})
            state = cls(vault_dir, max(tasks, default=0) + 1, NameIndex.rebuild(tasks.values()), graph, tasks)
            derived = True

        state.check_counter()
        if check:
            report = state.verify()
            if not report.ok:
                raise report.problems[0]
        if derived:
            state.save()
        return state

    def save(self) -> None:
        """Persist pending task writes and deletions, then the snapshot.

        All records are written to temp files first; only once every one of
        them (and the snapshot) is staged are they renamed into place.
        """
        staged: list[tuple[Path, Path]] = []
        try:
            for task in self._writes.values():
                staged.append((self.store.stage(task), self.store.path_for(task.id)))
            snapshot = write_temp(self.state_path, self._encode_snapshot())
        except BaseException:
            for temp, _ in staged:
                temp.unlink(missing_ok=True)
            raise

        for temp, final in staged:
            os.replace(temp, final)
        for task_id in sorted(self._deletes):
            if self.store.exists(task_id):
                self.store.delete(task_id)
        os.replace(snapshot, self.state_path)

        log.debug(
            f"Saved vault {self.vault_dir} ({len(staged)} written, {len(self._deletes)} deleted)"
        )
        self._writes.clear()
        self._deletes.clear()

    def _encode_snapshot(self) -> str:
        data: dict[str, Any] = {
            "next_id": self._next_id,
            "index": self.index.to_dict(),
            "graph": self.graph.to_dict(),
        }
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)

    @property
    def dirty(self) -> bool:
        return bool(self._writes or self._deletes)

    # ── counter ──────────────────────────────────────────────────

    @property
    def counter(self) -> int:
        """The id the next created task will receive."""
        return self._next_id

    def next_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def check_counter(self) -> None:
        max_id = max(self._tasks, default=0)
        if self._next_id <= max_id:
            raise CounterInvariantViolation(self._next_id, max_id)

    # ── lookups ──────────────────────────────────────────────────

    def resolve(self, token: str) -> int:
        return self.index.resolve(token).id

    def task(self, task_id: int) -> Task:
        try:
            return self._tasks[task_id]
        except KeyError:
            raise NotFound(task_id) from None

    def tasks(self) -> list[Task]:
        return [self._tasks[task_id] for task_id in sorted(self._tasks)]

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    # ── transactions ─────────────────────────────────────────────

    @contextmanager
    def _transaction(self, label: str) -> Iterator[None]:
        saved = (
            self._next_id,
            self.index.copy(),
            self.graph.copy(),
            dict(self._tasks),
            dict(self._writes),
            set(self._deletes),
        )
        try:
            yield
        except BaseException as e:
            (
                self._next_id,
                self.index,
                self.graph,
                self._tasks,
                self._writes,
                self._deletes,
            ) = saved
            log.debug(f"{label}: rolled back ({type(e).__name__})")
            raise
        log.debug(f"{label}: committed")

    def _put(self, task: Task) -> None:
        self._tasks[task.id] = task
        self._writes[task.id] = task
        self._deletes.discard(task.id)

    def _drop(self, task_id: int) -> None:
        del self._tasks[task_id]
        self._writes.pop(task_id, None)
        self._deletes.add(task_id)

    # ── task operations ──────────────────────────────────────────

    def create_task(self, name: str, dependencies: Iterable[int] = (), **fields: Any) -> CreateResult:
        """Create a task, keeping only the dependency edges that can exist.

        A dependency on a missing task aborts the whole creation. Edges that
        would close a cycle are dropped and returned in
        :attr:`CreateResult.dropped`.
        """
        with self._transaction(f"create {name!r}"):
            task = self.store.create(name, self.next_id, **fields)
            self.graph.add_node(task.id)

            accepted: set[int] = set()
            dropped: list[CycleError] = []
            for dep in sorted(set(dependencies)):
                if dep not in self._tasks:
                    raise NotFound(dep)
                try:
                    self.graph.add_edge(task.id, dep)
                except CycleError as e:
                    dropped.append(e)
                    continue
                accepted.add(dep)

            task = replace(task, dependencies=accepted)
            self.index.insert(task.name, task.id)
            self._put(task)
        return CreateResult(task, dropped)

    def rename_task(self, task_id: int, new_name: str) -> Task:
        with self._transaction(f"rename {task_id}"):
            task = self.task(task_id)
            validate_name(new_name)
            self.index.remove(task.name, task_id)
            self.index.insert(new_name, task_id)
            task = replace(task, name=new_name)
            self._put(task)
        return task

    def delete_task(self, task_id: int, *, cascade: bool = False) -> set[int]:
        """Delete a task and return the ids whose dependency on it was removed.

        Deletion is refused with :class:`DependentsExist` while other tasks
        depend on it, unless *cascade* is set.
        """
        with self._transaction(f"delete {task_id}"):
            task = self.task(task_id)
            dependents = self.graph.dependents(task_id)
            if dependents and not cascade:
                raise DependentsExist(task_id, sorted(dependents))

            self.graph.remove_node(task_id)
            for dependent_id in dependents:
                dependent = self._tasks[dependent_id]
                self._put(replace(dependent, dependencies=dependent.dependencies - {task_id}))
            self.index.remove(task.name, task_id)
            self._drop(task_id)
        return dependents

    def add_dependency(self, source: int, target: int) -> Task:
        """Make *source* depend on *target*."""
        with self._transaction(f"depend {source} -> {target}"):
            task = self.task(source)
            self.task(target)
            self.graph.add_edge(source, target)
            task = replace(task, dependencies=task.dependencies | {target})
            self._put(task)
        return task

    def remove_dependency(self, source: int, target: int) -> bool:
        with self._transaction(f"undepend {source} -> {target}"):
            task = self.task(source)
            removed = self.graph.remove_edge(source, target)
            if removed or target in task.dependencies:
                self._put(replace(task, dependencies=task.dependencies - {target}))
        return removed

    def complete_task(self, task_id: int) -> Task:
        with self._transaction(f"complete {task_id}"):
            task = self.task(task_id)
            if task.completed is None:
                task = replace(task, completed=now())
                self._put(task)
        return task

    def discard_task(self, task_id: int) -> Task:
        with self._transaction(f"discard {task_id}"):
            task = replace(self.task(task_id), discarded=True)
            self._put(task)
        return task

    def track_time(
        self,
        task_id: int,
        hours: int = 0,
        minutes: int = 0,
        logged_date: date | None = None,
        message: str | None = None,
    ) -> TimeEntry:
        with self._transaction(f"track {task_id}"):
            task = self.task(task_id)
            entry = TimeEntry.new(hours, minutes, logged_date, message)
            self._put(replace(task, time_entries=[*task.time_entries, entry]))
        return entry

    def apply_edit(self, task_id: int, edited: Task) -> Task:
        """Replace task *task_id* with a hand-edited record, enforcing every invariant."""
        with self._transaction(f"edit {task_id}"):
            current = self.task(task_id)
            if edited.id != task_id:
                raise InvalidEdit("You cannot change the ID of a task in a direct edit")
            validate_task(edited)

            if edited.dependencies != current.dependencies:
                for dep in current.dependencies:
                    self.graph.remove_edge(task_id, dep)
                for dep in sorted(edited.dependencies):
                    if dep not in self._tasks:
                        raise NotFound(dep)
                    self.graph.add_edge(task_id, dep)

            if edited.name != current.name:
                self.index.remove(current.name, task_id)
                self.index.insert(edited.name, task_id)

            self._put(edited)
        return edited

    # ── verification ─────────────────────────────────────────────

    def verify(self, *, repair: bool = False) -> VerifyReport:
        """Check counter, record rules, index and graph against the records.

        With *repair* the index and graph are rebuilt from the records, and
        dependencies on records that no longer exist are dropped from the
        dependent tasks (and saved with them). The counter is never repaired.
        """
        report = VerifyReport()
        if repair:
            report.repaired.extend(self._drop_missing_dependencies())
        tasks = self.tasks()

        max_id = max(self._tasks, default=0)
        if self._next_id <= max_id:
            report.problems.append(CounterInvariantViolation(self._next_id, max_id))

        for task in tasks:
            report.problems.extend(check_task(task))

        expected = NameIndex.rebuild(tasks)
        index_problems = self.index.diff(expected)
        if index_problems and repair:
            self.index = expected
            report.repaired.extend(index_problems)
            log.debug(f"Rebuilt name index ({len(index_problems)} discrepancies)")
        elif index_problems:
            report.problems.append(IndexInconsistent(index_problems))

        try:
            report.repaired.extend(self.graph.reconcile(tasks, repair=repair))
        except (GraphInconsistent, CycleError) as e:
            report.problems.append(e)
        else:
            cycle = self.graph.find_cycle()
            if cycle is not None:
                report.problems.append(CycleError(cycle))

        return report

    def _drop_missing_dependencies(self) -> list[str]:
        repaired: list[str] = []
        for task in self.tasks():
            missing = {dep for dep in task.dependencies if dep not in self._tasks}
            if not missing:
                continue
            self._put(replace(task, dependencies=task.dependencies - missing))
            repaired.extend(
                f"task {task.id} depended on missing task {dep}" for dep in sorted(missing)
            )
        if repaired:
            log.debug(f"Dropped {len(repaired)} dependencies on missing tasks")
        return repaired
