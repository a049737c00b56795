"""Name index: task name -> ids currently bearing that name.

The index is a cache over the task records. It is patched incrementally on
every create, rename and delete, and :meth:`NameIndex.rebuild` must always
produce an identical index from a scan of the records.
"""

from __future__ import annotations

import bisect
from collections.abc import Iterable
from typing import Any, NamedTuple

from taskvault.errors import AmbiguousName, NameNotFound
from taskvault.tasks.model import Task, parse_id


class ResolvedRef(NamedTuple):
    id: int
    by_name: bool


class NameIndex:
    def __init__(self, entries: dict[str, list[int]] | None = None) -> None:
        self._map: dict[str, list[int]] = {}
        for name, ids in (entries or {}).items():
            for task_id in ids:
                self.insert(name, task_id)

    @classmethod
    def rebuild(cls, tasks: Iterable[Task]) -> NameIndex:
        index = cls()
        for task in tasks:
            index.insert(task.name, task.id)
        return index

    # ── lookups ──────────────────────────────────────────────────

    def ids_for(self, name: str) -> list[int]:
        return list(self._map.get(name, []))

    def names(self) -> list[str]:
        return sorted(self._map)

    def resolve(self, token: str) -> ResolvedRef:
        """Turn a user-supplied id-or-name into a task id.

        Id tokens bypass the index entirely, which is why names may never be
        purely numeric.
        """
        task_id = parse_id(token)
        if task_id is not None:
            return ResolvedRef(task_id, by_name=False)

        ids = self._map.get(token)
        if not ids:
            raise NameNotFound(token)
        if len(ids) > 1:
            raise AmbiguousName(token, ids)
        return ResolvedRef(ids[0], by_name=True)

    # ── mutation ─────────────────────────────────────────────────

    def insert(self, name: str, task_id: int) -> None:
        ids = self._map.setdefault(name, [])
        pos = bisect.bisect_left(ids, task_id)
        if pos == len(ids) or ids[pos] != task_id:
            ids.insert(pos, task_id)

    def remove(self, name: str, task_id: int) -> None:
        ids = self._map.get(name)
        if not ids:
            return
        pos = bisect.bisect_left(ids, task_id)
        if pos < len(ids) and ids[pos] == task_id:
            del ids[pos]
        if not ids:
            del self._map[name]

    # ── verification ─────────────────────────────────────────────

    def diff(self, expected: NameIndex) -> list[str]:
        """Describe every way this index differs from *expected*."""
        problems: list[str] = []
        for name in sorted(set(self._map) | set(expected._map)):
            have = self._map.get(name, [])
            want = expected._map.get(name, [])
            if have == want:
                continue
            if not want:
                problems.append(f"name {name!r} indexed for {have} but no such task exists")
            elif not have:
                problems.append(f"name {name!r} of tasks {want} missing from index")
            else:
                problems.append(f"name {name!r} indexed as {have}, records say {want}")
        return problems

    # ── (de)serialisation ────────────────────────────────────────

    def to_dict(self) -> dict[str, list[int]]:
        return {name: list(self._map[name]) for name in sorted(self._map)}

    @classmethod
    def from_dict(cls, data: dict[Any, Any] | None) -> NameIndex:
        entries = {str(name): [int(i) for i in ids or []] for name, ids in (data or {}).items()}
        return cls(entries)

    def copy(self) -> NameIndex:
        return NameIndex(self._map)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NameIndex):
            return NotImplemented
        return self._map == other._map

    def __len__(self) -> int:
        return len(self._map)

    def __repr__(self) -> str:
        return f"NameIndex({self.to_dict()!r})"
