"""Task store: one YAML record per task under ``<vault>/tasks/<id>.yaml``."""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml

from taskvault import log
from taskvault.errors import CorruptRecord, NotFound
from taskvault.io_utils import read_text, write_atomic, write_temp
from taskvault.tasks.model import Duration, Priority, Task, TimeEntry, validate_name

TASKS_DIR = "tasks"
RECORD_SUFFIX = ".yaml"

_RECORD_STEM = re.compile(r"[0-9]+")


# ── Encoding ─────────────────────────────────────────────────────────


def encode(task: Task) -> str:
    """Serialise *task* to a stable, diff-friendly YAML document."""
    data: dict[str, Any] = {
        "id": task.id,
        "name": task.name,
        "tags": sorted(task.tags),
        "dependencies": sorted(task.dependencies),
        "priority": task.priority.value,
        "due": task.due,
        "created": task.created,
        "completed": task.completed,
        "discarded": task.discarded,
        "info": task.info,
        "time_entries": [
            {
                "logged_date": entry.logged_date,
                "message": entry.message,
                "duration": {
                    "hours": entry.duration.hours,
                    "minutes": entry.duration.minutes,
                },
            }
            for entry in task.time_entries
        ],
    }
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


def _as_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"expected an integer, got {value!r}")
    return value


def _as_str(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {value!r}")
    return value


def _as_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"expected true or false, got {value!r}")
    return value


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"expected a list, got {value!r}")
    return value


def _as_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    raise ValueError(f"expected a date and time, got {value!r}")


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"expected a date, got {value!r}")


def _decode_entry(raw: dict[str, Any]) -> TimeEntry:
    duration = raw.get("duration") or {}
    message = raw.get("message")
    return TimeEntry(
        logged_date=_as_date(raw["logged_date"]),
        duration=Duration(
            _as_int(duration.get("hours", 0)),
            _as_int(duration.get("minutes", 0)),
        ),
        message=None if message is None else str(message),
    )


def decode(text: str, path: Path) -> Task:
    """Parse a task record. Shape problems raise :class:`CorruptRecord`.

    Names and durations are *not* validated here, so a hand-edited record
    can still be loaded and reported on by ``verify``.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise CorruptRecord(path, f"invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise CorruptRecord(path, "expected a mapping at the top level")

    try:
        created = _as_datetime(data.get("created"))
        info = data.get("info")
        return Task(
            id=_as_int(data["id"]),
            name=_as_str(data["name"]),
            tags={str(t) for t in _as_list(data.get("tags"))},
            dependencies={_as_int(d) for d in _as_list(data.get("dependencies"))},
            priority=Priority(data.get("priority") or Priority.LOW.value),
            due=_as_datetime(data.get("due")),
            created=created if created is not None else datetime.min,
            completed=_as_datetime(data.get("completed")),
            discarded=_as_bool(data.get("discarded", False)),
            info=None if info is None else str(info),
            time_entries=[_decode_entry(e) for e in _as_list(data.get("time_entries"))],
        )
    except KeyError as e:
        raise CorruptRecord(path, f"missing field {e.args[0]!r}") from e
    except (TypeError, ValueError, AttributeError) as e:
        raise CorruptRecord(path, str(e)) from e


# ── Store ────────────────────────────────────────────────────────────


class TaskStore:
    """Sole owner of the on-disk task records of one vault.

    The store never touches the name index or the dependency graph; callers
    validate vault-level invariants before calling :meth:`update` or
    :meth:`delete`.
    """

    def __init__(self, vault_dir: Path) -> None:
        self.vault_dir = vault_dir
        self.tasks_dir = vault_dir / TASKS_DIR

    def path_for(self, task_id: int) -> Path:
        return self.tasks_dir / f"{task_id}{RECORD_SUFFIX}"

    def ids(self) -> list[int]:
        """Scan the tasks directory for record ids; other files are ignored."""
        if not self.tasks_dir.is_dir():
            return []
        found: list[int] = []
        for p in self.tasks_dir.iterdir():
            if p.suffix == RECORD_SUFFIX and p.is_file() and _RECORD_STEM.fullmatch(p.stem):
                found.append(int(p.stem))
        return sorted(found)

    def exists(self, task_id: int) -> bool:
        return self.path_for(task_id).is_file()

    def create(self, name: str, allocate_id: Callable[[], int], **fields: Any) -> Task:
        """Build a new task with an id drawn from *allocate_id*.

        The name is checked before an id is drawn. The record is not written
        until :meth:`update`.
        """
        validate_name(name)
        return Task(id=allocate_id(), name=name, **fields)

    def load_path(self, path: Path) -> Task:
        return decode(read_text(path), path)

    def load(self, task_id: int) -> Task:
        path = self.path_for(task_id)
        if not path.is_file():
            raise NotFound(task_id)
        task = self.load_path(path)
        if task.id != task_id:
            raise CorruptRecord(path, f"record id {task.id} does not match file name")
        return task

    def load_all(self) -> list[Task]:
        return [self.load(task_id) for task_id in self.ids()]

    def load_all_as_map(self) -> dict[int, Task]:
        return {task.id: task for task in self.load_all()}

    def update(self, task: Task) -> None:
        self.tasks_dir.mkdir(parents=True, exist_ok=True)
        write_atomic(self.path_for(task.id), encode(task))
        log.debug(f"Wrote task record {task.id}")

    def stage(self, task: Task) -> Path:
        """Write *task* to a temp file next to its record; the caller renames it."""
        self.tasks_dir.mkdir(parents=True, exist_ok=True)
        return write_temp(self.path_for(task.id), encode(task))

    def delete(self, task_id: int) -> None:
        path = self.path_for(task_id)
        if not path.is_file():
            raise NotFound(task_id)
        path.unlink()
        log.debug(f"Removed task record {task_id}")
