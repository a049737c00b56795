"""Exception taxonomy shared by the vault core, the store and the CLI.

Every error carries the context a user needs to fix their input (candidate
ids, the cycle path, the conflicting counter values) without inspecting the
vault files by hand.
"""

from __future__ import annotations

from pathlib import Path


class TaskVaultError(Exception):
    """Base class for every error raised by taskvault."""


# ── Name / lookup errors ─────────────────────────────────────────────


class InvalidName(TaskVaultError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Name must not be purely numeric or empty (got {name!r})")


class NameNotFound(TaskVaultError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"A task by the name {name!r} does not exist")


class AmbiguousName(TaskVaultError):
    def __init__(self, name: str, candidates: list[int]) -> None:
        self.name = name
        self.candidates = sorted(candidates)
        ids = ", ".join(str(c) for c in self.candidates)
        super().__init__(f"Multiple tasks (Ids: [{ids}]) by the name {name!r} exist")


class NotFound(TaskVaultError):
    def __init__(self, task_id: int) -> None:
        self.task_id = task_id
        super().__init__(f"No task with the ID {task_id} exists")


# ── Graph errors ─────────────────────────────────────────────────────


def format_cycle(path: list[int]) -> str:
    return " -> ".join(str(node) for node in path)


class CycleError(TaskVaultError):
    """A dependency edge would close a cycle.

    ``path`` starts and ends with the same id, e.g. ``[2, 1, 2]`` for the
    edge ``2 -> 1`` added on top of ``1 -> 2``.
    """

    def __init__(self, path: list[int]) -> None:
        self.path = list(path)
        if len(self.path) == 2 and self.path[0] == self.path[1]:
            msg = f"Task with ID {self.path[0]} cannot depend on itself"
        else:
            msg = f"Circular dependency: {format_cycle(self.path)}"
        super().__init__(msg)


class GraphInconsistent(TaskVaultError):
    def __init__(self, discrepancies: list[str]) -> None:
        self.discrepancies = list(discrepancies)
        super().__init__(
            "Dependency graph does not match task records: " + "; ".join(self.discrepancies)
        )


class IndexInconsistent(TaskVaultError):
    def __init__(self, discrepancies: list[str]) -> None:
        self.discrepancies = list(discrepancies)
        super().__init__("Name index does not match task records: " + "; ".join(self.discrepancies))


class DependentsExist(TaskVaultError):
    def __init__(self, task_id: int, dependents: list[int]) -> None:
        self.task_id = task_id
        self.dependents = sorted(dependents)
        ids = ", ".join(str(d) for d in self.dependents)
        super().__init__(
            f"Task {task_id} cannot be deleted while other tasks depend on it (Ids: [{ids}])"
        )


# ── Record / state errors ────────────────────────────────────────────


class CounterInvariantViolation(TaskVaultError):
    def __init__(self, next_id: int, max_id: int) -> None:
        self.next_id = next_id
        self.max_id = max_id
        super().__init__(
            f"State counter next_id={next_id} is not greater than the highest task ID {max_id}; "
            "fix next_id in state.yaml by hand before continuing"
        )


class InvalidDuration(TaskVaultError):
    def __init__(self, hours: int, minutes: int) -> None:
        self.hours = hours
        self.minutes = minutes
        super().__init__(
            f"Duration {hours}:{minutes:02d} is invalid, minutes must be in [0, 60)"
        )


class InvalidEdit(TaskVaultError):
    pass


class CorruptRecord(TaskVaultError):
    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read {path}: {reason}")


# ── Vault / config errors ────────────────────────────────────────────


class VaultNotFound(TaskVaultError):
    pass


class VaultExists(TaskVaultError):
    pass


class ConfigError(TaskVaultError):
    pass
