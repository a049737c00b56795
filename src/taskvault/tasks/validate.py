"""Record-level validation and the vault consistency report."""

from __future__ import annotations

from dataclasses import dataclass, field

from rich.markup import escape

from taskvault import log
from taskvault.errors import InvalidDuration, InvalidName, TaskVaultError
from taskvault.tasks.model import Task, is_valid_name


def check_task(task: Task) -> list[TaskVaultError]:
    """Return every rule *task* breaks on its own (no vault context needed)."""
    errors: list[TaskVaultError] = []
    if not is_valid_name(task.name):
        errors.append(InvalidName(task.name))
    for entry in task.time_entries:
        if not entry.duration.satisfies_invariant():
            errors.append(InvalidDuration(entry.duration.hours, entry.duration.minutes))
    return errors


def validate_task(task: Task) -> None:
    errors = check_task(task)
    if errors:
        raise errors[0]


@dataclass
class VerifyReport:
    problems: list[TaskVaultError] = field(default_factory=list)
    repaired: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.problems


def validate_and_report(report: VerifyReport) -> bool:
    """Print *report* and return ``True`` when the vault is consistent."""
    for line in report.repaired:
        log.warn(f"Repaired: {escape(line)}")

    if report.ok:
        log.success("Vault is consistent")
        return True

    log.error(f"Vault has {len(report.problems)} problem(s):")
    for problem in report.problems:
        log.console.print(f"  - {type(problem).__name__}: {problem}", markup=False)
    return False
