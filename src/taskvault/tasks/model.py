"""Task, priority and time-tracking data models used across the store and vault state."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from taskvault.errors import InvalidName

# Tokens of this shape are always read as task ids, never as names.
ID_PATTERN = re.compile(r"\+?[0-9]+")


def parse_id(token: str) -> int | None:
    """Return the id *token* refers to, or ``None`` if it is not an id token."""
    if ID_PATTERN.fullmatch(token):
        return int(token)
    return None


def is_valid_name(name: str) -> bool:
    if not name.strip():
        return False
    if name.isnumeric():
        return False
    return parse_id(name) is None


def validate_name(name: str) -> str:
    if not is_valid_name(name):
        raise InvalidName(name)
    return name


def now() -> datetime:
    return datetime.now().replace(microsecond=0)


class Priority(str, Enum):
    BACKLOG = "backlog"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return list(Priority).index(self)


@dataclass(frozen=True, order=True)
class Duration:
    hours: int = 0
    minutes: int = 0

    @classmethod
    def zero(cls) -> Duration:
        return cls(0, 0)

    @classmethod
    def from_minutes(cls, total: int) -> Duration:
        return cls(total // 60, total % 60)

    @property
    def total_minutes(self) -> int:
        return self.hours * 60 + self.minutes

    def satisfies_invariant(self) -> bool:
        return self.hours >= 0 and 0 <= self.minutes < 60

    def __add__(self, other: Duration) -> Duration:
        return Duration.from_minutes(self.total_minutes + other.total_minutes)

    def __truediv__(self, divisor: int) -> Duration:
        return Duration.from_minutes(round(self.total_minutes / divisor))

    def __str__(self) -> str:
        return f"{self.hours}:{self.minutes:02d}"


@dataclass(frozen=True)
class TimeEntry:
    logged_date: date
    duration: Duration
    message: str | None = None

    @classmethod
    def new(
        cls,
        hours: int,
        minutes: int,
        logged_date: date | None = None,
        message: str | None = None,
    ) -> TimeEntry:
        """Create an entry, carrying whole hours out of *minutes*."""
        return cls(
            logged_date=logged_date or date.today(),
            duration=Duration(hours + minutes // 60, minutes % 60),
            message=message,
        )

    @staticmethod
    def total(entries: list[TimeEntry]) -> Duration:
        result = Duration.zero()
        for entry in entries:
            result = result + entry.duration
        return result


@dataclass
class Task:
    id: int
    name: str
    tags: set[str] = field(default_factory=set)
    dependencies: set[int] = field(default_factory=set)
    priority: Priority = Priority.LOW
    due: datetime | None = None
    created: datetime = field(default_factory=now)
    completed: datetime | None = None
    discarded: bool = False
    info: str | None = None
    time_entries: list[TimeEntry] = field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return self.completed is not None

    @property
    def tracked(self) -> Duration:
        return TimeEntry.total(self.time_entries)
