"""Domain models for the task board."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Hashable

DEFAULT_AVATAR = "https://i.pravatar.cc/40"

DEFAULT_COLUMNS: tuple[str, ...] = ("Pending", "In progress", "In review", "Done")


class Priority(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_ORDER.index(self)

    @classmethod
    def parse(cls, value: Any) -> Priority:
        """Lenient lookup by value, name or legacy label. Unknown -> MEDIUM."""
        if isinstance(value, Priority):
            return value
        if not isinstance(value, str):
            return cls.MEDIUM
        key = value.strip().lower()
        for p in cls:
            if key in (p.value.lower(), p.name.lower()):
                return p
        return _LEGACY_PRIORITIES.get(key, cls.MEDIUM)


_PRIORITY_ORDER = [Priority.LOW, Priority.MEDIUM, Priority.HIGH, Priority.URGENT]

_LEGACY_PRIORITIES = {
    "baja": Priority.LOW,
    "media": Priority.MEDIUM,
    "alta": Priority.HIGH,
    "urgente": Priority.URGENT,
}


class ElementKind(Enum):
    COLUMN = "column"
    TASK = "task"


def clamp_progress(value: Any) -> int:
    """Coerce to int and clamp into [0, 100]. Unparseable values become 0."""
    try:
        n = int(float(value))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, n))


@dataclass(frozen=True)
class Assignee:
    name: str = ""
    role: str = ""
    avatar_url: str = DEFAULT_AVATAR


@dataclass(frozen=True)
class Task:
    id: Hashable | None
    title: str
    status: Hashable | None = None
    description: str = ""
    priority: Priority = Priority.MEDIUM
    progress: int = 0
    assignee: Assignee = field(default_factory=Assignee)
    allocator: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    deadline: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "progress", clamp_progress(self.progress))
        object.__setattr__(self, "priority", Priority.parse(self.priority))

    @property
    def is_new(self) -> bool:
        return self.id is None


@dataclass(frozen=True)
class Column:
    """An ordered bucket of tasks.

    Membership is authoritative: every task is re-stamped with this column's
    id on construction, so ``task.status`` always names the containing column.
    """

    id: Hashable
    title: str
    tasks: tuple[Task, ...] = ()

    def __post_init__(self) -> None:
        stamped = tuple(
            t if t.status == self.id else replace(t, status=self.id)
            for t in self.tasks
        )
        object.__setattr__(self, "tasks", stamped)

    def task_ids(self) -> list:
        return [t.id for t in self.tasks]

    def index_of(self, task_id: Hashable) -> int | None:
        for i, t in enumerate(self.tasks):
            if t.id == task_id:
                return i
        return None


@dataclass(frozen=True)
class TaskLocation:
    column: Column
    index: int
    task: Task


@dataclass(frozen=True)
class Board:
    id: Hashable
    name: str
    columns: tuple[Column, ...] = ()
    loaded: bool = False

    def get_column(self, column_id: Hashable) -> Column | None:
        for c in self.columns:
            if c.id == column_id:
                return c
        return None

    def find_task(self, task_id: Hashable) -> TaskLocation | None:
        for column in self.columns:
            idx = column.index_of(task_id)
            if idx is not None:
                return TaskLocation(column=column, index=idx, task=column.tasks[idx])
        return None

    def all_tasks(self) -> list[Task]:
        return [t for c in self.columns for t in c.tasks]


@dataclass(frozen=True)
class DragElement:
    """The active or over element of a drag gesture."""

    kind: ElementKind
    id: Hashable

    @classmethod
    def task(cls, task_id: Hashable) -> DragElement:
        return cls(ElementKind.TASK, task_id)

    @classmethod
    def column(cls, column_id: Hashable) -> DragElement:
        return cls(ElementKind.COLUMN, column_id)
