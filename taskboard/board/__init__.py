from .exceptions import BoardNotFoundError, LastBoardError, TaskBoardError, TaskNotFoundError
from .models import (
    DEFAULT_COLUMNS,
    Assignee,
    Board,
    Column,
    DragElement,
    ElementKind,
    Priority,
    Task,
    TaskLocation,
)
from .store import BoardStore

__all__ = [
    "Assignee",
    "Board",
    "BoardNotFoundError",
    "BoardStore",
    "Column",
    "DEFAULT_COLUMNS",
    "DragElement",
    "ElementKind",
    "LastBoardError",
    "Priority",
    "Task",
    "TaskBoardError",
    "TaskLocation",
    "TaskNotFoundError",
]
