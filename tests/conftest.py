"""Shared test configuration."""

from __future__ import annotations

from datetime import datetime

import pytest

from taskboard.board.models import Board, Column, Task
from taskboard.board.store import BoardStore
from taskboard.remote.memory import InMemoryRemote
from taskboard.sync.coordinator import SyncCoordinator

COLUMNS = ["Pending", "In progress", "In review", "Done"]


def make_task(task_id, title=None, **kwargs) -> Task:
    kwargs.setdefault("created_at", datetime(2024, 7, 15))
    return Task(id=task_id, title=title or f"Task {task_id}", **kwargs)


def make_columns(layout: dict) -> tuple[Column, ...]:
    """``{"todo": ["a", "b"], "doing": []}`` -> columns with tasks a, b in todo."""
    return tuple(
        Column(id=col_id, title=col_id.title(), tasks=tuple(make_task(t) for t in task_ids))
        for col_id, task_ids in layout.items()
    )


def layout_of(columns) -> dict:
    return {c.id: [t.id for t in c.tasks] for c in columns}


@pytest.fixture
def columns():
    return make_columns({"todo": ["a", "b", "c"], "doing": ["d"], "done": []})


@pytest.fixture
def remote():
    remote = InMemoryRemote()
    remote.seed_board(
        "Project Alpha",
        COLUMNS,
        {
            "Pending": [
                {"taskName": "Write docs", "employee": "Ana", "priority": "High",
                 "progress": 10, "startDate": "2024-07-15", "endDate": "2024-08-01"},
                {"taskName": "Set up CI", "employee": "Carlos", "priority": "Medium",
                 "progress": 0, "startDate": "2024-07-16", "endDate": None},
            ],
            "In progress": [
                {"taskName": "Build header", "employee": "Carlos", "priority": "Low",
                 "progress": 40, "startDate": "2024-07-18", "endDate": None},
            ],
        },
    )
    remote.seed_board("Marketing", COLUMNS)
    return remote


@pytest.fixture
def store():
    return BoardStore()


@pytest.fixture
def coordinator(store, remote):
    return SyncCoordinator(store, remote)


def board_with(board_id=1, name="Board", layout=None, loaded=True) -> Board:
    layout = layout if layout is not None else {"todo": ["a"], "done": []}
    return Board(id=board_id, name=name, columns=make_columns(layout), loaded=loaded)
