"""In-memory remote backend for tests and demos."""

from __future__ import annotations

import asyncio
import copy
from collections import defaultdict, deque

from .errors import RemoteError


class InMemoryRemote:
    """RemoteBackend backed by dicts. For tests and demos.

    ``fail(operation)`` queues an error for the next call(s) of an operation,
    ``pause(operation)`` makes calls of an operation wait until the returned
    event is set, which lets tests control completion order.
    """

    def __init__(self):
        self._boards: dict[int, dict] = {}
        self._columns: dict[int, dict] = {}
        self._tasks: dict[int, dict] = {}
        self._next_id = 1
        self._failures: dict[str, deque[RemoteError]] = defaultdict(deque)
        self._gates: dict[str, asyncio.Event] = {}
        self.calls: list[tuple[str, tuple]] = []

    # -- test hooks --

    def fail(self, operation: str, error: RemoteError | None = None, times: int = 1) -> None:
        err = error or RemoteError(f"{operation} failed", status=500)
        for _ in range(times):
            self._failures[operation].append(err)

    def pause(self, operation: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[operation] = gate
        return gate

    def calls_to(self, operation: str) -> list[tuple]:
        return [args for op, args in self.calls if op == operation]

    async def _enter(self, operation: str, *args) -> None:
        self.calls.append((operation, args))
        gate = self._gates.get(operation)
        if gate is not None:
            await gate.wait()
        if self._failures[operation]:
            raise self._failures[operation].popleft()

    def _new_id(self) -> int:
        new_id = self._next_id
        self._next_id += 1
        return new_id

    # -- seeding --

    def seed_board(self, name: str, columns: list[str], tasks: dict[str, list[dict]] | None = None) -> dict:
        """Create a board with columns and task records synchronously."""
        board = {"id": self._new_id(), "name": name}
        self._boards[board["id"]] = board
        by_title = {}
        for order, title in enumerate(columns, start=1):
            col = {"id": self._new_id(), "title": title, "order": order, "board_id": board["id"]}
            self._columns[col["id"]] = col
            by_title[title] = col["id"]
        for title, records in (tasks or {}).items():
            for record in records:
                task = {**record, "id": self._new_id(), "card_id": by_title[title], "boardId": board["id"]}
                self._tasks[task["id"]] = task
        return copy.deepcopy(board)

    # -- boards --

    async def list_boards(self) -> list[dict]:
        await self._enter("list_boards")
        return [copy.deepcopy(b) for b in self._boards.values()]

    async def get_board(self, board_id) -> dict:
        await self._enter("get_board", board_id)
        if board_id not in self._boards:
            raise RemoteError(f"Board not found: {board_id}", status=404)
        return copy.deepcopy(self._boards[board_id])

    async def create_board(self, name: str, num_cards: int = 4) -> dict:
        await self._enter("create_board", name, num_cards)
        board = {"id": self._new_id(), "name": name}
        self._boards[board["id"]] = board
        return copy.deepcopy(board)

    async def update_board(self, board_id, fields: dict) -> dict:
        await self._enter("update_board", board_id, fields)
        if board_id not in self._boards:
            raise RemoteError(f"Board not found: {board_id}", status=404)
        self._boards[board_id].update(fields)
        return copy.deepcopy(self._boards[board_id])

    async def delete_board(self, board_id) -> None:
        await self._enter("delete_board", board_id)
        if board_id not in self._boards:
            raise RemoteError("No query results for model [Board]", status=404)
        del self._boards[board_id]
        for cid in [c for c, col in self._columns.items() if col["board_id"] == board_id]:
            del self._columns[cid]
        for tid in [t for t, task in self._tasks.items() if task.get("boardId") == board_id]:
            del self._tasks[tid]

    # -- columns --

    async def list_columns(self, board_id) -> list[dict]:
        await self._enter("list_columns", board_id)
        cols = [c for c in self._columns.values() if c["board_id"] == board_id]
        cols.sort(key=lambda c: c["order"])
        return copy.deepcopy(cols)

    async def create_column(self, board_id, title: str, order: int) -> dict:
        await self._enter("create_column", board_id, title, order)
        if board_id not in self._boards:
            raise RemoteError(f"Board not found: {board_id}", status=404)
        col = {"id": self._new_id(), "title": title, "order": order, "board_id": board_id}
        self._columns[col["id"]] = col
        return copy.deepcopy(col)

    async def update_column(self, column_id, fields: dict) -> dict:
        await self._enter("update_column", column_id, fields)
        if column_id not in self._columns:
            raise RemoteError(f"Card not found: {column_id}", status=404)
        self._columns[column_id].update(fields)
        return copy.deepcopy(self._columns[column_id])

    async def delete_column(self, column_id) -> None:
        await self._enter("delete_column", column_id)
        if column_id not in self._columns:
            raise RemoteError(f"Card not found: {column_id}", status=404)
        del self._columns[column_id]

    # -- tasks --

    async def list_tasks(self, board_id) -> list[dict]:
        await self._enter("list_tasks", board_id)
        return [copy.deepcopy(t) for t in self._tasks.values() if t.get("boardId") == board_id]

    async def create_task(self, board_id, payload: dict) -> dict:
        await self._enter("create_task", board_id, payload)
        task = {**payload, "id": self._new_id(), "boardId": board_id}
        self._tasks[task["id"]] = task
        return copy.deepcopy(task)

    async def update_task(self, task_id, payload: dict) -> dict:
        await self._enter("update_task", task_id, payload)
        if task_id not in self._tasks:
            raise RemoteError(f"Task not found: {task_id}", status=404)
        board_id = self._tasks[task_id].get("boardId")
        self._tasks[task_id] = {**payload, "id": task_id, "boardId": board_id}
        return copy.deepcopy(self._tasks[task_id])

    async def delete_task(self, task_id) -> None:
        await self._enter("delete_task", task_id)
        if task_id not in self._tasks:
            raise RemoteError(f"Task not found: {task_id}", status=404)
        del self._tasks[task_id]

    def get_task_record(self, task_id) -> dict | None:
        record = self._tasks.get(task_id)
        return copy.deepcopy(record) if record is not None else None
