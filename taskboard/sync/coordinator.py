"""Optimistic synchronization between the board store and the remote backend.

Every user mutation follows the same shape:

    idle -> optimistically applied -> remote pending -> confirmed | reconciled failure

Structural mutations (moving a task, deleting a task or board) are put back
when the remote call fails. Field edits (task update, board rename) stay in
place and the error is surfaced, so the user's input is not lost. Creations
never touch the store before the remote has assigned an id.

Each optimistic apply takes a sequence token for the entity it touches. A
confirmation or rollback whose token is no longer the latest one for that
entity is dropped, so a slow response cannot clobber a newer edit.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Hashable

from ..board import reorder
from ..board.exceptions import BoardNotFoundError, TaskBoardError, TaskNotFoundError
from ..board.models import Assignee, Board, Column, DragElement, Priority, Task
from ..board.store import BoardStore
from ..config import Config
from ..remote.errors import RemoteError
from ..remote.interface import RemoteBackend
from ..remote.payloads import (
    column_title,
    merge_record,
    record_column_ref,
    task_from_record,
    task_to_payload,
)
from .columns import ColumnRef, ColumnRefMap
from .drag import DragSession

logger = logging.getLogger(__name__)


def placeholder_column_id(title: str) -> str:
    slug = "-".join(title.lower().split()) or "column"
    return f"temp-{slug}-{uuid.uuid4().hex[:8]}"


# ---------------------------------------------------------------------------
# Pure board transformations
# ---------------------------------------------------------------------------

def _match_column(board: Board, column: Any) -> Column | None:
    """Column by id, then by title."""
    found = board.get_column(column)
    if found is not None:
        return found
    for c in board.columns:
        if c.title == column:
            return c
    return None


def _resolve_column(board: Board, column: Any) -> Column | None:
    """Like _match_column, falling back to the first column."""
    if not board.columns:
        return None
    return _match_column(board, column) or board.columns[0]


def _insert_task(board: Board, column_id: Hashable, task: Task, index: int | None = None) -> Board:
    target = _resolve_column(board, column_id)
    if target is None:
        return board
    columns = []
    for c in board.columns:
        if c.id == target.id:
            tasks = list(c.tasks)
            pos = len(tasks) if index is None else max(0, min(index, len(tasks)))
            tasks.insert(pos, task)
            c = replace(c, tasks=tuple(tasks))
        columns.append(c)
    return replace(board, columns=tuple(columns))


def _remove_task(board: Board, task_id: Hashable) -> Board:
    if board.find_task(task_id) is None:
        return board
    return replace(
        board,
        columns=tuple(
            replace(c, tasks=tuple(t for t in c.tasks if t.id != task_id))
            for c in board.columns
        ),
    )


def _swap_task(board: Board, task: Task) -> Board:
    """Replace the task with the same id in place, keeping its column."""
    loc = board.find_task(task.id)
    if loc is None or loc.task == task:
        return board
    columns = []
    for c in board.columns:
        if c.id == loc.column.id:
            tasks = list(c.tasks)
            tasks[loc.index] = task
            c = replace(c, tasks=tuple(tasks))
        columns.append(c)
    return replace(board, columns=tuple(columns))


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------

class SyncCoordinator:
    """Runs board mutations against a BoardStore and a RemoteBackend."""

    def __init__(self, store: BoardStore, remote: RemoteBackend, config: Config | None = None):
        self.store = store
        self.remote = remote
        self.config = config or Config()
        self.columns = ColumnRefMap()
        self.last_error: RemoteError | None = None
        self._seq = itertools.count(1)
        self._tokens: dict[tuple, int] = {}
        # last location the remote is known to hold, per ("task", board, id)
        self._confirmed: dict[tuple, tuple[Hashable, int]] = {}

    # -- bookkeeping --

    def _issue(self, key: tuple) -> int:
        token = next(self._seq)
        self._tokens[key] = token
        return token

    def _is_current(self, key: tuple, token: int) -> bool:
        return self._tokens.get(key) == token

    def _release(self, key: tuple, token: int) -> None:
        """Forget a settled token unless a newer one replaced it."""
        if self._tokens.get(key) == token:
            del self._tokens[key]

    def _confirm(self, board_id: Hashable, task_id: Hashable, column_id: Hashable, index: int) -> None:
        self._confirmed[("task", board_id, task_id)] = (column_id, index)

    def _rollback_target(
        self, board_id: Hashable, task_id: Hashable, origin_column: Hashable, origin_index: int
    ) -> tuple[Hashable, int]:
        """Where a failed move puts the task back.

        The gesture's origin, unless the remote is known to hold the task in
        another column; that happens when an earlier move to the origin
        column never got confirmed.
        """
        confirmed = self._confirmed.get(("task", board_id, task_id))
        if confirmed is None or confirmed[0] == origin_column:
            return origin_column, origin_index
        return confirmed

    def _report(self, error: RemoteError, action: str) -> None:
        logger.error("%s failed: %s", action, error)
        self.last_error = error

    def clear_error(self) -> None:
        self.last_error = None

    def _require_board(self, board_id: Hashable) -> Board:
        board = self.store.get_board(board_id)
        if board is None:
            raise BoardNotFoundError(board_id)
        return board

    def _remote_ref(self, board_id: Hashable, column_id: Hashable) -> Any:
        board = self.store.get_board(board_id)
        if board is not None:
            self.columns.adopt(board)
        ref = self.columns.remote_ref(board_id, column_id)
        return column_id if ref is None else ref

    # -- loading --

    async def load_boards(self) -> tuple[Board, ...]:
        """Fetch the board list as name-only stubs and load the active one."""
        try:
            records = await self.remote.list_boards()
        except RemoteError as e:
            self._report(e, "Loading boards")
            raise
        existing = {b.id: b for b in self.store.boards}
        boards = []
        for record in records or []:
            if not isinstance(record, dict) or record.get("id") is None:
                continue
            known = existing.get(record["id"])
            name = record.get("name") or ""
            if known is not None:
                boards.append(replace(known, name=name or known.name))
            else:
                boards.append(Board(id=record["id"], name=name))
        self.store.set_boards(boards)
        active = self.store.get_active_board()
        if active is not None and not active.loaded:
            await self.load_board(active.id)
        return self.store.boards

    async def load_board(self, board_id: Hashable) -> Board | None:
        """Fetch columns and tasks of one board concurrently.

        Either fetch may fail on its own; the board is then populated with
        whatever did arrive. A response that lost the race to a newer load, or
        that arrives after the user switched away from the board, is dropped.
        """
        self._require_board(board_id)
        key = ("load", board_id)
        token = self._issue(key)
        was_active = self.store.active_board_id == board_id

        column_records, task_records = await asyncio.gather(
            self.remote.list_columns(board_id),
            self.remote.list_tasks(board_id),
            return_exceptions=True,
        )

        if not self._is_current(key, token) or (
            was_active and self.store.active_board_id != board_id
        ):
            logger.debug("Discarding stale load of board %s", board_id)
            self._release(key, token)
            return self.store.get_board(board_id)
        self._release(key, token)

        columns_failed = isinstance(column_records, RemoteError)
        tasks_failed = isinstance(task_records, RemoteError)
        column_records = self._settled(column_records, f"Loading columns of board {board_id}")
        task_records = self._settled(task_records, f"Loading tasks of board {board_id}")

        known = self.store.get_board(board_id)
        if columns_failed and known is not None and known.columns:
            logger.warning("Keeping the %d known columns of board %s", len(known.columns), board_id)
            self.columns.adopt(known)
            if tasks_failed:
                return known
            columns = [replace(c, tasks=()) for c in known.columns]
        else:
            refs = []
            columns = []
            for record in column_records:
                if not isinstance(record, dict) or record.get("id") is None:
                    continue
                title = column_title(record)
                refs.append(ColumnRef(local_id=record["id"], remote_ref=record["id"], title=title))
                columns.append(Column(id=record["id"], title=title))
            self.columns.replace(board_id, refs)

        buckets: dict[Hashable, list[Task]] = {c.id: [] for c in columns}
        for record in task_records:
            if not isinstance(record, dict):
                continue
            local = self.columns.local_id(board_id, record_column_ref(record))
            if local not in buckets:
                logger.warning(
                    "Task %s points at unknown column %r, skipping",
                    record.get("id"), record_column_ref(record),
                )
                continue
            buckets[local].append(task_from_record(record, status=local))

        loaded = tuple(replace(c, tasks=tuple(buckets[c.id])) for c in columns)
        for column in loaded:
            for index, task in enumerate(column.tasks):
                self._confirm(board_id, task.id, column.id, index)
        return self.store.replace_board(
            board_id, lambda b: replace(b, columns=loaded, loaded=True)
        )

    def _settled(self, result: Any, action: str) -> list:
        if isinstance(result, RemoteError):
            self._report(result, action)
            return []
        if isinstance(result, BaseException):
            raise result
        return result if isinstance(result, list) else []

    async def select_board(self, board_id: Hashable) -> Board | None:
        """Make a board active, loading it first if it is still a stub."""
        board = self._require_board(board_id)
        self.store.set_active(board_id)
        if not board.loaded:
            return await self.load_board(board_id)
        return board

    # -- tasks --

    def new_task(self, column_id: Hashable, **fields) -> Task:
        """An unsaved draft for ``column_id``. Never written to the store."""
        fields.setdefault("title", "")
        fields.setdefault("priority", Priority.MEDIUM)
        fields.setdefault("assignee", Assignee())
        fields.setdefault("created_at", datetime.now())
        return Task(id=None, status=column_id, **fields)

    async def save_task(self, board_id: Hashable, task: Task) -> Task:
        """Create a draft or update a persisted task."""
        if task.id is None:
            return await self._create_task(board_id, task)
        return await self._update_task(board_id, task)

    async def _create_task(self, board_id: Hashable, draft: Task) -> Task:
        board = self._require_board(board_id)
        target = _resolve_column(board, draft.status)
        if target is None:
            raise TaskBoardError(f"Board {board_id} has no columns to add a task to")
        payload = task_to_payload(draft, self._remote_ref(board_id, target.id))

        try:
            record = await self.remote.create_task(board_id, payload)
        except RemoteError as e:
            self._report(e, "Creating task")
            raise
        if not isinstance(record, dict) or record.get("id") is None:
            error = RemoteError("Create task response carried no id", data=record)
            self._report(error, "Creating task")
            raise error

        server = task_from_record({**payload, **record}, status=target.id)
        created = replace(
            server,
            assignee=replace(draft.assignee, name=server.assignee.name),
            created_at=draft.created_at,
        )
        self.store.replace_board(board_id, lambda b: _insert_task(b, target.id, created))
        loc = self.store.find_task(board_id, created.id)
        if loc is None:
            return created
        self._confirm(board_id, created.id, loc.column.id, loc.index)
        return loc.task

    async def _update_task(self, board_id: Hashable, edited: Task) -> Task:
        board = self._require_board(board_id)
        origin = board.find_task(edited.id)
        if origin is None:
            raise TaskNotFoundError(board_id, edited.id)
        target = _match_column(board, edited.status) or origin.column
        key = ("task", board_id, edited.id)
        token = self._issue(key)

        def _apply(b: Board) -> Board:
            if target.id != origin.column.id:
                b = replace(b, columns=reorder.move_task_to(b.columns, edited.id, target.id))
            return _swap_task(b, replace(edited, status=target.id))

        self.store.replace_board(board_id, _apply)
        current = self.store.find_task(board_id, edited.id)
        applied = current.task if current is not None else edited
        sent_index = current.index if current is not None else 0
        payload = task_to_payload(applied, self._remote_ref(board_id, target.id))

        try:
            record = await self.remote.update_task(edited.id, payload)
        except RemoteError as e:
            self._report(e, f"Updating task {edited.id}")
            # the edited fields stay; only a column change is put back
            if self._is_current(key, token):
                column_id, index = self._rollback_target(
                    board_id, edited.id, origin.column.id, origin.index
                )
                if column_id != target.id:
                    self._restore_position(board_id, edited.id, column_id, index)
            self._release(key, token)
            raise

        self._confirm(board_id, edited.id, target.id, sent_index)
        if self._is_current(key, token):
            self._merge_confirmed(board_id, edited.id, record)
        else:
            logger.debug("Ignoring stale confirmation for task %s", edited.id)
        self._release(key, token)
        loc = self.store.find_task(board_id, edited.id)
        return loc.task if loc is not None else applied

    def _merge_confirmed(self, board_id: Hashable, task_id: Hashable, record: Any) -> None:
        def _merge(b: Board) -> Board:
            loc = b.find_task(task_id)
            if loc is None:
                return b
            return _swap_task(b, merge_record(loc.task, record))

        self.store.replace_board(board_id, _merge)

    def _restore_position(
        self, board_id: Hashable, task_id: Hashable, column_id: Hashable, index: int
    ) -> None:
        logger.warning("Rolling back task %s to column %r at %d", task_id, column_id, index)
        self.store.replace_board(
            board_id,
            lambda b: replace(b, columns=reorder.move_task_to(b.columns, task_id, column_id, index)),
        )

    async def delete_task(self, board_id: Hashable, task_id: Hashable) -> None:
        """Remove a task now and delete it remotely.

        A remote "not found" means both sides already agree. Any other failure
        puts the task back where it was and re-raises.
        """
        self._require_board(board_id)
        origin = self.store.find_task(board_id, task_id)
        if origin is None:
            logger.debug("Task %s already gone from board %s", task_id, board_id)
            return
        key = ("task", board_id, task_id)
        token = self._issue(key)
        self.store.replace_board(board_id, lambda b: _remove_task(b, task_id))

        try:
            await self.remote.delete_task(task_id)
        except RemoteError as e:
            if not e.is_not_found:
                self._report(e, f"Deleting task {task_id}")
                if self._is_current(key, token):
                    self.store.replace_board(
                        board_id,
                        lambda b: _insert_task(b, origin.column.id, origin.task, origin.index),
                    )
                self._release(key, token)
                raise
            logger.warning("Task %s was already deleted remotely: %s", task_id, e)

        self._confirmed.pop(key, None)
        self._release(key, token)

    # -- moves --

    def begin_drag(self, board_id: Hashable, active: DragElement) -> DragSession:
        """Start a drag gesture on the given board."""
        self._require_board(board_id)
        return DragSession(self, board_id, active)

    async def move_task(
        self,
        board_id: Hashable,
        task_id: Hashable,
        column_id: Hashable,
        index: int | None = None,
    ) -> bool:
        """Explicit move request. Returns False when the move was rolled back."""
        session = self.begin_drag(board_id, DragElement.task(task_id))
        if session.origin is None:
            raise TaskNotFoundError(board_id, task_id)
        self.store.replace_board(
            board_id,
            lambda b: replace(b, columns=reorder.move_task_to(b.columns, task_id, column_id, index)),
        )
        return await session.commit()

    async def _sync_move(
        self,
        board_id: Hashable,
        task_id: Hashable,
        origin_column: Hashable,
        origin_index: int,
        token: int,
    ) -> bool:
        key = ("task", board_id, task_id)
        loc = self.store.find_task(board_id, task_id)
        confirmed = self._confirmed.get(key)
        if loc is None or (
            loc.column.id == origin_column and (confirmed is None or confirmed[0] == origin_column)
        ):
            # order inside a column has no remote representation
            self._release(key, token)
            return True

        payload = task_to_payload(loc.task, self._remote_ref(board_id, loc.column.id))
        try:
            record = await self.remote.update_task(task_id, payload)
        except RemoteError as e:
            self._report(e, f"Moving task {task_id}")
            if self._is_current(key, token):
                column_id, index = self._rollback_target(board_id, task_id, origin_column, origin_index)
                self._restore_position(board_id, task_id, column_id, index)
            else:
                logger.debug("Skipping stale rollback for task %s", task_id)
            self._release(key, token)
            return False

        self._confirm(board_id, task_id, loc.column.id, loc.index)
        if self._is_current(key, token):
            self._merge_confirmed(board_id, task_id, record)
        self._release(key, token)
        return True

    # -- boards --

    async def create_board(self, name: str) -> Board:
        """Create a board remotely, then its default columns one by one.

        A column that fails to be created gets a local placeholder id so the
        board stays usable.
        """
        try:
            record = await self.remote.create_board(name, self.config.num_cards)
        except RemoteError as e:
            self._report(e, "Creating board")
            raise
        if not isinstance(record, dict) or record.get("id") is None:
            error = RemoteError("Create board response carried no id", data=record)
            self._report(error, "Creating board")
            raise error
        board_id = record["id"]

        refs: list[ColumnRef] = []
        columns: list[Column] = []
        for order, title in enumerate(self.config.default_columns, start=1):
            try:
                created = await self.remote.create_column(board_id, title, order)
                if not isinstance(created, dict) or created.get("id") is None:
                    raise RemoteError("Create column response carried no id", data=created)
                local_id = remote_ref = created["id"]
                title = created.get("title") or title
            except RemoteError as e:
                logger.warning("Creating column %r failed, using a placeholder: %s", title, e)
                local_id = remote_ref = placeholder_column_id(title)
            refs.append(ColumnRef(local_id=local_id, remote_ref=remote_ref, title=title))
            columns.append(Column(id=local_id, title=title))

        self.columns.replace(board_id, refs)
        board = Board(
            id=board_id,
            name=record.get("name") or name,
            columns=tuple(columns),
            loaded=True,
        )
        self.store.add_board(board, activate=True)
        return board

    async def rename_board(self, board_id: Hashable, name: str) -> Board:
        """Rename now; a remote failure is raised but the new name stays."""
        self._require_board(board_id)
        self.store.replace_board(board_id, lambda b: replace(b, name=name))
        try:
            await self.remote.update_board(board_id, {"name": name})
        except RemoteError as e:
            self._report(e, f"Renaming board {board_id}")
            raise
        return self.store.get_board(board_id)

    async def delete_board(self, board_id: Hashable) -> None:
        """Delete a board and fall back to another active board.

        Deleting the only board raises LastBoardError before anything changes.
        """
        self._require_board(board_id)
        was_active = self.store.active_board_id == board_id
        removed = self.store.remove_board(board_id)
        if removed is None:
            return
        index, board = removed
        key = ("board", board_id)
        token = self._issue(key)

        try:
            await self.remote.delete_board(board_id)
        except RemoteError as e:
            if not e.is_not_found:
                self._report(e, f"Deleting board {board_id}")
                if self._is_current(key, token) and self.store.get_board(board_id) is None:
                    self.store.insert_board(index, board)
                    if was_active:
                        self.store.set_active(board_id)
                self._release(key, token)
                raise
            logger.warning("Board %s was already deleted remotely: %s", board_id, e)

        self._release(key, token)
        self.columns.forget(board_id)
        self._confirmed = {k: v for k, v in self._confirmed.items() if k[1] != board_id}
        active = self.store.get_active_board()
        if was_active and active is not None and not active.loaded:
            await self.load_board(active.id)
