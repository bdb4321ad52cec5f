"""In-memory board store: the single source of truth for loaded boards."""

from __future__ import annotations

import logging
from typing import Callable, Hashable, Iterable

from .exceptions import LastBoardError
from .models import Board, TaskLocation

logger = logging.getLogger(__name__)

Listener = Callable[["BoardStore"], None]


class BoardStore:
    """Holds boards as an immutable tuple and swaps it on every change.

    Writers go through ``replace_board`` and friends, which build a new tuple,
    so a reader holding a previous snapshot never sees a half-applied update.
    """

    def __init__(self, boards: Iterable[Board] = (), active_board_id: Hashable | None = None):
        self._boards: tuple[Board, ...] = tuple(boards)
        self._active_board_id = active_board_id
        if self._active_board_id is None and self._boards:
            self._active_board_id = self._boards[0].id
        self._listeners: list[Listener] = []

    # -- read access --

    @property
    def boards(self) -> tuple[Board, ...]:
        return self._boards

    @property
    def active_board_id(self) -> Hashable | None:
        return self._active_board_id

    def get_active_board(self) -> Board | None:
        if self._active_board_id is None:
            return None
        return self.get_board(self._active_board_id)

    def get_board(self, board_id: Hashable) -> Board | None:
        for b in self._boards:
            if b.id == board_id:
                return b
        return None

    def find_task(self, board_id: Hashable, task_id: Hashable) -> TaskLocation | None:
        board = self.get_board(board_id)
        if board is None:
            return None
        return board.find_task(task_id)

    # -- writes --

    def replace_board(self, board_id: Hashable, updater: Callable[[Board], Board]) -> Board | None:
        """Apply ``updater`` to one board. Unknown ids are a silent no-op."""
        for i, board in enumerate(self._boards):
            if board.id == board_id:
                updated = updater(board)
                if updated is board:
                    return board
                self._boards = self._boards[:i] + (updated,) + self._boards[i + 1:]
                self._notify()
                return updated
        return None

    def set_boards(self, boards: Iterable[Board]) -> None:
        self._boards = tuple(boards)
        if self.get_active_board() is None:
            self._active_board_id = self._boards[0].id if self._boards else None
        self._notify()

    def add_board(self, board: Board, activate: bool = True) -> None:
        self._boards = self._boards + (board,)
        if activate or self._active_board_id is None:
            self._active_board_id = board.id
        self._notify()

    def insert_board(self, index: int, board: Board) -> None:
        boards = list(self._boards)
        boards.insert(index, board)
        self._boards = tuple(boards)
        self._notify()

    def remove_board(self, board_id: Hashable) -> tuple[int, Board] | None:
        """Remove a board, returning ``(index, board)`` for callers that may restore it.

        Raises LastBoardError when it is the only board; nothing changes then.
        """
        for i, board in enumerate(self._boards):
            if board.id != board_id:
                continue
            if len(self._boards) == 1:
                raise LastBoardError(board_id)
            self._boards = self._boards[:i] + self._boards[i + 1:]
            if self._active_board_id == board_id:
                self._active_board_id = self._boards[0].id
            self._notify()
            return i, board
        return None

    def set_active(self, board_id: Hashable) -> bool:
        if self.get_board(board_id) is None:
            return False
        if board_id != self._active_board_id:
            self._active_board_id = board_id
            self._notify()
        return True

    # -- change notification --

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Board store listener failed")
