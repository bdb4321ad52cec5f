"""Drag gestures: hover/drop/cancel on top of the reorder functions."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Callable, Hashable

from ..board import reorder
from ..board.models import DragElement, ElementKind, TaskLocation

if TYPE_CHECKING:
    from .coordinator import SyncCoordinator


class DragSession:
    """One drag gesture, from pick-up to drop.

    The pre-gesture position of the dragged task is captured on creation;
    hover updates are applied to the store right away, and the remote call
    happens once, on drop. A failed drop (or ``cancel``) puts the task back
    where the gesture started.
    """

    def __init__(self, coordinator: SyncCoordinator, board_id: Hashable, active: DragElement):
        self._coordinator = coordinator
        self.board_id = board_id
        self.active = active
        self.finished = False
        self.origin: TaskLocation | None = None
        self._token: int | None = None
        self._last_over: DragElement | None = None

        board = coordinator.store.get_board(board_id)
        if board is not None and active.kind is ElementKind.TASK:
            self.origin = board.find_task(active.id)
            if self.origin is not None:
                self._token = coordinator._issue(("task", board_id, active.id))

    def _apply(self, transform: Callable[[reorder.Columns], reorder.Columns]) -> bool:
        changed = False

        def _update(board):
            nonlocal changed
            columns = transform(board.columns)
            if columns is board.columns:
                return board
            changed = True
            return replace(board, columns=columns)

        self._coordinator.store.replace_board(self.board_id, _update)
        return changed

    def hover(self, over: DragElement | None) -> bool:
        """Reflect the current hover target. Returns True if anything moved.

        Only a change of target is applied; repeated ticks over the same
        target leave the arrangement alone.
        """
        if self.finished or over is None or over == self._last_over:
            return False
        self._last_over = over
        return self._apply(lambda cols: reorder.hover(cols, self.active, over))

    async def drop(self, over: DragElement | None) -> bool:
        """Finish the gesture over ``over`` (None: released outside any target).

        A drop over the last hovered task target commits the previewed
        arrangement as is. Returns False when the move ended up rolled back.
        """
        if self.finished:
            raise RuntimeError("Drag session already finished")
        if over is None:
            self.cancel()
            return False
        if not (self.active.kind is ElementKind.TASK and over == self._last_over):
            self._apply(lambda cols: reorder.drop(cols, self.active, over))
        return await self.commit()

    async def commit(self) -> bool:
        """Send the current arrangement of the dragged task to the remote."""
        self.finished = True
        if self.origin is None or self._token is None:
            return True
        return await self._coordinator._sync_move(
            self.board_id,
            self.active.id,
            self.origin.column.id,
            self.origin.index,
            self._token,
        )

    def cancel(self) -> None:
        """Abandon the gesture and put the dragged task back."""
        self.finished = True
        if self.origin is None or self._token is None:
            return
        key = ("task", self.board_id, self.active.id)
        if not self._coordinator._is_current(key, self._token):
            return
        loc = self._coordinator.store.find_task(self.board_id, self.active.id)
        if loc is not None and (loc.column.id, loc.index) != (self.origin.column.id, self.origin.index):
            self._coordinator._restore_position(
                self.board_id, self.active.id, self.origin.column.id, self.origin.index
            )
        self._coordinator._release(key, self._token)
