"""Mapping between local column ids and remote column ("card") references.

The two namespaces are filled side by side when columns are loaded or
created, instead of being re-derived by heuristics on every mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Hashable

from ..board.models import Board

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ColumnRef:
    local_id: Hashable
    remote_ref: Any
    title: str


def _same(a: Any, b: Any) -> bool:
    # remote ids may come back as ints or numeric strings
    return a == b or (a is not None and b is not None and str(a) == str(b))


class ColumnRefMap:
    """Per-board table of ColumnRef entries, in column creation order."""

    def __init__(self):
        self._refs: dict[Hashable, list[ColumnRef]] = {}

    def register(self, board_id: Hashable, local_id: Hashable, remote_ref: Any, title: str) -> None:
        refs = self._refs.setdefault(board_id, [])
        refs[:] = [r for r in refs if r.local_id != local_id]
        refs.append(ColumnRef(local_id=local_id, remote_ref=remote_ref, title=title))

    def replace(self, board_id: Hashable, refs: list[ColumnRef]) -> None:
        self._refs[board_id] = list(refs)

    def forget(self, board_id: Hashable) -> None:
        self._refs.pop(board_id, None)

    def refs(self, board_id: Hashable) -> list[ColumnRef]:
        return list(self._refs.get(board_id, []))

    def adopt(self, board: Board) -> None:
        """Register identity entries for columns of ``board`` not yet mapped."""
        known = {r.local_id for r in self._refs.get(board.id, [])}
        for column in board.columns:
            if column.id not in known:
                self.register(board.id, column.id, column.id, column.title)

    def remote_ref(self, board_id: Hashable, column: Any) -> Any:
        """Resolve a column id (or title) to its remote reference.

        Tries the local id, then the title, then falls back to the first
        column of the board. None only when the board has no columns mapped.
        """
        refs = self._refs.get(board_id, [])
        if not refs:
            return None
        for r in refs:
            if _same(r.local_id, column):
                return r.remote_ref
        if isinstance(column, str):
            for r in refs:
                if r.title == column:
                    return r.remote_ref
        logger.warning(
            "Column %r not found on board %r, using first column %r",
            column, board_id, refs[0].title,
        )
        return refs[0].remote_ref

    def local_id(self, board_id: Hashable, remote_ref: Any) -> Hashable | None:
        """Resolve a remote reference (or column title) back to the local id."""
        refs = self._refs.get(board_id, [])
        for r in refs:
            if _same(r.remote_ref, remote_ref):
                return r.local_id
        for r in refs:
            if r.title == remote_ref:
                return r.local_id
        return None
