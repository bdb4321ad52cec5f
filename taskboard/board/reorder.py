"""Pure reordering of columns and tasks driven by drag gestures.

Every function takes the current arrangement (a tuple of ``Column``) and
returns a new one. Inputs are never mutated. When a gesture cannot be
resolved against the arrangement (stale ids, no-op moves) the input tuple is
returned as is, so callers can detect "no change" with ``is``.

Column membership is resolved by linear scan on every call; hover handlers
call these many times per gesture and the board is small enough that a
secondary index would only add state to keep in sync.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Hashable, Sequence, TypeVar

from .models import Column, DragElement, ElementKind

Columns = tuple[Column, ...]

T = TypeVar("T")


def array_move(items: Sequence[T], from_index: int, to_index: int) -> tuple[T, ...]:
    """Remove the item at ``from_index`` and reinsert it at ``to_index``."""
    moved = list(items)
    item = moved.pop(from_index)
    moved.insert(to_index, item)
    return tuple(moved)


def locate_task(columns: Sequence[Column], task_id: Hashable) -> tuple[int, int] | None:
    """Return ``(column_index, task_index)`` of a task, or None."""
    for ci, column in enumerate(columns):
        for ti, task in enumerate(column.tasks):
            if task.id == task_id:
                return ci, ti
    return None


def locate_column(columns: Sequence[Column], column_id: Hashable) -> int | None:
    for ci, column in enumerate(columns):
        if column.id == column_id:
            return ci
    return None


def move_column(columns: Columns, active_id: Hashable, over_id: Hashable) -> Columns:
    """Move the active column to the over column's position."""
    if active_id == over_id:
        return columns
    src = locate_column(columns, active_id)
    dst = locate_column(columns, over_id)
    if src is None or dst is None:
        return columns
    return array_move(columns, src, dst)


def move_task_to(
    columns: Columns,
    task_id: Hashable,
    column_id: Hashable,
    index: int | None = None,
) -> Columns:
    """Place a task in ``column_id`` at ``index`` (append when None).

    The index is clamped to the target length after removal. Moving a task
    onto its current position returns the input unchanged.
    """
    where = locate_task(columns, task_id)
    dst = locate_column(columns, column_id)
    if where is None or dst is None:
        return columns
    src, src_index = where
    task = columns[src].tasks[src_index]

    if src == dst:
        last = len(columns[src].tasks) - 1
        target = last if index is None else max(0, min(index, last))
        if target == src_index:
            return columns
        return _with_tasks(columns, src, array_move(columns[src].tasks, src_index, target))

    remaining = columns[src].tasks[:src_index] + columns[src].tasks[src_index + 1:]
    target_tasks = list(columns[dst].tasks)
    pos = len(target_tasks) if index is None else max(0, min(index, len(target_tasks)))
    target_tasks.insert(pos, replace(task, status=columns[dst].id))

    result = list(columns)
    result[src] = replace(columns[src], tasks=remaining)
    result[dst] = replace(columns[dst], tasks=tuple(target_tasks))
    return tuple(result)


def _with_tasks(columns: Columns, column_index: int, tasks: tuple) -> Columns:
    result = list(columns)
    result[column_index] = replace(columns[column_index], tasks=tasks)
    return tuple(result)


def _task_over_task(columns: Columns, active_id: Hashable, over_id: Hashable) -> Columns:
    active = locate_task(columns, active_id)
    over = locate_task(columns, over_id)
    if active is None or over is None:
        return columns
    over_column, over_index = over
    return move_task_to(columns, active_id, columns[over_column].id, over_index)


def _task_over_column(columns: Columns, active_id: Hashable, column_id: Hashable) -> Columns:
    active = locate_task(columns, active_id)
    dst = locate_column(columns, column_id)
    if active is None or dst is None or active[0] == dst:
        return columns
    return move_task_to(columns, active_id, column_id)


def hover(columns: Columns, active: DragElement, over: DragElement | None) -> Columns:
    """Arrangement while the active element hovers ``over``.

    Column moves are deferred to ``drop`` so intermediate pointer positions do
    not shuffle whole columns around.
    """
    if over is None or active == over:
        return columns
    if active.kind is ElementKind.TASK:
        if over.kind is ElementKind.TASK:
            return _task_over_task(columns, active.id, over.id)
        return _task_over_column(columns, active.id, over.id)
    return columns


def drop(columns: Columns, active: DragElement, over: DragElement | None) -> Columns:
    """Final arrangement when the active element is released over ``over``."""
    if over is None or active == over:
        return columns
    if active.kind is ElementKind.COLUMN:
        if over.kind is ElementKind.COLUMN:
            return move_column(columns, active.id, over.id)
        return columns
    return hover(columns, active, over)
