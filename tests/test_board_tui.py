"""Tests for the terminal board: actions stay responsive and drive the coordinator.

Remote calls must never be awaited inside an action handler; they run in
workers so the UI keeps redrawing while a request is pending.
"""

from __future__ import annotations

import inspect

import pytest

pytest.importorskip("textual")

from board_tui.app import TaskBoardApp, TaskCard, _progress_bar, _task_label
from taskboard.board.models import Priority, Task

PENDING, IN_PROGRESS = 2, 3


async def _app(coordinator) -> TaskBoardApp:
    await coordinator.load_boards()
    return TaskBoardApp(coordinator)


class TestActionsDoNotBlock:
    @pytest.mark.parametrize(
        "name",
        ["action_move_task", "action_reorder_task", "action_new_task", "action_delete_task",
         "action_next_board", "action_delete_board", "action_reload"],
    )
    def test_action_is_synchronous(self, name):
        assert not inspect.iscoroutinefunction(getattr(TaskBoardApp, name))

    def test_moves_go_through_drag_sessions(self):
        source = inspect.getsource(TaskBoardApp.action_move_task)
        assert "begin_drag" in source
        assert "run_worker" in source


class TestLabels:
    def test_progress_bar(self):
        assert _progress_bar(50) == "#####-----"
        assert _progress_bar(0, width=4) == "----"

    def test_task_label(self):
        label = _task_label(Task(id=1, title="Docs", priority=Priority.URGENT, progress=30))
        assert "Docs" in label
        assert "Urgent" in label
        assert "30%" in label


class TestInteractive:
    @pytest.mark.asyncio
    async def test_renders_loaded_board(self, coordinator):
        app = await _app(coordinator)
        async with app.run_test() as pilot:
            await pilot.pause()
            cards = list(app.query(TaskCard))
            assert [c.task.id for c in cards] == [6, 7, 8]
            assert app.sub_title == "Project Alpha"

    @pytest.mark.asyncio
    async def test_shift_right_moves_task(self, coordinator, remote, store):
        app = await _app(coordinator)
        async with app.run_test() as pilot:
            app.query(TaskCard).first().focus()
            await pilot.pause()
            await pilot.press("shift+right")
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert store.find_task(1, 6).column.id == IN_PROGRESS
            assert remote.get_task_record(6)["card_id"] == IN_PROGRESS
            assert any(card.task.id == 6 and card.col_index == 1 for card in app.query(TaskCard))

    @pytest.mark.asyncio
    async def test_failed_delete_puts_task_back(self, coordinator, remote, store):
        app = await _app(coordinator)
        async with app.run_test() as pilot:
            app.query(TaskCard).first().focus()
            await pilot.pause()
            remote.fail("delete_task")
            await pilot.press("x")
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert store.find_task(1, 6).column.id == PENDING
            assert coordinator.last_error is not None

    @pytest.mark.asyncio
    async def test_next_board_switches_and_loads(self, coordinator, store):
        app = await _app(coordinator)
        async with app.run_test() as pilot:
            await pilot.press("b")
            await app.workers.wait_for_complete()
            await pilot.pause()
            assert store.active_board_id == 9
            assert store.get_board(9).loaded
            assert app.sub_title == "Marketing"
