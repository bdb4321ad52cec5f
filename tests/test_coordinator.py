"""Tests for SyncCoordinator against the in-memory backend.

Seeded ids: board 1 "Project Alpha" with columns 2..5 (Pending, In progress,
In review, Done), tasks 6 and 7 in Pending, task 8 in In progress; board 9
"Marketing" with columns 10..13.
"""

import asyncio
from dataclasses import replace

import pytest

from taskboard.board.exceptions import LastBoardError, TaskNotFoundError
from taskboard.board.models import DEFAULT_COLUMNS, DragElement
from taskboard.board.store import BoardStore
from taskboard.remote.errors import RemoteError
from taskboard.remote.memory import InMemoryRemote
from taskboard.sync.coordinator import SyncCoordinator

from conftest import layout_of

PENDING, IN_PROGRESS, IN_REVIEW, DONE = 2, 3, 4, 5


async def _loaded(coordinator):
    await coordinator.load_boards()
    return coordinator.store.get_active_board()


async def _settle():
    for _ in range(5):
        await asyncio.sleep(0)


class TestLoad:
    @pytest.mark.asyncio
    async def test_loads_active_board_and_stubs(self, coordinator, store):
        board = await _loaded(coordinator)
        assert board.id == 1
        assert board.loaded
        assert [c.title for c in board.columns] == list(DEFAULT_COLUMNS)
        assert layout_of(board.columns) == {PENDING: [6, 7], IN_PROGRESS: [8], IN_REVIEW: [], DONE: []}
        assert store.get_board(9).loaded is False

    @pytest.mark.asyncio
    async def test_tasks_carry_record_fields(self, coordinator, store):
        await _loaded(coordinator)
        task = store.find_task(1, 6).task
        assert task.title == "Write docs"
        assert task.status == PENDING
        assert task.assignee.name == "Ana"

    @pytest.mark.asyncio
    async def test_task_fetch_failure_keeps_columns(self, coordinator, remote):
        remote.fail("list_tasks")
        board = await _loaded(coordinator)
        assert len(board.columns) == 4
        assert board.all_tasks() == []
        assert coordinator.last_error is not None

    @pytest.mark.asyncio
    async def test_column_fetch_failure(self, coordinator, remote):
        remote.fail("list_columns")
        board = await _loaded(coordinator)
        assert board.loaded
        assert board.columns == ()
        assert "list_columns failed" in str(coordinator.last_error)

    @pytest.mark.asyncio
    async def test_board_list_failure_raises(self, coordinator, remote, store):
        remote.fail("list_boards")
        with pytest.raises(RemoteError):
            await coordinator.load_boards()
        assert store.boards == ()

    @pytest.mark.asyncio
    async def test_select_board_loads_stub(self, coordinator, store):
        await _loaded(coordinator)
        board = await coordinator.select_board(9)
        assert store.active_board_id == 9
        assert board.loaded
        assert len(board.columns) == 4

    @pytest.mark.asyncio
    async def test_reload_keeps_columns_when_column_fetch_fails(self, coordinator, remote, store):
        await _loaded(coordinator)
        before = layout_of(store.get_board(1).columns)
        remote.fail("list_columns")
        board = await coordinator.load_board(1)
        assert layout_of(board.columns) == before
        assert coordinator.columns.remote_ref(1, DONE) == DONE

    @pytest.mark.asyncio
    async def test_reload_keeps_board_when_both_fetches_fail(self, coordinator, remote, store):
        await _loaded(coordinator)
        before = store.get_board(1)
        remote.fail("list_columns")
        remote.fail("list_tasks")
        assert await coordinator.load_board(1) is before
        assert store.get_board(1) is before

    @pytest.mark.asyncio
    async def test_load_discarded_after_switching_away(self, coordinator, remote, store):
        await _loaded(coordinator)
        before = store.get_board(1)
        gate = remote.pause("list_tasks")
        pending = asyncio.ensure_future(coordinator.load_board(1))
        await _settle()
        store.set_active(9)
        gate.set()
        await pending
        assert store.get_board(1) is before


class TestMoveTask:
    @pytest.mark.asyncio
    async def test_cross_column_move(self, coordinator, remote, store):
        await _loaded(coordinator)
        assert await coordinator.move_task(1, 6, IN_PROGRESS, 0) is True
        board = store.get_board(1)
        assert layout_of(board.columns)[PENDING] == [7]
        assert layout_of(board.columns)[IN_PROGRESS] == [6, 8]
        assert store.find_task(1, 6).task.status == IN_PROGRESS
        assert remote.get_task_record(6)["card_id"] == IN_PROGRESS

    @pytest.mark.asyncio
    async def test_failed_move_rolls_back(self, coordinator, remote, store):
        await _loaded(coordinator)
        before = layout_of(store.get_board(1).columns)
        remote.fail("update_task")
        assert await coordinator.move_task(1, 6, DONE) is False
        assert layout_of(store.get_board(1).columns) == before
        assert store.find_task(1, 6).task.status == PENDING
        assert coordinator.last_error.status == 500

    @pytest.mark.asyncio
    async def test_same_column_reorder_stays_local(self, coordinator, remote, store):
        await _loaded(coordinator)
        assert await coordinator.move_task(1, 6, PENDING, 1) is True
        assert layout_of(store.get_board(1).columns)[PENDING] == [7, 6]
        assert remote.calls_to("update_task") == []

    @pytest.mark.asyncio
    async def test_unknown_task(self, coordinator):
        await _loaded(coordinator)
        with pytest.raises(TaskNotFoundError):
            await coordinator.move_task(1, 404, DONE)

    @pytest.mark.asyncio
    async def test_stale_failure_does_not_undo_newer_move(self, coordinator, remote, store):
        await _loaded(coordinator)
        gate = remote.pause("update_task")
        remote.fail("update_task")
        first = asyncio.ensure_future(coordinator.move_task(1, 6, IN_PROGRESS))
        await _settle()
        second = asyncio.ensure_future(coordinator.move_task(1, 6, DONE))
        await _settle()
        gate.set()
        results = await asyncio.gather(first, second)
        assert results == [False, True]
        assert store.find_task(1, 6).column.id == DONE

    @pytest.mark.asyncio
    async def test_stacked_failures_return_to_remote_column(self, coordinator, remote, store):
        await _loaded(coordinator)
        gate = remote.pause("update_task")
        remote.fail("update_task", times=2)
        first = asyncio.ensure_future(coordinator.move_task(1, 6, IN_PROGRESS))
        await _settle()
        second = asyncio.ensure_future(coordinator.move_task(1, 6, DONE))
        await _settle()
        gate.set()
        assert await asyncio.gather(first, second) == [False, False]
        loc = store.find_task(1, 6)
        assert loc.column.id == PENDING
        assert loc.index == 0
        assert remote.get_task_record(6)["card_id"] == PENDING

    @pytest.mark.asyncio
    async def test_newer_failure_returns_to_confirmed_older_move(self, coordinator, remote, store):
        await _loaded(coordinator)
        first_gate = remote.pause("update_task")
        first = asyncio.ensure_future(coordinator.move_task(1, 6, IN_PROGRESS))
        await _settle()
        second_gate = remote.pause("update_task")
        second = asyncio.ensure_future(coordinator.move_task(1, 6, DONE))
        await _settle()
        first_gate.set()
        assert await first is True
        remote.fail("update_task")
        second_gate.set()
        assert await second is False
        assert store.find_task(1, 6).column.id == IN_PROGRESS
        assert remote.get_task_record(6)["card_id"] == IN_PROGRESS

    @pytest.mark.asyncio
    async def test_reorder_after_unconfirmed_move_is_sent(self, coordinator, remote, store):
        await _loaded(coordinator)
        gate = remote.pause("update_task")
        remote.fail("update_task")
        first = asyncio.ensure_future(coordinator.move_task(1, 6, IN_PROGRESS))
        await _settle()
        second = asyncio.ensure_future(coordinator.move_task(1, 6, IN_PROGRESS, 0))
        await _settle()
        gate.set()
        assert await asyncio.gather(first, second) == [False, True]
        assert store.find_task(1, 6).column.id == IN_PROGRESS
        assert remote.get_task_record(6)["card_id"] == IN_PROGRESS


class TestSaveTask:
    @pytest.mark.asyncio
    async def test_update_fields(self, coordinator, remote, store):
        await _loaded(coordinator)
        task = store.find_task(1, 6).task
        saved = await coordinator.save_task(1, replace(task, title="Write all docs", progress=50))
        assert saved.title == "Write all docs"
        assert store.find_task(1, 6).task.progress == 50
        assert remote.get_task_record(6)["taskName"] == "Write all docs"

    @pytest.mark.asyncio
    async def test_failed_update_keeps_edit(self, coordinator, remote, store):
        await _loaded(coordinator)
        task = store.find_task(1, 6).task
        remote.fail("update_task")
        with pytest.raises(RemoteError):
            await coordinator.save_task(1, replace(task, title="Edited"))
        assert store.find_task(1, 6).task.title == "Edited"
        assert coordinator.last_error is not None

    @pytest.mark.asyncio
    async def test_failed_column_change_reverts_position_only(self, coordinator, remote, store):
        await _loaded(coordinator)
        task = store.find_task(1, 6).task
        remote.fail("update_task")
        with pytest.raises(RemoteError):
            await coordinator.save_task(1, replace(task, title="Edited", status=DONE))
        loc = store.find_task(1, 6)
        assert loc.column.id == PENDING
        assert loc.index == 0
        assert loc.task.title == "Edited"

    @pytest.mark.asyncio
    async def test_older_confirmation_does_not_clobber_newer_edit(self, coordinator, remote, store):
        await _loaded(coordinator)
        task = store.find_task(1, 6).task
        older_gate = remote.pause("update_task")
        older = asyncio.ensure_future(coordinator.save_task(1, replace(task, title="First")))
        await _settle()
        newer_gate = remote.pause("update_task")
        newer = asyncio.ensure_future(
            coordinator.save_task(1, replace(task, title="Second", progress=70))
        )
        await _settle()
        newer_gate.set()
        await newer
        older_gate.set()
        await older
        saved = store.find_task(1, 6).task
        assert saved.title == "Second"
        assert saved.progress == 70

    @pytest.mark.asyncio
    async def test_update_moves_to_new_column(self, coordinator, remote, store):
        await _loaded(coordinator)
        task = store.find_task(1, 7).task
        await coordinator.save_task(1, replace(task, status=DONE))
        assert store.find_task(1, 7).column.id == DONE
        assert remote.get_task_record(7)["card_id"] == DONE

    @pytest.mark.asyncio
    async def test_update_unknown_task(self, coordinator, store):
        await _loaded(coordinator)
        task = store.find_task(1, 6).task
        with pytest.raises(TaskNotFoundError):
            await coordinator.save_task(1, replace(task, id=999))

    @pytest.mark.asyncio
    async def test_create_appends_with_server_id(self, coordinator, remote, store):
        await _loaded(coordinator)
        draft = coordinator.new_task(IN_REVIEW, title="Fresh", priority="High")
        assert store.find_task(1, None) is None
        created = await coordinator.save_task(1, draft)
        assert created.id == 14
        assert created.status == IN_REVIEW
        assert layout_of(store.get_board(1).columns)[IN_REVIEW] == [14]
        assert remote.get_task_record(14)["card_id"] == IN_REVIEW
        assert remote.get_task_record(14)["priority"] == "High"

    @pytest.mark.asyncio
    async def test_create_by_column_title(self, coordinator, store):
        await _loaded(coordinator)
        created = await coordinator.save_task(1, coordinator.new_task("Done", title="x"))
        assert created.status == DONE

    @pytest.mark.asyncio
    async def test_failed_create_leaves_store_alone(self, coordinator, remote, store):
        await _loaded(coordinator)
        before = store.get_board(1)
        remote.fail("create_task")
        with pytest.raises(RemoteError):
            await coordinator.save_task(1, coordinator.new_task(PENDING, title="x"))
        assert store.get_board(1) is before


class TestDeleteTask:
    @pytest.mark.asyncio
    async def test_delete(self, coordinator, remote, store):
        await _loaded(coordinator)
        await coordinator.delete_task(1, 7)
        assert store.find_task(1, 7) is None
        assert remote.get_task_record(7) is None

    @pytest.mark.asyncio
    async def test_remote_not_found_keeps_task_removed(self, coordinator, remote, store):
        await _loaded(coordinator)
        remote.fail("delete_task", RemoteError("No query results for model [Task]", status=404))
        await coordinator.delete_task(1, 7)
        assert store.find_task(1, 7) is None
        assert coordinator.last_error is None

    @pytest.mark.asyncio
    async def test_other_failure_restores_task(self, coordinator, remote, store):
        await _loaded(coordinator)
        remote.fail("delete_task")
        with pytest.raises(RemoteError):
            await coordinator.delete_task(1, 6)
        loc = store.find_task(1, 6)
        assert loc.column.id == PENDING
        assert loc.index == 0

    @pytest.mark.asyncio
    async def test_already_gone_locally(self, coordinator, remote):
        await _loaded(coordinator)
        await coordinator.delete_task(1, 404)
        assert remote.calls_to("delete_task") == []


class FlakyColumns(InMemoryRemote):
    """Fails creation of the third column."""

    async def create_column(self, board_id, title, order):
        if order == 3:
            self.calls.append(("create_column", (board_id, title, order)))
            raise RemoteError("Internal Server Error", status=500)
        return await super().create_column(board_id, title, order)


class TestBoards:
    @pytest.mark.asyncio
    async def test_create_board_with_default_columns(self, coordinator, remote, store):
        await _loaded(coordinator)
        board = await coordinator.create_board("Sprint 12")
        assert store.active_board_id == board.id
        assert [c.title for c in board.columns] == list(DEFAULT_COLUMNS)
        assert remote.calls_to("create_board") == [("Sprint 12", 4)]
        assert [args[2] for args in remote.calls_to("create_column")] == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_column_failure_gets_placeholder(self):
        remote = FlakyColumns()
        store = BoardStore()
        coordinator = SyncCoordinator(store, remote)
        board = await coordinator.create_board("Sprint")
        assert len(board.columns) == 4
        third = board.columns[2]
        assert str(third.id).startswith("temp-in-review-")
        assert [c.title for c in board.columns] == list(DEFAULT_COLUMNS)

        created = await coordinator.save_task(board.id, coordinator.new_task(third.id, title="x"))
        assert store.find_task(board.id, created.id).column.id == third.id

    @pytest.mark.asyncio
    async def test_create_board_failure(self, coordinator, remote, store):
        await _loaded(coordinator)
        remote.fail("create_board")
        with pytest.raises(RemoteError):
            await coordinator.create_board("x")
        assert [b.id for b in store.boards] == [1, 9]

    @pytest.mark.asyncio
    async def test_rename(self, coordinator, remote, store):
        await _loaded(coordinator)
        await coordinator.rename_board(1, "Alpha 2")
        assert store.get_board(1).name == "Alpha 2"
        assert (await remote.get_board(1))["name"] == "Alpha 2"

    @pytest.mark.asyncio
    async def test_failed_rename_keeps_new_name(self, coordinator, remote, store):
        await _loaded(coordinator)
        remote.fail("update_board")
        with pytest.raises(RemoteError):
            await coordinator.rename_board(1, "Alpha 2")
        assert store.get_board(1).name == "Alpha 2"

    @pytest.mark.asyncio
    async def test_delete_only_board_rejected(self):
        remote = InMemoryRemote()
        remote.seed_board("Solo", ["Todo"])
        store = BoardStore()
        coordinator = SyncCoordinator(store, remote)
        await coordinator.load_boards()
        before = store.boards
        with pytest.raises(LastBoardError):
            await coordinator.delete_board(1)
        assert store.boards is before
        assert remote.calls_to("delete_board") == []

    @pytest.mark.asyncio
    async def test_delete_active_board_loads_next(self, coordinator, store):
        await _loaded(coordinator)
        await coordinator.delete_board(1)
        assert [b.id for b in store.boards] == [9]
        assert store.active_board_id == 9
        assert store.get_board(9).loaded

    @pytest.mark.asyncio
    async def test_delete_already_deleted_remotely(self, coordinator, remote, store):
        await _loaded(coordinator)
        await remote.delete_board(9)
        await coordinator.delete_board(9)
        assert [b.id for b in store.boards] == [1]

    @pytest.mark.asyncio
    async def test_failed_delete_restores_board(self, coordinator, remote, store):
        await _loaded(coordinator)
        remote.fail("delete_board")
        with pytest.raises(RemoteError):
            await coordinator.delete_board(1)
        assert [b.id for b in store.boards] == [1, 9]
        assert store.active_board_id == 1


class TestTokens:
    @pytest.mark.asyncio
    async def test_settled_calls_leave_no_tokens(self, coordinator, remote, store):
        await _loaded(coordinator)
        await coordinator.move_task(1, 6, DONE)
        await coordinator.move_task(1, 7, PENDING, 0)
        task = store.find_task(1, 8).task
        await coordinator.save_task(1, replace(task, title="Renamed"))
        remote.fail("update_task")
        with pytest.raises(RemoteError):
            await coordinator.save_task(1, replace(task, title="Again"))
        await coordinator.delete_task(1, 7)
        await coordinator.rename_board(1, "Alpha 2")
        await coordinator.delete_board(9)
        assert coordinator._tokens == {}

    @pytest.mark.asyncio
    async def test_cancelled_drag_releases_token(self, coordinator):
        await _loaded(coordinator)
        session = coordinator.begin_drag(1, DragElement.task(6))
        session.hover(DragElement.column(DONE))
        await session.drop(None)
        assert coordinator._tokens == {}
