"""CLI entry point for the task board.

Usage:
  python -m taskboard boards
  python -m taskboard show [board_id]
  python -m taskboard add <column> <title> [--board ID] [--assignee NAME] [--allocator NAME]
                          [--priority LEVEL] [--deadline YYYY-MM-DD]
  python -m taskboard move <task_id> <column> [--board ID] [--index N]
  python -m taskboard delete-task <task_id> [--board ID]
  python -m taskboard new-board <name>
  python -m taskboard rename-board <board_id> <name>
  python -m taskboard delete-board <board_id>
  python -m taskboard tui

Global options: --config PATH, --api-url URL, --mock, -v
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .board.exceptions import TaskBoardError
from .board.models import Assignee, Board, Priority
from .board.store import BoardStore
from .config import Config
from .remote.errors import RemoteError
from .remote.memory import InMemoryRemote
from .remote.payloads import parse_date
from .sync.coordinator import SyncCoordinator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskboard", description="Task board client")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--api-url", default=None, help="Board API base URL")
    parser.add_argument("--mock", action="store_true", help="Use an in-memory demo backend")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("boards", help="List boards")

    show_parser = subparsers.add_parser("show", help="Show a board")
    show_parser.add_argument("board_id", nargs="?", default=None)

    add_parser = subparsers.add_parser("add", help="Add a task to a column")
    add_parser.add_argument("column", help="Column id or title")
    add_parser.add_argument("title")
    add_parser.add_argument("--board", default=None)
    add_parser.add_argument("--description", default="")
    add_parser.add_argument("--assignee", default="")
    add_parser.add_argument("--allocator", default="")
    add_parser.add_argument("--priority", default=Priority.MEDIUM.value)
    add_parser.add_argument("--deadline", default=None, help="YYYY-MM-DD")

    move_parser = subparsers.add_parser("move", help="Move a task to a column")
    move_parser.add_argument("task_id")
    move_parser.add_argument("column", help="Column id or title")
    move_parser.add_argument("--board", default=None)
    move_parser.add_argument("--index", type=int, default=None)

    delete_parser = subparsers.add_parser("delete-task", help="Delete a task")
    delete_parser.add_argument("task_id")
    delete_parser.add_argument("--board", default=None)

    new_board = subparsers.add_parser("new-board", help="Create a board with default columns")
    new_board.add_argument("name")

    rename_board = subparsers.add_parser("rename-board", help="Rename a board")
    rename_board.add_argument("board_id")
    rename_board.add_argument("name")

    delete_board = subparsers.add_parser("delete-board", help="Delete a board")
    delete_board.add_argument("board_id")

    subparsers.add_parser("tui", help="Open the interactive terminal board")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    config = Config.load(args.config)
    if args.api_url:
        config.api_url = args.api_url
    configure_logging(config, args.verbose)

    if args.command == "tui":
        from board_tui.app import run_board

        run_board(config, mock=args.mock)
        return

    try:
        asyncio.run(_run_command(args, config))
    except (RemoteError, TaskBoardError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def configure_logging(config: Config, verbose: int = 0) -> None:
    level = getattr(logging, str(config.log_level).upper(), logging.WARNING)
    if verbose:
        level = logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def seed_demo(remote: InMemoryRemote) -> None:
    """Populate an in-memory backend with a sample board."""
    remote.seed_board(
        "Project Alpha",
        ["Pending", "In progress", "In review", "Done"],
        {
            "Pending": [
                {"taskName": "Design the landing page", "employee": "Ana Perez",
                 "allocator": "Luisa Gomez", "priority": "High", "progress": 10,
                 "startDate": "2024-07-15", "endDate": "2024-08-01"},
                {"taskName": "Set up the dev environment", "employee": "Carlos Ruiz",
                 "allocator": "Luisa Gomez", "priority": "Medium", "progress": 0,
                 "startDate": "2024-07-16", "endDate": None},
            ],
            "In progress": [
                {"taskName": "Build the header component", "employee": "Carlos Ruiz",
                 "allocator": "Ana Perez", "priority": "High", "progress": 40,
                 "startDate": "2024-07-18", "endDate": "2024-07-30"},
            ],
            "In review": [
                {"taskName": "Review the auth API", "employee": "Luisa Gomez",
                 "allocator": "Ana Perez", "priority": "Urgent", "progress": 90,
                 "startDate": "2024-07-20", "endDate": None},
            ],
        },
    )
    remote.seed_board("Marketing Q3", ["Pending", "In progress", "In review", "Done"])


def build_coordinator(config: Config, mock: bool = False) -> SyncCoordinator:
    if mock:
        remote = InMemoryRemote()
        seed_demo(remote)
    else:
        from .remote.http import HttpRemote

        remote = HttpRemote(config.api_url, timeout=config.timeout)
    return SyncCoordinator(BoardStore(), remote, config)


def _find_board(coordinator: SyncCoordinator, board_arg: str | None) -> Board:
    store = coordinator.store
    if board_arg is None:
        board = store.get_active_board()
    else:
        board = next((b for b in store.boards if str(b.id) == board_arg), None)
    if board is None:
        raise TaskBoardError(f"Board not found: {board_arg}")
    return board


def _find_task_id(board: Board, task_arg: str):
    for task in board.all_tasks():
        if str(task.id) == task_arg:
            return task.id
    raise TaskBoardError(f"Task {task_arg} not found on board {board.id}")


def _find_column_id(board: Board, column_arg: str):
    for column in board.columns:
        if str(column.id) == column_arg or column.title == column_arg:
            return column.id
    raise TaskBoardError(f"Column {column_arg!r} not found on board {board.id}")


def format_board(board: Board) -> str:
    lines = [f"# {board.name} [{board.id}]"]
    for column in board.columns:
        lines.append(f"\n## {column.title} ({len(column.tasks)})")
        if not column.tasks:
            lines.append("  (empty)")
        for task in column.tasks:
            deadline = f" due {task.deadline:%Y-%m-%d}" if task.deadline else ""
            who = f" @{task.assignee.name}" if task.assignee.name else ""
            lines.append(
                f"  [{task.id}] {task.title} ({task.priority.value}, {task.progress}%){who}{deadline}"
            )
    return "\n".join(lines)


async def _run_command(args, config: Config) -> None:
    coordinator = build_coordinator(config, mock=args.mock)
    try:
        await coordinator.load_boards()
        await _dispatch(coordinator, args)
    finally:
        aclose = getattr(coordinator.remote, "aclose", None)
        if aclose is not None:
            await aclose()


async def _dispatch(coordinator: SyncCoordinator, args) -> None:
    store = coordinator.store

    if args.command == "boards":
        for board in store.boards:
            marker = "*" if board.id == store.active_board_id else " "
            print(f"{marker} {board.id}\t{board.name}")

    elif args.command == "show":
        board = _find_board(coordinator, args.board_id)
        board = await coordinator.select_board(board.id) or board
        print(format_board(board))

    elif args.command == "add":
        board = _find_board(coordinator, args.board)
        board = await coordinator.select_board(board.id) or board
        draft = coordinator.new_task(
            _find_column_id(board, args.column),
            title=args.title,
            description=args.description,
            priority=Priority.parse(args.priority),
            assignee=Assignee(name=args.assignee),
            allocator=args.allocator,
            deadline=parse_date(args.deadline),
        )
        created = await coordinator.save_task(board.id, draft)
        print(f"Created task {created.id} in {created.status}")

    elif args.command == "move":
        board = _find_board(coordinator, args.board)
        board = await coordinator.select_board(board.id) or board
        task_id = _find_task_id(board, args.task_id)
        column_id = _find_column_id(board, args.column)
        ok = await coordinator.move_task(board.id, task_id, column_id, args.index)
        if not ok:
            raise coordinator.last_error or TaskBoardError(f"Moving task {task_id} failed")
        print(f"Moved task {task_id} to {column_id}")

    elif args.command == "delete-task":
        board = _find_board(coordinator, args.board)
        board = await coordinator.select_board(board.id) or board
        task_id = _find_task_id(board, args.task_id)
        await coordinator.delete_task(board.id, task_id)
        print(f"Deleted task {task_id}")

    elif args.command == "new-board":
        board = await coordinator.create_board(args.name)
        print(f"Created board {board.id} with {len(board.columns)} columns")

    elif args.command == "rename-board":
        board = _find_board(coordinator, args.board_id)
        board = await coordinator.rename_board(board.id, args.name)
        print(f"Renamed board {board.id} to {board.name!r}")

    elif args.command == "delete-board":
        board = _find_board(coordinator, args.board_id)
        await coordinator.delete_board(board.id)
        print(f"Deleted board {board.id}")
