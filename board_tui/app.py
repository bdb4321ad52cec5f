"""Task board TUI application: interactive terminal view over the board store."""

from __future__ import annotations

from dataclasses import replace

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.message import Message
from textual.reactive import reactive
from textual.screen import ModalScreen
from textual.widgets import Footer, Header, Input, Static

from taskboard.board.exceptions import LastBoardError, TaskBoardError
from taskboard.board.models import Column, DragElement, Priority, Task
from taskboard.config import Config
from taskboard.remote.errors import RemoteError
from taskboard.sync.coordinator import SyncCoordinator

PRIORITY_COLORS = {
    Priority.LOW: "white",
    Priority.MEDIUM: "cyan",
    Priority.HIGH: "yellow",
    Priority.URGENT: "red",
}


def _progress_bar(progress: int, width: int = 10) -> str:
    filled = round(progress / 100 * width)
    return "#" * filled + "-" * (width - filled)


def _task_label(task: Task) -> str:
    color = PRIORITY_COLORS.get(task.priority, "white")
    lines = [f"[bold]{task.title or '(untitled)'}[/]"]
    meta = f"[{color}]{task.priority.value}[/] [dim]{_progress_bar(task.progress)} {task.progress}%[/]"
    lines.append(meta)
    if task.assignee.name:
        lines.append(f"[dim]@{task.assignee.name}[/]")
    if task.deadline:
        lines.append(f"[dim]due {task.deadline:%Y-%m-%d}[/]")
    return "\n".join(lines)


def _task_detail(task: Task, column: Column) -> str:
    deadline = f"{task.deadline:%Y-%m-%d}" if task.deadline else "-"
    return "\n".join([
        f"[bold]{task.title}[/]",
        "",
        task.description or "[dim](no description)[/]",
        "",
        f"Status:    {column.title}",
        f"Priority:  {task.priority.value}",
        f"Progress:  {task.progress}%",
        f"Assignee:  {task.assignee.name or '-'} {task.assignee.role}",
        f"Allocator: {task.allocator or '-'}",
        f"Created:   {task.created_at:%Y-%m-%d}",
        f"Deadline:  {deadline}",
    ])


class TaskSelected(Message):
    def __init__(self, task: Task, column: Column, col_index: int) -> None:
        super().__init__()
        self.task = task
        self.column = column
        self.col_index = col_index


class TaskCard(Static):
    can_focus = True

    def __init__(self, task: Task, column: Column, col_index: int, **kwargs) -> None:
        super().__init__(_task_label(task), **kwargs)
        self.task = task
        self.column = column
        self.col_index = col_index

    def on_focus(self) -> None:
        self.post_message(TaskSelected(self.task, self.column, self.col_index))


class BoardColumn(VerticalScroll):
    def __init__(self, column: Column, col_index: int, **kwargs) -> None:
        super().__init__(**kwargs)
        self.column = column
        self.col_index = col_index

    def compose(self) -> ComposeResult:
        yield Static(
            f"[bold underline]{self.column.title}[/] [dim]({len(self.column.tasks)})[/]",
            classes="column-header",
        )
        if not self.column.tasks:
            yield Static("[dim]empty[/]", classes="empty-label")
            return
        for task in self.column.tasks:
            yield TaskCard(task, self.column, self.col_index, classes="card")


class DetailPanel(VerticalScroll):
    content_text: reactive[str] = reactive("")

    def compose(self) -> ComposeResult:
        yield Static("[dim]Select a task to view details[/]", id="detail-content")

    def watch_content_text(self, value: str) -> None:
        try:
            widget = self.query_one("#detail-content", Static)
            widget.update(value)
        except Exception:
            pass


class PromptScreen(ModalScreen[str | None]):
    CSS = """
    PromptScreen { align: center middle; }
    #prompt-dialog {
        width: 50; height: auto; max-height: 12;
        border: solid $primary; background: $surface; padding: 1 2;
    }
    #prompt-title { text-align: center; padding-bottom: 1; }
    #prompt-input { width: 100%; }
    """

    BINDINGS = [Binding("escape", "cancel", "Cancel")]

    def __init__(self, title: str, value: str = "", placeholder: str = "") -> None:
        super().__init__()
        self.prompt_title = title
        self.initial_value = value
        self.placeholder = placeholder

    def compose(self) -> ComposeResult:
        with Vertical(id="prompt-dialog"):
            yield Static(f"[bold]{self.prompt_title}[/]", id="prompt-title")
            yield Input(value=self.initial_value, placeholder=self.placeholder, id="prompt-input")

    @on(Input.Submitted, "#prompt-input")
    def _on_submit(self, event: Input.Submitted) -> None:
        value = event.value.strip()
        if value:
            self.dismiss(value)

    def action_cancel(self) -> None:
        self.dismiss(None)


class TaskBoardApp(App):
    TITLE = "Task Board"

    CSS = """
    #main-layout { height: 1fr; width: 100%; }
    #board { width: 1fr; height: 100%; }
    BoardColumn {
        width: 1fr;
        height: 100%;
        border-right: solid $surface-lighten-2;
    }
    BoardColumn.active-col {
        border-right: solid $accent;
        border-left: solid $accent;
    }
    .column-header {
        text-align: center;
        background: $surface-lighten-1;
        margin-bottom: 1;
        height: 1;
    }
    .empty-label { text-align: center; color: $text-muted; }
    .card { padding: 0 1; margin-bottom: 1; }
    TaskCard:focus { background: $surface-lighten-1; }
    #detail-panel {
        width: 45;
        height: 100%;
        border-left: solid $primary;
        padding: 1 1;
        display: none;
    }
    #detail-panel.visible { display: block; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "reload", "Reload"),
        Binding("n", "new_task", "New"),
        Binding("e", "edit_task", "Edit"),
        Binding("x", "delete_task", "Delete"),
        Binding("plus", "progress(10)", "+10%", show=False),
        Binding("minus", "progress(-10)", "-10%", show=False),
        Binding("b", "next_board", "Board"),
        Binding("N", "new_board", "New board"),
        Binding("R", "rename_board", "Rename board"),
        Binding("D", "delete_board", "Delete board"),
        Binding("d", "toggle_detail", "Detail"),
        Binding("left", "col_left", "< Col", show=True),
        Binding("right", "col_right", "Col >", show=True),
        Binding("up", "card_up", "", show=False),
        Binding("down", "card_down", "", show=False),
        Binding("shift+left", "move_task(-1)", "Move <", show=False),
        Binding("shift+right", "move_task(1)", "Move >", show=False),
        Binding("shift+up", "reorder_task(-1)", "", show=False),
        Binding("shift+down", "reorder_task(1)", "", show=False),
        Binding("question_mark", "help_screen", "?=Help"),
    ]

    def __init__(self, coordinator: SyncCoordinator) -> None:
        super().__init__()
        self.coordinator = coordinator
        self.store = coordinator.store
        self.active_col_index: int = 0
        self._focus_task_id = None
        self._refresh_pending = False
        self._unsubscribe = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main-layout"):
            with Horizontal(id="board"):
                board = self.store.get_active_board()
                if board is not None:
                    for i, column in enumerate(board.columns):
                        yield BoardColumn(column, col_index=i)
            yield DetailPanel(id="detail-panel")
        yield Footer()

    def on_mount(self) -> None:
        self._unsubscribe = self.store.subscribe(lambda _store: self._schedule_refresh())
        board = self.store.get_active_board()
        if board is None or not board.loaded:
            self.run_worker(self._guard(self.coordinator.load_boards()))
        self._update_title()
        self._highlight_active_column()
        self._focus_first_in_active_col()

    def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()

    # -- rendering --

    def _schedule_refresh(self) -> None:
        if self._refresh_pending:
            return
        self._refresh_pending = True
        self.call_later(self._do_refresh)

    async def _do_refresh(self) -> None:
        self._refresh_pending = False
        await self.refresh_board()

    async def refresh_board(self) -> None:
        container = self.query_one("#board", Horizontal)
        await container.remove_children()
        board = self.store.get_active_board()
        if board is not None:
            await container.mount_all(
                [BoardColumn(column, col_index=i) for i, column in enumerate(board.columns)]
            )
            self.active_col_index = min(self.active_col_index, max(len(board.columns) - 1, 0))
        self._update_title()
        self._highlight_active_column()
        self._restore_focus()

    def _update_title(self) -> None:
        board = self.store.get_active_board()
        self.sub_title = board.name if board is not None else "No boards"

    def _restore_focus(self) -> None:
        if self._focus_task_id is not None:
            for card in self.query(TaskCard):
                if card.task.id == self._focus_task_id:
                    self.active_col_index = card.col_index
                    self._highlight_active_column()
                    card.focus()
                    return
        self._focus_first_in_active_col()

    @on(TaskSelected)
    def _on_task_selected(self, event: TaskSelected) -> None:
        self._focus_task_id = event.task.id
        self.active_col_index = event.col_index
        self._highlight_active_column()
        panel = self.query_one("#detail-panel", DetailPanel)
        panel.content_text = _task_detail(event.task, event.column)

    # -- background work --

    async def _guard(self, coro) -> object:
        """Await a coordinator call, reporting failures as notifications."""
        try:
            return await coro
        except LastBoardError as e:
            self.notify(str(e), severity="warning")
        except (RemoteError, TaskBoardError) as e:
            self.notify(str(e), severity="error")
        return None

    def _run(self, coro) -> None:
        self.run_worker(self._guard(coro))

    async def _move_and_report(self, coro) -> None:
        ok = await self._guard(coro)
        if ok is False:
            error = self.coordinator.last_error
            self.notify(f"Move failed, reverted: {error}", severity="error")

    # -- navigation --

    def _get_column_widgets(self) -> list[BoardColumn]:
        return list(self.query(BoardColumn))

    def _highlight_active_column(self) -> None:
        for i, col in enumerate(self._get_column_widgets()):
            col.set_class(i == self.active_col_index, "active-col")

    def _cards_in_column(self, col_index: int) -> list[TaskCard]:
        cols = self._get_column_widgets()
        if col_index < 0 or col_index >= len(cols):
            return []
        return [w for w in cols[col_index].walk_children() if isinstance(w, TaskCard)]

    def _focus_first_in_active_col(self) -> None:
        cards = self._cards_in_column(self.active_col_index)
        if cards:
            cards[0].focus()

    def _focused_card(self) -> TaskCard | None:
        return self.focused if isinstance(self.focused, TaskCard) else None

    def action_col_left(self) -> None:
        if self.active_col_index > 0:
            self.active_col_index -= 1
            self._highlight_active_column()
            self._focus_first_in_active_col()

    def action_col_right(self) -> None:
        if self.active_col_index < len(self._get_column_widgets()) - 1:
            self.active_col_index += 1
            self._highlight_active_column()
            self._focus_first_in_active_col()

    def action_card_up(self) -> None:
        cards = self._cards_in_column(self.active_col_index)
        if not cards:
            return
        try:
            idx = cards.index(self.focused)
            if idx > 0:
                cards[idx - 1].focus()
        except ValueError:
            cards[-1].focus()

    def action_card_down(self) -> None:
        cards = self._cards_in_column(self.active_col_index)
        if not cards:
            return
        try:
            idx = cards.index(self.focused)
            if idx < len(cards) - 1:
                cards[idx + 1].focus()
        except ValueError:
            cards[0].focus()

    # -- moves --

    def action_move_task(self, step: int) -> None:
        """Drag the focused task onto the neighbouring column."""
        card = self._focused_card()
        board = self.store.get_active_board()
        if card is None or board is None:
            self.notify("Select a task first", severity="warning")
            return
        target_index = card.col_index + step
        if target_index < 0 or target_index >= len(board.columns):
            return
        target = DragElement.column(board.columns[target_index].id)
        session = self.coordinator.begin_drag(board.id, DragElement.task(card.task.id))
        session.hover(target)
        self.run_worker(self._move_and_report(session.drop(target)))

    def action_reorder_task(self, step: int) -> None:
        """Drag the focused task over its neighbour in the same column."""
        card = self._focused_card()
        board = self.store.get_active_board()
        if card is None or board is None:
            return
        tasks = card.column.tasks
        idx = card.column.index_of(card.task.id)
        if idx is None or not 0 <= idx + step < len(tasks):
            return
        over = DragElement.task(tasks[idx + step].id)
        session = self.coordinator.begin_drag(board.id, DragElement.task(card.task.id))
        self.run_worker(self._move_and_report(session.drop(over)))

    # -- task edits --

    def action_new_task(self) -> None:
        board = self.store.get_active_board()
        if board is None or not board.columns:
            self.notify("No board to add a task to", severity="warning")
            return
        column = board.columns[min(self.active_col_index, len(board.columns) - 1)]

        def _on_title(title: str | None) -> None:
            if title is None:
                return
            draft = self.coordinator.new_task(column.id, title=title)
            self._run(self.coordinator.save_task(board.id, draft))

        self.push_screen(PromptScreen(f"New task in {column.title}"), callback=_on_title)

    def action_edit_task(self) -> None:
        card = self._focused_card()
        board = self.store.get_active_board()
        if card is None or board is None:
            self.notify("Select a task first", severity="warning")
            return
        task = card.task

        def _on_title(title: str | None) -> None:
            if title is None or title == task.title:
                return
            self._run(self.coordinator.save_task(board.id, replace(task, title=title)))

        self.push_screen(PromptScreen("Task title", value=task.title), callback=_on_title)

    def action_progress(self, delta: int) -> None:
        card = self._focused_card()
        board = self.store.get_active_board()
        if card is None or board is None:
            return
        task = card.task
        self._run(self.coordinator.save_task(board.id, replace(task, progress=task.progress + delta)))

    def action_delete_task(self) -> None:
        card = self._focused_card()
        board = self.store.get_active_board()
        if card is None or board is None:
            self.notify("Select a task first", severity="warning")
            return
        self._focus_task_id = None
        self._run(self.coordinator.delete_task(board.id, card.task.id))

    # -- boards --

    def action_next_board(self) -> None:
        boards = self.store.boards
        if len(boards) < 2:
            return
        ids = [b.id for b in boards]
        current = ids.index(self.store.active_board_id) if self.store.active_board_id in ids else -1
        next_id = ids[(current + 1) % len(ids)]
        self.active_col_index = 0
        self._focus_task_id = None
        self._run(self.coordinator.select_board(next_id))

    def action_new_board(self) -> None:
        def _on_name(name: str | None) -> None:
            if name is None:
                return
            self.active_col_index = 0
            self._run(self.coordinator.create_board(name))

        self.push_screen(PromptScreen("New board name"), callback=_on_name)

    def action_rename_board(self) -> None:
        board = self.store.get_active_board()
        if board is None:
            return

        def _on_name(name: str | None) -> None:
            if name is None or name == board.name:
                return
            self._run(self.coordinator.rename_board(board.id, name))

        self.push_screen(PromptScreen("Rename board", value=board.name), callback=_on_name)

    def action_delete_board(self) -> None:
        board = self.store.get_active_board()
        if board is None:
            return
        self.active_col_index = 0
        self._focus_task_id = None
        self._run(self.coordinator.delete_board(board.id))

    def action_reload(self) -> None:
        board = self.store.get_active_board()
        if board is None:
            self._run(self.coordinator.load_boards())
        else:
            self._run(self.coordinator.load_board(board.id))

    # -- misc --

    def action_toggle_detail(self) -> None:
        panel = self.query_one("#detail-panel", DetailPanel)
        panel.toggle_class("visible")

    def action_help_screen(self) -> None:
        self.notify(
            "[bold]Keys:[/] arrows=navigate  shift+arrows=move task  n=new  e=edit  x=delete  "
            "+/-=progress  b=next board  N/R/D=new/rename/delete board  d=detail  r=reload  q=quit",
            timeout=6,
        )


def run_board(config: Config | None = None, mock: bool = False) -> None:
    """Entry point for the taskboard tui command."""
    from taskboard.cli import build_coordinator

    app = TaskBoardApp(build_coordinator(config or Config.load(), mock=mock))
    app.run()
