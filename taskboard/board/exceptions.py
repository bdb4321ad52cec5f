"""Board exception types."""


class TaskBoardError(Exception):
    """Base class for local task board errors."""


class BoardNotFoundError(TaskBoardError, KeyError):
    """Raised when a board id does not match any loaded board."""

    def __init__(self, board_id):
        self.board_id = board_id
        super().__init__(f"Board not found: {board_id}")

    def __str__(self) -> str:
        return self.args[0]


class TaskNotFoundError(TaskBoardError, KeyError):
    """Raised when a task id cannot be resolved on a board."""

    def __init__(self, board_id, task_id):
        self.board_id = board_id
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found on board {board_id}")

    def __str__(self) -> str:
        return self.args[0]


class LastBoardError(TaskBoardError):
    """Raised when deleting the only remaining board."""

    def __init__(self, board_id):
        self.board_id = board_id
        super().__init__(f"Cannot delete board {board_id}: it is the only board")
