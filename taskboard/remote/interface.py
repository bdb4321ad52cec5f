"""Abstract remote backend protocol.

Records are plain dicts in the remote vocabulary: columns are "cards" and
tasks use ``taskName`` / ``card_id`` / ``startDate`` etc. (see payloads.py).
Every method raises RemoteError on failure.
"""

from typing import Any, Protocol


class RemoteBackend(Protocol):
    """Interface that any remote task board backend must implement."""

    # Boards

    async def list_boards(self) -> list[dict]: ...

    async def get_board(self, board_id: Any) -> dict: ...

    async def create_board(self, name: str, num_cards: int = 4) -> dict: ...

    async def update_board(self, board_id: Any, fields: dict) -> dict: ...

    async def delete_board(self, board_id: Any) -> None: ...

    # Columns ("cards")

    async def list_columns(self, board_id: Any) -> list[dict]: ...

    async def create_column(self, board_id: Any, title: str, order: int) -> dict: ...

    async def update_column(self, column_id: Any, fields: dict) -> dict: ...

    async def delete_column(self, column_id: Any) -> None: ...

    # Tasks

    async def list_tasks(self, board_id: Any) -> list[dict]: ...

    async def create_task(self, board_id: Any, payload: dict) -> dict: ...

    async def update_task(self, task_id: Any, payload: dict) -> dict: ...

    async def delete_task(self, task_id: Any) -> None: ...
