"""REST backend over httpx.

Implements RemoteBackend against the board API:

    /boards, /boards/{id}, /boards/{id}/cards, /cards/{id}, /tasks, /tasks/{id}

Every failure is turned into a RemoteError: HTTP rejections carry the status
and the body's ``message``; transport failures carry no status.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .errors import RemoteError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


class HttpRemote:
    """RemoteBackend speaking JSON over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpRemote:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            data = _json_or_none(e.response)
            message = None
            if isinstance(data, dict):
                message = data.get("message")
            logger.error("[API] %s %s -> %s %s", method, path, status, data)
            raise RemoteError(message or f"HTTP {status}", status=status, data=data) from e
        except httpx.RequestError as e:
            logger.error("[API] No response received for %s %s: %s", method, path, e)
            raise RemoteError("No response received from API") from e
        return _json_or_none(response)

    # -- boards --

    async def list_boards(self) -> list[dict]:
        data = await self._request("GET", "/boards")
        return data if isinstance(data, list) else []

    async def get_board(self, board_id) -> dict:
        return await self._request("GET", f"/boards/{board_id}")

    async def create_board(self, name: str, num_cards: int = 4) -> dict:
        return await self._request("POST", "/boards", json={"name": name, "numCards": num_cards})

    async def update_board(self, board_id, fields: dict) -> dict:
        return await self._request("PATCH", f"/boards/{board_id}", json=fields)

    async def delete_board(self, board_id) -> None:
        await self._request("DELETE", f"/boards/{board_id}")

    # -- columns ("cards") --

    async def list_columns(self, board_id) -> list[dict]:
        data = await self._request("GET", f"/boards/{board_id}/cards")
        return data if isinstance(data, list) else []

    async def create_column(self, board_id, title: str, order: int) -> dict:
        return await self._request(
            "POST", f"/boards/{board_id}/cards", json={"title": title, "order": order}
        )

    async def update_column(self, column_id, fields: dict) -> dict:
        return await self._request("PATCH", f"/cards/{column_id}", json=fields)

    async def delete_column(self, column_id) -> None:
        await self._request("DELETE", f"/cards/{column_id}")

    # -- tasks --

    async def list_tasks(self, board_id) -> list[dict]:
        """Try each known query shape in turn; [] when all of them fail."""
        shapes = [
            ("/tasks", {"boardId": board_id}),
            ("/tasks", {"board_id": board_id}),
            ("/items", {"boardId": board_id}),
        ]
        for path, params in shapes:
            try:
                data = await self._request("GET", path, params=params)
            except RemoteError as e:
                logger.warning("Loading tasks via %s %s failed: %s", path, params, e)
                continue
            return data if isinstance(data, list) else []
        logger.error("All task endpoints failed for board %s", board_id)
        return []

    async def create_task(self, board_id, payload: dict) -> dict:
        return await self._request("POST", "/tasks", json={**payload, "boardId": board_id})

    async def update_task(self, task_id, payload: dict) -> dict:
        return await self._request("PUT", f"/tasks/{task_id}", json=payload)

    async def delete_task(self, task_id) -> None:
        await self._request("DELETE", f"/tasks/{task_id}")


def _json_or_none(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None
