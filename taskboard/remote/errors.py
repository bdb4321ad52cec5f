"""Remote collaborator error type."""

from __future__ import annotations

NOT_FOUND_MARKERS = ("not found", "no query results")


class RemoteError(Exception):
    """A failed remote call: transport failure or HTTP rejection.

    ``status`` is None when no response was received.
    """

    def __init__(self, message: str, status: int | None = None, data=None):
        self.message = message
        self.status = status
        self.data = data
        super().__init__(message)

    @property
    def is_not_found(self) -> bool:
        if self.status == 404:
            return True
        text = (self.message or "").lower()
        return any(marker in text for marker in NOT_FOUND_MARKERS)

    def __repr__(self) -> str:
        return f"RemoteError({self.message!r}, status={self.status!r})"
