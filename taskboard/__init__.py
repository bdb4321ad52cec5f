"""Task board client: reorder engine, board store and optimistic remote sync."""

from .board import BoardStore, DragElement, ElementKind, LastBoardError, Priority
from .config import Config
from .remote import HttpRemote, InMemoryRemote, RemoteError
from .sync import DragSession, SyncCoordinator

__all__ = [
    "BoardStore",
    "Config",
    "DragElement",
    "DragSession",
    "ElementKind",
    "HttpRemote",
    "InMemoryRemote",
    "LastBoardError",
    "Priority",
    "RemoteError",
    "SyncCoordinator",
]
