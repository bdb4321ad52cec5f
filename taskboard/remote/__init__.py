from .errors import RemoteError
from .http import HttpRemote
from .interface import RemoteBackend
from .memory import InMemoryRemote

__all__ = [
    "HttpRemote",
    "InMemoryRemote",
    "RemoteBackend",
    "RemoteError",
]
