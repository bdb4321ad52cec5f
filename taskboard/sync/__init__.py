from .columns import ColumnRef, ColumnRefMap
from .coordinator import SyncCoordinator, placeholder_column_id
from .drag import DragSession

__all__ = [
    "ColumnRef",
    "ColumnRefMap",
    "DragSession",
    "SyncCoordinator",
    "placeholder_column_id",
]
