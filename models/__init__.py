"""ORM models exposed by the TaskSync application."""
from .task import SYNC_ERROR, SYNC_PENDING, SYNC_STATUSES, SYNC_SYNCED, Task, new_id
from .sync_queue import SyncQueueRecord

__all__ = [
    "SYNC_ERROR",
    "SYNC_PENDING",
    "SYNC_STATUSES",
    "SYNC_SYNCED",
    "SyncQueueRecord",
    "Task",
    "new_id",
]
