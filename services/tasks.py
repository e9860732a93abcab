from __future__ import annotations

from typing import List, Optional

from datetime_utils import utc_now
from models.task import SYNC_PENDING, Task, new_id
from services.sync_queue import OP_CREATE, OP_DELETE, OP_UPDATE, SyncQueueItem, to_record
from services.task_store import TaskStore


UPDATABLE_FIELDS = ("title", "description", "completed")


def _snapshot(task: Task) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "completed": task.completed,
        "is_deleted": task.is_deleted,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
    }


class TaskService:
    """Task CRUD; every mutation also appends its sync queue entry."""

    def __init__(self, store: Optional[TaskStore] = None):
        self.store = store or TaskStore()

    def _write(self, task: Task, operation: str, data: dict) -> Task:
        item = SyncQueueItem(
            task_id=task.id,
            operation=operation,
            data=data,
            created_at=task.updated_at,
        )
        return self.store.save(task, queue_item=to_record(item))

    def create_task(
        self,
        title: str,
        description: Optional[str] = None,
        completed: bool = False,
    ) -> Task:
        if not title or not title.strip():
            raise ValueError("Title is required and must be a non-empty string.")
        now = utc_now()
        task = Task(
            id=new_id(),
            title=title.strip(),
            description=description or None,
            completed=bool(completed),
            is_deleted=False,
            created_at=now,
            updated_at=now,
            sync_status=SYNC_PENDING,
        )
        return self._write(task, OP_CREATE, _snapshot(task))

    def update_task(self, task_id: str, **changes) -> Optional[Task]:
        with self.store.locked(task_id):
            return self._update_locked(task_id, changes)

    def _update_locked(self, task_id: str, changes: dict) -> Optional[Task]:
        task = self.store.find_by_id(task_id)
        if not task or task.is_deleted:
            return None

        updates = {key: value for key, value in changes.items() if key in UPDATABLE_FIELDS and value is not None}
        if "title" in updates:
            if not str(updates["title"]).strip():
                raise ValueError("Title is required and must be a non-empty string.")
            updates["title"] = str(updates["title"]).strip()
        for key, value in updates.items():
            setattr(task, key, value)
        task.updated_at = max(utc_now(), task.updated_at)
        task.sync_status = SYNC_PENDING
        return self._write(task, OP_UPDATE, {**updates, "updated_at": task.updated_at})

    def delete_task(self, task_id: str) -> bool:
        with self.store.locked(task_id):
            task = self.store.find_by_id(task_id)
            if not task or task.is_deleted:
                return False
            task.is_deleted = True
            task.updated_at = max(utc_now(), task.updated_at)
            task.sync_status = SYNC_PENDING
            self._write(task, OP_DELETE, {"is_deleted": True, "updated_at": task.updated_at})
            return True

    def get_task(self, task_id: str) -> Optional[Task]:
        task = self.store.find_by_id(task_id)
        if not task or task.is_deleted:
            return None
        return task

    def get_all_tasks(self) -> List[Task]:
        return self.store.find_active()

    def get_tasks_needing_sync(self) -> List[Task]:
        return self.store.find_needing_sync()


__all__ = ["TaskService", "UPDATABLE_FIELDS"]
