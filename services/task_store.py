from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy import func
from sqlmodel import select

from datetime_utils import ensure_utc
from models.sync_queue import SyncQueueRecord
from models.task import SYNC_ERROR, SYNC_PENDING, Task
from storage.db import get_session


_TIMESTAMP_FIELDS = ("created_at", "updated_at", "last_synced_at")


def _normalize(task: Optional[Task]) -> Optional[Task]:
    """SQLite hands datetimes back naive; everything we store is UTC."""

    if task is None:
        return None
    for name in _TIMESTAMP_FIELDS:
        value = getattr(task, name)
        if isinstance(value, datetime):
            setattr(task, name, ensure_utc(value))
    return task


class TaskStore:
    """Authoritative task state keyed by id.

    ``save`` is an upsert. ``locked`` serializes read-compare-write sequences
    for a single id across threads sharing this store.
    """

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    @contextmanager
    def locked(self, task_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.get(task_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[task_id] = lock
        with lock:
            yield

    def find_by_id(self, task_id: str) -> Optional[Task]:
        with self._session_factory() as session:
            return _normalize(session.get(Task, task_id))

    def save(self, task: Task, *, queue_item: Optional[SyncQueueRecord] = None) -> Task:
        """Upsert ``task``; when given, ``queue_item`` is appended in the same transaction."""

        for name in _TIMESTAMP_FIELDS:
            value = getattr(task, name)
            if isinstance(value, datetime):
                setattr(task, name, ensure_utc(value))
        with self._session_factory() as session:
            merged = session.merge(task)
            if queue_item is not None:
                session.add(queue_item)
            session.commit()
            session.refresh(merged)
            return _normalize(merged)

    def find_active(self) -> List[Task]:
        with self._session_factory() as session:
            stmt = (
                select(Task)
                .where(Task.is_deleted == False)  # noqa: E712
                .order_by(Task.created_at.asc())
            )
            return [_normalize(task) for task in session.exec(stmt)]

    def find_needing_sync(self) -> List[Task]:
        with self._session_factory() as session:
            stmt = (
                select(Task)
                .where(Task.sync_status.in_((SYNC_PENDING, SYNC_ERROR)))
                .order_by(Task.updated_at.asc())
            )
            return [_normalize(task) for task in session.exec(stmt)]

    def find_tasks_modified_since(self, timestamp: datetime) -> List[Task]:
        since = ensure_utc(timestamp)
        with self._session_factory() as session:
            stmt = select(Task).where(Task.updated_at > since).order_by(Task.updated_at.asc())
            return [_normalize(task) for task in session.exec(stmt)]

    def count(self) -> int:
        with self._session_factory() as session:
            return int(session.exec(select(func.count()).select_from(Task)).one())


__all__ = ["TaskStore"]
