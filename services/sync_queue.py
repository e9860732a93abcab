from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy import func, literal_column
from sqlmodel import select

from core.settings import SYNC
from datetime_utils import ensure_utc, json_default, to_iso, utc_now
from models.sync_queue import SyncQueueRecord
from models.task import new_id
from storage.db import get_session


OP_CREATE = "create"
OP_UPDATE = "update"
OP_DELETE = "delete"
VALID_OPS = {OP_CREATE, OP_UPDATE, OP_DELETE}


@dataclass
class SyncQueueItem:
    task_id: str
    operation: str
    data: dict = field(default_factory=dict)
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)
    retry_count: int = 0
    error_message: Optional[str] = None

    def to_wire(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "operation": self.operation,
            "data": json.loads(json.dumps(self.data, default=json_default)),
            "created_at": to_iso(self.created_at),
            "retry_count": self.retry_count,
            "error_message": self.error_message,
        }


def to_record(item: SyncQueueItem) -> SyncQueueRecord:
    if item.operation not in VALID_OPS:
        raise ValueError(f"Unsupported operation: {item.operation}")
    return SyncQueueRecord(
        id=item.id,
        task_id=item.task_id,
        operation=item.operation,
        data=json.dumps(item.data, ensure_ascii=False, default=json_default),
        created_at=ensure_utc(item.created_at),
        retry_count=item.retry_count,
        error_message=item.error_message,
    )


def _from_record(row: SyncQueueRecord) -> SyncQueueItem:
    try:
        data = json.loads(row.data)
    except json.JSONDecodeError:
        data = {}
    return SyncQueueItem(
        id=row.id,
        task_id=row.task_id,
        operation=row.operation,
        data=data if isinstance(data, dict) else {},
        created_at=ensure_utc(row.created_at),
        retry_count=row.retry_count,
        error_message=row.error_message,
    )


class SyncQueueStore:
    """Durable FIFO log of local mutations awaiting upload."""

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    def add_to_sync_queue(self, item: SyncQueueItem) -> None:
        record = to_record(item)
        with self._session_factory() as session:
            session.add(record)
            session.commit()

    def get_pending_sync_items(self) -> List[SyncQueueItem]:
        with self._session_factory() as session:
            stmt = select(SyncQueueRecord).order_by(
                SyncQueueRecord.created_at.asc(),
                literal_column("rowid").asc(),
            )
            rows = list(session.exec(stmt))
        return [_from_record(row) for row in rows]

    def remove_sync_queue_item(self, item_id: str) -> None:
        with self._session_factory() as session:
            record = session.get(SyncQueueRecord, item_id)
            if record:
                session.delete(record)
                session.commit()

    def record_failure(self, item_id: str, error: str) -> None:
        with self._session_factory() as session:
            record = session.get(SyncQueueRecord, item_id)
            if not record:
                return
            record.retry_count += 1
            record.error_message = (error or "")[: SYNC.max_error_length]
            session.add(record)
            session.commit()

    def pending_task_ids(self) -> Set[str]:
        with self._session_factory() as session:
            return set(session.exec(select(SyncQueueRecord.task_id)).all())

    def count(self) -> int:
        with self._session_factory() as session:
            return int(session.exec(select(func.count()).select_from(SyncQueueRecord)).one())


__all__ = [
    "OP_CREATE",
    "OP_DELETE",
    "OP_UPDATE",
    "SyncQueueItem",
    "SyncQueueStore",
    "VALID_OPS",
    "to_record",
]
