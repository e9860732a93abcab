"""SQLModel table for mutations waiting to be sent to the server."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from datetime_utils import utc_now
from models.task import new_id


class SyncQueueRecord(SQLModel, table=True):
    __tablename__ = "sync_queue"

    id: str = Field(default_factory=new_id, primary_key=True)
    task_id: str = Field(index=True)
    operation: str
    data: str
    created_at: datetime = Field(default_factory=utc_now, index=True)
    retry_count: int = Field(default=0)
    error_message: Optional[str] = None


__all__ = ["SyncQueueRecord"]
