from typing import Optional
from datetime import datetime
import uuid

from datetime_utils import utc_now
from sqlmodel import SQLModel, Field


SYNC_PENDING = "pending"
SYNC_SYNCED = "synced"
SYNC_ERROR = "error"
SYNC_STATUSES = (SYNC_PENDING, SYNC_SYNCED, SYNC_ERROR)


def new_id() -> str:
    return str(uuid.uuid4())


class Task(SQLModel, table=True):
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    description: Optional[str] = None
    completed: bool = False
    is_deleted: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now, index=True)
    sync_status: str = Field(default=SYNC_PENDING, index=True)   # pending / synced / error
    server_id: Optional[str] = None
    last_synced_at: Optional[datetime] = None
