"""Wire schemas for ``POST /sync/batch``."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from schemas.task import TaskOut


STATUS_SUCCESS = "success"
STATUS_CONFLICT = "conflict"
STATUS_ERROR = "error"

Operation = Literal["create", "update", "delete"]
Verdict = Literal["success", "conflict", "error"]


class SyncItemIn(BaseModel):
    """One queued mutation as sent by a client."""

    id: str = Field(..., min_length=1)
    task_id: str = Field(..., min_length=1)
    operation: Operation
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    retry_count: int = 0
    error_message: Optional[str] = None


class BatchSyncRequest(BaseModel):
    # Items stay raw here; each one is validated on its own so a malformed
    # entry yields an ``error`` verdict instead of rejecting the batch.
    items: List[Any]
    client_timestamp: datetime


class ProcessedItem(BaseModel):
    client_id: str
    server_id: Optional[str] = None
    status: Verdict
    resolved_data: Optional[TaskOut] = None
    error: Optional[str] = None


class BatchSyncResponse(BaseModel):
    processed_items: List[ProcessedItem]
    server_changes: List[TaskOut] = Field(default_factory=list)
    server_timestamp: datetime


__all__ = [
    "BatchSyncRequest",
    "BatchSyncResponse",
    "Operation",
    "ProcessedItem",
    "STATUS_CONFLICT",
    "STATUS_ERROR",
    "STATUS_SUCCESS",
    "SyncItemIn",
    "Verdict",
]
