from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class TaskBase(BaseModel):
    """Base task schema with common fields."""

    title: str
    description: Optional[str] = None
    completed: bool = False


class TaskCreate(TaskBase):
    """Schema for creating new tasks."""

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Title is required and must be a non-empty string.")
        return value


class TaskUpdate(BaseModel):
    """Schema for updating existing tasks."""

    title: Optional[str] = None
    description: Optional[str] = None
    completed: Optional[bool] = None


class TaskOut(TaskBase):
    """Complete task schema as stored and sent over the wire."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    is_deleted: bool = False
    created_at: datetime
    updated_at: datetime
    sync_status: str
    server_id: Optional[str] = None
    last_synced_at: Optional[datetime] = None


class TaskPatch(BaseModel):
    """Fields a sync item may carry; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    description: Optional[str] = None
    completed: Optional[bool] = None
    is_deleted: Optional[bool] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            raise ValueError("title must be a non-empty string")
        return value

    def changes(self) -> dict:
        """Submitted fields only; an explicit ``null`` counts only for ``description``."""

        submitted = self.model_dump(exclude_unset=True)
        return {
            key: value
            for key, value in submitted.items()
            if value is not None or key == "description"
        }


__all__ = ["TaskBase", "TaskCreate", "TaskOut", "TaskPatch", "TaskUpdate"]
