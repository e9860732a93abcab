"""Server side of batch synchronization: per-item last-write-wins."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

from core.logs import SERVER_LOG_NAME, get_logger
from datetime_utils import ensure_utc, utc_now
from models.task import SYNC_SYNCED, Task
from schemas.sync import (
    STATUS_CONFLICT,
    STATUS_ERROR,
    STATUS_SUCCESS,
    BatchSyncRequest,
    BatchSyncResponse,
    ProcessedItem,
    SyncItemIn,
)
from schemas.task import TaskOut, TaskPatch
from services.sync_queue import OP_CREATE
from services.task_store import TaskStore


PLACEHOLDER_TITLE = "New Task (Client Sync)"

# A ``create`` naming a task the server already holds goes through the
# last-write-wins path like an ``update``.
CREATE_ON_EXISTING_AS_UPDATE = True

# ``update``/``delete`` for a task the server never received a ``create`` for
# is acknowledged with ``success``: the absent task already matches a delete,
# and an update has nothing to apply to.
ACCEPT_MISSING_TARGET = True

_MERGE_EXCLUDED = {"id", "sync_status", "server_id", "last_synced_at"}


logger = get_logger("tasksync.reconciler", SERVER_LOG_NAME)


def incoming_wins(existing_updated_at: datetime, incoming_updated_at: datetime) -> bool:
    """Last-write-wins; a tie goes to the incoming change."""

    return ensure_utc(incoming_updated_at) >= ensure_utc(existing_updated_at)


def materialize_task(task_id: str, patch: TaskPatch, now: datetime) -> Task:
    fields = patch.changes()
    return Task(
        id=task_id,
        title=fields.get("title") or PLACEHOLDER_TITLE,
        description=fields.get("description"),
        completed=bool(fields.get("completed", False)),
        is_deleted=bool(fields.get("is_deleted", False)),
        created_at=ensure_utc(fields.get("created_at")) or now,
        updated_at=ensure_utc(fields.get("updated_at")) or now,
        sync_status=SYNC_SYNCED,
        server_id=task_id,
    )


def merge_task(existing: Task, patch: TaskPatch, updated_at: datetime) -> Task:
    """Submitted fields over ``existing``; id, deletion and sync metadata are kept."""

    merged = existing.model_dump()
    for key, value in patch.changes().items():
        if key in _MERGE_EXCLUDED:
            continue
        merged[key] = value
    if existing.is_deleted:
        merged["is_deleted"] = True
    merged["id"] = existing.id
    merged["server_id"] = existing.server_id or existing.id
    merged["sync_status"] = SYNC_SYNCED
    merged["updated_at"] = ensure_utc(updated_at)
    merged["created_at"] = ensure_utc(merged["created_at"])
    return Task(**merged)


def _same_state(left: Task, right: Task) -> bool:
    return left.model_dump() == right.model_dump()


class BatchReconciler:
    """Applies a client's queued mutations to the task store.

    Items are handled one at a time, in order, each under the store's lock for
    its task id, re-reading the store before every comparison. A failure in one
    item is reported as an ``error`` verdict and never stops the batch.
    """

    def __init__(self, store: TaskStore, *, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self._clock = clock

    def handle_batch_sync(self, request: BatchSyncRequest) -> BatchSyncResponse:
        logger.info("Batch sync: %d item(s), client_timestamp=%s", len(request.items), request.client_timestamp)
        processed = [self._process(raw) for raw in request.items]

        server_timestamp = self._clock()
        since = ensure_utc(request.client_timestamp)
        changes = self.store.find_tasks_modified_since(since)
        return BatchSyncResponse(
            processed_items=processed,
            server_changes=[TaskOut.model_validate(task) for task in changes],
            server_timestamp=server_timestamp,
        )

    # ------------------------------------------------------------------
    def _process(self, raw: Any) -> ProcessedItem:
        client_id, task_id = _identify(raw)
        try:
            item = SyncItemIn.model_validate(raw)
            with self.store.locked(item.task_id):
                return self._reconcile(item)
        except Exception as exc:
            logger.exception("Sync item %s (task %s) failed", client_id, task_id)
            return ProcessedItem(
                client_id=client_id,
                server_id=task_id,
                status=STATUS_ERROR,
                error=str(exc) or exc.__class__.__name__,
            )

    def _reconcile(self, item: SyncItemIn) -> ProcessedItem:
        existing = self.store.find_by_id(item.task_id)
        data = dict(item.data)
        if existing is None and item.operation == OP_CREATE and _is_blank(data.get("title")):
            data.pop("title", None)
        patch = TaskPatch.model_validate(data)

        if existing is None:
            if item.operation == OP_CREATE:
                task = materialize_task(item.task_id, patch, self._clock())
                self.store.save(task)
                logger.info("Created task %s from client item %s", item.task_id, item.id)
            elif ACCEPT_MISSING_TARGET:
                logger.info("%s for unknown task %s accepted without changes", item.operation, item.task_id)
            return ProcessedItem(client_id=item.id, server_id=item.task_id, status=STATUS_SUCCESS)

        if item.operation == OP_CREATE and CREATE_ON_EXISTING_AS_UPDATE:
            logger.warning("Client sent create for existing task %s; treating as update", item.task_id)

        incoming_ts = ensure_utc(patch.updated_at) or existing.updated_at
        if incoming_wins(existing.updated_at, incoming_ts):
            merged = merge_task(existing, patch, incoming_ts)
            if not _same_state(merged, existing):
                self.store.save(merged)
            return ProcessedItem(client_id=item.id, server_id=existing.id, status=STATUS_SUCCESS)

        logger.info(
            "Conflict on task %s: server %s newer than client %s",
            existing.id,
            existing.updated_at,
            incoming_ts,
        )
        return ProcessedItem(
            client_id=item.id,
            server_id=existing.id,
            status=STATUS_CONFLICT,
            resolved_data=TaskOut.model_validate(existing),
        )


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _identify(raw: Any) -> tuple[str, Optional[str]]:
    if not isinstance(raw, dict):
        return "", None
    client_id = raw.get("id")
    task_id = raw.get("task_id")
    return (
        str(client_id) if client_id is not None else "",
        str(task_id) if task_id is not None else None,
    )


__all__ = [
    "ACCEPT_MISSING_TARGET",
    "BatchReconciler",
    "CREATE_ON_EXISTING_AS_UPDATE",
    "PLACEHOLDER_TITLE",
    "incoming_wins",
    "materialize_task",
    "merge_task",
]
