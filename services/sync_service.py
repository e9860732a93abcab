from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Set

from core.logs import SYNC_LOG_NAME, get_logger
from datetime_utils import EPOCH, ensure_utc, to_iso, utc_now
from models.task import SYNC_ERROR, SYNC_SYNCED, Task
from schemas.sync import (
    STATUS_CONFLICT,
    STATUS_ERROR,
    STATUS_SUCCESS,
    BatchSyncResponse,
    ProcessedItem,
)
from schemas.task import TaskOut
from services.sync_queue import SyncQueueItem, SyncQueueStore
from services.sync_state import SyncStateStorage
from services.sync_transport import HttpSyncTransport, SyncTransportError
from services.task_store import TaskStore


class SyncTransport(Protocol):
    def health(self) -> bool: ...

    def post_batch(self, payload: dict) -> BatchSyncResponse: ...


@dataclass
class SyncError:
    task_id: str
    operation: str
    error: str
    timestamp: datetime = field(default_factory=utc_now)


@dataclass
class SyncResult:
    success: bool
    synced_items: int = 0
    failed_items: int = 0
    errors: List[SyncError] = field(default_factory=list)
    skipped: bool = False


def _task_from_wire(data: TaskOut, *, synced_at: datetime) -> Task:
    task = Task(**data.model_dump())
    task.created_at = ensure_utc(task.created_at)
    task.updated_at = ensure_utc(task.updated_at)
    task.sync_status = SYNC_SYNCED
    task.server_id = data.server_id or data.id
    task.last_synced_at = synced_at
    return task


class SyncService:
    """Client side of batch synchronization.

    Drains the whole queue into one ``POST /sync/batch`` and applies the
    per-item verdicts: ``success`` and ``conflict`` remove the queue entry,
    ``error`` keeps it for the next run. A transport failure leaves the queue
    untouched.
    """

    def __init__(
        self,
        store: TaskStore,
        queue: SyncQueueStore,
        transport: Optional[SyncTransport] = None,
        state: Optional[SyncStateStorage] = None,
    ) -> None:
        self.store = store
        self.queue = queue
        self.transport = transport or HttpSyncTransport()
        self.state = state or SyncStateStorage()
        self.logger = get_logger("tasksync.sync", SYNC_LOG_NAME)
        self._in_flight = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    def check_connectivity(self) -> bool:
        try:
            online = bool(self.transport.health())
        except Exception:
            self.logger.exception("Health check failed")
            return False
        if not online:
            self.logger.info("Sync server unreachable")
        return online

    def add_to_sync_queue(self, task_id: str, operation: str, data: dict) -> SyncQueueItem:
        item = SyncQueueItem(task_id=task_id, operation=operation, data=dict(data))
        self.queue.add_to_sync_queue(item)
        return item

    def sync(self) -> SyncResult:
        if not self._in_flight.acquire(blocking=False):
            self.logger.info("Sync already in progress; trigger skipped")
            return SyncResult(success=True, skipped=True)
        try:
            return self._sync_once()
        finally:
            self._in_flight.release()

    def pull(self) -> bool:
        """Fetch server changes without uploading anything (empty batch)."""

        if not self._in_flight.acquire(blocking=False):
            self.logger.info("Sync already in progress; pull skipped")
            return False
        try:
            client_timestamp = self.state.get_last_sync_timestamp() or EPOCH
            payload = {"items": [], "client_timestamp": to_iso(client_timestamp)}
            try:
                response = self.transport.post_batch(payload)
            except SyncTransportError as exc:
                self.logger.error("Pull failed: %s", exc)
                self.state.set_last_attempt(success=False)
                return False
            except Exception:
                self.logger.exception("Pull failed")
                self.state.set_last_attempt(success=False)
                return False
            self._apply_server_changes(response.server_changes)
            self.state.set_last_sync_timestamp(response.server_timestamp)
            self.state.set_last_attempt(success=True)
            return True
        finally:
            self._in_flight.release()

    def status(self) -> dict:
        last_attempt, last_ok = self.state.get_last_attempt()
        return {
            "apiUrl": getattr(self.transport, "api_url", None),
            "queueSize": self.queue.count(),
            "lastServerTimestamp": to_iso(self.state.get_last_sync_timestamp()),
            "lastAttemptAt": to_iso(last_attempt),
            "lastAttemptOk": last_ok,
            "inFlight": self._in_flight.locked(),
        }

    # ------------------------------------------------------------------
    def _sync_once(self) -> SyncResult:
        pending = self.queue.get_pending_sync_items()
        if not pending:
            return SyncResult(success=True)

        client_timestamp = self.state.get_last_sync_timestamp() or EPOCH
        payload = {
            "items": [item.to_wire() for item in pending],
            "client_timestamp": to_iso(client_timestamp),
        }
        self.logger.info("Sending %d queued item(s) since %s", len(pending), payload["client_timestamp"])

        try:
            response = self.transport.post_batch(payload)
        except SyncTransportError as exc:
            self.logger.error("Sync failed: %s", exc)
            return self._batch_failed(pending)
        except Exception:
            self.logger.exception("Sync failed")
            return self._batch_failed(pending)

        result = self._apply_verdicts(pending, response.processed_items)
        self._apply_server_changes(response.server_changes)
        self.state.set_last_sync_timestamp(response.server_timestamp)
        self.state.set_last_attempt(success=result.success)
        self.logger.info(
            "Sync finished: %d synced, %d failed", result.synced_items, result.failed_items
        )
        return result

    def _batch_failed(self, pending: List[SyncQueueItem]) -> SyncResult:
        self.state.set_last_attempt(success=False)
        return SyncResult(
            success=False,
            synced_items=0,
            failed_items=len(pending),
            errors=[SyncError(task_id="N/A", operation="sync", error="Network or Server Error")],
        )

    def _apply_verdicts(
        self, pending: List[SyncQueueItem], verdicts: List[ProcessedItem]
    ) -> SyncResult:
        by_id: Dict[str, SyncQueueItem] = {item.id: item for item in pending}
        now = utc_now()
        synced = 0
        failed = 0
        errors: List[SyncError] = []
        answered: Set[str] = set()
        acknowledged: Dict[str, Optional[str]] = {}
        resolved: Dict[str, TaskOut] = {}

        for verdict in verdicts:
            item = by_id.get(verdict.client_id)
            if item is None or item.id in answered:
                self.logger.warning("Verdict for unknown queue item %s ignored", verdict.client_id)
                continue
            answered.add(item.id)

            if verdict.status == STATUS_SUCCESS:
                self.queue.remove_sync_queue_item(item.id)
                acknowledged[item.task_id] = verdict.server_id
                resolved.pop(item.task_id, None)
                synced += 1
            elif verdict.status == STATUS_CONFLICT:
                self.queue.remove_sync_queue_item(item.id)
                if verdict.resolved_data is not None:
                    resolved[item.task_id] = verdict.resolved_data
                    acknowledged.pop(item.task_id, None)
                else:
                    acknowledged[item.task_id] = verdict.server_id
                synced += 1
            else:
                message = verdict.error or "Unknown error"
                self.queue.record_failure(item.id, message)
                self._mark_error(item.task_id)
                errors.append(SyncError(task_id=item.task_id, operation=item.operation, error=message))
                failed += 1

        for item in pending:
            if item.id not in answered:
                message = "No verdict returned for queued item"
                self.queue.record_failure(item.id, message)
                errors.append(SyncError(task_id=item.task_id, operation=item.operation, error=message))
                failed += 1

        still_queued = self.queue.pending_task_ids()
        for task_id, data in resolved.items():
            if task_id in still_queued:
                # A later local edit is still waiting for upload.
                self.logger.info("Server copy of task %s not adopted; local changes still queued", task_id)
                continue
            self.store.save(_task_from_wire(data, synced_at=now))
            self.logger.info("Task %s resolved in favour of the server copy", task_id)
        for task_id, server_id in acknowledged.items():
            if task_id not in still_queued:
                self._mark_synced(task_id, server_id, now)

        if failed:
            self.logger.warning("%d queued item(s) kept for retry", failed)
        return SyncResult(
            success=failed == 0,
            synced_items=synced,
            failed_items=failed,
            errors=errors,
        )

    def _apply_server_changes(self, changes: List[TaskOut]) -> None:
        if not changes:
            return
        still_queued = self.queue.pending_task_ids()
        now = utc_now()
        applied = 0
        for change in changes:
            if change.id in still_queued:
                # Local edit still waiting for upload; the server sees it next run.
                continue
            self.store.save(_task_from_wire(change, synced_at=now))
            applied += 1
        self.logger.info("Applied %d of %d server change(s)", applied, len(changes))

    def _mark_synced(self, task_id: str, server_id: Optional[str], moment: datetime) -> None:
        with self.store.locked(task_id):
            task = self.store.find_by_id(task_id)
            if task is None:
                return
            task.sync_status = SYNC_SYNCED
            task.server_id = server_id or task.server_id or task.id
            task.last_synced_at = moment
            self.store.save(task)

    def _mark_error(self, task_id: str) -> None:
        with self.store.locked(task_id):
            task = self.store.find_by_id(task_id)
            if task is None:
                return
            task.sync_status = SYNC_ERROR
            self.store.save(task)


__all__ = ["SyncError", "SyncResult", "SyncService", "SyncTransport"]
