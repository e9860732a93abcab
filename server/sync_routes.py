from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from core.logs import SERVER_LOG_NAME, get_logger
from datetime_utils import utc_now
from schemas.sync import BatchSyncRequest, BatchSyncResponse
from services.batch_reconciler import BatchReconciler
from services.task_store import TaskStore
from .deps import get_reconciler, get_store

router = APIRouter()
logger = get_logger("tasksync.server", SERVER_LOG_NAME)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.get("/health")
def health():
    """Liveness probe used by clients before syncing."""
    return {"status": "ok", "timestamp": utc_now()}


@router.get("/status")
def sync_status(store: TaskStore = Depends(get_store)):
    try:
        pending = store.find_needing_sync()
    except Exception:
        logger.exception("Error checking sync status")
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to retrieve sync status")
    return {
        "status": "ready",
        "message": "Server is ready to accept client sync requests.",
        "pending_local_sync_items": len(pending),
        "server_time": utc_now(),
    }


@router.post("/batch", response_model=BatchSyncResponse)
async def batch_sync(request: Request, reconciler: BatchReconciler = Depends(get_reconciler)):
    """Reconcile a client's queued mutations and return server changes."""
    try:
        body = await request.json()
    except ValueError:
        body = None

    if not isinstance(body, dict) or not isinstance(body.get("items"), list) or not body.get("client_timestamp"):
        return _error(
            status.HTTP_400_BAD_REQUEST,
            "Invalid Batch Sync Request payload. Missing items or client_timestamp.",
        )
    try:
        sync_request = BatchSyncRequest.model_validate(body)
    except ValidationError:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid client_timestamp.")

    try:
        return await run_in_threadpool(reconciler.handle_batch_sync, sync_request)
    except Exception:
        logger.exception("Fatal error during batch sync")
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error during sync processing",
        )


@router.post("/sync")
def trigger_sync():
    return _error(
        status.HTTP_501_NOT_IMPLEMENTED,
        "Use POST /sync/batch for client synchronization requests.",
    )
