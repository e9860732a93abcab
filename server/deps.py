from fastapi import Request

from services.batch_reconciler import BatchReconciler
from services.task_store import TaskStore
from services.tasks import TaskService


def get_store(request: Request) -> TaskStore:
    """Dependency returning the application's task store."""
    return request.app.state.store


def get_task_service(request: Request) -> TaskService:
    return TaskService(request.app.state.store)


def get_reconciler(request: Request) -> BatchReconciler:
    return request.app.state.reconciler
