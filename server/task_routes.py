from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse

from core.logs import SERVER_LOG_NAME, get_logger
from schemas.task import TaskCreate, TaskOut, TaskUpdate
from services.tasks import TaskService
from .deps import get_task_service

router = APIRouter()
logger = get_logger("tasksync.server", SERVER_LOG_NAME)


def _get_update_data(task_update: TaskUpdate) -> dict:
    return {key: value for key, value in task_update.model_dump(exclude_unset=True).items() if value is not None}


@router.get("", response_model=List[TaskOut])
def get_tasks(service: TaskService = Depends(get_task_service)):
    """Get all tasks that are not soft-deleted."""
    return service.get_all_tasks()


@router.get("/{task_id}", response_model=TaskOut)
def get_task(task_id: str, service: TaskService = Depends(get_task_service)):
    task = service.get_task(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(task: TaskCreate, service: TaskService = Depends(get_task_service)):
    return service.create_task(task.title, task.description, task.completed)


@router.put("/{task_id}", response_model=TaskOut)
def update_task(task_id: str, task_update: TaskUpdate, service: TaskService = Depends(get_task_service)):
    updates = _get_update_data(task_update)
    if not updates:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "No valid fields provided for update."},
        )
    try:
        task = service.update_task(task_id, **updates)
    except ValueError as exc:
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": str(exc)})
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(task_id: str, service: TaskService = Depends(get_task_service)):
    """Soft-delete a task."""
    if not service.delete_task(task_id):
        raise HTTPException(status_code=404, detail="Task not found or already deleted")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
