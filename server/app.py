from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.settings import SERVER
from services.batch_reconciler import BatchReconciler
from services.task_store import TaskStore
from storage.db import create_db_engine, init_db, make_session_factory
from . import sync_routes, task_routes


def create_app(store: Optional[TaskStore] = None) -> FastAPI:
    """Build the API; without ``store`` the server database from settings is used."""

    if store is None:
        engine = init_db(create_db_engine(SERVER.db_path))
        store = TaskStore(make_session_factory(engine))

    app = FastAPI(
        title="TaskSync API",
        description="Task list server with batched offline synchronization",
        version="1.0.0",
    )
    app.state.store = store
    app.state.reconciler = BatchReconciler(store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(SERVER.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid request", "details": [err.get("msg") for err in exc.errors()]},
        )

    app.include_router(sync_routes.router, prefix=f"{SERVER.api_prefix}/sync", tags=["sync"])
    app.include_router(task_routes.router, prefix=f"{SERVER.api_prefix}/tasks", tags=["tasks"])
    return app
