from typing import Callable, Optional

from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from core.settings import DB_PATH

# Ensure SQLModel metadata is populated
import models.task  # noqa: F401
import models.sync_queue  # noqa: F401
from storage import migrations


_engine = None


def create_db_engine(path=None):
    target = path or DB_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        f"sqlite:///{target.as_posix()}",
        echo=False,
        connect_args={"check_same_thread": False},
    )


def create_memory_engine():
    """In-memory engine shared across threads (tests, throwaway servers)."""

    return create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


def init_db(engine=None):
    actual_engine = engine or get_engine()
    SQLModel.metadata.create_all(actual_engine)
    migrations.run_all(actual_engine)
    return actual_engine


def get_engine():
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def make_session_factory(engine) -> Callable[[], Session]:
    def factory() -> Session:
        return Session(engine)

    return factory


def get_session(engine: Optional[object] = None) -> Session:
    return Session(engine or get_engine())


__all__ = [
    "create_db_engine",
    "create_memory_engine",
    "get_engine",
    "get_session",
    "init_db",
    "make_session_factory",
]
