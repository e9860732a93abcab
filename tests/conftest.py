from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.sync_queue import SyncQueueStore
from services.task_store import TaskStore
from storage.db import create_memory_engine, init_db, make_session_factory


@pytest.fixture()
def session_factory():
    engine = init_db(create_memory_engine())
    return make_session_factory(engine)


@pytest.fixture()
def store(session_factory):
    return TaskStore(session_factory)


@pytest.fixture()
def queue(session_factory):
    return SyncQueueStore(session_factory)
