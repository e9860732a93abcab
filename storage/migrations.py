"""Ad-hoc database migrations for TaskSync."""

from __future__ import annotations

from sqlalchemy import text


def ensure_indexes(conn) -> None:
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_task_updated_at ON task (updated_at)"))
    conn.execute(
        text("CREATE INDEX IF NOT EXISTS ix_sync_queue_created_at ON sync_queue (created_at)")
    )
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_sync_queue_task_id ON sync_queue (task_id)"))


def run_all(engine) -> None:
    with engine.begin() as conn:
        ensure_indexes(conn)


__all__ = ["run_all"]
