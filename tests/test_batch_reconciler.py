from datetime import datetime, timedelta, timezone

from datetime_utils import to_iso
from models.task import Task
from schemas.sync import BatchSyncRequest
from services.batch_reconciler import PLACEHOLDER_TITLE, BatchReconciler, incoming_wins
from services.task_store import TaskStore


T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
NOW = datetime(2024, 6, 1, 8, 30, 0, tzinfo=timezone.utc)


class CountingStore(TaskStore):
    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.saves = 0

    def save(self, task, **kwargs):
        self.saves += 1
        return super().save(task, **kwargs)


def _seed(store, task_id="t1", title="Server copy", updated_at=T0, **fields):
    return store.save(
        Task(
            id=task_id,
            title=title,
            created_at=T0 - timedelta(days=1),
            updated_at=updated_at,
            sync_status="synced",
            server_id=task_id,
            **fields,
        )
    )


def _item(task_id, operation, data=None, item_id=None):
    return {
        "id": item_id or f"q-{task_id}-{operation}",
        "task_id": task_id,
        "operation": operation,
        "data": data or {},
        "created_at": to_iso(T0),
        "retry_count": 0,
    }


def _run(reconciler, *items, since=T0 - timedelta(days=30)):
    request = BatchSyncRequest(items=list(items), client_timestamp=since)
    return reconciler.handle_batch_sync(request)


def test_incoming_wins_on_tie_and_newer_only():
    assert incoming_wins(T0, T0) is True
    assert incoming_wins(T0, T0 + timedelta(microseconds=1)) is True
    assert incoming_wins(T0, T0 - timedelta(microseconds=1)) is False


def test_create_on_absent_persists_synced_task(store):
    reconciler = BatchReconciler(store, clock=lambda: NOW)
    data = {"title": "Buy milk", "completed": False, "updated_at": to_iso(T0), "created_at": to_iso(T0)}

    response = _run(reconciler, _item("t1", "create", data, item_id="q1"))

    verdict = response.processed_items[0]
    assert verdict.status == "success"
    assert verdict.client_id == "q1"
    assert verdict.server_id == "t1"
    task = store.find_by_id("t1")
    assert task.title == "Buy milk"
    assert task.sync_status == "synced"
    assert task.server_id == "t1"
    assert task.updated_at == T0


def test_create_on_absent_fills_defaults(store):
    reconciler = BatchReconciler(store, clock=lambda: NOW)

    _run(reconciler, _item("t1", "create", {}))

    task = store.find_by_id("t1")
    assert task.title == PLACEHOLDER_TITLE
    assert task.completed is False
    assert task.is_deleted is False
    assert task.created_at == NOW
    assert task.updated_at == NOW


def test_create_on_absent_with_blank_title_uses_placeholder(store):
    reconciler = BatchReconciler(store, clock=lambda: NOW)

    response = _run(reconciler, _item("t1", "create", {"title": "   ", "updated_at": to_iso(T0)}))

    assert response.processed_items[0].status == "success"
    assert store.find_by_id("t1").title == PLACEHOLDER_TITLE


def test_update_and_delete_on_absent_task_are_accepted_without_creating(store):
    reconciler = BatchReconciler(store, clock=lambda: NOW)

    response = _run(
        reconciler,
        _item("ghost-1", "update", {"title": "Nope", "updated_at": to_iso(T0)}),
        _item("ghost-2", "delete", {"is_deleted": True}),
    )

    assert [v.status for v in response.processed_items] == ["success", "success"]
    assert store.find_by_id("ghost-1") is None
    assert store.find_by_id("ghost-2") is None
    assert store.count() == 0


def test_tie_favours_incoming_change(store):
    _seed(store)
    reconciler = BatchReconciler(store, clock=lambda: NOW)

    response = _run(reconciler, _item("t1", "update", {"title": "Client copy", "updated_at": to_iso(T0)}))

    assert response.processed_items[0].status == "success"
    task = store.find_by_id("t1")
    assert task.title == "Client copy"
    assert task.updated_at == T0


def test_newer_incoming_change_is_merged(store):
    _seed(store, description="keep me")
    reconciler = BatchReconciler(store, clock=lambda: NOW)
    later = T0 + timedelta(minutes=5)

    response = _run(reconciler, _item("t1", "update", {"completed": True, "updated_at": to_iso(later)}))

    assert response.processed_items[0].status == "success"
    task = store.find_by_id("t1")
    assert task.completed is True
    assert task.title == "Server copy"
    assert task.description == "keep me"
    assert task.updated_at == later
    assert task.sync_status == "synced"


def test_older_incoming_change_is_a_conflict_without_mutation(session_factory):
    store = CountingStore(session_factory)
    _seed(store)
    store.saves = 0
    reconciler = BatchReconciler(store, clock=lambda: NOW)
    earlier = T0 - timedelta(seconds=1)

    response = _run(reconciler, _item("t1", "update", {"title": "Stale", "updated_at": to_iso(earlier)}))

    verdict = response.processed_items[0]
    assert verdict.status == "conflict"
    assert verdict.resolved_data is not None
    assert verdict.resolved_data.id == "t1"
    assert verdict.resolved_data.title == "Server copy"
    assert verdict.resolved_data.updated_at == T0
    assert store.saves == 0
    assert store.find_by_id("t1").title == "Server copy"


def test_missing_updated_at_falls_back_to_existing_and_wins(store):
    _seed(store)
    reconciler = BatchReconciler(store, clock=lambda: NOW)

    response = _run(reconciler, _item("t1", "update", {"title": "No timestamp"}))

    assert response.processed_items[0].status == "success"
    task = store.find_by_id("t1")
    assert task.title == "No timestamp"
    assert task.updated_at == T0


def test_resubmitting_an_accepted_item_is_idempotent(session_factory):
    store = CountingStore(session_factory)
    reconciler = BatchReconciler(store, clock=lambda: NOW)
    item = _item("t1", "create", {"title": "Once", "updated_at": to_iso(T0), "created_at": to_iso(T0)})

    first = _run(reconciler, item)
    saves_after_first = store.saves
    stored = store.find_by_id("t1")
    second = _run(reconciler, item)

    assert first.processed_items[0].status == "success"
    assert second.processed_items[0].status == "success"
    assert store.saves == saves_after_first
    assert store.find_by_id("t1").model_dump() == stored.model_dump()


def test_create_for_existing_task_is_treated_as_update(store):
    _seed(store)
    reconciler = BatchReconciler(store, clock=lambda: NOW)
    later = T0 + timedelta(hours=1)

    response = _run(reconciler, _item("t1", "create", {"title": "Recreated", "updated_at": to_iso(later)}))

    assert response.processed_items[0].status == "success"
    assert store.count() == 1
    assert store.find_by_id("t1").title == "Recreated"


def test_soft_deleted_task_is_not_resurrected_by_merge(store):
    _seed(store, is_deleted=True)
    reconciler = BatchReconciler(store, clock=lambda: NOW)
    later = T0 + timedelta(hours=1)

    _run(reconciler, _item("t1", "update", {"title": "Edited offline", "is_deleted": False, "updated_at": to_iso(later)}))

    task = store.find_by_id("t1")
    assert task.title == "Edited offline"
    assert task.is_deleted is True


def test_failing_item_does_not_stop_the_batch(store):
    _seed(store)
    reconciler = BatchReconciler(store, clock=lambda: NOW)
    later = T0 + timedelta(minutes=1)

    response = _run(
        reconciler,
        _item("t1", "update", {"completed": "banana"}, item_id="bad-data"),
        {"id": "bad-shape", "operation": "teleport"},
        "not even a mapping",
        _item("t2", "create", {"title": "Still processed"}, item_id="good"),
        _item("t1", "update", {"title": "Also processed", "updated_at": to_iso(later)}, item_id="good-2"),
    )

    statuses = [(v.client_id, v.status) for v in response.processed_items]
    assert statuses == [
        ("bad-data", "error"),
        ("bad-shape", "error"),
        ("", "error"),
        ("good", "success"),
        ("good-2", "success"),
    ]
    assert response.processed_items[0].error
    assert store.find_by_id("t2").title == "Still processed"
    assert store.find_by_id("t1").title == "Also processed"


def test_later_items_see_writes_of_earlier_items_in_the_same_batch(store):
    reconciler = BatchReconciler(store, clock=lambda: NOW)
    created = T0
    edited = T0 + timedelta(seconds=30)
    stale = T0 + timedelta(seconds=10)

    response = _run(
        reconciler,
        _item("t1", "create", {"title": "Draft", "updated_at": to_iso(created)}, item_id="a"),
        _item("t1", "update", {"title": "Final", "updated_at": to_iso(edited)}, item_id="b"),
        _item("t1", "update", {"title": "Stale", "updated_at": to_iso(stale)}, item_id="c"),
    )

    assert [v.status for v in response.processed_items] == ["success", "success", "conflict"]
    assert response.processed_items[2].resolved_data.title == "Final"
    assert store.find_by_id("t1").title == "Final"


def test_server_changes_are_tasks_modified_after_client_timestamp(store):
    since = T0
    _seed(store, task_id="old", updated_at=T0 - timedelta(hours=1))
    _seed(store, task_id="boundary", updated_at=T0)
    _seed(store, task_id="newer", updated_at=T0 + timedelta(hours=1))
    _seed(store, task_id="touched", updated_at=T0 - timedelta(hours=2))
    reconciler = BatchReconciler(store, clock=lambda: NOW)

    response = _run(
        reconciler,
        _item("touched", "update", {"title": "Now newer", "updated_at": to_iso(T0 + timedelta(hours=2))}),
        since=since,
    )

    assert {task.id for task in response.server_changes} == {"newer", "touched"}
    touched = next(task for task in response.server_changes if task.id == "touched")
    assert touched.title == "Now newer"
    assert response.server_timestamp == NOW
