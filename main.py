"""Command line client: edit the local task list and sync it with the server."""
import argparse
import asyncio
import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from core.settings import SYNC
from services.auto_sync import AutoSync
from services.sync_queue import SyncQueueStore
from services.sync_service import SyncService
from services.sync_transport import HttpSyncTransport
from services.task_store import TaskStore
from services.tasks import TaskService
from storage.db import init_db, make_session_factory


def build_client(api_url=None):
    engine = init_db()
    factory = make_session_factory(engine)
    store = TaskStore(factory)
    queue = SyncQueueStore(factory)
    tasks = TaskService(store)
    sync = SyncService(store, queue, HttpSyncTransport(api_url))
    return tasks, sync


def _print_task(task) -> None:
    mark = "x" if task.completed else " "
    print(f"[{mark}] {task.id}  {task.title}  ({task.sync_status})")


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(description="TaskSync client")
    parser.add_argument("--api-url", default=SYNC.api_url, help="sync server base URL")
    sub = parser.add_subparsers(dest="command", required=True)

    add = sub.add_parser("add", help="create a task")
    add.add_argument("title")
    add.add_argument("--description")

    upd = sub.add_parser("update", help="change a task")
    upd.add_argument("task_id")
    upd.add_argument("--title")
    upd.add_argument("--description")

    done = sub.add_parser("done", help="mark a task completed")
    done.add_argument("task_id")

    rm = sub.add_parser("delete", help="soft-delete a task")
    rm.add_argument("task_id")

    sub.add_parser("list", help="show active tasks")
    sub.add_parser("sync", help="run one synchronization")
    sub.add_parser("status", help="show sync queue and anchors")

    watch = sub.add_parser("watch", help="sync periodically until interrupted")
    watch.add_argument("--interval", type=float, default=SYNC.auto_sync_interval_sec)
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    tasks, sync = build_client(args.api_url)

    if args.command == "add":
        _print_task(tasks.create_task(args.title, args.description))
    elif args.command == "update":
        task = tasks.update_task(args.task_id, title=args.title, description=args.description)
        if not task:
            print("Task not found", file=sys.stderr)
            return 1
        _print_task(task)
    elif args.command == "done":
        task = tasks.update_task(args.task_id, completed=True)
        if not task:
            print("Task not found", file=sys.stderr)
            return 1
        _print_task(task)
    elif args.command == "delete":
        if not tasks.delete_task(args.task_id):
            print("Task not found or already deleted", file=sys.stderr)
            return 1
    elif args.command == "list":
        for task in tasks.get_all_tasks():
            _print_task(task)
    elif args.command == "sync":
        if not sync.check_connectivity():
            print("Offline: sync server unreachable", file=sys.stderr)
            return 2
        result = sync.sync()
        if result.synced_items == 0 and result.failed_items == 0:
            sync.pull()
        print(f"synced={result.synced_items} failed={result.failed_items} success={result.success}")
        for error in result.errors:
            print(f"  {error.operation} {error.task_id}: {error.error}", file=sys.stderr)
        return 0 if result.success else 1
    elif args.command == "status":
        print(json.dumps(sync.status(), indent=2))
    elif args.command == "watch":
        try:
            asyncio.run(AutoSync(sync, args.interval).run_forever())
        except KeyboardInterrupt:
            pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
