import asyncio

from services.auto_sync import AutoSync
from services.sync_service import SyncResult


class StubService:
    def __init__(self, online=True, result=None):
        self.online = online
        self.result = result or SyncResult(success=True)
        self.calls = []

    def check_connectivity(self):
        self.calls.append("health")
        return self.online

    def sync(self):
        self.calls.append("sync")
        return self.result

    def pull(self):
        self.calls.append("pull")
        return True


def test_offline_tick_does_not_sync():
    service = StubService(online=False)
    assert asyncio.run(AutoSync(service, 1).run_once()) is None
    assert service.calls == ["health"]


def test_idle_queue_pulls_server_changes():
    service = StubService()
    auto = AutoSync(service, 1)

    result = asyncio.run(auto.run_once())

    assert result.success is True
    assert service.calls == ["health", "sync", "pull"]
    assert auto.last_result is result


def test_busy_queue_skips_pull():
    service = StubService(result=SyncResult(success=True, synced_items=3))
    asyncio.run(AutoSync(service, 1).run_once())
    assert service.calls == ["health", "sync"]


def test_skipped_tick_keeps_previous_result():
    service = StubService(result=SyncResult(success=True, skipped=True))
    auto = AutoSync(service, 1)

    asyncio.run(auto.run_once())

    assert auto.last_result is None
    assert "pull" not in service.calls


def test_start_and_stop():
    service = StubService(online=False)

    async def scenario():
        auto = AutoSync(service, 0.01)
        task = auto.start()
        await asyncio.sleep(0.05)
        auto.stop()
        await asyncio.gather(task, return_exceptions=True)
        return task

    task = asyncio.run(scenario())
    assert task.cancelled()
    assert service.calls.count("health") >= 1
