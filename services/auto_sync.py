"""Periodic trigger for the client sync."""
from __future__ import annotations

import asyncio
from typing import Optional

from core.settings import SYNC
from services.sync_service import SyncResult, SyncService


class AutoSync:
    """Probe connectivity, then sync, every ``interval`` seconds.

    ``SyncService.sync`` refuses to overlap itself, so a tick that fires while
    a previous sync is still running is simply skipped.
    """

    def __init__(self, service: SyncService, interval: Optional[float] = None):
        self.service = service
        self.interval = interval or SYNC.auto_sync_interval_sec
        self._task: Optional[asyncio.Task] = None
        self.last_result: Optional[SyncResult] = None

    async def run_once(self) -> Optional[SyncResult]:
        online = await asyncio.to_thread(self.service.check_connectivity)
        if not online:
            return None
        result = await asyncio.to_thread(self.service.sync)
        if result.skipped:
            return result
        self.last_result = result
        if result.synced_items == 0 and result.failed_items == 0:
            # Nothing to upload; still fetch what other clients changed.
            await asyncio.to_thread(self.service.pull)
        return result

    async def run_forever(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                self.service.logger.exception("Auto sync tick failed")
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self.run_forever())
        return self._task

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
        self._task = None


__all__ = ["AutoSync"]
