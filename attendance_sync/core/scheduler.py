"""
Background sync scheduling.

Runs the orchestrator periodically while the device is online and on demand
when something (connectivity regained, a fresh punch) asks for it. Triggers
never block the caller; overlapping requests collapse into the pass already
in flight.
"""

import asyncio
from typing import Optional

from attendance_sync.core.connectivity import ConnectivityMonitor
from attendance_sync.core.logging import get_logger
from attendance_sync.core.sync_orchestrator import SyncOrchestrator
from attendance_sync.models.sync import SyncReport

logger = get_logger(__name__)


class SyncScheduler:
    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        connectivity: ConnectivityMonitor,
        interval_seconds: float = 900.0,
    ):
        self.orchestrator = orchestrator
        self.connectivity = connectivity
        self.interval_seconds = interval_seconds
        self._loop_task: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    async def start(self) -> None:
        if self.running:
            return
        logger.info(f"Starting periodic sync every {self.interval_seconds:.0f}s")
        self._loop_task = asyncio.create_task(self._periodic())

    async def stop(self) -> None:
        tasks = list(self._pending)
        if self._loop_task is not None:
            tasks.append(self._loop_task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._loop_task = None
        self._pending.clear()
        logger.info("Periodic sync stopped")

    def trigger(self, reason: str = "manual") -> Optional[asyncio.Task]:
        """
        Request a sync pass in the background.

        Returns the scheduled task, or None when a pass is already running or
        the device is offline.
        """
        if not self.connectivity.is_online:
            logger.debug(f"Sync trigger ({reason}) ignored while offline")
            return None
        if self.orchestrator.is_syncing:
            logger.debug(f"Sync trigger ({reason}) ignored, pass already running")
            return None
        logger.info(f"Sync triggered: {reason}")
        task = asyncio.create_task(self.run_once())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def run_once(self) -> Optional[SyncReport]:
        try:
            return await self.orchestrator.sync()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Already reported by the orchestrator; keep the scheduler alive
            logger.error(f"Background sync pass failed: {e}")
            return None

    async def _periodic(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            if self.connectivity.is_online:
                await self.run_once()
