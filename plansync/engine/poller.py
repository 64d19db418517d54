import asyncio
import logging
from typing import List, Optional

from plansync.engine.synchronizer import SessionSynchronizer
from plansync.models.entities import SessionStatus
from plansync.models.errors import SyncError

logger = logging.getLogger(__name__)


class SolutionPoller:
    """
    Periodically refreshes every active session, dirty ones first.

    Failures are already reported through the synchronizer's on_error; the
    loop logs them and carries on with the next session.
    """

    def __init__(self, synchronizer: SessionSynchronizer, interval_seconds: float = 2.0):
        self.synchronizer = synchronizer
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _poll_order(self) -> List[str]:
        active = [s.session_id for s in self.synchronizer.registry.list_all()
                  if s.status == SessionStatus.ACTIVE]
        dirty = set(self.synchronizer.cache.dirty_sessions())
        return sorted(active, key=lambda sid: sid not in dirty)

    async def poll_once(self) -> int:
        """Refresh all active sessions once. Returns how many refreshes succeeded."""
        refreshed = 0
        for session_id in self._poll_order():
            try:
                await self.synchronizer.refresh(session_id)
                refreshed += 1
            except SyncError as e:
                logger.warning(f"Polling session {session_id} failed: {e.detail}")
        return refreshed

    async def _run(self) -> None:
        while True:
            await self.poll_once()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        logger.info(f"Starting solution poller (every {self.interval_seconds}s)")
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Solution poller stopped")
