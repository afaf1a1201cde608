"""Background reclamation of abandoned WAITING rooms."""

import asyncio
import logging
from typing import List, Optional

from pairing.config import settings
from pairing.coordinator import PairingCoordinator

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Runs ``PairingCoordinator.sweep_expired`` on a fixed interval.

    The loop is independent of request traffic. Store calls are blocking, so
    each sweep runs in a worker thread.
    """

    def __init__(self, coordinator: PairingCoordinator, interval_seconds: Optional[float] = None):
        self.coordinator = coordinator
        self.interval_seconds = interval_seconds or settings.sweep_interval_seconds
        self._task: Optional[asyncio.Task] = None

    def sweep_once(self) -> List[str]:
        return self.coordinator.sweep_expired()

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await asyncio.to_thread(self.sweep_once)
            except Exception as e:
                logger.error(f"Expiry sweep failed: {e}", exc_info=True)

    def start(self) -> None:
        if self._task is None:
            logger.info(f"Starting expiry sweeper (interval={self.interval_seconds}s)")
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped")
