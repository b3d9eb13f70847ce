import asyncio
from typing import Optional

import config
from logger import setup_logger

from .session_store import SessionRegistry


logger = setup_logger(__name__, config.LOG_FILE, config.LOG_LEVEL)


class SessionSweeper:
    """
    Periodically evicts sessions older than the registry's idle timeout.

    Owned by the app lifespan: start() on startup, stop() on shutdown.
    """

    def __init__(self, registry: SessionRegistry, interval_seconds: float = config.SESSION_SWEEP_INTERVAL_SECONDS):
        self.registry = registry
        self.interval_seconds = float(interval_seconds)
        self._task: Optional[asyncio.Task] = None

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running():
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _run(self) -> None:
        logger.info(f"Session sweeper started (interval={self.interval_seconds:.0f}s)")
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                evicted = await self.registry.sweep()
            except Exception as e:
                logger.error(f"Session sweep failed: {e}")
                continue
            if evicted:
                logger.debug(f"Sweep evicted {len(evicted)} session(s), {len(self.registry)} left")
