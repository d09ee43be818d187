"""Periodic background sweeps on the asyncio event loop."""
import asyncio
from typing import Callable, Optional

from .logger import logger


class PeriodicTask:
    """Runs a synchronous callable every ``interval`` seconds.

    The task is bound to the running event loop when ``start()`` is called and
    is cancelled by ``stop()``. Errors raised by the callable are logged and do
    not stop the loop.
    """

    def __init__(self, name: str, interval: float, func: Callable[[], object]):
        self.name = name
        self.interval = interval
        self.func = func
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug(f"Started periodic task {self.name} (every {self.interval}s)")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug(f"Stopped periodic task {self.name}")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.func()
            except Exception as e:
                logger.error(f"Error during {self.name}: {e}")
