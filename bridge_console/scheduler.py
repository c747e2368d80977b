import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs ``callback`` every ``interval`` seconds, starting immediately.

    Ticks are not awaited before the next one is scheduled, so a slow
    request never holds back the timer and ticks of the same task may
    overlap.
    """

    def __init__(self, name: str, interval: float, callback: Callable[[], Awaitable[None]]):
        self.name = name
        self.interval = interval
        self.callback = callback
        self._running = False
        self._loop_task: Optional[asyncio.Task] = None
        self._in_flight: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def tick(self):
        """Run one tick to completion."""
        await self.callback()

    def start(self):
        if self._running:
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._run())
        logger.info(f"{self.name} started (every {self.interval}s)")

    async def stop(self):
        self._running = False
        tasks = list(self._in_flight)
        if self._loop_task:
            tasks.append(self._loop_task)
            self._loop_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._in_flight.clear()
        logger.info(f"{self.name} stopped")

    async def _run(self):
        while self._running:
            task = asyncio.create_task(self.tick())
            self._in_flight.add(task)
            task.add_done_callback(self._tick_done)
            await asyncio.sleep(self.interval)

    def _tick_done(self, task: asyncio.Task):
        self._in_flight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"{self.name} tick failed: {error!r}")


class Scheduler:
    """The console's two repeating jobs: state poll and message poll."""

    def __init__(self, *tasks: PeriodicTask):
        self.tasks = {task.name: task for task in tasks}

    @property
    def running(self) -> bool:
        return any(task.running for task in self.tasks.values())

    def start(self):
        for task in self.tasks.values():
            task.start()

    async def stop(self):
        for task in self.tasks.values():
            await task.stop()

    async def tick(self, name: str):
        await self.tasks[name].tick()
