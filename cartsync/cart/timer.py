"""Cancellable debounce timer on the running event loop."""
import asyncio
from typing import Awaitable, Callable, Optional

from cartsync.logging import get_logger

logger = get_logger(__name__)


class DebounceTimer:
    """
    Runs an async callback once the timer has been quiet for ``delay`` seconds.

    Every schedule() resets the countdown, so a burst of calls results in a
    single callback. cancel() guarantees the callback will not start; a
    callback that is already running is left to finish.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]]):
        self.delay = delay
        self._callback = callback
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> bool:
        """A callback is scheduled and has not started yet."""
        return self._handle is not None

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def schedule(self) -> None:
        """(Re)start the countdown. Must be called from the event loop thread."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.get_running_loop().create_task(self._run())
        # Hold a reference until done so the task isn't garbage collected
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        try:
            await self._callback()
        except Exception:
            logger.exception("Debounced callback failed")

    async def fire_now(self) -> bool:
        """Run a pending callback immediately. Returns False if none was pending."""
        if not self.pending:
            return False
        self.cancel()
        await self._run()
        return True

    async def wait(self) -> None:
        """Wait for callbacks that already started."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
