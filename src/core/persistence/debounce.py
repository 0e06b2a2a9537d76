import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Tuple

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Trailing-edge debounce for an async action.

    Every `trigger` restarts the quiet period and replaces the arguments; the
    action runs once with the latest arguments after `delay` seconds without a
    new trigger. Once the action has started it is no longer cancellable.
    """

    def __init__(self, action: Callable[..., Awaitable[Any]], delay: float = 1.0):
        self.action = action
        self.delay = delay
        self._timer: Optional[asyncio.Task] = None
        self._running: Optional[asyncio.Task] = None
        self._args: Tuple[Any, ...] = ()

    @property
    def pending(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def trigger(self, *args: Any) -> None:
        self.cancel()
        self._args = args
        loop = asyncio.get_running_loop()
        self._timer = loop.create_task(self._wait_then_run())

    def cancel(self) -> None:
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    async def flush(self) -> None:
        """Run a pending action now instead of waiting for the timer."""
        if not self.pending:
            return
        self.cancel()
        await self.action(*self._args)

    async def wait(self) -> None:
        """Wait for the pending timer and the action it started."""
        if self._timer is not None:
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
        if self._running is not None:
            await self._running

    async def _wait_then_run(self) -> None:
        await asyncio.sleep(self.delay)
        args = self._args
        # Detach from the timer so a new trigger can't cancel an in-flight action
        self._timer = None
        self._running = asyncio.get_running_loop().create_task(self.action(*args))
        await asyncio.shield(self._running)
