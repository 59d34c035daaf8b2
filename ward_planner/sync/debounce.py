# ward_planner/sync/debounce.py
import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)


class DebouncedTask:
    """
    Run an async callback once a burst of triggers has gone quiet.

    `trigger()` (re)arms a single timer. When `delay` seconds pass without a
    new trigger the callback runs once. Re-arming only restarts the sleeping
    timer; a callback that is already running is never cancelled, and a
    trigger arriving meanwhile arms the next cycle. Callbacks never overlap.
    """

    def __init__(self, delay: float, callback: Callable[[], Awaitable[None]], name: str = "debounced-task"):
        self.delay = delay
        self.callback = callback
        self.name = name
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._callback_lock = asyncio.Lock()

    @property
    def pending(self) -> bool:
        """True while the timer is armed and the callback has not fired yet."""
        return self._timer is not None and not self._timer.done()

    @property
    def running(self) -> bool:
        """True while a fired cycle is executing (or queued behind another) its callback."""
        return bool(self._inflight)

    def trigger(self) -> None:
        """Arm (or re-arm) the timer. Must be called from a running event loop."""
        if self.pending:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._wait_then_fire(), name=self.name)

    async def _wait_then_fire(self) -> None:
        await asyncio.sleep(self.delay)
        cycle = asyncio.current_task()
        # Past the quiet period: re-arming can no longer cancel this cycle
        if self._timer is cycle:
            self._timer = None
        self._inflight.add(cycle)
        try:
            await self._run_callback()
        finally:
            self._inflight.discard(cycle)

    async def _run_callback(self) -> None:
        async with self._callback_lock:
            try:
                await self.callback()
            except Exception as e:
                logger.error(f"{self.name}: callback failed: {e}", exc_info=True)

    async def flush(self) -> None:
        """Fire now if armed, then wait for every callback in flight."""
        if self.pending:
            self._timer.cancel()
            self._timer = None
            await self._run_callback()
        if self._inflight:
            await asyncio.wait(list(self._inflight))

    def cancel(self) -> None:
        """Disarm the timer. A callback already running is left to finish."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    async def wait_idle(self) -> None:
        """Wait until neither a timer nor a callback is outstanding."""
        while self.pending or self.running:
            outstanding = list(self._inflight)
            if self.pending:
                outstanding.append(self._timer)
            # asyncio.wait also returns for a cancelled timer, re-arming just loops again
            await asyncio.wait(outstanding, return_when=asyncio.FIRST_COMPLETED)
