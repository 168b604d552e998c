import asyncio
from typing import Callable, Optional

from esf.core.interfaces.clock import ClockPort, TimerHandle


class _AsyncioTimer(TimerHandle):
    def __init__(self, loop: asyncio.AbstractEventLoop, period: float, callback: Callable[[], None]):
        self._loop = loop
        self._period = period
        self._callback = callback
        self._cancelled = False
        self._handle: Optional[asyncio.TimerHandle] = loop.call_later(period, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        # Re-arm before running so a slow or failing callback cannot stall the cadence
        self._handle = self._loop.call_later(self._period, self._fire)
        self._callback()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def active(self) -> bool:
        return not self._cancelled


class AsyncioClock(ClockPort):
    """Clock backed by the running event loop's `call_later`."""

    def schedule_periodic(self, period: float, callback: Callable[[], None]) -> TimerHandle:
        if period <= 0:
            raise ValueError("period must be positive")
        return _AsyncioTimer(asyncio.get_running_loop(), period, callback)
