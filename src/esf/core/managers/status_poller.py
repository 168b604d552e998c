"""StatusPoller: drives periodic status checks while a search is in flight.

The poller owns the only live PollHandle. Every tick first asks the listener
(the job state machine) to record the tick, then fires an independent fetch
task; a slow fetch never delays the next tick and overlapping fetches are
allowed. Whatever a fetch learns goes back through the listener, which decides
whether it still applies.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Protocol, Set

from esf.core.config import JobTrackerConfig
from esf.core.exceptions import ApplicationError, PollerAlreadyActiveError
from esf.core.interfaces.clock import ClockPort, TimerHandle
from esf.core.interfaces.search_gateway import SearchGatewayPort
from esf.core.models.result import ResultBundle
from esf.core.settings import logger

REMOTE_FAILURE_MESSAGE = "The search failed on the remote service"


class PollListener(Protocol):
    """Entry points the poller reports into, all keyed by job id."""

    def on_poll_tick(self, job_id: str) -> bool:
        """Record a tick; return False when the job no longer wants polling."""
        ...

    def on_status_observed(self, job_id: str, label: Optional[str]) -> None:
        ...

    def on_poll_result(self, job_id: str, bundle: ResultBundle) -> bool:
        ...

    def on_poll_failure(self, job_id: str, message: str) -> bool:
        ...


class PollHandle:
    """Ownership token for one timer; cancelled exactly once."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        self.consecutive_misses = 0
        self._timer: Optional[TimerHandle] = None
        self._cancelled = False

    def attach(self, timer: TimerHandle) -> None:
        self._timer = timer

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self) -> bool:
        """Cancel the timer; returns True only for the call that did it."""
        if self._cancelled:
            return False
        self._cancelled = True
        if self._timer is not None:
            self._timer.cancel()
        return True


class StatusPoller:
    def __init__(
        self,
        clock: ClockPort,
        gateway: SearchGatewayPort,
        config: JobTrackerConfig,
        listener: Optional[PollListener] = None,
    ) -> None:
        self._clock = clock
        self._gateway = gateway
        self.config = config
        self._listener = listener
        self._handle: Optional[PollHandle] = None
        self._tasks: Set[asyncio.Task] = set()

    def bind(self, listener: PollListener) -> None:
        self._listener = listener

    @property
    def is_active(self) -> bool:
        return self._handle is not None and self._handle.active

    @property
    def active_job_id(self) -> Optional[str]:
        return self._handle.job_id if self.is_active else None

    def start(self, job_id: str) -> PollHandle:
        if self._listener is None:
            raise RuntimeError("StatusPoller has no listener; call bind() first")
        if self.is_active:
            raise PollerAlreadyActiveError(self._handle.job_id)

        handle = PollHandle(job_id)
        handle.attach(
            self._clock.schedule_periodic(self.config.poll_interval, lambda: self._on_tick(handle))
        )
        self._handle = handle
        logger.debug(f"[poll:start] job_id={job_id} interval={self.config.poll_interval}s")
        return handle

    def stop(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None and handle.cancel():
            logger.debug(f"[poll:stop] job_id={handle.job_id}")

    def _stop_handle(self, handle: PollHandle) -> None:
        # Only stop when the handle is still ours; a stale fetch must not
        # tear down polling that now belongs to a newer job.
        if self._handle is handle:
            self.stop()

    # ---------------- Ticks -----------------
    def _on_tick(self, handle: PollHandle) -> None:
        if not handle.active:
            return
        if not self._listener.on_poll_tick(handle.job_id):
            self._stop_handle(handle)
            return
        task = asyncio.create_task(self._poll_once(handle))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[poll:error] poll task crashed error={task.exception()!r}")

    async def _poll_once(self, handle: PollHandle) -> None:
        job_id = handle.job_id
        label = await self._gateway.fetch_status()
        if not handle.active:
            logger.debug(f"[poll:tick] handle stopped while fetching status job_id={job_id}")
            return

        self._listener.on_status_observed(job_id, label)
        if label is None:
            handle.consecutive_misses += 1
            limit = self.config.status_poll_max_failures
            if limit is not None and handle.consecutive_misses >= limit:
                logger.warning(
                    f"[poll:tick] {handle.consecutive_misses} consecutive status polls failed job_id={job_id}"
                )
                self._listener.on_poll_failure(
                    job_id,
                    f"Lost contact with the search service after {handle.consecutive_misses} attempts",
                )
                self._stop_handle(handle)
            return
        handle.consecutive_misses = 0

        completed = self.config.is_completed_label(label)
        failed = self.config.is_failed_label(label)
        if not (completed or failed):
            return

        logger.debug(f"[poll:tick] terminal label={label!r}; fetching result job_id={job_id}")
        try:
            bundle = await self._gateway.fetch_result()
        except ApplicationError as exc:
            logger.warning(f"[poll:result] search service reported failure job_id={job_id} message={exc.message}")
            self._listener.on_poll_failure(job_id, exc.message)
            self._stop_handle(handle)
            return

        if bundle is not None:
            self._listener.on_poll_result(job_id, bundle)
            self._stop_handle(handle)
        elif failed:
            self._listener.on_poll_failure(job_id, REMOTE_FAILURE_MESSAGE)
            self._stop_handle(handle)
        # Completed label but no bundle yet: try again next tick

    # ---------------- Lifecycle -----------------
    async def drain(self) -> None:
        """Wait until every in-flight fetch task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        self.stop()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
