"""Shared test doubles for the job tracking tests.

`ManualClock` fires ticks only when a test calls `advance`, and `FakeGateway`
scripts what the search service answers, so every interleaving of ticks and
replies is reproduced deterministically.
"""

import asyncio
from collections import deque
from typing import Any, Callable, List, Optional

import pytest

from esf.core.config import JobTrackerConfig
from esf.core.interfaces.clock import ClockPort, TimerHandle
from esf.core.interfaces.search_gateway import SearchGatewayPort
from esf.core.managers.job_state_machine import JobStateMachine
from esf.core.managers.observers import PhaseHistoryObserver
from esf.core.managers.status_poller import StatusPoller
from esf.core.models.query import SearchQuery
from esf.core.models.result import Hit, ResultBundle


class ManualTimer(TimerHandle):
    def __init__(self, period: float, callback: Callable[[], None]):
        self.period = period
        self.callback = callback
        self.cancel_calls = 0
        self._cancelled = False

    def cancel(self) -> None:
        self.cancel_calls += 1
        self._cancelled = True

    @property
    def active(self) -> bool:
        return not self._cancelled


class ManualClock(ClockPort):
    def __init__(self) -> None:
        self.timers: List[ManualTimer] = []

    def schedule_periodic(self, period: float, callback: Callable[[], None]) -> TimerHandle:
        timer = ManualTimer(period, callback)
        self.timers.append(timer)
        return timer

    @property
    def live_timers(self) -> List[ManualTimer]:
        return [t for t in self.timers if t.active]

    def advance(self, ticks: int = 1) -> None:
        for _ in range(ticks):
            for timer in list(self.timers):
                if timer.active:
                    timer.callback()


class FakeGateway(SearchGatewayPort):
    """Scriptable search service.

    - `immediate`: value (or exception) submit returns without suspending;
      when None, submit blocks on a future the test resolves.
    - `statuses` / `results`: queues consumed per call; when empty the
      `default_status` / `default_result` is used. Exceptions are raised.
    - `status_gate`: when set, fetch_status waits on it before answering.
    """

    def __init__(self) -> None:
        self.immediate: Any = None
        self.submitted: List[SearchQuery] = []
        self.pending: List[asyncio.Future] = []
        self.statuses: deque = deque()
        self.results: deque = deque()
        self.default_status: Optional[str] = "Running"
        self.default_result: Any = None
        self.status_gate: Optional[asyncio.Event] = None
        self.status_calls = 0
        self.result_calls = 0

    async def submit(self, query: SearchQuery):
        self.submitted.append(query)
        if self.immediate is not None:
            if isinstance(self.immediate, BaseException):
                raise self.immediate
            return self.immediate
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future

    async def fetch_status(self) -> Optional[str]:
        self.status_calls += 1
        if self.status_gate is not None:
            await self.status_gate.wait()
        value = self.statuses.popleft() if self.statuses else self.default_status
        if isinstance(value, BaseException):
            raise value
        return value

    async def fetch_result(self) -> Optional[ResultBundle]:
        self.result_calls += 1
        value = self.results.popleft() if self.results else self.default_result
        if isinstance(value, BaseException):
            raise value
        return value


def build_bundle(hits: int = 3, summary: str = "Likely source: freshwater sediment") -> ResultBundle:
    return ResultBundle(
        summary_text=summary,
        tree_resource_ref="http://search.test/static/tree.png",
        full_result_ref="http://search.test/blast-result",
        top_hits=[
            Hit(title=f"Hit {i}", publication_link=f"https://pubmed.test/{i}")
            for i in range(1, hits + 1)
        ],
    )


async def settle(tracker: JobStateMachine, turns: int = 3) -> None:
    """Give submission tasks a few loop turns, then drain polls and observers."""
    for _ in range(turns):
        await asyncio.sleep(0)
    await tracker.drain()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def tracker_config():
    return JobTrackerConfig(poll_interval=1.0)


@pytest.fixture
def history():
    return PhaseHistoryObserver()


@pytest.fixture
def make_tracker(clock, gateway, history):
    def factory(config: Optional[JobTrackerConfig] = None, observers=None) -> JobStateMachine:
        config = config or JobTrackerConfig(poll_interval=1.0)
        poller = StatusPoller(clock, gateway, config)
        return JobStateMachine(
            gateway,
            poller,
            config,
            observers=[history] if observers is None else observers,
        )

    return factory


@pytest.fixture
def tracker(make_tracker):
    return make_tracker()


@pytest.fixture
def make_bundle():
    return build_bundle


@pytest.fixture
def wait_settled():
    return settle


@pytest.fixture
def query():
    return SearchQuery(sequence="ACGT", search_mode="blastn", database="nt")
