"""Clock port: periodic scheduling with cancellation.

Contract honoured by every adapter:
- no callback runs after `cancel()` returned,
- `cancel()` may be called any number of times.
"""
from abc import ABC, abstractmethod
from typing import Callable


class TimerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None:
        """Stop the timer; idempotent."""
        pass

    @property
    @abstractmethod
    def active(self) -> bool:
        pass


class ClockPort(ABC):
    @abstractmethod
    def schedule_periodic(self, period: float, callback: Callable[[], None]) -> TimerHandle:
        """Run `callback` every `period` seconds, first run one period from now."""
        pass
