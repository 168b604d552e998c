from typing import Any, Awaitable, Callable, Sequence, Type

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential

from esf.core.exceptions import TransportError
from esf.core.settings import logger


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        f"[retry] attempt={state.attempt_number} failed error={exc!r}; "
        f"retrying in {state.next_action.sleep if state.next_action else 0:.2f}s"
    )


class TenacityRetryAdapter:
    """RetryPort backed by tenacity's AsyncRetrying with exponential backoff.

    Only TransportError is retried unless told otherwise: a failure the search
    service reported itself will not go away by asking again.
    """

    def __init__(
        self,
        attempts: int = 3,
        wait_initial: float = 0.2,
        wait_max: float = 1.0,
        exception_types: Sequence[Type[Exception]] = (TransportError,),
    ) -> None:
        self.attempts = attempts
        self.wait_initial = wait_initial
        self.wait_max = wait_max
        self.exception_types = tuple(exception_types)

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(kwargs.pop("attempts", self.attempts)),
            wait=wait_exponential(
                multiplier=kwargs.pop("wait_initial", self.wait_initial),
                max=kwargs.pop("wait_max", self.wait_max),
            ),
            retry=retry_if_exception_type(tuple(kwargs.pop("exception_types", self.exception_types))),
            before_sleep=_log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await func(*args, **kwargs)
