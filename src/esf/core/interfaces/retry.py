from typing import Any, Awaitable, Callable, Protocol


class RetryPort(Protocol):
    """Retries an async call that failed for a transient reason.

    The gateway uses it for result fetches: a fetch that did not complete at
    the transport layer is repeated a few times within one poll tick before
    the tick gives up and leaves it to the next one.
    """

    async def execute(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Await `func(*args, **kwargs)` until it succeeds or attempts run out.

        Recognised keyword overrides: attempts, wait_initial, wait_max,
        exception_types. The last exception is re-raised.
        """
        ...
