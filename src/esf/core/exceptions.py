from typing import Optional


class SearchServiceError(Exception):
    """Base exception for failures talking to the remote search service.

    Attributes:
        message: Human-readable error description
        diagnostic: Technical detail for logs (never shown as the job message)
    """
    def __init__(self, message: str, diagnostic: Optional[str] = None):
        self.message = message
        self.diagnostic = diagnostic
        super().__init__(message)


class TransportError(SearchServiceError):
    """The network call itself did not complete (refused, reset, client timeout).

    Says nothing about the remote computation, which may still be running.
    """


class ApplicationError(SearchServiceError):
    """The search service explicitly reported a failure.

    `message` is the service's own text and is surfaced verbatim.
    """
    def __init__(
        self,
        message: str,
        upstream_status: Optional[int] = None,
        diagnostic: Optional[str] = None,
    ):
        self.upstream_status = upstream_status
        super().__init__(message=message, diagnostic=diagnostic)


class ProtocolError(ApplicationError):
    """A reply arrived but did not match the documented shape."""

    GENERIC_MESSAGE = "The search service returned an unexpected response"

    def __init__(self, diagnostic: Optional[str] = None, upstream_status: Optional[int] = None):
        super().__init__(
            message=self.GENERIC_MESSAGE,
            upstream_status=upstream_status,
            diagnostic=diagnostic,
        )


class PollerAlreadyActiveError(RuntimeError):
    """Raised by `StatusPoller.start` while a poll handle is still live."""
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Poller already active for job {job_id}; stop it first")


class JobInFlightError(RuntimeError):
    """Raised on submit under the reject policy while a job is still active."""
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job {job_id} is still in flight")
