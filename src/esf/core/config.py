"""Configuration models for core domain components.

Pydantic-based configuration classes that consolidate settings for the gateway
and the job tracking managers, enabling dependency injection and testability.
"""

from enum import StrEnum
from typing import Optional, Tuple

from pydantic import BaseModel, Field, HttpUrl


class SubmissionPolicy(StrEnum):
    """What a new submission does while the previous job is still active."""

    supersede = "supersede"
    reject = "reject"


class GatewayConfig(BaseModel):
    """Configuration for the HTTP search gateway.

    Attributes:
        base_url: Search service root; relative references in replies resolve against it
        submit_path/status_path/result_path: Endpoint paths below `base_url`
        submit_timeout: Total seconds the submission request may stay open
        request_timeout: Total seconds for status and result requests
        transient_statuses: HTTP statuses on submit that mean "the request did not get through"
        result_fetch_attempts: Attempts for a result fetch that fails at the transport layer
    """

    base_url: HttpUrl = Field(
        default=HttpUrl("http://localhost:5000"),
        description="Root URL of the remote search service",
    )

    submit_path: str = "/blast"
    status_path: str = "/status"
    result_path: str = "/results"

    submit_timeout: float = Field(
        default=600.0,
        gt=0,
        description="Client-side timeout in seconds for the long-running submission request",
    )

    request_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Client-side timeout in seconds for status and result requests",
    )

    # A proxy in front of the service answers these when the client's own long
    # request times out while the search keeps running.
    transient_statuses: Tuple[int, ...] = (502, 503, 504)

    result_fetch_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for result fetches failing with a transport error",
    )

    result_retry_base_wait: float = Field(default=0.2, gt=0)
    result_retry_max_wait: float = Field(default=1.0, gt=0)

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    def url_for(self, path: str) -> str:
        return str(self.base_url).rstrip("/") + "/" + path.lstrip("/")

    @classmethod
    def from_app_settings(cls, settings) -> "GatewayConfig":
        """Factory method to construct config from an EsfSettings instance."""
        return cls(
            base_url=settings.ESF_SEARCH_SERVICE_URL,
            submit_path=settings.ESF_SUBMIT_PATH,
            status_path=settings.ESF_STATUS_PATH,
            result_path=settings.ESF_RESULT_PATH,
            submit_timeout=settings.ESF_SUBMIT_TIMEOUT,
            request_timeout=settings.ESF_REQUEST_TIMEOUT,
            result_fetch_attempts=settings.ESF_RESULT_FETCH_ATTEMPTS,
        )


class JobTrackerConfig(BaseModel):
    """Configuration for the job state machine and its status poller.

    Attributes:
        poll_interval: Seconds between poll ticks (float for test flexibility)
        submission_policy: Supersede or reject a submission while a job is active
        status_poll_max_failures: Consecutive status polls without information before
            the job is failed (None = keep polling)
        poll_timeout_ticks: Elapsed ticks after which the client gives up (None = never)
        completed_labels/failed_labels: Status labels (case-insensitive) that end polling
    """

    poll_interval: float = Field(
        default=1.0,
        gt=0,
        description="Interval in seconds between status poll ticks",
    )

    submission_policy: SubmissionPolicy = SubmissionPolicy.supersede

    status_poll_max_failures: Optional[int] = Field(
        default=None,
        ge=1,
        description="Consecutive status polls without information tolerated (None for no limit)",
    )

    poll_timeout_ticks: Optional[int] = Field(
        default=None,
        ge=1,
        description="Elapsed ticks before the job is failed client-side (None for no limit)",
    )

    completed_labels: Tuple[str, ...] = ("completed", "complete", "done", "finished", "successful")
    failed_labels: Tuple[str, ...] = ("failed", "error")

    degraded_message: str = "Still processing, results will update automatically."

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    def is_completed_label(self, label: Optional[str]) -> bool:
        return bool(label) and label.strip().lower() in self.completed_labels

    def is_failed_label(self, label: Optional[str]) -> bool:
        return bool(label) and label.strip().lower() in self.failed_labels

    @classmethod
    def from_app_settings(cls, settings) -> "JobTrackerConfig":
        """Factory method to construct config from an EsfSettings instance."""
        return cls(
            poll_interval=settings.ESF_POLL_INTERVAL,
            submission_policy=SubmissionPolicy(settings.ESF_SUBMISSION_POLICY),
            status_poll_max_failures=settings.ESF_STATUS_POLL_MAX_FAILURES,
            poll_timeout_ticks=settings.ESF_POLL_TIMEOUT_TICKS,
        )
