import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field

from esf.core.models.query import SearchQuery
from esf.core.models.result import ResultBundle

IDLE_STATUS_LABEL = "Idle"


class JobPhase(StrEnum):
    idle = "Idle"
    submitting = "Submitting"
    in_flight = "InFlight"
    reconciling = "Reconciling"
    completed = "Completed"
    failed = "Failed"


TERMINAL_PHASES = frozenset({JobPhase.completed, JobPhase.failed})
ACTIVE_PHASES = frozenset({JobPhase.submitting, JobPhase.in_flight})


class ResultSource(StrEnum):
    submission = "submission"
    poll = "poll"


class Job(BaseModel):
    """The single search tracked by a client session.

    Notes:
    - A fresh instance (new `id`) is created for every submission; the id is
      what lets the state machine discard signals addressed to a retired job.
    - `result` is write-once; use `apply_result`.
    - `error_message` is advisory while `degraded` and the job is still in
      flight, terminal once the job failed. It is cleared on completion.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    query: Optional[SearchQuery] = None
    phase: JobPhase = JobPhase.idle
    elapsed_ticks: int = Field(default=0, ge=0)
    status_label: str = IDLE_STATUS_LABEL
    result: Optional[ResultBundle] = None
    result_source: Optional[ResultSource] = None
    error_message: Optional[str] = None
    degraded: bool = False

    created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated: Optional[datetime] = None

    model_config = {"validate_assignment": True}

    def touch(self) -> None:
        self.updated = datetime.now(timezone.utc)

    def is_in_terminal_state(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def is_active(self) -> bool:
        return self.phase in ACTIVE_PHASES

    def apply_result(self, bundle: ResultBundle, source: ResultSource) -> None:
        if self.result is not None:
            raise ValueError(f"Result already applied to job {self.id}")
        self.result = bundle
        self.result_source = source
        self.touch()
