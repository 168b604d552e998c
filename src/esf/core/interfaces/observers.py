"""Observer protocol for job state transitions.

Observers decouple side effects (history, console output, UI push) from the
state machine. They receive a snapshot of the job taken at the moment of the
transition, so a slow observer never sees a later state by accident.
"""

from typing import Protocol
from esf.core.models.job import Job, JobPhase


class JobStateObserver(Protocol):
    """Observer protocol for job state transitions.

    Implementations can react to job lifecycle events:
    - on_job_submitted: A new job was created for a submission
    - on_phase_changed: The job moved between phases
    - on_status_label_changed: A poll reported a different status label
    - on_job_finished: The job reached Completed or Failed
    """

    async def on_job_submitted(self, job: Job) -> None:
        ...

    async def on_phase_changed(self, job: Job, old_phase: JobPhase, new_phase: JobPhase) -> None:
        ...

    async def on_status_label_changed(self, job: Job, old_label: str, new_label: str) -> None:
        ...

    async def on_job_finished(self, job: Job) -> None:
        ...
