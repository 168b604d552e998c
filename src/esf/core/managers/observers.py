"""Concrete observers for job state transitions."""

import logging
from typing import Dict, List, Tuple

from esf.core.models.job import Job, JobPhase


logger = logging.getLogger(__name__)


class PhaseHistoryObserver:
    """Records every phase transition per job id.

    Gives the CLI and the tests an ordered account of what a job went through.
    """

    def __init__(self) -> None:
        self._history: Dict[str, List[Tuple[JobPhase, JobPhase]]] = {}

    def history(self, job_id: str) -> List[Tuple[JobPhase, JobPhase]]:
        return list(self._history.get(job_id, []))

    def phases(self, job_id: str) -> List[JobPhase]:
        """Phases visited in order, starting with the first target phase."""
        return [new for _, new in self._history.get(job_id, [])]

    async def on_job_submitted(self, job: Job) -> None:
        self._history.setdefault(job.id, [])

    async def on_phase_changed(self, job: Job, old_phase: JobPhase, new_phase: JobPhase) -> None:
        self._history.setdefault(job.id, []).append((old_phase, new_phase))
        logger.debug(f"[observer:history] job_id={job.id} {old_phase} -> {new_phase}")

    async def on_status_label_changed(self, job: Job, old_label: str, new_label: str) -> None:
        pass

    async def on_job_finished(self, job: Job) -> None:
        """Terminal phase already recorded in on_phase_changed."""
        pass
