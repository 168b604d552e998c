"""JobStateMachine: owns the lifecycle of the single search a client tracks.

Responsibilities:
1. Create a fresh Job per submission (superseding or rejecting an active one).
2. Dispatch the submission and arm the status poller unless the service
   answered within the first event-loop turn.
3. Reconcile the first ResultBundle to arrive, from the submission reply or
   from a poll, exactly once.
4. Stop the poller and freeze the elapsed-time counter in the same step that
   makes the job terminal.
5. Notify observers after every transition.

All state changes happen synchronously inside the entry points below, so no
two of them interleave on the event loop.
"""

from __future__ import annotations

import asyncio
from typing import Optional, Set

from esf.core.config import JobTrackerConfig, SubmissionPolicy
from esf.core.exceptions import ApplicationError, JobInFlightError, TransportError
from esf.core.interfaces.observers import JobStateObserver
from esf.core.interfaces.search_gateway import SearchGatewayPort
from esf.core.managers.elapsed_counter import ElapsedTimeCounter
from esf.core.managers.status_poller import StatusPoller
from esf.core.models.job import ACTIVE_PHASES, Job, JobPhase, ResultSource
from esf.core.models.query import SearchQuery
from esf.core.models.result import ResultBundle, SubmissionPending
from esf.core.settings import logger

UNEXPECTED_SUBMIT_ERROR = "Unexpected error while submitting the search"
SUPERSEDED_MESSAGE = "Superseded by a newer search"


class JobStateMachine:
    """Tracks one search at a time through Idle → Submitting → InFlight → Completed/Failed.

    Attributes:
        config: Immutable configuration (poll interval, submission policy, limits)
    """

    def __init__(
        self,
        gateway: SearchGatewayPort,
        poller: StatusPoller,
        config: JobTrackerConfig,
        observers: Optional[list[JobStateObserver]] = None,
    ) -> None:
        self._gateway = gateway
        self._poller = poller
        self.config = config
        self._observers = observers or []

        self._job = Job()
        self._counter = ElapsedTimeCounter()
        self._finished = asyncio.Event()
        self._submission_task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()

        poller.bind(self)

    @property
    def job(self) -> Job:
        return self._job

    @property
    def poller(self) -> StatusPoller:
        return self._poller

    # ---------------- Submission -----------------
    async def submit(self, query: SearchQuery) -> Job:
        """Start tracking a new search and return its Job.

        Returns once the submission is dispatched; the reply is handled in the
        background. Raises JobInFlightError under the reject policy.
        """
        current = self._job
        if current.is_active():
            if self.config.submission_policy == SubmissionPolicy.reject:
                logger.info(f"[job:submit] rejected; job still active job_id={current.id}")
                raise JobInFlightError(current.id)
            self._retire(current)

        job = Job(query=query, phase=JobPhase.submitting)
        self._job = job
        self._counter = ElapsedTimeCounter()
        self._finished = asyncio.Event()
        logger.info(
            f"[job:submit] job_id={job.id} mode={query.search_mode} database={query.database}"
        )
        self._notify("on_job_submitted", job)
        self._notify("on_phase_changed", job, JobPhase.idle, JobPhase.submitting)

        task = asyncio.create_task(self._run_submission(job.id, query))
        self._submission_task = task
        task.add_done_callback(self._on_submission_done)

        # One turn for a service that answers straight away; after that the
        # reply may take minutes and polling takes over.
        await asyncio.sleep(0)
        if job is self._job and job.is_active():
            self._ensure_polling(job)
        return job

    async def _run_submission(self, job_id: str, query: SearchQuery) -> None:
        try:
            outcome = await self._gateway.submit(query)
        except TransportError as exc:
            self._on_submission_transport_error(job_id, exc)
            return
        except ApplicationError as exc:
            logger.warning(f"[job:submit] search service refused job_id={job_id} message={exc.message}")
            self.fail(job_id, exc.message)
            return
        except Exception as exc:
            logger.exception(f"[job:submit] unexpected exception job_id={job_id} error={exc!r}")
            self.fail(job_id, UNEXPECTED_SUBMIT_ERROR)
            return

        if isinstance(outcome, ResultBundle):
            self.reconcile(job_id, outcome, ResultSource.submission)
        else:
            self._on_submission_pending(job_id, outcome)

    def _on_submission_done(self, task: asyncio.Task) -> None:
        if self._submission_task is task:
            self._submission_task = None

    def _on_submission_pending(self, job_id: str, pending: SubmissionPending) -> None:
        job = self._accepting(job_id, "submit:pending", phases={JobPhase.submitting})
        if job is None:
            return
        if pending.status_label:
            job.status_label = pending.status_label
        self._set_phase(job, JobPhase.in_flight)
        logger.info(f"[job:submit] accepted, awaiting result job_id={job.id}")
        self._ensure_polling(job)

    def _on_submission_transport_error(self, job_id: str, exc: TransportError) -> None:
        job = self._accepting(job_id, "submit:transport", phases={JobPhase.submitting})
        if job is None:
            return
        # The request failed, not necessarily the search: keep watching it.
        job.degraded = True
        job.error_message = self.config.degraded_message
        self._set_phase(job, JobPhase.in_flight)
        logger.warning(
            f"[job:submit] submission did not complete, polling for the outcome job_id={job.id} "
            f"error={exc.message} diagnostic={exc.diagnostic}"
        )
        self._ensure_polling(job)

    # ---------------- Terminal transitions -----------------
    def reconcile(self, job_id: str, bundle: ResultBundle, source: ResultSource) -> bool:
        """Apply the first result to arrive for `job_id`; later ones are discarded.

        Returns True when this call completed the job.
        """
        job = self._accepting(job_id, f"reconcile:{source}", phases=ACTIVE_PHASES)
        if job is None:
            return False

        self._set_phase(job, JobPhase.reconciling)
        job.apply_result(bundle, source)
        job.error_message = None
        job.degraded = False
        self._finish(job, JobPhase.completed)
        logger.info(
            f"[job:reconcile] completed job_id={job.id} source={source} "
            f"hits={len(bundle.top_hits)} elapsed_ticks={job.elapsed_ticks}"
        )
        return True

    def fail(self, job_id: str, message: str) -> bool:
        """Fail `job_id` with a terminal message; no-op for stale or finished jobs."""
        job = self._accepting(job_id, "fail", phases=ACTIVE_PHASES)
        if job is None:
            return False
        job.error_message = message
        job.degraded = False
        self._finish(job, JobPhase.failed)
        logger.warning(f"[job:fail] job_id={job.id} message={message}")
        return True

    def _finish(self, job: Job, phase: JobPhase) -> None:
        self._poller.stop()
        self._counter.freeze()
        job.elapsed_ticks = self._counter.value
        self._set_phase(job, phase)
        self._finished.set()
        self._notify("on_job_finished", job)

    # ---------------- Poll listener -----------------
    def on_poll_tick(self, job_id: str) -> bool:
        job = self._accepting(job_id, "tick", phases=ACTIVE_PHASES, quiet=True)
        if job is None:
            return False
        job.elapsed_ticks = self._counter.tick()
        job.touch()

        limit = self.config.poll_timeout_ticks
        if limit is not None and job.elapsed_ticks >= limit:
            self.fail(job_id, f"Timed out after {limit} polls waiting for the search to finish")
            return False
        return True

    def on_status_observed(self, job_id: str, label: Optional[str]) -> None:
        if label is None:
            return
        job = self._accepting(job_id, "status", phases=ACTIVE_PHASES, quiet=True)
        if job is None or job.status_label == label:
            return
        old_label = job.status_label
        job.status_label = label
        job.touch()
        logger.info(f"[job:status] job_id={job.id} status={old_label!r} -> {label!r}")
        self._notify("on_status_label_changed", job, old_label, label)

    def on_poll_result(self, job_id: str, bundle: ResultBundle) -> bool:
        return self.reconcile(job_id, bundle, ResultSource.poll)

    def on_poll_failure(self, job_id: str, message: str) -> bool:
        return self.fail(job_id, message)

    # ---------------- Helpers -----------------
    def _accepting(
        self,
        job_id: str,
        signal: str,
        phases,
        quiet: bool = False,
    ) -> Optional[Job]:
        """Return the current job when `job_id` names it and it is in `phases`."""
        job = self._job
        if job.id != job_id:
            if not quiet:
                logger.info(f"[job:{signal}] discarded signal for retired job_id={job_id}")
            return None
        if job.phase not in phases:
            if not quiet:
                logger.info(f"[job:{signal}] discarded late signal job_id={job_id} phase={job.phase}")
            return None
        return job

    def _ensure_polling(self, job: Job) -> None:
        if self._poller.active_job_id == job.id:
            return
        self._poller.stop()
        self._poller.start(job.id)

    def _retire(self, job: Job) -> None:
        """Disengage from an active job so nothing it emits can land on the next one.

        The retired job ends Failed with SUPERSEDED_MESSAGE, which also
        releases anyone waiting on it.
        """
        logger.info(f"[job:supersede] retiring job_id={job.id} phase={job.phase}")
        if self._submission_task is not None and not self._submission_task.done():
            self._submission_task.cancel()
        self._submission_task = None
        self.fail(job.id, SUPERSEDED_MESSAGE)

    def _set_phase(self, job: Job, phase: JobPhase) -> None:
        old = job.phase
        job.phase = phase
        job.touch()
        self._notify("on_phase_changed", job, old, phase)

    def _notify(self, event: str, job: Job, *args) -> None:
        if not self._observers:
            return
        snapshot = job.model_copy(deep=True)
        task = asyncio.create_task(self._dispatch(event, snapshot, *args))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _dispatch(self, event: str, job: Job, *args) -> None:
        for observer in self._observers:
            try:
                await getattr(observer, event)(job, *args)
            except Exception as exc:
                logger.error(
                    f"[observer:error] {event} failed observer={type(observer).__name__} "
                    f"job_id={job.id} error={exc}"
                )

    # ---------------- Waiting & lifecycle -----------------
    async def wait_until_finished(self, timeout: Optional[float] = None) -> Job:
        """Wait for the current job to reach Completed or Failed and return it.

        Returns the job that was current when the call started, also when a
        newer submission superseded it meanwhile.
        """
        job, finished = self._job, self._finished
        if job.phase == JobPhase.idle:
            raise RuntimeError("No search has been submitted")
        await asyncio.wait_for(finished.wait(), timeout)
        return job

    async def drain(self) -> None:
        """Let in-flight poll fetches and observer notifications settle."""
        await self._poller.drain()
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        await self._poller.shutdown()
        pending = [t for t in (self._submission_task, *self._tasks) if t is not None]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
