# esf/adapters/web/fastapi.py
from contextlib import asynccontextmanager
from typing import Callable

import uuid

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from esf.core.exceptions import JobInFlightError
from esf.core.interfaces.http_client import HttpClientPort
from esf.core.logging_config import correlation_id_var
from esf.core.managers.job_state_machine import JobStateMachine
from esf.core.models.job import Job
from esf.core.models.problem import ProblemResponse
from esf.core.models.query import SearchQuery
from esf.core.settings import logger


# Driver adapter: it depends on the core (JobStateMachine) but the core does
# not know about it.
def create_app(
    tracker_factory: Callable[[HttpClientPort], JobStateMachine],
    http_client: HttpClientPort,
) -> FastAPI:
    """Create the FastAPI app.

    Concrete infrastructure (clock, gateway, retry) is assembled by the
    composition root and handed in through `tracker_factory`, which receives
    the opened HTTP client.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with http_client as client:
            tracker = tracker_factory(client)
            app.state.tracker = tracker
            try:
                yield
            finally:
                await tracker.shutdown()

    app = FastAPI(title="Environmental Source Finder", lifespan=lifespan)

    def render_problem(problem: ProblemResponse) -> JSONResponse:
        payload = jsonable_encoder(problem.model_dump(exclude_none=True))
        return JSONResponse(status_code=problem.status, content=payload)

    def build_problem(
        status: int,
        title: str,
        detail: str,
        request: Request,
        type_uri: str = "about:blank",
    ) -> ProblemResponse:
        problem = ProblemResponse(
            type=type_uri,
            title=title,
            status=status,
            detail=detail,
            instance=str(request.url),
        )
        cid = correlation_id_var.get()
        return problem.with_request_id(cid) if cid != "-" else problem

    # Correlation ID middleware: per-request id (header override) exposed to logging
    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next):
        incoming = request.headers.get("x-request-id")
        cid = incoming or uuid.uuid4().hex[:12]
        token = correlation_id_var.set(cid)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)
        response.headers["X-Request-ID"] = cid
        return response

    @app.exception_handler(JobInFlightError)
    async def job_in_flight_handler(request: Request, exc: JobInFlightError):
        problem = build_problem(
            status=409,
            title="Search Already Running",
            detail=str(exc),
            request=request,
        )
        return render_problem(problem)

    @app.post("/search", response_model=Job, status_code=202)
    async def submit_search(request: Request, query: SearchQuery):
        tracker: JobStateMachine = request.app.state.tracker
        job = await tracker.submit(query)
        logger.debug(f"[api:search] submitted job_id={job.id} phase={job.phase}")
        return job

    @app.get("/search", response_model=Job)
    async def get_search(request: Request):
        tracker: JobStateMachine = request.app.state.tracker
        return tracker.job

    @app.get("/health")
    async def health(request: Request):
        tracker: JobStateMachine = request.app.state.tracker
        return {
            "status": "ok",
            "phase": str(tracker.job.phase),
            "polling": tracker.poller.is_active,
        }

    return app
