"""
TalentFlow API — FastAPI endpoints serving an in-memory authority.

Exposes the authoritative service over REST for:
- Paged, sorted job listing, creation, update and reordering
- Paged candidate listing, creation, stage changes, notes and timelines

Errors are returned as {"error": "<message>"} with the status code matching
the error class (400 validation, 404 not found, 409 conflict, 500 server).
"""

from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from talentflow_core.config import CoreSettings, get_settings
from talentflow_core.errors import (
    ConflictError,
    NetworkError,
    NotFoundError,
    TalentFlowError,
    ValidationError,
)
from talentflow_core.models.candidate import (
    Candidate,
    CreateCandidateRequest,
    Stage,
    UpdateCandidateRequest,
)
from talentflow_core.models.history import CandidateTimeline
from talentflow_core.models.job import (
    CreateJobRequest,
    Job,
    JobSort,
    JobStatus,
    ReorderJobRequest,
    UpdateJobRequest,
)
from talentflow_core.models.page import Page
from talentflow_core.remote.memory import InMemoryAuthority

_ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    ConflictError: 409,
    NetworkError: 500,
}


def create_app(
    authority: Optional[InMemoryAuthority] = None,
    settings: Optional[CoreSettings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="TalentFlow API",
        description="Authoritative jobs and candidates service",
        version="0.1.0",
    )

    auth = authority or InMemoryAuthority.from_settings(settings or get_settings())
    app.state.authority = auth

    @app.exception_handler(TalentFlowError)
    async def handle_domain_error(request: Request, exc: TalentFlowError):
        status = next(
            (code for cls, code in _ERROR_STATUS.items() if isinstance(exc, cls)), 500
        )
        return JSONResponse(status_code=status, content={"error": exc.message})

    # === JOBS ===

    @app.get("/api/jobs", response_model=Page[Job])
    async def list_jobs(
        status: Optional[JobStatus] = None,
        search: Optional[str] = None,
        sort: JobSort = JobSort.ORDER,
        page: int = Query(1, ge=1),
        page_size: int = Query(10, ge=1, le=100),
    ):
        return await auth.page_jobs(
            page=page, page_size=page_size, status=status, search=search, sort=sort
        )

    @app.post("/api/jobs", response_model=Job, status_code=201)
    async def create_job(req: CreateJobRequest):
        return await auth.create_job(req)

    @app.get("/api/jobs/{job_id}", response_model=Job)
    async def get_job(job_id: int):
        return await auth.get_job(job_id)

    @app.patch("/api/jobs/{job_id}", response_model=Job)
    async def update_job(job_id: int, req: UpdateJobRequest):
        return await auth.update_job(job_id, req)

    @app.patch("/api/jobs/{job_id}/reorder", response_model=Job)
    async def reorder_job(job_id: int, req: ReorderJobRequest):
        return await auth.reorder_job(job_id, req)

    # === CANDIDATES ===

    @app.get("/api/candidates", response_model=Page[Candidate])
    async def list_candidates(
        stage: Optional[Stage] = None,
        search: Optional[str] = None,
        job_id: Optional[int] = None,
        page: int = Query(1, ge=1),
        page_size: int = Query(10, ge=1, le=100),
    ):
        return await auth.page_candidates(
            page=page, page_size=page_size, stage=stage, search=search, job_id=job_id
        )

    @app.post("/api/candidates", response_model=Candidate, status_code=201)
    async def create_candidate(req: CreateCandidateRequest):
        return await auth.create_candidate(req)

    @app.get("/api/candidates/{candidate_id}", response_model=Candidate)
    async def get_candidate(candidate_id: int):
        return await auth.get_candidate(candidate_id)

    @app.get("/api/candidates/{candidate_id}/timeline", response_model=CandidateTimeline)
    async def get_candidate_timeline(candidate_id: int):
        return await auth.get_candidate_timeline(candidate_id)

    @app.patch("/api/candidates/{candidate_id}", response_model=Candidate)
    async def update_candidate(candidate_id: int, req: UpdateCandidateRequest):
        return await auth.update_candidate(candidate_id, req)

    return app
