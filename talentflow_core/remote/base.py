"""The remote authority — the service whose answer is final."""

from typing import List, Optional, Protocol

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


class RemoteAuthority(Protocol):
    """
    Async interface to the authoritative service.

    Implementations raise NotFoundError, ValidationError, ConflictError or
    NetworkError; any other exception is a bug.

    `list_*` return every match; `page_*` return one page of the same list.
    """

    async def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        search: Optional[str] = None,
        sort: JobSort = JobSort.ORDER,
    ) -> List[Job]: ...

    async def page_jobs(
        self,
        page: int = 1,
        page_size: int = 10,
        status: Optional[JobStatus] = None,
        search: Optional[str] = None,
        sort: JobSort = JobSort.ORDER,
    ) -> Page[Job]: ...

    async def get_job(self, job_id: int) -> Job: ...

    async def create_job(self, request: CreateJobRequest) -> Job: ...

    async def update_job(self, job_id: int, request: UpdateJobRequest) -> Job: ...

    async def reorder_job(self, job_id: int, request: ReorderJobRequest) -> Job: ...

    async def list_candidates(
        self,
        stage: Optional[Stage] = None,
        search: Optional[str] = None,
        job_id: Optional[int] = None,
    ) -> List[Candidate]: ...

    async def page_candidates(
        self,
        page: int = 1,
        page_size: int = 10,
        stage: Optional[Stage] = None,
        search: Optional[str] = None,
        job_id: Optional[int] = None,
    ) -> Page[Candidate]: ...

    async def get_candidate(self, candidate_id: int) -> Candidate: ...

    async def get_candidate_timeline(self, candidate_id: int) -> CandidateTimeline: ...

    async def create_candidate(self, request: CreateCandidateRequest) -> Candidate: ...

    async def update_candidate(
        self, candidate_id: int, request: UpdateCandidateRequest
    ) -> Candidate: ...
