"""
HTTP authority — talks to the service over its REST API.

Status mapping:
  400, 422      → ValidationError
  404           → NotFoundError
  409           → ConflictError
  other >= 400  → NetworkError (server-side failure, safe to retry)
  transport     → NetworkError
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import httpx

from talentflow_core.config import CoreSettings
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

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")

# Full listings are fetched page by page at the largest size the API serves.
_FETCH_PAGE_SIZE = 100

_STATUS_ERRORS = {
    400: ValidationError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


def classify_response(response: httpx.Response) -> TalentFlowError:
    """Build the error matching a failed response."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    message = None
    if isinstance(body, dict):
        message = body.get("error") or body.get("detail")
    if not isinstance(message, str):
        message = f"HTTP {response.status_code}"
    error_cls = _STATUS_ERRORS.get(response.status_code, NetworkError)
    return error_cls(message)


async def _collect(fetch: Callable[[int], Awaitable[Page[ItemT]]]) -> List[ItemT]:
    """Follow pages from the first until the server reports no more."""
    items: List[ItemT] = []
    page = 1
    while True:
        result = await fetch(page)
        items.extend(result.data)
        if not result.pagination.has_more:
            return items
        page += 1


class HttpAuthority:
    """
    Remote authority reached over HTTP.
    Pass `client` to share a connection pool or to route to an ASGI app.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000/api",
        timeout_seconds: Optional[float] = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds)
        self._owns_client = client is None

    @classmethod
    def from_settings(cls, settings: CoreSettings) -> "HttpAuthority":
        return cls(
            base_url=settings.remote_base_url,
            timeout_seconds=settings.remote_timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Request timed out: {method} {path}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Could not reach the server: {exc}") from exc

        if response.is_error:
            error = classify_response(response)
            logger.info(
                "%s %s failed with %d (%s)",
                method, path, response.status_code, type(error).__name__,
            )
            raise error
        return response.json()

    # --- Jobs ---

    async def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        search: Optional[str] = None,
        sort: JobSort = JobSort.ORDER,
    ) -> List[Job]:
        return await _collect(
            lambda page: self.page_jobs(page, _FETCH_PAGE_SIZE, status, search, sort)
        )

    async def page_jobs(
        self,
        page: int = 1,
        page_size: int = 10,
        status: Optional[JobStatus] = None,
        search: Optional[str] = None,
        sort: JobSort = JobSort.ORDER,
    ) -> Page[Job]:
        params: dict = {"page": page, "page_size": page_size, "sort": JobSort(sort).value}
        if status is not None:
            params["status"] = JobStatus(status).value
        if search:
            params["search"] = search
        data = await self._request("GET", "/jobs", params=params)
        return Page[Job].model_validate(data)

    async def get_job(self, job_id: int) -> Job:
        return Job.model_validate(await self._request("GET", f"/jobs/{job_id}"))

    async def create_job(self, request: CreateJobRequest) -> Job:
        data = await self._request("POST", "/jobs", json=request.model_dump(mode="json"))
        return Job.model_validate(data)

    async def update_job(self, job_id: int, request: UpdateJobRequest) -> Job:
        data = await self._request(
            "PATCH", f"/jobs/{job_id}", json=request.model_dump(mode="json", exclude_none=True)
        )
        return Job.model_validate(data)

    async def reorder_job(self, job_id: int, request: ReorderJobRequest) -> Job:
        data = await self._request(
            "PATCH", f"/jobs/{job_id}/reorder", json=request.model_dump(mode="json")
        )
        return Job.model_validate(data)

    # --- Candidates ---

    async def list_candidates(
        self,
        stage: Optional[Stage] = None,
        search: Optional[str] = None,
        job_id: Optional[int] = None,
    ) -> List[Candidate]:
        return await _collect(
            lambda page: self.page_candidates(page, _FETCH_PAGE_SIZE, stage, search, job_id)
        )

    async def page_candidates(
        self,
        page: int = 1,
        page_size: int = 10,
        stage: Optional[Stage] = None,
        search: Optional[str] = None,
        job_id: Optional[int] = None,
    ) -> Page[Candidate]:
        params: dict = {"page": page, "page_size": page_size}
        if stage is not None:
            params["stage"] = Stage(stage).value
        if search:
            params["search"] = search
        if job_id is not None:
            params["job_id"] = job_id
        data = await self._request("GET", "/candidates", params=params)
        return Page[Candidate].model_validate(data)

    async def get_candidate(self, candidate_id: int) -> Candidate:
        return Candidate.model_validate(
            await self._request("GET", f"/candidates/{candidate_id}")
        )

    async def get_candidate_timeline(self, candidate_id: int) -> CandidateTimeline:
        return CandidateTimeline.model_validate(
            await self._request("GET", f"/candidates/{candidate_id}/timeline")
        )

    async def create_candidate(self, request: CreateCandidateRequest) -> Candidate:
        data = await self._request("POST", "/candidates", json=request.model_dump(mode="json"))
        return Candidate.model_validate(data)

    async def update_candidate(
        self, candidate_id: int, request: UpdateCandidateRequest
    ) -> Candidate:
        data = await self._request(
            "PATCH",
            f"/candidates/{candidate_id}",
            json=request.model_dump(mode="json", exclude_none=True),
        )
        return Candidate.model_validate(data)
