"""
In-memory authority — a self-contained stand-in for the real service.

Holds its own authoritative copy of jobs and candidates and applies the
same rules the service does: unique slugs, order-checked reorders, validated
stage transitions. Latency and failures can be simulated, either at random
or on demand with fail_next().
"""

import asyncio
import logging
import random
import re
from typing import Dict, List, Optional

from talentflow_core.clock import Clock, utcnow
from talentflow_core.config import CoreSettings
from talentflow_core.errors import ConflictError, NetworkError, NotFoundError, ValidationError
from talentflow_core.models.candidate import (
    Candidate,
    CreateCandidateRequest,
    NoteRecord,
    Stage,
    StageRecord,
    UpdateCandidateRequest,
)
from talentflow_core.models.history import CandidateTimeline, NoteEntry, StageChangeEntry
from talentflow_core.models.job import (
    CreateJobRequest,
    Job,
    JobSort,
    JobStatus,
    ReorderJobRequest,
    UpdateJobRequest,
)
from talentflow_core.models.page import Page, paginate
from talentflow_core.ordering.reorder import clamp_order, next_order, reorder
from talentflow_core.pipeline.transitions import ensure_transition

logger = logging.getLogger(__name__)


def slugify(title: str) -> str:
    """'Senior Frontend Engineer!' -> 'senior-frontend-engineer'"""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug or "job"


def generate_unique_slug(title: str, existing: List[str]) -> str:
    """Slug for `title`, suffixed -1, -2, ... until it is not in `existing`."""
    base = slugify(title)
    taken = set(existing)
    if base not in taken:
        return base
    counter = 1
    while f"{base}-{counter}" in taken:
        counter += 1
    return f"{base}-{counter}"


class InMemoryAuthority:
    """
    Authoritative service held in process memory.
    Every method returns copies; callers never share state with it.
    """

    def __init__(
        self,
        failure_rate: float = 0.0,
        reorder_failure_rate: float = 0.0,
        min_delay_seconds: float = 0.0,
        max_delay_seconds: float = 0.0,
        rng: Optional[random.Random] = None,
        clock: Clock = utcnow,
    ):
        self.failure_rate = failure_rate
        self.reorder_failure_rate = reorder_failure_rate
        self.min_delay_seconds = min_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self._rng = rng or random.Random()
        self._clock = clock

        self._jobs: Dict[int, Job] = {}
        self._candidates: Dict[int, Candidate] = {}
        self._failures: List[Exception] = []
        self.calls: List[str] = []

    @classmethod
    def from_settings(cls, settings: CoreSettings, **kwargs) -> "InMemoryAuthority":
        return cls(
            failure_rate=settings.mock_failure_rate,
            reorder_failure_rate=settings.mock_reorder_failure_rate,
            min_delay_seconds=settings.mock_min_delay_seconds,
            max_delay_seconds=settings.mock_max_delay_seconds,
            **kwargs,
        )

    # --- Test and seeding hooks ---

    def fail_next(self, error: Exception) -> None:
        """Make the next call raise `error` instead of running."""
        self._failures.append(error)

    def seed_job(self, job: Job) -> Job:
        self._jobs[job.id] = job.model_copy(deep=True)
        return job

    def seed_candidate(self, candidate: Candidate) -> Candidate:
        self._candidates[candidate.id] = candidate.model_copy(deep=True)
        return candidate

    async def _simulate(self, route: str, failure_rate: Optional[float] = None) -> None:
        """Record the call, then apply latency and failure injection."""
        self.calls.append(route)
        if self.max_delay_seconds > 0:
            await asyncio.sleep(
                self._rng.uniform(self.min_delay_seconds, self.max_delay_seconds)
            )
        if self._failures:
            raise self._failures.pop(0)
        rate = self.failure_rate if failure_rate is None else failure_rate
        if rate and self._rng.random() < rate:
            logger.info("Simulated failure on %s", route)
            raise NetworkError(f"Internal server error ({route})")

    # --- Jobs ---

    async def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        search: Optional[str] = None,
        sort: JobSort = JobSort.ORDER,
    ) -> List[Job]:
        await self._simulate("list_jobs")
        return self._query_jobs(status, search, sort)

    async def page_jobs(
        self,
        page: int = 1,
        page_size: int = 10,
        status: Optional[JobStatus] = None,
        search: Optional[str] = None,
        sort: JobSort = JobSort.ORDER,
    ) -> Page[Job]:
        await self._simulate("page_jobs")
        return paginate(self._query_jobs(status, search, sort), page, page_size)

    def _query_jobs(
        self, status: Optional[JobStatus], search: Optional[str], sort: JobSort
    ) -> List[Job]:
        field = JobSort(sort).value
        jobs = sorted(self._jobs.values(), key=lambda j: (getattr(j, field), j.id))
        if status is not None:
            jobs = [j for j in jobs if j.status == JobStatus(status)]
        if search:
            needle = search.lower()
            jobs = [
                j for j in jobs
                if needle in j.title.lower() or any(needle in t.lower() for t in j.tags)
            ]
        return [j.model_copy(deep=True) for j in jobs]

    async def get_job(self, job_id: int) -> Job:
        await self._simulate("get_job")
        return self._require_job(job_id).model_copy(deep=True)

    async def create_job(self, request: CreateJobRequest) -> Job:
        await self._simulate("create_job")
        title = request.title.strip()
        if not title:
            raise ValidationError("Title is required")

        now = self._clock()
        job = Job(
            id=max(self._jobs, default=0) + 1,
            title=title,
            slug=generate_unique_slug(title, [j.slug for j in self._jobs.values()]),
            status=request.status,
            tags=list(request.tags),
            order=next_order(list(self._jobs.values())),
            created_at=now,
            updated_at=now,
        )
        self._jobs[job.id] = job
        return job.model_copy(deep=True)

    async def update_job(self, job_id: int, request: UpdateJobRequest) -> Job:
        await self._simulate("update_job")
        job = self._require_job(job_id)
        updates = request.model_dump(exclude_none=True)

        if "title" in updates:
            title = updates["title"].strip()
            if not title:
                raise ValidationError("Title is required", job_id)
            updates["title"] = title
            if title != job.title:
                others = [j.slug for j in self._jobs.values() if j.id != job_id]
                updates["slug"] = generate_unique_slug(title, others)

        updates["updated_at"] = self._clock()
        updated = job.model_copy(update=updates)
        self._jobs[job_id] = updated
        return updated.model_copy(deep=True)

    async def reorder_job(self, job_id: int, request: ReorderJobRequest) -> Job:
        await self._simulate("reorder_job", failure_rate=self.reorder_failure_rate)
        job = self._require_job(job_id)
        if request.from_order == request.to_order:
            return job.model_copy(deep=True)
        if job.order != request.from_order:
            raise ConflictError("Job order mismatch", job_id)

        to_order = clamp_order(request.to_order, len(self._jobs))
        for moved in reorder(list(self._jobs.values()), job_id, to_order):
            self._jobs[moved.id] = moved
        self._jobs[job_id] = self._jobs[job_id].model_copy(
            update={"updated_at": self._clock()}
        )
        return self._jobs[job_id].model_copy(deep=True)

    def _require_job(self, job_id: int) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError("Job not found", job_id)
        return job

    # --- Candidates ---

    async def list_candidates(
        self,
        stage: Optional[Stage] = None,
        search: Optional[str] = None,
        job_id: Optional[int] = None,
    ) -> List[Candidate]:
        await self._simulate("list_candidates")
        return self._query_candidates(stage, search, job_id)

    async def page_candidates(
        self,
        page: int = 1,
        page_size: int = 10,
        stage: Optional[Stage] = None,
        search: Optional[str] = None,
        job_id: Optional[int] = None,
    ) -> Page[Candidate]:
        await self._simulate("page_candidates")
        return paginate(self._query_candidates(stage, search, job_id), page, page_size)

    def _query_candidates(
        self, stage: Optional[Stage], search: Optional[str], job_id: Optional[int]
    ) -> List[Candidate]:
        candidates = list(self._candidates.values())
        if stage is not None:
            candidates = [c for c in candidates if c.stage == Stage(stage)]
        if job_id is not None:
            candidates = [c for c in candidates if c.job_id == job_id]
        if search:
            needle = search.lower()
            candidates = [
                c for c in candidates
                if needle in c.name.lower() or needle in c.email.lower()
            ]
        return [c.model_copy(deep=True) for c in candidates]

    async def get_candidate(self, candidate_id: int) -> Candidate:
        await self._simulate("get_candidate")
        return self._require_candidate(candidate_id).model_copy(deep=True)

    async def get_candidate_timeline(self, candidate_id: int) -> CandidateTimeline:
        """Stage history and notes of a candidate merged, oldest first."""
        await self._simulate("get_candidate_timeline")
        candidate = self._require_candidate(candidate_id)

        entries = []
        previous = None
        for record in candidate.history:
            entries.append(StageChangeEntry(
                stage=record.stage, from_stage=previous, timestamp=record.timestamp
            ))
            previous = record.stage
        entries.extend(NoteEntry(text=n.text, timestamp=n.timestamp) for n in candidate.notes)
        entries.sort(key=lambda e: e.timestamp)

        return CandidateTimeline(
            candidate_id=candidate.id,
            name=candidate.name,
            email=candidate.email,
            current_stage=candidate.stage,
            entries=entries,
        )

    async def create_candidate(self, request: CreateCandidateRequest) -> Candidate:
        await self._simulate("create_candidate")
        if not request.name.strip() or not request.email.strip():
            raise ValidationError("Name and email are required")
        if request.job_id not in self._jobs:
            raise ValidationError(f"Job {request.job_id} does not exist")

        now = self._clock()
        candidate = Candidate(
            id=max(self._candidates, default=0) + 1,
            name=request.name.strip(),
            email=request.email.strip(),
            job_id=request.job_id,
            stage=request.stage,
            history=[StageRecord(stage=request.stage, timestamp=now)],
            notes=[],
            created_at=now,
        )
        self._candidates[candidate.id] = candidate
        return candidate.model_copy(deep=True)

    async def update_candidate(
        self, candidate_id: int, request: UpdateCandidateRequest
    ) -> Candidate:
        await self._simulate("update_candidate")
        candidate = self._require_candidate(candidate_id)
        updates: dict = {}
        now = self._clock()

        if request.stage is not None and request.stage != candidate.stage:
            ensure_transition(candidate.stage, request.stage)
            updates["stage"] = request.stage
            updates["history"] = [
                *candidate.history,
                StageRecord(stage=request.stage, timestamp=now),
            ]

        if request.notes is not None:
            updates["notes"] = [*candidate.notes, NoteRecord(text=request.notes, timestamp=now)]

        if not updates:
            raise ValidationError("No valid updates provided", candidate_id)

        updated = candidate.model_copy(update=updates)
        self._candidates[candidate_id] = updated
        return updated.model_copy(deep=True)

    def _require_candidate(self, candidate_id: int) -> Candidate:
        candidate = self._candidates.get(candidate_id)
        if candidate is None:
            raise NotFoundError("Candidate not found", candidate_id)
        return candidate
