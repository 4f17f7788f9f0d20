"""
Job Board — the ranked job collection with optimistic edits and reorders.

Behavioral Contract:
- Committed job orders over the whole collection, archived jobs included,
  are always exactly 1..N.
- Reorders renumber against the latest committed collection at the moment
  they start and are published before the server answers.
- A reorder locks only the moved job. The jobs it shifts stay editable;
  the reorder publishes, commits or discards only their order.
- On commit the shift is recomputed against the committed collection of that
  moment, so reorders that overlapped in flight still leave it dense.
- Field updates never take `order` from the server; positions change only
  through reorders.
- If the server confirms a different position than the one we speculated,
  the reorder is rolled back with ConflictError so the caller can refresh.
"""

import logging
from typing import List, Optional

from talentflow_core.clock import Clock, utcnow
from talentflow_core.errors import ConflictError, NotFoundError
from talentflow_core.models.job import (
    CreateJobRequest,
    Job,
    JobStatus,
    ReorderJobRequest,
    UpdateJobRequest,
)
from talentflow_core.mutation.coordinator import (
    OptimisticMutationCoordinator,
    server_wins,
    server_wins_on,
)
from talentflow_core.ordering.reorder import clamp_order, dense_ranking_violations, reorder
from talentflow_core.remote.base import RemoteAuthority
from talentflow_core.store.entity_store import EntityStore

logger = logging.getLogger(__name__)

_UPDATE_FIELDS = tuple(f for f in Job.model_fields if f != "order")


class JobBoard:
    """Ordered collection store for jobs."""

    def __init__(
        self,
        store: EntityStore[Job],
        coordinator: OptimisticMutationCoordinator,
        authority: RemoteAuthority,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.coordinator = coordinator
        self.authority = authority
        self._clock = clock

    # --- Reads ---

    def get_all(self, status: Optional[JobStatus] = None) -> List[Job]:
        """Visible jobs in board order."""
        jobs = sorted(self.store.get_all(), key=lambda j: (j.order, j.id))
        if status is not None:
            jobs = [j for j in jobs if j.status == JobStatus(status)]
        return jobs

    def get_by_id(self, job_id: int) -> Optional[Job]:
        return self.store.get_by_id(job_id)

    def ranking_violations(self, include_archived: bool = False) -> dict:
        """
        Missing, duplicate and out-of-range orders in the committed collection.

        By default only non-archived jobs are checked. Archived jobs keep their
        rank, so archiving a job above others leaves a gap here; with
        `include_archived` the whole collection is checked, and that stays
        dense.
        """
        return dense_ranking_violations(
            self.store.committed_all(), include_archived=include_archived
        )

    # --- Loading and creation ---

    async def load(self) -> List[Job]:
        """
        Replace local jobs with the authority's current list.

        This is the refetch path after a ConflictError. Jobs with a mutation
        in flight keep their local state.
        """
        jobs = await self.authority.list_jobs()
        for job in jobs:
            if self.coordinator.is_in_flight(job.id):
                continue
            self.store.insert(job, replace=True)
        logger.info("Loaded %d jobs", len(jobs))
        return self.get_all()

    async def create(self, request: CreateJobRequest, order: Optional[int] = None) -> Job:
        """
        Create a job. It is appended at N+1; with `order` it is then moved
        there, renumbering the jobs below it.
        """
        job = self.store.insert(await self.authority.create_job(request))
        if order is not None and order != job.order:
            job = await self.reorder(job.id, order)
        return job

    # --- Mutations ---

    async def update(self, job_id: int, request: UpdateJobRequest) -> Job:
        """Optimistic field update; the server's answer wins."""
        updates = request.model_dump(exclude_none=True)

        def apply(snapshot):
            job = Job.model_validate(snapshot.state)
            return job.model_copy(update={**updates, "updated_at": self._clock()})

        self._require(job_id)
        await self.coordinator.mutate(
            job_id,
            apply,
            lambda: self.authority.update_job(job_id, request),
            reconcile=server_wins_on(*_UPDATE_FIELDS),
        )
        return self.store.committed(job_id)

    async def archive(self, job_id: int) -> Job:
        return await self.update(job_id, UpdateJobRequest(status=JobStatus.ARCHIVED))

    async def unarchive(self, job_id: int) -> Job:
        return await self.update(job_id, UpdateJobRequest(status=JobStatus.ACTIVE))

    async def reorder(self, job_id: int, to_order: int) -> Job:
        """
        Move a job to `to_order` (clamped into 1..N).

        Returns the committed job. A no-op move returns it without calling
        the server.
        """
        current = self._require(job_id)
        target = clamp_order(to_order, self.store.count())
        if current.order == target:
            return current
        from_order = current.order

        def apply(snapshot):
            baseline = self.store.committed_all()
            moved = reorder(baseline, job_id, target)
            before = {j.id: j.order for j in baseline}
            return {j.id: j for j in moved if before[j.id] != j.order}

        def reconcile(entity_id, changes, result):
            if result.order != target:
                raise ConflictError(
                    f"Server placed job {job_id} at {result.order}, expected "
                    f"{target}. Refresh the board and retry.",
                    job_id,
                )
            collection = self.store.committed_all()
            moved = reorder(collection, job_id, target)
            before = {j.id: j.order for j in collection}
            shifted = {j.id: j for j in moved if before[j.id] != j.order}
            shifted.setdefault(job_id, self.store.committed(job_id))
            return server_wins(job_id, shifted, result)

        request = ReorderJobRequest(from_order=from_order, to_order=target)
        await self.coordinator.mutate(
            job_id,
            apply,
            lambda: self.authority.reorder_job(job_id, request),
            reconcile=reconcile,
        )
        return self.store.committed(job_id)

    def _require(self, job_id: int) -> Job:
        job = self.store.committed(job_id)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found", job_id)
        return job
