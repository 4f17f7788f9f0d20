"""Tests for the job board (ordered collection store)."""

import asyncio

import pytest

from talentflow_core.errors import ConflictError, NetworkError, NotFoundError
from talentflow_core.models.job import CreateJobRequest, Job, JobStatus, UpdateJobRequest
from talentflow_core.mutation.coordinator import OptimisticMutationCoordinator
from talentflow_core.remote.memory import InMemoryAuthority
from talentflow_core.store.entity_store import EntityStore
from talentflow_core.store.jobs import JobBoard


def _make_board(n: int = 5, authority: InMemoryAuthority = None) -> JobBoard:
    authority = authority or InMemoryAuthority()
    store = EntityStore(Job)
    for i in range(1, n + 1):
        job = Job(id=i, title=f"Job {i}", slug=f"job-{i}", order=i)
        authority.seed_job(job)
        store.insert(job)
    return JobBoard(store, OptimisticMutationCoordinator(store), authority)


def _orders(board: JobBoard) -> dict:
    return {j.id: j.order for j in board.get_all()}


class _SlowAuthority(InMemoryAuthority):
    """Holds reorder calls until released."""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def reorder_job(self, job_id, request):
        self.started.set()
        await self.release.wait()
        return await super().reorder_job(job_id, request)


class _DriftingAuthority(InMemoryAuthority):
    """Confirms reorders at a position other than the one requested."""

    async def reorder_job(self, job_id, request):
        job = await super().reorder_job(job_id, request)
        return job.model_copy(update={"order": job.order + 1})


class TestJobBoardReorder:
    @pytest.mark.asyncio
    async def test_move_third_job_to_top(self):
        board = _make_board(5)
        job = await board.reorder(3, 1)

        assert job.order == 1
        assert _orders(board) == {3: 1, 1: 2, 2: 3, 4: 4, 5: 5}
        assert not any(board.ranking_violations().values())

    @pytest.mark.asyncio
    async def test_conflict_reverts_order_and_surfaces_error(self):
        board = _make_board(5)
        board.authority.fail_next(ConflictError("Job order mismatch"))

        with pytest.raises(ConflictError):
            await board.reorder(3, 1)

        assert _orders(board) == {1: 1, 2: 2, 3: 3, 4: 4, 5: 5}
        assert not board.coordinator.in_flight

    @pytest.mark.asyncio
    async def test_network_failure_reverts(self):
        board = _make_board(4)
        board.authority.fail_next(NetworkError("Reorder operation failed"))

        with pytest.raises(NetworkError):
            await board.reorder(1, 4)
        assert _orders(board) == {1: 1, 2: 2, 3: 3, 4: 4}

    @pytest.mark.asyncio
    async def test_noop_reorder_skips_server(self):
        board = _make_board(3)
        job = await board.reorder(2, 2)

        assert job.order == 2
        assert "reorder_job" not in board.authority.calls

    @pytest.mark.asyncio
    async def test_target_is_clamped(self):
        board = _make_board(3)
        job = await board.reorder(1, 50)
        assert job.order == 3
        assert _orders(board) == {2: 1, 3: 2, 1: 3}

    @pytest.mark.asyncio
    async def test_unknown_job_raises_not_found(self):
        board = _make_board(3)
        with pytest.raises(NotFoundError):
            await board.reorder(99, 1)

    @pytest.mark.asyncio
    async def test_speculative_order_visible_while_in_flight(self):
        authority = _SlowAuthority()
        board = _make_board(4, authority)

        task = asyncio.create_task(board.reorder(4, 1))
        await authority.started.wait()
        assert _orders(board) == {4: 1, 1: 2, 2: 3, 3: 4}
        assert board.store.committed(4).order == 4

        authority.release.set()
        await task
        assert board.store.committed(4).order == 1

    @pytest.mark.asyncio
    async def test_shifted_job_stays_editable_during_reorder(self):
        authority = _SlowAuthority()
        board = _make_board(4, authority)

        task = asyncio.create_task(board.reorder(4, 1))
        await authority.started.wait()
        job = await board.update(2, UpdateJobRequest(title="Renamed"))
        assert job.title == "Renamed"
        assert board.get_by_id(2).order == 3
        assert board.coordinator.in_flight == {4}

        authority.release.set()
        await task
        assert board.get_by_id(2).title == "Renamed"
        assert _orders(board) == {4: 1, 1: 2, 2: 3, 3: 4}
        assert not any(board.ranking_violations(include_archived=True).values())

    @pytest.mark.asyncio
    async def test_neighbour_edit_survives_reorder_rollback(self):
        authority = _SlowAuthority()
        board = _make_board(4, authority)

        task = asyncio.create_task(board.reorder(4, 1))
        await authority.started.wait()
        await board.update(2, UpdateJobRequest(title="Renamed"))
        authority.fail_next(NetworkError("Reorder operation failed"))

        authority.release.set()
        with pytest.raises(NetworkError):
            await task
        assert board.get_by_id(2).title == "Renamed"
        assert _orders(board) == {1: 1, 2: 2, 3: 3, 4: 4}

    @pytest.mark.asyncio
    async def test_overlapping_reorders_stay_dense(self):
        authority = _SlowAuthority()
        board = _make_board(5, authority)

        first = asyncio.create_task(board.reorder(3, 1))
        await authority.started.wait()
        second = asyncio.create_task(board.reorder(4, 2))
        await asyncio.sleep(0)
        assert board.coordinator.in_flight == {3, 4}

        authority.release.set()
        await asyncio.gather(first, second)
        assert _orders(board) == {3: 1, 4: 2, 1: 3, 2: 4, 5: 5}
        assert not any(board.ranking_violations(include_archived=True).values())
        assert {j.id: j.order for j in await authority.list_jobs()} == _orders(board)

    @pytest.mark.asyncio
    async def test_server_placing_job_elsewhere_is_a_conflict(self):
        board = _make_board(5, _DriftingAuthority())

        with pytest.raises(ConflictError, match="Refresh"):
            await board.reorder(3, 1)
        assert _orders(board) == {1: 1, 2: 2, 3: 3, 4: 4, 5: 5}


class _DriftingOrderAuthority(InMemoryAuthority):
    """Answers field updates with an order the board never asked for."""

    async def update_job(self, job_id, request):
        job = await super().update_job(job_id, request)
        return job.model_copy(update={"order": job.order + 5})


class TestJobBoardEdits:
    @pytest.mark.asyncio
    async def test_create_appends_at_end(self):
        board = _make_board(3)
        job = await board.create(CreateJobRequest(title="Data Engineer", tags=["remote"]))

        assert job.order == 4
        assert job.slug == "data-engineer"
        assert board.get_by_id(job.id).tags == ["remote"]

    @pytest.mark.asyncio
    async def test_create_at_explicit_order_renumbers(self):
        board = _make_board(3)
        job = await board.create(CreateJobRequest(title="Designer"), order=1)

        assert job.order == 1
        assert _orders(board) == {job.id: 1, 1: 2, 2: 3, 3: 4}

    @pytest.mark.asyncio
    async def test_update_takes_server_slug(self):
        board = _make_board(2)
        job = await board.update(1, UpdateJobRequest(title="Staff Engineer"))

        assert job.title == "Staff Engineer"
        assert job.slug == "staff-engineer"

    @pytest.mark.asyncio
    async def test_archive_keeps_rank(self):
        board = _make_board(3)
        job = await board.archive(2)

        assert job.status == JobStatus.ARCHIVED
        assert job.order == 2
        assert [j.id for j in board.get_all(status=JobStatus.ACTIVE)] == [1, 3]
        assert board.ranking_violations() == {
            "missing": [2], "duplicate": [], "out_of_range": [3],
        }
        assert not any(board.ranking_violations(include_archived=True).values())

        job = await board.unarchive(2)
        assert job.status == JobStatus.ACTIVE
        assert not any(board.ranking_violations().values())

    @pytest.mark.asyncio
    async def test_update_keeps_local_order(self):
        board = _make_board(3, _DriftingOrderAuthority())
        job = await board.update(2, UpdateJobRequest(title="Platform Engineer"))

        assert job.title == "Platform Engineer"
        assert job.order == 2
        assert _orders(board) == {1: 1, 2: 2, 3: 3}

    @pytest.mark.asyncio
    async def test_failed_update_rolls_back(self):
        board = _make_board(2)
        board.authority.fail_next(NetworkError("Internal server error"))

        with pytest.raises(NetworkError):
            await board.update(1, UpdateJobRequest(title="Lost"))
        assert board.get_by_id(1).title == "Job 1"

    @pytest.mark.asyncio
    async def test_load_replaces_local_jobs(self):
        authority = InMemoryAuthority()
        authority.seed_job(Job(id=1, title="Remote", slug="remote", order=1))
        store = EntityStore(Job)
        board = JobBoard(store, OptimisticMutationCoordinator(store), authority)

        jobs = await board.load()
        assert [j.title for j in jobs] == ["Remote"]
