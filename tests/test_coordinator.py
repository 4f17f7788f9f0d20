"""Tests for the optimistic mutation coordinator."""

import asyncio

import pytest

from talentflow_core.errors import BusyError, ConflictError, NetworkError, ValidationError
from talentflow_core.models.job import Job
from talentflow_core.mutation.coordinator import OptimisticMutationCoordinator, server_wins
from talentflow_core.store.entity_store import EntityStore


def _make_store(n: int = 3) -> EntityStore:
    store = EntityStore(Job)
    for i in range(1, n + 1):
        store.insert(Job(id=i, title=f"Job {i}", slug=f"job-{i}", order=i))
    return store


def _rename(title: str):
    def apply(snapshot):
        return Job.model_validate(snapshot.state).model_copy(update={"title": title})
    return apply


def _move(order: int):
    def apply(snapshot):
        return Job.model_validate(snapshot.state).model_copy(update={"order": order})
    return apply


def _swap_with_two(store):
    def apply(snapshot):
        return {
            1: store.committed(1).model_copy(update={"order": 2}),
            2: store.committed(2).model_copy(update={"order": 1}),
        }
    return apply


class _Gate:
    """A remote call that blocks until released."""

    def __init__(self, result=None, error=None):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.result = result
        self.error = error

    async def __call__(self):
        self.started.set()
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.result


class TestOptimisticMutationCoordinator:
    @pytest.mark.asyncio
    async def test_speculative_state_published_before_remote_resolves(self):
        store = _make_store()
        coordinator = OptimisticMutationCoordinator(store)
        gate = _Gate(result={"title": "Renamed"})

        task = asyncio.create_task(coordinator.mutate(1, _rename("Renamed"), gate))
        await gate.started.wait()

        assert store.get_by_id(1).title == "Renamed"
        assert store.committed(1).title == "Job 1"
        assert coordinator.is_in_flight(1)

        gate.release.set()
        await task
        assert store.committed(1).title == "Renamed"
        assert not coordinator.is_in_flight(1)

    @pytest.mark.asyncio
    async def test_server_wins_on_overlapping_fields(self):
        store = _make_store()
        coordinator = OptimisticMutationCoordinator(store)

        async def remote():
            return Job(id=1, title="Renamed", slug="renamed", order=1)

        result = await coordinator.mutate(1, _rename("Renamed"), remote)

        assert result.slug == "renamed"
        assert store.committed(1).slug == "renamed"
        assert store.version(1) == 2

    @pytest.mark.asyncio
    async def test_rollback_restores_exact_state(self):
        store = _make_store()
        coordinator = OptimisticMutationCoordinator(store)
        before = store.get_by_id(1).model_dump()

        async def remote():
            raise ConflictError("diverged")

        with pytest.raises(ConflictError):
            await coordinator.mutate(1, _rename("Nope"), remote)

        assert store.get_by_id(1).model_dump() == before
        assert store.version(1) == 1
        assert not store.is_speculative(1)
        assert not coordinator.is_in_flight(1)

    @pytest.mark.asyncio
    async def test_second_mutation_of_same_entity_is_busy(self):
        store = _make_store()
        coordinator = OptimisticMutationCoordinator(store)
        gate = _Gate(result={})

        task = asyncio.create_task(coordinator.mutate(1, _rename("First"), gate))
        await gate.started.wait()

        with pytest.raises(BusyError):
            await coordinator.mutate(1, _rename("Second"), gate)
        assert store.get_by_id(1).title == "First"

        gate.release.set()
        await task
        assert store.committed(1).title == "First"

    @pytest.mark.asyncio
    async def test_different_entities_run_concurrently(self):
        store = _make_store()
        coordinator = OptimisticMutationCoordinator(store)
        gate_a, gate_b = _Gate(result={}), _Gate(error=NetworkError("down"))

        task_a = asyncio.create_task(coordinator.mutate(1, _rename("A"), gate_a))
        task_b = asyncio.create_task(coordinator.mutate(2, _rename("B"), gate_b))
        await gate_a.started.wait()
        await gate_b.started.wait()
        assert coordinator.in_flight == {1, 2}

        gate_b.release.set()
        with pytest.raises(NetworkError):
            await task_b
        gate_a.release.set()
        await task_a

        assert store.committed(1).title == "A"
        assert store.committed(2).title == "Job 2"

    @pytest.mark.asyncio
    async def test_related_entity_stays_editable_and_keeps_edit_on_rollback(self):
        store = _make_store()
        coordinator = OptimisticMutationCoordinator(store)
        gate = _Gate(error=NetworkError("down"))

        task = asyncio.create_task(coordinator.mutate(1, _swap_with_two(store), gate))
        await gate.started.wait()
        assert store.get_by_id(2).order == 1
        assert coordinator.in_flight == {1}

        async def rename_remote():
            return {"title": "Edited"}

        await coordinator.mutate(2, _rename("Edited"), rename_remote)
        assert store.get_by_id(2).title == "Edited"
        assert store.get_by_id(2).order == 1

        gate.release.set()
        with pytest.raises(NetworkError):
            await task
        assert store.get_by_id(1).order == 1
        assert store.get_by_id(2).order == 2
        assert store.get_by_id(2).title == "Edited"
        assert coordinator.in_flight == set()

    @pytest.mark.asyncio
    async def test_related_entity_edit_composes_with_commit(self):
        store = _make_store()
        coordinator = OptimisticMutationCoordinator(store)
        gate = _Gate(result={})

        task = asyncio.create_task(coordinator.mutate(1, _swap_with_two(store), gate))
        await gate.started.wait()

        async def rename_remote():
            return {"title": "Edited"}

        await coordinator.mutate(2, _rename("Edited"), rename_remote)
        gate.release.set()
        await task

        neighbour = store.committed(2)
        assert (neighbour.order, neighbour.title) == (1, "Edited")
        assert store.committed(1).order == 2
        assert not store.is_speculative(2)

    @pytest.mark.asyncio
    async def test_lock_key_separates_kinds_of_change(self):
        store = _make_store()
        coordinator = OptimisticMutationCoordinator(store)
        gate = _Gate(result={})

        task = asyncio.create_task(
            coordinator.mutate(1, _rename("Side"), gate, lock_key=("side", 1))
        )
        await gate.started.wait()
        assert coordinator.is_in_flight(("side", 1))
        assert not coordinator.is_in_flight(1)

        with pytest.raises(BusyError):
            await coordinator.mutate(1, _rename("Again"), gate, lock_key=("side", 1))

        async def main_remote():
            return {}

        await coordinator.mutate(1, _move(3), main_remote)
        gate.release.set()
        await task

        committed = store.committed(1)
        assert (committed.title, committed.order) == ("Side", 3)

    @pytest.mark.asyncio
    async def test_apply_error_releases_lock_without_publishing(self):
        store = _make_store()
        coordinator = OptimisticMutationCoordinator(store)
        calls = []

        def invalid(snapshot):
            raise ValidationError("not allowed")

        async def remote():
            calls.append(1)

        with pytest.raises(ValidationError):
            await coordinator.mutate(1, invalid, remote)
        assert calls == []
        assert not store.is_speculative(1)
        assert not coordinator.is_in_flight(1)

    @pytest.mark.asyncio
    async def test_timeout_is_a_network_error(self):
        store = _make_store()
        coordinator = OptimisticMutationCoordinator(store, remote_timeout_seconds=0.01)
        gate = _Gate(result={})

        with pytest.raises(NetworkError):
            await coordinator.mutate(1, _rename("Slow"), gate)
        assert store.get_by_id(1).title == "Job 1"

    @pytest.mark.asyncio
    async def test_connection_error_is_a_network_error(self):
        store = _make_store()
        coordinator = OptimisticMutationCoordinator(store)

        async def remote():
            raise ConnectionRefusedError("refused")

        with pytest.raises(NetworkError):
            await coordinator.mutate(1, _rename("X"), remote)
        assert store.get_by_id(1).title == "Job 1"

    @pytest.mark.asyncio
    async def test_cancellation_rolls_back(self):
        store = _make_store()
        coordinator = OptimisticMutationCoordinator(store)
        gate = _Gate(result={})

        task = asyncio.create_task(coordinator.mutate(1, _rename("Cancelled"), gate))
        await gate.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert store.get_by_id(1).title == "Job 1"
        assert not coordinator.is_in_flight(1)

    @pytest.mark.asyncio
    async def test_reconcile_failure_rolls_back(self):
        store = _make_store()
        coordinator = OptimisticMutationCoordinator(store)

        async def remote():
            return {"title": "Server"}

        def refuse(entity_id, changes, result):
            raise ConflictError("unexpected answer")

        with pytest.raises(ConflictError):
            await coordinator.mutate(1, _rename("Local"), remote, reconcile=refuse)
        assert store.get_by_id(1).title == "Job 1"


class TestServerWins:
    def test_overlays_known_fields_only(self):
        job = Job(id=1, title="Local", slug="local", order=1)
        merged = server_wins(1, {1: job}, {"title": "Server", "unknown": 1})
        assert merged[1].title == "Server"
        assert merged[1].slug == "local"

    def test_non_mapping_result_keeps_speculative(self):
        job = Job(id=1, title="Local", slug="local", order=1)
        assert server_wins(1, {1: job}, None)[1] == job
