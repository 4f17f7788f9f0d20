"""
Optimistic Mutation Coordinator — apply, then commit or roll back.

Protocol for one mutation of entity X:
  1. X already in flight         → BusyError, nothing happens
  2. snapshot committed X         (S0)
  3. S1 = speculative_apply(S0)   → published immediately
  4. await remote_call()
  5. success R → reconcile S1 with R (server wins), commit, return R
  6. failure   → discard S1 so X reads as S0 again, re-raise

Behavioral Contract:
- Mutations of the same entity are serialized by rejection, never queued.
- Mutations of different entities run concurrently; there is no global lock.
- Only the mutated entity is locked. A speculative apply may also touch
  other entities (e.g. a reorder shifting its neighbours); those stay free
  to be mutated, and only the fields this mutation changed on them are
  published, committed or discarded.
- A caller may lock under its own key (e.g. notes of a candidate) so that
  independent kinds of change to one entity do not block each other.
- Steps 1-3 run without suspending, so the snapshot and the published state
  are taken against the same committed view.
- The committed baseline is written only by commit.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Set, Union

from pydantic import BaseModel

from talentflow_core.errors import BusyError, NetworkError
from talentflow_core.models.mutation import MutationSnapshot
from talentflow_core.store.entity_store import EntityStore

logger = logging.getLogger(__name__)

Changes = Dict[Any, BaseModel]
SpeculativeApply = Callable[[MutationSnapshot], Union[BaseModel, Changes]]
RemoteCall = Callable[[], Awaitable[Any]]
Reconcile = Callable[[Any, Changes, Any], Changes]


def server_wins(
    entity_id: Any,
    changes: Changes,
    result: Any,
    fields: Optional[Iterable[str]] = None,
) -> Changes:
    """
    Default reconciliation: overwrite the speculative fields of the mutated
    entity with every field the authority returned, or only with `fields`
    when given. Other touched entities are committed as speculated.
    """
    speculative = changes[entity_id]
    if isinstance(result, BaseModel):
        returned = result.model_dump()
    elif isinstance(result, dict):
        returned = result
    else:
        returned = {}

    allowed = set(type(speculative).model_fields)
    if fields is not None:
        allowed &= set(fields)
    overlap = {k: v for k, v in returned.items() if k in allowed}
    reconciled = dict(changes)
    reconciled[entity_id] = type(speculative).model_validate(
        {**speculative.model_dump(), **overlap}
    )
    return reconciled


def server_wins_on(*fields: str) -> Reconcile:
    """Reconciliation taking only `fields` from the authority's answer."""

    def reconcile(entity_id: Any, changes: Changes, result: Any) -> Changes:
        return server_wins(entity_id, changes, result, fields=fields)

    return reconcile


class OptimisticMutationCoordinator:
    """
    Orchestrates optimistic mutations over one entity store.
    One coordinator per store; its locks are keyed by that store's ids.
    """

    def __init__(
        self,
        store: EntityStore,
        remote_timeout_seconds: Optional[float] = None,
    ):
        self.store = store
        self.remote_timeout_seconds = remote_timeout_seconds
        self._in_flight: Set[Any] = set()

    @property
    def in_flight(self) -> Set[Any]:
        """Lock keys currently held by an in-flight mutation."""
        return set(self._in_flight)

    def is_in_flight(self, key: Any) -> bool:
        return key in self._in_flight

    async def mutate(
        self,
        entity_id: Any,
        speculative_apply: SpeculativeApply,
        remote_call: RemoteCall,
        reconcile: Optional[Reconcile] = None,
        lock_key: Any = None,
    ) -> Any:
        """
        Run one optimistic mutation. Returns the authority's result.

        The lock is held on `lock_key`, which defaults to `entity_id`.
        Raises BusyError if that key is already in flight, whatever
        speculative_apply raises (before anything is published), or the
        classified remote error after rolling back.
        """
        key = entity_id if lock_key is None else lock_key
        if key in self._in_flight:
            raise BusyError(entity_id)

        self._in_flight.add(key)
        try:
            snapshot = self.store.snapshot(entity_id)
            changes = _as_changes(entity_id, speculative_apply(snapshot))
            related = [k for k in changes if k != entity_id]
            if related:
                snapshot = self.store.snapshot(entity_id, related_ids=related)

            self.store.publish(snapshot, changes)
            logger.debug(
                "Published speculative state for %s (%d entities)",
                entity_id, len(changes),
            )

            try:
                result = await self._call_remote(entity_id, remote_call)
                committed = (reconcile or server_wins)(entity_id, changes, result)
            except BaseException as exc:
                # Cancellation included: the lock must never outlive the mutation.
                self.store.restore(snapshot)
                logger.warning(
                    "Rolled back mutation of %s: %s: %s",
                    entity_id, type(exc).__name__, exc,
                )
                raise

            self.store.commit(snapshot, committed)
            logger.info("Committed mutation of %s", entity_id)
            return result
        finally:
            self._in_flight.discard(key)

    async def _call_remote(self, entity_id: Any, remote_call: RemoteCall) -> Any:
        """Await the remote call, classifying transport failures as NetworkError."""
        try:
            if self.remote_timeout_seconds is None:
                return await remote_call()
            return await asyncio.wait_for(remote_call(), self.remote_timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise NetworkError(
                f"Timed out after {self.remote_timeout_seconds}s saving {entity_id}",
                entity_id,
            ) from exc
        except (ConnectionError, OSError) as exc:
            raise NetworkError(f"Could not reach the server: {exc}", entity_id) from exc


def _as_changes(entity_id: Any, applied: Union[BaseModel, Changes]) -> Changes:
    """Normalize a speculative apply result to {id: entity}."""
    if isinstance(applied, BaseModel):
        return {entity_id: applied}
    if entity_id not in applied:
        raise ValueError(f"Speculative apply did not return entity {entity_id}")
    return dict(applied)
