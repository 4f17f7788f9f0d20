"""
Entity Store — committed baseline plus speculative overlays, keyed by id.

Updated by: the mutation coordinator (publish/commit/restore) and by
creation/hydration (insert).
Queried by: views and services, at any time, including while mutations are
in flight.

Each in-flight mutation publishes a patch per touched entity: only the
fields it changed. Readers see the committed document with every pending
patch laid over it, oldest first. Commit merges a mutation's fields into the
current committed document, so concurrent mutations of different fields of
the same entity (a shifted neighbour's order, a note next to a stage change)
compose. Rollback drops the mutation's patches; the committed document was
never written, so it is exactly what it was before the mutation.

Every entity carries a version that increments on each commit.
"""

import copy
import logging
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel

from talentflow_core.errors import NotFoundError
from talentflow_core.models.mutation import MutationSnapshot, StoreEvent, StoreEventKind
from talentflow_core.store.repository import DocumentRepository, InMemoryRepository

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
Listener = Callable[[StoreEvent], None]


class EntityStore(Generic[ModelT]):
    """
    Entity table for one model type.

    Committed documents live in the injected repository; speculative
    patches live only in memory and are never persisted.
    """

    def __init__(
        self,
        model_cls: Type[ModelT],
        repository: Optional[DocumentRepository] = None,
        id_field: str = "id",
    ):
        self.model_cls = model_cls
        self.repository = repository if repository is not None else InMemoryRepository()
        self.id_field = id_field
        self._overlays: Dict[Any, Dict[str, dict]] = {}    # id -> mutation_id -> patch
        self._versions: Dict[Any, int] = {}
        self._listeners: List[Listener] = []

    # --- Reads ---

    def get_by_id(self, entity_id: Any) -> Optional[ModelT]:
        """Current visible state: committed plus any pending patches."""
        document = self.repository.get(entity_id)
        if document is None:
            return None
        for patch in self._overlays.get(entity_id, {}).values():
            document.update(copy.deepcopy(patch))
        return self._load(document)

    def get_all(self) -> List[ModelT]:
        """Visible state of every entity, in insertion order."""
        return [self.get_by_id(key) for key in self.repository.keys()]

    def committed(self, entity_id: Any) -> Optional[ModelT]:
        """Last committed state, ignoring any speculative overlay."""
        document = self.repository.get(entity_id)
        return self._load(document) if document is not None else None

    def committed_all(self) -> List[ModelT]:
        return [self.committed(key) for key in self.repository.keys()]

    def exists(self, entity_id: Any) -> bool:
        return self.repository.get(entity_id) is not None

    def count(self) -> int:
        return self.repository.count()

    def is_speculative(self, entity_id: Any) -> bool:
        return bool(self._overlays.get(entity_id))

    def version(self, entity_id: Any) -> int:
        return self._versions.get(entity_id, 0)

    # --- Writes ---

    def insert(self, entity: ModelT, replace: bool = False) -> ModelT:
        """Add a newly created (already authoritative) entity."""
        entity_id = self._key(entity)
        if not replace and self.exists(entity_id):
            raise ValueError(f"Entity {entity_id} already exists")
        self.repository.put(entity_id, self._dump(entity))
        self._versions[entity_id] = self._versions.get(entity_id, 0) + 1
        self._notify(StoreEventKind.INSERTED, [entity_id])
        return self.committed(entity_id)

    def snapshot(self, entity_id: Any, related_ids: Iterable[Any] = ()) -> MutationSnapshot:
        """Capture the committed state of an entity and of any related ones."""
        states, versions = {}, {}
        for key in [entity_id, *related_ids]:
            document = self.repository.get(key)
            if document is None:
                raise NotFoundError(f"Entity {key} not found", key)
            states[key] = document
            versions[key] = self.version(key)
        return MutationSnapshot(entity_id=entity_id, states=states, versions=versions)

    def publish(self, snapshot: MutationSnapshot, changes: Dict[Any, ModelT]) -> None:
        """Make a mutation's speculative states visible to readers."""
        for entity_id, entity in changes.items():
            base = snapshot.states.get(entity_id)
            if base is None:
                base = self.repository.get(entity_id) or {}
            patch = _diff(self._dump(entity), base)
            self._overlays.setdefault(entity_id, {})[snapshot.mutation_id] = patch
        self._notify(StoreEventKind.SPECULATIVE, list(changes))

    def commit(self, snapshot: MutationSnapshot, changes: Dict[Any, ModelT]) -> None:
        """
        Merge a mutation's states into the committed baseline.

        For each entity, the fields written are those the mutation published
        plus those where `changes` differs from the snapshot. Other fields
        keep their current committed value. Every patch of the mutation is
        dropped, including those of entities absent from `changes`.
        """
        for entity_id, entity in changes.items():
            current = self.repository.get(entity_id)
            if current is None:
                raise NotFoundError(f"Entity {entity_id} not found", entity_id)
            final = self._dump(entity)
            base = snapshot.states.get(entity_id, current)
            published = self._overlays.get(entity_id, {}).get(snapshot.mutation_id, {})
            fields = set(published) | set(_diff(final, base))
            current.update({field: final[field] for field in fields})
            self.repository.put(entity_id, current)
            self._versions[entity_id] = self.version(entity_id) + 1
        touched = self._discard(snapshot.mutation_id)
        self._notify(StoreEventKind.COMMITTED, _merge_ids(list(changes), touched))

    def restore(self, snapshot: MutationSnapshot) -> None:
        """Roll back a mutation: drop its patches, leave committed state as is."""
        touched = self._discard(snapshot.mutation_id)
        self._notify(StoreEventKind.ROLLED_BACK, _merge_ids(list(snapshot.states), touched))

    def _discard(self, mutation_id: str) -> List[Any]:
        touched = []
        for entity_id in list(self._overlays):
            patches = self._overlays[entity_id]
            if patches.pop(mutation_id, None) is not None:
                touched.append(entity_id)
            if not patches:
                del self._overlays[entity_id]
        return touched

    # --- Subscriptions ---

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, kind: StoreEventKind, entity_ids: List[Any]) -> None:
        event = StoreEvent(kind=kind, entity_ids=entity_ids)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # The store change already happened; one observer can't undo it.
                logger.exception("Store listener failed on %s event", kind.value)

    # --- Helpers ---

    def _key(self, entity: ModelT) -> Any:
        return getattr(entity, self.id_field)

    def _dump(self, entity: ModelT) -> dict:
        return entity.model_dump(mode="json")

    def _load(self, document: dict) -> ModelT:
        return self.model_cls.model_validate(document)


def _diff(document: dict, base: dict) -> dict:
    """Fields of `document` whose value differs from `base`."""
    return {k: v for k, v in document.items() if base.get(k) != v}


def _merge_ids(first: List[Any], second: List[Any]) -> List[Any]:
    return first + [key for key in second if key not in first]
