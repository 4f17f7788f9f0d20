"""
Reorder Algorithm — renumbers a ranked collection after a single move.

Behavioral Contract:
- The collection is dense: order values are exactly 1..N. Reorders renumber
  every entity passed in, archived ones included.
- Moving one entity shifts only the entities between its old and new
  position, by exactly one, so the result is dense again.
- Pure: the input list and its entities are never modified. Entities whose
  order changes are returned as copies.
"""

from typing import Dict, List, Sequence, TypeVar

from pydantic import BaseModel

from talentflow_core.errors import NotFoundError

RankedT = TypeVar("RankedT", bound=BaseModel)


def clamp_order(to_order: int, count: int) -> int:
    """Clamp a requested position into [1, count]."""
    return max(1, min(to_order, max(count, 1)))


def next_order(entities: Sequence[BaseModel]) -> int:
    """Order value for an entity appended to the end of the collection."""
    return max((e.order for e in entities), default=0) + 1


def reorder(entities: List[RankedT], entity_id, to_order: int) -> List[RankedT]:
    """
    Move `entity_id` to `to_order` and renumber the entities in between.

    Returns the input list itself when the move is a no-op after clamping.
    Raises NotFoundError when `entity_id` is not in the collection.
    """
    moved = next((e for e in entities if e.id == entity_id), None)
    if moved is None:
        raise NotFoundError(f"Entity {entity_id} is not in the collection", entity_id)

    to_order = clamp_order(to_order, len(entities))
    from_order = moved.order
    if from_order == to_order:
        return entities

    result = []
    for entity in entities:
        if entity.id == entity_id:
            result.append(entity.model_copy(update={"order": to_order}))
        elif to_order > from_order and from_order < entity.order <= to_order:
            # Moving down: the ones in between move up
            result.append(entity.model_copy(update={"order": entity.order - 1}))
        elif to_order < from_order and to_order <= entity.order < from_order:
            result.append(entity.model_copy(update={"order": entity.order + 1}))
        else:
            result.append(entity)
    return result


def dense_ranking_violations(
    entities: Sequence[BaseModel], include_archived: bool = False
) -> Dict[str, List[int]]:
    """
    Report how a collection departs from the dense 1..N ranking.

    Archived entities are left out of the check unless `include_archived`
    is set. Returns `missing`, `duplicate` and `out_of_range` order values;
    all three are empty when the ranking is dense.
    """
    if not include_archived:
        entities = [e for e in entities if getattr(e, "status", None) != "archived"]

    seen: Dict[int, int] = {}
    for entity in entities:
        seen[entity.order] = seen.get(entity.order, 0) + 1

    expected = set(range(1, len(entities) + 1))
    return {
        "missing": sorted(expected - set(seen)),
        "duplicate": sorted(order for order, n in seen.items() if n > 1),
        "out_of_range": sorted(set(seen) - expected),
    }
