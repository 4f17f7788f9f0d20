"""Mutation snapshots and store change notifications."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from talentflow_core.clock import utcnow


class MutationSnapshot(BaseModel):
    """
    Committed state captured when a speculative apply begins.

    `states` always holds the mutated entity under `entity_id` and, for
    multi-entity changes, every other entity the apply touched. Documents
    are the JSON form the store persists. `mutation_id` keys the speculative
    overlay the mutation publishes, so it can be committed or discarded
    without touching other mutations' overlays.
    """

    model_config = ConfigDict(frozen=True)

    mutation_id: str = Field(default_factory=lambda: f"mut_{uuid4().hex[:12]}")
    entity_id: Any
    states: Dict[Any, dict]
    versions: Dict[Any, int]
    taken_at: datetime = Field(default_factory=utcnow)

    @property
    def state(self) -> dict:
        """Committed document of the mutated entity."""
        return self.states[self.entity_id]


class StoreEventKind(str, Enum):
    INSERTED = "inserted"
    SPECULATIVE = "speculative"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class StoreEvent(BaseModel):
    """Published to store subscribers after every visible change."""

    kind: StoreEventKind
    entity_ids: List[Any]
