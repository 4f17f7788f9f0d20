"""Pipeline history entries — the immutable audit trail of a candidate."""

from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from talentflow_core.models.candidate import Stage


class StageChangeEntry(BaseModel):
    """A committed, validated stage transition."""

    model_config = ConfigDict(frozen=True)

    type: Literal["stage_change"] = "stage_change"
    stage: Stage
    from_stage: Optional[Stage] = None      # None for the seeded entry
    timestamp: datetime
    advisory: Optional[str] = None          # e.g. "skip"


class NoteEntry(BaseModel):
    """A free-text note. Appended regardless of pipeline state."""

    model_config = ConfigDict(frozen=True)

    type: Literal["note"] = "note"
    text: str
    timestamp: datetime


HistoryEntry = Union[StageChangeEntry, NoteEntry]
TimelineEntry = Annotated[HistoryEntry, Field(discriminator="type")]


class HistoryRecord(BaseModel):
    """
    Stored form of one history entry.

    Records are hashed and chained to the previous record of the log so that
    any edit after the fact is detectable.
    """

    seq: int
    entity_id: int
    entry: HistoryEntry = Field(discriminator="type")
    signature: str = ""
    prior_record_hash: Optional[str] = None


class CandidateTimeline(BaseModel):
    """Stage changes and notes of one candidate, oldest first."""

    candidate_id: int
    name: str
    email: str
    current_stage: Stage
    entries: List[TimelineEntry]
