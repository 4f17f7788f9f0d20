"""TalentFlow core data models."""

from talentflow_core.models.candidate import (
    Candidate,
    CreateCandidateRequest,
    NoteRecord,
    Stage,
    StageRecord,
    UpdateCandidateRequest,
)
from talentflow_core.models.history import (
    CandidateTimeline,
    HistoryEntry,
    HistoryRecord,
    NoteEntry,
    StageChangeEntry,
)
from talentflow_core.models.job import (
    CreateJobRequest,
    Job,
    JobSort,
    JobStatus,
    ReorderJobRequest,
    UpdateJobRequest,
)
from talentflow_core.models.mutation import (
    MutationSnapshot,
    StoreEvent,
    StoreEventKind,
)
from talentflow_core.models.page import Page, Pagination
from talentflow_core.models.pipeline import (
    StageChangeResult,
    TransitionAdvisory,
    TransitionDecision,
)

__all__ = [
    "Candidate",
    "CandidateTimeline",
    "CreateCandidateRequest",
    "CreateJobRequest",
    "HistoryEntry",
    "HistoryRecord",
    "Job",
    "JobSort",
    "JobStatus",
    "MutationSnapshot",
    "NoteEntry",
    "NoteRecord",
    "Page",
    "Pagination",
    "ReorderJobRequest",
    "Stage",
    "StageChangeEntry",
    "StageChangeResult",
    "StageRecord",
    "StoreEvent",
    "StoreEventKind",
    "TransitionAdvisory",
    "TransitionDecision",
    "UpdateCandidateRequest",
    "UpdateJobRequest",
]
