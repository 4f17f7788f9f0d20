"""Candidate — the staged entity moving through the hiring pipeline."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from talentflow_core.clock import utcnow


class Stage(str, Enum):
    APPLIED = "applied"
    SCREEN = "screen"
    TECH = "tech"
    OFFER = "offer"
    HIRED = "hired"
    REJECTED = "rejected"


class StageRecord(BaseModel):
    """One entry of a candidate's embedded stage history."""

    stage: Stage
    timestamp: datetime


class NoteRecord(BaseModel):
    """One free-text note on a candidate. Any text is accepted."""

    text: str
    timestamp: datetime


class Candidate(BaseModel):
    """A candidate tracked against a job."""

    id: int
    name: str
    email: str
    job_id: int
    stage: Stage = Stage.APPLIED
    history: List[StageRecord] = []         # Append-only, last entry == stage
    notes: List[NoteRecord] = []            # Append-only
    created_at: datetime = Field(default_factory=utcnow)


class CreateCandidateRequest(BaseModel):
    name: str
    email: str
    job_id: int
    stage: Stage = Stage.APPLIED


class UpdateCandidateRequest(BaseModel):
    stage: Optional[Stage] = None
    notes: Optional[str] = None
