"""Job — the ranked entity of the job board."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from talentflow_core.clock import utcnow


class JobStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class JobSort(str, Enum):
    ORDER = "order"
    TITLE = "title"
    CREATED_AT = "created_at"
    UPDATED_AT = "updated_at"


class Job(BaseModel):
    """A job posting holding a position on the board."""

    id: int
    title: str
    slug: str
    status: JobStatus = JobStatus.ACTIVE
    tags: List[str] = []
    order: int = Field(ge=1)                # Board position, dense 1..N
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CreateJobRequest(BaseModel):
    title: str
    status: JobStatus = JobStatus.ACTIVE
    tags: List[str] = []


class UpdateJobRequest(BaseModel):
    title: Optional[str] = None
    status: Optional[JobStatus] = None
    tags: Optional[List[str]] = None


class ReorderJobRequest(BaseModel):
    from_order: int = Field(ge=1)
    to_order: int = Field(ge=1)
