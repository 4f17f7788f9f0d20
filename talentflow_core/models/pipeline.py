"""Stage transition decisions and results."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel

from talentflow_core.models.candidate import Candidate


class TransitionAdvisory(str, Enum):
    SKIP = "skip"   # Valid, but one or more stages were skipped


class TransitionDecision(BaseModel):
    """Outcome of checking one (from, to) pair against the transition table."""

    valid: bool
    advisory: Optional[TransitionAdvisory] = None
    reason: Optional[str] = None            # Machine-readable, set when invalid


class StageChangeResult(BaseModel):
    """What a stage change returned to its caller."""

    candidate: Candidate
    changed: bool
    advisory: Optional[TransitionAdvisory] = None
