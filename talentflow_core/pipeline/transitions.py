"""
Stage Transition Validator — the canonical hiring-pipeline decision table.

Active path:  applied < screen < tech < offer < hired
Rejection:    any stage except hired may move to rejected

Behavioral Contract:
- Pure. Same (from, to) pair always yields the same decision.
- rejected and hired are absorbing: nothing leaves them.
- Backward moves on the active path are never valid.
- Forward moves that skip stages are valid but carry the "skip" advisory,
  which callers surface as a warning, never as an error.
- from == to is invalid; callers treat it as a silent no-op.
"""

from typing import Optional

from talentflow_core.errors import ValidationError
from talentflow_core.models.candidate import Stage
from talentflow_core.models.pipeline import TransitionAdvisory, TransitionDecision

STAGE_ORDER = (Stage.APPLIED, Stage.SCREEN, Stage.TECH, Stage.OFFER, Stage.HIRED)
TERMINAL_STAGES = frozenset({Stage.HIRED, Stage.REJECTED})

# Machine-readable reasons for invalid transitions
SAME_STAGE = "same_stage"
HIRED_IS_FINAL = "hired_is_final"
REJECTED_IS_FINAL = "rejected_is_final"
BACKWARD_MOVE = "backward_move"


def is_valid_transition(from_stage: Stage, to_stage: Stage) -> TransitionDecision:
    """Check one transition against the table."""
    from_stage, to_stage = Stage(from_stage), Stage(to_stage)

    if from_stage == to_stage:
        return TransitionDecision(valid=False, reason=SAME_STAGE)
    if from_stage == Stage.HIRED:
        return TransitionDecision(valid=False, reason=HIRED_IS_FINAL)
    if from_stage == Stage.REJECTED:
        return TransitionDecision(valid=False, reason=REJECTED_IS_FINAL)
    if to_stage == Stage.REJECTED:
        return TransitionDecision(valid=True)

    step = STAGE_ORDER.index(to_stage) - STAGE_ORDER.index(from_stage)
    if step <= 0:
        return TransitionDecision(valid=False, reason=BACKWARD_MOVE)
    if step > 1:
        return TransitionDecision(valid=True, advisory=TransitionAdvisory.SKIP)
    return TransitionDecision(valid=True)


def ensure_transition(from_stage: Stage, to_stage: Stage) -> TransitionDecision:
    """
    Like is_valid_transition, but raise ValidationError for invalid moves.

    The same-stage case is raised too; callers wanting the silent no-op
    must check for it first.
    """
    decision = is_valid_transition(from_stage, to_stage)
    if not decision.valid:
        raise ValidationError(_describe(Stage(from_stage), Stage(to_stage), decision.reason))
    return decision


def next_stage(stage: Stage) -> Optional[Stage]:
    """The following stage on the active path, or None when there is none."""
    stage = Stage(stage)
    if stage in TERMINAL_STAGES:
        return None
    return STAGE_ORDER[STAGE_ORDER.index(stage) + 1]


def _describe(from_stage: Stage, to_stage: Stage, reason: Optional[str]) -> str:
    """Human-readable explanation of an invalid transition."""
    if reason == SAME_STAGE:
        return f"Candidate is already in stage '{from_stage.value}'."
    if reason == HIRED_IS_FINAL:
        return "Hired candidates cannot be moved to another stage."
    if reason == REJECTED_IS_FINAL:
        return "Rejected candidates cannot re-enter the pipeline."
    return (
        f"Invalid stage transition from '{from_stage.value}' to "
        f"'{to_stage.value}': candidates cannot move backward."
    )
