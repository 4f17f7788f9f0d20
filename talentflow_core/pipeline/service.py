"""
Candidate Pipeline — validated, optimistic stage changes and notes.

Behavioral Contract:
- A transition is checked against the canonical table before anything is
  published. Invalid transitions raise ValidationError and leave no trace.
- Moving a candidate to the stage it is already in is a silent no-op.
- Stage changes and notes are appended to the history log only after the
  authority confirmed them; a rolled-back mutation appends nothing.
- Notes are accepted in every stage, including hired and rejected, and never
  block stage changes: they are locked separately and commit only the notes.
- `refresh` and `load` replace local candidates with the authority's copy;
  they are the refetch path after a ConflictError.
"""

import logging
from typing import List, Optional

from talentflow_core.clock import Clock, utcnow
from talentflow_core.errors import BusyError, NotFoundError, ValidationError
from talentflow_core.history.log import PipelineHistoryLog
from talentflow_core.models.candidate import (
    Candidate,
    CreateCandidateRequest,
    NoteRecord,
    Stage,
    StageRecord,
    UpdateCandidateRequest,
)
from talentflow_core.models.history import CandidateTimeline, NoteEntry, StageChangeEntry
from talentflow_core.models.pipeline import StageChangeResult
from talentflow_core.mutation.coordinator import OptimisticMutationCoordinator, server_wins_on
from talentflow_core.pipeline.transitions import ensure_transition, next_stage
from talentflow_core.remote.base import RemoteAuthority
from talentflow_core.store.entity_store import EntityStore

logger = logging.getLogger(__name__)


class CandidatePipeline:
    """Moves candidates through the hiring pipeline."""

    def __init__(
        self,
        store: EntityStore[Candidate],
        coordinator: OptimisticMutationCoordinator,
        authority: RemoteAuthority,
        history: PipelineHistoryLog,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.coordinator = coordinator
        self.authority = authority
        self.history = history
        self._clock = clock

    def track(self, candidate: Candidate) -> Candidate:
        """
        Start tracking an existing candidate. Its embedded history and notes
        seed the log.
        """
        tracked = self.store.insert(candidate)
        self._sync_history(candidate)
        return tracked

    async def refresh(self, candidate_id: int) -> Candidate:
        """
        Replace a candidate with the authority's copy.

        Stage changes and notes the log has not seen yet are appended. Raises
        BusyError while a change to the candidate is in flight.
        """
        if self._busy(candidate_id):
            raise BusyError(candidate_id)
        candidate = await self.authority.get_candidate(candidate_id)
        if self._busy(candidate_id):
            raise BusyError(candidate_id)
        self.store.insert(candidate, replace=True)
        self._sync_history(candidate)
        return self.store.committed(candidate_id)

    async def load(self) -> List[Candidate]:
        """
        Hydrate every candidate from the authority. Candidates with a change
        in flight keep their local state.
        """
        candidates = await self.authority.list_candidates()
        for candidate in candidates:
            if self._busy(candidate.id):
                continue
            if self.store.exists(candidate.id):
                self.store.insert(candidate, replace=True)
                self._sync_history(candidate)
            else:
                self.track(candidate)
        logger.info("Loaded %d candidates", len(candidates))
        return [self.store.get_by_id(c.id) for c in candidates]

    async def create(self, request: CreateCandidateRequest) -> Candidate:
        return self.track(await self.authority.create_candidate(request))

    async def change_stage(self, candidate_id: int, stage: Stage) -> StageChangeResult:
        """Move a candidate to `stage`."""
        stage = Stage(stage)
        current = self._require(candidate_id)
        if current.stage == stage:
            return StageChangeResult(candidate=current, changed=False)

        decisions = []

        def apply(snapshot):
            candidate = Candidate.model_validate(snapshot.state)
            decisions.append(ensure_transition(candidate.stage, stage))
            return candidate.model_copy(update={
                "stage": stage,
                "history": [
                    *candidate.history,
                    StageRecord(stage=stage, timestamp=self._timestamp_after(candidate)),
                ],
            })

        confirmed = await self.coordinator.mutate(
            candidate_id,
            apply,
            lambda: self.authority.update_candidate(
                candidate_id, UpdateCandidateRequest(stage=stage)
            ),
            reconcile=server_wins_on("stage", "history"),
        )

        decision = decisions[0]
        last = confirmed.history[-1] if confirmed.history else None
        self.history.append(
            candidate_id,
            StageChangeEntry(
                stage=confirmed.stage,
                from_stage=current.stage,
                timestamp=last.timestamp if last and last.stage == confirmed.stage else self._clock(),
                advisory=decision.advisory.value if decision.advisory else None,
            ),
        )
        if decision.advisory:
            logger.info(
                "Candidate %s moved %s -> %s, skipping stages",
                candidate_id, current.stage.value, confirmed.stage.value,
            )
        return StageChangeResult(
            candidate=self.store.committed(candidate_id),
            changed=True,
            advisory=decision.advisory,
        )

    async def advance(self, candidate_id: int) -> StageChangeResult:
        """Move a candidate to the next stage on the active path."""
        current = self._require(candidate_id)
        following = next_stage(current.stage)
        if following is None:
            raise ValidationError(
                f"Cannot advance from stage: {current.stage.value}", candidate_id
            )
        return await self.change_stage(candidate_id, following)

    async def reject(self, candidate_id: int, reason: Optional[str] = None) -> StageChangeResult:
        """Reject a candidate, recording the reason as a note when given."""
        result = await self.change_stage(candidate_id, Stage.REJECTED)
        if reason:
            await self.add_note(candidate_id, f"Rejected: {reason}")
            result = result.model_copy(update={"candidate": self.store.committed(candidate_id)})
        return result

    async def add_note(self, candidate_id: int, text: str) -> NoteEntry:
        """Attach a note. Any text is accepted, whatever the stage."""
        self._require(candidate_id)

        def apply(snapshot):
            candidate = Candidate.model_validate(snapshot.state)
            note = NoteRecord(text=text, timestamp=self._clock())
            return candidate.model_copy(update={"notes": [*candidate.notes, note]})

        confirmed = await self.coordinator.mutate(
            candidate_id,
            apply,
            lambda: self.authority.update_candidate(
                candidate_id, UpdateCandidateRequest(notes=text)
            ),
            reconcile=server_wins_on("notes"),
            lock_key=_note_lock(candidate_id),
        )
        last = confirmed.notes[-1] if confirmed.notes else None
        entry = NoteEntry(text=text, timestamp=last.timestamp if last else self._clock())
        self.history.append(candidate_id, entry)
        return entry

    def timeline(self, candidate_id: int) -> CandidateTimeline:
        """Stage changes and notes of a candidate, oldest first."""
        candidate = self._require(candidate_id)
        return CandidateTimeline(
            candidate_id=candidate.id,
            name=candidate.name,
            email=candidate.email,
            current_stage=self.store.get_by_id(candidate_id).stage,
            entries=self.history.read(candidate_id),
        )

    def _require(self, candidate_id: int) -> Candidate:
        candidate = self.store.committed(candidate_id)
        if candidate is None:
            raise NotFoundError(f"Candidate {candidate_id} not found", candidate_id)
        return candidate

    def _timestamp_after(self, candidate: Candidate):
        """Now, but never earlier than the candidate's last history entry."""
        now = self._clock()
        if candidate.history and candidate.history[-1].timestamp > now:
            return candidate.history[-1].timestamp
        return now

    def _busy(self, candidate_id: int) -> bool:
        return any(
            self.coordinator.is_in_flight(key) for key in (candidate_id, _note_lock(candidate_id))
        )

    def _sync_history(self, candidate: Candidate) -> None:
        """Append the stage changes and notes of `candidate` missing from the log."""
        logged_stages = len(self.history.stage_changes(candidate.id))
        previous = None
        if 0 < logged_stages <= len(candidate.history):
            previous = candidate.history[logged_stages - 1].stage
        for record in candidate.history[logged_stages:]:
            self.history.append(
                candidate.id,
                StageChangeEntry(
                    stage=record.stage, from_stage=previous, timestamp=record.timestamp
                ),
            )
            previous = record.stage
        for note in candidate.notes[len(self.history.notes(candidate.id)):]:
            self.history.append(candidate.id, NoteEntry(text=note.text, timestamp=note.timestamp))


def _note_lock(candidate_id: int) -> tuple:
    """Lock key for notes, separate from the candidate's stage changes."""
    return ("notes", candidate_id)
