"""
Workspace — wires stores, coordinators, the pipeline and the history log.

Callers hold a Workspace handle instead of reaching into shared globals;
two workspaces never share state.
"""

from typing import Optional

from talentflow_core.clock import Clock, utcnow
from talentflow_core.config import CoreSettings, get_settings
from talentflow_core.history.log import PipelineHistoryLog
from talentflow_core.models.candidate import Candidate
from talentflow_core.models.job import Job
from talentflow_core.mutation.coordinator import OptimisticMutationCoordinator
from talentflow_core.pipeline.service import CandidatePipeline
from talentflow_core.remote.base import RemoteAuthority
from talentflow_core.remote.http import HttpAuthority
from talentflow_core.store.entity_store import EntityStore
from talentflow_core.store.jobs import JobBoard
from talentflow_core.store.repository import InMemoryRepository, SqliteRepository


class Workspace:
    """One user's view of jobs and candidates over one remote authority."""

    def __init__(
        self,
        authority: Optional[RemoteAuthority] = None,
        settings: Optional[CoreSettings] = None,
        clock: Clock = utcnow,
    ):
        self.settings = settings or get_settings()
        self.authority = authority or HttpAuthority.from_settings(self.settings)

        self.jobs_store = EntityStore(Job, self._repository("jobs"))
        self.candidates_store = EntityStore(Candidate, self._repository("candidates"))
        self.history = PipelineHistoryLog(self.settings.history_db_path)

        timeout = self.settings.remote_timeout_seconds
        self.jobs = JobBoard(
            self.jobs_store,
            OptimisticMutationCoordinator(self.jobs_store, remote_timeout_seconds=timeout),
            self.authority,
            clock=clock,
        )
        self.pipeline = CandidatePipeline(
            self.candidates_store,
            OptimisticMutationCoordinator(self.candidates_store, remote_timeout_seconds=timeout),
            self.authority,
            self.history,
            clock=clock,
        )

    def _repository(self, collection: str):
        if self.settings.documents_db_path:
            return SqliteRepository(self.settings.documents_db_path, collection=collection)
        return InMemoryRepository()

    async def load(self) -> None:
        """Hydrate, or refresh, jobs and candidates from the authority."""
        await self.jobs.load()
        await self.pipeline.load()

    async def close(self) -> None:
        self.history.close()
        for store in (self.jobs_store, self.candidates_store):
            if isinstance(store.repository, SqliteRepository):
                store.repository.close()
        if isinstance(self.authority, HttpAuthority):
            await self.authority.aclose()
