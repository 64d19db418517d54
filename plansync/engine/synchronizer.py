"""
Session synchronization facade.

Wires the registry, fact change submitter, refresher and reconciliation
cache into the control flow the presentation layer relies on:

    submit  -> session active -> cache primed -> refresh
    apply   -> acknowledged   -> session dirty -> refresh
    refresh -> snapshot offered to the cache

Refreshes triggered as a side effect of submit/apply report their failures
through on_error instead of failing the operation that was acknowledged.
Direct calls to refresh() raise.
"""

import logging
from typing import List, Optional

from plansync.engine.events import EventBus, SyncListener
from plansync.engine.fact_changes import FactChangeSubmitter
from plansync.engine.refresher import SolutionRefresher
from plansync.models.entities import FactChange, FactChangeAck, ProblemSpec, Score, Session, SolutionSnapshot
from plansync.models.errors import InvalidState, ServerError, SyncError
from plansync.storage.cache import ReconciliationCache
from plansync.storage.registry import SessionRegistry
from plansync.transport.client import SolverTransport

logger = logging.getLogger(__name__)


class SessionSynchronizer:
    def __init__(self, transport: SolverTransport):
        self.transport = transport
        self.events = EventBus()
        self.cache = ReconciliationCache(listener=self.events)
        self.registry = SessionRegistry(transport)
        self.submitter = FactChangeSubmitter(transport, self.cache)
        self.refresher = SolutionRefresher(transport, self.cache)

    def subscribe(self, listener: SyncListener) -> None:
        self.events.subscribe(listener)

    def _report(self, error: SyncError) -> None:
        self.events.on_error(error.kind, error.detail)

    async def submit(self, spec: ProblemSpec) -> Session:
        try:
            session = await self.registry.submit(spec)
        except SyncError as e:
            self._report(e)
            raise
        await self._activate(session)
        return session

    async def discover(self) -> List[Session]:
        try:
            sessions = await self.registry.discover()
        except SyncError as e:
            self._report(e)
            raise
        for session in sessions:
            await self._activate(session)
        return sessions

    async def _activate(self, session: Session) -> None:
        self.cache.prime(session.session_id)
        self.events.on_session_active(session)
        await self._triggered_refresh(session)

    async def apply(self, session_id: str, change: FactChange) -> FactChangeAck:
        try:
            session = self.registry.require(session_id)
            ack = await self.submitter.apply(session, change)
        except SyncError as e:
            self._report(e)
            raise
        await self._triggered_refresh(session)
        return ack

    async def refresh(self, session_id: str) -> Optional[SolutionSnapshot]:
        try:
            session = self.registry.require(session_id)
            return await self.refresher.refresh(session)
        except SyncError as e:
            self._report(e)
            raise

    async def _triggered_refresh(self, session: Session) -> None:
        try:
            await self.refresher.refresh(session)
        except InvalidState:
            raise
        except SyncError as e:
            logger.warning(f"Refresh after update of session {session.session_id} failed: {e.detail}")
            self._report(e)

    def current_snapshot(self, session_id: str) -> Optional[SolutionSnapshot]:
        self.registry.require(session_id)
        return self.cache.current_snapshot(session_id)

    async def solver_status(self, session_id: str) -> Optional[str]:
        session = self.registry.require(session_id)
        try:
            return await self.transport.solver_status(session.tenant_id)
        except SyncError as e:
            self._report(e)
            raise

    async def best_score(self, session_id: str) -> Optional[Score]:
        session = self.registry.require(session_id)
        try:
            raw = await self.transport.best_score(session.tenant_id)
        except SyncError as e:
            self._report(e)
            raise
        if raw is None:
            return None
        try:
            return Score.parse(raw)
        except ValueError as e:
            raise ServerError(f"Malformed score for session {session_id}: {e}") from e
