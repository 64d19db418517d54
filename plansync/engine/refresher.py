import logging
from typing import Optional

from plansync.engine.fact_changes import require_active
from plansync.models.entities import Session, SolutionSnapshot
from plansync.models.errors import StaleResponse
from plansync.storage.cache import ReconciliationCache
from plansync.transport.client import SolverTransport
from plansync.utils.snapshot import parse_snapshot

logger = logging.getLogger(__name__)


class SolutionRefresher:
    def __init__(self, transport: SolverTransport, cache: ReconciliationCache):
        self.transport = transport
        self.cache = cache

    async def refresh(self, session: Session) -> Optional[SolutionSnapshot]:
        """
        Fetch the best solution once and offer it to the cache.

        Returns the snapshot if it was accepted, None if the solver has no
        plan yet or a later refresh already won. Errors propagate to the
        caller and leave the session status alone.
        """
        require_active(session, "refresh")
        sequence = self.cache.next_sequence(session.session_id)
        logger.debug(f"Refresh #{sequence} started for session {session.session_id}")

        raw = await self.transport.best_solution(session.tenant_id)
        snapshot = parse_snapshot(raw)
        if snapshot is None:
            logger.debug(f"Refresh #{sequence} for session {session.session_id}: no plan yet")
            return None

        try:
            await self.cache.accept(session, sequence, snapshot)
        except StaleResponse as e:
            logger.debug(e.detail)
            return None
        return snapshot
