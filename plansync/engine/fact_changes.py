import logging

from plansync.models.entities import DeleteTask, FactChange, FactChangeAck, Session, SessionStatus
from plansync.models.errors import FactChangeRejected, InvalidState, ServerError
from plansync.storage.cache import ReconciliationCache
from plansync.transport.client import SolverTransport

logger = logging.getLogger(__name__)


def require_active(session: Session, operation: str) -> None:
    if session.status != SessionStatus.ACTIVE:
        logger.error(f"{operation} attempted on session {session.session_id} in state {session.status.value}")
        raise InvalidState(
            f"Cannot {operation} session {session.session_id}: status is {session.status.value}, expected active"
        )


class FactChangeSubmitter:
    """
    Sends incremental problem changes to a live session.

    A successful apply only means the server queued the change; the session
    is flagged dirty so the next refresh picks it up.
    """

    def __init__(self, transport: SolverTransport, cache: ReconciliationCache):
        self.transport = transport
        self.cache = cache

    async def apply(self, session: Session, change: FactChange) -> FactChangeAck:
        require_active(session, "apply a fact change to")
        kind = type(change).__name__
        try:
            await self.transport.submit_fact_change(session.tenant_id, change)
        except ServerError as e:
            # the task may already be gone; the caller decides whether to care
            ignorable = isinstance(change, DeleteTask)
            logger.warning(f"{kind} rejected for session {session.session_id}: {e.message}")
            raise FactChangeRejected(e.message, e.status_code, ignorable=ignorable) from e

        watermark = self.cache.mark_dirty(session.session_id)
        logger.info(f"{kind} acknowledged for session {session.session_id}")
        return FactChangeAck(session_id=session.session_id, change=change, dirty_since=watermark)
