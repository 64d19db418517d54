import logging
from typing import Dict, List, Optional

from plansync.models.entities import ProblemSpec, Session, SessionStatus
from plansync.models.errors import DuplicateSubmission, SessionNotFound, SyncError
from plansync.transport.client import SolverTransport

logger = logging.getLogger(__name__)


def session_id_for(tenant_id: int) -> str:
    return f"tenant-{tenant_id}"


class SessionRegistry:
    """Tracks known solver sessions and drives their submission lifecycle."""

    def __init__(self, transport: SolverTransport):
        self.transport = transport
        self._sessions: Dict[str, Session] = {}

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def get_by_problem(self, problem_id: int) -> Optional[Session]:
        return self._sessions.get(session_id_for(problem_id))

    def list_all(self) -> List[Session]:
        return list(self._sessions.values())

    async def submit(self, spec: ProblemSpec) -> Session:
        """
        Create a remote session for a problem.

        Rejected locally, without any request, while a submission for the
        same problem id is in flight or active. A failed session may be
        submitted again. Any error, cancellation included, marks the session
        FAILED and is re-raised.
        """
        session_id = session_id_for(spec.problem_id)
        existing = self._sessions.get(session_id)
        if existing and existing.status in (SessionStatus.SUBMITTING, SessionStatus.ACTIVE):
            logger.warning(f"Rejecting duplicate submission of problem {spec.problem_id}")
            raise DuplicateSubmission(spec.problem_id, session_id)

        session = Session(session_id=session_id, tenant_id=spec.problem_id, spec=spec)
        self._sessions[session_id] = session
        session.status = SessionStatus.SUBMITTING
        logger.info(f"Submitting problem {spec.problem_id} as {session_id}")

        submitted = False
        try:
            if spec.is_generated:
                await self.transport.generate(spec.problem_id, spec.task_list_size, spec.employee_list_size)
            else:
                await self.transport.submit_problem(spec.problem_id, spec.payload)
            submitted = True
        except SyncError as e:
            session.last_error = e.detail
            logger.error(f"Submission of problem {spec.problem_id} failed: {e.detail}")
            raise
        finally:
            # cancellation or an unexpected error must not leave the id stuck in SUBMITTING
            if not submitted:
                session.status = SessionStatus.FAILED
                if session.last_error is None:
                    session.last_error = "Submission interrupted"
                    logger.warning(f"Submission of problem {spec.problem_id} interrupted")

        session.status = SessionStatus.ACTIVE
        session.last_error = None
        logger.info(f"Session {session_id} active")
        return session

    async def discover(self) -> List[Session]:
        """Register problems already solving on the server. Returns the newly added sessions."""
        added = []
        for tenant_id in await self.transport.list_tenants():
            session_id = session_id_for(tenant_id)
            existing = self._sessions.get(session_id)
            if existing and existing.status != SessionStatus.FAILED:
                continue
            session = Session(session_id=session_id, tenant_id=tenant_id, status=SessionStatus.ACTIVE)
            self._sessions[session_id] = session
            added.append(session)
        if added:
            logger.info(f"Discovered {len(added)} running session(s) on the solver")
        return added
