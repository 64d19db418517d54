from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    TRANSPORT_FAILURE = "transport_failure"
    TIMEOUT = "timeout"
    SERVER_ERROR = "server_error"
    INVALID_STATE = "invalid_state"
    STALE_RESPONSE = "stale_response"


class SyncError(Exception):
    """Base exception for the session synchronization layer"""
    kind: ErrorKind = ErrorKind.SERVER_ERROR

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class TransportFailure(SyncError):
    """Network-level failure: connection refused, reset, DNS, ..."""
    kind = ErrorKind.TRANSPORT_FAILURE


class TransportTimeout(TransportFailure):
    """Request exceeded the timeout configured on the transport"""
    kind = ErrorKind.TIMEOUT


class ServerError(SyncError):
    """Non-2xx response, or a 2xx response the client cannot use"""
    kind = ErrorKind.SERVER_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        detail = message if status_code is None else f"{status_code}: {message}"
        super().__init__(detail)


class FactChangeRejected(ServerError):
    """
    The server refused a fact change.

    ignorable is True for deletions: the task may already be gone, and the
    caller can drop the failure. Additions are never ignorable since
    resubmitting them may create duplicates.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, ignorable: bool = False):
        super().__init__(message, status_code)
        self.ignorable = ignorable


class InvalidState(SyncError):
    """Operation attempted against a session not in the required status"""
    kind = ErrorKind.INVALID_STATE


class DuplicateSubmission(InvalidState):
    def __init__(self, problem_id: int, session_id: str):
        self.problem_id = problem_id
        self.session_id = session_id
        super().__init__(f"Problem ({problem_id}) already submitted as session {session_id}")


class SessionNotFound(InvalidState):
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class StaleResponse(SyncError):
    """Refresh result older than one already accepted. Internal only."""
    kind = ErrorKind.STALE_RESPONSE

    def __init__(self, session_id: str, sequence: int, high_water_mark: int):
        self.session_id = session_id
        self.sequence = sequence
        self.high_water_mark = high_water_mark
        super().__init__(
            f"Discarded refresh #{sequence} for session {session_id} (already at #{high_water_mark})"
        )
